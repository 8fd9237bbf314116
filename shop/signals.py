from django.dispatch import Signal

# Sent after commit when an admin stock change leaves a product below
# LOW_STOCK_THRESHOLD. kwargs: product_id, product_name, stock.
low_stock = Signal()
