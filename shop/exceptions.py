from agrishop.exceptions import ApiError


class CartEmptyError(ApiError):
    default_detail = "Cart is empty"


class StockInsufficientError(ApiError):
    """Checkout rejected; carries every offending line, not only the first."""

    default_detail = "Some items have insufficient stock"

    def __init__(self, issues):
        self.issues = list(issues)
        super().__init__(
            extra={
                "type": "stock_insufficient",
                "stockIssues": [issue.as_dict() for issue in self.issues],
            }
        )


class InsufficientStockError(ApiError):
    default_detail = "Not enough stock available"


class InvalidStockError(ApiError):
    default_detail = "Valid stock quantity is required"
