import pytest

from agrishop.exceptions import NotFoundError

from .models import Address
from .services import create_address, delete_address, set_default_address, update_address

pytestmark = pytest.mark.django_db(transaction=True)

FIELDS = {
    "house_name": "Green Villa",
    "area_street_sector_village": "Sector 4",
    "pincode": "110001",
    "town_city": "Delhi",
    "state": "DL",
}


def _defaults(user):
    return list(Address.objects.filter(user=user, is_default=True).values_list("pk", flat=True))


def test_first_address_becomes_default(user):
    first = create_address(user=user, data=FIELDS)
    second = create_address(user=user, data={**FIELDS, "house_name": "Second"})

    assert first.is_default
    assert not second.is_default
    assert _defaults(user) == [first.pk]


def test_set_default_moves_the_flag(user):
    first = create_address(user=user, data=FIELDS)
    second = create_address(user=user, data=FIELDS)

    set_default_address(user=user, address_id=second.pk)

    assert _defaults(user) == [second.pk]
    first.refresh_from_db()
    assert not first.is_default


def test_deleting_default_promotes_oldest_remaining(user):
    a = create_address(user=user, data=FIELDS)
    b = create_address(user=user, data=FIELDS)
    c = create_address(user=user, data=FIELDS)

    delete_address(user=user, address_id=a.pk)
    assert _defaults(user) == [b.pk]

    delete_address(user=user, address_id=c.pk)
    assert _defaults(user) == [b.pk]

    delete_address(user=user, address_id=b.pk)
    assert _defaults(user) == []


def test_addresses_are_scoped_to_owner(user, admin):
    theirs = create_address(user=admin, data=FIELDS)
    with pytest.raises(NotFoundError):
        update_address(user=user, address_id=theirs.pk, data={"state": "MH"})
    with pytest.raises(NotFoundError):
        set_default_address(user=user, address_id=theirs.pk)
    with pytest.raises(NotFoundError):
        delete_address(user=user, address_id=theirs.pk)


def test_address_endpoints(user, client_for):
    client = client_for(user)

    resp = client.post("/api/addresses", FIELDS, format="json")
    assert resp.status_code == 201
    first = resp.json()
    assert first["is_default"] is True
    assert first["landmark"] is None

    second = client.post("/api/addresses", {**FIELDS, "landmark": "Near the well"}, format="json").json()
    resp = client.patch(f"/api/addresses/{second['id']}/set-default")
    assert resp.json()["is_default"] is True

    listing = client.get("/api/addresses").json()
    assert [a["id"] for a in listing] == [second["id"], first["id"]]

    resp = client.put(f"/api/addresses/{first['id']}", {"town_city": "Noida"}, format="json")
    assert resp.json()["town_city"] == "Noida"

    assert client.delete(f"/api/addresses/{second['id']}").status_code == 200
    assert client.get("/api/addresses").json()[0]["is_default"] is True


def test_address_requires_fields(user, client_for):
    resp = client_for(user).post("/api/addresses", {"house_name": "Only"}, format="json")
    assert resp.status_code == 400
    assert "pincode" in resp.json()["errors"]
