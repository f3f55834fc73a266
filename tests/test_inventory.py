import pytest
from pydantic import ValidationError

from conftest import ALICE, HR, OTHER_HR
from database import ASSETS, object_id
from errors import Forbidden, InvalidInput, InventoryExhausted, NotFound
from schemas import AssetCreateRequest, AssetUpdateRequest


def quantity(store, asset):
    return store.find_one(ASSETS, {"_id": object_id(asset["_id"])})["productQuantity"]


def test_create_asset_scopes_to_hr(make_asset):
    asset = make_asset(quantity=3, name="Monitor")
    assert asset["hrEmail"] == "hr@acme.com"
    assert asset["productName"] == "Monitor"
    assert asset["productQuantity"] == 3
    assert isinstance(asset["_id"], str)
    assert "addedDate" in asset


def test_create_asset_requires_hr(inventory):
    payload = AssetCreateRequest(product_name="Pen", product_type="Non-returnable", product_quantity=5)
    with pytest.raises(Forbidden):
        inventory.create(ALICE, payload)


def test_quantity_must_be_a_non_negative_integer():
    assert AssetCreateRequest(productName="Pen", productType="Returnable", productQuantity="4").product_quantity == 4
    with pytest.raises(ValidationError):
        AssetCreateRequest(productName="Pen", productType="Returnable", productQuantity="four")
    with pytest.raises(ValidationError):
        AssetCreateRequest(productName="Pen", productType="Returnable", productQuantity=-1)
    with pytest.raises(ValidationError):
        AssetCreateRequest(productName="Pen", productType="Borrowable", productQuantity=1)
    with pytest.raises(ValidationError):
        AssetCreateRequest(productName="  ", productType="Returnable", productQuantity=1)


def test_adjust_quantity_never_goes_below_zero(inventory, store, make_asset):
    asset = make_asset(quantity=1)
    inventory.adjust_quantity(asset["_id"], -1)
    with pytest.raises(InventoryExhausted):
        inventory.adjust_quantity(asset["_id"], -1)
    assert quantity(store, asset) == 0

    inventory.adjust_quantity(asset["_id"], 1)
    assert quantity(store, asset) == 1


def test_adjust_quantity_on_missing_asset(inventory):
    with pytest.raises(NotFound):
        inventory.adjust_quantity("5f0000000000000000000000", -1)
    with pytest.raises(InvalidInput):
        inventory.adjust_quantity("not-an-id", 1)


def test_update_asset_sets_only_given_fields(inventory, make_asset):
    asset = make_asset(quantity=2, name="Laptop")
    updated = inventory.update(HR, asset["_id"], AssetUpdateRequest(product_quantity=7))
    assert updated["productQuantity"] == 7
    assert updated["productName"] == "Laptop"

    with pytest.raises(InvalidInput):
        inventory.update(HR, asset["_id"], AssetUpdateRequest())


def test_other_hr_cannot_touch_asset(inventory, make_asset):
    asset = make_asset()
    with pytest.raises(NotFound):
        inventory.update(OTHER_HR, asset["_id"], AssetUpdateRequest(product_name="Mine now"))
    with pytest.raises(NotFound):
        inventory.delete(OTHER_HR, asset["_id"])
    assert inventory.delete(HR, asset["_id"]) == {"deletedCount": 1}
    with pytest.raises(NotFound):
        inventory.delete(HR, asset["_id"])


def test_list_for_hr_filters_and_sorts(inventory, make_asset):
    make_asset(quantity=2, name="Dell Laptop")
    make_asset(quantity=9, name="HP laptop")
    make_asset(quantity=5, name="Paper", product_type="Non-returnable")
    make_asset(quantity=5, name="Globex Laptop", owner=OTHER_HR)

    found = inventory.list_for_hr(HR, "hr@acme.com", search="LAPTOP")
    assert sorted(a["productName"] for a in found) == ["Dell Laptop", "HP laptop"]

    found = inventory.list_for_hr(HR, "hr@acme.com", product_type="Non-returnable")
    assert [a["productName"] for a in found] == ["Paper"]

    found = inventory.list_for_hr(HR, "hr@acme.com", sort="quantity")
    assert [a["productQuantity"] for a in found] == [9, 5, 2]

    with pytest.raises(Forbidden):
        inventory.list_for_hr(HR, "hr@globex.com")


def test_search_is_literal_not_a_pattern(inventory, make_asset):
    make_asset(name="Cable (USB-C)")
    make_asset(name="Cable USB-A")
    found = inventory.list_for_hr(HR, "hr@acme.com", search="(usb")
    assert [a["productName"] for a in found] == ["Cable (USB-C)"]


def test_list_available_skips_empty_stock(inventory, make_asset):
    make_asset(quantity=0, name="Headset")
    make_asset(quantity=2, name="Keyboard")

    found = inventory.list_available(ALICE, "hr@acme.com")
    assert [a["productName"] for a in found] == ["Keyboard"]
    assert [a["productName"] for a in inventory.list_available(HR, "hr@acme.com")] == ["Keyboard"]


def test_list_available_requires_team_membership(inventory, make_asset):
    make_asset(quantity=2)
    with pytest.raises(Forbidden):
        inventory.list_available(ALICE, "hr@globex.com")
    with pytest.raises(Forbidden):
        inventory.list_available(OTHER_HR, "hr@acme.com")
