from decimal import Decimal

import pytest

from stowage.errors import IncompatibleUnitError, ValidationError
from stowage.network.core import (
    Inventory,
    ShipInventory,
    Warehouse,
    WarehouseCapacityUnit,
)
from stowage.product.core import (
    MAX_AMOUNT,
    Barrel,
    Bushel,
    Commodity,
    Quantity,
    StandardLitre,
    Unit,
    parse_commodity,
    parse_unit,
    quantity_of,
)


def test_quantity_creation():
    corn = Bushel(5000)
    assert corn.amount == Decimal("5000.000")
    assert corn.unit == Unit.BUSHEL
    assert str(corn) == "5000.000 bushel"


def test_quantity_rounds_half_up():
    assert Bushel("1.0005").amount == Decimal("1.001")
    assert Bushel("1.0004").amount == Decimal("1.000")
    assert Bushel(0.1).amount == Decimal("0.100")


def test_negative_quantity_rejected():
    with pytest.raises(ValidationError):
        Bushel(-1)


def test_non_numeric_quantity_rejected():
    with pytest.raises(ValidationError):
        Barrel("lots")
    with pytest.raises(ValidationError):
        Barrel(float("nan"))


@pytest.mark.parametrize("amount", ["1e30", "1e20", "9223372036854776"])
def test_amount_beyond_int64_quanta_rejected(amount):
    with pytest.raises(ValidationError):
        Bushel(amount)


def test_largest_amount_accepted():
    assert Bushel(MAX_AMOUNT).amount == Decimal("9223372036854775.807")
    with pytest.raises(ValidationError):
        Bushel(MAX_AMOUNT) + Bushel("0.001")


def test_quantity_base_is_abstract():
    with pytest.raises(TypeError):
        Quantity(Decimal(1))


def test_same_unit_arithmetic():
    assert Bushel(10) + Bushel(5) == Bushel(15)
    assert Bushel(10) - Bushel(4) == Bushel(6)
    with pytest.raises(ValidationError):
        Bushel(1) - Bushel(2)


def test_mixed_units_never_combine():
    with pytest.raises(IncompatibleUnitError):
        Bushel(1) + StandardLitre(1)
    assert Bushel(1) != StandardLitre(1)


def test_enum_lookup_is_case_insensitive():
    assert parse_commodity("Corn") == Commodity.CORN
    assert parse_commodity(" OIL ") == Commodity.OIL
    assert parse_unit("standard_litre") == Unit.STANDARD_LITRE
    assert parse_unit("BARREL") == Unit.BARREL
    assert quantity_of(Unit.BARREL, "2.5") == Barrel("2.5")
    with pytest.raises(ValueError):
        parse_commodity("soybean")


def test_warehouse_creation():
    warehouse = Warehouse(
        id=1,
        capacities=[
            WarehouseCapacityUnit(Commodity.CORN, Bushel(10000)),
            WarehouseCapacityUnit(Commodity.OIL, Barrel(300)),
        ],
    )
    assert warehouse.commodities == (Commodity.CORN, Commodity.OIL)
    assert warehouse.capacity_for(Commodity.OIL) == Barrel(300)
    assert warehouse.capacity_for(Commodity.WHEAT) is None
    # Lists are frozen into tuples
    assert isinstance(warehouse.capacities, tuple)


def test_warehouse_rejects_duplicate_commodity():
    with pytest.raises(ValidationError):
        Warehouse(
            1,
            (
                WarehouseCapacityUnit(Commodity.CORN, Bushel(10)),
                WarehouseCapacityUnit(Commodity.CORN, StandardLitre(10)),
            ),
        )


@pytest.mark.parametrize("bad_id", [-1, "7", 1.5, True])
def test_warehouse_rejects_bad_id(bad_id):
    with pytest.raises(ValidationError):
        Warehouse(bad_id)


def test_inventory_is_read_only():
    inventory = Inventory({(1, Commodity.CORN): Bushel(10)})
    updated = inventory.with_quantity(2, Commodity.CORN, Bushel(3))

    assert inventory.get(2, Commodity.CORN) is None
    assert updated.get(2, Commodity.CORN) == Bushel(3)
    assert len(updated) == 2
    with pytest.raises(TypeError):
        inventory.entries[(3, Commodity.CORN)] = Bushel(1)  # type: ignore[index]


def test_inventory_structural_equality_and_order():
    a = Inventory({(2, Commodity.OIL): Barrel(1), (1, Commodity.CORN): Bushel(2)})
    b = Inventory({(1, Commodity.CORN): Bushel(2), (2, Commodity.OIL): Barrel(1)})
    assert a == b
    assert [key for key, _ in a.cells()] == [(1, Commodity.CORN), (2, Commodity.OIL)]


def test_ship_inventory_orders_by_commodity():
    ship = ShipInventory({Commodity.OIL: Barrel(5), Commodity.CORN: Bushel(7)})
    assert ship.commodities == (Commodity.CORN, Commodity.OIL)
    assert ship.get(Commodity.OIL) == Barrel(5)
    with pytest.raises(ValidationError):
        ShipInventory({Commodity.CORN: 7})  # type: ignore[dict-item]
