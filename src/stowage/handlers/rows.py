"""
Row-level parsing shared by every handler medium.

Rows are plain mappings (a csv.DictReader row, a DuckDB record, a pyarrow
``to_pylist`` entry). A malformed row is recorded in the ParserContext and
skipped; it never aborts parsing of the remaining rows.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from stowage.errors import IncompatibleUnitError, SourceUnreadableError
from stowage.flow.context import ParserContext
from stowage.network.core import (
    Inventory,
    ShipInventory,
    Warehouse,
    WarehouseCapacityUnit,
)
from stowage.product.core import (
    Commodity,
    Quantity,
    parse_commodity,
    parse_unit,
    quantity_of,
)
from stowage.product.units import DEFAULT_REGISTRY, UnitRegistry

logger = logging.getLogger(__name__)

WAREHOUSE_COLUMNS = ("warehouse_id", "commodity", "capacity_amount", "capacity_unit")
INVENTORY_COLUMNS = ("warehouse_id", "commodity", "amount", "unit")
SHIP_INVENTORY_COLUMNS = ("commodity", "amount", "unit")

# Anything a single bad row can raise while being decoded
ROW_ERRORS = (KeyError, ValueError, TypeError, IncompatibleUnitError)

Row = Mapping[str, Any]


def require_columns(
    fieldnames: Sequence[str] | None, required: Sequence[str], source: str
) -> None:
    """Raise SourceUnreadableError when the source lacks a required column."""
    present = set(fieldnames or ())
    missing = [name for name in required if name not in present]
    if missing:
        raise SourceUnreadableError(
            f"{source} is missing required columns {missing}", source=source
        )


def _value(row: Row, key: str) -> Any:
    value = row[key]
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"missing {key}")
    return value


def _warehouse_id(row: Row) -> int:
    value = _value(row, "warehouse_id")
    if isinstance(value, bool):
        raise ValueError(f"invalid warehouse_id {value!r}")
    if isinstance(value, int):
        return value
    return int(str(value).strip())


def _quantity(row: Row, amount_key: str, unit_key: str) -> Quantity:
    unit = parse_unit(str(_value(row, unit_key)))
    return quantity_of(unit, _value(row, amount_key))


def _commodity(row: Row) -> Commodity:
    return parse_commodity(str(_value(row, "commodity")))


def _accumulate(
    current: Quantity | None,
    quantity: Quantity,
    commodity: Commodity,
    registry: UnitRegistry,
) -> Quantity:
    """Sum two readings of one cell; mixed units meet in the canonical unit."""
    if current is None:
        return quantity
    if type(current) is type(quantity):
        return current + quantity
    return registry.to_canonical(current, commodity) + registry.to_canonical(
        quantity, commodity
    )


def parse_warehouse_rows(
    rows: Iterable[Row],
    context: ParserContext,
    source: str = "warehouses",
    start_line: int = 1,
) -> list[Warehouse]:
    """
    Group capacity rows into Warehouses, keeping first-seen order.

    A second row for the same (warehouse, commodity) is treated as malformed.
    """
    capacities: dict[int, list[WarehouseCapacityUnit]] = {}
    for line, row in enumerate(rows, start=start_line):
        try:
            warehouse_id = _warehouse_id(row)
            if warehouse_id < 0:
                raise ValueError(f"negative warehouse_id {warehouse_id}")
            unit = WarehouseCapacityUnit(
                _commodity(row), _quantity(row, "capacity_amount", "capacity_unit")
            )
        except ROW_ERRORS as exc:
            context.note(source, str(exc), raw=dict(row), line=line)
            continue

        entries = capacities.setdefault(warehouse_id, [])
        if any(existing.commodity == unit.commodity for existing in entries):
            context.note(
                source,
                f"duplicate {unit.commodity.name} capacity for warehouse {warehouse_id}",
                raw=dict(row),
                line=line,
            )
            continue
        entries.append(unit)

    warehouses = [
        Warehouse(warehouse_id, tuple(units))
        for warehouse_id, units in capacities.items()
    ]
    logger.info("Parsed %d warehouses from %s", len(warehouses), source)
    return warehouses


def parse_inventory_rows(
    rows: Iterable[Row],
    context: ParserContext,
    source: str = "inventory",
    registry: UnitRegistry | None = None,
    start_line: int = 1,
) -> Inventory:
    """Build an Inventory; repeated cells are summed."""
    registry = registry or DEFAULT_REGISTRY
    entries: dict[tuple[int, Commodity], Quantity] = {}
    for line, row in enumerate(rows, start=start_line):
        try:
            warehouse_id = _warehouse_id(row)
            if warehouse_id < 0:
                raise ValueError(f"negative warehouse_id {warehouse_id}")
            commodity = _commodity(row)
            quantity = _quantity(row, "amount", "unit")
            key = (warehouse_id, commodity)
            entries[key] = _accumulate(entries.get(key), quantity, commodity, registry)
        except ROW_ERRORS as exc:
            context.note(source, str(exc), raw=dict(row), line=line)

    logger.info("Parsed %d inventory cells from %s", len(entries), source)
    return Inventory(entries)


def parse_ship_inventory_rows(
    rows: Iterable[Row],
    context: ParserContext,
    source: str = "ship_inventory",
    registry: UnitRegistry | None = None,
    start_line: int = 1,
) -> ShipInventory:
    """Build a ShipInventory; ``warehouse_id`` is ignored if present."""
    registry = registry or DEFAULT_REGISTRY
    quantities: dict[Commodity, Quantity] = {}
    for line, row in enumerate(rows, start=start_line):
        try:
            commodity = _commodity(row)
            quantity = _quantity(row, "amount", "unit")
            quantities[commodity] = _accumulate(
                quantities.get(commodity), quantity, commodity, registry
            )
        except ROW_ERRORS as exc:
            context.note(source, str(exc), raw=dict(row), line=line)

    logger.info("Parsed %d ship commodities from %s", len(quantities), source)
    return ShipInventory(quantities)


def inventory_to_rows(inventory: Inventory) -> list[dict[str, Any]]:
    """Inventory cells as sink rows, sorted by warehouse then commodity."""
    return [
        {
            "warehouse_id": warehouse_id,
            "commodity": commodity.value,
            "amount": str(quantity.amount),
            "unit": quantity.unit.value,
        }
        for (warehouse_id, commodity), quantity in inventory.cells()
    ]


def warehouses_to_rows(warehouses: Iterable[Warehouse]) -> list[dict[str, Any]]:
    return [
        {
            "warehouse_id": warehouse.id,
            "commodity": unit.commodity.value,
            "capacity_amount": str(unit.capacity.amount),
            "capacity_unit": unit.capacity.unit.value,
        }
        for warehouse in warehouses
        for unit in warehouse.capacities
    ]
