"""In-memory handlers: fixed snapshots and a lock-guarded inventory store."""

import threading
from collections.abc import Iterable, Mapping
from typing import Any

from stowage.errors import StoreConflictError
from stowage.flow.context import ParserContext
from stowage.handlers.base import (
    InventoryParser,
    InventoryStorer,
    ShipInventoryParser,
    WarehouseParser,
)
from stowage.handlers.rows import (
    parse_inventory_rows,
    parse_ship_inventory_rows,
    parse_warehouse_rows,
)
from stowage.network.core import Inventory, ShipInventory, Warehouse


class StaticWarehouseParser(WarehouseParser):
    """Returns a pre-built warehouse list."""

    def __init__(self, warehouses: Iterable[Warehouse]) -> None:
        self.warehouses = tuple(warehouses)

    def parse_warehouses(self, context: ParserContext) -> list[Warehouse]:
        return list(self.warehouses)


class StaticShipInventoryParser(ShipInventoryParser):
    def __init__(self, ship_inventory: ShipInventory) -> None:
        self.ship_inventory = ship_inventory

    def parse_ship_inventory(self, context: ParserContext) -> ShipInventory:
        return self.ship_inventory


class RowWarehouseParser(WarehouseParser):
    """Parses raw row mappings, e.g. records fetched by the caller."""

    def __init__(self, rows: Iterable[Mapping[str, Any]], source: str = "rows") -> None:
        self.rows = list(rows)
        self.source = source

    def parse_warehouses(self, context: ParserContext) -> list[Warehouse]:
        return parse_warehouse_rows(self.rows, context, source=self.source)


class RowInventoryParser(InventoryParser):
    def __init__(self, rows: Iterable[Mapping[str, Any]], source: str = "rows") -> None:
        self.rows = list(rows)
        self.source = source

    def parse_inventory(self, context: ParserContext) -> Inventory:
        return parse_inventory_rows(self.rows, context, source=self.source)


class RowShipInventoryParser(ShipInventoryParser):
    def __init__(self, rows: Iterable[Mapping[str, Any]], source: str = "rows") -> None:
        self.rows = list(rows)
        self.source = source

    def parse_ship_inventory(self, context: ParserContext) -> ShipInventory:
        return parse_ship_inventory_rows(self.rows, context, source=self.source)


class InMemoryInventoryStore(InventoryParser, InventoryStorer):
    """
    Holds the current inventory in process.

    Reads and writes are serialized by a lock; ``store_inventory`` with a
    ``previous`` snapshot only succeeds if nothing was stored in between.
    """

    def __init__(self, inventory: Inventory | None = None) -> None:
        self._inventory = inventory if inventory is not None else Inventory()
        self._lock = threading.Lock()
        self.writes = 0

    @property
    def inventory(self) -> Inventory:
        with self._lock:
            return self._inventory

    def parse_inventory(self, context: ParserContext) -> Inventory:
        return self.inventory

    def store_inventory(
        self, inventory: Inventory, previous: Inventory | None = None
    ) -> None:
        with self._lock:
            if previous is not None and previous != self._inventory:
                raise StoreConflictError(
                    "In-memory inventory changed since it was read", sink="memory"
                )
            self._inventory = inventory
            self.writes += 1
