"""DuckDB-backed warehouse parser and inventory store.

Tables:
    warehouse_capacity(warehouse_id, commodity, capacity_amount, capacity_unit)
    inventory(warehouse_id, commodity, amount, unit)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import duckdb

from stowage.errors import SourceUnreadableError, StoreConflictError, StoreError
from stowage.flow.context import ParserContext
from stowage.handlers.base import InventoryParser, InventoryStorer, WarehouseParser
from stowage.handlers.rows import (
    INVENTORY_COLUMNS,
    WAREHOUSE_COLUMNS,
    parse_inventory_rows,
    parse_warehouse_rows,
)
from stowage.network.core import Inventory, Warehouse
from stowage.product.units import UnitRegistry

logger = logging.getLogger(__name__)

WAREHOUSE_TABLE = "warehouse_capacity"
INVENTORY_TABLE = "inventory"


def create_tables(
    db: duckdb.DuckDBPyConnection,
    warehouse_table: str = WAREHOUSE_TABLE,
    inventory_table: str = INVENTORY_TABLE,
) -> None:
    """Create both tables if they do not exist yet."""
    db.execute(
        f"CREATE TABLE IF NOT EXISTS {warehouse_table} ("
        "warehouse_id INTEGER, commodity VARCHAR, "
        "capacity_amount DECIMAL(18, 3), capacity_unit VARCHAR)"
    )
    db.execute(
        f"CREATE TABLE IF NOT EXISTS {inventory_table} ("
        "warehouse_id INTEGER, commodity VARCHAR, "
        "amount DECIMAL(18, 3), unit VARCHAR)"
    )


def insert_warehouses(
    db: duckdb.DuckDBPyConnection,
    warehouses: Iterable[Warehouse],
    table: str = WAREHOUSE_TABLE,
) -> None:
    db.executemany(
        f"INSERT INTO {table} VALUES (?, ?, ?, ?)",
        [
            (w.id, unit.commodity.value, unit.capacity.amount, unit.capacity.unit.value)
            for w in warehouses
            for unit in w.capacities
        ],
    )


def _fetch_rows(
    db: duckdb.DuckDBPyConnection, table: str, columns: tuple[str, ...]
) -> list[dict[str, Any]]:
    try:
        cursor = db.execute(f"SELECT {', '.join(columns)} FROM {table}")
        records = cursor.fetchall()
    except duckdb.Error as exc:
        raise SourceUnreadableError(
            f"Cannot read table {table}: {exc}", source=table
        ) from exc
    return [dict(zip(columns, record)) for record in records]


class DuckDBWarehouseParser(WarehouseParser):
    def __init__(
        self, db: duckdb.DuckDBPyConnection, table: str = WAREHOUSE_TABLE
    ) -> None:
        self.db = db
        self.table = table

    def parse_warehouses(self, context: ParserContext) -> list[Warehouse]:
        rows = _fetch_rows(self.db, self.table, WAREHOUSE_COLUMNS)
        return parse_warehouse_rows(rows, context, source=self.table)


class DuckDBInventoryStore(InventoryParser, InventoryStorer):
    """
    Reads and replaces the inventory table.

    ``store_inventory`` runs in one transaction: the table is re-read and
    compared with ``previous`` before its rows are replaced.
    """

    def __init__(
        self,
        db: duckdb.DuckDBPyConnection,
        table: str = INVENTORY_TABLE,
        registry: UnitRegistry | None = None,
    ) -> None:
        self.db = db
        self.table = table
        self.registry = registry

    def parse_inventory(self, context: ParserContext) -> Inventory:
        rows = _fetch_rows(self.db, self.table, INVENTORY_COLUMNS)
        return parse_inventory_rows(
            rows, context, source=self.table, registry=self.registry
        )

    def store_inventory(
        self, inventory: Inventory, previous: Inventory | None = None
    ) -> None:
        records = [
            (warehouse_id, commodity.value, quantity.amount, quantity.unit.value)
            for (warehouse_id, commodity), quantity in inventory.cells()
        ]
        try:
            self.db.begin()
            try:
                if previous is not None:
                    current = self.parse_inventory(ParserContext(handler=self.table))
                    if current != previous:
                        raise StoreConflictError(
                            f"Table {self.table} changed since the inventory was read",
                            sink=self.table,
                        )
                self.db.execute(f"DELETE FROM {self.table}")
                if records:
                    self.db.executemany(
                        f"INSERT INTO {self.table} VALUES (?, ?, ?, ?)", records
                    )
            except BaseException:
                self.db.rollback()
                raise
            self.db.commit()
        except (duckdb.Error, SourceUnreadableError) as exc:
            raise StoreError(
                f"Cannot write table {self.table}: {exc}", sink=self.table
            ) from exc
        logger.info("Stored %d inventory cells to table %s", len(records), self.table)
