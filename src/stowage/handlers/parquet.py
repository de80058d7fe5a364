"""Parquet inventory parser and storer (pyarrow)."""

import logging
import os
import tempfile
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq

from stowage.errors import SourceUnreadableError, StoreError
from stowage.flow.context import ParserContext
from stowage.handlers.base import InventoryParser, InventoryStorer
from stowage.handlers.rows import (
    INVENTORY_COLUMNS,
    parse_inventory_rows,
    require_columns,
)
from stowage.network.core import Inventory
from stowage.product.units import UnitRegistry

logger = logging.getLogger(__name__)

INVENTORY_SCHEMA = pa.schema(
    [
        ("warehouse_id", pa.int64()),
        ("commodity", pa.string()),
        ("amount", pa.decimal128(18, 3)),
        ("unit", pa.string()),
    ]
)


class ParquetInventoryParser(InventoryParser):
    def __init__(self, path: str | Path, registry: UnitRegistry | None = None) -> None:
        self.path = Path(path)
        self.registry = registry

    def parse_inventory(self, context: ParserContext) -> Inventory:
        source = str(self.path)
        try:
            table = pq.read_table(self.path)
        except (OSError, pa.ArrowInvalid) as exc:
            raise SourceUnreadableError(
                f"Cannot read {source}: {exc}", source=source
            ) from exc
        require_columns(table.column_names, INVENTORY_COLUMNS, source)
        rows = table.select(list(INVENTORY_COLUMNS)).to_pylist()
        return parse_inventory_rows(rows, context, source=source, registry=self.registry)


class ParquetInventoryStorer(InventoryStorer):
    """Writes one row group per store; the file is replaced atomically."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def store_inventory(
        self, inventory: Inventory, previous: Inventory | None = None
    ) -> None:
        sink = str(self.path)
        rows = [
            {
                "warehouse_id": warehouse_id,
                "commodity": commodity.value,
                "amount": quantity.amount,
                "unit": quantity.unit.value,
            }
            for (warehouse_id, commodity), quantity in inventory.cells()
        ]
        try:
            table = pa.Table.from_pylist(rows, schema=INVENTORY_SCHEMA)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
            os.close(fd)
            try:
                pq.write_table(table, tmp_name)
                os.replace(tmp_name, self.path)
            finally:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
        except (OSError, pa.ArrowException) as exc:
            raise StoreError(f"Cannot write {sink}: {exc}", sink=sink) from exc
        logger.info("Stored %d inventory cells to %s", len(rows), sink)
