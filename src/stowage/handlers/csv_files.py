"""CSV-backed parsers and inventory storer."""

import csv
import logging
import os
import tempfile
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, TypeVar

from stowage.errors import SourceUnreadableError, StoreConflictError, StoreError
from stowage.flow.context import ParserContext
from stowage.handlers.base import (
    InventoryParser,
    InventoryStorer,
    ShipInventoryParser,
    WarehouseParser,
)
from stowage.handlers.rows import (
    INVENTORY_COLUMNS,
    SHIP_INVENTORY_COLUMNS,
    WAREHOUSE_COLUMNS,
    inventory_to_rows,
    parse_inventory_rows,
    parse_ship_inventory_rows,
    parse_warehouse_rows,
    require_columns,
)
from stowage.network.core import Inventory, ShipInventory, Warehouse
from stowage.product.units import UnitRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

# One lock per resolved path; serializes compare-and-swap within the process
_PATH_LOCKS: dict[Path, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _path_lock(path: Path) -> threading.Lock:
    key = path.resolve()
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(key, threading.Lock())


def _read_csv(
    path: Path,
    required: Sequence[str],
    parse: Callable[[csv.DictReader, str], T],
) -> T:
    """Open ``path``, check its header and hand the reader to ``parse``."""
    source = str(path)
    try:
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            require_columns(reader.fieldnames, required, source)
            return parse(reader, source)
    except OSError as exc:
        raise SourceUnreadableError(f"Cannot read {source}: {exc}", source=source) from exc
    except (csv.Error, UnicodeDecodeError) as exc:
        raise SourceUnreadableError(f"Corrupt CSV {source}: {exc}", source=source) from exc


class CsvWarehouseParser(WarehouseParser):
    """Reads ``warehouse_id,commodity,capacity_amount,capacity_unit`` rows."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def parse_warehouses(self, context: ParserContext) -> list[Warehouse]:
        # Header is line 1; first data row is line 2
        return _read_csv(
            self.path,
            WAREHOUSE_COLUMNS,
            lambda reader, source: parse_warehouse_rows(
                reader, context, source=source, start_line=2
            ),
        )


class CsvInventoryParser(InventoryParser):
    def __init__(self, path: str | Path, registry: UnitRegistry | None = None) -> None:
        self.path = Path(path)
        self.registry = registry

    def parse_inventory(self, context: ParserContext) -> Inventory:
        return _read_csv(
            self.path,
            INVENTORY_COLUMNS,
            lambda reader, source: parse_inventory_rows(
                reader, context, source=source, registry=self.registry, start_line=2
            ),
        )


class CsvShipInventoryParser(ShipInventoryParser):
    def __init__(self, path: str | Path, registry: UnitRegistry | None = None) -> None:
        self.path = Path(path)
        self.registry = registry

    def parse_ship_inventory(self, context: ParserContext) -> ShipInventory:
        return _read_csv(
            self.path,
            SHIP_INVENTORY_COLUMNS,
            lambda reader, source: parse_ship_inventory_rows(
                reader, context, source=source, registry=self.registry, start_line=2
            ),
        )


def write_rows_csv(path: Path, fieldnames: Sequence[str], rows: list[dict[str, Any]]) -> None:
    """
    Write rows to a sibling temp file, then atomically replace ``path``.

    Readers never observe a half-written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=list(fieldnames))
            writer.writeheader()
            writer.writerows(rows)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class CsvInventoryStorer(InventoryStorer):
    """
    Writes the inventory as CSV.

    With ``compare_and_swap`` set (the sink is also the inventory source),
    the file currently at ``path`` must still parse to the ``previous``
    snapshot, otherwise StoreConflictError. Storers in one process take a
    per-path lock around the check and the write; writers in other
    processes are not excluded.
    """

    def __init__(
        self,
        path: str | Path,
        registry: UnitRegistry | None = None,
        compare_and_swap: bool = False,
    ) -> None:
        self.path = Path(path)
        self.registry = registry
        self.compare_and_swap = compare_and_swap

    def _on_disk(self) -> Inventory:
        if not self.path.exists():
            return Inventory()
        return CsvInventoryParser(self.path, self.registry).parse_inventory(
            ParserContext(handler=type(self).__name__)
        )

    def store_inventory(
        self, inventory: Inventory, previous: Inventory | None = None
    ) -> None:
        sink = str(self.path)
        try:
            with _path_lock(self.path):
                if (
                    self.compare_and_swap
                    and previous is not None
                    and self._on_disk() != previous
                ):
                    raise StoreConflictError(
                        f"{sink} changed since the inventory was read", sink=sink
                    )
                write_rows_csv(
                    self.path, INVENTORY_COLUMNS, inventory_to_rows(inventory)
                )
        except (OSError, SourceUnreadableError) as exc:
            raise StoreError(f"Cannot write {sink}: {exc}", sink=sink) from exc
        logger.info("Stored %d inventory cells to %s", len(inventory), sink)
