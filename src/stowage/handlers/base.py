"""Base classes for pipeline handlers.

Each handler exposes one capability. Contracts never name a storage
medium; concrete classes (in-memory, CSV, DuckDB, Parquet) are injected
when a Flow is built.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from stowage.flow.context import ParserContext
from stowage.network.core import Inventory, ShipInventory, Warehouse


class WarehouseParser(ABC):
    """Produces the warehouse snapshot for one run."""

    @abstractmethod
    def parse_warehouses(self, context: ParserContext) -> list[Warehouse]:
        """
        Read every warehouse from the source.

        Malformed rows are skipped and recorded in ``context``; only an
        unreadable source raises (SourceUnreadableError).
        """


class InventoryParser(ABC):
    """Produces the current inventory snapshot."""

    @abstractmethod
    def parse_inventory(self, context: ParserContext) -> Inventory:
        pass


class ShipInventoryParser(ABC):
    """Produces the incoming ship inventory."""

    @abstractmethod
    def parse_ship_inventory(self, context: ParserContext) -> ShipInventory:
        pass


class Allocator(ABC):
    """Decides where incoming goods go. Implementations must be pure."""

    @abstractmethod
    def allocate(
        self,
        warehouses: Sequence[Warehouse],
        current_inventory: Inventory,
        ship_inventory: ShipInventory,
    ) -> Inventory:
        """Return a new Inventory; never mutate the inputs."""


class InventoryStorer(ABC):
    """Persists the resulting inventory."""

    @abstractmethod
    def store_inventory(
        self, inventory: Inventory, previous: Inventory | None = None
    ) -> None:
        """
        Write ``inventory`` to the sink.

        ``previous`` is the snapshot the run started from. Storers that can
        compare-and-swap raise StoreConflictError when the sink no longer
        matches it. Any write failure raises StoreError.
        """
