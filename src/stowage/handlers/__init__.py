"""Handler contracts and their concrete media."""

from stowage.handlers.base import (
    Allocator,
    InventoryParser,
    InventoryStorer,
    ShipInventoryParser,
    WarehouseParser,
)
from stowage.handlers.csv_files import (
    CsvInventoryParser,
    CsvInventoryStorer,
    CsvShipInventoryParser,
    CsvWarehouseParser,
)
from stowage.handlers.memory import (
    InMemoryInventoryStore,
    RowInventoryParser,
    RowShipInventoryParser,
    RowWarehouseParser,
    StaticShipInventoryParser,
    StaticWarehouseParser,
)

__all__ = [
    "Allocator",
    "CsvInventoryParser",
    "CsvInventoryStorer",
    "CsvShipInventoryParser",
    "CsvWarehouseParser",
    "InMemoryInventoryStore",
    "InventoryParser",
    "InventoryStorer",
    "RowInventoryParser",
    "RowShipInventoryParser",
    "RowWarehouseParser",
    "ShipInventoryParser",
    "StaticShipInventoryParser",
    "StaticWarehouseParser",
    "WarehouseParser",
]
