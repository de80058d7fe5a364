import logging
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Sequence

import numpy as np

from stowage.errors import ValidationError
from stowage.network.core import Inventory, Warehouse
from stowage.product.core import (
    AMOUNT_PLACES,
    MAX_QUANTA,
    Commodity,
    Quantity,
    Unit,
    quantity_of,
)
from stowage.product.units import UnitRegistry

logger = logging.getLogger(__name__)


def to_quanta(quantity: Quantity) -> int:
    """Amount as an integer count of the smallest representable step."""
    return int(quantity.amount.scaleb(AMOUNT_PLACES))


def from_quanta(unit: Unit, quanta: int) -> Quantity:
    return quantity_of(unit, Decimal(int(quanta)).scaleb(-AMOUNT_PLACES))


class CapacityState:
    """
    Vectorized capacity and stock for one allocation run.

    Every quantity is converted to its commodity's canonical unit and stored
    as int64 quanta (thousandths) so sums and comparisons are exact.
    Warehouses are indexed in ascending ID order, commodities in enum order.
    """

    def __init__(
        self,
        warehouses: Sequence[Warehouse],
        inventory: Inventory,
        registry: UnitRegistry,
    ) -> None:
        self.registry = registry

        # 1. Create Index Maps
        self.warehouse_id_to_idx: dict[int, int] = {}
        self.warehouse_idx_to_id: dict[int, int] = {}
        self.commodity_to_idx: dict[Commodity, int] = {}
        self.commodity_idx_to_commodity: dict[int, Commodity] = {}

        self._index_entities(warehouses)

        self.n_warehouses = len(self.warehouse_id_to_idx)
        self.n_commodities = len(self.commodity_to_idx)

        # 2. Allocate State Tensors
        # Shape: [Warehouses, Commodities]
        self.capacity = np.zeros((self.n_warehouses, self.n_commodities), dtype=np.int64)
        self.declared = np.zeros((self.n_warehouses, self.n_commodities), dtype=bool)
        self.stored = np.zeros((self.n_warehouses, self.n_commodities), dtype=np.int64)

        self._load_capacities(warehouses)
        self._load_inventory(inventory)

        # Snapshot for diffing in to_inventory()
        self.initial_stored = self.stored.copy()

    def _index_entities(self, warehouses: Sequence[Warehouse]) -> None:
        ids = sorted({w.id for w in warehouses})
        if len(ids) != len(warehouses):
            raise ValidationError("Warehouse IDs must be unique within a run")
        for i, warehouse_id in enumerate(ids):
            self.warehouse_id_to_idx[warehouse_id] = i
            self.warehouse_idx_to_id[i] = warehouse_id

        for i, commodity in enumerate(Commodity):
            self.commodity_to_idx[commodity] = i
            self.commodity_idx_to_commodity[i] = commodity

    def _load_capacities(self, warehouses: Sequence[Warehouse]) -> None:
        for warehouse in warehouses:
            w_idx = self.warehouse_id_to_idx[warehouse.id]
            for unit in warehouse.capacities:
                c_idx = self.commodity_to_idx[unit.commodity]
                # Floored so the limit never exceeds the declared capacity
                canonical = self.registry.to_canonical(
                    unit.capacity, unit.commodity, ROUND_FLOOR
                )
                self.capacity[w_idx, c_idx] = to_quanta(canonical)
                self.declared[w_idx, c_idx] = True

        # Fleet totals are summed in int64 by the allocators
        for commodity, c_idx in self.commodity_to_idx.items():
            total = sum(int(q) for q in self.capacity[:, c_idx])
            if total > MAX_QUANTA:
                raise ValidationError(
                    f"Total {commodity.name} capacity exceeds {MAX_QUANTA} quanta"
                )

    def _load_inventory(self, inventory: Inventory) -> None:
        for (warehouse_id, commodity), quantity in inventory.cells():
            w_idx = self.warehouse_id_to_idx.get(warehouse_id)
            c_idx = self.commodity_to_idx[commodity]
            if w_idx is None or not self.declared[w_idx, c_idx]:
                # Not allocatable; carried through untouched
                logger.warning(
                    "Inventory cell (%s, %s) has no declared capacity",
                    warehouse_id,
                    commodity.name,
                )
                continue
            canonical = self.registry.to_canonical(quantity, commodity, ROUND_FLOOR)
            self.stored[w_idx, c_idx] = to_quanta(canonical)

    def get_commodity_idx(self, commodity: Commodity) -> int:
        return self.commodity_to_idx[commodity]

    def canonical_quanta(self, quantity: Quantity, commodity: Commodity) -> int:
        return to_quanta(self.registry.to_canonical(quantity, commodity))

    def limit(self, commodity: Commodity, threshold: Decimal | None = None) -> np.ndarray:
        """Per-warehouse fill limit in quanta; capacity scaled by threshold."""
        c_idx = self.get_commodity_idx(commodity)
        capacity = self.capacity[:, c_idx]
        if threshold is None:
            return capacity.copy()
        return np.array(
            [
                int((Decimal(int(cap)) * threshold).quantize(Decimal(1), rounding=ROUND_HALF_UP))
                for cap in capacity
            ],
            dtype=np.int64,
        )

    def headroom(self, commodity: Commodity, threshold: Decimal | None = None) -> np.ndarray:
        """Quanta each warehouse can still take; zero where undeclared."""
        c_idx = self.get_commodity_idx(commodity)
        room = np.maximum(self.limit(commodity, threshold) - self.stored[:, c_idx], 0)
        return np.where(self.declared[:, c_idx], room, 0)

    def add(self, commodity: Commodity, allocation: np.ndarray) -> None:
        """Add a per-warehouse allocation vector (quanta) to stored stock."""
        if allocation.shape != (self.n_warehouses,):
            raise ValueError(
                f"Shape mismatch: {allocation.shape} != ({self.n_warehouses},)"
            )
        c_idx = self.get_commodity_idx(commodity)
        room = np.where(self.declared[:, c_idx], self.capacity[:, c_idx] - self.stored[:, c_idx], 0)
        if np.any(allocation < 0) or np.any(allocation > room):
            raise ValidationError(
                f"{commodity.name} allocation {allocation.tolist()} exceeds "
                f"remaining capacity {room.tolist()}"
            )
        self.stored[:, c_idx] += allocation

    def over_capacity(self) -> list[tuple[int, Commodity]]:
        """Declared cells whose stock exceeds capacity."""
        rows, cols = np.nonzero(self.declared & (self.stored > self.capacity))
        return [
            (self.warehouse_idx_to_id[int(r)], self.commodity_idx_to_commodity[int(c)])
            for r, c in zip(rows, cols)
        ]

    def to_inventory(self, base: Inventory) -> Inventory:
        """
        New Inventory: ``base`` with every changed cell replaced by its
        canonical-unit stock. Unchanged cells keep their original Quantity.
        """
        entries = dict(base.entries)
        rows, cols = np.nonzero(self.stored != self.initial_stored)
        for r, c in zip(rows, cols):
            warehouse_id = self.warehouse_idx_to_id[int(r)]
            commodity = self.commodity_idx_to_commodity[int(c)]
            unit = self.registry.canonical_unit(commodity)
            entries[(warehouse_id, commodity)] = from_quanta(unit, int(self.stored[r, c]))
        return Inventory(entries)
