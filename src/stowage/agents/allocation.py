import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

import numpy as np

from stowage.errors import InsufficientCapacityError, ValidationError
from stowage.flow.state import CapacityState, from_quanta
from stowage.handlers.base import Allocator
from stowage.network.core import Inventory, ShipInventory, Warehouse
from stowage.product.core import Commodity, Quantity
from stowage.product.units import DEFAULT_REGISTRY, UnitRegistry

logger = logging.getLogger(__name__)


def largest_remainder_split(
    total: int, weights: np.ndarray, tie_break: np.ndarray
) -> np.ndarray:
    """
    Split ``total`` integer quanta proportionally to ``weights``.

    Floors each share, then hands the leftover quanta one at a time to the
    largest fractional remainders. Equal remainders go to the lower
    ``tie_break`` value first. Zero-weight slots always get zero.
    """
    weight_sum = int(weights.sum())
    if weight_sum <= 0 or total <= 0:
        return np.zeros(len(weights), dtype=np.int64)

    # Python ints: total * weight can exceed int64
    numerators = [total * int(w) for w in weights]
    base = np.array([n // weight_sum for n in numerators], dtype=np.int64)
    remainders = np.array([n % weight_sum for n in numerators], dtype=np.int64)

    leftover = total - int(base.sum())
    if leftover > 0:
        order = np.lexsort((tie_break, -remainders))
        base[order[:leftover]] += 1
    return base


class CapacityAllocator(Allocator):
    """
    Shared allocation loop over a CapacityState.

    Subclasses only decide how one commodity's incoming quanta spread over
    warehouses (``_distribute``). Checks the capacity invariant on the way in
    and out, and collects every commodity's residual before failing.
    """

    def __init__(self, registry: UnitRegistry | None = None) -> None:
        self.registry = registry or DEFAULT_REGISTRY

    def _distribute(
        self, state: CapacityState, commodity: Commodity, incoming: int
    ) -> np.ndarray:
        raise NotImplementedError

    def allocate(
        self,
        warehouses: Sequence[Warehouse],
        current_inventory: Inventory,
        ship_inventory: ShipInventory,
    ) -> Inventory:
        state = CapacityState(warehouses, current_inventory, self.registry)

        violations = state.over_capacity()
        if violations:
            raise ValidationError(
                f"Current inventory exceeds declared capacity at {violations}"
            )

        unallocated: dict[Commodity, Quantity] = {}
        for commodity, quantity in ship_inventory.items():
            incoming = state.canonical_quanta(quantity, commodity)
            if incoming == 0:
                continue

            allocation = self._distribute(state, commodity, incoming)
            state.add(commodity, allocation)

            leftover = incoming - int(allocation.sum())
            logger.debug(
                "%s: %s of %s quanta placed across %s warehouses",
                commodity.name,
                incoming - leftover,
                incoming,
                int(np.count_nonzero(allocation)),
            )
            if leftover > 0:
                unit = self.registry.canonical_unit(commodity)
                unallocated[commodity] = from_quanta(unit, leftover)

        if unallocated:
            raise InsufficientCapacityError(ShipInventory(unallocated))

        violations = state.over_capacity()
        if violations:
            raise ValidationError(
                f"{type(self).__name__} overfilled {violations}"
            )

        return state.to_inventory(current_inventory)


class FirstAvailableAllocator(CapacityAllocator):
    """
    Fills warehouses in ascending ID order, each up to
    ``capacity * ideal_threshold`` less what it already holds.
    """

    def __init__(
        self,
        ideal_threshold: float | str | Decimal = Decimal("0.9"),
        registry: UnitRegistry | None = None,
    ) -> None:
        super().__init__(registry)
        try:
            threshold = Decimal(str(ideal_threshold))
        except InvalidOperation:
            raise ValidationError(
                f"ideal_threshold must be a number, got {ideal_threshold!r}"
            ) from None
        if not threshold.is_finite() or not (0 <= threshold <= 1):
            raise ValidationError(
                f"ideal_threshold must be within [0, 1], got {ideal_threshold}"
            )
        self.ideal_threshold = threshold

    def _distribute(
        self, state: CapacityState, commodity: Commodity, incoming: int
    ) -> np.ndarray:
        headroom = state.headroom(commodity, self.ideal_threshold)
        # Quanta already claimed by earlier warehouses in the order
        claimed_before = np.cumsum(headroom) - headroom
        return np.minimum(np.maximum(incoming - claimed_before, 0), headroom)


class EqualDistributionAllocator(CapacityAllocator):
    """
    Spreads each commodity over every warehouse that declares it,
    proportionally to declared capacity and capped by remaining headroom.

    Warehouses that saturate drop out and the rest is re-split among the
    others until nothing remains or no headroom is left.
    """

    def _distribute(
        self, state: CapacityState, commodity: Commodity, incoming: int
    ) -> np.ndarray:
        c_idx = state.get_commodity_idx(commodity)
        capacity = state.capacity[:, c_idx]
        headroom = state.headroom(commodity)
        ids = np.array(
            [state.warehouse_idx_to_id[i] for i in range(state.n_warehouses)],
            dtype=np.int64,
        )

        allocation = np.zeros(state.n_warehouses, dtype=np.int64)
        active = headroom > 0
        remaining = incoming

        while remaining > 0 and active.any():
            weights = np.where(active, capacity, 0)
            shares = largest_remainder_split(remaining, weights, ids)
            room = headroom - allocation

            saturated = active & (shares >= room)
            if not saturated.any():
                allocation += shares
                remaining = 0
                break

            allocation[saturated] += room[saturated]
            remaining -= int(room[saturated].sum())
            active &= ~saturated

        return allocation


STRATEGIES = {
    "first_available": FirstAvailableAllocator,
    "equal_distribution": EqualDistributionAllocator,
}


def build_allocator(
    config: dict[str, Any] | None = None, registry: UnitRegistry | None = None
) -> CapacityAllocator:
    """Instantiate the allocator named in ``config["allocation"]``."""
    alloc_config = (config or {}).get("allocation", {})
    strategy = alloc_config.get("strategy", "first_available")

    if strategy not in STRATEGIES:
        raise ValueError(
            f"Unknown allocation strategy {strategy!r}; "
            f"expected one of {sorted(STRATEGIES)}"
        )

    if strategy == "first_available":
        return FirstAvailableAllocator(
            alloc_config.get("ideal_threshold", "0.9"), registry=registry
        )
    return EqualDistributionAllocator(registry=registry)
