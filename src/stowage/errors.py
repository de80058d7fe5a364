"""Error taxonomy for the allocation pipeline.

Only row-level parse failures are absorbed (into a ParserContext); every
exception defined here aborts the current flow run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stowage.network.core import ShipInventory
    from stowage.product.core import Commodity, Quantity


class StowageError(Exception):
    """Base class for every fatal pipeline error."""


class ValidationError(StowageError, ValueError):
    """A domain object was constructed with an impossible value."""


class IncompatibleUnitError(StowageError):
    """No conversion factor exists between two units for a commodity."""

    def __init__(
        self,
        message: str,
        source: Any = None,
        target: Any = None,
        commodity: Any = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.target = target
        self.commodity = commodity


class SourceUnreadableError(StowageError):
    """An input source (file, table, connection) could not be read at all."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class InsufficientCapacityError(StowageError):
    """
    Allocation left part of the ship inventory without a warehouse.

    ``unallocated`` holds the residual per commodity in canonical units, so a
    caller can retry with another strategy or threshold.
    """

    def __init__(self, unallocated: ShipInventory) -> None:
        self.unallocated = unallocated
        parts = ", ".join(
            f"{commodity.name}: {quantity}"
            for commodity, quantity in unallocated.items()
        )
        super().__init__(f"Insufficient warehouse capacity; unallocated {parts}")

    @property
    def remainder(self) -> Quantity:
        """The single residual quantity; only valid when one commodity overflowed."""
        if len(self.unallocated) != 1:
            raise ValueError(
                f"{len(self.unallocated)} commodities overflowed; use .unallocated"
            )
        return self.unallocated.items()[0][1]

    def remainder_for(self, commodity: Commodity) -> Quantity | None:
        return self.unallocated.get(commodity)


class StoreError(StowageError):
    """Writing the resulting inventory to its sink failed."""

    def __init__(self, message: str, sink: str | None = None) -> None:
        super().__init__(message)
        self.sink = sink


class StoreConflictError(StoreError):
    """The sink no longer holds the inventory the run was computed from."""
