import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from stowage.errors import StowageError
from stowage.flow.context import FlowContext, ParserContext
from stowage.handlers.base import (
    Allocator,
    InventoryParser,
    InventoryStorer,
    ShipInventoryParser,
    WarehouseParser,
)
from stowage.network.core import Inventory

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FlowState(enum.Enum):
    PARSING_WAREHOUSES = "parsing_warehouses"
    PARSING_INVENTORY = "parsing_inventory"
    ALLOCATING = "allocating"
    STORING = "storing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class FlowResult:
    """Outcome of one run: aggregated diagnostics plus stored result or error."""

    state: FlowState
    context: FlowContext
    inventory: Inventory | None = None
    error: StowageError | None = None
    failed_in: FlowState | None = None
    durations: dict[str, float] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.state == FlowState.DONE

    def raise_for_error(self) -> Inventory:
        """Return the stored inventory, or re-raise the fatal error."""
        if self.error is not None:
            raise self.error
        if self.inventory is None:
            raise RuntimeError(f"Flow ended in {self.state.value} without a result")
        return self.inventory


def _handler_name(handler: object) -> str:
    return type(handler).__name__


class Flow:
    """
    Runs one allocation: parse warehouses, parse inventory and ship
    inventory, allocate, store. No business logic lives here.

    Each parser call gets a fresh ParserContext, merged into the run's
    FlowContext. The first StowageError stops the run; storing happens at
    most once and only after allocation succeeded.
    """

    def __init__(
        self,
        warehouse_parser: WarehouseParser,
        inventory_parser: InventoryParser,
        ship_inventory_parser: ShipInventoryParser,
        allocator: Allocator,
        inventory_storer: InventoryStorer,
    ) -> None:
        self.warehouse_parser = warehouse_parser
        self.inventory_parser = inventory_parser
        self.ship_inventory_parser = ship_inventory_parser
        self.allocator = allocator
        self.inventory_storer = inventory_storer

    def _enter(self, result: FlowResult, state: FlowState) -> float:
        result.state = state
        logger.info("Flow state -> %s", state.value)
        return time.perf_counter()

    def _leave(self, result: FlowResult, started: float) -> None:
        result.durations[result.state.value] = time.perf_counter() - started

    def _parse(
        self, parse: Callable[[ParserContext], T], handler: object, context: FlowContext
    ) -> T:
        sub_context = ParserContext(handler=_handler_name(handler))
        try:
            return parse(sub_context)
        finally:
            # Row-level failures gathered before a fatal error are still reported
            context.merge(sub_context)

    def run(self) -> FlowResult:
        context = FlowContext()
        result = FlowResult(state=FlowState.PARSING_WAREHOUSES, context=context)

        try:
            # 1. Warehouses
            started = self._enter(result, FlowState.PARSING_WAREHOUSES)
            warehouses = self._parse(
                self.warehouse_parser.parse_warehouses, self.warehouse_parser, context
            )
            self._leave(result, started)

            # 2. Current and incoming inventory
            started = self._enter(result, FlowState.PARSING_INVENTORY)
            current = self._parse(
                self.inventory_parser.parse_inventory, self.inventory_parser, context
            )
            ship = self._parse(
                self.ship_inventory_parser.parse_ship_inventory,
                self.ship_inventory_parser,
                context,
            )
            self._leave(result, started)

            # 3. Allocation (pure)
            started = self._enter(result, FlowState.ALLOCATING)
            allocated = self.allocator.allocate(warehouses, current, ship)
            self._leave(result, started)

            # 4. Single write
            started = self._enter(result, FlowState.STORING)
            self.inventory_storer.store_inventory(allocated, previous=current)
            self._leave(result, started)
        except StowageError as exc:
            logger.error("Flow failed in %s: %s", result.state.value, exc)
            result.failed_in = result.state
            result.state = FlowState.FAILED
            result.error = exc
            return result

        result.state = FlowState.DONE
        result.inventory = allocated
        logger.info(
            "Flow done: %d cells stored, %d row failures",
            len(allocated),
            context.failure_count,
        )
        return result
