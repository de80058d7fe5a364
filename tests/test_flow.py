import logging

import pytest

from stowage.agents.allocation import (
    EqualDistributionAllocator,
    FirstAvailableAllocator,
)
from stowage.errors import (
    InsufficientCapacityError,
    SourceUnreadableError,
    StoreConflictError,
    ValidationError,
)
from stowage.flow.context import FailureRecord, FlowContext, ParserContext
from stowage.flow.orchestrator import Flow, FlowResult, FlowState
from stowage.handlers.base import InventoryStorer, WarehouseParser
from stowage.handlers.memory import (
    InMemoryInventoryStore,
    RowInventoryParser,
    RowShipInventoryParser,
    RowWarehouseParser,
    StaticShipInventoryParser,
    StaticWarehouseParser,
)
from stowage.network.core import (
    Inventory,
    ShipInventory,
    Warehouse,
    WarehouseCapacityUnit,
)
from stowage.product.core import Bushel, Commodity


class RecordingStorer(InventoryStorer):
    def __init__(self):
        self.calls = []

    def store_inventory(self, inventory, previous=None):
        self.calls.append((inventory, previous))


class UnreadableWarehouses(WarehouseParser):
    def parse_warehouses(self, context):
        context.note("broken", "first row garbled", line=1)
        raise SourceUnreadableError("disk on fire", source="broken")


WAREHOUSE_ROWS = [
    {"warehouse_id": "1", "commodity": "corn", "capacity_amount": "10000", "capacity_unit": "bushel"},
    {"warehouse_id": "x", "commodity": "corn", "capacity_amount": "10", "capacity_unit": "bushel"},
    {"warehouse_id": "2", "commodity": "corn", "capacity_amount": "10000", "capacity_unit": "bushel"},
]


@pytest.fixture
def warehouses():
    return [
        Warehouse(1, (WarehouseCapacityUnit(Commodity.CORN, Bushel(10000)),)),
    ]


def build_flow(warehouse_parser, inventory_parser, ship, allocator, storer):
    return Flow(
        warehouse_parser=warehouse_parser,
        inventory_parser=inventory_parser,
        ship_inventory_parser=StaticShipInventoryParser(ship),
        allocator=allocator,
        inventory_storer=storer,
    )


def test_successful_run_stores_once(warehouses):
    store = InMemoryInventoryStore()
    flow = build_flow(
        StaticWarehouseParser(warehouses),
        store,
        ShipInventory({Commodity.CORN: Bushel(5000)}),
        FirstAvailableAllocator(ideal_threshold=0.9),
        store,
    )

    result = flow.run()

    assert result.ok
    assert result.state == FlowState.DONE
    assert result.error is None
    assert result.inventory == Inventory({(1, Commodity.CORN): Bushel(5000)})
    assert store.inventory == result.inventory
    assert store.writes == 1
    assert set(result.durations) == {
        "parsing_warehouses",
        "parsing_inventory",
        "allocating",
        "storing",
    }


def test_storer_receives_previous_snapshot(warehouses):
    current = Inventory({(1, Commodity.CORN): Bushel(100)})
    storer = RecordingStorer()
    flow = build_flow(
        StaticWarehouseParser(warehouses),
        InMemoryInventoryStore(current),
        ShipInventory({Commodity.CORN: Bushel(10)}),
        FirstAvailableAllocator(),
        storer,
    )
    flow.run().raise_for_error()

    assert len(storer.calls) == 1
    stored, previous = storer.calls[0]
    assert previous == current
    assert stored.get(1, Commodity.CORN) == Bushel(110)


def test_malformed_rows_are_skipped_and_reported():
    flow = Flow(
        warehouse_parser=RowWarehouseParser(WAREHOUSE_ROWS, source="warehouses"),
        inventory_parser=RowInventoryParser(
            [{"warehouse_id": "2", "commodity": "corn", "amount": "-5", "unit": "bushel"}],
            source="inventory",
        ),
        ship_inventory_parser=RowShipInventoryParser(
            [
                {"commodity": "corn", "amount": "1000", "unit": "bushel"},
                {"commodity": "soybean", "amount": "1", "unit": "bushel"},
            ],
            source="ship",
        ),
        allocator=EqualDistributionAllocator(),
        inventory_storer=RecordingStorer(),
    )

    result = flow.run()

    assert result.ok
    assert result.inventory.get(1, Commodity.CORN) == Bushel(500)
    assert result.inventory.get(2, Commodity.CORN) == Bushel(500)
    assert [(f.source, f.line) for f in result.context.failures] == [
        ("warehouses", 2),
        ("inventory", 1),
        ("ship", 2),
    ]
    assert result.context.handlers == [
        "RowWarehouseParser",
        "RowInventoryParser",
        "RowShipInventoryParser",
    ]


def test_insufficient_capacity_fails_without_storing(warehouses):
    storer = RecordingStorer()
    flow = build_flow(
        StaticWarehouseParser(warehouses),
        InMemoryInventoryStore(),
        ShipInventory({Commodity.CORN: Bushel(9500)}),
        FirstAvailableAllocator(ideal_threshold=0.9),
        storer,
    )

    result = flow.run()

    assert result.state == FlowState.FAILED
    assert result.failed_in == FlowState.ALLOCATING
    assert isinstance(result.error, InsufficientCapacityError)
    assert result.error.remainder == Bushel(500)
    assert result.inventory is None
    assert storer.calls == []
    with pytest.raises(InsufficientCapacityError):
        result.raise_for_error()


def test_unreadable_source_keeps_partial_diagnostics():
    storer = RecordingStorer()
    flow = build_flow(
        UnreadableWarehouses(),
        InMemoryInventoryStore(),
        ShipInventory(),
        FirstAvailableAllocator(),
        storer,
    )

    result = flow.run()

    assert result.failed_in == FlowState.PARSING_WAREHOUSES
    assert isinstance(result.error, SourceUnreadableError)
    assert result.context.failure_count == 1
    assert result.context.handlers == ["UnreadableWarehouses"]
    assert storer.calls == []


def test_concurrent_write_is_a_conflict(warehouses):
    store = InMemoryInventoryStore()

    class MeddlingAllocator(FirstAvailableAllocator):
        def allocate(self, warehouses, current_inventory, ship_inventory):
            # Another writer lands between read and write
            store.store_inventory(Inventory({(1, Commodity.CORN): Bushel(1)}))
            return super().allocate(warehouses, current_inventory, ship_inventory)

    flow = build_flow(
        StaticWarehouseParser(warehouses),
        store,
        ShipInventory({Commodity.CORN: Bushel(10)}),
        MeddlingAllocator(),
        store,
    )

    result = flow.run()

    assert result.failed_in == FlowState.STORING
    assert isinstance(result.error, StoreConflictError)
    assert store.inventory == Inventory({(1, Commodity.CORN): Bushel(1)})


def test_state_transitions_are_logged(warehouses, caplog):
    flow = build_flow(
        StaticWarehouseParser(warehouses),
        InMemoryInventoryStore(),
        ShipInventory(),
        FirstAvailableAllocator(),
        RecordingStorer(),
    )
    with caplog.at_level(logging.INFO, logger="stowage.flow.orchestrator"):
        flow.run()

    messages = [r.getMessage() for r in caplog.records]
    assert "Flow state -> parsing_warehouses" in messages
    assert "Flow state -> storing" in messages


def test_context_merge():
    flow_context = FlowContext()
    sub = ParserContext(handler="CsvWarehouseParser")
    sub.note("w.csv", "bad amount", raw={"amount": "x"}, line=4)
    flow_context.merge(sub)
    flow_context.merge(ParserContext(handler="Other"))

    assert flow_context.failure_count == 1
    assert flow_context.handlers == ["CsvWarehouseParser", "Other"]
    assert str(flow_context.failures[0]) == "w.csv:4: bad amount ({'amount': 'x'})"
    assert str(FailureRecord("ship", "oops")) == "ship: oops (None)"


@pytest.mark.parametrize("amount", ["1e30", "1e20"])
def test_out_of_range_capacity_row_is_recorded(amount):
    rows = [
        {"warehouse_id": "1", "commodity": "corn", "capacity_amount": amount, "capacity_unit": "bushel"},
        {"warehouse_id": "2", "commodity": "corn", "capacity_amount": "100", "capacity_unit": "bushel"},
    ]
    flow = build_flow(
        RowWarehouseParser(rows, source="warehouses"),
        InMemoryInventoryStore(),
        ShipInventory({Commodity.CORN: Bushel(50)}),
        FirstAvailableAllocator(),
        RecordingStorer(),
    )

    result = flow.run()

    assert result.ok
    assert result.inventory == Inventory({(2, Commodity.CORN): Bushel(50)})
    assert [(f.source, f.line) for f in result.context.failures] == [("warehouses", 1)]


def test_fleet_capacity_overflow_fails_allocation():
    huge = Bushel("9000000000000000")
    storer = RecordingStorer()
    flow = build_flow(
        StaticWarehouseParser(
            [
                Warehouse(1, (WarehouseCapacityUnit(Commodity.CORN, huge),)),
                Warehouse(2, (WarehouseCapacityUnit(Commodity.CORN, huge),)),
            ]
        ),
        InMemoryInventoryStore(),
        ShipInventory({Commodity.CORN: Bushel(1)}),
        EqualDistributionAllocator(),
        storer,
    )

    result = flow.run()

    assert result.state == FlowState.FAILED
    assert result.failed_in == FlowState.ALLOCATING
    assert isinstance(result.error, ValidationError)
    assert storer.calls == []


def test_result_without_inventory_or_error_raises():
    result = FlowResult(state=FlowState.DONE, context=FlowContext())
    with pytest.raises(RuntimeError, match="without a result"):
        result.raise_for_error()
