from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from stowage.errors import ValidationError
from stowage.product.core import Commodity, Quantity

CellKey = tuple[int, Commodity]


@dataclass(frozen=True)
class WarehouseCapacityUnit:
    """Available capacity for one commodity in one warehouse."""

    commodity: Commodity
    capacity: Quantity

    def __post_init__(self) -> None:
        if not isinstance(self.commodity, Commodity):
            raise ValidationError(f"Unknown commodity: {self.commodity!r}")
        if not isinstance(self.capacity, Quantity):
            raise ValidationError(
                f"Capacity must be a Quantity, got {self.capacity!r}"
            )


def _check_warehouse_id(warehouse_id: object) -> int:
    if isinstance(warehouse_id, bool) or not isinstance(warehouse_id, int):
        raise ValidationError(f"Warehouse ID must be an integer: {warehouse_id!r}")
    if warehouse_id < 0:
        raise ValidationError(f"Warehouse ID cannot be negative: {warehouse_id}")
    return warehouse_id


@dataclass(frozen=True)
class Warehouse:
    """
    A storage location and the commodities it can hold.

    Capacities keep their declaration order; at most one entry per commodity.
    """

    id: int
    capacities: tuple[WarehouseCapacityUnit, ...] = ()

    def __post_init__(self) -> None:
        _check_warehouse_id(self.id)
        capacities = tuple(self.capacities)
        seen: set[Commodity] = set()
        for unit in capacities:
            if unit.commodity in seen:
                raise ValidationError(
                    f"Warehouse {self.id} declares {unit.commodity.name} twice"
                )
            seen.add(unit.commodity)
        object.__setattr__(self, "capacities", capacities)

    @property
    def commodities(self) -> tuple[Commodity, ...]:
        return tuple(unit.commodity for unit in self.capacities)

    def capacity_for(self, commodity: Commodity) -> Quantity | None:
        for unit in self.capacities:
            if unit.commodity == commodity:
                return unit.capacity
        return None


@dataclass(frozen=True)
class Inventory:
    """
    Stored quantity per (warehouse ID, commodity) cell.

    Read-only: builders such as ``with_quantity`` return a new Inventory.
    """

    entries: Mapping[CellKey, Quantity] = field(default_factory=dict)

    def __post_init__(self) -> None:
        entries: dict[CellKey, Quantity] = {}
        for key, quantity in dict(self.entries).items():
            warehouse_id, commodity = key
            _check_warehouse_id(warehouse_id)
            if not isinstance(commodity, Commodity):
                raise ValidationError(f"Unknown commodity: {commodity!r}")
            if not isinstance(quantity, Quantity):
                raise ValidationError(f"Inventory cell {key} is not a Quantity")
            entries[(warehouse_id, commodity)] = quantity
        object.__setattr__(self, "entries", MappingProxyType(entries))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Inventory):
            return NotImplemented
        return dict(self.entries) == dict(other.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[CellKey]:
        return iter(self.entries)

    def get(self, warehouse_id: int, commodity: Commodity) -> Quantity | None:
        return self.entries.get((warehouse_id, commodity))

    def cells(self) -> list[tuple[CellKey, Quantity]]:
        """Entries sorted by warehouse ID, then commodity declaration order."""
        order = {commodity: i for i, commodity in enumerate(Commodity)}
        return sorted(
            self.entries.items(), key=lambda item: (item[0][0], order[item[0][1]])
        )

    def with_quantity(
        self, warehouse_id: int, commodity: Commodity, quantity: Quantity
    ) -> "Inventory":
        entries = dict(self.entries)
        entries[(warehouse_id, commodity)] = quantity
        return Inventory(entries)


@dataclass(frozen=True)
class ShipInventory:
    """Incoming quantity per commodity awaiting allocation."""

    quantities: Mapping[Commodity, Quantity] = field(default_factory=dict)

    def __post_init__(self) -> None:
        quantities: dict[Commodity, Quantity] = {}
        for commodity, quantity in dict(self.quantities).items():
            if not isinstance(commodity, Commodity):
                raise ValidationError(f"Unknown commodity: {commodity!r}")
            if not isinstance(quantity, Quantity):
                raise ValidationError(f"Ship quantity for {commodity.name} is not a Quantity")
            quantities[commodity] = quantity
        object.__setattr__(self, "quantities", MappingProxyType(quantities))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ShipInventory):
            return NotImplemented
        return dict(self.quantities) == dict(other.quantities)

    def __len__(self) -> int:
        return len(self.quantities)

    def get(self, commodity: Commodity) -> Quantity | None:
        return self.quantities.get(commodity)

    def items(self) -> list[tuple[Commodity, Quantity]]:
        """Pairs in commodity declaration order."""
        return [
            (commodity, self.quantities[commodity])
            for commodity in Commodity
            if commodity in self.quantities
        ]

    @property
    def commodities(self) -> tuple[Commodity, ...]:
        return tuple(commodity for commodity, _ in self.items())
