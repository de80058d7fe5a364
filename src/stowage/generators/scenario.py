"""Synthetic warehouse fleets and ship manifests for demos and benchmarks."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from stowage.handlers.csv_files import write_rows_csv
from stowage.handlers.rows import (
    INVENTORY_COLUMNS,
    SHIP_INVENTORY_COLUMNS,
    WAREHOUSE_COLUMNS,
    inventory_to_rows,
    warehouses_to_rows,
)
from stowage.network.core import (
    Inventory,
    ShipInventory,
    Warehouse,
    WarehouseCapacityUnit,
)
from stowage.product.core import Commodity, Quantity, Unit, quantity_of
from stowage.product.units import DEFAULT_REGISTRY, UnitRegistry

if TYPE_CHECKING:
    from numpy.random import Generator

# Median capacity per warehouse, canonical units
DEFAULT_MEDIAN_CAPACITY = {
    Commodity.CORN: 20_000,
    Commodity.WHEAT: 15_000,
    Commodity.OIL: 5_000,
}


@dataclass(frozen=True)
class Scenario:
    warehouses: list[Warehouse]
    inventory: Inventory
    ship_inventory: ShipInventory


class ScenarioGenerator:
    """
    Reproducible scenarios from a seeded numpy Generator.

    Capacities are lognormal around a per-commodity median. With
    ``mixed_units`` some capacities are declared in a non-canonical unit so
    runs exercise the conversion registry.
    """

    def __init__(
        self,
        seed: int = 42,
        config: dict[str, Any] | None = None,
        registry: UnitRegistry | None = None,
    ) -> None:
        self.rng: Generator = np.random.default_rng(seed)
        self.config = config or {}
        self.registry = registry or DEFAULT_REGISTRY

        gen_conf = self.config.get("generator", {})
        self.declare_probability = float(gen_conf.get("declare_probability", 0.7))
        self.capacity_sigma = float(gen_conf.get("capacity_sigma", 0.4))

    def _alternate_unit(self, commodity: Commodity) -> Unit | None:
        canonical = self.registry.canonical_unit(commodity)
        options = [
            unit
            for unit in Unit
            if unit != canonical and self.registry.can_convert(commodity, canonical, unit)
        ]
        if not options:
            return None
        return options[int(self.rng.integers(len(options)))]

    def generate_warehouses(self, n: int, mixed_units: bool = False) -> list[Warehouse]:
        warehouses: list[Warehouse] = []
        for warehouse_id in range(1, n + 1):
            declared = [
                c for c in Commodity if self.rng.random() < self.declare_probability
            ]
            if not declared:
                declared = [list(Commodity)[int(self.rng.integers(len(Commodity)))]]

            units = []
            for commodity in declared:
                median = DEFAULT_MEDIAN_CAPACITY[commodity]
                amount = int(self.rng.lognormal(np.log(median), self.capacity_sigma))
                capacity: Quantity = quantity_of(
                    self.registry.canonical_unit(commodity), amount
                )
                if mixed_units and self.rng.random() < 0.25:
                    alternate = self._alternate_unit(commodity)
                    if alternate is not None:
                        capacity = self.registry.convert(capacity, alternate, commodity)
                units.append(WarehouseCapacityUnit(commodity, capacity))
            warehouses.append(Warehouse(warehouse_id, tuple(units)))
        return warehouses

    def _canonical_capacity(self, warehouse: Warehouse, commodity: Commodity) -> Decimal:
        capacity = warehouse.capacity_for(commodity)
        if capacity is None:
            return Decimal(0)
        return self.registry.to_canonical(capacity, commodity, ROUND_FLOOR).amount

    def generate_inventory(
        self, warehouses: list[Warehouse], max_fill: float = 0.3
    ) -> Inventory:
        """Current stock per declared cell, uniform in [0, max_fill) of capacity."""
        entries = {}
        for warehouse in warehouses:
            for commodity in warehouse.commodities:
                cap = self._canonical_capacity(warehouse, commodity)
                fill = Decimal(str(round(float(self.rng.uniform(0, max_fill)), 3)))
                amount = (cap * fill).to_integral_value(rounding=ROUND_FLOOR)
                if amount > 0:
                    unit = self.registry.canonical_unit(commodity)
                    entries[(warehouse.id, commodity)] = quantity_of(unit, amount)
        return Inventory(entries)

    def generate_ship_inventory(
        self,
        warehouses: list[Warehouse],
        load_factor: float = 0.4,
    ) -> ShipInventory:
        """A manifest sized to ``load_factor`` of fleet capacity per commodity."""
        quantities = {}
        for commodity in Commodity:
            total = sum(
                (self._canonical_capacity(w, commodity) for w in warehouses),
                Decimal(0),
            )
            jitter = Decimal(str(round(float(self.rng.uniform(0.8, 1.2)), 3)))
            amount = (total * Decimal(str(load_factor)) * jitter).to_integral_value()
            if amount > 0:
                quantities[commodity] = quantity_of(
                    self.registry.canonical_unit(commodity), amount
                )
        return ShipInventory(quantities)

    def generate(
        self,
        n_warehouses: int = 10,
        mixed_units: bool = False,
        max_fill: float = 0.3,
        load_factor: float = 0.4,
    ) -> Scenario:
        warehouses = self.generate_warehouses(n_warehouses, mixed_units=mixed_units)
        return Scenario(
            warehouses=warehouses,
            inventory=self.generate_inventory(warehouses, max_fill=max_fill),
            ship_inventory=self.generate_ship_inventory(warehouses, load_factor),
        )


def write_scenario(scenario: Scenario, output_dir: str | Path) -> dict[str, Path]:
    """Write warehouses.csv, inventory.csv and ship.csv; returns their paths."""
    out = Path(output_dir)
    paths = {
        "warehouses": out / "warehouses.csv",
        "inventory": out / "inventory.csv",
        "ship": out / "ship.csv",
    }
    write_rows_csv(paths["warehouses"], WAREHOUSE_COLUMNS, warehouses_to_rows(scenario.warehouses))
    write_rows_csv(paths["inventory"], INVENTORY_COLUMNS, inventory_to_rows(scenario.inventory))
    write_rows_csv(
        paths["ship"],
        SHIP_INVENTORY_COLUMNS,
        [
            {
                "commodity": commodity.value,
                "amount": str(quantity.amount),
                "unit": quantity.unit.value,
            }
            for commodity, quantity in scenario.ship_inventory.items()
        ],
    )
    return paths
