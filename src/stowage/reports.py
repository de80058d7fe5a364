"""Capacity utilization report over a warehouse snapshot and an inventory."""

from collections.abc import Sequence

import pandas as pd

from stowage.network.core import Inventory, Warehouse
from stowage.product.units import DEFAULT_REGISTRY, UnitRegistry

REPORT_COLUMNS = [
    "warehouse_id",
    "commodity",
    "unit",
    "capacity",
    "stored",
    "headroom",
    "utilization",
]


def utilization_frame(
    warehouses: Sequence[Warehouse],
    inventory: Inventory,
    registry: UnitRegistry | None = None,
) -> pd.DataFrame:
    """
    One row per declared capacity, in the commodity's canonical unit.

    Amounts are floats for display; allocation itself never reads them.
    """
    registry = registry or DEFAULT_REGISTRY
    records = []
    for warehouse in sorted(warehouses, key=lambda w: w.id):
        for unit in warehouse.capacities:
            capacity = registry.to_canonical(unit.capacity, unit.commodity)
            held = inventory.get(warehouse.id, unit.commodity)
            stored = (
                registry.to_canonical(held, unit.commodity).amount
                if held is not None
                else 0
            )
            records.append(
                {
                    "warehouse_id": warehouse.id,
                    "commodity": unit.commodity.value,
                    "unit": capacity.unit.value,
                    "capacity": float(capacity.amount),
                    "stored": float(stored),
                }
            )

    df = pd.DataFrame.from_records(records, columns=REPORT_COLUMNS[:5])
    df["headroom"] = df["capacity"] - df["stored"]
    df["utilization"] = (df["stored"] / df["capacity"].where(df["capacity"] > 0)).fillna(0.0)
    return df[REPORT_COLUMNS]


def summarize_by_commodity(frame: pd.DataFrame) -> pd.DataFrame:
    """Totals per commodity with fleet-wide utilization."""
    summary = frame.groupby(["commodity", "unit"], as_index=False)[
        ["capacity", "stored", "headroom"]
    ].sum()
    summary["utilization"] = (
        summary["stored"] / summary["capacity"].where(summary["capacity"] > 0)
    ).fillna(0.0)
    return summary
