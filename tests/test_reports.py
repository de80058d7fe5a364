import pandas as pd
import pytest

from stowage.network.core import Inventory, Warehouse, WarehouseCapacityUnit
from stowage.product.core import Barrel, Bushel, Commodity, StandardLitre
from stowage.reports import REPORT_COLUMNS, summarize_by_commodity, utilization_frame


@pytest.fixture
def fleet():
    return [
        Warehouse(
            2,
            (
                WarehouseCapacityUnit(Commodity.CORN, Bushel(300)),
                WarehouseCapacityUnit(Commodity.OIL, Barrel(0)),
            ),
        ),
        Warehouse(1, (WarehouseCapacityUnit(Commodity.CORN, StandardLitre("3523.907")),)),
    ]


def test_utilization_frame(fleet):
    inventory = Inventory(
        {(1, Commodity.CORN): Bushel(25), (2, Commodity.CORN): Bushel(150)}
    )
    df = utilization_frame(fleet, inventory)

    assert list(df.columns) == REPORT_COLUMNS
    assert df["warehouse_id"].tolist() == [1, 2, 2]
    # Litre capacity is reported in bushels
    assert df.loc[0, "unit"] == "bushel"
    assert df.loc[0, "capacity"] == pytest.approx(100.0)
    assert df.loc[0, "utilization"] == pytest.approx(0.25)
    assert df.loc[1, "headroom"] == pytest.approx(150.0)
    # Zero capacity reports zero utilization, not NaN
    assert df.loc[2, "utilization"] == 0.0


def test_summarize_by_commodity(fleet):
    inventory = Inventory({(2, Commodity.CORN): Bushel(200)})
    summary = summarize_by_commodity(utilization_frame(fleet, inventory))

    corn = summary[summary["commodity"] == "corn"].iloc[0]
    assert corn["capacity"] == pytest.approx(400.0)
    assert corn["stored"] == pytest.approx(200.0)
    assert corn["utilization"] == pytest.approx(0.5)


def test_empty_fleet_gives_empty_frame():
    df = utilization_frame([], Inventory())
    assert isinstance(df, pd.DataFrame)
    assert df.empty
    assert list(df.columns) == REPORT_COLUMNS
