import pyarrow.parquet as pq
import pytest

from stowage.cli import main


@pytest.fixture
def scenario_files(tmp_path):
    warehouses = tmp_path / "warehouses.csv"
    warehouses.write_text(
        "warehouse_id,commodity,capacity_amount,capacity_unit\n"
        "1,corn,1000,bushel\n"
        "2,corn,1000,bushel\n"
    )
    inventory = tmp_path / "inventory.csv"
    inventory.write_text("warehouse_id,commodity,amount,unit\n")
    ship = tmp_path / "ship.csv"
    ship.write_text("commodity,amount,unit\ncorn,1000,bushel\n")
    return warehouses, inventory, ship


def run_args(files, output, *extra):
    warehouses, inventory, ship = files
    return [
        "run",
        "--warehouses", str(warehouses),
        "--inventory", str(inventory),
        "--ship", str(ship),
        "--output", str(output),
        *extra,
    ]


def test_run_equal_distribution_with_report(scenario_files, tmp_path, capsys):
    output = tmp_path / "out.csv"
    code = main(run_args(scenario_files, output, "--strategy", "equal_distribution", "--report"))

    assert code == 0
    lines = output.read_text().splitlines()
    assert lines[1:] == ["1,corn,500.000,bushel", "2,corn,500.000,bushel"]
    out = capsys.readouterr().out
    assert "utilization" in out


def test_run_insufficient_capacity_returns_one(scenario_files, tmp_path, capsys):
    output = tmp_path / "out.csv"
    code = main(run_args(scenario_files, output, "--threshold", "0.4"))

    assert code == 1
    assert not output.exists()
    assert "FAILED during allocating" in capsys.readouterr().out


def test_run_invalid_threshold_returns_two(scenario_files, tmp_path):
    assert main(run_args(scenario_files, tmp_path / "out.csv", "--threshold", "1.2")) == 2


def test_run_parquet_output(scenario_files, tmp_path):
    output = tmp_path / "out.parquet"
    code = main(run_args(scenario_files, output, "--format", "parquet"))

    assert code == 0
    assert pq.read_table(output).num_rows == 2


def test_generate_then_run(tmp_path):
    out_dir = tmp_path / "demo"
    assert main(["generate", "--output-dir", str(out_dir), "--warehouses", "6", "--seed", "3"]) == 0
    assert (out_dir / "warehouses.csv").exists()

    code = main(
        [
            "run",
            "--warehouses", str(out_dir / "warehouses.csv"),
            "--inventory", str(out_dir / "inventory.csv"),
            "--ship", str(out_dir / "ship.csv"),
            "--output", str(out_dir / "inventory.csv"),
            "--threshold", "1",
        ]
    )
    assert code == 0
