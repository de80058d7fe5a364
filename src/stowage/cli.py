"""
Stowage allocation runner.

Usage:
    stowage run --warehouses w.csv --inventory inv.csv --ship ship.csv --output out.csv
    stowage run ... --strategy equal_distribution --report
    stowage generate --output-dir data/scenario --warehouses 25 --seed 7
"""

import argparse
import sys
import time
from pathlib import Path

import pandas as pd

from stowage.agents.allocation import STRATEGIES, build_allocator
from stowage.config.loader import configure_logging, load_flow_config
from stowage.flow.context import ParserContext
from stowage.flow.orchestrator import Flow, FlowState
from stowage.generators.scenario import ScenarioGenerator, write_scenario
from stowage.handlers.base import InventoryStorer
from stowage.handlers.csv_files import (
    CsvInventoryParser,
    CsvInventoryStorer,
    CsvShipInventoryParser,
    CsvWarehouseParser,
)
from stowage.handlers.parquet import ParquetInventoryStorer
from stowage.reports import summarize_by_commodity, utilization_frame


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Allocate a ship's inventory across warehouses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stowage generate --output-dir data/demo --warehouses 10
  stowage run --warehouses data/demo/warehouses.csv \\
      --inventory data/demo/inventory.csv --ship data/demo/ship.csv \\
      --output data/demo/inventory_out.csv --report
        """,
    )
    parser.add_argument("--config", type=str, default=None, help="Path to flow config JSON")
    parser.add_argument("--log-level", type=str, default=None, help="Override log level")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run one allocation flow")
    run.add_argument("--warehouses", type=Path, required=True, help="Warehouse capacity CSV")
    run.add_argument("--inventory", type=Path, required=True, help="Current inventory CSV")
    run.add_argument("--ship", type=Path, required=True, help="Ship inventory CSV")
    run.add_argument("--output", type=Path, required=True, help="Resulting inventory path")
    run.add_argument(
        "--strategy",
        choices=sorted(STRATEGIES),
        default=None,
        help="Allocation strategy (default: from config)",
    )
    run.add_argument(
        "--threshold",
        type=str,
        default=None,
        help="Ideal fill threshold for first_available, within [0, 1]",
    )
    run.add_argument(
        "--format",
        choices=["csv", "parquet"],
        default=None,
        help="Output format (default: from config)",
    )
    run.add_argument(
        "--report",
        action="store_true",
        help="Print a capacity utilization report after storing",
    )

    gen = sub.add_parser("generate", help="Write a synthetic scenario as CSV")
    gen.add_argument("--output-dir", type=Path, default=Path("data/scenario"))
    gen.add_argument("--warehouses", type=int, default=10, help="Number of warehouses")
    gen.add_argument("--seed", type=int, default=42)
    gen.add_argument("--mixed-units", action="store_true", help="Declare some capacities in non-canonical units")
    gen.add_argument("--load-factor", type=float, default=0.4, help="Ship size as a share of fleet capacity")
    return parser


def _build_storer(args: argparse.Namespace, output_format: str) -> InventoryStorer:
    if output_format == "parquet":
        return ParquetInventoryStorer(args.output)
    same_file = args.output.resolve() == args.inventory.resolve()
    return CsvInventoryStorer(args.output, compare_and_swap=same_file)


def run_command(args: argparse.Namespace, config: dict) -> int:
    alloc_config = dict(config.get("allocation", {}))
    if args.strategy:
        alloc_config["strategy"] = args.strategy
    if args.threshold is not None:
        alloc_config["ideal_threshold"] = args.threshold
    output_format = args.format or config.get("io", {}).get("format", "csv")

    try:
        allocator = build_allocator({"allocation": alloc_config})
    except ValueError as exc:
        print(f"Invalid allocation settings: {exc}")
        return 2

    flow = Flow(
        warehouse_parser=CsvWarehouseParser(args.warehouses),
        inventory_parser=CsvInventoryParser(args.inventory),
        ship_inventory_parser=CsvShipInventoryParser(args.ship),
        allocator=allocator,
        inventory_storer=_build_storer(args, output_format),
    )

    print(f"Running allocation ({alloc_config.get('strategy')}, output={output_format})...")
    start_time = time.time()
    result = flow.run()
    duration = time.time() - start_time

    for record in result.context.failures:
        print(f"  skipped {record}")

    if result.state == FlowState.FAILED:
        print(f"\nAllocation FAILED during {result.failed_in.value}: {result.error}")
        return 1

    print(f"\nStored {len(result.inventory)} cells to {args.output} in {duration:.2f}s")

    if args.report:
        # Warehouses are re-read so the report stays outside the flow
        warehouses = CsvWarehouseParser(args.warehouses).parse_warehouses(ParserContext())
        frame = utilization_frame(warehouses, result.inventory)
        with pd.option_context("display.width", 120, "display.max_rows", 200):
            print("\n" + frame.to_string(index=False))
            print("\n" + summarize_by_commodity(frame).to_string(index=False))
    return 0


def generate_command(args: argparse.Namespace, config: dict) -> int:
    generator = ScenarioGenerator(seed=args.seed, config=config)
    scenario = generator.generate(
        n_warehouses=args.warehouses,
        mixed_units=args.mixed_units,
        load_factor=args.load_factor,
    )
    paths = write_scenario(scenario, args.output_dir)
    for name, path in paths.items():
        print(f"  {name}: {path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    config = load_flow_config(args.config)
    configure_logging(config, args.log_level)

    if args.command == "generate":
        return generate_command(args, config)
    return run_command(args, config)


if __name__ == "__main__":
    sys.exit(main())
