#!/usr/bin/env python3
"""Command-line interface for the chart pipeline."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path


def _load_config(path: str):
    from tradechart.commands.render_chart import load_chart_config
    from tradechart.exceptions import ConfigError

    try:
        return load_chart_config(path)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return None


def _fetch(config):
    from tradechart.commands.render_chart import build_orchestrator, fetch_chart_data
    from tradechart.exceptions import ChartError

    try:
        orchestrator = build_orchestrator(config)
    except ChartError as e:
        print(f"Data source error: {e}")
        return None

    try:
        result = asyncio.run(fetch_chart_data(config, orchestrator))
    except ChartError as e:
        print(f"Failed to fetch data: {e}")
        return None

    if result.error is not None:
        print(f"Failed to fetch data: {result.error}")
        return None
    return result


def _print_header(title: str, config) -> None:
    from tradechart.data.timestamps import to_iso

    print("=" * 60)
    print(title)
    print("=" * 60)
    print(f"Sources:     {len(config.sources)}")
    print(f"Time Range:  {to_iso(config.time_range.start)} to {to_iso(config.time_range.end)}")
    print(f"Buckets:     {config.num_buckets}")
    print(f"Interval:    {config.candle_interval}")
    print(
        f"Providers:   equity={config.providers.equity}, "
        f"candles={config.providers.candles}, sentiment={config.providers.sentiment}"
    )


def cmd_inspect(args: argparse.Namespace) -> int:
    """Fetch and assemble datasets, then summarize them."""
    from tradechart.data.timestamps import to_iso

    config = _load_config(args.config)
    if config is None:
        return 1

    _print_header("INSPECT", config)
    print("\n📊 Fetching data...")
    result = _fetch(config)
    if result is None:
        return 1

    if not result.datasets:
        print("No datasets with data in the selected range.")
        return 0

    print(f"   Assembled {len(result.datasets)} datasets\n")
    print(f"{'Dataset':<32} {'Points':>7}  {'First':<24} {'Last':<24} {'Latest':>9}")
    print("-" * 100)
    for dataset in result.datasets:
        meta = dataset.metadata
        print(
            f"{dataset.id:<32} {meta.point_count:>7}  "
            f"{to_iso(meta.first_timestamp):<24} {to_iso(meta.last_timestamp):<24} "
            f"{dataset.data[-1].value:>9.2f}"
        )

    return 0


def cmd_render(args: argparse.Namespace) -> int:
    """Fetch, assemble and render the chart as SVG."""
    from tradechart.commands.render_chart import build_chart
    from tradechart.render.chart import Placeholder

    config = _load_config(args.config)
    if config is None:
        return 1

    _print_header("RENDER", config)
    print("\n📊 Fetching data...")
    result = _fetch(config)
    if result is None:
        return 1
    print(f"   Assembled {len(result.datasets)} datasets")

    chart = build_chart(config, result)
    if args.touch is not None:
        layout = chart.layout
        if layout is not None:
            chart.pointer_down(layout.plot_left + args.touch * layout.plot_width)
            for line, value in chart.touch_values():
                formatter = line.format_value or str
                print(f"   {line.name}: {formatter(value)}")

    scene = chart.render()
    if isinstance(scene, Placeholder):
        print("Nothing to render: chart has no usable layout.")
        return 1

    output = Path(args.output or config.render.output)
    print("\n🖼  Rendering chart...")
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(scene.to_svg())
    except OSError as e:
        print(f"Failed to write chart: {e}")
        return 1

    print(f"   Wrote {output}")
    print("\n✅ Done!")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Unified time-series chart CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Inspect command
    inspect_parser = subparsers.add_parser(
        "inspect", help="Fetch datasets and print a summary"
    )
    inspect_parser.add_argument("config", help="Path to chart YAML config")

    # Render command
    render_parser = subparsers.add_parser("render", help="Render the chart to SVG")
    render_parser.add_argument("config", help="Path to chart YAML config")
    render_parser.add_argument(
        "-o", "--output", default=None, help="Output path (default: from config)"
    )
    render_parser.add_argument(
        "--touch",
        type=float,
        default=None,
        help="Simulated touch position in [0, 1] across the plot",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "inspect":
        return cmd_inspect(args)
    elif args.command == "render":
        return cmd_render(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())
