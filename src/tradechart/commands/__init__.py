"""CLI command implementations for the chart pipeline.

Each command module provides:
- Configuration loading and validation
- Construction of the upstream collaborators a configuration names
- Integration with the fetch and render layers
"""

from tradechart.commands.render_chart import (
    build_chart,
    build_orchestrator,
    fetch_chart_data,
    load_chart_config,
)

__all__ = [
    "load_chart_config",
    "build_orchestrator",
    "fetch_chart_data",
    "build_chart",
]
