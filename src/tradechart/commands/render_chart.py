"""Configuration and execution for the inspect and render commands.

Example config file (chart.yaml):

    sources:
      - type: accountEquity
        entityId: "0x1234abcd"
      - type: candleHistory
        ticker: "BTC"
        field: close
      - type: sentiment
        entityId: "0x1234abcd"
    time_range:
      start: "2024-01-01T00:00:00Z"
      end: "2024-01-02T00:00:00Z"
    num_buckets: 50          # Optional
    candle_interval: "5m"    # Optional
    providers:               # Optional
      equity: supabase
      candles: hyperliquid
      sentiment: supabase
    provider_params:         # Optional, keyed by provider name
      supabase:
        url: "https://project.supabase.co"
        api_key_env: "SUPABASE_ANON_KEY"
    render:                  # Optional
      width: 350
      aspect_ratio: 0.4286
      output: "chart.svg"
      use_sample_data: false
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from tradechart.data.assemble import datasets_to_lines
from tradechart.data.fetch import (
    DEFAULT_CANDLE_INTERVAL,
    DEFAULT_NUM_BUCKETS,
    BatchFetchOrchestrator,
    ChartDataQuery,
    FetchCache,
)
from tradechart.data.sources import (
    HyperliquidCandleSource,
    YahooCandleSource,
    resolve_candle_source,
    resolve_equity_source,
    resolve_sentiment_source,
)
from tradechart.data.timestamps import normalize_time_range
from tradechart.exceptions import ConfigError, DataValidationError, TimeRangeError
from tradechart.render.chart import MultiLineChart
from tradechart.types import (
    ChartConfig,
    ChartDataResult,
    ProviderConfig,
    RenderConfig,
    parse_source_descriptors,
)

logger = logging.getLogger(__name__)

# Valid providers per data kind
VALID_PROVIDERS = {
    "equity": frozenset(["supabase", "static"]),
    "candles": frozenset(["hyperliquid", "yahoo", "static"]),
    "sentiment": frozenset(["supabase", "static"]),
}

# Intervals each candle provider accepts
VALID_INTERVALS = {
    "hyperliquid": HyperliquidCandleSource.INTERVALS,
    "yahoo": frozenset(YahooCandleSource.INTERVAL_MAP),
}


def _parse_providers(raw: Any) -> ProviderConfig:
    if raw is None:
        return ProviderConfig()
    if not isinstance(raw, dict):
        raise ConfigError("'providers' must be a mapping")

    unknown = set(raw) - set(VALID_PROVIDERS)
    if unknown:
        raise ConfigError(f"Unknown provider kinds: {sorted(unknown)}")

    for kind, name in raw.items():
        if not isinstance(name, str) or name.lower() not in VALID_PROVIDERS[kind]:
            raise ConfigError(
                f"Invalid {kind} provider '{name}'. "
                f"Valid options: {sorted(VALID_PROVIDERS[kind])}"
            )
    return ProviderConfig(**{kind: name.lower() for kind, name in raw.items()})


def _parse_render(raw: Any) -> RenderConfig:
    if raw is None:
        return RenderConfig()
    if not isinstance(raw, dict):
        raise ConfigError("'render' must be a mapping")

    for key in ("width", "aspect_ratio"):
        if key in raw:
            value = raw[key]
            if (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or not math.isfinite(value)
                or value <= 0
            ):
                raise ConfigError(f"'render.{key}' must be a positive number")

    unknown = set(raw) - set(RenderConfig.model_fields)
    if unknown:
        raise ConfigError(f"Unknown render settings: {sorted(unknown)}")

    if "use_sample_data" in raw and not isinstance(raw["use_sample_data"], bool):
        raise ConfigError("'render.use_sample_data' must be true or false")

    if "output" in raw and (not isinstance(raw["output"], str) or not raw["output"]):
        raise ConfigError("'render.output' must be a non-empty path")

    try:
        return RenderConfig(**raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid 'render' settings: {e}") from e


def load_chart_config(config_path: str | Path) -> ChartConfig:
    """Parse and validate a chart configuration file.

    :param config_path: Path to YAML configuration file.
    :returns: Validated ChartConfig object.
    :raises ConfigError: If file cannot be read or config is invalid.
    """
    config_path = Path(config_path)

    # Read and parse YAML
    try:
        with open(config_path) as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration must be a YAML mapping")

    # Validate required fields
    for field in ("sources", "time_range"):
        if field not in raw_config:
            raise ConfigError(f"Missing required field: {field}")

    # Parse sources
    raw_sources = raw_config["sources"]
    if not isinstance(raw_sources, list) or len(raw_sources) == 0:
        raise ConfigError("'sources' must be a non-empty list")
    try:
        sources = parse_source_descriptors(raw_sources)
    except DataValidationError as e:
        raise ConfigError(str(e)) from e

    # Parse time_range
    raw_range = raw_config["time_range"]
    if not isinstance(raw_range, dict):
        raise ConfigError("'time_range' must be a mapping with 'start' and 'end'")
    if "start" not in raw_range or "end" not in raw_range:
        raise ConfigError("'time_range' must contain 'start' and 'end'")
    try:
        time_range = normalize_time_range(raw_range["start"], raw_range["end"])
    except TimeRangeError as e:
        raise ConfigError(f"Invalid 'time_range': {e}") from e

    # Parse num_buckets
    num_buckets = raw_config.get("num_buckets", DEFAULT_NUM_BUCKETS)
    if isinstance(num_buckets, bool) or not isinstance(num_buckets, int) or num_buckets < 1:
        raise ConfigError("'num_buckets' must be a positive integer")

    providers = _parse_providers(raw_config.get("providers"))

    # Parse candle_interval against the configured candle provider
    candle_interval = raw_config.get("candle_interval", DEFAULT_CANDLE_INTERVAL)
    valid_intervals = VALID_INTERVALS.get(providers.candles)
    if valid_intervals is not None and candle_interval not in valid_intervals:
        raise ConfigError(
            f"Invalid candle_interval '{candle_interval}' for {providers.candles}. "
            f"Valid options: {sorted(valid_intervals)}"
        )

    # Parse provider_params (optional)
    provider_params = raw_config.get("provider_params", {}) or {}
    if not isinstance(provider_params, dict) or not all(
        isinstance(v, dict) for v in provider_params.values()
    ):
        raise ConfigError("'provider_params' must be a mapping of mappings")

    render = _parse_render(raw_config.get("render"))

    try:
        return ChartConfig(
            sources=sources,
            time_range=time_range,
            num_buckets=num_buckets,
            candle_interval=str(candle_interval),
            providers=providers,
            provider_params={str(k).lower(): v for k, v in provider_params.items()},
            render=render,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def build_orchestrator(config: ChartConfig) -> BatchFetchOrchestrator:
    """Construct the batch fetcher for a configuration's providers.

    :param config: Chart configuration.
    :returns: Orchestrator wired to the configured collaborators.
    :raises DataSourceError: If a provider cannot be constructed.
    """
    providers = config.providers
    return BatchFetchOrchestrator(
        equity_source=resolve_equity_source(
            providers.equity, config.params_for(providers.equity)
        ),
        candle_source=resolve_candle_source(
            providers.candles, config.params_for(providers.candles)
        ),
        sentiment_source=resolve_sentiment_source(
            providers.sentiment, config.params_for(providers.sentiment)
        ),
    )


async def fetch_chart_data(
    config: ChartConfig,
    orchestrator: BatchFetchOrchestrator | None = None,
    cache: FetchCache | None = None,
) -> ChartDataResult:
    """Run one fetch-normalize-assemble pass for a configuration.

    :param config: Chart configuration.
    :param orchestrator: Batch fetcher (built from the config if None).
    :param cache: Bundle cache to consult and fill.
    :returns: Chart data result; fetch failures are carried in ``error``.
    """
    query = ChartDataQuery(orchestrator or build_orchestrator(config), cache)
    try:
        return await query.run(
            config.sources,
            config.time_range.start,
            config.time_range.end,
            num_buckets=config.num_buckets,
            candle_interval=config.candle_interval,
        )
    finally:
        query.close()


def build_chart(config: ChartConfig, result: ChartDataResult) -> MultiLineChart:
    """Create a laid-out chart for a fetched result.

    :param config: Chart configuration (render settings).
    :param result: Chart data result.
    :returns: Chart sized to ``config.render.width``.
    """
    render = config.render
    chart = MultiLineChart(
        datasets_to_lines(result.datasets),
        aspect_ratio=render.aspect_ratio,
        is_loading=result.is_loading,
        use_sample_data=render.use_sample_data,
    )
    chart.on_layout(render.width)
    logger.debug("Built chart with %d lines at width %s", len(chart.lines), render.width)
    return chart


__all__ = [
    "VALID_PROVIDERS",
    "VALID_INTERVALS",
    "load_chart_config",
    "build_orchestrator",
    "fetch_chart_data",
    "build_chart",
]
