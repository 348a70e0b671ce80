#!/usr/bin/env python3
"""
Command-line entry point for the ETA data pipeline.

Builds the source registry and adapters from a YAML configuration, runs
one invocation for a driver/load pair, prints the result as JSON and
writes a Markdown run report.

Adapters run against recorded provider responses when ``adapters.use_mock``
is true; otherwise live HTTP adapters are registered where one exists and
the remaining sources fall back to their recorded responses.

Usage:
    python -m eta_pipeline.run_pipeline --driver-id D --load-id L [--config config.yaml]
"""
import sys
import json
import yaml
import logging
import argparse
from pathlib import Path
from typing import Any, Dict

from .errors import ConfigurationError
from .ingestion import FixtureAdapter, MapboxDirectionsAdapter, OpenWeatherAdapter
from .observability import RunReporter
from .orchestration import ETADataPipeline, PipelineExecutionResult
from .presentation import StaticSummaryLookup
from .registry import DRIVER_LOCATION, MAPBOX_DIRECTIONS, WEATHER_DATA, SourceRegistry
from .storage import CacheStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load the YAML configuration.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the document is not a mapping
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ConfigurationError(f"Config root must be a mapping: {config_path}")
    return config


def register_adapters(registry: SourceRegistry, adapters_config: Dict[str, Any]) -> None:
    """
    Register one adapter per source type.

    Args:
        registry: Registry to register adapters in
        adapters_config: The ``adapters`` config section
    """
    use_mock = adapters_config.get("use_mock", True)
    per_source = {t: adapters_config.get(t) or {} for t in registry.source_types}

    for source_type in registry.source_types:
        registry.register_adapter(source_type, FixtureAdapter(source_type, per_source[source_type]))

    if use_mock:
        logger.info("Using recorded provider responses for all sources")
        return

    location_adapter = registry.get_adapter(DRIVER_LOCATION)
    if WEATHER_DATA in registry.source_types:
        registry.register_adapter(
            WEATHER_DATA, OpenWeatherAdapter(per_source[WEATHER_DATA], location_adapter)
        )
    if MAPBOX_DIRECTIONS in registry.source_types:
        registry.register_adapter(
            MAPBOX_DIRECTIONS, MapboxDirectionsAdapter(per_source[MAPBOX_DIRECTIONS], location_adapter)
        )
    logger.info("Using live weather and directions adapters")


def build_pipeline(config: Dict[str, Any]) -> ETADataPipeline:
    """Build the registry, cache and pipeline described by the configuration."""
    registry = SourceRegistry.from_config(config.get("sources") or {})
    register_adapters(registry, config.get("adapters") or {})

    summaries = config.get("summaries") or {}
    summary_lookup = None
    if summaries:
        summary_lookup = StaticSummaryLookup(
            loads=summaries.get("loads"),
            vehicles=summaries.get("vehicles"),
        )

    collector_config = config.get("collector") or {}
    return ETADataPipeline(
        registry,
        CacheStore(),
        summary_lookup=summary_lookup,
        retry_backoff_seconds=collector_config.get("retry_backoff_seconds", 0.0),
        max_attempt_workers=collector_config.get("max_workers"),
    )


def write_report(result: PipelineExecutionResult, report_dir: str) -> Path:
    reporter = RunReporter()
    report = reporter.generate_report(result.run_metrics)
    return reporter.save_report(report, Path(report_dir))


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run the ETA data pipeline for one driver/load pair"
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument("--driver-id", required=True, help="Driver identifier")
    parser.add_argument("--load-id", required=True, help="Load identifier")
    parser.add_argument(
        "--prompt-type",
        default="eta_prediction",
        help="Consumer prompt type (default: eta_prediction)"
    )
    parser.add_argument(
        "--user-role",
        default="carrier",
        help="Role the payload is built for (default: carrier)"
    )
    parser.add_argument(
        "--report-dir",
        default="output",
        help="Directory for the Markdown run report (default: output)"
    )
    args = parser.parse_args(argv)

    try:
        pipeline = build_pipeline(load_config(args.config))
    except (FileNotFoundError, ConfigurationError, yaml.YAMLError) as e:
        logger.error(f"Pipeline setup failed: {e}")
        sys.exit(1)

    result = pipeline.execute(
        driver_id=args.driver_id,
        load_id=args.load_id,
        prompt_type=args.prompt_type,
        user_role=args.user_role,
    )

    print(json.dumps(result.to_dict(), indent=2, default=str))

    report_path = write_report(result, args.report_dir)
    logger.info(f"Report: {report_path}")

    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
