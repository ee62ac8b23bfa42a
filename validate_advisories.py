#!/usr/bin/env python3
"""
Command-line entry point for advisory repository validation.

This module coordinates one validation run:
1. Configuration: Read config.yaml and apply CLI overrides
2. Loading: Read the current (and optional baseline) advisory snapshots
3. Reference data: Load build configurations, package index, alias finder
4. Validation: Run every applicable check
5. Reporting: Print the error tree, optionally write a Markdown report

Exit codes:
    0  validation passed
    1  validation failed, or a check was aborted
    2  configuration or loading error

Usage:
    python validate_advisories.py [--config config.yaml] [--baseline DIR] [--package NAME ...]
"""
import argparse
import json
import logging
import os
import signal
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from advisories import DocumentLoadError, load_snapshot
from observability import ValidationMetrics, ValidationReporter, new_run_id
from reference_data import (
    GitHubAliasFinder,
    MemoizingAliasFinder,
    PackageIndexSource,
    StaticAliasFinder,
    load_build_configs,
)
from validation import AdvisoryValidator, PackageScope, ValidationInputs, ValidationResult, default_checks

logger = logging.getLogger(__name__)

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_ERROR = 2


class AdvisoryValidationRun:
    """
    Builds validation inputs from configuration and runs the validator.

    Design decisions:
    - Every reference dataset is optional; absent ones only skip checks
    - The alias finder is wrapped in a per-run memoizing cache
    - SIGINT cancels outstanding alias lookups instead of killing the run
    """

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize the run with configuration.

        Args:
            config_path: Path to YAML configuration file (optional)
            overrides: Values from the command line, applied over the file

        Raises:
            FileNotFoundError: If config_path is given but missing
            ValueError: If required configuration keys are missing
        """
        self.config: Dict[str, Any] = {}
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_path}")
            with open(path) as f:
                self.config = yaml.safe_load(f) or {}

        self._apply_overrides(overrides or {})

        advisories_config = self.config.get("advisories") or {}
        if not advisories_config.get("path"):
            raise ValueError("Missing required config key: advisories.path")

        self.cancel_event = threading.Event()
        self.reporter = ValidationReporter()
        self.alias_finder: Optional[MemoizingAliasFinder] = None
        self.metrics: Optional[ValidationMetrics] = None

        logger.info(f"Validation run configured (config: {config_path or 'none'})")

    def _apply_overrides(self, overrides: Dict[str, Any]) -> None:
        advisories_config = self.config.setdefault("advisories", {}) or {}
        self.config["advisories"] = advisories_config

        if overrides.get("advisories_path"):
            advisories_config["path"] = overrides["advisories_path"]
        if overrides.get("baseline_path"):
            advisories_config["baseline_path"] = overrides["baseline_path"]
        if overrides.get("packages"):
            self.config["packages"] = list(overrides["packages"])
        if overrides.get("report_dir"):
            reporting = self.config.get("reporting") or {}
            reporting["output_dir"] = overrides["report_dir"]
            self.config["reporting"] = reporting

    def build_inputs(self) -> ValidationInputs:
        """
        Load snapshots and reference datasets.

        Raises:
            FileNotFoundError / DocumentLoadError: If a snapshot cannot be loaded
        """
        advisories_config = self.config["advisories"]
        current = load_snapshot(advisories_config["path"])

        baseline = None
        if advisories_config.get("baseline_path"):
            baseline = load_snapshot(advisories_config["baseline_path"])

        build_configs = None
        build_config_path = (self.config.get("build_configs") or {}).get("path")
        if build_config_path:
            build_configs = load_build_configs(build_config_path)

        package_index = None
        index_source = PackageIndexSource(self.config.get("package_index") or {})
        if index_source.configured:
            package_index = index_source.load()

        self.alias_finder = self._build_alias_finder(self.config.get("alias_finder") or {})

        return ValidationInputs(
            current=current,
            baseline=baseline,
            scope=PackageScope(self.config.get("packages") or []),
            now=datetime.now(timezone.utc),
            build_configs=build_configs,
            package_index=package_index,
            alias_finder=self.alias_finder,
        )

    def _build_alias_finder(self, config: Dict[str, Any]) -> Optional[MemoizingAliasFinder]:
        if not config.get("enabled", False):
            return None

        provider = config.get("provider", "github")
        if provider == "github":
            token = os.environ.get(config.get("token_env", "GITHUB_TOKEN"))
            if not token:
                logger.warning("No GitHub token found; alias lookups will be heavily rate limited")
            finder = GitHubAliasFinder.from_config(config, token=token, cancel_event=self.cancel_event)
        elif provider == "static":
            if not config.get("static_path"):
                raise ValueError("Missing required config key: alias_finder.static_path")
            finder = StaticAliasFinder.from_file(config["static_path"])
        else:
            raise ValueError(f"Unknown alias finder provider: {provider}")

        return MemoizingAliasFinder(finder)

    def run(self) -> ValidationResult:
        """
        Execute the validation run.

        Returns:
            ValidationResult from the validator
        """
        started_at = datetime.utcnow()
        metrics = ValidationMetrics(run_id=new_run_id(started_at), started_at=started_at)
        logger.info(f"=== Starting Validation Run: {metrics.run_id} ===")

        inputs = self.build_inputs()
        metrics.documents_total = len(inputs.current)
        metrics.documents_in_scope = len(inputs.selected())
        metrics.baseline_documents = len(inputs.baseline) if inputs.baseline is not None else 0

        alias_config = self.config.get("alias_finder") or {}
        validator = AdvisoryValidator(default_checks(
            alias_workers=alias_config.get("workers", 4),
            alias_timeout_seconds=alias_config.get("timeout_seconds"),
        ))

        previous_handler = self._install_cancel_handler()
        try:
            result = validator.validate(inputs, cancel_event=self.cancel_event)
        finally:
            # Lookups left running after an alias timeout stop at their next retry
            self.cancel_event.set()
            if previous_handler is not None:
                signal.signal(signal.SIGINT, previous_handler)

        metrics.record_result(result)
        if self.alias_finder is not None:
            metrics.alias_lookups = self.alias_finder.lookups
        metrics.completed_at = datetime.utcnow()

        self.metrics = metrics
        self._write_report(metrics, result)

        logger.info(f"=== Validation Run {'Passed' if result.passed else 'Failed'}: {metrics.run_id} ===")
        return result

    def _install_cancel_handler(self):
        if threading.current_thread() is not threading.main_thread():
            return None

        def handle_sigint(signum, frame):
            logger.warning("Interrupt received, cancelling outstanding lookups")
            self.cancel_event.set()

        return signal.signal(signal.SIGINT, handle_sigint)

    def _write_report(self, metrics: ValidationMetrics, result: ValidationResult) -> None:
        output_dir = (self.config.get("reporting") or {}).get("output_dir")
        if not output_dir:
            return

        report = self.reporter.generate_report(metrics, result)
        report_path = self.reporter.save_report(report, Path(output_dir))
        metrics_path = report_path.with_suffix(".json")
        metrics_path.write_text(json.dumps(metrics.to_dict(), indent=2))
        logger.info(f"Report written to {report_path}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Validate an advisory repository against policy"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to configuration file (default: config.yaml if present)"
    )
    parser.add_argument(
        "--advisories",
        dest="advisories_path",
        help="Directory holding <package>.advisories.yaml files"
    )
    parser.add_argument(
        "--baseline",
        dest="baseline_path",
        help="Directory holding the baseline snapshot to diff against"
    )
    parser.add_argument(
        "--package",
        dest="packages",
        action="append",
        default=[],
        help="Limit validation to this package (repeatable)"
    )
    parser.add_argument(
        "--report-dir",
        dest="report_dir",
        help="Write a Markdown report to this directory"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    config_path = args.config
    if config_path is None and Path("config.yaml").exists():
        config_path = "config.yaml"

    try:
        run = AdvisoryValidationRun(config_path=config_path, overrides=vars(args))
        result = run.run()
    except (OSError, ValueError, DocumentLoadError) as e:
        logger.error(f"Validation could not run: {e}")
        return EXIT_ERROR

    print("\n" + "=" * 60)
    print("Advisory Validation Summary")
    print("=" * 60)
    print(f"Run ID: {run.metrics.run_id}")
    print(f"Documents: {run.metrics.documents_total} ({run.metrics.documents_in_scope} in scope)")
    print(f"Checks run: {', '.join(result.checks_run) or 'none'}")
    for skipped in result.skipped:
        print(f"Skipped: {skipped.check_id} (not provided: {', '.join(skipped.missing)})")
    print("=" * 60)
    print(result.render())

    return EXIT_PASSED if result.passed else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
