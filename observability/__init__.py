"""
Observability layer for advisory validation.

This module provides metrics collection and reporting for validation runs.

Main exports:
- ValidationMetrics: Tracks metrics for a validation run
- ValidationReporter: Generates Markdown reports
"""
from .metrics import ValidationMetrics, new_run_id
from .reporter import ValidationReporter

__all__ = [
    "ValidationMetrics",
    "ValidationReporter",
    "new_run_id",
]
