"""
Utility helpers used by the blueprint pipelines.

This subpackage exposes the error kinds with their JSON Lines reporting,
step results and the minimum-version checks.
"""

from .errors import ERRORS, BlueprintError, report_error, report_ok
from .results import Result

__all__ = ["ERRORS", "BlueprintError", "report_error", "report_ok", "Result"]
