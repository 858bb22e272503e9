"""
Operations package - Application service layer between CLI and the engine.

This package provides the Operations facade that orchestrates CLI commands,
centralizes error mapping, and handles output formatting while keeping
CLI commands thin and testable.
"""
from .facade import Operations, OpsConfig, ServerValidationReport, load_json_document
from .mappers import exit_code_for, run_and_exit

__all__ = [
    "Operations",
    "OpsConfig",
    "ServerValidationReport",
    "load_json_document",
    "exit_code_for",
    "run_and_exit",
]
