"""
Error mapping and CLI utilities.

Provides centralized exception-to-exit-code mapping and CLI command wrappers
to ensure consistent error handling across all Typer commands.
"""
from __future__ import annotations

import typer
from typing import Callable, TypeVar

T = TypeVar('T')

# Exit codes by exception class name; subclasses inherit their base's code
EXIT_CODES = {
    "FileNotFoundError": 1,
    "FormatError": 2,
    "ReferenceParseError": 2,
    "TransportURLError": 2,
    "SchemaValidationError": 2,
    "ValueError": 2,
    "FetchError": 3,
    "PolicyError": 4,
    "OwnershipError": 5,
    "ValidationCancelled": 6,
    "MigrationError": 7,
}

DEFAULT_EXIT_CODE = 3


def exit_code_for(exc: BaseException) -> int:
    """
    Map exception to standardized exit code.

    Returns exit codes:
    - 0: Success
    - 1: Input file not found
    - 2: Malformed input (format, reference, transport URL, schema)
    - 3: Fetch/network error or unknown error
    - 4: Registry policy violation (host not allowlisted, unknown registry type)
    - 5: Ownership verification failed
    - 6: Validation cancelled or deadline exceeded
    - 7: Migration failed

    The exception's class hierarchy is searched, so MissingIdentifierError
    maps like FormatError and UnsupportedRegistryType like PolicyError.

    Args:
        exc: Exception to map

    Returns:
        Exit code (1-7, with 3 as fallback for unknown exceptions)
    """
    for cls in type(exc).__mro__:
        code = EXIT_CODES.get(cls.__name__)
        if code is not None:
            return code
    return DEFAULT_EXIT_CODE


def run_and_exit(func: Callable[[], T]) -> T:
    """
    Unified error wrapper for CLI commands.

    Executes the given function, prints any error to stderr and maps it to
    an exit code using typer.Exit. This centralizes error handling so CLI
    commands don't need individual try/except blocks.

    Args:
        func: Function to execute

    Returns:
        Function result if successful

    Raises:
        typer.Exit: With appropriate exit code if function raises exception
    """
    try:
        return func()
    except typer.Exit:
        raise
    except Exception as e:
        from .printers import print_error
        print_error(e)
        raise typer.Exit(code=exit_code_for(e)) from e
