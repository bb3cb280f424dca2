"""
Command line interface for the calculation engine.
"""

from .core import (
    OutputFormat,
    CLIContext,
    CommandResult,
    CLICommand,
    COMMANDS,
    build_parser,
    cli_main,
    format_output,
    parse_assignment,
)

__all__ = [
    "OutputFormat",
    "CLIContext",
    "CommandResult",
    "CLICommand",
    "COMMANDS",
    "build_parser",
    "cli_main",
    "format_output",
    "parse_assignment",
]
