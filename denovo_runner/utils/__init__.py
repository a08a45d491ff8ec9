"""General utilities used across denovo_runner.

Exports logging setup, CLI parameter helpers, spectrum file discovery and the
console/in-memory reporters.
"""

from .logging_utils import configure_logging
from .params import get_spectrum_files, parse_tool_parameters
from .progress import BufferedReporter, ConsoleReporter

__all__ = [
    "configure_logging",
    "get_spectrum_files",
    "parse_tool_parameters",
    "BufferedReporter",
    "ConsoleReporter",
]
