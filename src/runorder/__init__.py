"""
runorder - test execution order calculator.

This package provides tools to:
- Order discovered tests alphabetically, in reverse, hourly or randomly
- Run tests that failed previously first
- Balance test runtime across parallel workers
- Follow an explicit order file
"""

from loguru import logger as _logger

__version__ = "0.1.0"
__author__ = "runorder Team"

_logger.disable("runorder")
