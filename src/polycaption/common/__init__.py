"""
Polycaption common package.
"""

from polycaption.common.format import Milliseconds, Pretty, Seconds, Unit, elapsed_ms
from polycaption.common.logs import get_logger, setup_logging

__all__ = [
  "get_logger",
  "setup_logging",
  "elapsed_ms",
  "Milliseconds",
  "Pretty",
  "Seconds",
  "Unit",
]
