import time
from typing import NamedTuple

from rich.pretty import pretty_repr


class Pretty(NamedTuple):
  value: object

  def __str__(self) -> str:
    return pretty_repr(self.value)


class Unit(NamedTuple):
  value: float


class Seconds(Unit):
  def __str__(self) -> str:
    return f"{self.value:.3}s"


class Milliseconds(Unit):
  def __str__(self) -> str:
    return f"{self.value:.1f}ms"


def elapsed_ms(started: float) -> Milliseconds:
  """Milliseconds elapsed since a `time.perf_counter()` reading."""
  return Milliseconds((time.perf_counter() - started) * 1000)
