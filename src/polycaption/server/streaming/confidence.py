"""
Confidence estimators for stored caption entries.

The transcription engine reports no per-chunk confidence, so stored entries get a value from a
pluggable heuristic. It is a placeholder signal and should not be read as model certainty.
"""

from collections.abc import Callable

from polycaption.server.gateways import TranscriptionResult

type ConfidenceEstimator = Callable[[TranscriptionResult], int | None]


def duration_confidence(result: TranscriptionResult) -> int:
  """Scale the reported audio duration (1 s when unknown) by 90, clamped to 0..100."""
  duration = result.duration if result.duration is not None else 1.0
  return max(0, min(100, round(duration * 90)))


def no_confidence(result: TranscriptionResult) -> None:
  return None


ESTIMATORS: dict[str, ConfidenceEstimator] = {
  "duration": duration_confidence,
  "none": no_confidence,
}


def get_estimator(name: str) -> ConfidenceEstimator:
  try:
    return ESTIMATORS[name]
  except KeyError:
    raise ValueError(f"Unknown confidence estimator '{name}'") from None
