"""
Transcript export in subtitle and plain-text formats.

No end time is recorded for an entry, so every cue is given a fixed length.
"""

from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import NamedTuple

from polycaption.wire import CaptionEntry

ASSUMED_CUE_DURATION_MS = 3000


class ExportFormat(StrEnum):
  SRT = "srt"
  VTT = "vtt"
  TXT = "txt"


class ExportedTranscript(NamedTuple):
  content: str
  media_type: str
  filename: str


def format_timestamp(ms: int, separator: str = ",") -> str:
  """Format milliseconds as HH:MM:SS<separator>mmm. Hours keep counting past 24."""
  seconds, millis = divmod(ms, 1000)
  minutes, seconds = divmod(seconds, 60)
  hours, minutes = divmod(minutes, 60)
  return f"{hours:02d}:{minutes:02d}:{seconds:02d}{separator}{millis:03d}"


def _cue_times(entry: CaptionEntry, separator: str) -> str:
  start = format_timestamp(entry.timestamp, separator)
  end = format_timestamp(entry.timestamp + ASSUMED_CUE_DURATION_MS, separator)
  return f"{start} --> {end}"


def to_srt(entries: Sequence[CaptionEntry]) -> str:
  return "\n".join(
    f"{index}\n{_cue_times(entry, ',')}\n{entry.original_text}\n"
    for index, entry in enumerate(entries, start=1)
  )


def to_vtt(entries: Sequence[CaptionEntry]) -> str:
  cues = "\n".join(f"{_cue_times(entry, '.')}\n{entry.original_text}\n" for entry in entries)
  return "WEBVTT\n\n" + cues


def to_txt(entries: Sequence[CaptionEntry]) -> str:
  return "\n".join(
    f"[{entry.speaker_label}] {entry.original_text}" if entry.speaker_label else entry.original_text
    for entry in entries
  )


_EXPORTERS: dict[ExportFormat, tuple[Callable[[Sequence[CaptionEntry]], str], str]] = {
  ExportFormat.SRT: (to_srt, "application/x-subrip"),
  ExportFormat.VTT: (to_vtt, "text/vtt"),
  ExportFormat.TXT: (to_txt, "text/plain"),
}


def export_transcript(entries: Sequence[CaptionEntry], fmt: ExportFormat) -> ExportedTranscript:
  """Render entries (already in timestamp order) in the requested format."""
  render, media_type = _EXPORTERS[fmt]
  return ExportedTranscript(render(entries), media_type, f"transcript.{fmt.value}")
