"""
Structured logging for polycaption, built on structlog over the stdlib logging module.

Console output is a compact colored layout (uptime, level, logger, event, key/values); JSON
output adds ISO timestamps for log shippers. Loggers from third-party libraries are routed
through the same formatter.
"""

import logging
import time
from typing import Any

import structlog
from structlog.dev import BRIGHT, DIM, RESET_ALL, Column, ConsoleRenderer, KeyValueColumnFormatter
from structlog.typing import EventDict, Processor, WrappedLogger

_STARTED_AT = time.monotonic()

# Libraries whose INFO chatter drowns out caption traffic
_QUIET_LIBRARIES = ("websockets", "aiohttp", "uvicorn.access")


def hex_to_ansi_fg(hex_color: int) -> str:
  """24-bit ANSI foreground escape for a 0xRRGGBB color."""
  return "\x1b[38;2;{};{};{}m".format(
    (hex_color >> 16) & 0xFF, (hex_color >> 8) & 0xFF, hex_color & 0xFF
  )


class Palette:
  subtle = hex_to_ansi_fg(0x6E6A86)
  accent = hex_to_ansi_fg(0xF6C177)
  logger = hex_to_ansi_fg(0x7D6B95)

  levels: dict[str, tuple[str, str]] = {
    "debug": (hex_to_ansi_fg(0x908CAA), "dbug"),
    "info": (hex_to_ansi_fg(0x9CCFD8), "info"),
    "warning": (hex_to_ansi_fg(0xF6C177), "warn"),
    "error": (hex_to_ansi_fg(0xEB6F92), "eror"),
    "exception": (hex_to_ansi_fg(0xEB6F92), "exc!"),
    "critical": (hex_to_ansi_fg(0xEB6F92), "crit"),
  }


def _rounded(value: Any, digits: int) -> Any:
  match value:
    case bool():
      return value
    case float():
      return round(value, digits)
    case list() | tuple():
      return [_rounded(item, digits) for item in value]
    case dict():
      return {key: _rounded(item, digits) for key, item in value.items()}
    case _:
      return value


def round_floats(digits: int = 3) -> Processor:
  """Processor rounding floats, including ones nested in lists and dicts."""

  def processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    return {key: _rounded(value, digits) for key, value in event_dict.items()}

  return processor


def add_uptime(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
  """Stamp the event with the time since process start, as +[h:][m:]s.mmm."""
  minutes, seconds = divmod(time.monotonic() - _STARTED_AT, 60)
  hours, minutes = divmod(int(minutes), 60)
  if hours:
    event_dict["uptime"] = f"+{hours:02d}:{minutes:02d}:{seconds:06.3f}"
  elif minutes:
    event_dict["uptime"] = f"+{minutes:02d}:{seconds:06.3f}"
  else:
    event_dict["uptime"] = f"+{seconds:06.3f}"
  return event_dict


def compact_level(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
  """Replace the level name with a colored four letter tag."""
  style = Palette.levels.get(event_dict.get("level", ""))
  if style is not None:
    color, tag = style
    event_dict["level"] = f"[{color}{tag}{RESET_ALL}]"
  return event_dict


def _column(key: str, value_style: str, key_style: str | None = None, **kwargs: Any) -> Column:
  return Column(
    key,
    KeyValueColumnFormatter(
      key_style=key_style,
      value_style=value_style,
      reset_style=RESET_ALL,
      value_repr=str,
      **kwargs,
    ),
  )


def console_renderer() -> ConsoleRenderer:
  logger_column = {"prefix": "[", "postfix": "]"}
  return ConsoleRenderer(
    colors=True,
    columns=[
      # Remaining key/value pairs
      _column("", Palette.accent, key_style=Palette.subtle),
      _column("uptime", DIM),
      _column("level", ""),
      _column("logger_name", Palette.logger, **logger_column),
      _column("logger", Palette.logger, **logger_column),
      _column("event", BRIGHT, width=30),
    ],
  )


def setup_logging(
  level: str = "INFO", json_output: bool = False, correlation_id: str | None = None
) -> None:
  """
  Route structlog and stdlib logging through a single handler on the root logger.

  :param level: Root log level name.
  :param json_output: Emit one JSON object per line instead of the console layout.
  :param correlation_id: Bound to every event when set, for tracing across processes.
  """
  processors: list[Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.stdlib.ExtraAdder(),
    round_floats(3),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
  ]
  if correlation_id:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

  renderer: Processor
  if json_output:
    processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    renderer = structlog.processors.JSONRenderer()
  else:
    processors += [compact_level, add_uptime]
    renderer = console_renderer()

  structlog.configure(
    processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
  )

  handler = logging.StreamHandler()
  handler.setFormatter(
    structlog.stdlib.ProcessorFormatter(
      foreign_pre_chain=processors,
      processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
  )
  root = logging.getLogger()
  root.handlers[:] = [handler]
  root.setLevel(level)

  for name in _QUIET_LIBRARIES:
    library_logger = logging.getLogger(name)
    library_logger.handlers.clear()
    library_logger.setLevel(logging.WARNING)
    library_logger.propagate = True


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
  """Get a structured logger, optionally bound to initial key/values."""
  return structlog.get_logger(name, **initial_values)
