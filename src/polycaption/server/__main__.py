import argparse
import asyncio
import os
from pathlib import Path

from polycaption.common import get_logger, setup_logging


def get_env_or_default(env_var, default, var_type: type = str):
  """Get environment variable with type conversion and default fallback."""
  value = os.getenv(env_var)
  if value is None:
    return default

  if var_type is bool:
    return value.lower() in ("true", "1", "yes", "on")
  elif var_type is int:
    try:
      return int(value)
    except ValueError:
      return default
  else:
    return value


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="polycaption-server",
    description="Live caption server: streaming transcription with translation, plus a batch API.",
  )
  parser.add_argument(
    "--config",
    type=str,
    default=get_env_or_default("POLYCAPTION_CONFIG", None),
    help="Path to a YAML configuration file. Defaults apply when omitted. "
    "(Env: POLYCAPTION_CONFIG)",
  )
  parser.add_argument(
    "--host",
    type=str,
    default=get_env_or_default("POLYCAPTION_HOST", None),
    help="Interface both listeners bind to. (Env: POLYCAPTION_HOST)",
  )
  parser.add_argument(
    "--port",
    "-p",
    type=int,
    default=get_env_or_default("POLYCAPTION_PORT", None, int),
    help="Websocket port for the caption channel. (Env: POLYCAPTION_PORT)",
  )
  parser.add_argument(
    "--http_port",
    type=int,
    default=get_env_or_default("POLYCAPTION_HTTP_PORT", None, int),
    help="Port for the batch HTTP API. (Env: POLYCAPTION_HTTP_PORT)",
  )
  parser.add_argument(
    "--json_logs",
    action="store_true",
    default=get_env_or_default("JSON_LOGS", False, bool),
    help="Output logs in JSON format. (Env: JSON_LOGS)",
  )
  parser.add_argument(
    "--correlation_id",
    type=str,
    default=get_env_or_default("CORRELATION_ID", None),
    help="Correlation ID for log tracing. (Env: CORRELATION_ID)",
  )
  return parser


async def main(argv: list[str] | None = None):
  args = build_parser().parse_args(argv)

  log_level = os.getenv("LOG_LEVEL", "INFO").upper()
  setup_logging(level=log_level, json_output=args.json_logs, correlation_id=args.correlation_id)
  logger = get_logger("main")

  from polycaption.server.config import PolycaptionConfig, load_config_from_file
  from polycaption.server.server import CaptionServer

  try:
    config = load_config_from_file(Path(args.config)) if args.config else PolycaptionConfig()
  except ValueError as e:
    # pydantic's ValidationError (missing file, bad values) is a ValueError too
    logger.error("Configuration validation failed", error=str(e), config_path=args.config)
    raise

  overrides = {
    key: value
    for key, value in (("host", args.host), ("port", args.port), ("http_port", args.http_port))
    if value is not None
  }
  if overrides:
    config = config.model_copy(update={"server": config.server.model_copy(update=overrides)})

  config.pretty_print()
  logger.info(
    "Starting Polycaption Server",
    port=config.server.port,
    http_port=config.server.http_port,
    config_path=args.config,
  )

  await CaptionServer(config).run()


def run() -> None:
  try:
    asyncio.run(main())
  except KeyboardInterrupt:
    pass


if __name__ == "__main__":
  run()
