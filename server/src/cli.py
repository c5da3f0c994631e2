from __future__ import annotations

import argparse
import logging
import logging.config
import os
import sys
import time
from copy import deepcopy
from typing import Any, Dict, Iterable, Optional

import uvicorn
from pydantic import ValidationError
from uvicorn.config import LOGGING_CONFIG

from server.src.core.logging import get_logger

from .config import Settings
from .core.app import create_app


logger = get_logger(__name__)

ASCTIME_TOKEN = "%(asctime)s.%(msecs)03d"
DATEFMT = "%Y-%m-%d %H:%M:%S"


def _sanitize_logger_override_pair(name: str, level: str) -> tuple[str, str] | None:
    """Strip quotes/whitespace and validate the level.

    Returns (name, LEVEL) on success or None on invalid input.
    """
    name = name.strip().strip('"').strip("'")
    level = level.strip().strip('"').strip("'").upper()
    if not name or not isinstance(logging.getLevelName(level), int):
        logger.warning("Skipping invalid log level '%s' for logger '%s'", level, name)
        return None
    return name, level


def apply_logger_override(log_config: dict, raw: str) -> None:
    """Parse a raw NAME:LEVEL string and set it on `log_config` if valid."""
    if ":" not in raw:
        return
    name, level = raw.rsplit(":", 1)
    sanitized = _sanitize_logger_override_pair(name, level)
    if sanitized is None:
        return
    name, level = sanitized
    log_config.setdefault("loggers", {}).setdefault(name, {})["level"] = level


def _normalize_format(fmt_str: str) -> str:
    """Rewrite a formatter so lines start with a UTC timestamp and carry the logger name."""
    if "%(message)s" in fmt_str:
        if "%(asctime)s" not in fmt_str and ASCTIME_TOKEN not in fmt_str:
            fmt_str = ASCTIME_TOKEN + " " + fmt_str
        if "%(name)s" not in fmt_str:
            fmt_str = fmt_str.replace("%(message)s", "%(name)s: %(message)s")
        return fmt_str

    # uvicorn's access formatter has no %(message)s; put timestamp, level and
    # name in front of whatever follows the level token.
    level_token = "%(levelprefix)s" if "%(levelprefix)s" in fmt_str else "%(levelname)s"
    if level_token not in fmt_str:
        return fmt_str
    before, after = fmt_str.split(level_token, 1)
    after = after.lstrip()
    prefix = ASCTIME_TOKEN + " " + level_token + " %(name)s: "
    return prefix + before.rstrip() + (" " + after if after else "")


def build_log_config(
    level: str,
    env_overrides: str = "",
    cli_overrides: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """Return a dictConfig mapping derived from uvicorn's default logging setup.

    `env_overrides` is a comma-separated NAME:LEVEL list (LOG_OVERRIDES);
    `cli_overrides` are applied afterwards and take precedence.
    """
    log_config = deepcopy(LOGGING_CONFIG)
    desired_level = level.upper()

    log_config.setdefault("root", {"level": desired_level, "handlers": ["default"]})
    log_config.setdefault("loggers", {})
    log_config["root"]["level"] = desired_level
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger_cfg = log_config["loggers"].setdefault(
            logger_name,
            {
                "handlers": ["default"],
                "level": desired_level,
                "propagate": logger_name != "uvicorn.access",
            },
        )
        logger_cfg["level"] = desired_level

    for fmt in log_config.get("formatters", {}).values():
        fmt_str = fmt.get("fmt") if isinstance(fmt, dict) else None
        if not fmt_str:
            continue
        if not (("%(asctime)s" in fmt_str or ASCTIME_TOKEN in fmt_str) and "%(name)s" in fmt_str):
            fmt["fmt"] = _normalize_format(fmt_str)
        fmt.setdefault("datefmt", DATEFMT)

    for raw in [p.strip() for p in env_overrides.split(",") if p.strip()]:
        apply_logger_override(log_config, raw)
    for raw in cli_overrides or []:
        apply_logger_override(log_config, raw)

    return log_config


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Aggregate upstream node health into a single HTTP status")
    parser.add_argument("--base-url", dest="base_api_url", help="Upstream base URL (overrides BASE_API_URL)")
    parser.add_argument("--host", dest="host", help="API host binding override")
    parser.add_argument("--port", dest="port", type=int, help="API port binding override")
    parser.add_argument(
        "--poll-interval-ms", dest="poll_interval_ms", type=int, help="Poll interval in milliseconds",
    )
    parser.add_argument(
        "--ignore-group",
        dest="ignore_groups",
        action="append",
        default=[],
        help="Leave nodes of this group out of the aggregate status. Repeat for multiple groups.",
    )
    parser.add_argument(
        "--log-level", dest="log_level", help="Override the log level (info, debug, ...)",
    )
    parser.add_argument(
        "--log",
        dest="log_overrides",
        action="append",
        default=[],
        help="Per-logger override in NAME:LEVEL form (repeatable). CLI overrides take precedence over LOG_OVERRIDES.",
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    overrides: Dict[str, Any] = {}

    if args.base_api_url:
        overrides["base_api_url"] = args.base_api_url
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.poll_interval_ms:
        overrides["poll_interval_ms"] = args.poll_interval_ms
    if args.ignore_groups:
        overrides["ignore_groups"] = args.ignore_groups
    if args.log_level:
        overrides["log_level"] = args.log_level

    # Validate through the constructor so CLI values get the same checks as env values.
    return Settings(**overrides)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)

    # Use UTC for asctime in log output
    logging.Formatter.converter = time.gmtime

    try:
        settings = build_settings(args)
    except ValidationError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Invalid configuration (BASE_API_URL is required in .env.local or the environment): %s", exc)
        sys.exit(1)

    log_config = build_log_config(
        settings.log_level,
        os.getenv("LOG_OVERRIDES", ""),
        args.log_overrides,
    )
    logging.config.dictConfig(log_config)

    logger.info("Server listening on %s:%s", settings.host, settings.port)
    logger.info("Configuration:")
    for key, value in settings.describe().items():
        logger.info("  - %s: %s", key, value)

    app = create_app(settings)

    try:
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level,
            log_config=log_config,
        )
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")


if __name__ == "__main__":
    main()
