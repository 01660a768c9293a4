"""
Loguru setup for the collector daemon.

Every line carries the deployment name and collector index so logs from
several collectors can be merged. Debug scopes turn on DEBUG output for
single modules (``poller``, ``historian.datadog``) while the rest of the
process stays at the configured level.
"""

from __future__ import annotations

import sys

from loguru import logger

from .config import CollectorSettings

PACKAGE = "varzcollector"

LOG_FORMAT = (
    "{time:YYYY-MM-DDTHH:mm:ss.SSSZZ} {level: <7} "
    "{extra[deployment]}/{extra[index]} {message}"
)


def scope_module(scope: str) -> str:
    scope = scope.strip()
    if scope == PACKAGE or scope.startswith(f"{PACKAGE}."):
        return scope
    return f"{PACKAGE}.{scope}"


def level_filter(level: str, debug_scopes: tuple[str, ...] = ()) -> dict[str, str]:
    """Per-module minimum levels in loguru's dict-filter form."""
    levels = {"": level.upper()}
    for scope in debug_scopes:
        if scope.strip():
            levels[scope_module(scope)] = "DEBUG"
    return levels


def configure_logging(
    settings: CollectorSettings, *, verbose: bool = False, colorize: bool = False
) -> list[int]:
    """Replace all loguru sinks with the collector's stderr (and file) sinks."""
    level = "DEBUG" if verbose else settings.logging.level
    levels = level_filter(level, settings.logging.debug_scopes)

    handlers: list[dict] = [
        {
            "sink": sys.stderr,
            "level": "TRACE",
            "format": LOG_FORMAT,
            "filter": levels,
            "colorize": colorize,
        }
    ]
    if settings.logging.file:
        handlers.append(
            {
                "sink": settings.logging.file,
                "level": "TRACE",
                "format": LOG_FORMAT,
                "filter": levels,
            }
        )

    return logger.configure(
        handlers=handlers,
        extra={"deployment": settings.deployment_name, "index": settings.index},
    )
