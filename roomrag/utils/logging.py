"""structlog setup for roomrag.

One processor chain serves two renderers: JSON lines when ``APP_ENV`` is
``production`` (or ``json_output`` is set), a console renderer otherwise.
Output goes to stderr so the CLI can pipe its stdout.

Tenant identifiers are carried in context variables: inside
:func:`bind_tenant` every event, including those of nested calls, is
tagged with ``org_id`` and ``room_id``.  Standard-library records (httpx,
openai, chromadb) pass through the same chain; those libraries are held
at WARNING unless roomrag itself logs at DEBUG.
"""

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

import structlog

_CHATTY_LIBRARIES = ("httpx", "httpcore", "openai", "chromadb")


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    stream: TextIO | None = None,
) -> structlog.BoundLogger:
    """Install the structlog configuration and bridge stdlib logging into it.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR.
        json_output: Force JSON lines regardless of ``APP_ENV``.
        stream: Destination; stderr when omitted.

    Returns:
        A logger bound to the new configuration.
    """
    level_name = log_level.upper()
    level = logging.getLevelName(level_name)
    out = stream or sys.stderr
    as_json = json_output or os.environ.get("APP_ENV", "development") == "production"

    chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if as_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=out.isatty())

    structlog.configure(
        processors=[*chain, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=out),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *chain,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level_name)

    library_level = logging.DEBUG if level_name == "DEBUG" else logging.WARNING
    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    return structlog.get_logger()


@contextmanager
def bind_tenant(org_id: str | None = None, room_id: str | None = None) -> Iterator[None]:
    """Tag every event logged inside the block with the given tenant ids.

    ``None`` values are not bound.  Do not hold the block open across a
    ``yield`` of an async generator: the bindings belong to the running task.
    """
    ids = {key: value for key, value in (("org_id", org_id), ("room_id", room_id)) if value}
    with structlog.contextvars.bound_contextvars(**ids):
        yield


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger carrying ``logger_name``."""
    return structlog.get_logger(logger_name=name)
