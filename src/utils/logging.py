"""Structured logging setup using structlog.

Uses a **dual-renderer pattern**: one shared processor chain (context vars,
log level, timestamps, stack info) feeds either a coloured ConsoleRenderer
for local runs or a JSONRenderer for scheduled/production runs.  The
renderer follows the ``APP_ENV`` environment variable (default
``"development"``) unless ``json_output`` forces JSON.

Standard-library ``logging`` is routed through the same formatter so httpx
and aiosqlite messages look like ours.

Batch runs bind their ``run_id`` and id range with :func:`bind_run_context`
so every line logged during a run carries them.
"""

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog with environment-appropriate rendering.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output. When False, uses console rendering
                     unless APP_ENV is ``production``.

    Returns:
        A configured structlog BoundLogger.
    """
    app_env = os.environ.get("APP_ENV", "development")
    use_json = json_output or app_env == "production"

    # Shared processors run for both structlog events and stdlib records
    # (httpx, aiosqlite). Order matters: each one sees the event dict the
    # previous one produced.
    shared_processors: list[structlog.types.Processor] = [
        # run_id / start_id / end_id bound by bind_run_context.
        structlog.contextvars.merge_contextvars,
        # "level" key so JSON lines can be filtered by severity.
        structlog.processors.add_log_level,
        # Renders stack_info=True into a "stack" string.
        structlog.processors.StackInfoRenderer(),
        # logger.exception() outside an except block still gets exc_info.
        structlog.dev.set_exc_info,
        # ISO-8601 timestamps line up with the run log's started_at column.
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    # Exactly one renderer closes the chain. JSON for cron and CI output,
    # console for a person at a terminal (colours only on a real tty).
    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            renderer,
        ],
        # Level filtering happens in the bound logger itself, so a debug
        # call below the threshold never builds an event dict.
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # Loggers are frozen on first use; call this before any module
        # logs, which is why the CLI configures logging first.
        cache_logger_on_first_use=True,
    )

    # Bridge for third-party libraries that log through stdlib logging:
    # their records get the same processors and renderer as our events.
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            # Drop the _record/_from_structlog bookkeeping keys.
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    # Replace rather than append, so calling this twice (tests, repeated
    # CLI invocations in one process) does not print every line twice.
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    # httpx logs every request at INFO; one line per page is too chatty.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return structlog.get_logger()


@contextmanager
def bind_run_context(**values: object) -> Iterator[None]:
    """Bind *values* to every log line emitted inside the block.

    Example:
        with bind_run_context(run_id=7, start_id=11, end_id=20):
            logger.info("item_saved", item_id=11)  # carries run_id etc.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield
