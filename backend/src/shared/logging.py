import logging
import sys

from opentelemetry._logs import set_logger_provider
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, ConsoleLogRecordExporter

from .config import settings

# Root handlers installed by setup_logging, replaced on each call
_installed_handlers: list[logging.Handler] = []


def setup_logging() -> LoggerProvider:
    """Route stdlib logging to OpenTelemetry and to stdout.

    Safe to call more than once: handlers from a previous call are removed
    from the root logger before new ones are attached.
    """
    logger_provider = LoggerProvider()
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(ConsoleLogRecordExporter()))
    set_logger_provider(logger_provider)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    handlers: list[logging.Handler] = [
        LoggingHandler(level=getattr(logging, settings.LOG_LEVEL), logger_provider=logger_provider),
        stream_handler,
    ]

    root = logging.getLogger()
    for handler in _installed_handlers:
        root.removeHandler(handler)
    _installed_handlers[:] = handlers
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(settings.LOG_LEVEL)

    for name in ("uvicorn.access", "botocore", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger_provider


logger = logging.getLogger("node_bootstrap")
