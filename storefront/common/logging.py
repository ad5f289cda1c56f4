import logging
from typing import Literal

from opentelemetry import trace

from .config import ServiceSettings


_NO_TRACE = "-"
_LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | trace_id=%(trace_id)s span_id=%(span_id)s | %(message)s"
)


class TraceContextFilter(logging.Filter):
    """Stamp every record with the ids of the active OpenTelemetry span, or ``-``."""

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")
        else:
            record.trace_id = _NO_TRACE
            record.span_id = _NO_TRACE
        return True


def configure_logging(settings: ServiceSettings) -> None:
    """Configure root logging level and format."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = settings.log_level
    logging.basicConfig(level=level, format=_LOG_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    context_filter = next(
        (f for f in root_logger.filters if isinstance(f, TraceContextFilter)),
        None,
    )
    if context_filter is None:
        context_filter = TraceContextFilter()
        root_logger.addFilter(context_filter)
    for handler in root_logger.handlers:
        if not any(isinstance(f, TraceContextFilter) for f in handler.filters):
            handler.addFilter(context_filter)
