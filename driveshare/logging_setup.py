import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

# trace id contextvar
TRACE_ID_CTX: ContextVar[str] = ContextVar("trace_id", default=None)


class TraceIdFilter(logging.Filter):
    def filter(self, record):
        record.trace_id = TRACE_ID_CTX.get(None)
        return True


def setup_logging(level="INFO"):
    root = logging.getLogger()
    handler = logging.StreamHandler(sys.stdout)
    fmt = JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s")
    handler.setFormatter(fmt)
    handler.addFilter(TraceIdFilter())
    root.setLevel(level)
    root.handlers = []
    root.addHandler(handler)
