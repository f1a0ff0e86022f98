import logging
import sys
from dataclasses import dataclass
from typing import Optional

from .opcodes import Op


@dataclass(frozen=True)
class TraceEvent:
    ip: int
    op: Op
    depth: int
    top: Optional[int]
    second: Optional[int]


def format_event(event):
    top = event.top if event.top is not None else 0
    second = event.second if event.second is not None else 0
    return f"ip={event.ip} op={event.op.name} stack({event.depth}) = {top}, {second}"


class StreamTracer:
    """Writes one line per executed instruction to a text stream (stderr by default)."""

    def __init__(self, stream=None):
        self.stream = stream

    def __call__(self, event):
        stream = self.stream if self.stream is not None else sys.stderr
        print(format_event(event), file=stream)


class LoggingTracer:
    def __init__(self, logger=None, level=logging.DEBUG):
        self.logger = logger or logging.getLogger("stackvm.trace")
        self.level = level

    def __call__(self, event):
        if self.logger.isEnabledFor(self.level):
            self.logger.log(self.level, "%s", format_event(event))
