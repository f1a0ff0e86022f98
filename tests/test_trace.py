"""
Tests for instruction tracing.
"""

import io
import logging

from stackvm.opcodes import Op
from stackvm.program import ProgramBuilder
from stackvm.trace import LoggingTracer, StreamTracer, TraceEvent, format_event
from tests.conftest import execute


def test_format_event_with_empty_stack():
    event = TraceEvent(ip=0, op=Op.PUSH, depth=0, top=None, second=None)
    assert format_event(event) == "ip=0 op=PUSH stack(0) = 0, 0"


def test_format_event_shows_top_then_second():
    event = TraceEvent(ip=8, op=Op.ADD, depth=3, top=2, second=-1)
    assert format_event(event) == "ip=8 op=ADD stack(3) = 2, -1"


def test_tracer_sees_every_instruction_before_it_runs():
    events = []
    prog = ProgramBuilder().push(4).push(5).emit(Op.ADD).halt().build()
    execute(prog, tracer=events.append)
    assert [e.op for e in events] == [Op.PUSH, Op.PUSH, Op.ADD, Op.PUSH, Op.JMP]
    assert [e.ip for e in events] == [0, 2, 4, 5, 7]
    add = events[2]
    assert (add.depth, add.top, add.second) == (2, 5, 4)


def test_stream_tracer_writes_lines():
    stream = io.StringIO()
    execute(ProgramBuilder().halt().build(), tracer=StreamTracer(stream))
    assert stream.getvalue().splitlines() == [
        "ip=0 op=PUSH stack(0) = 0, 0",
        "ip=2 op=JMP stack(1) = 2, 0",
    ]


def test_tracing_does_not_touch_program_output():
    run = execute(ProgramBuilder().out(ord('q')).halt().build(), tracer=StreamTracer(io.StringIO()))
    assert run.output == b"q"


def test_logging_tracer(caplog):
    logger = logging.getLogger("stackvm.test.trace")
    with caplog.at_level(logging.DEBUG, logger="stackvm.test.trace"):
        execute(ProgramBuilder().halt().build(), tracer=LoggingTracer(logger))
    messages = [r.getMessage() for r in caplog.records if r.name == "stackvm.test.trace"]
    assert messages == [
        "ip=0 op=PUSH stack(0) = 0, 0",
        "ip=2 op=JMP stack(1) = 2, 0",
    ]
