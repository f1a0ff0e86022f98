import io

import pytest

from stackvm.channel import Channel
from stackvm.program import ProgramBuilder
from stackvm.vm import Machine


class Run:
    def __init__(self, machine, status, output):
        self.machine = machine
        self.status = status
        self.output = output

    @property
    def stack(self):
        return list(self.machine.stack.items)


def start(words, stride=1, data=b"", memory_size=256, tracer=None):
    out = io.BytesIO()
    machine = Machine(memory_size=memory_size, stride=stride,
                      channel=Channel(io.BytesIO(data), out), tracer=tracer)
    machine.reset()
    machine.load_program(words)
    machine.init()
    return machine, out


def execute(words, **kwargs):
    machine, out = start(words, **kwargs)
    status = machine.run()
    return Run(machine, status, out.getvalue())


@pytest.fixture
def builder():
    return ProgramBuilder()
