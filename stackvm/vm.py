# -----------------------------------------------------------------------------
# The Virtual Machine (one 32-bit word per instruction, operand stack)
# -----------------------------------------------------------------------------
import logging
import sys

from .channel import Channel
from .errors import MachineError
from .memory import DEFAULT_MEMORY_SIZE, Memory
from .opcodes import Op, decode
from .stack import OperandStack
from .trace import TraceEvent

logger = logging.getLogger(__name__)

DEFAULT_STRIDE = 1


class Machine:
    def __init__(self, memory_size=DEFAULT_MEMORY_SIZE, stride=DEFAULT_STRIDE,
                 channel=None, tracer=None):
        if stride <= 0:
            raise ValueError(f"stride must be positive, got {stride}")
        self.memory = Memory(memory_size)
        self.stack = OperandStack()
        self.channel = channel if channel is not None else Channel()
        self.stride = stride
        self.tracer = tracer
        self.ip = 0
        self.halted = False

    def reset(self):
        self.memory.reset()
        self.stack.clear()
        self.ip = 0
        self.halted = False

    def next(self):
        self.ip += self.stride
        # running off the end wraps around to address 0
        if self.ip >= len(self.memory):
            self.ip = 0

    def load(self, word):
        self.memory.write(self.ip, word)
        self.next()

    def load_program(self, program):
        # program is a list of words, laid out `stride` addresses apart from ip
        program = list(program)
        last = self.ip + (len(program) - 1) * self.stride
        if program and last >= len(self.memory):
            raise ValueError(f"program of {len(program)} words ends at address {last}, "
                             f"past the end of {len(self.memory)} words of memory")
        for word in program:
            self.load(word)
        logger.debug("loaded %d words, next free address %d", len(program), self.ip)

    def init(self):
        self.ip = 0
        self.halted = False

    def fetch(self):
        return decode(self.memory.read(self.ip))

    def trace(self, op):
        self.tracer(TraceEvent(
            ip=self.ip,
            op=op,
            depth=self.stack.depth,
            top=self.stack.peek(0),
            second=self.stack.peek(1),
        ))

    def execute(self, op):
        """Execute one decoded instruction. Returns False once the machine halts."""
        stack = self.stack
        name = op.name

        if op == Op.ADD:
            stack.push(stack.pop(name) + stack.pop(name))
        elif op == Op.SUB:
            a = stack.pop(name)
            b = stack.pop(name)
            stack.push(a - b)
        elif op == Op.AND:
            stack.push(stack.pop(name) & stack.pop(name))
        elif op == Op.OR:
            stack.push(stack.pop(name) | stack.pop(name))
        elif op == Op.XOR:
            stack.push(stack.pop(name) ^ stack.pop(name))
        elif op == Op.NOT:
            stack.push(1 if stack.pop(name) == 0 else 0)
        elif op == Op.IN:
            stack.push(self.channel.read_byte())
        elif op == Op.OUT:
            self.channel.write_byte(stack.pop(name))
        elif op == Op.LOAD:
            a = stack.pop(name)
            stack.push(self.memory.read(a, name))
        elif op == Op.STOR:
            a = stack.pop(name)
            b = stack.pop(name)
            self.memory.write(a, b, name)
        elif op == Op.JMP:
            a = stack.pop(name)
            self.memory.check(a, name)
            # jumping to the current address is how programs halt
            if a == self.ip:
                self.halted = True
                return False
            self.ip = a
            return True
        elif op == Op.JZ:
            # the popped value is both the condition and the target
            a = stack.pop(name)
            if a != 0:
                self.next()
            else:
                self.memory.check(a, name)
                self.ip = a
            return True
        elif op == Op.PUSH:
            self.next()
            stack.push(self.memory.read(self.ip, name))
        elif op == Op.DUP:
            a = stack.pop(name)
            stack.push(a)
            stack.push(a)
        # NOP and anything unrecognised fall through to here
        self.next()
        return True

    def step(self):
        if self.halted:
            return False
        op = self.fetch()
        if self.tracer is not None:
            self.trace(op)
        return self.execute(op)

    def run(self):
        """Run until the program halts. Returns exit status 0; fatal errors raise MachineError."""
        steps = 0
        try:
            while self.step():
                steps += 1
        finally:
            self.channel.flush()
        logger.debug("halted at ip=%d after %d instructions", self.ip, steps)
        return 0


def run_program(program, fin=None, fout=None, diag=None, tracer=None,
                memory_size=DEFAULT_MEMORY_SIZE, stride=DEFAULT_STRIDE):
    """Load `program` into a fresh machine, run it and return the process exit status.

    The outcome ("HALT" or the fatal error) is reported on `diag` (stderr by default).
    """
    diag = diag if diag is not None else sys.stderr
    machine = Machine(memory_size=memory_size, stride=stride,
                      channel=Channel(fin, fout), tracer=tracer)
    machine.reset()
    machine.load_program(program)
    machine.init()
    try:
        status = machine.run()
    except MachineError as exc:
        logger.info("machine stopped at ip=%d: %s", machine.ip, exc)
        print(exc, file=diag)
        return exc.status
    print("HALT", file=diag)
    return status
