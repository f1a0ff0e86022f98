from .channel import Channel
from .compiler import CodeGenerator, compile_source
from .errors import BoundsViolation, CompileError, MachineError, StackUnderflow
from .memory import DEFAULT_MEMORY_SIZE, Memory
from .opcodes import Op, decode, opcode_name, to_word
from .program import ProgramBuilder, halt_idiom, hello_world
from .stack import OperandStack
from .trace import LoggingTracer, StreamTracer, TraceEvent, format_event
from .vm import Machine, run_program

__version__ = "0.1.0"
