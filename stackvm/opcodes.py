# -----------------------------------------------------------------------------
# The instruction set (one opcode per 32-bit word)
# -----------------------------------------------------------------------------
from enum import IntEnum

WORD_BITS = 32
WORD_SIZE = WORD_BITS // 8
WORD_MIN = -(1 << (WORD_BITS - 1))
WORD_MAX = (1 << (WORD_BITS - 1)) - 1


class Op(IntEnum):
    NOP = 0x00   # do nothing
    ADD = 0x01   # pop a, pop b, push a + b
    SUB = 0x02   # pop a, pop b, push a - b
    AND = 0x03   # pop a, pop b, push a & b
    OR = 0x04    # pop a, pop b, push a | b
    XOR = 0x05   # pop a, pop b, push a ^ b
    NOT = 0x06   # pop a, push !a
    IN = 0x07    # push one byte read from input (-1 at end of stream)
    OUT = 0x08   # pop a, write its low byte to output
    LOAD = 0x09  # pop a, push word at address a
    STOR = 0x0A  # pop a, pop b, write b to address a
    JMP = 0x0B   # pop a, goto a (goto self halts)
    JZ = 0x0C    # pop a, if a == 0 goto a
    PUSH = 0x0D  # push next word
    DUP = 0x0E   # duplicate top of stack


def to_word(n):
    """Wrap an arbitrary int into the signed 32-bit range."""
    n &= 0xFFFFFFFF
    return n - 0x100000000 if n & 0x80000000 else n


def decode(word):
    # Anything outside the table executes as a NOP.
    try:
        return Op(word)
    except ValueError:
        return Op.NOP


def opcode_name(word):
    return decode(word).name


def opcode_table():
    """(value, name) pairs in opcode order, for help output."""
    return [(op.value, op.name) for op in Op]
