"""
Tests for the opcode table, memory, operand stack and I/O channel.
"""

import io

import pytest

from stackvm.channel import EOF_MARK, Channel
from stackvm.errors import BoundsViolation, StackUnderflow
from stackvm.memory import DEFAULT_MEMORY_SIZE, Memory
from stackvm.opcodes import Op, decode, opcode_name, opcode_table, to_word
from stackvm.stack import OperandStack


class TestOpcodes:

    def test_values_follow_instruction_order(self):
        names = [name for _, name in opcode_table()]
        assert names == ["NOP", "ADD", "SUB", "AND", "OR", "XOR", "NOT", "IN",
                         "OUT", "LOAD", "STOR", "JMP", "JZ", "PUSH", "DUP"]
        assert [value for value, _ in opcode_table()] == list(range(15))

    def test_every_opcode_has_its_own_name(self):
        assert opcode_name(Op.PUSH) == "PUSH"
        assert opcode_name(Op.DUP) == "DUP"
        assert opcode_name(11) == "JMP"

    @pytest.mark.parametrize("word", [15, 255, -1, 0x7FFFFFFF])
    def test_unknown_words_decode_as_nop(self, word):
        assert decode(word) is Op.NOP
        assert opcode_name(word) == "NOP"

    @pytest.mark.parametrize("n, expected", [
        (0, 0),
        (0x7FFFFFFF, 0x7FFFFFFF),
        (0x80000000, -0x80000000),
        (0xFFFFFFFF, -1),
        (-0x80000001, 0x7FFFFFFF),
        (1 << 40, 0),
    ])
    def test_to_word(self, n, expected):
        assert to_word(n) == expected


class TestMemory:

    def test_default_size(self):
        assert DEFAULT_MEMORY_SIZE == 1024000
        assert len(Memory()) == 1024000

    def test_starts_as_nops(self):
        mem = Memory(16)
        assert all(mem.read(a) == Op.NOP for a in range(16))

    def test_read_write(self):
        mem = Memory(16)
        mem.write(15, -42)
        assert mem.read(15) == -42

    def test_write_wraps_value(self):
        mem = Memory(4)
        mem.write(0, 0xFFFFFFFF)
        assert mem.read(0) == -1

    @pytest.mark.parametrize("addr", [-1, 16, 17])
    def test_strict_bounds(self, addr):
        mem = Memory(16)
        with pytest.raises(BoundsViolation) as excinfo:
            mem.read(addr, "LOAD")
        assert excinfo.value.op == "LOAD"
        assert str(excinfo.value) == "LOAD out of bounds"
        with pytest.raises(BoundsViolation):
            mem.write(addr, 1)

    def test_reset_zero_fills(self):
        mem = Memory(8)
        mem.write(3, 9)
        mem.reset()
        assert mem.read(3) == 0
        assert len(mem) == 8

    def test_rejects_empty_memory(self):
        with pytest.raises(ValueError):
            Memory(0)


class TestOperandStack:

    def test_lifo(self):
        s = OperandStack()
        s.push(1)
        s.push(2)
        assert s.depth == 2
        assert s.pop() == 2
        assert s.pop() == 1
        assert len(s) == 0

    def test_push_wraps(self):
        s = OperandStack()
        s.push(0x80000000)
        assert s.pop() == -0x80000000

    def test_peek(self):
        s = OperandStack()
        assert s.peek() is None
        s.push(5)
        s.push(6)
        assert s.peek(0) == 6
        assert s.peek(1) == 5
        assert s.peek(2) is None

    def test_pop_empty_raises(self):
        with pytest.raises(StackUnderflow) as excinfo:
            OperandStack().pop("OUT")
        assert excinfo.value.op == "OUT"

    def test_clear(self):
        s = OperandStack()
        s.push(1)
        s.clear()
        assert s.depth == 0


class TestChannel:

    def test_read_bytes_then_eof(self):
        ch = Channel(io.BytesIO(b"hi"), io.BytesIO())
        assert ch.read_byte() == ord('h')
        assert ch.read_byte() == ord('i')
        assert ch.read_byte() == EOF_MARK
        assert ch.read_byte() == -1

    def test_write_low_byte(self):
        out = io.BytesIO()
        ch = Channel(io.BytesIO(), out)
        ch.write_byte(ord('a'))
        ch.write_byte(0x1FF)
        ch.write_byte(-2)
        ch.flush()
        assert out.getvalue() == b"a\xff\xfe"

    def test_defaults_to_empty_input(self):
        assert Channel().read_byte() == EOF_MARK
