from array import array

from .errors import BoundsViolation
from .opcodes import to_word

# 1000 KiB worth of words, same as the original machine
DEFAULT_MEMORY_SIZE = 1024 * 1000


class Memory:
    # Fixed number of signed 32-bit words. Zero is NOP, so fresh memory is all NOPs.
    def __init__(self, size=DEFAULT_MEMORY_SIZE):
        if size <= 0:
            raise ValueError(f"memory size must be positive, got {size}")
        self.size = size
        self.words = array('i', [0]) * size

    def __len__(self):
        return self.size

    def reset(self):
        self.words = array('i', [0]) * self.size

    def check(self, address, op=None):
        if not 0 <= address < self.size:
            raise BoundsViolation(op or "memory access", address)

    def read(self, address, op=None):
        self.check(address, op)
        return self.words[address]

    def write(self, address, value, op=None):
        self.check(address, op)
        self.words[address] = to_word(value)
