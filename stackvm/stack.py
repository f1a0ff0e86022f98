from .errors import StackUnderflow
from .opcodes import to_word


class OperandStack:
    def __init__(self):
        self.items = []

    def __len__(self):
        return len(self.items)

    @property
    def depth(self):
        return len(self.items)

    def push(self, value):
        self.items.append(to_word(value))

    def pop(self, op=None):
        if not self.items:
            raise StackUnderflow(op or "pop")
        return self.items.pop()

    def peek(self, n=0):
        """Return the n-th word from the top (0 is the top), or None if the stack is shorter."""
        if n < len(self.items):
            return self.items[-1 - n]
        return None

    def clear(self):
        self.items.clear()
