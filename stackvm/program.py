# -----------------------------------------------------------------------------
# Building programs: word lists with addresses worked out for a given stride
# -----------------------------------------------------------------------------
from .opcodes import Op, WORD_SIZE


class ProgramBuilder:
    def __init__(self, stride=1):
        self.stride = stride
        self.words = []

    def address(self, index=None):
        """Address of word `index` once loaded at 0 (default: the next word to be emitted)."""
        if index is None:
            index = len(self.words)
        return index * self.stride

    def emit(self, *words):
        for word in words:
            self.words.append(int(word))
        return self

    def push(self, value):
        return self.emit(Op.PUSH, value)

    def out(self, value):
        return self.push(value).emit(Op.OUT)

    def halt(self):
        # PUSH <address of the JMP>; JMP
        return self.push(self.address(len(self.words) + 2)).emit(Op.JMP)

    def build(self):
        return list(self.words)


def hello_world(stride=1):
    """The built-in demo: writes "Hello world!\\n" and halts."""
    p = ProgramBuilder(stride)
    p.out(ord('H')).out(ord('e'))
    p.push(ord('l')).emit(Op.DUP, Op.OUT, Op.OUT)
    for ch in "o world!\n":
        p.out(ord(ch))
    p.halt()
    return p.build()


def halt_idiom(stride=1):
    """Help text describing how a program stops."""
    jmp_at = 2 * stride
    return "\n".join([
        "To halt program, jump to current position:",
        "",
        f"0x0 PUSH 0x{jmp_at:x}",
        f"0x{jmp_at:x} JMP",
        "",
        f"Word size is {WORD_SIZE} bytes, instruction stride is {stride}",
    ])
