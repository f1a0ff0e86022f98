class MachineError(Exception):
    """A fatal machine condition. The loop stops and the process exits with `status`."""
    status = 1

    def __init__(self, op, message):
        super().__init__(f"{op} {message}")
        self.op = op


class BoundsViolation(MachineError):
    def __init__(self, op, address):
        super().__init__(op, "out of bounds")
        self.address = address


class StackUnderflow(MachineError):
    def __init__(self, op):
        super().__init__(op, "stack underflow")


class CompileError(Exception):
    pass
