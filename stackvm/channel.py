import io

EOF_MARK = -1


class Channel:
    """One byte source and one byte sink, both binary streams."""

    def __init__(self, fin=None, fout=None):
        self.fin = fin if fin is not None else io.BytesIO()
        self.fout = fout if fout is not None else io.BytesIO()

    def read_byte(self):
        # Blocks until a byte arrives or the stream ends.
        data = self.fin.read(1)
        if not data:
            return EOF_MARK
        return data[0]

    def write_byte(self, value):
        self.fout.write(bytes([value & 0xFF]))

    def flush(self):
        flush = getattr(self.fout, "flush", None)
        if flush is not None:
            flush()
