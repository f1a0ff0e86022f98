import argparse
import logging
import sys

from pycparser import c_parser

from .compiler import compile_source
from .errors import CompileError
from .memory import DEFAULT_MEMORY_SIZE
from .opcodes import opcode_table
from .program import halt_idiom, hello_world
from .trace import StreamTracer
from .vm import DEFAULT_STRIDE, run_program

EXIT_USAGE = 2

log = logging.getLogger("stackvm")


def configure_logging(verbosity):
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    for handler in list(log.handlers):
        log.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(name)s: %(levelname)s: %(message)s"))
    log.setLevel(level)
    log.addHandler(handler)


def print_opcodes(stride, out=None):
    out = out if out is not None else sys.stdout
    for value, name in opcode_table():
        print(f"0x{value:x} = {name}", file=out)
    print(halt_idiom(stride), file=out)


def positive_int(text):
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return value


def build_parser():
    parser = argparse.ArgumentParser(
        prog="stackvm",
        description="Run a program on a tiny 32-bit stack machine. "
                    "Without a source file the built-in hello world demo runs.")
    parser.add_argument("source_file", nargs="?",
                        help="C source file to compile and run (preprocessed, no #include)")
    parser.add_argument("--opcodes", action="store_true",
                        help="list the instruction set and the halt idiom, then exit")
    parser.add_argument("--trace", action="store_true",
                        help="print every executed instruction to stderr")
    parser.add_argument("--stride", type=positive_int, default=DEFAULT_STRIDE,
                        help="address distance between program words (default: %(default)s)")
    parser.add_argument("--memory-size", type=positive_int, default=DEFAULT_MEMORY_SIZE,
                        help="number of memory words (default: %(default)s)")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="more logging (-v info, -vv debug)")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.opcodes:
        print_opcodes(args.stride)
        return 0

    if args.source_file is None:
        program = hello_world(args.stride)
    else:
        try:
            with open(args.source_file, "r", encoding="utf-8") as f:
                source_code = f.read()
            program = compile_source(source_code, stride=args.stride, filename=args.source_file)
        except OSError as exc:
            log.error("cannot read %s: %s", args.source_file, exc)
            return EXIT_USAGE
        except (CompileError, c_parser.ParseError, UnicodeDecodeError) as exc:
            log.error("compile failed: %s", exc)
            return EXIT_USAGE
        log.info("compiled %s to %d words", args.source_file, len(program))

    needed = (len(program) - 1) * args.stride + 1
    if needed > args.memory_size:
        log.error("program needs %d words of memory, only %d available",
                  needed, args.memory_size)
        return EXIT_USAGE

    tracer = StreamTracer(sys.stderr) if args.trace else None
    return run_program(program, fin=sys.stdin.buffer, fout=sys.stdout.buffer,
                       diag=sys.stderr, tracer=tracer,
                       memory_size=args.memory_size, stride=args.stride)


if __name__ == '__main__':
    sys.exit(main())
