#!/usr/bin/env python3
"""
A tiny C-to-stackvm compiler using pycparser.

Supported features:
  - one int main() function, file-scope int globals with constant initializers
  - block-scoped int locals (every variable lives in its own data word after the code)
  - expressions: + - & | ^, == != < > <= >=, && || (short-circuit), unary - ~ ! +,
    ?:, = += -= &= |= ^=, prefix/postfix ++ and --, casts and comma expressions
  - if/else, while, do/while, for, break, continue
  - return halts the program (so does falling off the end of main)
  - builtins: putchar(expr), getchar(), puts("literal")

Every expression leaves exactly one word on the operand stack. In statement position the
word is discarded by storing it into a scratch data word (PUSH scratch; STOR).

The machine has no real conditional branch (JZ can only ever land on address 0), so
"jump to F unless cond" is a computed jump:

    <cond> NOT NOT            ; 1 if cond else 0
    PUSH 0 SUB                ; -1 if cond else 0
    PUSH (T - F) AND          ; T - F if cond else 0
    PUSH F ADD JMP            ; T if cond else F
  T:

Comparisons look at the sign bit of the difference, so they are wrong when the
subtraction overflows 32 bits.
"""

import codecs

from pycparser import c_ast, c_parser

from .errors import CompileError
from .opcodes import WORD_MIN, Op, to_word
from .program import ProgramBuilder

INT_TYPE_NAMES = {'int', 'char', 'short', 'long', 'signed', 'unsigned'}

EXPRESSIONS = (
    c_ast.Assignment, c_ast.BinaryOp, c_ast.UnaryOp, c_ast.FuncCall, c_ast.ID,
    c_ast.Constant, c_ast.TernaryOp, c_ast.Cast, c_ast.ExprList,
)

SIMPLE_OPS = {'+': Op.ADD, '&': Op.AND, '|': Op.OR, '^': Op.XOR}


def _error(node, message):
    if node is not None and getattr(node, 'coord', None) is not None:
        return CompileError(f"{node.coord}: {message}")
    return CompileError(message)


def _literal_bytes(node):
    """The bytes of a char or string literal: UTF-8 source text with C escapes applied."""
    try:
        return codecs.escape_decode(node.value[1:-1].encode('utf-8'))[0]
    except (UnicodeError, ValueError) as exc:
        raise _error(node, f"Bad literal {node.value}: {exc}")


def parse_int_constant(text):
    text = text.rstrip('uUlL')
    lowered = text.lower()
    if lowered.startswith(('0x', '0b')):
        return int(text, 0)
    if len(text) > 1 and text.startswith('0'):
        return int(text, 8)
    return int(text)


# -----------------------------------------------------------------------------
# The Code Generator
# -----------------------------------------------------------------------------
class CodeGenerator(c_ast.NodeVisitor):
    def __init__(self, stride=1):
        self.builder = ProgramBuilder(stride)
        self.instructions = self.builder.words

        # Data words placed right after the code; slot 0 is the scratch word used to drop values.
        self.data = [0]
        self.scopes = [{}]

        self.labels = {}     # label name -> instruction index
        self.fixups = []     # (instr_index, resolver)
        self.label_count = 0

        # (break label, continue label) for each enclosing loop
        self.loop_stack = []
        self.has_main = False
        self.code_size = None

    # -------------------------
    # Emission helpers
    # -------------------------
    def new_label(self, name_hint="L"):
        self.label_count += 1
        return f"{name_hint}{self.label_count}"

    def mark_label(self, label):
        self.labels[label] = len(self.instructions)

    def emit(self, *words):
        self.builder.emit(*words)

    def emit_push(self, value):
        self.builder.push(to_word(value))

    def emit_push_fixup(self, resolver):
        """Emit PUSH with a placeholder literal filled in by `resolver()` once layout is final."""
        self.emit(Op.PUSH, 0)
        self.fixups.append((len(self.instructions) - 1, resolver))

    def label_address(self, label):
        if label not in self.labels:
            raise CompileError(f"Undefined label: {label}")
        return self.builder.address(self.labels[label])

    def slot_address(self, slot):
        return self.builder.address(self.code_size + slot)

    def emit_push_label(self, label):
        self.emit_push_fixup(lambda: self.label_address(label))

    def emit_push_slot(self, slot):
        self.emit_push_fixup(lambda: self.slot_address(slot))

    def emit_jump(self, label):
        self.emit_push_label(label)
        self.emit(Op.JMP)

    def emit_branch_if_zero(self, label):
        """Consume the word on top of the stack and jump to `label` if it is zero."""
        taken = self.new_label("fall")
        self.emit(Op.NOT, Op.NOT)
        self.emit_push(0)
        self.emit(Op.SUB)
        self.emit_push_fixup(lambda: self.label_address(taken) - self.label_address(label))
        self.emit(Op.AND)
        self.emit_push_label(label)
        self.emit(Op.ADD, Op.JMP)
        self.mark_label(taken)

    def emit_halt(self):
        self.builder.halt()

    def emit_discard(self):
        self.emit_push_slot(0)
        self.emit(Op.STOR)

    def emit_sign(self):
        # 1 if the top word is negative, else 0
        self.emit_push(WORD_MIN)
        self.emit(Op.AND, Op.NOT, Op.NOT)

    def patch_fixups(self):
        self.code_size = len(self.instructions)
        for pos, resolver in self.fixups:
            self.instructions[pos] = to_word(resolver())
        self.instructions.extend(self.data)

    # -------------------------
    # Symbols
    # -------------------------
    def declare(self, node, initial=0):
        scope = self.scopes[-1]
        if node.name in scope:
            raise _error(node, f"Variable {node.name} already declared")
        self.data.append(to_word(initial))
        scope[node.name] = len(self.data) - 1
        return scope[node.name]

    def lookup(self, node):
        for scope in reversed(self.scopes):
            if node.name in scope:
                return scope[node.name]
        raise _error(node, f"Undeclared variable {node.name}")

    def emit_load(self, slot):
        self.emit_push_slot(slot)
        self.emit(Op.LOAD)

    def emit_store(self, slot):
        # leaves the stored value on the stack
        self.emit(Op.DUP)
        self.emit_push_slot(slot)
        self.emit(Op.STOR)

    def lvalue_slot(self, node):
        if not isinstance(node, c_ast.ID):
            raise _error(node, "Only simple variables can be assigned to")
        return self.lookup(node)

    # -------------------------
    # Visitors for top-level nodes
    # -------------------------
    def visit_FileAST(self, node):
        for ext in node.ext:
            self.visit(ext)
        if not self.has_main:
            raise CompileError("No main() function")
        self.patch_fixups()

    def visit_FuncDef(self, node):
        if node.decl.name != "main":
            raise _error(node, f"Only main() is supported, found {node.decl.name}()")
        self.has_main = True
        self.visit(node.body)
        self.emit_halt()

    def visit_Decl(self, node):
        if isinstance(node.type, c_ast.FuncDecl):
            # prototypes such as `int putchar(int);` are harmless
            if len(self.scopes) == 1:
                return
            raise _error(node, "Nested function declarations are not supported")
        if not (isinstance(node.type, c_ast.TypeDecl)
                and isinstance(node.type.type, c_ast.IdentifierType)
                and set(node.type.type.names) <= INT_TYPE_NAMES):
            raise _error(node, "Only int type is supported")

        if len(self.scopes) == 1:
            initial = 0 if node.init is None else self.constant_value(node.init)
            self.declare(node, initial)
            return

        if node.init is not None:
            self.expression(node.init)
            slot = self.declare(node)
            self.emit_push_slot(slot)
            self.emit(Op.STOR)
        else:
            self.declare(node)

    def visit_DeclList(self, node):
        for decl in node.decls:
            self.visit(decl)

    def constant_value(self, node):
        if isinstance(node, c_ast.Constant) and node.type != 'string':
            return self.constant_literal(node)
        if isinstance(node, c_ast.UnaryOp) and node.op in ('-', '+', '~'):
            value = self.constant_value(node.expr)
            return {'-': -value, '+': value, '~': ~value}[node.op]
        raise _error(node, "Global initializers must be constants")

    # -------------------------
    # Statements
    # -------------------------
    def statement(self, node):
        if node is None:
            return
        if isinstance(node, EXPRESSIONS):
            self.expression(node)
            self.emit_discard()
        else:
            self.visit(node)

    def visit_Compound(self, node):
        self.scopes.append({})
        for stmt in node.block_items or []:
            self.statement(stmt)
        self.scopes.pop()

    def visit_EmptyStatement(self, node):
        pass

    def visit_If(self, node):
        self.expression(node.cond)
        else_label = self.new_label("else")
        self.emit_branch_if_zero(else_label)
        self.statement(node.iftrue)
        if node.iffalse:
            end_label = self.new_label("ifend")
            self.emit_jump(end_label)  # JMP over else clause
            self.mark_label(else_label)
            self.statement(node.iffalse)
            self.mark_label(end_label)
        else:
            self.mark_label(else_label)

    def visit_While(self, node):
        loop_label = self.new_label("while")
        end_label = self.new_label("wend")
        self.mark_label(loop_label)
        self.expression(node.cond)
        self.emit_branch_if_zero(end_label)
        self.loop_stack.append((end_label, loop_label))
        self.statement(node.stmt)
        self.loop_stack.pop()
        self.emit_jump(loop_label)
        self.mark_label(end_label)

    def visit_DoWhile(self, node):
        loop_label = self.new_label("do")
        cond_label = self.new_label("docond")
        end_label = self.new_label("doend")
        self.mark_label(loop_label)
        self.loop_stack.append((end_label, cond_label))
        self.statement(node.stmt)
        self.loop_stack.pop()
        self.mark_label(cond_label)
        self.expression(node.cond)
        self.emit_branch_if_zero(end_label)
        self.emit_jump(loop_label)
        self.mark_label(end_label)

    def visit_For(self, node):
        self.scopes.append({})
        if isinstance(node.init, c_ast.DeclList):
            self.visit(node.init)
        else:
            self.statement(node.init)
        cond_label = self.new_label("forcond")
        next_label = self.new_label("fornext")
        end_label = self.new_label("forend")
        self.mark_label(cond_label)
        if node.cond is not None:
            self.expression(node.cond)
            self.emit_branch_if_zero(end_label)
        self.loop_stack.append((end_label, next_label))
        self.statement(node.stmt)
        self.loop_stack.pop()
        self.mark_label(next_label)
        self.statement(node.next)
        self.emit_jump(cond_label)
        self.mark_label(end_label)
        self.scopes.pop()

    def visit_Break(self, node):
        if not self.loop_stack:
            raise _error(node, "Break statement not within a loop")
        self.emit_jump(self.loop_stack[-1][0])

    def visit_Continue(self, node):
        if not self.loop_stack:
            raise _error(node, "Continue statement not within a loop")
        self.emit_jump(self.loop_stack[-1][1])

    def visit_Return(self, node):
        # no exit codes on this machine: evaluate for side effects, then halt
        self.statement(node.expr)
        self.emit_halt()

    # -------------------------
    # Expressions (each leaves one word on the stack)
    # -------------------------
    def expression(self, node):
        if not isinstance(node, EXPRESSIONS):
            raise _error(node, f"Unsupported expression {type(node).__name__}")
        self.visit(node)

    def constant_literal(self, node):
        if node.type == 'char':
            data = _literal_bytes(node)
            if len(data) != 1:
                raise _error(node, f"Character constant {node.value} is not one byte")
            return data[0]
        if node.type in ('int', 'unsigned int', 'long int', 'unsigned long int',
                         'long long int', 'unsigned long long int'):
            return parse_int_constant(node.value)
        raise _error(node, f"Unsupported constant {node.value}")

    def visit_Constant(self, node):
        if node.type == 'string':
            raise _error(node, "String literals are only supported in puts()")
        self.emit_push(self.constant_literal(node))

    def visit_ID(self, node):
        self.emit_load(self.lookup(node))

    def visit_Cast(self, node):
        self.expression(node.expr)

    def visit_ExprList(self, node):
        for expr in node.exprs[:-1]:
            self.statement(expr)
        self.expression(node.exprs[-1])

    def visit_TernaryOp(self, node):
        else_label = self.new_label("tfalse")
        end_label = self.new_label("tend")
        self.expression(node.cond)
        self.emit_branch_if_zero(else_label)
        self.expression(node.iftrue)
        self.emit_jump(end_label)
        self.mark_label(else_label)
        self.expression(node.iffalse)
        self.mark_label(end_label)

    def visit_Assignment(self, node):
        slot = self.lvalue_slot(node.lvalue)
        if node.op == "=":
            self.expression(node.rvalue)
        else:
            self.emit_binary(node.op[:-1], node,
                             lambda: self.emit_load(slot),
                             lambda: self.expression(node.rvalue))
        self.emit_store(slot)

    def visit_UnaryOp(self, node):
        op = node.op
        if op in ('++', '--', 'p++', 'p--'):
            slot = self.lvalue_slot(node.expr)
            delta = 1 if op.endswith('++') else -1
            self.emit_load(slot)
            if op.startswith('p'):
                # postfix: the old value stays underneath
                self.emit(Op.DUP)
                self.emit_push(delta)
                self.emit(Op.ADD)
                self.emit_push_slot(slot)
                self.emit(Op.STOR)
            else:
                self.emit_push(delta)
                self.emit(Op.ADD)
                self.emit_store(slot)
        elif op == '-':
            self.expression(node.expr)
            self.emit_push(0)
            self.emit(Op.SUB)  # 0 - x
        elif op == '+':
            self.expression(node.expr)
        elif op == '~':
            self.expression(node.expr)
            self.emit_push(-1)
            self.emit(Op.XOR)
        elif op == '!':
            self.expression(node.expr)
            self.emit(Op.NOT)
        else:
            raise _error(node, f"Unsupported unary operator {op}")

    def visit_BinaryOp(self, node):
        if node.op == '&&':
            false_label = self.new_label("and_false")
            end_label = self.new_label("and_end")
            self.expression(node.left)
            self.emit_branch_if_zero(false_label)
            self.expression(node.right)
            self.emit(Op.NOT, Op.NOT)
            self.emit_jump(end_label)
            self.mark_label(false_label)
            self.emit_push(0)
            self.mark_label(end_label)
        elif node.op == '||':
            true_label = self.new_label("or_true")
            end_label = self.new_label("or_end")
            self.expression(node.left)
            self.emit(Op.NOT)
            self.emit_branch_if_zero(true_label)
            self.expression(node.right)
            self.emit(Op.NOT, Op.NOT)
            self.emit_jump(end_label)
            self.mark_label(true_label)
            self.emit_push(1)
            self.mark_label(end_label)
        else:
            self.emit_binary(node.op, node,
                             lambda: self.expression(node.left),
                             lambda: self.expression(node.right))

    def emit_binary(self, op, node, left, right):
        # SUB computes top - second, so the right operand goes down first for a - b
        if op in SIMPLE_OPS:
            left()
            right()
            self.emit(SIMPLE_OPS[op])
        elif op == '-':
            right()
            left()
            self.emit(Op.SUB)
        elif op in ('==', '!='):
            left()
            right()
            self.emit(Op.XOR, Op.NOT)
            if op == '!=':
                self.emit(Op.NOT)
        elif op in ('<', '>='):
            right()
            left()
            self.emit(Op.SUB)  # a - b
            self.emit_sign()
            if op == '>=':
                self.emit(Op.NOT)
        elif op in ('>', '<='):
            left()
            right()
            self.emit(Op.SUB)  # b - a
            self.emit_sign()
            if op == '<=':
                self.emit(Op.NOT)
        else:
            raise _error(node, f"Unsupported binary operator {op}")

    def visit_FuncCall(self, node):
        if not isinstance(node.name, c_ast.ID):
            raise _error(node, "Only direct calls are supported")
        name = node.name.name
        args = node.args.exprs if node.args is not None else []

        if name == "putchar":
            if len(args) != 1:
                raise _error(node, "putchar expects one argument")
            self.expression(args[0])
            self.emit(Op.DUP, Op.OUT)
        elif name == "getchar":
            if args:
                raise _error(node, "getchar takes no arguments")
            self.emit(Op.IN)
        elif name == "puts":
            if len(args) != 1 or not (isinstance(args[0], c_ast.Constant)
                                      and args[0].type == 'string'):
                raise _error(node, "puts expects one string literal")
            for byte in _literal_bytes(args[0]) + b"\n":
                self.builder.out(byte)
            self.emit_push(0)
        else:
            raise _error(node, f"Unsupported function {name}()")

    def generic_visit(self, node):
        raise _error(node, f"Unsupported construct {type(node).__name__}")


def compile_source(source, stride=1, filename="<source>"):
    """Compile preprocessed C source to a list of machine words."""
    parser = c_parser.CParser()
    ast = parser.parse(source, filename)

    codegen = CodeGenerator(stride)
    codegen.visit(ast)
    return codegen.instructions
