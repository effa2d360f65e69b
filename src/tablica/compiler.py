## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from .types import (Opcode, Instruction, Code, TOP_LEVEL, BINARY_OPCODES,
                    Literal, VariableRef, BinaryExpr, Call, Assignment, Return, FunctionDecl, Program)
from .errors import CompileError


class _Scope:
    """Names that lower to local slots while compiling one body; `None` at top level."""

    def __init__(self, params=None):
        self.names = None if params is None else set(params)

    @property
    def is_function(self) -> bool:
        return self.names is not None

    def is_local(self, name: str) -> bool:
        return self.names is not None and name in self.names

    def bind(self, name: str) -> None:
        if self.names is not None:
            self.names.add(name)


def compile_expression(node, scope: _Scope, output: list) -> None:
    match node:
        case Literal(value=value):
            output.append(Instruction(Opcode.LOAD_CONST, value, node.meta))
        case VariableRef(name=name):
            opcode = Opcode.LOAD_LOCAL if scope.is_local(name) else Opcode.LOAD_VAR
            output.append(Instruction(opcode, name, node.meta))
        case BinaryExpr(op=op, left=left, right=right):
            if op not in BINARY_OPCODES:
                raise CompileError(f"Unsupported operator `{op}`.", tbl_token=op, tbl_meta=node.meta)
            compile_expression(left, scope, output)
            compile_expression(right, scope, output)
            output.append(Instruction(BINARY_OPCODES[op], None, node.meta))
        case Call(name=name, args=args):
            for arg in args:
                compile_expression(arg, scope, output)
            output.append(Instruction(Opcode.CALL, (name, len(args)), node.meta))
        case _:
            raise CompileError(f"Unknown expression node `{type(node).__name__}`.",
                               tbl_token=type(node).__name__, tbl_meta=getattr(node, 'meta', None))


def compile_statement(node, scope: _Scope, output: list) -> None:
    match node:
        case Assignment(name=name, expr=expr):
            compile_expression(expr, scope, output)
            # The value is on the stack before the name becomes local, so `a = a + 1` reads the global.
            scope.bind(name)
            opcode = Opcode.STORE_LOCAL if scope.is_function else Opcode.STORE_VAR
            output.append(Instruction(opcode, name, node.meta))
        case Return(expr=expr):
            compile_expression(expr, scope, output)
            output.append(Instruction(Opcode.RETURN, None, node.meta))
        case _:
            raise CompileError(f"Unknown statement node `{type(node).__name__}`.",
                               tbl_token=type(node).__name__, tbl_meta=getattr(node, 'meta', None))


def compile_function(decl: FunctionDecl) -> Code:
    scope, output = _Scope(decl.params), []
    last_assigned = None
    for stmt in decl.body:
        compile_statement(stmt, scope, output)
        if isinstance(stmt, Return): break
        last_assigned = stmt.name

    if not output or output[-1].opcode is not Opcode.RETURN:
        # Implicit result: the value of the last assignment, or zero for an empty body.
        if last_assigned is None:
            output.append(Instruction(Opcode.LOAD_CONST, 0, decl.meta))
        else:
            output.append(Instruction(Opcode.LOAD_LOCAL, last_assigned, decl.meta))
        output.append(Instruction(Opcode.RETURN, None, decl.meta))
    return Code(decl.name, tuple(decl.params), output, meta=dict(decl.meta))


def compile(program: Program) -> dict[str, Code]:
    """Lower a program into one instruction sequence per function, plus the top level under `""`."""
    if not isinstance(program, Program):
        raise CompileError(f"Expected a Program node, got `{type(program).__name__}`.",
                           tbl_token=type(program).__name__)

    top_level, scope = [], _Scope()
    functions = {}
    for stmt in program.statements:
        if isinstance(stmt, FunctionDecl):
            functions[stmt.name] = compile_function(stmt)
        else:
            compile_statement(stmt, scope, top_level)

    return {TOP_LEVEL: Code(TOP_LEVEL, (), top_level, meta=dict(program.meta))} | functions
