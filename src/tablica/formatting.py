## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import re
import math

from .types import (Stack, nil, Token, Code, Frame, TOP_LEVEL,
                    Literal, VariableRef, BinaryExpr, Call, Assignment, Return, FunctionDecl, Program)


def stack_to_list(stk: Stack) -> list:
    """Items from the top of the stack downwards."""
    result = []
    while stk is not nil:
        stk, head = stk
        result.append(head)
    return result


def write_without_ansi(write_fn):
    """Wrapper function that strips ANSI codes before calling the original writer."""
    ansi_re = re.compile(r'\033\[[0-9;]*m')
    return lambda text: write_fn(ansi_re.sub('', text))


def format_number(value) -> str:
    if isinstance(value, float):
        if math.isnan(value): return 'nan'
        if math.isinf(value): return '-inf' if value < 0 else 'inf'
        if value.is_integer() and abs(value) < 1e16: return str(int(value))
    return str(value)

def format_item(it) -> str:
    if isinstance(it, (int, float)) and not isinstance(it, bool):
        return format_number(it)
    return str(it)


## SOURCE
# Parentheses are emitted only where re-parsing would otherwise regroup the tree.

_PRECEDENCE = {'+': 1, '-': 1, '*': 2, '/': 2, '%': 2, '**': 3}

def format_expression(node, parent: int = 0, right_side: bool = False) -> str:
    match node:
        case Literal(value=value):
            return format_number(value)
        case VariableRef(name=name):
            return name
        case Call(name=name, args=args):
            return f"{name}({', '.join(format_expression(a) for a in args)})"
        case BinaryExpr(op=op, left=left, right=right):
            level = _PRECEDENCE[op]
            text = f"{format_expression(left, level)} {op} {format_expression(right, level, right_side=True)}"
            if level < parent or (right_side and level == parent):
                return f"({text})"
            return text
    raise TypeError(f"Cannot format expression node `{type(node).__name__}`.")

def format_statement(node, indent: str = '') -> str:
    match node:
        case Assignment(name=name, expr=expr):
            return f"{indent}{name} = {format_expression(expr)};"
        case Return(expr=expr):
            return f"{indent}return {format_expression(expr)};"
        case FunctionDecl(name=name, params=params, body=body):
            lines = [f"{indent}function {name}({', '.join(params)}) {{"]
            lines += [format_statement(stmt, indent + '    ') for stmt in body]
            lines.append(f"{indent}}}")
            return '\n'.join(lines)
    raise TypeError(f"Cannot format statement node `{type(node).__name__}`.")

def format_program(program: Program) -> str:
    return ''.join(format_statement(stmt) + '\n' for stmt in program.statements)


## TOKENS & AST

def format_tokens(tokens: list[Token]) -> str:
    return '\n'.join(f"{t.line:>4}:{t.column:<4} {t.kind:<11} {t.text}" for t in tokens)

def format_ast(node, indent: int = 0) -> str:
    pad = '  ' * indent
    match node:
        case Program(statements=statements):
            return '\n'.join([f"{pad}Program"] + [format_ast(s, indent + 1) for s in statements])
        case FunctionDecl(name=name, params=params, body=body):
            head = f"{pad}FunctionDecl {name}({', '.join(params)})"
            return '\n'.join([head] + [format_ast(s, indent + 1) for s in body])
        case Assignment(name=name, expr=expr):
            return f"{pad}Assignment {name}\n" + format_ast(expr, indent + 1)
        case Return(expr=expr):
            return f"{pad}Return\n" + format_ast(expr, indent + 1)
        case BinaryExpr(op=op, left=left, right=right):
            return f"{pad}BinaryExpr {op}\n" + format_ast(left, indent + 1) + '\n' + format_ast(right, indent + 1)
        case Call(name=name, args=args):
            return '\n'.join([f"{pad}Call {name}"] + [format_ast(a, indent + 1) for a in args])
        case Literal(value=value):
            return f"{pad}Literal {format_number(value)}"
        case VariableRef(name=name):
            return f"{pad}VariableRef {name}"
    raise TypeError(f"Cannot format node `{type(node).__name__}`.")


## BYTECODE

def format_code(code: Code) -> str:
    title = '<top-level>' if code.name == TOP_LEVEL else f"{code.name}({', '.join(code.params)})"
    lines = [f"\033[97m{title}\033[0m"]
    lines += [f"\033[90m{i:>5}\033[0m  {ins!r}" for i, ins in enumerate(code.program)]
    return '\n'.join(lines)

def format_bytecode(functions: dict[str, Code]) -> str:
    return '\n\n'.join(format_code(code) for code in functions.values())

def format_globals(table: dict) -> str:
    return '\n'.join(f"{name} = {format_item(value)}" for name, value in table.items())


## TRACING

def show_stack(stack, width=40, end='\n', file=None):
    if stack is nil:
        stack_str = '∅'
    else:
        stack_str = ' '.join(format_item(s) for s in reversed(stack_to_list(stack)))

    if width is not None and len(stack_str) > width:
        stack_str = '… ' + stack_str[-width+2:]
    print(f"{stack_str:>{width}}" if width else stack_str, end=end, file=file)

def show_frame(frame: Frame, depth=0, width=72):
    remaining = frame.code.program[frame.ip:]
    prog_str = ' ; '.join(repr(ins) for ins in remaining) if remaining else '∅'
    if len(prog_str) > width:
        prog_str = prog_str[:+width-2] + ' …'
    name = frame.code.name or '<top>'
    print(f"\033[90m{'·' * depth}{name:<8}\033[0m ", end='')
    show_stack(frame.stack, end='')
    print(f" \033[36m <=> \033[0m {prog_str:<{width}}")
