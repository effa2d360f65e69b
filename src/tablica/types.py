## tablica — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from enum import Enum
from typing import Any
from collections import namedtuple
from dataclasses import dataclass, field


# Stack type is a namedtuple to save memory, yet provide tail/head accessors.
class Stack(namedtuple('Stack', ['tail', 'head'])):
    __slots__ = ()
    _nil_singleton = None

    def __new__(cls, tail, head):
        if tail is None and head is None:
            # Only one singleton creation is allowed, and it's the one just below.
            if cls._nil_singleton is None:
                self = super(Stack, cls).__new__(cls, tail, head)
                cls._nil_singleton = self
                return self
            # By convention, all other code should use `nil` explicitly.
            raise ValueError("Use the canonical `nil` instance for empty stacks")
        return super(Stack, cls).__new__(cls, tail, head)

    def __repr__(self):
        if self is nil:
            return "< nil >"

        items = []
        current = self
        while current is not nil:
            items.append(repr(current.head))
            current = current.tail
        return "< " + " ".join(reversed(items)) + " >"

    def __bool__(self):
        raise TypeError("Stack truth value is ambiguous; compare with `is nil` or `is not nil`.")


# All checks for empty stack must be done by comparing to this.
nil = Stack(None, None)

num = int | float


## TOKENS

class Token(namedtuple('Token', ['kind', 'text', 'value', 'line', 'column', 'pos'])):
    __slots__ = ()

    NUMBER = 'NUMBER'
    IDENTIFIER = 'IDENTIFIER'
    OPERATOR = 'OPERATOR'
    COMPARATOR = 'COMPARATOR'
    EQUALS = 'EQUALS'
    SEMICOLON = 'SEMICOLON'
    LPAREN = 'LPAREN'
    RPAREN = 'RPAREN'
    LBRACE = 'LBRACE'
    RBRACE = 'RBRACE'
    COMMA = 'COMMA'
    FUNCTION = 'FUNCTION'
    RETURN = 'RETURN'
    EOF = 'EOF'

    def __repr__(self):
        return f"{self.kind}({self.text!r})" if self.kind != Token.EOF else "EOF"


TOKEN_KINDS = (
    Token.NUMBER, Token.IDENTIFIER, Token.OPERATOR, Token.COMPARATOR, Token.EQUALS,
    Token.SEMICOLON, Token.LPAREN, Token.RPAREN, Token.LBRACE, Token.RBRACE,
    Token.COMMA, Token.FUNCTION, Token.RETURN, Token.EOF,
)


## SYNTAX TREE
# Source positions live in `meta` and never take part in equality.

def _meta():
    return field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class Literal:
    value: num
    meta: dict = _meta()

@dataclass(frozen=True)
class VariableRef:
    name: str
    meta: dict = _meta()

@dataclass(frozen=True)
class BinaryExpr:
    op: str
    left: Any
    right: Any
    meta: dict = _meta()

@dataclass(frozen=True)
class Call:
    name: str
    args: tuple
    meta: dict = _meta()

@dataclass(frozen=True)
class Assignment:
    name: str
    expr: Any
    meta: dict = _meta()

@dataclass(frozen=True)
class Return:
    expr: Any
    meta: dict = _meta()

@dataclass(frozen=True)
class FunctionDecl:
    name: str
    params: tuple[str, ...]
    body: tuple
    meta: dict = _meta()

@dataclass(frozen=True)
class Program:
    statements: tuple
    meta: dict = _meta()


Expression = Literal | VariableRef | BinaryExpr | Call
Statement = Assignment | Return | FunctionDecl


## BYTECODE

class Opcode(Enum):
    LOAD_CONST = 'LOAD_CONST'
    LOAD_VAR = 'LOAD_VAR'
    LOAD_LOCAL = 'LOAD_LOCAL'
    STORE_VAR = 'STORE_VAR'
    STORE_LOCAL = 'STORE_LOCAL'
    ADD = 'ADD'
    SUB = 'SUB'
    MUL = 'MUL'
    DIV = 'DIV'
    MOD = 'MOD'
    POW = 'POW'
    CALL = 'CALL'
    RETURN = 'RETURN'

    def __repr__(self):
        return self.value


BINARY_OPCODES: dict[str, Opcode] = {
    '+': Opcode.ADD, '-': Opcode.SUB, '*': Opcode.MUL,
    '/': Opcode.DIV, '%': Opcode.MOD, '**': Opcode.POW,
}


@dataclass(frozen=True)
class Instruction:
    opcode: Opcode
    operand: Any = None
    meta: dict = _meta()

    def __repr__(self):
        if self.operand is None:
            return self.opcode.value
        if self.opcode is Opcode.CALL:
            name, argc = self.operand
            return f"{self.opcode.value} {name}/{argc}"
        return f"{self.opcode.value} {self.operand}"


@dataclass
class Code:
    """Compiled instruction sequence for the top level (`name == ""`) or one function."""
    name: str
    params: tuple[str, ...]
    program: list                 # list[Instruction]
    meta: dict = field(default_factory=dict)

    def __iter__(self):
        return iter(self.program)

    def __len__(self):
        return len(self.program)

    def __getitem__(self, index):
        return self.program[index]


TOP_LEVEL = ""


## RUNTIME STATE

@dataclass
class Frame:
    code: Code
    locals: dict[str, num]
    stack: Stack = nil
    ip: int = 0


@dataclass
class Context:
    """Everything one execution owns; step functions receive it explicitly."""
    functions: dict[str, Code]
    globals: dict[str, num]
    frames: list[Frame] = field(default_factory=list)
    max_depth: int | None = None
    max_steps: int | None = None
    result: Any = None
    steps: int = 0
