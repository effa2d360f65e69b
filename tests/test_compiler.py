## tablica — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import pytest

from tablica.lexer import tokenize
from tablica.parser import parse
from tablica.compiler import compile
from tablica.types import Opcode, Instruction, Code, Program, Assignment, Literal, TOP_LEVEL
from tablica.errors import CompileError


def _compile(source: str) -> dict[str, Code]:
    return compile(parse(tokenize(source)))

def ops(code: Code) -> list[tuple]:
    return [(ins.opcode.value, ins.operand) if ins.operand is not None else (ins.opcode.value,) for ins in code]


def test_top_level_is_keyed_by_empty_string():
    code = _compile("x = 1;")
    assert list(code) == [TOP_LEVEL]
    assert ops(code[TOP_LEVEL]) == [('LOAD_CONST', 1), ('STORE_VAR', 'x')]


def test_binary_expression_is_post_order():
    code = _compile("y = x - 2 * 3;")[TOP_LEVEL]
    assert ops(code) == [
        ('LOAD_VAR', 'x'), ('LOAD_CONST', 2), ('LOAD_CONST', 3), ('MUL',), ('SUB',), ('STORE_VAR', 'y'),
    ]


def test_every_operator_has_an_opcode():
    code = _compile("x = 1 + 2 - 3 * 4 / 5 % 6 ** 7;")[TOP_LEVEL]
    assert {ins.opcode for ins in code} >= {Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.DIV, Opcode.MOD, Opcode.POW}


def test_function_gets_its_own_sequence_with_implicit_return():
    code = _compile("function add(a, b) { r = a + b; }")
    assert set(code) == {TOP_LEVEL, 'add'}
    assert code[TOP_LEVEL].program == []
    assert code['add'].params == ('a', 'b')
    assert ops(code['add']) == [
        ('LOAD_LOCAL', 'a'), ('LOAD_LOCAL', 'b'), ('ADD',), ('STORE_LOCAL', 'r'),
        ('LOAD_LOCAL', 'r'), ('RETURN',),
    ]


def test_explicit_return_is_not_doubled():
    code = _compile("function sq(n) { return n * n; }")['sq']
    assert ops(code) == [('LOAD_LOCAL', 'n'), ('LOAD_LOCAL', 'n'), ('MUL',), ('RETURN',)]


def test_empty_function_returns_zero():
    assert ops(_compile("function z() {}")['z']) == [('LOAD_CONST', 0), ('RETURN',)]


def test_functions_read_globals_and_their_own_locals():
    code = _compile("function f(a) { t = a + g; u = t * 2; v = w; }")['f']
    assert ops(code)[:4] == [('LOAD_LOCAL', 'a'), ('LOAD_VAR', 'g'), ('ADD',), ('STORE_LOCAL', 't')]
    assert ('LOAD_LOCAL', 't') in ops(code)
    assert ('LOAD_VAR', 'w') in ops(code)


def test_self_assignment_reads_global_before_local_exists():
    code = _compile("function f() { c = c + 1; }")['f']
    assert ops(code)[:4] == [('LOAD_VAR', 'c'), ('LOAD_CONST', 1), ('ADD',), ('STORE_LOCAL', 'c')]


def test_call_pushes_arguments_left_to_right():
    code = _compile("y = f(1, x, 2 + 3);")[TOP_LEVEL]
    assert ops(code) == [
        ('LOAD_CONST', 1), ('LOAD_VAR', 'x'), ('LOAD_CONST', 2), ('LOAD_CONST', 3), ('ADD',),
        ('CALL', ('f', 3)), ('STORE_VAR', 'y'),
    ]


def test_later_declaration_replaces_earlier():
    code = _compile("function f() { return 1; } function f() { return 2; }")
    assert ops(code['f']) == [('LOAD_CONST', 2), ('RETURN',)]


def test_instructions_keep_source_positions_outside_equality():
    [load, store] = _compile("\n  x = 7;")[TOP_LEVEL]
    assert store.meta['line'] == 2
    assert load == Instruction(Opcode.LOAD_CONST, 7)


def test_unknown_nodes_fail():
    with pytest.raises(CompileError):
        compile(Program((object(),)))
    with pytest.raises(CompileError):
        compile(Program((Assignment('x', object()),)))
    with pytest.raises(CompileError):
        compile([Assignment('x', Literal(1))])
