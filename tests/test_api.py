## tablica — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import tablica.api as J


def test_run_string():
    assert J.run("x = 2 + 3;") == {'x': 5}


def test_call_after_run():
    J.run("function add(a, b) { r = a + b; }")
    assert J.call('add', [10, 20]) == 30


def test_four_entry_points():
    tokens = J.tokenize("x = 6; y = x * 7;")
    program = J.parse(tokens)
    code = J.compile(program)
    assert J.execute(code) == {'x': 6, 'y': 42}


def test_functional_call_on_code_map():
    code = J.compile(J.parse(J.tokenize("function sq(n) { return n * n; }")))
    assert J.call_code(code, 'sq', [9]) == 81


def test_errors_are_exported():
    assert issubclass(J.ArityMismatch, J.TablicaError)
    assert issubclass(J.ParseError, J.TablicaError)
    assert J.Opcode.POW.value == 'POW'
