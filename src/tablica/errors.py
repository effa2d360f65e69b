## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import lark


class TablicaError(Exception):
    def __init__(self, message: str = "", *, tbl_op=None, tbl_token=None, tbl_meta=None):
        """Base class for all Tablica-raised errors."""
        super().__init__(message)
        self.tbl_op: object = tbl_op
        self.tbl_token: str = tbl_token
        self.tbl_meta: dict = tbl_meta


class LexError(TablicaError, lark.exceptions.LexError):
    def __init__(self, message, *, char=None, pos=None, line=None, column=None, filename=None):
        super().__init__(message, tbl_token=char, tbl_meta={'filename': filename, 'line': line, 'column': column})
        self.char = char
        self.pos = pos
        self.line = line
        self.column = column
        self.filename = filename

class ParseError(TablicaError):
    def __init__(self, message, *, token=None, expected=None, line=None, column=None, filename=None):
        super().__init__(message, tbl_token=getattr(token, 'text', token),
                         tbl_meta={'filename': filename, 'line': line, 'column': column})
        self.token = token
        self.expected = expected
        self.line = line
        self.column = column
        self.filename = filename

class IncompleteParse(ParseError):
    """Input ended while a statement was still open."""
    pass

class CompileError(TablicaError):
    pass


class VMError(TablicaError, RuntimeError):
    """Failures while executing bytecode."""
    pass

class UndefinedVariable(VMError, NameError):
    pass

class UndefinedFunction(VMError, NameError):
    pass

class ArityMismatch(VMError, TypeError):
    pass

class StackUnderflow(VMError):
    pass

class DivisionByZero(VMError, ZeroDivisionError):
    pass

class ModuloByZero(DivisionByZero):
    pass

class ResourceExhausted(VMError):
    pass
