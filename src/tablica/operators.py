## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import math
import functools

from .types import Opcode, num
from .errors import DivisionByZero, ModuloByZero, ResourceExhausted


# Integer powers beyond this many result bits are refused instead of grinding the interpreter.
MAX_POWER_BITS = 1 << 20


def _no_float_overflow(symbol):
    """Report integers too large to become floats as ResourceExhausted instead of OverflowError."""
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(b: num, a: num) -> num:
            try:
                return fn(b, a)
            except OverflowError as exc:
                raise ResourceExhausted(f"Result of {symbol} is too large: {exc}.") from exc
        return wrapper
    return decorator


## ARITHMETIC
@_no_float_overflow('+')
def op_add(b: num, a: num) -> num: return b + a

@_no_float_overflow('-')
def op_sub(b: num, a: num) -> num: return b - a

@_no_float_overflow('*')
def op_mul(b: num, a: num) -> num: return b * a

@_no_float_overflow('/')
def op_div(b: num, a: num) -> num:
    if a == 0: raise DivisionByZero("Division by zero.")
    return b / a

@_no_float_overflow('%')
def op_mod(b: num, a: num) -> num:
    if a == 0: raise ModuloByZero("Modulo by zero.")
    # Remainder takes the sign of the dividend: -7 % 2 == -1.
    r = abs(b) % abs(a)
    return -r if b < 0 else r

def _is_integral(x: num) -> bool:
    return isinstance(x, int) or x.is_integer()

def op_pow(b: num, a: num) -> num:
    if b == 0 and a < 0:
        raise DivisionByZero("Zero raised to a negative power.")
    if b < 0 and not _is_integral(a):
        return math.nan
    if isinstance(b, int) and isinstance(a, int) and a > 0 and abs(b) > 1:
        if b.bit_length() * a > MAX_POWER_BITS:
            raise ResourceExhausted(f"Result of {b} ** {a} is too large.")
    try:
        return b ** a
    except OverflowError:
        negative = b < 0 and _is_integral(a) and int(a) % 2 == 1
        if a < 0:
            # Huge base with a negative exponent underflows towards zero.
            return -0.0 if negative else 0.0
        return -math.inf if negative else math.inf


BINARY_OPERATORS = {
    Opcode.ADD: op_add,
    Opcode.SUB: op_sub,
    Opcode.MUL: op_mul,
    Opcode.DIV: op_div,
    Opcode.MOD: op_mod,
    Opcode.POW: op_pow,
}
