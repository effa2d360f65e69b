## tablica — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from .types import Token, Opcode, Instruction, Code, Program, nil
from .errors import *
from .lexer import tokenize
from .parser import parse
from .compiler import compile
from .interpreter import execute, call as call_code, VirtualMachine
from .runtime import Runtime

_RUNTIME = Runtime()

def __getattr__(name):
    return getattr(_RUNTIME, name)
