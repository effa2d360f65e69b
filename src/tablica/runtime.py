## tablica — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from .types import Code, Program, Token, TOP_LEVEL, num
from .lexer import tokenize as _tokenize
from .parser import parse as _parse
from .compiler import compile as _compile
from .interpreter import VirtualMachine, DEFAULT_MAX_DEPTH


class Runtime:
    """Minimal runtime facade over the pipeline, for embedding and the REPL.

    Remembers the functions compiled so far and the global table of the last run, so
    that `call()` after `run()` sees both. Every execution still gets a fresh machine.
    """

    def __init__(self, max_depth: int | None = DEFAULT_MAX_DEPTH, max_steps: int | None = None):
        self.max_depth = max_depth
        self.max_steps = max_steps
        self.functions: dict[str, Code] = {}
        self.globals: dict[str, num] = {}

    # Pipeline ────────────────────────────────────────────────────────────────────────────────
    def tokenize(self, source: str, filename: str | None = None) -> list[Token]:
        return _tokenize(source, filename=filename)

    def parse(self, tokens: list[Token], filename: str | None = None) -> Program:
        return _parse(tokens, filename=filename)

    def compile(self, program: Program) -> dict[str, Code]:
        return _compile(program)

    def machine(self, functions: dict[str, Code] | None = None, globals_: dict | None = None) -> VirtualMachine:
        return VirtualMachine(self.functions if functions is None else functions,
                              {} if globals_ is None else globals_,
                              max_depth=self.max_depth, max_steps=self.max_steps)

    # Execution ───────────────────────────────────────────────────────────────────────────────
    def execute(self, functions: dict[str, Code], entry: str = TOP_LEVEL, globals_: dict | None = None,
                verbosity: int = 0, stats: dict | None = None) -> dict:
        return self.machine(functions, globals_).execute(entry, verbosity=verbosity, stats=stats)

    def call(self, name: str, args: list | tuple, functions: dict[str, Code] | None = None,
             globals_: dict | None = None, verbosity: int = 0, stats: dict | None = None) -> num:
        vm = self.machine(functions, self.globals if globals_ is None else globals_)
        return vm.call(name, args, verbosity=verbosity, stats=stats)

    def run(self, source: str, filename: str | None = None, verbosity: int = 0,
            stats: dict | None = None, keep_globals: bool = False) -> dict:
        """Lex, parse, compile and execute `source`, returning the final global table.

        Functions and globals are only committed once execution succeeds, so a failing
        run leaves the runtime as it was.
        """
        functions = self._merged(source, filename)
        table = dict(self.globals) if keep_globals else {}
        self.execute(functions, globals_=table, verbosity=verbosity, stats=stats)
        self.functions, self.globals = functions, table
        return table

    def load(self, source: str, filename: str | None = None) -> dict[str, Code]:
        """Compile `source` and register its functions without running any statement."""
        self.functions = self._merged(source, filename)
        return self.functions

    def _merged(self, source: str, filename: str | None) -> dict[str, Code]:
        functions = self.compile(self.parse(self.tokenize(source, filename=filename), filename=filename))
        merged = {name: code for name, code in self.functions.items() if name != TOP_LEVEL}
        merged.update(functions)
        return merged

    # Introspection ───────────────────────────────────────────────────────────────────────────
    def list_functions(self) -> dict[str, tuple[str, ...]]:
        return {name: code.params for name, code in self.functions.items() if name != TOP_LEVEL}

    def reset(self) -> None:
        self.functions, self.globals = {}, {}
