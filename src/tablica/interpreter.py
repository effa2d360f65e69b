## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from typing import Any

from .types import Opcode, Instruction, Code, Frame, Context, Stack, nil, num, TOP_LEVEL
from .errors import (TablicaError, UndefinedVariable, UndefinedFunction, ArityMismatch,
                     StackUnderflow, ResourceExhausted)
from .operators import BINARY_OPERATORS
from .formatting import show_frame


DEFAULT_MAX_DEPTH = 1000


def _pop(frame: Frame, op: Instruction) -> num:
    if frame.stack is nil:
        raise StackUnderflow(f"`{op!r}` popped from an empty stack.", tbl_op=op, tbl_meta=op.meta)
    frame.stack, value = frame.stack
    return value


def _resolve(ctx: Context, name: str, argc: int, meta: dict | None = None) -> Code:
    if (code := ctx.functions.get(name)) is None or name == TOP_LEVEL:
        raise UndefinedFunction(f"Function `{name}` is not declared.", tbl_token=name, tbl_meta=meta)
    if len(code.params) != argc:
        raise ArityMismatch(f"Function `{name}` takes {len(code.params)} argument(s), but {argc} given.",
                            tbl_token=name, tbl_meta=meta)
    return code


def push_frame(ctx: Context, code: Code, args: list | tuple) -> Frame:
    if ctx.max_depth is not None and len(ctx.frames) >= ctx.max_depth:
        raise ResourceExhausted(f"Call depth exceeded {ctx.max_depth} frames while calling `{code.name}`.",
                                tbl_token=code.name, tbl_meta=code.meta)
    frame = Frame(code=code, locals=dict(zip(code.params, args)))
    ctx.frames.append(frame)
    return frame


def _return(ctx: Context, value: Any) -> None:
    ctx.frames.pop()
    if ctx.frames:
        caller = ctx.frames[-1]
        caller.stack = Stack(caller.stack, value)
    else:
        ctx.result = value


def interpret_step(ctx: Context) -> None:
    """Execute one instruction of the active frame, or finish the frame if it has run out."""
    frame = ctx.frames[-1]
    if frame.ip >= len(frame.code):
        # Top-level code just ends; a function without RETURN gives back its top of stack.
        if frame.code.name == TOP_LEVEL and len(ctx.frames) == 1:
            ctx.frames.pop()
            return
        value = _pop(frame, Instruction(Opcode.RETURN, None, frame.code.meta))
        return _return(ctx, value)

    op = frame.code[frame.ip]
    frame.ip += 1

    match op.opcode:
        case Opcode.LOAD_CONST:
            frame.stack = Stack(frame.stack, op.operand)
        case Opcode.LOAD_VAR:
            if op.operand not in ctx.globals:
                raise UndefinedVariable(f"Undefined variable `{op.operand}`.", tbl_op=op, tbl_token=op.operand, tbl_meta=op.meta)
            frame.stack = Stack(frame.stack, ctx.globals[op.operand])
        case Opcode.LOAD_LOCAL:
            if op.operand not in frame.locals:
                raise UndefinedVariable(f"Undefined local variable `{op.operand}`.", tbl_op=op, tbl_token=op.operand, tbl_meta=op.meta)
            frame.stack = Stack(frame.stack, frame.locals[op.operand])
        case Opcode.STORE_VAR:
            ctx.globals[op.operand] = _pop(frame, op)
        case Opcode.STORE_LOCAL:
            frame.locals[op.operand] = _pop(frame, op)
        case Opcode.ADD | Opcode.SUB | Opcode.MUL | Opcode.DIV | Opcode.MOD | Opcode.POW:
            right = _pop(frame, op)
            left = _pop(frame, op)
            frame.stack = Stack(frame.stack, BINARY_OPERATORS[op.opcode](left, right))
        case Opcode.CALL:
            name, argc = op.operand
            code = _resolve(ctx, name, argc, op.meta)
            args = [_pop(frame, op) for _ in range(argc)]
            push_frame(ctx, code, list(reversed(args)))
        case Opcode.RETURN:
            _return(ctx, _pop(frame, op))


def interpret(ctx: Context, verbosity=0, stats=None) -> Any:
    """Run until every frame on the context has returned; gives the outermost frame's result."""
    def is_notable(frame):
        return frame.ip < len(frame.code) and frame.code[frame.ip].opcode in (Opcode.CALL, Opcode.RETURN)

    step = 0
    while ctx.frames:
        frame = ctx.frames[-1]
        if ctx.max_steps is not None and ctx.steps >= ctx.max_steps:
            raise ResourceExhausted(f"Execution exceeded {ctx.max_steps} steps.", tbl_meta=frame.code.meta)

        if verbosity == 2 or (verbosity == 1 and (is_notable(frame) or step == 0)):
            print(f"\033[90m{step:>3} :\033[0m  ", end='')
            show_frame(frame, depth=len(ctx.frames) - 1)

        step += 1
        ctx.steps += 1
        op = frame.code[frame.ip] if frame.ip < len(frame.code) else None
        stack = frame.stack
        try:
            interpret_step(ctx)
        except TablicaError as exc:
            if exc.tbl_op is None: exc.tbl_op = op
            if exc.tbl_meta is None and op is not None: exc.tbl_meta = op.meta
            exc.tbl_stack = stack
            exc.tbl_frames = len(ctx.frames)
            raise

    if verbosity > 0:
        print(f"\033[90m{step:>3} :\033[0m  \033[36mdone\033[0m")
    if stats is not None:
        stats['steps'] = stats.get('steps', 0) + step

    return ctx.result


class VirtualMachine:
    """One execution: a code map, the global table it writes, and the guards for call chains."""

    def __init__(self, functions: dict[str, Code], globals_: dict | None = None,
                 max_depth: int | None = DEFAULT_MAX_DEPTH, max_steps: int | None = None):
        self.functions = functions
        self.globals = {} if globals_ is None else globals_
        self.max_depth = max_depth
        self.max_steps = max_steps
        self.steps = 0

    def context(self) -> Context:
        return Context(functions=self.functions, globals=self.globals,
                       max_depth=self.max_depth, max_steps=self.max_steps, steps=self.steps)

    def _run(self, code: Code, args, verbosity, stats) -> Any:
        ctx = self.context()
        push_frame(ctx, code, args)
        try:
            return interpret(ctx, verbosity=verbosity, stats=stats)
        finally:
            self.steps = ctx.steps

    def execute(self, entry: str = TOP_LEVEL, verbosity=0, stats=None) -> dict:
        if entry == TOP_LEVEL:
            code = self.functions.get(TOP_LEVEL, Code(TOP_LEVEL, (), []))
        else:
            code = _resolve(self.context(), entry, 0)
        self._run(code, (), verbosity, stats)
        return self.globals

    def call(self, name: str, args: list | tuple, verbosity=0, stats=None) -> num:
        code = _resolve(self.context(), name, len(args))
        return self._run(code, list(args), verbosity, stats)


def execute(functions: dict[str, Code], entry: str = TOP_LEVEL, globals_: dict | None = None,
            max_depth=DEFAULT_MAX_DEPTH, max_steps=None, verbosity=0, stats=None) -> dict:
    vm = VirtualMachine(functions, globals_, max_depth=max_depth, max_steps=max_steps)
    return vm.execute(entry, verbosity=verbosity, stats=stats)


def call(functions: dict[str, Code], name: str, args: list | tuple, globals_: dict | None = None,
         max_depth=DEFAULT_MAX_DEPTH, max_steps=None, verbosity=0, stats=None) -> num:
    vm = VirtualMachine(functions, globals_, max_depth=max_depth, max_steps=max_steps)
    return vm.call(name, args, verbosity=verbosity, stats=stats)
