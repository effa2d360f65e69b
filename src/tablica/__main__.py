## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘
#
# tablica — A tiny assignment-and-functions language, compiled to bytecode for a stack machine.
#

import sys
import time
from pathlib import Path
from dataclasses import dataclass

import click

from .errors import TablicaError, LexError, ParseError, IncompleteParse, CompileError, VMError
from .parser import format_parse_error_context
from .formatting import (write_without_ansi, format_item, format_tokens, format_ast, format_bytecode,
                         format_globals, show_stack)
from .interpreter import DEFAULT_MAX_DEPTH
from .runtime import Runtime


DUMP_STAGES = ('tokens', 'ast', 'bytecode')


@dataclass(frozen=True)
class RuntimeConfig:
    verbose: int
    ignore: bool
    stats: bool
    plain: bool
    dump: tuple[str, ...] = ()
    max_depth: int | None = DEFAULT_MAX_DEPTH
    max_steps: int | None = None


@dataclass
class ExecutionItem:
    source: str
    filename: str


class TablicaRunner:
    def __init__(self, config: RuntimeConfig):
        self.verbose = config.verbose
        self.ignore = config.ignore
        self.stats_enabled = config.stats
        self.plain = config.plain
        self.dump = config.dump

        if self.plain:
            writer = write_without_ansi(sys.stdout.write)
            sys.stdout.write, sys.stderr.write = writer, writer

        self.runtime = Runtime(max_depth=config.max_depth, max_steps=config.max_steps)
        self.total_stats = {'steps': 0, 'start': time.time()} if self.stats_enabled else None
        self.failure = False
        self.executed_items = 0

    def _maybe_fatal_error(self, message: str, detail: str, exc_type: str = None, context: str = '', is_repl: bool = False) -> None:
        header = detail if not exc_type else f"{detail} (Exception: \033[33m{exc_type}\033[0m)"
        print(f'\033[30;43m {message} \033[0m {header}\n{context}', file=sys.stderr)
        self.failure = self.failure or not is_repl
        if not is_repl and not self.ignore: sys.exit(1)

    def _source_context(self, exc: TablicaError, filename: str, source: str) -> str:
        meta = exc.tbl_meta or {}
        if not meta.get('line'): return ''
        return format_parse_error_context(filename, meta['line'], meta.get('column'), exc.tbl_token, source=source)

    def _handle_exception(self, exc, filename: str, source: str, is_repl: bool = False) -> bool:
        if isinstance(exc, (LexError, ParseError)):
            if is_repl and isinstance(exc, IncompleteParse): return True
            context = format_parse_error_context(filename, exc.line, exc.column, exc.tbl_token, source=source)
            context += f"\n\033[90m{str(exc)}\033[0m\n"
            self._maybe_fatal_error("SYNTAX ERROR.", f"Parsing `\033[97m{filename}\033[0m` caused a problem!", type(exc).__name__, context, is_repl)
        elif isinstance(exc, CompileError):
            context = self._source_context(exc, filename, source) + f"\n\033[90m{str(exc)}\033[0m\n"
            self._maybe_fatal_error("COMPILE ERROR.", f"Compiling `\033[97m{filename}\033[0m` failed!", type(exc).__name__, context, is_repl)
        elif isinstance(exc, VMError):
            detail = str(exc) if exc.tbl_op is None else f"Instruction \033[1;97m`{exc.tbl_op!r}`\033[0m failed: {exc}"
            context = self._source_context(exc, filename, source)
            if (stack := getattr(exc, 'tbl_stack', None)) is not None:
                print(f'\033[30;43m RUNTIME ERROR. \033[0m {detail} (Exception: \033[33m{type(exc).__name__}\033[0m)\n{context}', file=sys.stderr)
                print(f'\033[1;33m  Stack content is\033[0;33m\n    ', end='', file=sys.stderr)
                show_stack(stack, width=None, file=sys.stderr)
                print('\033[0m', file=sys.stderr)
                self.failure = self.failure or not is_repl
                if not is_repl and not self.ignore: sys.exit(1)
            else:
                self._maybe_fatal_error("RUNTIME ERROR.", detail, type(exc).__name__, context, is_repl)
        else:
            raise exc
        return False

    def _dump_stages(self, source: str, filename: str) -> None:
        if not self.dump: return
        tokens = self.runtime.tokenize(source, filename=filename)
        program = self.runtime.parse(tokens, filename=filename)
        for stage in self.dump:
            print(f"\033[97m\033[48;5;30m {stage.upper()}. \033[0m")
            match stage:
                case 'tokens': print(format_tokens(tokens))
                case 'ast': print(format_ast(program))
                case 'bytecode': print(format_bytecode(self.runtime.compile(program)))

    def execute_items(self, items: list[ExecutionItem], print_result: bool = True) -> None:
        for item in items:
            self._execute_script(item.source, item.filename, print_result=print_result)

    def _execute_script(self, source: str, filename: str, is_repl: bool = False, print_result: bool = False) -> bool:
        try:
            self._dump_stages(source, filename)
            table = self.runtime.run(source, filename=filename, verbosity=self.verbose,
                                     stats=self.total_stats, keep_globals=is_repl)
            if print_result and table:
                print(format_globals(table))
        except TablicaError as exc:
            return self._handle_exception(exc, filename, source, is_repl=is_repl)
        else:
            self.executed_items += 1
        return False

    def call_function(self, name: str, args: list[int]) -> None:
        try:
            result = self.runtime.call(name, args, verbosity=self.verbose, stats=self.total_stats)
            print(format_item(result))
        except TablicaError as exc:
            self._handle_exception(exc, f'<CALL:{name}>', '', is_repl=False)
        else:
            self.executed_items += 1

    def repl(self) -> None:
        if sys.platform != "win32": import readline

        print('tablica - Assignment language REPL; type Ctrl+C to exit.')
        pending: list[str] = []
        try:
            while True:
                line = input("\033[36m... \033[0m" if pending else "\033[36m<<< \033[0m").strip()
                if line in ('quit', 'exit'): break
                if not line: continue
                pending.append(line)

                before = dict(self.runtime.globals)
                if self._execute_script("\n".join(pending) + "\n", '<REPL>', is_repl=True):
                    continue  # Statement still open, keep reading.
                pending.clear()
                for name, value in self.runtime.globals.items():
                    if name not in before or before[name] != value:
                        print("\033[90m>>>\033[0m", f"{name} = {format_item(value)}")
        except (KeyboardInterrupt, EOFError):
            print("")

    def finalize(self) -> int:
        if self.total_stats and self.executed_items > 0:
            elapsed_time = time.time() - self.total_stats['start']
            print(f"\n\033[97m\033[48;5;30m STATISTICS. \033[0m")
            print(f"step\t\033[97m{self.total_stats['steps']:,}\033[0m")
            print(f"time\t\033[97m{elapsed_time:.3f}s\033[0m")
        return 1 if self.failure else 0


def _inline_command_source(index: int, command: str) -> ExecutionItem:
    source = command.rstrip()
    if source and not source.endswith((';', '}')):
        source += ';'
    return ExecutionItem(source + '\n', f'<INPUT_{index}>')


def _dev_actions(tokens: list[str]) -> list[tuple[str, Path | str | None]]:
    """Turn the dev command line into `(kind, payload)` pairs for files, `-c CODE` and `--repl`."""
    actions, args = [], iter(tokens)
    for token in args:
        if token in ('-c', '--command'):
            if (code := next(args, None)) is None:
                raise click.BadParameter("Missing inline code after -c/--command option.")
            actions.append(('command', code))
        elif token in ('-r', '--repl'):
            actions.append(('repl', None))
        elif token.startswith('-'):
            raise click.BadParameter(f"Unknown option `{token}`.")
        elif not Path(token).exists():
            raise click.BadParameter(f"File `{token}` not found.")
        else:
            actions.append(('file', Path(token)))
    return actions


@click.group(invoke_without_command=True, context_settings={'ignore_unknown_options': True, 'allow_extra_args': True})
@click.option('--verbose', '-v', default=0, count=True, help='Trace execution; twice to show every instruction.')
@click.option('--ignore', '-i', is_flag=True, help='Ignore errors and continue executing.')
@click.option('--stats', is_flag=True, help='Display execution statistics (e.g., number of steps).')
@click.option('--plain', '-p', is_flag=True, help='Strip ANSI color codes and redirect stderr to stdout.')
@click.option('--dump', multiple=True, type=click.Choice(DUMP_STAGES), help='Print an intermediate stage before running.')
@click.option('--max-depth', default=DEFAULT_MAX_DEPTH, type=click.IntRange(min=1), help='Maximum call depth.')
@click.option('--max-steps', default=None, type=click.IntRange(min=1), help='Maximum instructions per run.')
@click.pass_context
def cli(ctx: click.Context, verbose: int, ignore: bool, stats: bool, plain: bool,
        dump: tuple[str, ...], max_depth: int, max_steps: int | None) -> None:
    ctx.ensure_object(dict)
    ctx.obj['config'] = RuntimeConfig(verbose=verbose, ignore=ignore, stats=stats, plain=plain,
                                      dump=dump, max_depth=max_depth, max_steps=max_steps)


@cli.command('run-file')
@click.argument('script', type=click.File('r', encoding='utf-8'))
@click.pass_context
def run_file(ctx: click.Context, script) -> None:
    runner = TablicaRunner(ctx.obj['config'])
    runner.execute_items((ExecutionItem(script.read(), script.name or '<STDIN>'),))
    ctx.exit(runner.finalize())


@cli.command('run-call')
@click.argument('script', type=click.File('r', encoding='utf-8'))
@click.argument('name')
@click.argument('args', nargs=-1, type=int)
@click.pass_context
def run_call(ctx: click.Context, script, name: str, args: tuple[int, ...]) -> None:
    runner = TablicaRunner(ctx.obj['config'])
    runner.execute_items((ExecutionItem(script.read(), script.name or '<STDIN>'),), print_result=False)
    if not runner.failure:
        runner.call_function(name, list(args))
    ctx.exit(runner.finalize())


@cli.command('run-dev', context_settings={'ignore_unknown_options': True, 'allow_extra_args': True})
@click.argument('tokens', nargs=-1)
@click.pass_context
def run_dev(ctx: click.Context, tokens: tuple[str, ...]) -> None:
    runner = TablicaRunner(ctx.obj['config'])
    actions = _dev_actions(list(tokens)) or [('repl', None)]

    commands = 0
    for kind, payload in actions:
        match kind:
            case 'file':
                runner.execute_items((ExecutionItem(payload.read_text(encoding='utf-8'), str(payload)),))
            case 'command':
                commands += 1
                item = _inline_command_source(commands, payload)
                runner._execute_script(item.source, item.filename, is_repl=False, print_result=True)
            case 'repl':
                runner.repl()
    ctx.exit(runner.finalize())


@cli.command('run-repl')
@click.pass_context
def run_repl(ctx: click.Context) -> None:
    runner = TablicaRunner(ctx.obj['config'])
    runner.repl()
    ctx.exit(runner.finalize())


def main(argv: list[str] | None = None) -> None:
    a = list(sys.argv[1:] if argv is None else argv)
    g, r, i = [], [], 0
    while i < len(a):
        t = a[i]
        if t in ('--ignore', '--stats', '--plain', '-i', '-p') or t.startswith('-v') or t.startswith('--verbose'):
            g.append(t)
        elif t in ('--dump', '--max-depth', '--max-steps') and i + 1 < len(a):
            g += [t, a[i+1]]; i += 1
        elif t.startswith(('--dump=', '--max-depth=', '--max-steps=')):
            g.append(t)
        else:
            r.append(t)
        i += 1
    pos = [t for t in r if not t.startswith('-')]

    if len(r) == 0:
        # No args: if stdin has data, treat as file '-', else REPL
        cmd, tail = ('run-file', ['-']) if not sys.stdin.isatty() else ('run-repl', [])
    elif r[0] == 'call':
        cmd, tail = 'run-call', r[1:]
    elif r == ['-']:
        cmd, tail = 'run-file', ['-']
    elif r == ['--repl']:
        cmd, tail = 'run-repl', []
    elif len(r) == 1 and len(pos) == 1 and Path(pos[0]).is_file():
        cmd, tail = 'run-file', pos
    else:
        cmd, tail = 'run-dev', r

    cli.main(args=[*g, cmd, *tail], prog_name='tablica')


if __name__ == "__main__":
    main()
