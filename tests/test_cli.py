## tablica — CLI integration tests

import os, sys
import subprocess
from pathlib import Path


def run_cli(*cli_args: str | Path, env: dict | None = None, extra_args: list[str] | None = None) -> subprocess.CompletedProcess:
    return run_cli_input(None, *cli_args, env=env, extra_args=extra_args)


def run_cli_input(stdin: str | None, *cli_args: str | Path, env: dict | None = None, extra_args: list[str] | None = None) -> subprocess.CompletedProcess:
    args = [sys.executable, "-m", "tablica", "--plain"]
    if extra_args:
        args.extend(extra_args)
    args.extend(str(arg) for arg in cli_args)
    merged_env = os.environ.copy()
    if env:
        merged_env.update(env)
    return subprocess.run(args, input=stdin if stdin is not None else "", capture_output=True, text=True, env=merged_env)


def repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _strip_output_lines(output: str) -> list[str]:
    return [line for line in output.splitlines() if line.strip()]


def test_cli_run_file_prints_globals():
    result = run_cli(repo_root() / "tests" / "add.tbl")
    assert result.returncode == 0
    assert _strip_output_lines(result.stdout) == ["x = 42", "y = 30"]


def test_cli_parser_error_shows_context():
    result = run_cli(repo_root() / "tests" / "error-parser.tbl")
    assert result.returncode != 0
    out = result.stdout
    assert "SYNTAX ERROR." in out
    assert "Parsing `" in out
    assert "File \"" in out
    assert "y = x +* 2;" in out


def test_cli_lexer_error_is_a_syntax_error(tmp_path: Path):
    program = tmp_path / "bad.tbl"
    program.write_text("x = 1 @ 2;\n", encoding="utf-8")
    result = run_cli(program)
    assert result.returncode != 0
    assert "SYNTAX ERROR." in result.stdout
    assert "LexError" in result.stdout


def test_cli_runtime_error_shows_context_and_stack():
    result = run_cli(repo_root() / "tests" / "error-runtime.tbl")
    assert result.returncode != 0
    out = result.stdout
    assert "RUNTIME ERROR." in out
    assert "DivisionByZero" in out
    assert "Stack content is" in out
    assert "y = x / 0;" in out


def test_cli_ignore_keeps_going(tmp_path: Path):
    good = tmp_path / "good.tbl"
    good.write_text("z = 9;\n", encoding="utf-8")
    result = run_cli(repo_root() / "tests" / "error-runtime.tbl", good, extra_args=["--ignore"])
    assert "RUNTIME ERROR." in result.stdout
    assert "z = 9" in result.stdout
    assert result.returncode != 0


def test_cli_dev_mode_executes_mixed_inputs(tmp_path: Path):
    first = tmp_path / "first.tbl"
    first.write_text("a = 1;\n", encoding="utf-8")
    second = tmp_path / "second.tbl"
    second.write_text("c = 3;\n", encoding="utf-8")

    result = run_cli(first, "-c", "b = 2", second)

    assert result.returncode == 0
    assert _strip_output_lines(result.stdout) == ["a = 1", "b = 2", "c = 3"]


def test_cli_command_precedence_and_power():
    result = run_cli("-c", "x = 1 + 2 * 3; y = 2 ** 3 ** 2;")
    assert result.returncode == 0
    assert _strip_output_lines(result.stdout) == ["x = 7", "y = 64"]


def test_cli_stdin_implicit_runs_program():
    result = run_cli_input("x = 42; y = x ** 2 + 3 % 2;\n")
    assert result.returncode == 0
    assert _strip_output_lines(result.stdout) == ["x = 42", "y = 1765"]


def test_cli_stdin_dash_runs_program():
    result = run_cli_input("q = 5 % 3;\n", "-")
    assert result.returncode == 0
    assert _strip_output_lines(result.stdout) == ["q = 2"]


def test_cli_float_overflow_is_runtime_error():
    result = run_cli("-c", "x = 10 ** 400 / 3;")
    assert result.returncode != 0
    assert "RUNTIME ERROR." in result.stdout
    assert "ResourceExhausted" in result.stdout
    assert "Traceback" not in result.stderr


def test_cli_call_subcommand():
    result = run_cli("call", repo_root() / "tests" / "add.tbl", "add", "7", "8")
    assert result.returncode == 0
    assert _strip_output_lines(result.stdout) == ["15"]


def test_cli_call_arity_mismatch():
    result = run_cli("call", repo_root() / "tests" / "add.tbl", "add", "7")
    assert result.returncode != 0
    assert "RUNTIME ERROR." in result.stdout
    assert "ArityMismatch" in result.stdout


def test_cli_dump_stages():
    result = run_cli("-c", "x = 1 + 2;", extra_args=["--dump", "tokens", "--dump", "ast", "--dump", "bytecode"])
    assert result.returncode == 0
    out = result.stdout
    assert "TOKENS." in out and "AST." in out and "BYTECODE." in out
    assert "BinaryExpr +" in out
    assert "STORE_VAR x" in out
    assert out.rstrip().endswith("x = 3")


def test_cli_stats():
    result = run_cli("-c", "x = 1;", extra_args=["--stats"])
    assert result.returncode == 0
    assert "STATISTICS." in result.stdout
    assert "step\t3" in result.stdout


def test_cli_max_depth(tmp_path: Path):
    program = tmp_path / "loop.tbl"
    program.write_text("function f(n) { return f(n + 1); }\nx = f(0);\n", encoding="utf-8")
    result = run_cli(program, extra_args=["--max-depth", "20"])
    assert result.returncode != 0
    assert "ResourceExhausted" in result.stdout


def test_cli_repl_keeps_globals_and_continues_lines():
    result = run_cli_input("x = 2;\ny = x\n* 5;\nquit\n", "--repl")
    assert result.returncode == 0
    lines = _strip_output_lines(result.stdout)
    assert any(line.endswith("x = 2") for line in lines)
    assert any(line.endswith("y = 10") for line in lines)
