## Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

from .types import Token, Literal, VariableRef, BinaryExpr, Call, Assignment, Return, FunctionDecl, Program
from .errors import ParseError, IncompleteParse


# Binary operators per precedence level, loosest first. Every level folds left.
ADD_SUB = ('+', '-')
MUL_DIV_MOD = ('*', '/', '%')
POWER = ('**',)


class Parser:
    """Recursive descent over a token list; the first error aborts the parse."""

    def __init__(self, tokens, filename=None):
        self.tokens = list(tokens)
        self.index = 0
        self.filename = filename
        if not self.tokens or self.tokens[-1].kind != Token.EOF:
            last = self.tokens[-1] if self.tokens else None
            line, column = (last.line, last.column + len(last.text)) if last else (1, 1)
            pos = last.pos + len(last.text) if last else 0
            self.tokens.append(Token(Token.EOF, '', None, line, column, pos))

    # Cursor ──────────────────────────────────────────────────────────────────────────────────
    def peek(self, offset=0) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def at(self, kind, text=None) -> bool:
        tok = self.peek()
        return tok.kind == kind and (text is None or tok.text in text)

    def advance(self) -> Token:
        tok = self.peek()
        if tok.kind != Token.EOF:
            self.index += 1
        return tok

    def expect(self, kind, text=None) -> Token:
        if not self.at(kind, text):
            self.fail(kind if text is None else ' | '.join(repr(t) for t in text))
        return self.advance()

    def fail(self, expected, message=None):
        tok = self.peek()
        error_class = IncompleteParse if tok.kind == Token.EOF else ParseError
        found = "end of input" if tok.kind == Token.EOF else f"{tok.kind} `{tok.text}`"
        message = message or f"Expected {expected} but found {found} at line {tok.line}, column {tok.column}."
        raise error_class(message, token=tok, expected=expected, line=tok.line, column=tok.column,
                          filename=self.filename)

    def meta(self, tok: Token) -> dict:
        return {'filename': self.filename, 'line': tok.line, 'column': tok.column}

    # Statements ──────────────────────────────────────────────────────────────────────────────
    def parse_program(self) -> Program:
        statements = []
        while not self.at(Token.EOF):
            statements.append(self.parse_statement())
        return Program(tuple(statements), meta={'filename': self.filename, 'line': 1, 'column': 1})

    def parse_statement(self):
        if self.at(Token.FUNCTION):
            return self.parse_function()
        if self.at(Token.RETURN):
            self.fail('FUNCTION | IDENTIFIER', message=f"`return` outside of a function body at line {self.peek().line}.")
        return self.parse_assignment()

    def parse_function(self) -> FunctionDecl:
        head = self.expect(Token.FUNCTION)
        name = self.expect(Token.IDENTIFIER).text

        self.expect(Token.LPAREN)
        params = []
        if not self.at(Token.RPAREN):
            params.append(self.parse_param(params))
            while self.at(Token.COMMA):
                self.advance()
                params.append(self.parse_param(params))
        self.expect(Token.RPAREN)

        self.expect(Token.LBRACE)
        body = []
        while not self.at(Token.RBRACE):
            if self.at(Token.RETURN):
                body.append(self.parse_return())
                break
            if self.at(Token.FUNCTION):
                self.fail('IDENTIFIER | RETURN | RBRACE', message=f"Nested function declaration at line {self.peek().line}.")
            body.append(self.parse_assignment())
        self.expect(Token.RBRACE)
        return FunctionDecl(name, tuple(params), tuple(body), meta=self.meta(head))

    def parse_param(self, seen: list) -> str:
        tok = self.peek()
        name = self.expect(Token.IDENTIFIER).text
        if name in seen:
            raise ParseError(f"Duplicate parameter `{name}` at line {tok.line}, column {tok.column}.",
                             token=tok, expected=Token.IDENTIFIER, line=tok.line, column=tok.column,
                             filename=self.filename)
        return name

    def parse_return(self) -> Return:
        head = self.expect(Token.RETURN)
        expr = self.parse_expression()
        self.expect(Token.SEMICOLON)
        return Return(expr, meta=self.meta(head))

    def parse_assignment(self) -> Assignment:
        target = self.expect(Token.IDENTIFIER)
        self.expect(Token.EQUALS)
        expr = self.parse_expression()
        self.expect(Token.SEMICOLON)
        return Assignment(target.text, expr, meta=self.meta(target))

    # Expressions ─────────────────────────────────────────────────────────────────────────────
    def parse_expression(self):
        return self.parse_binary(ADD_SUB, self.parse_mul_div_mod)

    def parse_mul_div_mod(self):
        return self.parse_binary(MUL_DIV_MOD, self.parse_power)

    def parse_power(self):
        # Left-associative: 2 ** 3 ** 2 == (2 ** 3) ** 2.
        return self.parse_binary(POWER, self.parse_primary)

    def parse_binary(self, operators, parse_operand):
        left = parse_operand()
        while self.at(Token.OPERATOR, operators):
            op = self.advance()
            right = parse_operand()
            left = BinaryExpr(op.text, left, right, meta=self.meta(op))
        return left

    def parse_primary(self):
        tok = self.peek()
        if tok.kind == Token.NUMBER:
            self.advance()
            return Literal(tok.value, meta=self.meta(tok))
        if tok.kind == Token.IDENTIFIER:
            self.advance()
            if self.at(Token.LPAREN):
                return self.parse_call_arguments(tok)
            return VariableRef(tok.text, meta=self.meta(tok))
        if tok.kind == Token.LPAREN:
            self.advance()
            expr = self.parse_expression()
            self.expect(Token.RPAREN)
            return expr
        self.fail('NUMBER | IDENTIFIER | LPAREN')

    def parse_call_arguments(self, name: Token) -> Call:
        self.expect(Token.LPAREN)
        args = []
        if not self.at(Token.RPAREN):
            args.append(self.parse_expression())
            while self.at(Token.COMMA):
                self.advance()
                args.append(self.parse_expression())
        self.expect(Token.RPAREN)
        return Call(name.text, tuple(args), meta=self.meta(name))


def parse(tokens, filename=None) -> Program:
    return Parser(tokens, filename=filename).parse_program()


def format_parse_error_context(filename, line, column, token_value, source=None):
    lines = source.splitlines(keepends=True) if source is not None else open(filename, 'r').readlines()
    if not lines: lines = ['']
    line = max(1, min(line or 1, len(lines)))
    column = column or 0
    start_line, end_line = max(0, line - 3), min(len(lines), line + 2)
    result = [f"\033[97m  File \"{filename}\", line {line}\033[0m"]

    width = max(len(token_value or ''), 1)
    for i in range(start_line, end_line):
        line_content = lines[i].rstrip('\n')
        line_color = '\033[90m'
        if i+1 == line:
            line_color = '\033[97m'
            if column > 0 and column <= len(line_content):
                line_content = (
                    line_content[:column-1] +
                    f"\033[48;5;30m\033[1;97m{line_content[column-1:column+width-1]}\033[0m" +
                    line_content[column+width-1:]
                )
        result.append(f"{line_color}{i+1:>5} |\033[0m {line_content}")
    return '\n' + '\n'.join(result) + '\n'
