## tablica — Copyright © 2025, Alex J. Champandard.  Licensed under AGPLv3; see LICENSE! ⚘

import lark

from .types import Token, TOKEN_KINDS
from .errors import LexError


# The start rule only lists the terminals so lark keeps all of them; nothing is parsed.
GRAMMAR = r"""start: _token*
_token: NUMBER | IDENTIFIER | FUNCTION | RETURN | OPERATOR | COMPARATOR | EQUALS
      | SEMICOLON | LPAREN | RPAREN | LBRACE | RBRACE | COMMA

// KEYWORDS, promoted from IDENTIFIER only when the whole word matches.
FUNCTION: "function"
RETURN: "return"

// TOKENS
NUMBER: /[0-9]+/
IDENTIFIER: /[A-Za-z][A-Za-z0-9]*/
OPERATOR: /\*\*|[+\-*\/%]/
COMPARATOR: /==|!=|<=|>=|<|>/
EQUALS: "="
SEMICOLON: ";"
LPAREN: "("
RPAREN: ")"
LBRACE: "{"
RBRACE: "}"
COMMA: ","

// WHITESPACE
%import common.WS
%ignore WS
"""

_LEXER = None

def _get_lexer() -> lark.Lark:
    global _LEXER
    if _LEXER is None:
        _LEXER = lark.Lark(GRAMMAR, parser="lalr", lexer="basic")
    return _LEXER


def tokenize(source: str, filename=None) -> list[Token]:
    """Split source text into tokens, left to right, ending with a single EOF token."""
    tokens = []
    try:
        for tok in _get_lexer().lex(source):
            assert tok.type in TOKEN_KINDS, f"Unexpected terminal {tok.type} from grammar."
            value = int(tok.value) if tok.type == Token.NUMBER else str(tok.value)
            tokens.append(Token(tok.type, str(tok.value), value, tok.line, tok.column, tok.start_pos))
    except lark.exceptions.UnexpectedCharacters as exc:
        raise LexError(f"Unexpected character {exc.char!r} at line {exc.line}, column {exc.column}.",
                       char=exc.char, pos=exc.pos_in_stream, line=exc.line, column=exc.column,
                       filename=filename) from None

    line = source.count('\n') + 1
    column = len(source) - (source.rfind('\n') + 1) + 1
    tokens.append(Token(Token.EOF, '', None, line, column, len(source)))
    return tokens
