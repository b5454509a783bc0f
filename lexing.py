"""
Flax Lexer
Converts source text into a token stream terminated by an EOF token
"""

from typing import List, Any
from dataclasses import dataclass
import re
import sys

# Import pyparsing with error handling
try:
    from pyparsing import (
        Regex, Literal, ZeroOrMore, StringEnd, ParseResults, ParseException,
        one_of, lineno
    )
except ImportError:
    raise ImportError("pyparsing library not found. Install with: pip install pyparsing")

from error_handling import FlaxLexError


KEYWORDS = {
    'func': 'FUNC',
    'let': 'LET',
    'if': 'IF',
    'else': 'ELSE',
    'while': 'WHILE',
    'return': 'RETURN',
    'true': 'TRUE',
    'false': 'FALSE',
    'nil': 'NIL',
}

OPERATORS = {
    '++': 'PLUS_PLUS',
    '+=': 'PLUS_EQUAL',
    '==': 'EQUAL_EQUAL',
    '!=': 'BANG_EQUAL',
    '<=': 'LESS_EQUAL',
    '>=': 'GREATER_EQUAL',
    '+': 'PLUS',
    '-': 'MINUS',
    '*': 'STAR',
    '/': 'SLASH',
    '<': 'LESS',
    '>': 'GREATER',
    '=': 'EQUAL',
    '!': 'BANG',
    '?': 'QUESTION',
    ':': 'COLON',
}

PUNCTUATION = {
    '(': 'LEFT_PAREN',
    ')': 'RIGHT_PAREN',
    '{': 'LEFT_BRACE',
    '}': 'RIGHT_BRACE',
    ',': 'COMMA',
    ';': 'SEMICOLON',
}

STRING_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"'}

# Characters skipped between tokens; anything else that starts no token is a lex error
WHITESPACE = ' \t\r\n\f\v'


@dataclass(frozen=True)
class Token:
    """Flax token with the line it was read from"""
    kind: str
    lexeme: str
    literal: Any = None
    line: int = 0

    def __str__(self) -> str:
        if self.literal is not None:
            return f"{self.kind}({self.lexeme}) = {self.literal!r} @ line {self.line}"
        return f"{self.kind}({self.lexeme}) @ line {self.line}"


class FlaxTokenizer:
    """Flax tokenizer; token patterns are pyparsing elements scanned left to right"""

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._setup_token_patterns()

    def _setup_token_patterns(self):
        """Setup all token patterns for Flax"""

        # Line comments run to the end of the line and are never emitted
        comment = Regex(r'//[^\n]*')

        # String literals may span lines and contain escapes
        string_literal = Regex(r'"(?:[^"\\]|\\.)*"', flags=re.DOTALL)
        string_literal.set_parse_action(self._make_string)

        # A quote that could not start a complete string literal
        unterminated_string = Literal('"')
        unterminated_string.set_parse_action(self._unterminated_string)

        number = Regex(r'\d+(?:\.\d+)?')
        number.set_parse_action(self._make_number)

        # Identifiers and keywords share one pattern; keywords are split off in the action
        identifier = Regex(r'[A-Za-z_][A-Za-z0-9_]*')
        identifier.set_parse_action(self._make_word)

        # one_of matches the longest operator first
        operator = one_of(list(OPERATORS))
        operator.set_parse_action(self._make_symbol)

        punctuation = one_of(list(PUNCTUATION))
        punctuation.set_parse_action(self._make_symbol)

        unknown = Regex(r'[^ \t\r\n\f\v]')
        unknown.set_parse_action(self._unknown_character)

        token = (
            string_literal |
            unterminated_string |
            number |
            identifier |
            operator |
            punctuation |
            unknown
        )

        tokens = ZeroOrMore(token)
        end = StringEnd()
        scanner = tokens + end

        # Every element skips the same whitespace, so \f and \v separate tokens too
        for element in (comment, string_literal, unterminated_string, number, identifier,
                        operator, punctuation, unknown, token, tokens, end, scanner):
            element.set_whitespace_chars(WHITESPACE)

        scanner.ignore(comment)
        # Keep tab characters inside string literals untouched
        scanner.parse_with_tabs()

        self.scanner = scanner

    # ------------------------------------------------------------------------
    # Parse actions
    # ------------------------------------------------------------------------

    def _make_string(self, s: str, loc: int, toks: ParseResults) -> Token:
        lexeme = toks[0]
        return Token('STRING', lexeme, self._process_string_escapes(lexeme[1:-1]), lineno(loc, s))

    def _make_number(self, s: str, loc: int, toks: ParseResults) -> Token:
        lexeme = toks[0]
        return Token('NUMBER', lexeme, float(lexeme), lineno(loc, s))

    def _make_word(self, s: str, loc: int, toks: ParseResults) -> Token:
        lexeme = toks[0]
        line = lineno(loc, s)
        if lexeme in KEYWORDS:
            kind = KEYWORDS[lexeme]
            literal = {'TRUE': True, 'FALSE': False}.get(kind)
            return Token(kind, lexeme, literal, line)
        return Token('IDENTIFIER', lexeme, None, line)

    def _make_symbol(self, s: str, loc: int, toks: ParseResults) -> Token:
        lexeme = toks[0]
        kind = OPERATORS.get(lexeme) or PUNCTUATION[lexeme]
        return Token(kind, lexeme, None, lineno(loc, s))

    def _unterminated_string(self, s: str, loc: int, toks: ParseResults):
        raise FlaxLexError("Unterminated string", lineno(loc, s))

    def _unknown_character(self, s: str, loc: int, toks: ParseResults):
        raise FlaxLexError(f"Unexpected character '{toks[0]}'", lineno(loc, s))

    def _process_string_escapes(self, s: str) -> str:
        """Process escape sequences in strings"""
        result = []
        i = 0
        while i < len(s):
            if s[i] == '\\' and i + 1 < len(s) and s[i + 1] in STRING_ESCAPES:
                result.append(STRING_ESCAPES[s[i + 1]])
                i += 2
            else:
                # Unknown escape, keep as-is
                result.append(s[i])
                i += 1
        return ''.join(result)

    # ------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize Flax source; raises FlaxLexError on the first bad character"""
        try:
            result = self.scanner.parse_string(text, parse_all=True)
        except ParseException as e:
            found = repr(text[e.loc]) if e.loc < len(text) else "end of input"
            raise FlaxLexError(f"Cannot tokenize input at {found}", lineno(e.loc, text)) from e
        tokens = list(result)
        tokens.append(Token('EOF', '', None, text.count('\n') + 1))

        if self.debug:
            print(f"[lex] {len(tokens)} tokens", file=sys.stderr)
            for tok in tokens:
                print(f"[lex]   {tok}", file=sys.stderr)

        return tokens


# Factory functions for creating tokenizers
def create_tokenizer(debug: bool = False) -> FlaxTokenizer:
    """Create a Flax tokenizer"""
    return FlaxTokenizer(debug=debug)


def tokenize(text: str) -> List[Token]:
    """Tokenize Flax source code"""
    return create_tokenizer().tokenize(text)
