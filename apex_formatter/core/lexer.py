"""
Lexer Module

This module converts raw Apex source text into a lossless sequence of
positioned tokens. Whitespace, newlines and comments are kept as tokens so
whitespace rules and the autofixer can work purely at the token level, and
embedded SOQL/SOSL queries are captured whole with an inner part list.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple
import logging

from .errors import LexError

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    """Token categories produced by the lexer."""
    WHITESPACE = "whitespace"
    NEWLINE = "newline"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    DOC_COMMENT = "doc_comment"
    IDENTIFIER = "identifier"
    KEYWORD = "keyword"
    STRING = "string"
    NUMBER = "number"
    ANNOTATION = "annotation"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"
    QUERY = "query"
    UNKNOWN = "unknown"


TRIVIA_KINDS = frozenset({
    TokenKind.WHITESPACE,
    TokenKind.NEWLINE,
    TokenKind.LINE_COMMENT,
    TokenKind.BLOCK_COMMENT,
    TokenKind.DOC_COMMENT,
})

COMMENT_KINDS = frozenset({TokenKind.LINE_COMMENT, TokenKind.BLOCK_COMMENT, TokenKind.DOC_COMMENT})

# Apex is case-insensitive, keywords are matched on the lower-cased lexeme
APEX_KEYWORDS = frozenset({
    'abstract', 'after', 'before', 'break', 'catch', 'class', 'continue',
    'delete', 'do', 'else', 'enum', 'extends', 'false', 'final', 'finally',
    'for', 'global', 'if', 'implements', 'inherited', 'insert', 'instanceof',
    'interface', 'merge', 'new', 'null', 'on', 'override', 'private',
    'protected', 'public', 'return', 'sharing', 'static', 'super', 'switch',
    'testmethod', 'this', 'throw', 'transient', 'trigger', 'true', 'try',
    'undelete', 'update', 'upsert', 'virtual', 'void', 'webservice', 'when',
    'while', 'with', 'without',
})

SOQL_KEYWORDS = frozenset({
    'SELECT', 'FROM', 'WHERE', 'AND', 'OR', 'NOT', 'IN', 'LIKE', 'LIMIT',
    'OFFSET', 'ORDER', 'BY', 'ASC', 'DESC', 'NULLS', 'FIRST', 'LAST',
    'GROUP', 'HAVING', 'INCLUDES', 'EXCLUDES', 'FOR', 'UPDATE', 'VIEW',
    'REFERENCE', 'WITH', 'TYPEOF', 'WHEN', 'THEN', 'ELSE', 'END', 'USING',
    'SCOPE', 'FIND', 'RETURNING', 'SECURITY_ENFORCED', 'ROLLUP', 'CUBE',
})

PUNCTUATION_CHARS = frozenset('(){}[];,.:')

OPERATORS = (
    '<<=', '===', '!==', '==', '!=', '<=', '>=', '&&', '||', '++', '--',
    '+=', '-=', '*=', '/=', '&=', '|=', '^=', '=>', '?.', '??', '<<',
    '+', '-', '*', '/', '%', '=', '<', '>', '!', '&', '|', '^', '~', '?',
)

_NEWLINE_RE = re.compile(r'\r\n|\r|\n')
_WHITESPACE_RE = re.compile(r'[ \t\f\v]+')
_IDENTIFIER_RE = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')
_NUMBER_RE = re.compile(r'\d+(?:\.\d+)?(?:[eE][+-]?\d+)?[lLdD]?|\.\d+(?:[eE][+-]?\d+)?[dD]?')
_ANNOTATION_RE = re.compile(r'@[A-Za-z_][A-Za-z0-9_]*')
_QUERY_START_RE = re.compile(r'\[\s*(?:select|find)\b', re.IGNORECASE)

_QUERY_PART_RE = re.compile(r"""
    (?P<whitespace>\s+)
   |(?P<string>'(?:\\.|[^'\\])*')
   |(?P<bind>:\s*[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
   |(?P<number>\d+(?:\.\d+)?)
   |(?P<word>[A-Za-z_][A-Za-z0-9_]*)
   |(?P<punct>.)
""", re.VERBOSE | re.DOTALL)


@dataclass(frozen=True)
class QueryPart:
    """A sub-token inside a query literal, with absolute position."""
    kind: str
    text: str
    offset: int
    line: int
    column: int

    @property
    def end_offset(self) -> int:
        return self.offset + len(self.text)


@dataclass(frozen=True)
class Token:
    """
    A positioned token.

    Lines and columns are 1-based, ``end_col`` is exclusive and ``offset`` is
    the 0-based character offset of the first character in the source.
    """
    kind: TokenKind
    lexeme: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    offset: int
    parts: Tuple[QueryPart, ...] = ()

    @property
    def end_offset(self) -> int:
        return self.offset + len(self.lexeme)

    @property
    def is_trivia(self) -> bool:
        return self.kind in TRIVIA_KINDS

    @property
    def lower(self) -> str:
        return self.lexeme.lower()

    def is_punct(self, *chars: str) -> bool:
        return self.kind == TokenKind.PUNCTUATION and self.lexeme in chars

    def is_keyword(self, *words: str) -> bool:
        return self.kind == TokenKind.KEYWORD and self.lexeme.lower() in words

    def __repr__(self):
        return f"Token({self.kind.name}, {self.lexeme!r}, {self.start_line}:{self.start_col})"


class Lexer:
    """
    Scanner turning Apex source into tokens.

    The lexer never discards input: concatenating the lexemes of the returned
    tokens reproduces the source exactly. Characters it does not recognise
    become UNKNOWN tokens and are left for the parser to report.
    """

    def __init__(self, source: str):
        self.source = source
        self._pos = 0
        self._line = 1
        self._column = 1
        self._tokens: List[Token] = []
        self._last_significant: Optional[Token] = None

    def tokenize(self) -> List[Token]:
        """
        Scan the whole source.

        Returns:
            List of tokens in document order

        Raises:
            LexError: On unterminated strings, block comments or query literals
        """
        source = self.source
        length = len(source)

        while self._pos < length:
            char = source[self._pos]

            if char in '\r\n':
                match = _NEWLINE_RE.match(source, self._pos)
                self._emit(TokenKind.NEWLINE, match.group(0))
            elif char in ' \t\f\v':
                match = _WHITESPACE_RE.match(source, self._pos)
                self._emit(TokenKind.WHITESPACE, match.group(0))
            elif source.startswith('//', self._pos):
                match = _NEWLINE_RE.search(source, self._pos)
                end = match.start() if match else length
                self._emit(TokenKind.LINE_COMMENT, source[self._pos:end])
            elif source.startswith('/*', self._pos):
                self._scan_block_comment()
            elif char == "'":
                self._scan_string()
            elif '0' <= char <= '9' or (char == '.' and self._pos + 1 < length and '0' <= source[self._pos + 1] <= '9'):
                match = _NUMBER_RE.match(source, self._pos)
                self._emit(TokenKind.NUMBER, match.group(0))
            elif char == '_' or 'a' <= char <= 'z' or 'A' <= char <= 'Z':
                self._scan_word()
            elif char == '@' and _ANNOTATION_RE.match(source, self._pos):
                self._emit(TokenKind.ANNOTATION, _ANNOTATION_RE.match(source, self._pos).group(0))
            elif char == '[' and _QUERY_START_RE.match(source, self._pos):
                self._scan_query()
            else:
                self._scan_symbol()

        logger.debug(f"Lexed {len(self._tokens)} tokens from {length} characters")
        return self._tokens

    def _emit(self, kind: TokenKind, lexeme: str, parts: Tuple[QueryPart, ...] = ()) -> Token:
        start_line, start_col, offset = self._line, self._column, self._pos
        self._advance(lexeme)
        token = Token(kind, lexeme, start_line, start_col, self._line, self._column, offset, parts)
        self._tokens.append(token)
        if kind not in TRIVIA_KINDS:
            self._last_significant = token
        return token

    def _advance(self, text: str):
        """Move the cursor past text, keeping line/column in sync."""
        newlines = _NEWLINE_RE.findall(text)
        if newlines:
            self._line += len(newlines)
            last = max(text.rfind('\n'), text.rfind('\r'))
            self._column = len(text) - last
        else:
            self._column += len(text)
        self._pos += len(text)

    def _error(self, message: str, offset: int) -> LexError:
        line, column = position_of(self.source, offset)
        return LexError(message, offset, line, column)

    def _scan_block_comment(self):
        end = self.source.find('*/', self._pos + 2)
        if end == -1:
            raise self._error("unterminated block comment", self._pos)
        lexeme = self.source[self._pos:end + 2]
        is_doc = lexeme.startswith('/**') and lexeme != '/**/'
        self._emit(TokenKind.DOC_COMMENT if is_doc else TokenKind.BLOCK_COMMENT, lexeme)

    def _string_end(self, start: int) -> int:
        """Offset just past the closing quote of the string starting at start."""
        source = self.source
        index = start + 1
        while index < len(source):
            char = source[index]
            if char == '\\':
                index += 2
                continue
            if char == "'":
                return index + 1
            if char in '\r\n':
                break
            index += 1
        raise self._error("unterminated string literal", start)

    def _scan_string(self):
        end = self._string_end(self._pos)
        self._emit(TokenKind.STRING, self.source[self._pos:end])

    def _scan_word(self):
        word = _IDENTIFIER_RE.match(self.source, self._pos).group(0)
        after_dot = self._last_significant is not None and self._last_significant.is_punct('.')
        if word.lower() in APEX_KEYWORDS and not after_dot:
            self._emit(TokenKind.KEYWORD, word)
        else:
            self._emit(TokenKind.IDENTIFIER, word)

    def _scan_query(self):
        source = self.source
        start = self._pos
        depth = 0
        index = start
        while index < len(source):
            char = source[index]
            if char == "'":
                index = self._string_end(index)
                continue
            if char == '[':
                depth += 1
            elif char == ']':
                depth -= 1
                if depth == 0:
                    lexeme = source[start:index + 1]
                    parts = split_query(lexeme, start, self._line, self._column)
                    self._emit(TokenKind.QUERY, lexeme, parts)
                    return
            index += 1
        raise self._error("unterminated query literal", start)

    def _scan_symbol(self):
        source = self.source
        char = source[self._pos]
        if char in PUNCTUATION_CHARS:
            self._emit(TokenKind.PUNCTUATION, char)
            return
        for op in OPERATORS:
            if source.startswith(op, self._pos):
                self._emit(TokenKind.OPERATOR, op)
                return
        self._emit(TokenKind.UNKNOWN, char)


def split_query(lexeme: str, offset: int, line: int, column: int) -> Tuple[QueryPart, ...]:
    """
    Sub-tokenize a query literal.

    Words are classified as ``keyword`` only when their upper-case form is a
    SOQL/SOSL keyword, they do not follow a ``.`` and they are not the object
    name after FROM. Bind expressions (``:name``) are kept whole.

    Args:
        lexeme: The full query text including its brackets
        offset: Absolute offset of the opening bracket
        line: Line of the opening bracket
        column: Column of the opening bracket

    Returns:
        Tuple of QueryPart objects covering the lexeme without gaps
    """
    parts = []
    previous_significant = None
    for match in _QUERY_PART_RE.finditer(lexeme):
        kind = match.lastgroup
        text = match.group(0)
        if kind == 'word':
            after_dot = previous_significant is not None and previous_significant.text == '.'
            after_from = previous_significant is not None and previous_significant.text.upper() == 'FROM'
            if text.upper() in SOQL_KEYWORDS and not after_dot and not after_from:
                kind = 'keyword'
            else:
                kind = 'identifier'
        part = QueryPart(kind, text, offset + match.start(), line, column)
        parts.append(part)
        if kind != 'whitespace':
            previous_significant = part

        newlines = _NEWLINE_RE.findall(text)
        if newlines:
            line += len(newlines)
            column = len(text) - max(text.rfind('\n'), text.rfind('\r'))
        else:
            column += len(text)
    return tuple(parts)


def tokenize(source: str) -> List[Token]:
    """Tokenize Apex source text. See Lexer.tokenize."""
    return Lexer(source).tokenize()


def reconstruct(tokens: Sequence[Token]) -> str:
    """Concatenate token lexemes back into source text."""
    return ''.join(token.lexeme for token in tokens)


def position_of(source: str, offset: int) -> Tuple[int, int]:
    """1-based (line, column) of a character offset."""
    prefix = source[:offset]
    newlines = _NEWLINE_RE.findall(prefix)
    if not newlines:
        return 1, offset + 1
    last = max(prefix.rfind('\n'), prefix.rfind('\r'))
    return len(newlines) + 1, offset - last


def split_lines(source: str) -> List[str]:
    """Physical lines without their terminators, using the lexer's newline rules."""
    return _NEWLINE_RE.split(source)


def line_starts(source: str) -> List[int]:
    """Offset of the first character of every physical line."""
    return [0] + [match.end() for match in _NEWLINE_RE.finditer(source)]
