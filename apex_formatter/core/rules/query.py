"""
Query Rules

Checks for SOQL/SOSL literals. Keyword casing is checked for every query
literal; layout checks depend on whether the query sits on one line.
"""

from typing import Dict, Iterable, List, Optional

from ..diagnostics import Diagnostic
from ..lexer import QueryPart, Token, TokenKind
from ..tree import Span
from .base import Rule, RuleCategory, RuleContext

# Keywords that start a new top-level clause
CLAUSE_KEYWORDS = {
    'SELECT': 'select',
    'FIND': 'find',
    'FROM': 'from',
    'WHERE': 'where',
    'GROUP': 'other',
    'ORDER': 'other',
    'LIMIT': 'other',
    'OFFSET': 'other',
    'HAVING': 'other',
    'WITH': 'other',
    'FOR': 'other',
    'RETURNING': 'other',
    'USING': 'other',
}


def part_span(part: QueryPart) -> Span:
    """Span of a single-line query part."""
    return Span(part.offset, part.end_offset, part.line, part.column, part.line, part.column + len(part.text))


def significant_parts(token: Token) -> List[QueryPart]:
    return [part for part in token.parts if part.kind != 'whitespace']


class QueryKeywordCaseRule(Rule):
    """SOQL/SOSL keywords are upper case."""
    id = 'query-keyword-case'
    description = 'SOQL/SOSL keywords inside query literals are upper case'
    category = RuleCategory.QUERY
    applies_to = frozenset({TokenKind.QUERY})

    def check(self, token: Token, context: RuleContext) -> Iterable[Diagnostic]:
        for part in token.parts:
            if part.kind == 'keyword' and part.text != part.text.upper():
                yield self.report(context, part_span(part),
                                  f"query keyword '{part.text}' should be upper case", part.text.upper())


class QueryFormatRule(Rule):
    """
    Query layout.

    A single-line query must fit within the line length; once a query is
    wrapped, each selected field and each WHERE condition goes on its own
    line.
    """
    id = 'query-format'
    description = 'Queries that do not fit on one line put one field and one condition per line'
    category = RuleCategory.QUERY
    applies_to = frozenset({TokenKind.QUERY})

    def check(self, token: Token, context: RuleContext) -> Iterable[Diagnostic]:
        limit = context.config.line_length
        if token.start_line == token.end_line:
            last_column = token.end_col - 1
            if last_column > limit:
                fields = self.count_fields(token)
                yield self.report(
                    context, Span.of_token(token),
                    f"query ends at column {last_column}, past the limit of {limit}; "
                    f"put each of its {fields} selected field(s) and each condition on its own line")
            return

        yield from self._check_wrapped(token, context)

    @staticmethod
    def count_fields(token: Token) -> int:
        """Number of top-level selected fields of the outer SELECT."""
        count = 0
        clause: Optional[str] = None
        depth = 0
        previous: Optional[QueryPart] = None
        for part in significant_parts(token):
            if part.text == '(':
                depth += 1
            elif part.text == ')':
                depth -= 1
            elif depth == 0 and part.kind == 'keyword' and part.text.upper() in CLAUSE_KEYWORDS:
                clause = CLAUSE_KEYWORDS[part.text.upper()]
            elif depth == 0 and clause == 'select' and part.kind == 'identifier' and previous is not None \
                    and (previous.text == ',' or previous.text.upper() == 'SELECT'):
                count += 1
            previous = part
        return count

    def _check_wrapped(self, token: Token, context: RuleContext) -> Iterable[Diagnostic]:
        clause: Optional[str] = None
        depth = 0
        previous: Optional[QueryPart] = None
        fields_on_line: Dict[int, int] = {}
        first_on_line: Dict[int, QueryPart] = {}

        for part in significant_parts(token):
            first_on_line.setdefault(part.line, part)
            if part.text == '(':
                depth += 1
            elif part.text == ')':
                depth -= 1
            elif depth == 0 and part.kind == 'keyword' and part.text.upper() in CLAUSE_KEYWORDS:
                clause = CLAUSE_KEYWORDS[part.text.upper()]
            elif depth == 0 and clause == 'select' and previous is not None \
                    and (previous.text == ',' or previous.text.upper() == 'SELECT'):
                fields_on_line[part.line] = fields_on_line.get(part.line, 0) + 1
                if fields_on_line[part.line] == 2:
                    yield self.report(context, part_span(part),
                                      "wrapped query should select one field per line")
            elif depth == 0 and clause == 'where' and part.kind == 'keyword' \
                    and part.text.upper() in ('AND', 'OR') and first_on_line[part.line] is not part:
                yield self.report(context, part_span(part),
                                  f"wrapped query should start each condition on its own line, "
                                  f"break before '{part.text}'")
            previous = part
