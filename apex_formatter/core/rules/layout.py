"""
Layout Rules

Line length, continuation-line alignment and method signature wrapping.
"""

from typing import Iterable, List, Set, Tuple

from ..diagnostics import Diagnostic, Severity
from ..lexer import TokenKind
from ..tree import Node, NodeKind, Span
from .base import Rule, RuleCategory, RuleContext

# Statements owning a body; only their header expression is a continuation
COMPOUND_KEYWORDS = frozenset({'if', 'while', 'for', 'do', 'try', 'switch', 'when'})


class LineLengthRule(Rule):
    """
    Physical lines must not exceed the configured line length. Tabs advance
    to the next multiple of the indent width.
    """
    id = 'line-length'
    description = 'Lines do not exceed the configured line length'
    category = RuleCategory.LAYOUT
    applies_to = frozenset({NodeKind.COMPILATION_UNIT})
    default_severity = Severity.ERROR

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        limit = context.config.line_length
        tab_width = context.config.indent_width
        query_lines = self._single_line_query_lines(context)

        for number, text in enumerate(context.lines, start=1):
            width = len(text.expandtabs(tab_width))
            if width <= limit:
                continue
            column = overflow_column(text, limit, tab_width)
            start = context.offset_of(number, column)
            span = Span(start, start + len(text) - column + 1, number, column, number, len(text) + 1)
            message = f"line is {width} columns wide, exceeding the limit of {limit}"
            suggestion = None
            if number in query_lines:
                message += "; format the query with one field per line"
                suggestion = "one field per line"
            yield self.report(context, span, message, suggestion)

    @staticmethod
    def _single_line_query_lines(context: RuleContext) -> Set[int]:
        return {
            token.start_line for token in context.tokens
            if token.kind == TokenKind.QUERY and token.start_line == token.end_line
        }


def overflow_column(text: str, limit: int, tab_width: int) -> int:
    """1-based character column of the first character ending past ``limit`` display columns."""
    position = 0
    for index, char in enumerate(text):
        if char == '\t' and tab_width > 0:
            position = (position // tab_width + 1) * tab_width
        else:
            position += 1
        if position > limit:
            return index + 1
    return len(text)


class WrapAlignmentRule(Rule):
    """
    Continuation lines of a wrapped statement either align with the first
    character after an open delimiter, or are indented by one or two indent
    widths from the line that opened the construct.
    """
    id = 'wrap-alignment'
    description = 'Wrapped continuation lines align with the open delimiter or use a fixed indent'
    category = RuleCategory.LAYOUT
    applies_to = frozenset({NodeKind.STATEMENT, NodeKind.VARIABLE_DECL, NodeKind.FIELD_DECL,
                            NodeKind.EXPRESSION})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        if node.kind == NodeKind.STATEMENT and node.keyword in COMPOUND_KEYWORDS:
            return
        if node.kind == NodeKind.EXPRESSION and not self._is_header(node):
            return
        if node.span is None or node.span.start_line == node.span.end_line:
            return

        tokens = context.tokens
        width = context.config.indent_width
        base_line = tokens[node.first_token].start_line
        base = self._indent_width(context, base_line)
        # open delimiters: (opener line, column after opener, column of first content or None)
        openers: List[Tuple[int, int, int]] = []

        for index in context.significant_indices(node):
            token = tokens[index]
            if token.start_line != base_line and context.first_on_line(index):
                allowed = {base + width + 1, base + 2 * width + 1}
                if token.is_punct(')', ']', '}'):
                    allowed.add(base + 1)
                if openers:
                    line, after, content = openers[-1]
                    opener_indent = self._indent_width(context, line)
                    allowed.update({after, opener_indent + width + 1, opener_indent + 2 * width + 1})
                    if content:
                        allowed.add(content)
                    if token.is_punct(')', ']', '}'):
                        allowed.add(opener_indent + 1)
                if token.start_col not in allowed:
                    yield self.report(
                        context, Span.of_token(token),
                        f"continuation line starts at column {token.start_col}; align it with the open "
                        f"delimiter or indent it by {width} or {2 * width} spaces")

            if token.is_punct('(', '[', '{'):
                following = context.next_significant(index)
                content = 0
                if following is not None and tokens[following].start_line == token.start_line:
                    content = tokens[following].start_col
                openers.append((token.start_line, token.end_col, content))
            elif token.is_punct(')', ']', '}') and openers:
                openers.pop()

    @staticmethod
    def _is_header(node: Node) -> bool:
        """Condition of a compound statement or trigger header."""
        parent = node.parent
        return parent is not None and (
            (parent.kind == NodeKind.STATEMENT and parent.keyword in COMPOUND_KEYWORDS)
            or parent.kind == NodeKind.CLASS_DECL
        )

    @staticmethod
    def _indent_width(context: RuleContext, line: int) -> int:
        return len(context.indent_of(line))


class MethodSignatureWrapRule(Rule):
    """A wrapped method signature places each parameter on its own line."""
    id = 'method-signature-wrap'
    description = 'Method signatures that do not fit on one line place one parameter per line'
    category = RuleCategory.LAYOUT
    applies_to = frozenset({NodeKind.METHOD_DECL})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        if len(node.parameters) < 2:
            return
        name_line = node.declarators[0].start_line if node.declarators else node.span.start_line
        last_line = node.parameters[-1].name_token.end_line
        if name_line == last_line:
            return

        seen_lines = set()
        for parameter in node.parameters:
            line = parameter.name_token.start_line
            if line in seen_lines:
                yield self.report(
                    context, Span.of_token(parameter.name_token),
                    f"wrapped signature of '{node.name}' should place parameter '{parameter.name}' "
                    f"on its own line")
            seen_lines.add(line)
