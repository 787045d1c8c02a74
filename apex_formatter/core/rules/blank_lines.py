"""
Blank Line Rules

Blank-line discipline between methods, after local declarations and after
opening braces. These rules propose edits that rewrite only the whitespace
between two tokens, and only when no comment sits in that gap.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from ..diagnostics import Diagnostic, TextEdit
from ..lexer import COMMENT_KINDS, TokenKind
from ..tree import Node, NodeKind, Span
from .base import Rule, RuleCategory, RuleContext

CONTROL_KEYWORDS = frozenset({'if', 'while', 'for', 'do', 'try', 'when'})


@dataclass
class Gap:
    """Whitespace-only run of tokens between ``after`` and ``before`` (exclusive)."""
    after: int
    before: int
    newlines: int
    newline: str
    indent: str

    @property
    def blank_lines(self) -> int:
        return max(0, self.newlines - 1)


def measure_gap(context: RuleContext, after: int, before: int) -> Optional[Gap]:
    """
    Describe the whitespace between two token indices.

    A comment trailing ``after`` on its own line is skipped over. Any other
    comment ends the gap, so the gap always stops at the first comment or
    at ``before``.

    Returns:
        Gap, or None when the gap does not start with a line break
    """
    tokens = context.tokens
    start = after
    i = after + 1
    while i < before and tokens[i].kind == TokenKind.WHITESPACE:
        i += 1
    if i < before and tokens[i].kind in COMMENT_KINDS and tokens[i].start_line == tokens[after].end_line:
        start = i

    newlines = 0
    newline = '\n'
    end = start + 1
    while end < before and tokens[end].kind in (TokenKind.WHITESPACE, TokenKind.NEWLINE):
        if tokens[end].kind == TokenKind.NEWLINE:
            if newlines == 0:
                newline = tokens[end].lexeme
            newlines += 1
        end += 1
    if newlines == 0:
        return None

    indent = ''
    if tokens[end - 1].kind == TokenKind.WHITESPACE:
        indent = tokens[end - 1].lexeme
    return Gap(start, end, newlines, newline, indent)


def blank_line_edit(context: RuleContext, gap: Gap, wanted: int, rule_id: str) -> TextEdit:
    """Edit rewriting a gap to hold exactly ``wanted`` blank lines."""
    tokens = context.tokens
    start = tokens[gap.after].end_offset
    end = tokens[gap.before].offset if gap.before < len(tokens) else len(context.source)
    return TextEdit(start, end, gap.newline * (wanted + 1) + gap.indent, rule_id)


class _BlankLineRule(Rule):
    category = RuleCategory.BLANK_LINES
    fixable = True

    def expect_blank_lines(self, context: RuleContext, after: int, before: int, wanted: int,
                           message: str) -> Optional[Diagnostic]:
        gap = measure_gap(context, after, before)
        if gap is None or gap.blank_lines == wanted:
            return None
        edit = blank_line_edit(context, gap, wanted, self.id)
        anchor = context.tokens[gap.before] if gap.before < len(context.tokens) else context.tokens[after]
        found = f"found {gap.blank_lines}"
        return self.report(context, Span.of_token(anchor), f"{message} ({found})", edits=(edit,))


class BlankLineBetweenMethodsRule(_BlankLineRule):
    """Exactly one blank line separates sibling method declarations."""
    id = 'blank-line-between-methods'
    description = 'Exactly one blank line separates sibling method declarations'
    applies_to = frozenset({NodeKind.CLASS_DECL, NodeKind.INTERFACE_DECL})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        members = node.children
        for previous, current in zip(members, members[1:]):
            if previous.kind != NodeKind.METHOD_DECL or current.kind != NodeKind.METHOD_DECL:
                continue
            if not previous.children and not current.children:
                # abstract or interface signatures may be grouped
                continue
            diagnostic = self.expect_blank_lines(
                context, previous.last_token, current.first_token, 1,
                f"expected exactly one blank line before method '{current.name}'")
            if diagnostic is not None:
                yield diagnostic


class BlankLineAfterDeclarationsRule(_BlankLineRule):
    """
    Exactly one blank line separates a block's leading local declarations
    from its first other statement.
    """
    id = 'blank-line-after-declarations'
    description = "Exactly one blank line follows a block's leading group of local declarations"
    applies_to = frozenset({NodeKind.BLOCK})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        children = node.children
        if not children or children[0].kind != NodeKind.VARIABLE_DECL:
            return
        for last_declaration, statement in zip(children, children[1:]):
            if statement.kind == NodeKind.VARIABLE_DECL:
                continue
            diagnostic = self.expect_blank_lines(
                context, last_declaration.last_token, statement.first_token, 1,
                "expected exactly one blank line between local declarations and the first statement")
            if diagnostic is not None:
                yield diagnostic
            return


class NoBlankLineAfterBraceRule(_BlankLineRule):
    """No blank line directly after the brace opening a conditional or loop body."""
    id = 'no-blank-line-after-brace'
    description = 'No blank line directly follows the opening brace of a conditional or loop body'
    applies_to = frozenset({NodeKind.BLOCK})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        parent = node.parent
        if parent is None or parent.kind != NodeKind.STATEMENT or parent.keyword not in CONTROL_KEYWORDS:
            return
        if not context.tokens[node.first_token].is_punct('{'):
            return
        following = context.next_significant(node.first_token)
        if following is None:
            return
        # the gap ends at the first comment below the brace; a comment trailing
        # the brace itself is skipped by measure_gap
        brace_line = context.tokens[node.first_token].end_line
        before = following
        for i in range(node.first_token + 1, following):
            token = context.tokens[i]
            if token.kind in COMMENT_KINDS and token.start_line > brace_line:
                before = i
                break
        diagnostic = self.expect_blank_lines(
            context, node.first_token, before, 0,
            f"unexpected blank line after the opening brace of '{parent.keyword}'")
        if diagnostic is not None:
            yield diagnostic
