"""
Whitespace Rules

Single-space placement around keywords, braces, commas and casts. Each
rule proposes a TextEdit that inserts a missing space or collapses a run of
spaces on the same line into one.
"""

from typing import Iterable, Optional

from ..diagnostics import Diagnostic, TextEdit
from ..lexer import Token, TokenKind
from ..tree import Node, NodeKind, Span
from .base import Rule, RuleCategory, RuleContext

PAREN_KEYWORDS = frozenset({'if', 'for', 'while', 'catch'})
BRACE_KEYWORDS = frozenset({'else', 'try', 'finally', 'do', 'static'})
CAST_OPERAND_KEYWORDS = frozenset({'this', 'new', 'super', 'null'})
BRACE_PRECEDING_KINDS = frozenset({TokenKind.IDENTIFIER, TokenKind.STRING, TokenKind.NUMBER, TokenKind.QUERY})


class _SpacingRule(Rule):
    category = RuleCategory.WHITESPACE
    fixable = True

    def single_space(self, context: RuleContext, left: int, right: int, message: str,
                     anchor: Optional[Token] = None) -> Optional[Diagnostic]:
        """
        Require exactly one space between two adjacent tokens on one line.

        Args:
            context: Rule context of the file
            left: Index of the token before the gap
            right: Index of the token after the gap
            message: Diagnostic message
            anchor: Token the diagnostic points at (defaults to the right token)

        Returns:
            Diagnostic with its edit, or None when the spacing is correct
        """
        tokens = context.tokens
        gap = tokens[left + 1:right]
        if any(token.kind != TokenKind.WHITESPACE for token in gap):
            return None
        text = ''.join(token.lexeme for token in gap)
        if text == ' ':
            return None
        edit = TextEdit(tokens[left].end_offset, tokens[right].offset, ' ', self.id)
        target = anchor or tokens[right]
        return self.report(context, Span.of_token(target), message, edits=(edit,))


class SpaceBeforeParenRule(_SpacingRule):
    """``if (``, ``for (``, ``while (`` and ``catch (`` take one space."""
    id = 'space-before-paren'
    description = 'A single space separates control keywords from their opening parenthesis'
    applies_to = frozenset({TokenKind.KEYWORD})

    def check(self, token: Token, context: RuleContext) -> Iterable[Diagnostic]:
        if token.lower not in PAREN_KEYWORDS:
            return
        index = context.index_of(token)
        following = context.next_significant(index)
        if following is None or not context.tokens[following].is_punct('('):
            return
        diagnostic = self.single_space(
            context, index, following,
            f"expected a single space between '{token.lexeme}' and '('", anchor=token)
        if diagnostic is not None:
            yield diagnostic


class SpaceBeforeBraceRule(_SpacingRule):
    """A brace opening a block or type body is preceded by one space."""
    id = 'space-before-brace'
    description = 'A single space precedes the opening brace of blocks and type bodies'
    applies_to = frozenset({NodeKind.BLOCK, NodeKind.CLASS_DECL, NodeKind.INTERFACE_DECL})

    def check(self, node: Node, context: RuleContext) -> Iterable[Diagnostic]:
        brace = self._opening_brace(node, context)
        if brace is None or context.first_on_line(brace):
            return
        previous = context.previous_significant(brace)
        if previous is None:
            return
        before = context.tokens[previous]
        closes_generic = before.kind == TokenKind.OPERATOR and before.lexeme == '>'
        if not (before.is_punct(')') or before.kind in BRACE_PRECEDING_KINDS
                or before.is_keyword(*BRACE_KEYWORDS) or closes_generic):
            return
        diagnostic = self.single_space(context, previous, brace, "expected a single space before '{'")
        if diagnostic is not None:
            yield diagnostic

    @staticmethod
    def _opening_brace(node: Node, context: RuleContext) -> Optional[int]:
        if node.kind == NodeKind.BLOCK:
            return context.find_punct(node.first_token, node.last_token, '{')
        if node.keyword == 'trigger' or not node.declarators:
            # the trigger body is its own BLOCK
            return None
        name_index = context.index_of(node.declarators[0])
        return context.find_punct(name_index, node.last_token, '{')


class SpaceAfterCommaRule(_SpacingRule):
    """A comma is followed by one space unless it ends the line."""
    id = 'space-after-comma'
    description = 'A single space follows each comma'
    applies_to = frozenset({TokenKind.PUNCTUATION})

    def check(self, token: Token, context: RuleContext) -> Iterable[Diagnostic]:
        if token.lexeme != ',':
            return
        index = context.index_of(token)
        following = index + 1
        while following < len(context.tokens) and context.tokens[following].kind == TokenKind.WHITESPACE:
            following += 1
        if following >= len(context.tokens) or context.tokens[following].is_trivia:
            return
        diagnostic = self.single_space(context, index, following, "expected a single space after ','",
                                       anchor=token)
        if diagnostic is not None:
            yield diagnostic


class SpaceAfterCastRule(_SpacingRule):
    """A cast's closing parenthesis is followed by one space: ``(Account) record``."""
    id = 'space-after-cast'
    description = "A single space follows a cast's closing parenthesis"
    applies_to = frozenset({TokenKind.PUNCTUATION})

    _MAX_TYPE_TOKENS = 24

    def check(self, token: Token, context: RuleContext) -> Iterable[Diagnostic]:
        if token.lexeme != ')':
            return
        index = context.index_of(token)
        if not self._closes_cast(context, index):
            return
        following = context.next_significant(index)
        if following is None or context.tokens[following].start_line != token.start_line:
            return
        operand = context.tokens[following]
        if not (operand.kind in (TokenKind.IDENTIFIER, TokenKind.STRING, TokenKind.NUMBER, TokenKind.QUERY)
                or operand.is_punct('(') or operand.is_keyword(*CAST_OPERAND_KEYWORDS)):
            return
        diagnostic = self.single_space(context, index, following,
                                       "expected a single space after the cast", anchor=token)
        if diagnostic is not None:
            yield diagnostic

    def _closes_cast(self, context: RuleContext, close: int) -> bool:
        """True when ``( Type )`` ends at close and is not a call or condition."""
        tokens = context.tokens
        i = context.previous_significant(close)
        seen = 0
        saw_identifier = False
        while i is not None and seen < self._MAX_TYPE_TOKENS:
            token = tokens[i]
            if token.is_punct('('):
                break
            if token.kind == TokenKind.IDENTIFIER:
                saw_identifier = True
            elif not (token.is_punct('.', '[', ']', ',') or
                      (token.kind == TokenKind.OPERATOR and token.lexeme in ('<', '>'))):
                return False
            i = context.previous_significant(i)
            seen += 1
        if i is None or not tokens[i].is_punct('(') or not saw_identifier:
            return False
        first = context.next_significant(i)
        if first is None or tokens[first].kind != TokenKind.IDENTIFIER:
            return False
        before = context.previous_significant(i)
        if before is None:
            return True
        previous = tokens[before]
        if previous.kind in (TokenKind.IDENTIFIER, TokenKind.KEYWORD, TokenKind.ANNOTATION):
            return previous.is_keyword('return', 'throw', 'else')
        return not previous.is_punct(')', ']')
