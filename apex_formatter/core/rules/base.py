"""
Rule Base Module

This module defines the rule interface, the per-file context handed to every
check, and the RuleSet value that selects, orders and dispatches rules.
"""

from bisect import bisect_right
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple, Type, Union
import logging

from ..config import LintConfig
from ..diagnostics import Diagnostic, Severity, TextEdit
from ..lexer import Token, TokenKind, line_starts, split_lines
from ..tree import Node, NodeKind, Span

logger = logging.getLogger(__name__)

Target = Union[NodeKind, TokenKind]


class RuleCategory(Enum):
    """Rule families of the style guide."""
    NAMING = "naming"
    QUERY = "query"
    LAYOUT = "layout"
    WHITESPACE = "whitespace"
    BLANK_LINES = "blank-lines"
    DOCUMENTATION = "documentation"


# Only these categories may carry automatic edits
FIXABLE_CATEGORIES = frozenset({RuleCategory.WHITESPACE, RuleCategory.BLANK_LINES})


class RuleContext:
    """
    Read-only view of one file handed to every rule check.

    Provides token navigation helpers so rules can inspect the whitespace
    around any token without re-scanning the source.
    """

    def __init__(self, path: str, source: str, tokens: Sequence[Token], root: Node, config: LintConfig):
        self.path = path
        self.source = source
        self.tokens = tokens
        self.root = root
        self.config = config
        self.lines = split_lines(source)
        self.line_starts = line_starts(source)
        self._index_by_offset = {token.offset: i for i, token in enumerate(tokens)}

    def index_of(self, token: Token) -> int:
        return self._index_by_offset[token.offset]

    def offset_of(self, line: int, column: int) -> int:
        """Character offset of a 1-based line/column position."""
        return self.line_starts[line - 1] + column - 1

    def span_at(self, start: int, end: int) -> Span:
        """Single-line span for a character range."""
        line = bisect_right(self.line_starts, start)
        column = start - self.line_starts[line - 1] + 1
        return Span(start, end, line, column, line, column + end - start)

    def previous_significant(self, index: int) -> Optional[int]:
        i = index - 1
        while i >= 0:
            if not self.tokens[i].is_trivia:
                return i
            i -= 1
        return None

    def next_significant(self, index: int) -> Optional[int]:
        i = index + 1
        while i < len(self.tokens):
            if not self.tokens[i].is_trivia:
                return i
            i += 1
        return None

    def between(self, start: int, end: int) -> Sequence[Token]:
        """Tokens strictly between two token indices."""
        return self.tokens[start + 1:end]

    def significant_indices(self, node: Node) -> List[int]:
        return [i for i in range(node.first_token, node.last_token + 1) if not self.tokens[i].is_trivia]

    def find_punct(self, start: int, end: int, char: str) -> Optional[int]:
        for i in range(start, min(end, len(self.tokens) - 1) + 1):
            if self.tokens[i].is_punct(char):
                return i
        return None

    def line_text(self, line: int) -> str:
        if 1 <= line <= len(self.lines):
            return self.lines[line - 1]
        return ""

    def indent_of(self, line: int) -> str:
        text = self.line_text(line)
        return text[:len(text) - len(text.lstrip(' \t'))]

    def first_on_line(self, index: int) -> bool:
        """True when only whitespace precedes the token on its line."""
        i = index - 1
        while i >= 0:
            token = self.tokens[i]
            if token.kind == TokenKind.NEWLINE:
                return True
            if token.kind != TokenKind.WHITESPACE:
                return False
            i -= 1
        return True


class Rule:
    """
    Base class for style rules.

    Subclasses declare their id, category and the node/token kinds they
    subscribe to, and implement check(). Rules are stateless; everything a
    check needs comes from its target and the RuleContext.
    """
    id: str = ""
    description: str = ""
    category: RuleCategory = RuleCategory.LAYOUT
    applies_to: FrozenSet[Target] = frozenset()
    default_severity: Severity = Severity.WARNING
    fixable: bool = False

    def check(self, target: Union[Node, Token], context: RuleContext) -> Iterable[Diagnostic]:
        raise NotImplementedError

    def fix(self, diagnostic: Diagnostic, context: Optional[RuleContext] = None) -> List[TextEdit]:
        """Edits proposed for a diagnostic. Only safe categories may fix."""
        if not self.fixable or self.category not in FIXABLE_CATEGORIES:
            return []
        return list(diagnostic.edits)

    def report(self, context: RuleContext, span: Span, message: str,
               fix_suggestion: Optional[str] = None,
               edits: Tuple[TextEdit, ...] = ()) -> Diagnostic:
        level = context.config.severity_for(self.id, self.default_severity.value)
        severity = Severity.ERROR if level == 'error' else Severity.WARNING
        return Diagnostic(
            rule_id=self.id,
            severity=severity,
            span=span,
            message=message,
            fix_suggestion=fix_suggestion,
            path=context.path,
            edits=tuple(edits) if self.fixable else (),
        )

    def __repr__(self):
        return f"{type(self).__name__}(id='{self.id}')"


class RuleSet:
    """
    Ordered, deduplicated set of active rules with a kind -> rules dispatch
    table built once at construction.
    """

    def __init__(self, rules: Iterable[Rule]):
        ordered: List[Rule] = []
        seen = set()
        for rule in rules:
            if not rule.id:
                raise TypeError(f"{type(rule).__name__} has no rule id")
            if rule.id in seen:
                continue
            seen.add(rule.id)
            ordered.append(rule)
        self.rules: Tuple[Rule, ...] = tuple(ordered)
        self._by_id: Dict[str, Rule] = {rule.id: rule for rule in self.rules}
        self._dispatch = self._build_dispatch(self.rules)

    @staticmethod
    def _build_dispatch(rules: Sequence[Rule]) -> Dict[Target, Tuple[Rule, ...]]:
        table: Dict[Target, List[Rule]] = {kind: [] for kind in list(NodeKind) + list(TokenKind)}
        for rule in rules:
            for target in rule.applies_to:
                if target not in table:
                    raise TypeError(f"rule {rule.id} subscribes to unknown target {target!r}")
                table[target].append(rule)
        return {kind: tuple(subscribed) for kind, subscribed in table.items()}

    @classmethod
    def from_config(cls, config: LintConfig, catalogue: Sequence[Type[Rule]]) -> 'RuleSet':
        """
        Select rules from a catalogue according to the configuration.

        Args:
            config: Lint configuration (validated here)
            catalogue: Rule classes available to the engine, in run order

        Returns:
            RuleSet holding one instance per active rule

        Raises:
            ConfigError: When the configuration does not match the catalogue
        """
        config.validate(rule_class.id for rule_class in catalogue)
        selected = []
        for rule_class in catalogue:
            if config.active_rules is not None and rule_class.id not in config.active_rules:
                continue
            if config.severity.get(rule_class.id) == 'off':
                continue
            selected.append(rule_class())
        logger.debug(f"Rule set built with {len(selected)} of {len(catalogue)} rules")
        return cls(selected)

    def rules_for(self, kind: Target) -> Tuple[Rule, ...]:
        return self._dispatch.get(kind, ())

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._by_id.get(rule_id)

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(rule.id for rule in self.rules)

    def __contains__(self, rule_id) -> bool:
        return rule_id in self._by_id

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)
