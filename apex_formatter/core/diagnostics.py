"""
Diagnostics Module

Value types shared by the rule engine, aggregator and autofixer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .tree import Span

LEX_ERROR = 'lex-error'
PARSE_ERROR = 'parse-error'
INTERNAL_ERROR = 'internal-error'
BUDGET_EXCEEDED = 'budget-exceeded'
AUTOFIX_CONFLICT = 'autofix-conflict'


class Severity(Enum):
    """Reported severity of a diagnostic."""
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class TextEdit:
    """Replace source[start:end] with replacement."""
    start: int
    end: int
    replacement: str
    rule_id: str = ""

    def overlaps(self, other: 'TextEdit') -> bool:
        """
        Two edits overlap when their ranges intersect. Two insertions at the
        same offset also overlap, since their relative order is ambiguous.
        """
        if self.start == self.end == other.start == other.end:
            return True
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class Diagnostic:
    """A single reported rule violation."""
    rule_id: str
    severity: Severity
    span: Span
    message: str
    fix_suggestion: Optional[str] = None
    path: str = ""
    edits: Tuple[TextEdit, ...] = field(default=(), compare=False)
    source_rule: Optional[str] = None

    @property
    def line(self) -> int:
        return self.span.start_line

    @property
    def column(self) -> int:
        return self.span.start_col

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def format(self) -> str:
        """Render as ``path:line:col: [severity] ruleId: message``."""
        return f"{self.path}:{self.line}:{self.column}: [{self.severity.value}] {self.rule_id}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'path': self.path,
            'rule_id': self.rule_id,
            'severity': self.severity.value,
            'line': self.span.start_line,
            'column': self.span.start_col,
            'end_line': self.span.end_line,
            'end_column': self.span.end_col,
            'message': self.message,
            'fix_suggestion': self.fix_suggestion,
            'fixable': bool(self.edits),
        }
        if self.source_rule:
            data['source_rule'] = self.source_rule
        return data
