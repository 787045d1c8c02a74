"""
Error Taxonomy Module

Exceptions raised inside the style engine. Everything except ConfigError is
recovered per file and turned into a diagnostic by the scanner pipeline.
"""

from typing import Optional


class StyleCheckError(Exception):
    """Base class for all engine errors."""


class LexError(StyleCheckError):
    """Malformed token such as an unterminated string, comment or query."""

    def __init__(self, message: str, offset: int, line: int, column: int):
        super().__init__(f"{message} (line {line}, column {column})")
        self.message = message
        self.offset = offset
        self.line = line
        self.column = column


class ParseError(StyleCheckError):
    """Unexpected token met by the structural parser."""

    def __init__(self, message: str, token_index: int, line: int = 0, column: int = 0):
        super().__init__(message)
        self.message = message
        self.token_index = token_index
        self.line = line
        self.column = column


class RuleCheckError(StyleCheckError):
    """A rule raised while checking a node or token."""

    def __init__(self, rule_id: str, cause: BaseException, line: int = 0, column: int = 0):
        super().__init__(f"rule '{rule_id}' failed: {type(cause).__name__}: {cause}")
        self.rule_id = rule_id
        self.cause = cause
        self.line = line
        self.column = column


class ConfigError(StyleCheckError):
    """Invalid or contradictory configuration. Fatal for the whole run."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class BudgetExceeded(StyleCheckError):
    """The per-file work-unit budget ran out."""

    def __init__(self, budget: int, phase: str = ""):
        super().__init__(f"work budget of {budget} units exceeded during {phase or 'analysis'}")
        self.budget = budget
        self.phase = phase
