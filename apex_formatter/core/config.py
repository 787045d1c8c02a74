"""
Configuration Module

This module holds the lint configuration handed to the engine by external
collaborators (CLI, dashboard, config-file loaders) and validates it before
any file is processed.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional
import logging

from .errors import ConfigError

logger = logging.getLogger(__name__)

SEVERITY_LEVELS = ('error', 'warning', 'off')
VISIBILITY_LEVELS = ('global', 'public', 'protected', 'private')

DEFAULT_LINE_LENGTH = 80
DEFAULT_INDENT_WIDTH = 4
DEFAULT_WORK_BUDGET = 500_000

# External (camelCase) keys -> dataclass attributes
_EXTERNAL_KEYS = {
    'activeRules': 'active_rules',
    'severity': 'severity',
    'lineLength': 'line_length',
    'indentWidth': 'indent_width',
    'docRequiredFor': 'doc_required_for',
    'autofix': 'autofix',
    'workBudget': 'work_budget',
    'maxWorkers': 'max_workers',
}


@dataclass
class LintConfig:
    """Options controlling a lint run."""
    active_rules: Optional[FrozenSet[str]] = None
    severity: Dict[str, str] = field(default_factory=dict)
    line_length: int = DEFAULT_LINE_LENGTH
    indent_width: int = DEFAULT_INDENT_WIDTH
    doc_required_for: FrozenSet[str] = frozenset({'public', 'global'})
    autofix: bool = False
    work_budget: int = DEFAULT_WORK_BUDGET
    max_workers: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LintConfig':
        """
        Build a configuration from its external dictionary form.

        Both the camelCase keys of the external interface and the snake_case
        attribute names are accepted.

        Args:
            data: Parsed configuration mapping (e.g. loaded from JSON)

        Returns:
            LintConfig instance (not yet validated against a rule catalogue)

        Raises:
            ConfigError: On unknown keys or wrongly typed values
        """
        if not isinstance(data, dict):
            raise ConfigError("configuration must be a mapping")

        kwargs = {}
        attributes = set(_EXTERNAL_KEYS.values())
        for key, value in data.items():
            attr = _EXTERNAL_KEYS.get(key, key)
            if attr not in attributes:
                raise ConfigError(f"unknown configuration key '{key}'", key)
            kwargs[attr] = value

        if kwargs.get('active_rules') is not None:
            kwargs['active_rules'] = frozenset(_as_strings(kwargs['active_rules'], 'activeRules'))
        if 'doc_required_for' in kwargs:
            kwargs['doc_required_for'] = frozenset(
                v.lower() for v in _as_strings(kwargs['doc_required_for'], 'docRequiredFor'))
        if 'severity' in kwargs:
            if not isinstance(kwargs['severity'], dict):
                raise ConfigError("'severity' must map rule ids to levels", 'severity')
            kwargs['severity'] = {str(k): str(v).lower() for k, v in kwargs['severity'].items()}

        for attr in ('line_length', 'indent_width', 'work_budget'):
            if attr in kwargs and not _is_int(kwargs[attr]):
                raise ConfigError(f"'{attr}' must be an integer", attr)
        if kwargs.get('max_workers') is not None and not _is_int(kwargs['max_workers']):
            raise ConfigError("'max_workers' must be an integer", 'max_workers')
        if 'autofix' in kwargs and not isinstance(kwargs['autofix'], bool):
            raise ConfigError("'autofix' must be a boolean", 'autofix')

        return cls(**kwargs)

    def validate(self, known_rule_ids: Iterable[str]) -> 'LintConfig':
        """
        Check the configuration against the rule catalogue.

        Args:
            known_rule_ids: Ids of every rule the engine can run

        Returns:
            self, to allow chaining

        Raises:
            ConfigError: On unknown rule ids, invalid levels or contradictions
        """
        known = set(known_rule_ids)

        if self.active_rules is not None:
            unknown = sorted(set(self.active_rules) - known)
            if unknown:
                raise ConfigError(f"unknown rule id(s) in activeRules: {', '.join(unknown)}", 'activeRules')

        for rule_id, level in self.severity.items():
            if rule_id not in known:
                raise ConfigError(f"unknown rule id in severity: {rule_id}", 'severity')
            if level not in SEVERITY_LEVELS:
                raise ConfigError(
                    f"invalid severity '{level}' for {rule_id} (expected one of {', '.join(SEVERITY_LEVELS)})",
                    'severity')
            if level == 'off' and self.active_rules is not None and rule_id in self.active_rules:
                raise ConfigError(f"rule {rule_id} is listed in activeRules but its severity is 'off'", 'severity')

        if self.line_length <= 0:
            raise ConfigError("lineLength must be positive", 'lineLength')
        if self.indent_width <= 0:
            raise ConfigError("indentWidth must be positive", 'indentWidth')
        if self.work_budget <= 0:
            raise ConfigError("workBudget must be positive", 'workBudget')
        if self.max_workers is not None and self.max_workers <= 0:
            raise ConfigError("maxWorkers must be positive", 'maxWorkers')

        bad_levels = sorted(set(self.doc_required_for) - set(VISIBILITY_LEVELS))
        if bad_levels:
            raise ConfigError(f"unknown visibility level(s) in docRequiredFor: {', '.join(bad_levels)}",
                              'docRequiredFor')

        logger.debug(f"Configuration validated against {len(known)} rules")
        return self

    def severity_for(self, rule_id: str, default: str) -> str:
        """Configured severity for a rule, falling back to the rule default."""
        return self.severity.get(rule_id, default)


def _as_strings(value, key: str):
    if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
        raise ConfigError(f"'{key}' must be a list of strings", key)
    return [str(v) for v in value]


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
