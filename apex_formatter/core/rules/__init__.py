"""
Built-in Rule Catalogue

BUILTIN_RULES lists every rule class in run order. RuleSet.from_config picks
the active subset for a run; nothing here is mutated at runtime.
"""

from typing import Optional, Sequence, Type

from ..config import LintConfig
from .base import FIXABLE_CATEGORIES, Rule, RuleCategory, RuleContext, RuleSet
from .blank_lines import BlankLineAfterDeclarationsRule, BlankLineBetweenMethodsRule, NoBlankLineAfterBraceRule
from .documentation import DocCommentRule
from .layout import LineLengthRule, MethodSignatureWrapRule, WrapAlignmentRule
from .naming import (
    ClassNameRule,
    CollectionVariableNameRule,
    ConstantNameRule,
    ControllerClassNameRule,
    MapVariableNameRule,
    MethodNameRule,
    TestClassNameRule,
    VariableNameRule,
)
from .query import QueryFormatRule, QueryKeywordCaseRule
from .whitespace import SpaceAfterCastRule, SpaceAfterCommaRule, SpaceBeforeBraceRule, SpaceBeforeParenRule

BUILTIN_RULES: Sequence[Type[Rule]] = (
    ClassNameRule,
    TestClassNameRule,
    ControllerClassNameRule,
    VariableNameRule,
    CollectionVariableNameRule,
    MapVariableNameRule,
    MethodNameRule,
    ConstantNameRule,
    QueryKeywordCaseRule,
    QueryFormatRule,
    LineLengthRule,
    WrapAlignmentRule,
    MethodSignatureWrapRule,
    BlankLineBetweenMethodsRule,
    BlankLineAfterDeclarationsRule,
    NoBlankLineAfterBraceRule,
    SpaceBeforeParenRule,
    SpaceBeforeBraceRule,
    SpaceAfterCommaRule,
    SpaceAfterCastRule,
    DocCommentRule,
)

BUILTIN_RULE_IDS = tuple(rule.id for rule in BUILTIN_RULES)


def create_rule_set(config: Optional[LintConfig] = None,
                    catalogue: Sequence[Type[Rule]] = BUILTIN_RULES) -> RuleSet:
    """Validate the configuration and build the active RuleSet."""
    return RuleSet.from_config(config or LintConfig(), catalogue)


__all__ = [
    'BUILTIN_RULES',
    'BUILTIN_RULE_IDS',
    'FIXABLE_CATEGORIES',
    'Rule',
    'RuleCategory',
    'RuleContext',
    'RuleSet',
    'create_rule_set',
]
