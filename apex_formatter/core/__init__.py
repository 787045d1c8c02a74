"""
Core modules for Apex lexing, structural parsing, style checking and fixing.
"""

from .config import LintConfig
from .scanner import StyleScanner
from .engine import RuleEngine
from .formatter import AutoFixer
from .aggregator import DiagnosticAggregator

__all__ = [
    'LintConfig',
    'StyleScanner',
    'RuleEngine',
    'AutoFixer',
    'DiagnosticAggregator'
]
