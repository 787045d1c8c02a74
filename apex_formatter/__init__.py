"""
Apex-Formatter

A style-conformance checker and whitespace autofixer for Salesforce Apex sources.
"""

__version__ = "1.0.0"

from .core.config import LintConfig
from .core.scanner import StyleScanner
from .core.engine import RuleEngine
from .core.formatter import AutoFixer
from .core.aggregator import DiagnosticAggregator

__all__ = [
    'LintConfig',
    'StyleScanner',
    'RuleEngine',
    'AutoFixer',
    'DiagnosticAggregator'
]
