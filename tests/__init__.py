"""
Test package for Apex-Formatter.

This package contains:
- Unit tests for individual components
- Integration tests for the CLI, dashboard and full check/fix workflow
- Property-based tests using Hypothesis
"""
