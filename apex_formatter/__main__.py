"""
Main entry point for the Apex-Formatter package.

This allows the package to be run as a module:
python -m apex_formatter
"""

from .cli.commands import main

if __name__ == '__main__':
    main()
