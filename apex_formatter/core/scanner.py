"""
Style Scanner Module

This module runs the per-file pipeline (lex, parse, rule check, optional
fix) and fans files out to a worker pool. Files share nothing but the
aggregator they report to; within a file every step is sequential.
"""

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set
import logging
import os
import threading

from .aggregator import DiagnosticAggregator, FileResult, build_file_result
from .budget import WorkBudget
from .config import LintConfig
from .diagnostics import BUDGET_EXCEEDED, LEX_ERROR, PARSE_ERROR, Diagnostic, Severity
from .engine import RuleEngine
from .errors import BudgetExceeded, LexError
from .formatter import AutoFixer
from .lexer import Token, tokenize
from .parser import parse
from .rules import BUILTIN_RULES, create_rule_set
from .rules.base import RuleSet
from .tree import Span

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = ('.cls', '.trigger')


def discover_files(paths: Iterable[str], recursive: bool = True) -> List[str]:
    """
    Expand files and directories into a sorted list of Apex sources.

    Args:
        paths: Files or directories
        recursive: Whether to descend into subdirectories

    Returns:
        Sorted, unique list of ``.cls`` and ``.trigger`` paths
    """
    found: Set[str] = set()
    for entry in paths:
        path = Path(entry)
        if path.is_dir():
            for suffix in SOURCE_SUFFIXES:
                pattern = f"**/*{suffix}" if recursive else f"*{suffix}"
                found.update(str(p) for p in path.glob(pattern) if p.is_file())
        elif path.is_file():
            if path.suffix.lower() in SOURCE_SUFFIXES:
                found.add(str(path))
            else:
                logger.warning(f"Skipping non-Apex file: {entry}")
        else:
            logger.error(f"Path not found: {entry}")
    logger.info(f"Found {len(found)} Apex files to check")
    return sorted(found)


def _end_span(tokens: List[Token]) -> Span:
    if not tokens:
        return Span.point(0, 1, 1)
    last = tokens[-1]
    return Span.point(last.end_offset, last.end_line, last.end_col)


class StyleScanner:
    """
    Scanner running the style pipeline over sources and files.

    This class provides methods to:
    - Check a single source text (no file system access)
    - Check files from disk, one worker per file
    - Stop dispatching new files on cancellation
    - Collect results in a thread-safe aggregator
    """

    def __init__(self, config: Optional[LintConfig] = None, rule_set: Optional[RuleSet] = None,
                 catalogue=BUILTIN_RULES):
        """
        Initialize the scanner.

        Args:
            config: Lint configuration; validated here
            rule_set: Prebuilt RuleSet (built from config and catalogue when omitted)
            catalogue: Rule classes to select from

        Raises:
            ConfigError: When the configuration is invalid
        """
        self.config = config or LintConfig()
        self.rule_set = rule_set or create_rule_set(self.config, catalogue)
        self.engine = RuleEngine(self.rule_set, self.config)
        self.fixer = AutoFixer(self.rule_set)

    def lint_source(self, source: str, path: str = "<source>") -> FileResult:
        """
        Run the whole pipeline over one source text.

        Lex errors and budget exhaustion end the file's analysis early but
        are reported as diagnostics; parse errors are reported and analysis
        continues on the recovered tree.

        Args:
            source: Source text
            path: Path recorded on diagnostics

        Returns:
            FileResult with ordered diagnostics, summary and fix data
        """
        budget = WorkBudget(self.config.work_budget)
        diagnostics: List[Diagnostic] = []

        try:
            budget.phase = 'lex'
            tokens = tokenize(source)
        except LexError as e:
            logger.warning(f"{path}: {e}")
            diagnostics.append(Diagnostic(
                rule_id=LEX_ERROR,
                severity=Severity.ERROR,
                span=Span.point(e.offset, e.line, e.column),
                message=e.message,
                path=path,
            ))
            return self._finish(path, source, diagnostics, fixable=False)

        try:
            budget.tick(len(tokens))
            root, parse_errors = parse(tokens, budget)
            for error in parse_errors:
                if error.token_index < len(tokens):
                    span = Span.of_token(tokens[error.token_index])
                else:
                    span = _end_span(tokens)
                diagnostics.append(Diagnostic(PARSE_ERROR, Severity.ERROR, span, error.message, path=path))
            self.engine.check(path, source, tokens, root, budget, sink=diagnostics)
        except BudgetExceeded as e:
            logger.warning(f"{path}: {e}")
            diagnostics.append(Diagnostic(
                rule_id=BUDGET_EXCEEDED,
                severity=Severity.ERROR,
                span=Span.point(0, 1, 1),
                message=str(e),
                path=path,
            ))
            return self._finish(path, source, diagnostics, fixable=False)

        return self._finish(path, source, diagnostics, fixable=True)

    def _finish(self, path: str, source: str, diagnostics: List[Diagnostic], fixable: bool) -> FileResult:
        if not self.config.autofix:
            return build_file_result(path, diagnostics)
        if not fixable:
            return build_file_result(path, diagnostics, original_text=source, fixed_text=source)

        result = build_file_result(path, diagnostics)
        fix = self.fixer.fix(path, source, result.diagnostics)
        return build_file_result(
            path,
            result.diagnostics + fix.diagnostics,
            original_text=fix.original_text,
            fixed_text=fix.fixed_text,
            edits=fix.applied,
        )

    def scan_file(self, filepath: str) -> FileResult:
        """
        Check one file from disk.

        Args:
            filepath: Path to a ``.cls`` or ``.trigger`` file

        Returns:
            FileResult (a lex-error result if the file cannot be read)
        """
        try:
            with open(filepath, 'r', encoding='utf-8', newline='') as f:
                source = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read file {filepath}: {e}")
            diagnostic = Diagnostic(LEX_ERROR, Severity.ERROR, Span.point(0, 1, 1),
                                    f"cannot read file: {e}", path=filepath)
            return build_file_result(filepath, [diagnostic])
        return self.lint_source(source, filepath)

    def scan_paths(self, paths: Iterable[str],
                   aggregator: Optional[DiagnosticAggregator] = None,
                   cancel_event: Optional[threading.Event] = None,
                   on_result: Optional[Callable[[FileResult], None]] = None) -> DiagnosticAggregator:
        """
        Check many files concurrently, one worker per file.

        At most one file per worker is in flight, so setting ``cancel_event``
        stops dispatch quickly; files already running still finish and are
        reported to the aggregator.

        Args:
            paths: File paths (use discover_files to expand directories)
            aggregator: Sink for results (a new one when omitted)
            cancel_event: Run-level cancellation request
            on_result: Callback invoked from worker threads after each file

        Returns:
            The aggregator holding every completed file
        """
        aggregator = aggregator or DiagnosticAggregator()
        pending = list(paths)
        workers = self.config.max_workers or os.cpu_count() or 1
        workers = max(1, min(workers, len(pending) or 1))

        def process(filepath: str) -> FileResult:
            result = self.scan_file(filepath)
            aggregator.add_file_result(result)
            if on_result is not None:
                on_result(result)
            return result

        logger.info(f"Checking {len(pending)} files with {workers} workers")
        in_flight: Dict[Future, str] = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            queue = iter(pending)
            while True:
                cancelled = cancel_event is not None and cancel_event.is_set()
                while not cancelled and len(in_flight) < workers:
                    filepath = next(queue, None)
                    if filepath is None:
                        break
                    in_flight[executor.submit(process, filepath)] = filepath
                if not in_flight:
                    break
                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in done:
                    filepath = in_flight.pop(future)
                    error = future.exception()
                    if error is not None:
                        logger.error(f"Worker failed on {filepath}: {error}")

        if cancel_event is not None and cancel_event.is_set():
            aggregator.cancelled = True
            logger.warning(f"Run cancelled after {len(aggregator.results)} of {len(pending)} files")
        return aggregator
