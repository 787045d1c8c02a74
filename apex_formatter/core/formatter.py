"""
Auto Fixer Module

This module applies the text edits proposed by fixable rules. Edits are
limited to whitespace, checked pairwise for overlap (both sides of a
conflict are dropped and reported), applied right-to-left by start offset,
and the result is re-lexed to make sure it still tokenizes losslessly.

It also keeps the backup/restore helpers used when fixed text is written
back to disk.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
import datetime
import logging
import shutil

from .diagnostics import AUTOFIX_CONFLICT, INTERNAL_ERROR, Diagnostic, Severity, TextEdit
from .errors import LexError
from .lexer import position_of, reconstruct, tokenize
from .rules.base import FIXABLE_CATEGORIES, RuleSet
from .tree import Span

logger = logging.getLogger(__name__)

DEFAULT_BACKUP_DIR = ".apex_formatter_backups"


@dataclass
class FixResult:
    """Result of fixing one file."""
    original_text: str
    fixed_text: str
    applied: List[TextEdit] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def changes_made(self) -> int:
        return len(self.applied)

    def __repr__(self):
        return f"FixResult(changes={self.changes_made}, reported={len(self.diagnostics)})"


def find_conflicts(edits: Sequence[TextEdit]) -> List[int]:
    """
    Indices of edits overlapping at least one other edit.

    Args:
        edits: Candidate edits in any order

    Returns:
        Sorted indices into ``edits``
    """
    order = sorted(range(len(edits)), key=lambda i: (edits[i].start, edits[i].end))
    conflicting = set()
    for position, i in enumerate(order):
        for j in order[position + 1:]:
            if edits[j].start > edits[i].end:
                break
            if edits[i].overlaps(edits[j]):
                conflicting.update((i, j))
    return sorted(conflicting)


def apply_edits(source: str, edits: Sequence[TextEdit]) -> str:
    """Apply non-overlapping edits right-to-left so earlier offsets stay valid."""
    text = source
    for edit in sorted(edits, key=lambda e: (e.start, e.end), reverse=True):
        text = text[:edit.start] + edit.replacement + text[edit.end:]
    return text


def edit_span(source: str, edit: TextEdit) -> Span:
    line, column = position_of(source, edit.start)
    end_line, end_column = position_of(source, edit.end)
    return Span(edit.start, edit.end, line, column, end_line, end_column)


class AutoFixer:
    """
    Autofixer for whitespace and blank-line diagnostics.

    This class provides:
    - Edit collection from fixable rules of the active RuleSet
    - Overlap detection with reporting of dropped edits
    - Deterministic right-to-left application and re-lex verification
    - Backup and restore of files the caller writes
    """

    def __init__(self, rule_set: RuleSet, backup_enabled: bool = True, backup_dir: str = DEFAULT_BACKUP_DIR):
        """
        Initialize the autofixer.

        Args:
            rule_set: Active rules; only their fixers may contribute edits
            backup_enabled: Whether write_file keeps a backup of the original
            backup_dir: Directory holding backups
        """
        self.rule_set = rule_set
        self.backup_enabled = backup_enabled
        self.backup_dir = backup_dir

    def collect_edits(self, source: str, diagnostics: Sequence[Diagnostic]) -> List[Tuple[TextEdit, Diagnostic]]:
        """Edits proposed for the diagnostics, paired with their diagnostic."""
        collected = []
        for diagnostic in diagnostics:
            rule = self.rule_set.get(diagnostic.rule_id)
            if rule is None or not rule.fixable or rule.category not in FIXABLE_CATEGORIES:
                continue
            for edit in rule.fix(diagnostic):
                if not self._is_whitespace_edit(source, edit):
                    logger.warning(f"{diagnostic.path}: ignoring non-whitespace edit from {rule.id} "
                                   f"at offset {edit.start}")
                    continue
                collected.append((edit, diagnostic))
        return collected

    @staticmethod
    def _is_whitespace_edit(source: str, edit: TextEdit) -> bool:
        if not 0 <= edit.start <= edit.end <= len(source):
            return False
        return not source[edit.start:edit.end].strip() and not edit.replacement.strip()

    def fix(self, path: str, source: str, diagnostics: Sequence[Diagnostic]) -> FixResult:
        """
        Compute the fixed text of one file.

        Args:
            path: File path for reporting
            source: Original text the diagnostics refer to
            diagnostics: Diagnostics of the file

        Returns:
            FixResult with fixed text, applied edits and any conflict reports
        """
        pairs = self.collect_edits(source, diagnostics)
        edits = [edit for edit, _ in pairs]
        dropped = set(find_conflicts(edits))

        reports = []
        for index in sorted(dropped):
            edit, diagnostic = pairs[index]
            reports.append(Diagnostic(
                rule_id=AUTOFIX_CONFLICT,
                severity=Severity.WARNING,
                span=edit_span(source, edit),
                message=f"edit proposed by {edit.rule_id or diagnostic.rule_id} overlaps another edit "
                        f"and was not applied",
                path=path,
                source_rule=diagnostic.rule_id,
            ))
        if dropped:
            logger.warning(f"{path}: dropped {len(dropped)} conflicting edits")

        applied = [edit for i, edit in enumerate(edits) if i not in dropped]
        fixed = apply_edits(source, applied)

        problem = self.verify(fixed)
        if problem is not None:
            logger.error(f"{path}: fixed text failed verification, keeping original: {problem}")
            reports.append(Diagnostic(
                rule_id=INTERNAL_ERROR,
                severity=Severity.ERROR,
                span=Span.point(0, 1, 1),
                message=f"autofix result failed verification: {problem}",
                path=path,
            ))
            return FixResult(source, source, [], reports)

        applied.sort(key=lambda e: (e.start, e.end))
        logger.debug(f"{path}: applied {len(applied)} edits")
        return FixResult(source, fixed, applied, reports)

    @staticmethod
    def verify(text: str) -> Optional[str]:
        """Re-lex fixed text; return a problem description or None."""
        try:
            tokens = tokenize(text)
        except LexError as e:
            return str(e)
        if reconstruct(tokens) != text:
            return "re-lexed tokens do not reconstruct the fixed text"
        return None

    def create_backup(self, filepath: str) -> bool:
        """Create a timestamped backup of the file before writing it."""
        if not self.backup_enabled:
            return True

        try:
            backup_path = Path(self.backup_dir)
            backup_path.mkdir(exist_ok=True)

            timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            backup_filepath = backup_path / f"{Path(filepath).name}.{timestamp}.backup"
            shutil.copy2(filepath, backup_filepath)

            logger.info(f"Created backup: {backup_filepath}")
            return True

        except OSError as e:
            logger.error(f"Failed to create backup for {filepath}: {e}")
            return False

    def write_file(self, filepath: str, content: str) -> bool:
        """Back up the original and write fixed content."""
        if not self.create_backup(filepath):
            return False
        try:
            with open(filepath, 'w', encoding='utf-8', newline='') as f:
                f.write(content)
            return True
        except OSError as e:
            logger.error(f"Failed to write file {filepath}: {e}")
            return False

    def restore_from_backup(self, filepath: str) -> bool:
        """
        Restore a file from its most recent backup.

        Args:
            filepath: Path to the file to restore

        Returns:
            True if restoration was successful
        """
        try:
            backup_path = Path(self.backup_dir)
            if not backup_path.exists():
                logger.error("No backup directory found")
                return False

            filename = Path(filepath).name
            backup_files = list(backup_path.glob(f"{filename}.*.backup"))
            if not backup_files:
                logger.error(f"No backup found for {filepath}")
                return False

            most_recent = max(backup_files, key=lambda p: p.name)
            shutil.copy2(most_recent, filepath)

            logger.info(f"Restored {filepath} from backup {most_recent}")
            return True

        except OSError as e:
            logger.error(f"Failed to restore {filepath} from backup: {e}")
            return False
