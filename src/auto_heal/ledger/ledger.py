"""Deduplicating, reopenable issue ledger with durable storage."""

import logging
import os
import tempfile
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from auto_heal.ledger.exceptions import (
    InvalidTransitionError,
    IssueNotFoundError,
    LedgerPersistenceError,
)
from auto_heal.ledger.models import (
    REGRESSION_NOTE,
    DiscoveredIssue,
    Issue,
    IssueKey,
    IssueStatus,
    LedgerRecord,
    MergeResult,
    RunStatus,
    utc_now,
)

logger = logging.getLogger(__name__)


class LedgerStore:
    """Reads and atomically writes a ledger record as JSON."""

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: JSON file holding the ledger record
        """
        self.path = path

    def exists(self) -> bool:
        """Check if the ledger file exists."""
        return self.path.exists()

    def read(self) -> LedgerRecord:
        """Load the record from disk.

        Returns:
            Persisted ledger record

        Raises:
            LedgerPersistenceError: If the file cannot be read or parsed
        """
        try:
            return LedgerRecord.model_validate_json(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            msg = f"Failed to read ledger {self.path}: {e}"
            raise LedgerPersistenceError(msg) from e
        except ValidationError as e:
            msg = f"Ledger {self.path} is corrupt: {e}"
            raise LedgerPersistenceError(msg) from e

    def write(self, record: LedgerRecord) -> None:
        """Persist the record, replacing the previous file atomically.

        Args:
            record: Ledger record to write

        Raises:
            LedgerPersistenceError: If the file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".ledger-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(record.model_dump_json(indent=2))
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            msg = f"Failed to write ledger {self.path}: {e}"
            raise LedgerPersistenceError(msg) from e


class IssueLedger:
    """The single source of truth for issue status during one run.

    Every mutation is a read-modify-write transaction against the backing
    store, so the file on disk is current after each merge and each
    per-issue resolution. A ledger has exactly one writer: the controller
    that created it.
    """

    def __init__(self, store: LedgerStore, record: LedgerRecord) -> None:
        """Initialize the ledger.

        Args:
            store: Backing store
            record: Current record (already persisted, or about to be)
        """
        self._store = store
        self._record = record

    @classmethod
    def create(
        cls,
        ledger_dir: Path,
        run_id: str,
        repo_url: str,
        branch_name: str,
    ) -> "IssueLedger":
        """Start a fresh ledger for a run and persist it.

        Args:
            ledger_dir: Directory holding ledger files
            run_id: Run identifier, used as the file name
            repo_url: Repository being healed
            branch_name: Branch receiving the fixes

        Returns:
            New ledger
        """
        store = LedgerStore(ledger_dir / f"{run_id}.json")
        record = LedgerRecord(run_id=run_id, repo_url=repo_url, branch_name=branch_name)
        store.write(record)
        logger.debug(f"Created ledger {store.path}")
        return cls(store, record)

    @classmethod
    def load(cls, path: Path) -> "IssueLedger":
        """Open a persisted ledger.

        Args:
            path: Ledger JSON file

        Returns:
            Ledger backed by that file

        Raises:
            LedgerPersistenceError: If the file cannot be read
        """
        store = LedgerStore(path)
        return cls(store, store.read())

    @property
    def path(self) -> Path:
        """Location of the persisted ledger."""
        return self._store.path

    @property
    def record(self) -> LedgerRecord:
        """Snapshot of the whole ledger record."""
        return self._record.model_copy(deep=True)

    @contextmanager
    def _transaction(self) -> Iterator[LedgerRecord]:
        """Read the current record, yield it for mutation, then persist it."""
        record = self._store.read() if self._store.exists() else self._record.model_copy(deep=True)
        yield record
        self._store.write(record)
        self._record = record

    @staticmethod
    def _find(issues: list[Issue], key: IssueKey) -> Issue | None:
        for issue in issues:
            if issue.key == key:
                return issue
        return None

    @classmethod
    def _find_regressed(cls, issues: list[Issue], key: IssueKey) -> Issue | None:
        """Find a FIXED entry the finding reopens.

        Exact key first, then the line-0 entry for the same file and kind.
        """
        exact = cls._find(issues, key)
        if exact is not None:
            return exact if exact.status is IssueStatus.FIXED else None
        if key.line == 0:
            return None
        fallback = cls._find(issues, key.fallback())
        if fallback is not None and fallback.status is IssueStatus.FIXED:
            return fallback
        return None

    def merge(self, discovered: Iterable[DiscoveredIssue], iteration: int) -> MergeResult:
        """Merge oracle findings into the ledger.

        A finding matching a FIXED entry, by exact key or through the line-0
        entry, reopens it with a regression note. A finding whose exact key
        is already OPEN or FAILED_* is skipped. Anything else is appended as
        a new OPEN entry.

        Args:
            discovered: Findings from the diagnostic oracle
            iteration: Current iteration number

        Returns:
            New and reopened issues
        """
        result = MergeResult()

        with self._transaction() as record:
            for finding in discovered:
                regressed = self._find_regressed(record.issues, finding.key)
                if regressed is not None:
                    regressed.status = IssueStatus.OPEN
                    regressed.fixed_at = None
                    regressed.reopen_count += 1
                    if REGRESSION_NOTE not in regressed.description:
                        regressed.description = f"{regressed.description} {REGRESSION_NOTE}".strip()
                    result.reopened.append(regressed.model_copy(deep=True))
                    logger.info(f"Issue reappeared after fix: {regressed.key}")
                    continue

                existing = self._find(record.issues, finding.key)
                if existing is not None:
                    result.skipped += 1
                    logger.debug(f"Skipping known issue {existing.key} (status={existing.status.value})")
                    continue

                issue = Issue.from_discovered(finding, iteration)
                record.issues.append(issue)
                result.new.append(issue.model_copy(deep=True))
                logger.debug(f"New issue {issue.key}")

        return result

    def open_issues(self) -> list[Issue]:
        """Return OPEN issues in discovery order."""
        return [issue.model_copy(deep=True) for issue in self._record.issues if issue.status is IssueStatus.OPEN]

    def all(self) -> list[Issue]:
        """Return every issue, whatever its status."""
        return [issue.model_copy(deep=True) for issue in self._record.issues]

    def get(self, key: IssueKey) -> Issue:
        """Return the issue with exactly this key.

        Raises:
            IssueNotFoundError: If no entry has that key
        """
        for issue in self._record.issues:
            if issue.key == key:
                return issue.model_copy(deep=True)
        raise IssueNotFoundError(f"No issue with key {key}")

    def mark_resolved(self, key: IssueKey, outcome: IssueStatus) -> Issue:
        """Record the outcome of a repair attempt.

        Args:
            key: Identity key of the issue
            outcome: FIXED or one of the FAILED_* states

        Returns:
            Updated issue

        Raises:
            InvalidTransitionError: If outcome is OPEN
            IssueNotFoundError: If no entry has that key
        """
        if not outcome.is_terminal:
            raise InvalidTransitionError(f"Cannot resolve {key} to {outcome.value}; use merge to reopen issues")

        with self._transaction() as record:
            issue = self._require(record, key)
            issue.status = outcome
            issue.fixed_at = utc_now() if outcome is IssueStatus.FIXED else None
            updated = issue.model_copy(deep=True)

        logger.debug(f"Marked {key} as {outcome.value}")
        return updated

    def record_commit(self, key: IssueKey, message: str) -> None:
        """Attach the commit message of a committed fix.

        Raises:
            IssueNotFoundError: If no entry has that key
        """
        with self._transaction() as record:
            self._require(record, key).commit_message = message

    def set_status(self, status: RunStatus) -> None:
        """Record the run status, stamping the end time for terminal ones."""
        with self._transaction() as record:
            record.status = status
            if status is not RunStatus.RUNNING:
                record.end_time = utc_now()

    @staticmethod
    def _require(record: LedgerRecord, key: IssueKey) -> Issue:
        for issue in record.issues:
            if issue.key == key:
                return issue
        raise IssueNotFoundError(f"No issue with key {key}")
