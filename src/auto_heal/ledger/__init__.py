"""Issue ledger: deduplicated, reopenable record of known defects."""

from auto_heal.ledger.exceptions import (
    InvalidTransitionError,
    IssueNotFoundError,
    LedgerError,
    LedgerPersistenceError,
)
from auto_heal.ledger.ledger import IssueLedger, LedgerStore
from auto_heal.ledger.models import (
    DiscoveredIssue,
    Issue,
    IssueKey,
    IssueKind,
    IssueStatus,
    LedgerRecord,
    MergeResult,
    RunStatus,
)

__all__ = [
    "DiscoveredIssue",
    "InvalidTransitionError",
    "Issue",
    "IssueKey",
    "IssueKind",
    "IssueLedger",
    "IssueNotFoundError",
    "IssueStatus",
    "LedgerError",
    "LedgerPersistenceError",
    "LedgerRecord",
    "LedgerStore",
    "MergeResult",
    "RunStatus",
]
