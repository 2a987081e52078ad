"""Auto-commit of fabrics with pending changes.

Resources that modify a fabric mark it as pending on the client handle. The committer
takes a snapshot of that set under its lock, then commits each fabric's candidate
configuration without holding the lock, so concurrent calls are never blocked on
network I/O.

Usage example:
    from hyperfabric_client.application.commit import AutoCommitter

    client.mark_pending("fabric-1")
    report = AutoCommitter(client).commit_pending()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..infrastructure.resilience import CancellationToken
from ..observability import get_logger
from ..protocols import PendingChanges
from ..types import CallResult

logger = get_logger("hyperfabric_client.commit")

DEFAULT_CANDIDATE = "default"
DEFAULT_COMMIT_COMMENT = "Committed by hyperfabric-client"


class CommitClient(Protocol):
    """The parts of a client handle the committer relies on."""

    @property
    def pending(self) -> PendingChanges: ...

    def execute(
        self,
        method: str,
        path: str,
        payload: object | None = None,
        *,
        raw_payload: bytes | None = None,
        authenticated: bool = True,
        cancel: CancellationToken | None = None,
    ) -> CallResult: ...


@dataclass(frozen=True)
class CommitReport:
    """Fabric ids that were committed and those that still have pending changes."""

    committed: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failed


def candidate_path(fabric_id: str, candidate: str = DEFAULT_CANDIDATE) -> str:
    return f"/api/v1/fabrics/{fabric_id}/candidates/{candidate}"


class AutoCommitter:
    """Commits the candidate configuration of every pending fabric."""

    def __init__(
        self,
        client: CommitClient,
        *,
        candidate: str = DEFAULT_CANDIDATE,
        comment: str = DEFAULT_COMMIT_COMMENT,
    ) -> None:
        self.client = client
        self.candidate = candidate
        self.comment = comment

    def commit_pending(self, *, cancel: CancellationToken | None = None) -> CommitReport:
        """Commit each pending fabric, clearing it only once its commit succeeds."""
        pending = self.client.pending
        fabric_ids = sorted(pending.snapshot())
        if not fabric_ids:
            logger.debug("No pending fabric changes to commit")
            return CommitReport()

        committed: list[str] = []
        failed: list[str] = []
        for fabric_id in fabric_ids:
            result = self.client.execute(
                "POST",
                candidate_path(fabric_id, self.candidate),
                {"comments": self.comment},
                cancel=cancel,
            )
            if result.error is not None:
                logger.error(
                    "Failed to commit pending changes for fabric %s: %s",
                    fabric_id,
                    result.error.summary,
                )
                failed.append(fabric_id)
                continue
            pending.discard(fabric_id)
            committed.append(fabric_id)
            logger.info("Committed pending changes for fabric %s", fabric_id)
        return CommitReport(committed=tuple(committed), failed=tuple(failed))
