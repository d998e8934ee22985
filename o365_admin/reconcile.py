"""Two-pass mailbox GUID reconciliation with an operator confirmation gate."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Sequence

from .errors import UpdateError
from .guids import GuidCheck, check_record
from .models import Classification, GuidRecord, Phase, RecordOutcome, Step
from .reporting import OutcomeSink, broadcast
from .session import MailboxSession

logger = logging.getLogger(__name__)


class ReconcileState(str, Enum):
    ANALYZING = "analyzing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    ACTING = "acting"
    ABORTED = "aborted"
    DONE = "done"


@dataclass
class ReconciliationReport:
    """Counts gathered while a reconciliation run progresses."""

    state: ReconcileState = ReconcileState.ANALYZING
    analysis: Counter = field(default_factory=Counter)
    updated: int = 0
    failed: int = 0
    unchanged: int = 0
    skipped: int = 0

    @property
    def pending_changes(self) -> int:
        return self.analysis[Classification.CHANGE]


ConfirmCallback = Callable[[ReconciliationReport], bool]


def _describe_check(record: GuidRecord, check: GuidCheck) -> str:
    principal = record.principal_name or "<blank>"
    if check.classification is Classification.ERROR:
        return f"ERROR looking up {principal}: {check.detail}"
    if check.classification is Classification.CHANGE:
        return f"{principal} ExchangeGuid {check.remote} differs from expected {check.declared}"
    return f"{principal} ExchangeGuid matches {check.declared}"


class GuidReconciler:
    """Drive the analysis pass, the confirmation gate and the action pass.

    Every record is classified against live remote state in both passes;
    nothing from the analysis pass is reused when acting.
    """

    def __init__(self, session: MailboxSession, emit: OutcomeSink, confirm: ConfirmCallback) -> None:
        self._session = session
        self._emit = emit
        self._confirm = confirm
        self.state = ReconcileState.ANALYZING

    def run(self, records: Sequence[GuidRecord]) -> ReconciliationReport:
        report = ReconciliationReport()
        self._transition(report, ReconcileState.ANALYZING)
        self._analyze(records, report)

        self._transition(report, ReconcileState.AWAITING_CONFIRMATION)
        if not self._confirm(report):
            self._transition(report, ReconcileState.ABORTED)
            return report

        self._transition(report, ReconcileState.ACTING)
        for record in records:
            self._act(record, report)
        self._transition(report, ReconcileState.DONE)
        return report

    def _transition(self, report: ReconciliationReport, state: ReconcileState) -> None:
        logger.debug("Reconciliation state %s -> %s", self.state.value, state.value)
        self.state = state
        report.state = state

    def _outcome(self, phase: Phase, step: Step, record: GuidRecord, check: GuidCheck, detail: str) -> None:
        self._emit(
            RecordOutcome(
                phase=phase,
                step=step,
                principal=record.principal_name,
                classification=check.classification,
                declared=check.declared,
                remote=check.remote,
                detail=detail,
            )
        )

    def _analyze(self, records: Sequence[GuidRecord], report: ReconciliationReport) -> None:
        for record in records:
            check = check_record(record, self._session.get_mailbox_guid)
            report.analysis[check.classification] += 1
            self._outcome(Phase.ANALYSIS, Step.CLASSIFIED, record, check, _describe_check(record, check))

    def _act(self, record: GuidRecord, report: ReconciliationReport) -> None:
        check = check_record(record, self._session.get_mailbox_guid)
        principal = record.principal_name or "<blank>"

        if check.classification is Classification.ERROR:
            report.skipped += 1
            self._outcome(Phase.ACTION, Step.SKIPPED, record, check, _describe_check(record, check))
            return

        if check.classification is Classification.MATCH:
            report.unchanged += 1
            self._outcome(
                Phase.ACTION,
                Step.UNCHANGED,
                record,
                check,
                f"{principal} ExchangeGuid already {check.declared}, no update needed",
            )
            return

        self._outcome(
            Phase.ACTION,
            Step.ATTEMPT,
            record,
            check,
            f"Attempting to change ExchangeGuid for {principal} from {check.remote} to {check.declared}",
        )
        try:
            self._session.set_mailbox_guid(record.principal_name, check.declared)
        except UpdateError as exc:
            report.failed += 1
            self._outcome(
                Phase.ACTION,
                Step.UPDATE_FAILED,
                record,
                check,
                f"ERROR changing ExchangeGuid for {principal}: {exc}",
            )
            return

        report.updated += 1
        self._outcome(
            Phase.ACTION,
            Step.UPDATED,
            record,
            check,
            f"{principal} ExchangeGuid changed to {check.declared}",
        )


def reconcile(
    records: Sequence[GuidRecord],
    session: MailboxSession,
    sinks: List[OutcomeSink],
    confirm: ConfirmCallback,
) -> ReconciliationReport:
    """Convenience wrapper that fans outcomes out to ``sinks``."""

    return GuidReconciler(session, broadcast(sinks), confirm).run(records)


__all__ = [
    "ConfirmCallback",
    "GuidReconciler",
    "ReconcileState",
    "ReconciliationReport",
    "reconcile",
]
