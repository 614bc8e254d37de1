"""Staged execution of dependent on-chain transactions.

A workflow is a declarative list of stages. ``Step`` stages submit one
transaction and wait for it to be mined before the next stage starts, so a
step may rely on the chain state left behind by every earlier step.
``Reads`` stages run read-only queries concurrently and publish the results
into the shared :class:`WorkflowContext` for the skip predicates and
submitters that follow.

Required steps abort the workflow on chain failures; advisory steps absorb
any ``Exception``, leave a ``None`` slot in the result and let the sequence
continue. Nothing is rolled
back: committed transactions stay committed, and re-running a command
re-detects satisfied steps through their skip predicates.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .confirmations import ConfirmationWaiter
from .errors import ChainError, WorkflowAborted
from .gas import GasOptions
from .model import ConfirmationRecord, TransactionHandle
from .progress import ProgressReporter
from .receipts import Receipt, reduce_receipt

logger = logging.getLogger(__name__)

MAX_PARALLEL_READS = 4


@dataclass
class WorkflowContext:
    """State shared by the stages of one workflow invocation."""

    options: GasOptions
    timeout: int
    values: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Step:
    """One submit-then-confirm unit.

    ``report`` controls whether the step owns a slot in the final result;
    ``hold_slot`` keeps a ``None`` slot for a reported step that was skipped
    so that positions stay meaningful to the operator.
    """

    name: str
    submit: Callable[[WorkflowContext], TransactionHandle]
    skip_if: Optional[Callable[[WorkflowContext], bool]] = None
    required: bool = True
    report: bool = True
    hold_slot: bool = False
    label: Optional[str] = None


@dataclass
class Reads:
    """Independent read-only queries; each result lands in ``ctx.values[key]``."""

    name: str
    queries: Mapping[str, Callable[[WorkflowContext], Any]]
    label: Optional[str] = None
    describe: Optional[Callable[[WorkflowContext], str]] = None


Stage = Union[Step, Reads]


class WorkflowState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


class StepStatus(str, Enum):
    CONFIRMED = "confirmed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StepOutcome:
    name: str
    status: StepStatus
    tx_hash: Optional[str] = None
    record: Optional[ConfirmationRecord] = None
    error: Optional[BaseException] = None


class StagedWorkflow:
    """Run stages in order and reduce the confirmed steps into receipts."""

    def __init__(
        self,
        waiter: ConfirmationWaiter,
        options: GasOptions,
        timeout: int,
        *,
        explorer_url: str,
        progress: ProgressReporter | None = None,
        release: Callable[[], None] | None = None,
    ) -> None:
        self.waiter = waiter
        self.options = options
        self.timeout = timeout
        self.explorer_url = explorer_url
        self.progress = progress or ProgressReporter()
        self._release = release
        self._released = False
        self._state = WorkflowState.NOT_STARTED
        self.outcomes: List[StepOutcome] = []
        self.context = WorkflowContext(options=options, timeout=timeout)

    @property
    def state(self) -> WorkflowState:
        return self._state

    def run(self, stages: Sequence[Stage]) -> List[Optional[Receipt]]:
        if self._state is not WorkflowState.NOT_STARTED:
            raise RuntimeError("A workflow can only be run once")
        self._state = WorkflowState.RUNNING

        total_steps = sum(1 for stage in stages if isinstance(stage, Step))
        results: List[Optional[Receipt]] = []
        step_index = 0
        try:
            for stage in stages:
                if isinstance(stage, Reads):
                    self._run_reads(stage, results)
                    continue
                step_index += 1
                self._run_step(stage, f"{step_index}/{total_steps}", results)
        except BaseException:
            self._state = WorkflowState.ABORTED
            raise
        finally:
            self._release_once()

        self._state = WorkflowState.COMPLETED
        logger.debug(
            "Workflow completed: %s",
            ", ".join(f"{o.name}={o.status.value}" for o in self.outcomes),
        )
        return results

    def _run_step(self, step: Step, position: str, results: List[Optional[Receipt]]) -> None:
        ctx = self.context
        label = f"{position} - {step.label or step.name}"
        handle: TransactionHandle | None = None
        try:
            if step.skip_if is not None and step.skip_if(ctx):
                self.progress.succeed(f"{label} skipped")
                self.outcomes.append(StepOutcome(step.name, StepStatus.SKIPPED))
                if step.report and step.hold_slot:
                    results.append(None)
                return

            self.progress.start(label)
            handle = step.submit(ctx)
            self.progress.succeed(f"{label} registered ({handle.hash})")

            self.progress.start(f"{position} - Confirming {step.label or step.name}")
            record = self.waiter.wait(handle, ctx.timeout)
        except Exception as exc:
            # Required steps only convert chain failures; anything else propagates.
            if step.required and not isinstance(exc, ChainError):
                raise
            self.progress.fail(f"{label} failed: {exc}")
            self.outcomes.append(
                StepOutcome(
                    step.name,
                    StepStatus.FAILED,
                    tx_hash=handle.hash if handle is not None else None,
                    error=exc,
                )
            )
            if step.required:
                raise WorkflowAborted(step.name, exc, results) from exc
            logger.warning(
                "Advisory step %s failed (tx %s); continuing: %s",
                step.name,
                handle.hash if handle is not None else "not submitted",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            if step.report:
                results.append(None)
            return

        self.progress.succeed(f"{position} - {step.label or step.name} confirmed in block {record.block_number}")
        ctx.values[step.name] = record
        self.outcomes.append(
            StepOutcome(step.name, StepStatus.CONFIRMED, tx_hash=handle.hash, record=record)
        )
        if step.report:
            results.append(reduce_receipt(record, self.explorer_url))

    def _run_reads(self, reads: Reads, results: List[Optional[Receipt]]) -> None:
        ctx = self.context
        label = reads.label or reads.name
        self.progress.start(label)
        try:
            if len(reads.queries) <= 1:
                values = {key: query(ctx) for key, query in reads.queries.items()}
            else:
                workers = min(len(reads.queries), MAX_PARALLEL_READS)
                with ThreadPoolExecutor(max_workers=workers) as pool:
                    futures = {key: pool.submit(query, ctx) for key, query in reads.queries.items()}
                    values = {key: future.result() for key, future in futures.items()}
        except ChainError as exc:
            self.progress.fail(f"{label} failed: {exc}")
            raise WorkflowAborted(reads.name, exc, results) from exc

        ctx.values.update(values)
        self.progress.succeed(reads.describe(ctx) if reads.describe else label)

    def _release_once(self) -> None:
        if self._released or self._release is None:
            return
        self._released = True
        self._release()
