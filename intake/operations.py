"""
Intake - Operation Tracker

Registry of in-flight operations and their nested sub-operations.

Operations are frozen dataclasses. Every mutation replaces the stored value,
so a snapshot taken before an update never changes underneath its holder and
successive snapshots differ only where data changed.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from intake.exceptions import OperationTransitionError
from intake.logging import OperationLogEntry, now_iso, operation_logger

logger = logging.getLogger(__name__)


class OperationType(str, Enum):
    """Kinds of tracked work."""

    FILE_UPLOAD = "file_upload"
    GIT_CLONE = "git_clone"
    CODE_PARSING = "code_parsing"
    AI_ANALYSIS = "ai_analysis"
    GENERAL = "general"


class OperationStatus(str, Enum):
    """
    Lifecycle of an operation.

    PENDING -> RUNNING -> COMPLETED | FAILED
    COMPLETED and FAILED are terminal.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


VALID_TRANSITIONS: dict[OperationStatus, set[OperationStatus]] = {
    OperationStatus.PENDING: {OperationStatus.RUNNING},
    OperationStatus.RUNNING: {OperationStatus.COMPLETED, OperationStatus.FAILED},
    OperationStatus.COMPLETED: set(),
    OperationStatus.FAILED: set(),
}

TERMINAL_STATUSES = frozenset({OperationStatus.COMPLETED, OperationStatus.FAILED})


def clamp_progress(progress: float) -> float:
    """Clamp a progress value into [0, 100]."""
    return max(0.0, min(100.0, float(progress)))


def new_id() -> str:
    """Collision-free identifier for operations, sub-operations and errors."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class SubOperation:
    """A nested unit of work owned by exactly one Operation."""

    id: str
    title: str
    status: OperationStatus = OperationStatus.PENDING
    progress: float = 0.0


@dataclass(frozen=True)
class Operation:
    """A tracked unit of long-running work."""

    id: str
    type: OperationType
    title: str
    start_time: datetime
    description: str | None = None
    progress: float = 0.0
    status: OperationStatus = OperationStatus.RUNNING
    end_time: datetime | None = None
    estimated_duration: int | None = None  # milliseconds
    sub_operations: tuple[SubOperation, ...] = field(default_factory=tuple)
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def duration_ms(self) -> int | None:
        """Elapsed milliseconds, or None while the operation is still open."""
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def get_sub_operation(self, sub_id: str) -> SubOperation | None:
        for sub in self.sub_operations:
            if sub.id == sub_id:
                return sub
        return None


# Fields callers may change through update_operation / update_sub_operation
_OPERATION_FIELDS = {"title", "description", "progress", "status", "estimated_duration"}
_SUB_OPERATION_FIELDS = {"title", "status", "progress"}

Listener = Callable[[tuple[Operation, ...]], None]


class OperationTracker:
    """
    Process-wide registry of operations.

    Lives for the application session. Pass the tracker to the workflows that
    need it rather than reaching for a module-level instance.

    Unknown operation ids are tolerated everywhere: late updates after
    removal are dropped, never raised.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._operations: dict[str, Operation] = {}
        self._global_loading = False
        self._listeners: list[Listener] = []

    # -- observation -----------------------------------------------------

    @property
    def operations(self) -> tuple[Operation, ...]:
        """Snapshot of every operation, in insertion order."""
        return tuple(self._operations.values())

    @property
    def global_loading(self) -> bool:
        return self._global_loading

    def add_listener(self, listener: Listener) -> None:
        """Call ``listener`` with a fresh snapshot after every change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = self.operations
        for listener in list(self._listeners):
            listener(snapshot)

    def _store(self, operation: Operation) -> None:
        self._operations[operation.id] = operation
        self._notify()

    def get_operation(self, operation_id: str) -> Operation | None:
        return self._operations.get(operation_id)

    def get_active_operations(self) -> list[Operation]:
        """All RUNNING operations, in insertion order."""
        return [op for op in self._operations.values() if op.status == OperationStatus.RUNNING]

    def is_loading(self, type: OperationType | str | None = None) -> bool:
        """True if global loading is set or a matching operation is running."""
        if self._global_loading:
            return True
        if type is None:
            return any(op.status == OperationStatus.RUNNING for op in self._operations.values())
        op_type = OperationType(type)
        return any(
            op.type == op_type and op.status == OperationStatus.RUNNING
            for op in self._operations.values()
        )

    # -- lifecycle -------------------------------------------------------

    def set_global_loading(self, loading: bool) -> None:
        self._global_loading = loading
        self._notify()

    def start_operation(
        self,
        type: OperationType | str,
        title: str,
        description: str | None = None,
        estimated_duration: int | None = None,
    ) -> str:
        """
        Create a RUNNING operation at progress 0.

        Args:
            type: Operation type
            title: Short label
            description: Optional longer text
            estimated_duration: Expected duration in milliseconds

        Returns:
            The new operation id
        """
        operation = Operation(
            id=new_id(),
            type=OperationType(type),
            title=title,
            description=description,
            start_time=self._clock(),
            estimated_duration=estimated_duration,
        )
        self._store(operation)
        logger.debug("Started operation %s (%s): %s", operation.id, operation.type.value, title)
        self._log_event(operation, "start")
        return operation.id

    def update_progress(self, operation_id: str, progress: float) -> None:
        """Store ``clamp(progress, 0, 100)``; no-op for unknown or finished operations."""
        operation = self._operations.get(operation_id)
        if operation is None or operation.is_terminal:
            return
        value = clamp_progress(progress)
        if value != operation.progress:
            self._store(replace(operation, progress=value))

    def update_operation(self, operation_id: str, **updates: Any) -> None:
        """
        Apply a partial update.

        ``progress`` is clamped and ``status`` must be a valid transition;
        invalid transitions are ignored. Terminal operations are immutable.
        """
        unknown = set(updates) - _OPERATION_FIELDS
        if unknown:
            raise TypeError(f"Unknown operation fields: {', '.join(sorted(unknown))}")

        operation = self._operations.get(operation_id)
        if operation is None or operation.is_terminal:
            return

        if "progress" in updates:
            updates["progress"] = clamp_progress(updates["progress"])
        if "status" in updates:
            status = OperationStatus(updates["status"])
            if status == operation.status:
                del updates["status"]
            elif status not in VALID_TRANSITIONS[operation.status]:
                logger.debug(
                    "Ignoring transition %s -> %s for %s",
                    operation.status.value, status.value, operation_id,
                )
                del updates["status"]
            else:
                updates["status"] = status
                if status in TERMINAL_STATUSES:
                    updates["end_time"] = self._clock()
                if status == OperationStatus.COMPLETED:
                    updates["progress"] = 100.0

        if updates:
            self._store(replace(operation, **updates))

    def transition_to(self, operation_id: str, status: OperationStatus | str) -> bool:
        """
        Attempt a status transition.

        Returns:
            True if the transition was valid and performed, False otherwise
        """
        operation = self._operations.get(operation_id)
        target = OperationStatus(status)
        if operation is None or target not in VALID_TRANSITIONS[operation.status]:
            return False
        if target == OperationStatus.COMPLETED:
            self.complete_operation(operation_id)
        elif target == OperationStatus.FAILED:
            self.fail_operation(operation_id)
        else:
            self._store(replace(operation, status=target))
        return True

    def require_transition(self, operation_id: str, status: OperationStatus | str) -> None:
        """
        Transition, raising if the transition is not valid.

        Raises:
            OperationTransitionError: If the operation is unknown or the
                transition is not allowed from its current status
        """
        target = OperationStatus(status)
        if self.transition_to(operation_id, target):
            return
        operation = self._operations.get(operation_id)
        current = operation.status.value if operation else "missing"
        valid = ", ".join(s.value for s in VALID_TRANSITIONS.get(operation.status, set())) if operation else ""
        raise OperationTransitionError(
            f"Invalid operation transition: {current} -> {target.value}. "
            f"Valid transitions from {current}: {valid or 'none'}",
            from_state=current,
            to_state=target.value,
        )

    def complete_operation(self, operation_id: str) -> None:
        """Mark completed at progress 100. Idempotent; ignored once failed."""
        operation = self._operations.get(operation_id)
        if operation is None or operation.is_terminal:
            return
        completed = replace(
            operation,
            status=OperationStatus.COMPLETED,
            progress=100.0,
            end_time=self._clock(),
        )
        self._store(completed)
        self._log_event(completed, "complete")

    def fail_operation(self, operation_id: str, error: str | None = None) -> None:
        """Mark failed. Progress keeps its last value as the extent reached."""
        operation = self._operations.get(operation_id)
        if operation is None or operation.is_terminal:
            return
        failed = replace(
            operation,
            status=OperationStatus.FAILED,
            end_time=self._clock(),
            error=error,
        )
        self._store(failed)
        logger.debug("Operation %s failed: %s", operation_id, error)
        self._log_event(failed, "fail")

    def remove_operation(self, operation_id: str) -> None:
        if self._operations.pop(operation_id, None) is not None:
            self._notify()

    def clear_operations(self) -> None:
        self._operations.clear()
        self._notify()

    # -- sub-operations --------------------------------------------------

    def add_sub_operation(
        self,
        operation_id: str,
        title: str,
        status: OperationStatus | str = OperationStatus.PENDING,
        progress: float = 0.0,
    ) -> str:
        """
        Append a sub-operation.

        The id is returned even when the parent is gone; later updates
        against it are simply dropped.
        """
        sub = SubOperation(
            id=new_id(),
            title=title,
            status=OperationStatus(status),
            progress=clamp_progress(progress),
        )
        operation = self._operations.get(operation_id)
        if operation is not None and not operation.is_terminal:
            self._store(replace(operation, sub_operations=operation.sub_operations + (sub,)))
        return sub.id

    def update_sub_operation(self, operation_id: str, sub_id: str, **updates: Any) -> None:
        """Apply a partial update to one sub-operation; dropped if the parent is gone."""
        unknown = set(updates) - _SUB_OPERATION_FIELDS
        if unknown:
            raise TypeError(f"Unknown sub-operation fields: {', '.join(sorted(unknown))}")

        operation = self._operations.get(operation_id)
        if operation is None or operation.is_terminal:
            return
        if operation.get_sub_operation(sub_id) is None:
            return

        if "progress" in updates:
            updates["progress"] = clamp_progress(updates["progress"])
        if "status" in updates:
            updates["status"] = OperationStatus(updates["status"])

        subs = tuple(
            replace(sub, **updates) if sub.id == sub_id else sub
            for sub in operation.sub_operations
        )
        self._store(replace(operation, sub_operations=subs))

    # -- logging ---------------------------------------------------------

    def _log_event(self, operation: Operation, event_type: str) -> None:
        entry = OperationLogEntry(
            timestamp=now_iso(),
            operation_id=operation.id,
            event_type=event_type,
            operation_type=operation.type.value,
            title=operation.title,
            progress=operation.progress,
            duration_ms=operation.duration_ms,
            error=operation.error,
        )
        operation_logger.info(entry)
