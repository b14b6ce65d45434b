"""
Intake - Progress Trackers

Helpers that drive an OperationTracker for common workflows. Composite
progress is computed here, outside the tracker, and fed in through
``update_progress``.
"""

from collections.abc import AsyncIterator, Iterator, Sequence
from contextlib import asynccontextmanager, contextmanager

from intake.operations import OperationStatus, OperationTracker, OperationType


def aggregate_progress(index: int, progress: float, count: int) -> float:
    """
    Overall progress of a sequential batch.

    Items before ``index`` count as 100, the item at ``index`` counts at its
    live ``progress`` and later items count as 0.
    """
    if count <= 0:
        return 0.0
    return (100.0 * index + progress) / count


@asynccontextmanager
async def tracked_operation(
    tracker: OperationTracker,
    type: OperationType | str,
    title: str,
    description: str | None = None,
    estimated_duration: int | None = None,
) -> AsyncIterator[str]:
    """
    Run a block as a tracked operation.

    Completes the operation on normal exit; fails it and re-raises otherwise.
    """
    operation_id = tracker.start_operation(type, title, description, estimated_duration)
    try:
        yield operation_id
    except BaseException as e:
        tracker.fail_operation(operation_id, str(e) or e.__class__.__name__)
        raise
    tracker.complete_operation(operation_id)


@contextmanager
def global_loading(tracker: OperationTracker) -> Iterator[None]:
    """Hold the tracker's global loading flag for the duration of the block."""
    tracker.set_global_loading(True)
    try:
        yield
    finally:
        tracker.set_global_loading(False)


class ProgressTracker:
    """A single operation plus its sub-tasks."""

    def __init__(
        self,
        tracker: OperationTracker,
        type: OperationType | str,
        title: str,
        description: str | None = None,
        estimated_duration: int | None = None,
    ):
        self.tracker = tracker
        self.operation_id = tracker.start_operation(type, title, description, estimated_duration)

    def update_progress(self, progress: float) -> None:
        self.tracker.update_progress(self.operation_id, progress)

    def complete(self) -> None:
        self.tracker.complete_operation(self.operation_id)

    def fail(self, error: str | None = None) -> None:
        self.tracker.fail_operation(self.operation_id, error)

    def add_sub_task(self, title: str) -> str:
        return self.tracker.add_sub_operation(self.operation_id, title)

    def update_sub_task(
        self,
        sub_id: str,
        status: OperationStatus | str | None = None,
        progress: float | None = None,
    ) -> None:
        updates: dict[str, object] = {}
        if status is not None:
            updates["status"] = status
        if progress is not None:
            updates["progress"] = progress
        self.tracker.update_sub_operation(self.operation_id, sub_id, **updates)


class FileUploadTracker(ProgressTracker):
    """One ``file_upload`` operation with a sub-task per file."""

    def __init__(self, tracker: OperationTracker, file_names: Sequence[str]):
        count = len(file_names)
        super().__init__(
            tracker,
            OperationType.FILE_UPLOAD,
            f"Uploading {count} file{'s' if count != 1 else ''}",
            "Processing uploaded files...",
            estimated_duration=count * 1000,
        )
        self.file_count = count
        self.sub_tasks = [self.add_sub_task(f"Processing {name}") for name in file_names]

    def update_file_progress(self, index: int, progress: float) -> None:
        if 0 <= index < self.file_count:
            self.update_sub_task(
                self.sub_tasks[index],
                status=OperationStatus.COMPLETED if progress >= 100 else OperationStatus.RUNNING,
                progress=progress,
            )
        self.update_progress(aggregate_progress(index, progress, self.file_count))

    def complete_file(self, index: int) -> None:
        if 0 <= index < self.file_count:
            self.update_sub_task(self.sub_tasks[index], status=OperationStatus.COMPLETED, progress=100)

    def fail_file(self, index: int) -> None:
        if 0 <= index < self.file_count:
            self.update_sub_task(self.sub_tasks[index], status=OperationStatus.FAILED, progress=0)


ANALYSIS_STEPS: tuple[str, ...] = (
    "Preparing context",
    "Analyzing code structure",
    "Identifying potential issues",
    "Generating recommendations",
    "Finalizing report",
)


class AnalysisStepTracker(ProgressTracker):
    """An ``ai_analysis`` operation that advances through fixed steps."""

    def __init__(self, tracker: OperationTracker, ticket_title: str):
        super().__init__(
            tracker,
            OperationType.AI_ANALYSIS,
            "Analyzing Issue",
            f"AI analysis for: {ticket_title}",
            estimated_duration=30000,
        )
        self.sub_tasks = [self.add_sub_task(step) for step in ANALYSIS_STEPS]

    def start_step(self, index: int) -> None:
        if 0 <= index < len(self.sub_tasks):
            self.update_sub_task(self.sub_tasks[index], status=OperationStatus.RUNNING, progress=0)

    def complete_step(self, index: int) -> None:
        if 0 <= index < len(self.sub_tasks):
            self.update_sub_task(self.sub_tasks[index], status=OperationStatus.COMPLETED, progress=100)
        self.update_progress((index + 1) / len(ANALYSIS_STEPS) * 100)

    def fail_step(self, index: int) -> None:
        if 0 <= index < len(self.sub_tasks):
            self.update_sub_task(self.sub_tasks[index], status=OperationStatus.FAILED, progress=0)
