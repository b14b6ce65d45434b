"""
Intake - Ingestion Pipeline

The upload flow: validate a batch, open a tracked ``file_upload`` operation,
then for each file admit its estimate against the memory budget, stream it
through the chunked processor, decode it and release the estimate. Per-file
failures go to the ErrorCenter and the batch carries on.

Failing or removing the operation in the tracker stops the batch before the
next file; a file already being read finishes its current chunk.
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from intake.chunking import ChunkedFileProcessor, FileJob, FileState
from intake.config import IntakeConfig
from intake.error_center import AppError, ErrorCenter
from intake.exceptions import GitError, ParsingError
from intake.files import detect_language, format_file_size, is_supported_file, is_valid_git_url
from intake.memory import MemoryBudget
from intake.operations import OperationTracker, OperationType, new_id
from intake.recovery import ErrorCategory
from intake.tracking import FileUploadTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvalidFile:
    path: Path
    reason: str


@dataclass
class ValidationResult:
    """Outcome of checking a batch against the upload limits."""

    valid: list[Path] = field(default_factory=list)
    invalid: list[InvalidFile] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    total_size: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.errors and bool(self.valid)


@dataclass(frozen=True)
class SourceFile:
    """A decoded source file ready for analysis."""

    id: str
    file_name: str
    file_path: str
    language: str
    content: str
    size: int
    last_modified: datetime


@dataclass(frozen=True)
class IngestedProject:
    id: str
    name: str
    source: str
    upload_time: datetime
    files: tuple[SourceFile, ...]
    total_size: int
    languages: tuple[str, ...]


def validate_files(paths: Iterable[str | Path], config: IntakeConfig) -> ValidationResult:
    """
    Check a batch before any file is read.

    Files with unsupported extensions or above the per-file limit are
    rejected individually. If the remaining files together exceed the batch
    limit, the whole batch is rejected; a batch is never partially admitted
    past that limit.
    """
    result = ValidationResult()
    max_file_mb = config.max_file_size / (1024 * 1024)

    for raw in paths:
        path = Path(raw)
        if not is_supported_file(path.name, config.supported_extensions):
            result.invalid.append(
                InvalidFile(path, f"Unsupported file type: {path.suffix or '(none)'}")
            )
            continue
        try:
            size = path.stat().st_size
        except OSError as e:
            result.invalid.append(InvalidFile(path, f"Cannot read file: {e.strerror or e}"))
            continue
        if size > config.max_file_size:
            result.invalid.append(
                InvalidFile(
                    path,
                    f"File too large: {size / (1024 * 1024):.1f}MB (max: {max_file_mb:.0f}MB)",
                )
            )
            continue
        result.valid.append(path)
        result.total_size += size

    if result.total_size > config.max_total_size:
        message = (
            f"Total upload size ({format_file_size(result.total_size)}) exceeds limit "
            f"({format_file_size(config.max_total_size)})"
        )
        result.errors.append(message)
        result.invalid.extend(InvalidFile(path, message) for path in result.valid)
        result.valid = []

    return result


class IngestionPipeline:
    """Drives uploads through tracking, admission, chunked reads and error reporting."""

    def __init__(
        self,
        config: IntakeConfig | None = None,
        tracker: OperationTracker | None = None,
        error_center: ErrorCenter | None = None,
        budget: MemoryBudget | None = None,
        processor: ChunkedFileProcessor | None = None,
    ):
        self.config = config or IntakeConfig()
        self.tracker = tracker or OperationTracker()
        self.error_center = error_center or ErrorCenter(self.tracker, config=self.config)
        self.budget = budget or MemoryBudget(
            self.config.memory_ceiling, self.config.estimate_multiplier
        )
        self.processor = processor or ChunkedFileProcessor(
            self.config.chunk_size, self.config.small_file_threshold
        )
        self.budget.on_warning(self._memory_warning)

    def _memory_warning(self, requested: int, ceiling: int) -> None:
        self.error_center.show_warning(
            "Memory Usage High",
            f"Memory usage would reach {round(requested / ceiling * 100)}%. "
            "Consider processing fewer files at once.",
        )

    async def ingest(self, paths: Sequence[str | Path]) -> IngestedProject | None:
        """
        Ingest a batch of local files.

        If the upload operation is failed or removed while the batch runs,
        the remaining files are skipped, an "Upload Cancelled" warning is
        shown and None is returned; files already read are discarded.

        Returns:
            The ingested project, or None if no file could be processed or
            the upload was cancelled
        """
        validation = validate_files(paths, self.config)
        for invalid in validation.invalid:
            self.error_center.show_warning(
                "File Validation Error", f"{invalid.path.name}: {invalid.reason}"
            )
        if not validation.valid:
            logger.info("Nothing to ingest: %d file(s) rejected", len(validation.invalid))
            return None

        jobs = [FileJob(path=p, size=p.stat().st_size) for p in validation.valid]
        upload = FileUploadTracker(self.tracker, [job.name for job in jobs])
        processed: list[SourceFile] = []

        for index, job in enumerate(jobs):
            if not self._still_running(upload.operation_id):
                logger.info("Upload %s stopped before %s", upload.operation_id, job.name)
                break
            try:
                source = await self._ingest_file(job, index, upload)
            except Exception as e:
                upload.fail_file(index)
                category = getattr(e, "category", ErrorCategory.FILE)
                self.error_center.report(e, category, f"Processing file: {job.name}")
            else:
                processed.append(source)
                upload.complete_file(index)
            # Keep the loop responsive between files
            await asyncio.sleep(0)

        if not self._still_running(upload.operation_id):
            self.error_center.show_warning(
                "Upload Cancelled",
                f"Upload stopped after {len(processed)} of {len(jobs)} files",
            )
            return None

        if not processed:
            upload.fail("No files could be processed")
            self.error_center.show_warning("Upload Failed", "No files could be processed")
            return None

        upload.complete()
        self.error_center.show_success(
            "Upload Complete", f"Successfully processed {len(processed)} files"
        )
        return IngestedProject(
            id=new_id(),
            name=f"Uploaded Project ({len(processed)} files)",
            source="upload",
            upload_time=datetime.now(),
            files=tuple(processed),
            total_size=sum(f.size for f in processed),
            languages=tuple(dict.fromkeys(f.language for f in processed)),
        )

    def _still_running(self, operation_id: str) -> bool:
        operation = self.tracker.get_operation(operation_id)
        return operation is not None and not operation.is_terminal

    async def _ingest_file(self, job: FileJob, index: int, upload: FileUploadTracker) -> SourceFile:
        job.estimate = self.budget.estimate_for(job.size)
        parts: list[bytes] = []

        try:
            with self.budget.reserved(job.estimate, file_name=job.name):
                job.transition_to(FileState.ADMITTED)
                job.transition_to(FileState.READING)
                await self.processor.process(
                    job.path,
                    self.config.chunk_size,
                    on_chunk=lambda data, is_last: parts.append(data),
                    on_progress=lambda percent: upload.update_file_progress(index, percent),
                )
                try:
                    content = b"".join(parts).decode("utf-8")
                except UnicodeDecodeError as e:
                    raise ParsingError(
                        f"Cannot decode {job.name} as UTF-8",
                        "encoding_error",
                        file_name=job.name,
                    ) from e
        except BaseException:
            job.transition_to(FileState.FAILED)
            raise

        job.transition_to(FileState.DONE)
        stat = job.path.stat()
        return SourceFile(
            id=new_id(),
            file_name=job.name,
            file_path=str(job.path),
            language=detect_language(job.name),
            content=content,
            size=job.size,
            last_modified=datetime.fromtimestamp(stat.st_mtime),
        )

    async def clone(self, url: str) -> AppError:
        """
        Request a repository fetch.

        Remote transport is not available here, so the request always ends in
        a reported git error: ``repo_not_found`` for malformed URLs and
        ``private_repo`` (fallback to file upload) otherwise.
        """
        operation_id = self.tracker.start_operation(OperationType.GIT_CLONE, f"Cloning {url}")
        if not is_valid_git_url(url):
            error = GitError("Invalid Git URL format", "repo_not_found", git_url=url)
        else:
            error = GitError(
                "Repository cloning is not supported. "
                "Please download the repository and upload the files instead.",
                "private_repo",
                git_url=url,
            )
        return self.error_center.report(
            error, ErrorCategory.GIT, f"Cloning {url}", operation_id=operation_id
        )
