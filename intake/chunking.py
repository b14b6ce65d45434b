"""
Intake - Chunked File Processor

Streams a file's bytes in bounded chunks so peak memory stays near the chunk
size. Small files are read in one step. Reads run off the event loop and the
processor yields between chunks; a read already in flight is never
interrupted, so cancellation takes effect at chunk boundaries only.
"""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from intake.exceptions import FileError

logger = logging.getLogger(__name__)

DEFAULT_SMALL_FILE_THRESHOLD = 1_048_576
DEFAULT_CHUNK_SIZE = 524_288

ChunkCallback = Callable[[bytes, bool], Awaitable[None] | None]
ProgressCallback = Callable[[float], Awaitable[None] | None]


class FileState(str, Enum):
    """
    Per-file processing state inside a larger operation.

    PENDING -> ADMITTED -> READING -> DONE
    Any non-terminal state -> FAILED
    """

    PENDING = "pending"
    ADMITTED = "admitted"
    READING = "reading"
    DONE = "done"
    FAILED = "failed"


FILE_TRANSITIONS: dict[FileState, set[FileState]] = {
    FileState.PENDING: {FileState.ADMITTED, FileState.FAILED},
    FileState.ADMITTED: {FileState.READING, FileState.FAILED},
    FileState.READING: {FileState.DONE, FileState.FAILED},
    FileState.DONE: set(),
    FileState.FAILED: set(),
}


@dataclass
class FileJob:
    """Tracks one file through admission and reading."""

    path: Path
    size: int
    state: FileState = FileState.PENDING
    estimate: int = 0

    @property
    def name(self) -> str:
        return self.path.name

    def transition_to(self, new_state: FileState) -> bool:
        if new_state in FILE_TRANSITIONS[self.state]:
            self.state = new_state
            return True
        return False


@dataclass(frozen=True)
class Chunk:
    """One delivered piece of a file."""

    data: bytes
    progress: float  # percent of bytes delivered so far
    is_last: bool


async def _maybe_await(result: Awaitable[None] | None) -> None:
    if inspect.isawaitable(result):
        await result


class ChunkedFileProcessor:
    """Reads files whole or in chunks depending on their size."""

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        small_file_threshold: int = DEFAULT_SMALL_FILE_THRESHOLD,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.chunk_size = chunk_size
        self.small_file_threshold = small_file_threshold

    async def iter_chunks(
        self, file: str | Path, chunk_size: int | None = None
    ) -> AsyncIterator[Chunk]:
        """
        Yield a file's bytes in order.

        Files below the small-file threshold arrive as a single chunk.

        Raises:
            FileError: read_failed if the file cannot be read or changes
                size while being read
        """
        path = Path(file)
        size = chunk_size or self.chunk_size
        if size <= 0:
            raise ValueError("chunk_size must be positive")

        try:
            total = path.stat().st_size
            if total < self.small_file_threshold:
                data = await asyncio.to_thread(path.read_bytes)
                yield Chunk(data=data, progress=100.0, is_last=True)
                return

            with open(path, "rb") as fh:
                offset = 0
                while offset < total:
                    data = await asyncio.to_thread(fh.read, min(size, total - offset))
                    if not data:
                        raise FileError(
                            f"File changed while reading: {path.name}",
                            "read_failed",
                            file_name=path.name,
                        )
                    offset += len(data)
                    yield Chunk(data=data, progress=offset / total * 100, is_last=offset >= total)
                    # Let other tasks run between chunks
                    await asyncio.sleep(0)
        except OSError as e:
            raise FileError(
                f"Failed to read file: {path.name}",
                "read_failed",
                file_name=path.name,
            ) from e

    async def process(
        self,
        file: str | Path,
        chunk_size: int | None = None,
        on_chunk: ChunkCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """
        Stream a file through the callbacks.

        ``on_chunk(data, is_last)`` receives every chunk in order; the last
        call has ``is_last=True``. ``on_progress(percent)`` follows each chunk
        with a non-decreasing percentage ending at 100. Callbacks may be plain
        functions or coroutines.

        Returns:
            Number of bytes delivered
        """
        delivered = 0
        async for chunk in self.iter_chunks(file, chunk_size):
            delivered += len(chunk.data)
            if on_chunk is not None:
                await _maybe_await(on_chunk(chunk.data, chunk.is_last))
            if on_progress is not None:
                await _maybe_await(on_progress(chunk.progress))
        logger.debug("Processed %s (%d bytes)", file, delivered)
        return delivered
