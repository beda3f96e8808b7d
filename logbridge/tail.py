"""File-tailing record sources.

:class:`FileTailSource` follows a file that grows over time.  On start it
catches up to the current end of file without emitting anything, then
waits for change notifications and emits one record per newly completed
line, in file order.  The read position lives only in memory, so a
restarted process starts again from the then-current end of file.

Notifications come from a watchdog observer thread through a bounded
:class:`asyncio.Queue`; when the queue is full the observer thread blocks
until the pipeline catches up.
"""

from __future__ import annotations

import asyncio
import os
import sys
import threading
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, Any

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .errors import TransportError
from .interface import RecordSource
from .models import Record

_CHUNK_SIZE = 64 * 1024


class ChangeKind(str, Enum):
    """What a file-change notification reports."""

    DATA = "data"
    METADATA = "metadata"
    MOVED = "moved"
    DELETED = "deleted"
    OTHER = "other"


@dataclass(frozen=True)
class FileChange:
    kind: ChangeKind
    path: str


class TailState(str, Enum):
    CATCHING_UP = "catching_up"
    WATCHING = "watching"
    STOPPED = "stopped"


@dataclass
class Cursor:
    """Read position in the tailed file.

    ``offset`` is the byte offset of the next unread byte; ``pending``
    holds the bytes of a line whose newline has not been written yet.
    """

    offset: int = 0
    pending: bytes = b""

    @property
    def line_start(self) -> int:
        return self.offset - len(self.pending)


def split_lines(data: bytes, start: int) -> tuple[list[tuple[int, bytes]], bytes]:
    """Split *data* into complete lines and a trailing partial line.

    *start* is the byte offset of ``data[0]``.  Returns ``(offset, line)``
    pairs with the ``\\n`` removed, plus the unterminated remainder.
    """
    lines: list[tuple[int, bytes]] = []
    pos = 0
    while True:
        end = data.find(b"\n", pos)
        if end == -1:
            break
        lines.append((start + pos, data[pos:end]))
        pos = end + 1
    return lines, data[pos:]


# ---------------------------------------------------------------------------
# watchdog -> asyncio
# ---------------------------------------------------------------------------

_EVENT_KINDS = {
    "modified": ChangeKind.DATA,
    "moved": ChangeKind.MOVED,
    "deleted": ChangeKind.DELETED,
}


def change_from_event(event: FileSystemEvent, path: str) -> FileChange | None:
    """Map a watchdog event to a :class:`FileChange` for *path*.

    Returns ``None`` for directory events and events about other files.
    """
    if event.is_directory:
        return None
    paths = {os.path.abspath(os.fsdecode(event.src_path))}
    if getattr(event, "dest_path", ""):
        paths.add(os.path.abspath(os.fsdecode(event.dest_path)))
    if path not in paths:
        return None
    return FileChange(kind=_EVENT_KINDS.get(event.event_type, ChangeKind.OTHER), path=path)


class _QueueingHandler(FileSystemEventHandler):
    def __init__(self, watcher: FileWatcher) -> None:
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        change = change_from_event(event, self._watcher.path)
        if change is not None:
            self._watcher.publish(self._watcher.classify(change))


class FileWatcher:
    """Feeds changes to one file into an asyncio queue from a watchdog thread.

    watchdog watches directories, so the file's parent directory is
    scheduled and events for other entries are filtered out.  watchdog
    reports attribute changes as modifications too; a modification that
    leaves size and mtime untouched is published as ``METADATA``.
    """

    def __init__(
        self,
        path: str | Path,
        queue: asyncio.Queue[FileChange | None],
        loop: asyncio.AbstractEventLoop,
        *,
        logger: Any = None,
    ) -> None:
        self.path = os.path.abspath(path)
        self._queue = queue
        self._loop = loop
        self._log = logger or structlog.get_logger()
        self._observer: Any = None
        self._signature: tuple[int, int] | None = None

    def _stat_signature(self) -> tuple[int, int] | None:
        try:
            st = os.stat(self.path)
        except OSError:
            return None
        return st.st_size, st.st_mtime_ns

    def classify(self, change: FileChange) -> FileChange:
        """Downgrade a ``DATA`` change to ``METADATA`` when the content is unchanged."""
        if change.kind is not ChangeKind.DATA:
            return change
        signature = self._stat_signature()
        if signature is not None and signature == self._signature:
            return FileChange(kind=ChangeKind.METADATA, path=change.path)
        self._signature = signature
        return change

    def start(self) -> None:
        self._signature = self._stat_signature()
        self._observer = Observer()
        self._observer.schedule(
            _QueueingHandler(self),
            os.path.dirname(self.path),
            recursive=False,
        )
        self._observer.start()
        self._log.debug("file_watch_started", path=self.path)

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            self._log.debug("file_watch_stopped", path=self.path)

    def publish(self, change: FileChange) -> None:
        """Hand *change* to the event loop, blocking while the queue is full."""
        try:
            asyncio.run_coroutine_threadsafe(self._queue.put(change), self._loop).result()
        except Exception as exc:
            self._log.warning("file_watch_publish_failed", path=self.path, error=str(exc))


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class FileTailSource(RecordSource):
    """Emit one record per line appended to *path* after start-up.

    Pass *notifications* to drive the source from your own queue (tests do
    this); otherwise a :class:`FileWatcher` is started on :meth:`start`.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        notifications: asyncio.Queue[FileChange | None] | None = None,
        capacity: int = 64,
        filter_prefix: str | None = None,
        logger: Any = None,
    ) -> None:
        self.path = os.path.abspath(path)
        self.state = TailState.CATCHING_UP
        self.cursor = Cursor()
        self._queue = notifications if notifications is not None else asyncio.Queue(maxsize=capacity)
        self._own_watcher = notifications is None
        self._watcher: FileWatcher | None = None
        self._prefix = filter_prefix.encode("utf-8") if filter_prefix else None
        self._file: IO[bytes] | None = None
        self._closed = False
        self._log = (logger or structlog.get_logger()).bind(path=self.path)
        self._lines_emitted = 0

    async def start(self) -> None:
        """Open the file, start watching it and catch up to end of file."""
        if self._file is not None:
            return
        try:
            self._file = open(self.path, "rb")
        except OSError as exc:
            self.state = TailState.STOPPED
            raise TransportError(f"cannot open {self.path}: {exc}") from exc

        # watch before catching up so no append falls between the two
        if self._own_watcher:
            self._watcher = FileWatcher(
                self.path, self._queue, asyncio.get_running_loop(), logger=self._log
            )
            self._watcher.start()

        skipped = len(await self._read_lines())
        self.state = TailState.WATCHING
        self._log.info(
            "file_tail_caught_up",
            offset=self.cursor.offset,
            skipped_lines=skipped,
        )

    async def stop(self) -> None:
        self.close()
        if self._watcher is not None:
            await asyncio.to_thread(self._watcher.stop)
            self._watcher = None
        if self._file is not None:
            self._file.close()
            self._file = None

    def close(self) -> None:
        """Close the notification channel; iteration ends after this."""
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass  # the iterator checks _closed after every get

    async def _read_lines(self) -> list[tuple[int, bytes]]:
        """Read everything after the cursor and return the completed lines."""
        assert self._file is not None, "Source not started"
        try:
            size = os.fstat(self._file.fileno()).st_size
            if size < self.cursor.offset:
                self._log.warning("file_truncated", size=size, offset=self.cursor.offset)
                self._file.seek(0)
                self.cursor = Cursor()
            lines: list[tuple[int, bytes]] = []
            while chunk := await asyncio.to_thread(self._file.read, _CHUNK_SIZE):
                start = self.cursor.line_start
                self.cursor.offset += len(chunk)
                found, self.cursor.pending = split_lines(self.cursor.pending + chunk, start)
                lines.extend(found)
        except OSError as exc:
            self.state = TailState.STOPPED
            raise TransportError(f"cannot read {self.path}: {exc}") from exc
        return lines

    async def __aiter__(self) -> AsyncIterator[Record]:
        await self.start()
        while not self._closed:
            change = await self._queue.get()
            if change is None or self._closed:
                break
            if change.kind is not ChangeKind.DATA:
                self._log.debug("file_change_ignored", kind=change.kind.value)
                continue
            for offset, line in await self._read_lines():
                if self._prefix is not None and not line.startswith(self._prefix):
                    continue
                self._lines_emitted += 1
                yield Record(value=line, offset=offset)
        self.state = TailState.STOPPED
        self._log.info("file_tail_stopped", offset=self.cursor.offset)

    async def health_check(self) -> dict[str, object]:
        return {
            "path": self.path,
            "state": self.state.value,
            "offset": self.cursor.offset,
            "lines_emitted": self._lines_emitted,
        }


class StdinSource(RecordSource):
    """Emit one record per line read from a binary stream (stdin by default).

    A daemon thread reads the stream and hands lines to the event loop
    through a bounded queue, so :meth:`close` ends iteration even while the
    stream is idle.
    """

    def __init__(
        self,
        stream: IO[bytes] | None = None,
        *,
        filter_prefix: str | None = None,
        capacity: int = 64,
        logger: Any = None,
    ) -> None:
        self._stream = stream
        self._prefix = filter_prefix.encode("utf-8") if filter_prefix else None
        self._offset = 0
        self._queue: asyncio.Queue[bytes | OSError | None] = asyncio.Queue(maxsize=capacity)
        self._reader: threading.Thread | None = None
        self._closed = False
        self._log = logger or structlog.get_logger()

    async def start(self) -> None:
        if self._reader is not None:
            return
        stream = self._stream if self._stream is not None else sys.stdin.buffer
        self._reader = threading.Thread(
            target=self._read,
            args=(stream, asyncio.get_running_loop()),
            name="stdin-reader",
            daemon=True,
        )
        self._reader.start()

    async def stop(self) -> None:
        self.close()

    def close(self) -> None:
        """End iteration; a line the reader thread is blocked on is abandoned."""
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass  # the iterator checks _closed after every get

    def _read(self, stream: IO[bytes], loop: asyncio.AbstractEventLoop) -> None:
        while not self._closed:
            item: bytes | OSError | None
            try:
                item = stream.readline() or None
            except OSError as exc:
                item = exc
            if loop.is_closed():
                return
            try:
                asyncio.run_coroutine_threadsafe(self._queue.put(item), loop).result()
            except Exception as exc:
                self._log.warning("stdin_publish_failed", error=str(exc))
                return
            if not isinstance(item, bytes):
                return

    async def __aiter__(self) -> AsyncIterator[Record]:
        await self.start()
        while not self._closed:
            item = await self._queue.get()
            if item is None or self._closed:
                break
            if isinstance(item, OSError):
                raise TransportError(f"cannot read stdin: {item}") from item
            offset = self._offset
            self._offset += len(item)
            line = item.removesuffix(b"\n")
            if self._prefix is not None and not line.startswith(self._prefix):
                continue
            yield Record(value=line, offset=offset)
        self._log.info("stdin_stopped", offset=self._offset)
