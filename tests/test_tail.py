"""Tests for logbridge.tail."""

from __future__ import annotations

import asyncio
import io
import os
from unittest.mock import MagicMock

import pytest
from conftest import CollectingSink
from watchdog.events import (
    DirCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from logbridge.errors import TransportError
from logbridge.models import ConnectorStatus, Record
from logbridge.runner import ConnectorRunner
from logbridge.tail import (
    ChangeKind,
    FileChange,
    FileTailSource,
    FileWatcher,
    StdinSource,
    TailState,
    change_from_event,
    split_lines,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _append(path, text: str) -> None:
    with open(path, "ab") as fh:
        fh.write(text.encode())


async def _take(iterator, count: int) -> list[Record]:
    records = []
    for _ in range(count):
        records.append(await asyncio.wait_for(iterator.__anext__(), timeout=2))
    return records


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "app.log"
    path.write_bytes(b"old 1\nold 2\nold 3\n")
    return path


@pytest.fixture
def queue() -> asyncio.Queue:
    return asyncio.Queue(maxsize=8)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestSplitLines:
    def test_complete_lines(self):
        lines, rest = split_lines(b"a\nbc\n", 10)
        assert lines == [(10, b"a"), (12, b"bc")]
        assert rest == b""

    def test_trailing_partial(self):
        lines, rest = split_lines(b"a\npart", 0)
        assert lines == [(0, b"a")]
        assert rest == b"part"

    def test_empty_lines_kept(self):
        lines, _ = split_lines(b"\n\n", 0)
        assert lines == [(0, b""), (1, b"")]

    def test_no_newline(self):
        assert split_lines(b"abc", 5) == ([], b"abc")


class TestChangeFromEvent:
    def test_modified(self, tmp_path):
        path = str(tmp_path / "app.log")
        change = change_from_event(FileModifiedEvent(path), path)
        assert change == FileChange(kind=ChangeKind.DATA, path=path)

    def test_moved_away(self, tmp_path):
        path = str(tmp_path / "app.log")
        change = change_from_event(FileMovedEvent(path, path + ".1"), path)
        assert change.kind is ChangeKind.MOVED

    def test_moved_onto(self, tmp_path):
        path = str(tmp_path / "app.log")
        change = change_from_event(FileMovedEvent(path + ".tmp", path), path)
        assert change.kind is ChangeKind.MOVED

    def test_deleted(self, tmp_path):
        path = str(tmp_path / "app.log")
        assert change_from_event(FileDeletedEvent(path), path).kind is ChangeKind.DELETED

    def test_other_file_ignored(self, tmp_path):
        path = str(tmp_path / "app.log")
        assert change_from_event(FileModifiedEvent(str(tmp_path / "other.log")), path) is None

    def test_directory_ignored(self, tmp_path):
        path = str(tmp_path / "app.log")
        assert change_from_event(DirCreatedEvent(path), path) is None


class TestFileWatcherClassify:
    def test_attribute_change_is_metadata(self, log_file):
        watcher = FileWatcher(log_file, MagicMock(), MagicMock())
        change = FileChange(ChangeKind.DATA, watcher.path)

        assert watcher.classify(change).kind is ChangeKind.DATA
        os.chmod(log_file, 0o600)
        assert watcher.classify(change).kind is ChangeKind.METADATA
        _append(log_file, "more\n")
        assert watcher.classify(change).kind is ChangeKind.DATA

    def test_other_kinds_untouched(self, log_file):
        watcher = FileWatcher(log_file, MagicMock(), MagicMock())
        change = FileChange(ChangeKind.MOVED, watcher.path)
        assert watcher.classify(change) is change


# ---------------------------------------------------------------------------
# FileTailSource
# ---------------------------------------------------------------------------


class TestFileTailSource:
    @pytest.mark.asyncio
    async def test_catch_up_emits_nothing(self, log_file, queue):
        source = FileTailSource(log_file, notifications=queue)
        await source.start()
        assert source.state is TailState.WATCHING
        assert source.cursor.offset == os.path.getsize(log_file)

        source.close()
        records = [record async for record in source]
        assert records == []
        assert source.state is TailState.STOPPED
        await source.stop()

    @pytest.mark.asyncio
    async def test_appended_lines_emitted_in_order(self, log_file, queue):
        start = os.path.getsize(log_file)
        source = FileTailSource(log_file, notifications=queue)
        iterator = source.__aiter__()

        await source.start()
        _append(log_file, "new 1\nnew 2\n")
        await queue.put(FileChange(ChangeKind.DATA, str(log_file)))

        records = await _take(iterator, 2)
        assert [r.value for r in records] == [b"new 1", b"new 2"]
        assert [r.offset for r in records] == [start, start + 6]
        assert all(r.partition == 0 for r in records)

        _append(log_file, "new 3\n")
        await queue.put(FileChange(ChangeKind.DATA, str(log_file)))
        (record,) = await _take(iterator, 1)
        assert record.value == b"new 3"

        source.close()
        await iterator.aclose()
        await source.stop()

    @pytest.mark.asyncio
    async def test_partial_line_withheld(self, log_file, queue):
        start = os.path.getsize(log_file)
        source = FileTailSource(log_file, notifications=queue)
        iterator = source.__aiter__()
        await source.start()

        _append(log_file, "half")
        await queue.put(FileChange(ChangeKind.DATA, str(log_file)))
        _append(log_file, " done\n")
        await queue.put(FileChange(ChangeKind.DATA, str(log_file)))

        (record,) = await _take(iterator, 1)
        assert record.value == b"half done"
        assert record.offset == start

        source.close()
        await iterator.aclose()
        await source.stop()

    @pytest.mark.asyncio
    async def test_pre_existing_partial_line_completed_later(self, tmp_path, queue):
        path = tmp_path / "app.log"
        path.write_bytes(b"done\nstarted")
        source = FileTailSource(path, notifications=queue)
        iterator = source.__aiter__()
        await source.start()
        assert source.cursor.pending == b"started"

        _append(path, " now\n")
        await queue.put(FileChange(ChangeKind.DATA, str(path)))
        (record,) = await _take(iterator, 1)
        assert record.value == b"started now"
        assert record.offset == 5

        source.close()
        await iterator.aclose()
        await source.stop()

    @pytest.mark.asyncio
    async def test_non_data_changes_ignored(self, log_file, queue):
        source = FileTailSource(log_file, notifications=queue)
        iterator = source.__aiter__()
        await source.start()

        _append(log_file, "skipped until data\n")
        await queue.put(FileChange(ChangeKind.MOVED, str(log_file)))
        await queue.put(FileChange(ChangeKind.METADATA, str(log_file)))
        await queue.put(FileChange(ChangeKind.OTHER, str(log_file)))
        await queue.put(FileChange(ChangeKind.DATA, str(log_file)))

        (record,) = await _take(iterator, 1)
        assert record.value == b"skipped until data"

        source.close()
        await iterator.aclose()
        await source.stop()

    @pytest.mark.asyncio
    async def test_data_change_without_new_bytes(self, log_file, queue):
        source = FileTailSource(log_file, notifications=queue)
        iterator = source.__aiter__()
        await source.start()

        await queue.put(FileChange(ChangeKind.DATA, str(log_file)))
        _append(log_file, "only\n")
        await queue.put(FileChange(ChangeKind.DATA, str(log_file)))

        records = await _take(iterator, 1)
        assert [r.value for r in records] == [b"only"]

        source.close()
        await iterator.aclose()
        await source.stop()

    @pytest.mark.asyncio
    async def test_truncation_restarts_from_top(self, log_file, queue):
        source = FileTailSource(log_file, notifications=queue)
        iterator = source.__aiter__()
        await source.start()

        log_file.write_bytes(b"fresh\n")
        await queue.put(FileChange(ChangeKind.DATA, str(log_file)))

        (record,) = await _take(iterator, 1)
        assert record.value == b"fresh"
        assert record.offset == 0

        source.close()
        await iterator.aclose()
        await source.stop()

    @pytest.mark.asyncio
    async def test_filter_prefix(self, log_file, queue):
        source = FileTailSource(log_file, notifications=queue, filter_prefix="sshd")
        iterator = source.__aiter__()
        await source.start()

        _append(log_file, "cron: tick\nsshd: accepted\nkernel: oops\nsshd: closed\n")
        await queue.put(FileChange(ChangeKind.DATA, str(log_file)))

        records = await _take(iterator, 2)
        assert [r.value for r in records] == [b"sshd: accepted", b"sshd: closed"]

        source.close()
        await iterator.aclose()
        await source.stop()

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self, log_file, queue):
        source = FileTailSource(log_file, notifications=queue)
        await source.start()
        await queue.put(None)
        assert [record async for record in source] == []
        assert source.state is TailState.STOPPED
        await source.stop()

    @pytest.mark.asyncio
    async def test_close_with_full_queue(self, log_file):
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        source = FileTailSource(log_file, notifications=queue)
        await source.start()
        await queue.put(FileChange(ChangeKind.DATA, str(log_file)))
        source.close()
        assert [record async for record in source] == []
        await source.stop()

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path, queue):
        source = FileTailSource(tmp_path / "absent.log", notifications=queue)
        with pytest.raises(TransportError, match="cannot open"):
            await source.start()
        assert source.state is TailState.STOPPED

    @pytest.mark.asyncio
    async def test_health_check(self, log_file, queue):
        source = FileTailSource(log_file, notifications=queue)
        await source.start()
        details = await source.health_check()
        assert details["state"] == "watching"
        assert details["offset"] == os.path.getsize(log_file)
        assert details["lines_emitted"] == 0
        await source.stop()

    @pytest.mark.asyncio
    async def test_own_watcher_picks_up_appends(self, log_file):
        source = FileTailSource(log_file, capacity=4)
        iterator = source.__aiter__()
        await source.start()
        try:
            _append(log_file, "watched\n")
            (record,) = await _take(iterator, 1)
            assert record.value == b"watched"
        finally:
            source.close()
            await iterator.aclose()
            await source.stop()


# ---------------------------------------------------------------------------
# StdinSource
# ---------------------------------------------------------------------------


class TestStdinSource:
    @pytest.mark.asyncio
    async def test_lines_with_offsets(self):
        source = StdinSource(io.BytesIO(b"one\ntwo\nthree"))
        records = [record async for record in source]
        assert [r.value for r in records] == [b"one", b"two", b"three"]
        assert [r.offset for r in records] == [0, 4, 8]

    @pytest.mark.asyncio
    async def test_filter_prefix(self):
        source = StdinSource(io.BytesIO(b"a: 1\nb: 2\na: 3\n"), filter_prefix="a:")
        records = [record async for record in source]
        assert [r.value for r in records] == [b"a: 1", b"a: 3"]

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        assert [record async for record in StdinSource(io.BytesIO(b""))] == []

    @pytest.mark.asyncio
    async def test_read_error_is_transport_error(self):
        stream = MagicMock()
        stream.readline.side_effect = OSError("bad descriptor")
        with pytest.raises(TransportError, match="cannot read stdin"):
            async for _ in StdinSource(stream):
                pass

    @pytest.mark.asyncio
    async def test_close_while_idle(self):
        read_fd, write_fd = os.pipe()
        with os.fdopen(read_fd, "rb") as stream:
            source = StdinSource(stream)
            iterator = source.__aiter__()
            pending = asyncio.ensure_future(iterator.__anext__())
            try:
                await asyncio.sleep(0.05)
                assert not pending.done()
                source.close()
                with pytest.raises(StopAsyncIteration):
                    await asyncio.wait_for(pending, timeout=2)
            finally:
                os.close(write_fd)

    @pytest.mark.asyncio
    async def test_runner_shutdown_while_idle(self, runtime_settings):
        read_fd, write_fd = os.pipe()
        with os.fdopen(read_fd, "rb") as stream:
            sink = CollectingSink()
            runner = ConnectorRunner(
                "stdin", StdinSource(stream), sink, runtime_settings, install_signals=False
            )
            task = asyncio.create_task(runner.run())
            try:
                await asyncio.sleep(0.05)
                runner.shutdown()
                stats = await asyncio.wait_for(task, timeout=2)
            finally:
                os.close(write_fd)

        assert stats.attempted == 0
        assert runner.status is ConnectorStatus.STOPPED
        assert sink.stopped
