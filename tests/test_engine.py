"""Tests for the upload engine boundary: validation, completion, reassembly, deletion."""

import asyncio
import itertools
import random

import pytest

from storage.config import EngineConfig
from storage.engine import UploadEngine
from storage.exceptions import ChunkStoreError, FileTooLargeError, InvalidChunkError
from storage.types import ChunkDescriptor


def descriptor(index, total, identifier="abc", size=300000, filename="upload.bin"):
    return ChunkDescriptor(
        identifier=identifier,
        part_index=index,
        total_parts=total,
        total_size=size,
        filename=filename,
    )


@pytest.fixture
def limited_engine(storage_root):
    return UploadEngine(EngineConfig(storage_root=storage_root, max_file_size=1000000))


@pytest.fixture
def legacy_engine(storage_root):
    return UploadEngine(EngineConfig(storage_root=storage_root, verify_complete=False))


class TestChunkedUpload:
    """Test chunk storage and completion detection."""

    @pytest.mark.asyncio
    async def test_three_part_upload_out_of_order(self, limited_engine, stream):
        payloads = [b"payload-zero|", b"payload-one|", b"payload-two"]

        first = await limited_engine.handle_upload_chunk(descriptor(0, 3), stream(payloads[0]))
        assert first.success and not first.complete

        second = await limited_engine.handle_upload_chunk(descriptor(1, 3), stream(payloads[1]))
        assert second.success and not second.complete
        assert await limited_engine.chunk_store.list_chunks("abc") == ["0", "1"]

        last = await limited_engine.handle_upload_chunk(descriptor(2, 3), stream(payloads[2]))
        assert last.success and last.complete
        assert last.path.read_bytes() == b"".join(payloads)
        assert not limited_engine.layout.staging_dir("abc").exists()

    @pytest.mark.asyncio
    async def test_last_index_arriving_early_waits_for_missing_parts(self, engine, stream):
        early = await engine.handle_upload_chunk(descriptor(2, 3), stream(b"C"))
        assert early.success
        assert not early.complete
        assert not engine.final_path("abc", "upload.bin").exists()

        await engine.handle_upload_chunk(descriptor(0, 3), stream(b"A"))
        done = await engine.handle_upload_chunk(descriptor(1, 3), stream(b"B"))

        assert done.complete
        assert done.path.read_bytes() == b"ABC"

    @pytest.mark.asyncio
    async def test_every_arrival_order_produces_the_same_file(self, tmp_path, stream):
        payloads = [f"part-{i};".encode() for i in range(4)]
        expected = b"".join(payloads)

        for n, order in enumerate(itertools.permutations(range(4))):
            engine = UploadEngine(EngineConfig(storage_root=tmp_path / str(n)))
            outcomes = [
                await engine.handle_upload_chunk(descriptor(i, 4), stream(payloads[i]))
                for i in order
            ]

            assert [o.complete for o in outcomes] == [False, False, False, True]
            assert engine.final_path("abc", "upload.bin").read_bytes() == expected

    @pytest.mark.asyncio
    async def test_concurrent_chunks_combine_exactly_once(self, engine, stream):
        total = 25
        payloads = [random.randbytes(random.randint(1, 4096)) for _ in range(total)]
        order = list(range(total))
        random.shuffle(order)

        outcomes = await asyncio.gather(*(
            engine.handle_upload_chunk(descriptor(i, total), stream(payloads[i]))
            for i in order
        ))

        assert all(o.success for o in outcomes)
        assert sum(o.complete for o in outcomes) == 1
        assert engine.final_path("abc", "upload.bin").read_bytes() == b"".join(payloads)
        assert len(engine.locks) == 0

    @pytest.mark.asyncio
    async def test_single_part_upload_completes_immediately(self, engine, stream):
        outcome = await engine.handle_upload_chunk(descriptor(0, 1), stream(b"tiny"))

        assert outcome.complete
        assert outcome.path.read_bytes() == b"tiny"

    @pytest.mark.asyncio
    async def test_uploads_are_independent(self, engine, stream):
        await engine.handle_upload_chunk(descriptor(0, 2, identifier="one"), stream(b"1a"))
        await engine.handle_upload_chunk(descriptor(0, 2, identifier="two"), stream(b"2a"))
        done = await engine.handle_upload_chunk(descriptor(1, 2, identifier="two"), stream(b"2b"))

        assert done.path.read_bytes() == b"2a2b"
        assert await engine.chunk_store.list_chunks("one") == ["0"]

    @pytest.mark.asyncio
    async def test_chunks_of_another_part_count_are_rejected(self, engine, stream):
        await engine.handle_upload_chunk(descriptor(5, 12), stream(b"x"))

        outcome = await engine.handle_upload_chunk(descriptor(0, 3), stream(b"y"))

        assert not outcome.success
        assert outcome.code == InvalidChunkError.code
        assert outcome.prevent_retry


class TestLastIndexCompletion:
    """Test the compatibility policy: combine when the last index is stored."""

    @pytest.mark.asyncio
    async def test_combines_on_last_index(self, legacy_engine, stream):
        await legacy_engine.handle_upload_chunk(descriptor(0, 3), stream(b"A"))
        await legacy_engine.handle_upload_chunk(descriptor(1, 3), stream(b"B"))
        outcome = await legacy_engine.handle_upload_chunk(descriptor(2, 3), stream(b"C"))

        assert outcome.complete
        assert outcome.path.read_bytes() == b"ABC"

    @pytest.mark.asyncio
    async def test_combines_without_missing_middle_chunk(self, legacy_engine, stream):
        await legacy_engine.handle_upload_chunk(descriptor(0, 3), stream(b"A"))
        outcome = await legacy_engine.handle_upload_chunk(descriptor(2, 3), stream(b"C"))

        assert outcome.complete
        assert outcome.path.read_bytes() == b"AC"

    @pytest.mark.asyncio
    async def test_retried_last_chunk_keeps_combined_file(self, legacy_engine, stream):
        for index, payload in enumerate([b"A", b"B", b"C"]):
            await legacy_engine.handle_upload_chunk(descriptor(index, 3), stream(payload))

        retried = await legacy_engine.handle_upload_chunk(descriptor(2, 3), stream(b"C"))

        assert retried.success
        assert not retried.complete
        assert legacy_engine.final_path("abc", "upload.bin").read_bytes() == b"ABC"
        assert not legacy_engine.layout.staging_dir("abc").exists()

    @pytest.mark.asyncio
    async def test_single_part_upload_may_be_replaced(self, legacy_engine, stream):
        await legacy_engine.handle_upload_chunk(descriptor(0, 1), stream(b"old"))
        outcome = await legacy_engine.handle_upload_chunk(descriptor(0, 1), stream(b"new"))

        assert outcome.complete
        assert outcome.path.read_bytes() == b"new"

    @pytest.mark.asyncio
    async def test_non_last_index_never_combines(self, legacy_engine, stream):
        await legacy_engine.handle_upload_chunk(descriptor(0, 3), stream(b"A"))
        outcome = await legacy_engine.handle_upload_chunk(descriptor(1, 3), stream(b"B"))

        assert outcome.success
        assert not outcome.complete
        assert not legacy_engine.final_path("abc", "upload.bin").exists()


class TestValidation:
    """Test rejection before any storage is touched."""

    @pytest.mark.asyncio
    async def test_size_equal_to_maximum_is_rejected(self, storage_root, stream):
        engine = UploadEngine(EngineConfig(storage_root=storage_root, max_file_size=1000))

        outcome = await engine.handle_upload_chunk(descriptor(0, 1, size=1000), stream(b"x"))

        assert not outcome.success
        assert outcome.prevent_retry
        assert outcome.code == FileTooLargeError.code
        assert outcome.error.startswith("Too big!")
        assert not storage_root.exists()

    @pytest.mark.asyncio
    async def test_size_below_maximum_is_accepted(self, storage_root, stream):
        engine = UploadEngine(EngineConfig(storage_root=storage_root, max_file_size=1000))

        outcome = await engine.handle_upload_chunk(descriptor(0, 1, size=999), stream(b"x"))

        assert outcome.success

    @pytest.mark.asyncio
    async def test_unsafe_identifier_is_rejected(self, engine, storage_root, stream):
        outcome = await engine.handle_upload_chunk(descriptor(0, 1, identifier="../x"), stream(b"x"))

        assert not outcome.success
        assert outcome.prevent_retry
        assert not storage_root.exists()

    @pytest.mark.asyncio
    async def test_filename_checked_before_storing(self, engine, storage_root, stream):
        outcome = await engine.handle_upload_chunk(descriptor(0, 2, filename="chunks"), stream(b"x"))

        assert not outcome.success
        assert not storage_root.exists()

    @pytest.mark.asyncio
    async def test_out_of_range_index(self, engine, stream):
        outcome = await engine.handle_upload_chunk(descriptor(3, 3), stream(b"x"))

        assert not outcome.success
        assert outcome.code == InvalidChunkError.code


class TestFailures:
    """Test transient storage failures."""

    @pytest.mark.asyncio
    async def test_failed_chunk_write_is_retryable(self, engine, stream, failing_stream):
        outcome = await engine.handle_upload_chunk(descriptor(0, 2), failing_stream())

        assert not outcome.success
        assert not outcome.prevent_retry
        assert outcome.code == ChunkStoreError.code
        assert await engine.chunk_store.list_chunks("abc") == []

        retried = await engine.handle_upload_chunk(descriptor(0, 2), stream(b"ok"))
        assert retried.success

    @pytest.mark.asyncio
    async def test_failed_reassembly_keeps_chunks(self, engine, stream, monkeypatch):
        async def broken_append(destination, source, piece_size=0):
            raise OSError(5, "Input/output error", str(source))

        monkeypatch.setattr("storage.reassembler.append_file", broken_append)

        await engine.handle_upload_chunk(descriptor(0, 2), stream(b"A"))
        outcome = await engine.handle_upload_chunk(descriptor(1, 2), stream(b"B"))

        assert not outcome.success
        assert not outcome.prevent_retry
        assert outcome.error.startswith("Problem appending chunk!")
        assert await engine.chunk_store.list_chunks("abc") == ["0", "1"]
        assert not engine.final_path("abc", "upload.bin").exists()


class TestSimpleUpload:

    @pytest.mark.asyncio
    async def test_simple_upload_writes_final_file(self, engine, stream):
        outcome = await engine.handle_simple_upload("abc", "notes.txt", 5, stream(b"notes"))

        assert outcome.success and outcome.complete
        assert engine.final_path("abc", "notes.txt").read_bytes() == b"notes"

    @pytest.mark.asyncio
    async def test_simple_upload_size_limit(self, storage_root, stream):
        engine = UploadEngine(EngineConfig(storage_root=storage_root, max_file_size=4))

        outcome = await engine.handle_simple_upload("abc", "notes.txt", 5, stream(b"notes"))

        assert not outcome.success
        assert outcome.prevent_retry
        assert not storage_root.exists()


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_unknown_identifier_succeeds(self, engine):
        outcome = await engine.handle_delete("nothing-here")

        assert outcome.success
        assert not outcome.removed

    @pytest.mark.asyncio
    async def test_delete_incomplete_upload(self, engine, stream):
        await engine.handle_upload_chunk(descriptor(0, 3), stream(b"A"))

        outcome = await engine.handle_delete("abc")

        assert outcome.success and outcome.removed
        assert not engine.layout.upload_dir("abc").exists()

    @pytest.mark.asyncio
    async def test_delete_completed_upload(self, engine, stream):
        await engine.handle_upload_chunk(descriptor(0, 1), stream(b"A"))

        outcome = await engine.handle_delete("abc")

        assert outcome.success and outcome.removed
        assert not engine.layout.upload_dir("abc").exists()

    @pytest.mark.asyncio
    async def test_delete_failure_is_reported(self, engine, stream, monkeypatch):
        await engine.handle_upload_chunk(descriptor(0, 2), stream(b"A"))

        async def broken_remove_tree(path):
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr("storage.deletion.remove_tree", broken_remove_tree)

        outcome = await engine.handle_delete("abc")

        assert not outcome.success
        assert outcome.error

    @pytest.mark.asyncio
    async def test_delete_invalid_identifier(self, engine):
        outcome = await engine.handle_delete("a/b")
        assert not outcome.success


class TestIndependentEngines:

    @pytest.mark.asyncio
    async def test_engines_use_their_own_settings(self, tmp_path, stream):
        strict = UploadEngine(EngineConfig(storage_root=tmp_path / "strict", max_file_size=10))
        open_ = UploadEngine(EngineConfig(storage_root=tmp_path / "open"))

        rejected = await strict.handle_upload_chunk(descriptor(0, 1, size=100), stream(b"x"))
        accepted = await open_.handle_upload_chunk(descriptor(0, 1, size=100), stream(b"x"))

        assert not rejected.success
        assert accepted.success
        assert not (tmp_path / "strict").exists()
