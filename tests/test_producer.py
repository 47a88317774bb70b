"""Test chunk production from files and buffers"""

import asyncio
import hashlib

import pytest

from chunkpipe.chunks.aggregate import calculate_file_hash, collect_chunks
from chunkpipe.chunks.producer import chunk_bytes, chunk_file, split_ranges


@pytest.fixture
def sample_data():
    return bytes(range(256)) * 40 + b"tail"


class TestSplitRanges:
    """Test range planning"""

    def test_exact_multiple(self):
        assert split_ranges(8, 4) == [(0, 4), (4, 8)]

    def test_short_last_range(self):
        assert split_ranges(10, 4) == [(0, 4), (4, 8), (8, 10)]

    def test_single_range(self):
        assert split_ranges(3, 10) == [(0, 3)]

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            split_ranges(10, 0)


class TestChunkBytes:
    """Test in-memory chunking"""

    @pytest.mark.asyncio
    async def test_chunks_cover_buffer(self, sample_data):
        sources = chunk_bytes(sample_data, chunk_size=1000, workers=3)
        chunks = await asyncio.wait_for(collect_chunks(sources), 2)

        assert len(chunks) == 11
        assert b"".join(chunk.payload for chunk in chunks) == sample_data
        for i, chunk in enumerate(chunks):
            assert chunk.index == i
            assert chunk.start == i * 1000
            assert chunk.size == len(chunk.payload)
            assert chunk.hash == hashlib.md5(chunk.payload).hexdigest()

    @pytest.mark.asyncio
    async def test_worker_count_does_not_change_result(self, sample_data):
        single = await calculate_file_hash(chunk_bytes(sample_data, chunk_size=512, workers=1))
        many = await calculate_file_hash(chunk_bytes(sample_data, chunk_size=512, workers=7))

        assert single == many

    @pytest.mark.asyncio
    async def test_default_chunk_size_small_input(self):
        sources = chunk_bytes(b"abc")
        chunks = await collect_chunks(sources)

        assert len(chunks) == 1
        assert chunks[0].payload == b"abc"

    @pytest.mark.asyncio
    async def test_empty_buffer_rejected(self):
        with pytest.raises(ValueError, match="Invalid or empty file"):
            chunk_bytes(b"")

    @pytest.mark.asyncio
    async def test_invalid_workers(self):
        with pytest.raises(ValueError):
            chunk_bytes(b"abc", workers=0)


class TestChunkFile:
    """Test file chunking"""

    @pytest.mark.asyncio
    async def test_file_matches_buffer(self, temp_dir, sample_data):
        path = temp_dir / "sample.bin"
        path.write_bytes(sample_data)

        from_file = await asyncio.wait_for(
            collect_chunks(chunk_file(path, chunk_size=700, workers=2)), 2
        )
        from_buffer = await collect_chunks(chunk_bytes(sample_data, chunk_size=700))

        assert [c.hash for c in from_file] == [c.hash for c in from_buffer]
        assert b"".join(c.payload for c in from_file) == sample_data

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, temp_dir):
        path = temp_dir / "empty.bin"
        path.write_bytes(b"")

        with pytest.raises(ValueError, match="Invalid or empty file"):
            chunk_file(path)

    @pytest.mark.asyncio
    async def test_missing_file_rejected(self, temp_dir):
        with pytest.raises(ValueError):
            chunk_file(temp_dir / "missing.bin")
