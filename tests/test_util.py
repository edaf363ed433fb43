"""Tests for concurrency primitives, the part planner and file range reading."""

import asyncio
from datetime import datetime, timezone

import pytest

from alioss import (
    MAX_PART_COUNT, MAX_PART_SIZE, MIN_PART_SIZE, Lock, OSSFileSystemError,
    OSSInvalidArgumentError, Semaphore, determine_part_plan, gmt_date,
    iter_part_ranges, read_file_range, read_file_range_async, v4_date, v4_timestamp,
)

SIZES = [1, 1023, 100 * 1024, 100 * 1024 + 1, 1_000_000, 9 * 1024 * 1024 + 7,
         64 * 1024 * 1024, 300 * 1024 * 1024, 2 * 1024 ** 3, 40 * 1024 ** 4]


class TestDeterminePartPlan:

    def test_zero_size_is_degenerate(self):
        assert determine_part_plan(0) == (1, 0)
        assert determine_part_plan(0, 8) == (1, 0)

    @pytest.mark.parametrize("total_size", SIZES)
    @pytest.mark.parametrize("desired", [None, 1, 10_000, 50_000])
    def test_plan_is_within_limits(self, total_size, desired):
        count, part_size = determine_part_plan(total_size, desired)
        assert 1 <= count <= MAX_PART_COUNT
        assert part_size <= MAX_PART_SIZE
        if count > 1:
            assert part_size >= MIN_PART_SIZE
        assert count * part_size >= total_size

    @pytest.mark.parametrize("total_size", SIZES)
    @pytest.mark.parametrize("desired", [None, 3, 10_000])
    def test_ranges_cover_file_exactly(self, total_size, desired):
        count, part_size = determine_part_plan(total_size, desired)
        ranges = list(iter_part_ranges(total_size, part_size, count))
        assert sum(length for _, _, length in ranges) == total_size
        assert [n for n, _, _ in ranges] == list(range(1, len(ranges) + 1))
        offsets = [offset for _, offset, _ in ranges]
        assert offsets == sorted(offsets)

    def test_desired_count_is_honored(self):
        assert determine_part_plan(1_000_000, 4) == (4, 250_000)

    def test_tiny_parts_are_merged(self):
        count, part_size = determine_part_plan(1_000_000, 100)
        assert part_size >= MIN_PART_SIZE
        assert count == -(-1_000_000 // MIN_PART_SIZE)

    def test_adaptive_base_size(self):
        assert determine_part_plan(5 * 1024 * 1024) == (10, 512 * 1024)
        assert determine_part_plan(50 * 1024 * 1024) == (50, 1024 * 1024)

    def test_single_small_part(self):
        assert determine_part_plan(1000) == (1, 1000)


class TestSemaphore:

    def test_invalid_permits(self):
        with pytest.raises(OSSInvalidArgumentError):
            Semaphore(0)

    @pytest.mark.asyncio
    async def test_fifo_fairness(self):
        sem = Semaphore(1)
        order: list[int] = []
        await sem.acquire()

        async def worker(n: int):
            await sem.acquire()
            order.append(n)

        tasks = []
        for n in range(3):
            tasks.append(asyncio.create_task(worker(n)))
            await asyncio.sleep(0)
        for _ in range(3):
            sem.release()
            await asyncio.sleep(0)
            await asyncio.sleep(0)
        await asyncio.gather(*tasks)
        assert order == [0, 1, 2]
        sem.release()
        assert sem.available == 1

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self):
        sem = Semaphore(2)
        running = 0
        peak = 0

        async def worker():
            nonlocal running, peak
            async with sem:
                running += 1
                peak = max(peak, running)
                await asyncio.sleep(0.01)
                running -= 1

        await asyncio.gather(*(worker() for _ in range(6)))
        assert peak == 2
        assert sem.available == 2

    def test_release_without_acquire(self):
        with pytest.raises(RuntimeError):
            Semaphore(1).release()


class TestLock:

    @pytest.mark.asyncio
    async def test_mutual_exclusion(self):
        lock = Lock()
        inside = 0
        peak = 0

        async def body():
            nonlocal inside, peak
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0.005)
            inside -= 1

        await asyncio.gather(*(lock.run_exclusive(body) for _ in range(5)))
        assert peak == 1
        assert not lock.locked()

    @pytest.mark.asyncio
    async def test_error_propagates_and_releases(self):
        lock = Lock()

        def boom():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await lock.run_exclusive(boom)
        assert not lock.locked()
        assert await lock.run_exclusive(lambda x: x + 1, 1) == 2


class TestReadFileRange:

    def test_sync_chunks(self, make_file):
        path = make_file(1000)
        chunks = list(read_file_range(path, 100, 300, chunk_size=128))
        assert [len(c) for c in chunks] == [128, 128, 44]
        assert b"".join(chunks) == bytes(i % 251 for i in range(100, 400))

    def test_short_read(self, make_file):
        path = make_file(100)
        with pytest.raises(OSSFileSystemError):
            list(read_file_range(path, 50, 100))

    @pytest.mark.asyncio
    async def test_async_chunks(self, make_file):
        path = make_file(1000)
        data = b"".join([c async for c in read_file_range_async(path, 0, 1000, chunk_size=256)])
        assert data == bytes(i % 251 for i in range(1000))

    def test_check_interrupts(self, make_file):
        path = make_file(1000)
        calls = 0

        def check():
            nonlocal calls
            calls += 1
            if calls > 1:
                raise RuntimeError("stop")

        with pytest.raises(RuntimeError):
            list(read_file_range(path, 0, 1000, chunk_size=100, check=check))


def test_date_formats():
    dt = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert gmt_date(dt) == "Thu, 02 Jan 2025 03:04:05 GMT"
    assert v4_date(dt) == "20250102"
    assert v4_timestamp(dt) == "20250102T030405Z"
    assert v4_timestamp(dt.replace(tzinfo=None)) == "20250102T030405Z"
