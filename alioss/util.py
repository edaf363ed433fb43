#!/usr/bin/env python3
# encoding: utf-8

__all__ = [
    "MIN_PART_SIZE", "MAX_PART_SIZE", "MAX_PART_COUNT", "READ_CHUNK_SIZE", 
    "Semaphore", "Lock", "PartSizePlan", "determine_part_plan", "iter_part_ranges", 
    "read_file_range", "read_file_range_async", "gmt_date", "v4_date", "v4_timestamp", 
]
__doc__ = "这个模块提供了一些工具：并发原语、分片规划、按字节范围读取文件、日期格式化"

from asyncio import get_running_loop, to_thread, CancelledError, Future
from collections import deque
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import datetime, timezone
from email.utils import formatdate
from inspect import isawaitable
from os import PathLike
from typing import Any, Final, NamedTuple

from .exception import throw, OSSErrorType


#: 分片的最小尺寸：100 KB（只有 1 个分片时不受限制）
MIN_PART_SIZE: Final = 100 * 1024
#: 分片的最大尺寸：5 GB
MAX_PART_SIZE: Final = 5 * 1024 * 1024 * 1024
#: 分片的最大个数
MAX_PART_COUNT: Final = 10_000
#: 流式读取时的缓冲区大小：64 KB
READ_CHUNK_SIZE: Final = 64 * 1024


class Semaphore:
    """计数信号量，等待者严格按先来后到获得许可

    .. note::
        `release` 时如果有等待者，许可会直接交给最早的等待者，不会先还回池子里

    .. attention::
        `acquire` 和 `release` 必须成对调用，出错时也要在 `finally` 中 `release`
    """
    def __init__(self, /, max_permits: int):
        if max_permits <= 0:
            throw(OSSErrorType.invalid_argument, "maxPermits 必须大于 0")
        self._max_permits = max_permits
        self._count = 0
        self._waiters: deque[Future] = deque()

    def __repr__(self, /) -> str:
        return f"<{type(self).__qualname__} permits={self._count}/{self._max_permits} waiters={len(self._waiters)}>"

    async def __aenter__(self, /):
        await self.acquire()
        return self

    async def __aexit__(self, /, *exc_info):
        self.release()

    @property
    def max_permits(self, /) -> int:
        return self._max_permits

    @property
    def available(self, /) -> int:
        return self._max_permits - self._count

    async def acquire(self, /):
        if self._count < self._max_permits and not self._waiters:
            self._count += 1
            return
        waiter = get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except CancelledError:
            # NOTE: 许可已经转交过来，但任务被取消了，则转交给下一个
            if waiter.done() and not waiter.cancelled():
                self.release()
            raise

    def release(self, /):
        waiters = self._waiters
        while waiters:
            waiter = waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        if self._count <= 0:
            raise RuntimeError("Semaphore released too many times")
        self._count -= 1


class Lock:
    """互斥锁，在多个并发任务之间串行化一段临界区，等待者先来后到

    .. attention::
        不可重入：在 `run_exclusive` 的 `fn` 中对同一个锁再调用 `run_exclusive` 会死锁
    """
    def __init__(self, /):
        self._locked = False
        self._waiters: deque[Future] = deque()

    async def __aenter__(self, /):
        await self.acquire()
        return self

    async def __aexit__(self, /, *exc_info):
        self.release()

    def locked(self, /) -> bool:
        return self._locked

    async def acquire(self, /):
        if not self._locked and not self._waiters:
            self._locked = True
            return
        waiter = get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except CancelledError:
            if waiter.done() and not waiter.cancelled():
                self.release()
            raise

    def release(self, /):
        waiters = self._waiters
        while waiters:
            waiter = waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        if not self._locked:
            raise RuntimeError("Lock is not acquired")
        self._locked = False

    async def run_exclusive(self, fn: Callable, /, *args, **kwds) -> Any:
        """在锁内执行 `fn`，每次获取锁都恰好释放一次，`fn` 抛出的异常原样传给调用者

        :param fn: 同步或异步函数
        :param args: 位置参数
        :param kwds: 关键字参数

        :return: `fn` 的返回值（如果是可等待对象，则是等待后的结果）
        """
        await self.acquire()
        try:
            ret = fn(*args, **kwds)
            if isawaitable(ret):
                ret = await ret
            return ret
        finally:
            self.release()


class PartSizePlan(NamedTuple):
    number_of_parts: int
    part_size: int


def determine_part_plan(
    total_size: int, 
    number_of_parts: None | int = None, 
) -> PartSizePlan:
    """确定分片上传（multipart upload）时的分片个数和分片大小

    .. note::
        先固定一个维度再推导另一个，前后两轮：限制分片个数可能让分片大小越界，反之亦然

    :param total_size: 数据大小
    :param number_of_parts: 用户期望的分片个数，为 None 时根据数据大小自适应

    :return: (分片个数, 分片大小) 的 2 元组，`total_size` 为 0 时返回 (1, 0)
    """
    if total_size == 0:
        return PartSizePlan(1, 0)
    def ceil_div(a: int, b: int, /) -> int:
        return -(-a // b)
    def clamp(n: int, /) -> int:
        return min(max(n, 1), MAX_PART_COUNT)
    if number_of_parts is not None:
        count = clamp(number_of_parts)
        part_size = ceil_div(total_size, count)
        if part_size > MAX_PART_SIZE:
            count = ceil_div(total_size, MAX_PART_SIZE)
        elif part_size < MIN_PART_SIZE and count > 1:
            count = ceil_div(total_size, MIN_PART_SIZE)
        count = clamp(count)
        part_size = ceil_div(total_size, count)
    else:
        if total_size < 10 * 1024 * 1024:
            base_size = 512 * 1024
        elif total_size < 100 * 1024 * 1024:
            base_size = 1024 * 1024
        elif total_size < 500 * 1024 * 1024:
            base_size = 2 * 1024 * 1024
        else:
            base_size = 5 * 1024 * 1024
        count = clamp(ceil_div(total_size, base_size))
        part_size = ceil_div(total_size, count)
        if part_size < MIN_PART_SIZE and count > 1:
            count = clamp(ceil_div(total_size, MIN_PART_SIZE))
            part_size = ceil_div(total_size, count)
    if count > 1:
        part_size = max(part_size, MIN_PART_SIZE)
    return PartSizePlan(count, part_size)


def iter_part_ranges(
    total_size: int, 
    part_size: int, 
    number_of_parts: None | int = None, 
) -> Iterator[tuple[int, int, int]]:
    """迭代各个分片的 (分片编号, 偏移量, 长度)，分片编号从 1 开始
    """
    if part_size <= 0:
        return
    if number_of_parts is None:
        number_of_parts = -(-total_size // part_size)
    for i in range(number_of_parts):
        offset = i * part_size
        length = min(part_size, total_size - offset)
        if length <= 0:
            break
        yield i + 1, offset, length


def read_file_range(
    path: bytes | str | PathLike, 
    offset: int, 
    length: int, 
    chunk_size: int = READ_CHUNK_SIZE, 
    check: None | Callable[[], Any] = None, 
) -> Iterator[bytes]:
    """按固定大小的缓冲区，流式读取文件中的一段字节

    :param path: 文件路径
    :param offset: 开始的偏移量
    :param length: 要读取的字节数
    :param chunk_size: 每次读取的字节数
    :param check: 每读一块之前调用，可以在此抛出异常以中断（例如取消检查）

    :return: 迭代器，逐块产生数据，实际读取的字节数不足时抛出文件系统错误
    """
    total = 0
    with open(path, "rb") as file:
        file.seek(offset)
        while total < length:
            if check is not None:
                check()
            chunk = file.read(min(chunk_size, length - total))
            if not chunk:
                break
            total += len(chunk)
            yield chunk
    if total != length:
        throw(OSSErrorType.file_system, f"无法读取足够的数据：预期 {length} 字节，实际读取 {total} 字节")


async def read_file_range_async(
    path: bytes | str | PathLike, 
    offset: int, 
    length: int, 
    chunk_size: int = READ_CHUNK_SIZE, 
    check: None | Callable[[], Any] = None, 
) -> AsyncIterator[bytes]:
    """异步版本的 `read_file_range`，文件读取在线程中进行
    """
    total = 0
    file = await to_thread(open, path, "rb")
    try:
        await to_thread(file.seek, offset)
        while total < length:
            if check is not None:
                check()
            chunk = await to_thread(file.read, min(chunk_size, length - total))
            if not chunk:
                break
            total += len(chunk)
            yield chunk
    finally:
        await to_thread(file.close)
    if total != length:
        throw(OSSErrorType.file_system, f"无法读取足够的数据：预期 {length} 字节，实际读取 {total} 字节")


def _utc(dt: None | datetime, /) -> datetime:
    if dt is None:
        return datetime.now(timezone.utc)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def gmt_date(dt: None | datetime = None, /) -> str:
    """HTTP 日期，例如 `Wed, 01 Jan 2025 00:00:00 GMT`，无时区的时间视为 UTC
    """
    return formatdate(_utc(dt).timestamp(), usegmt=True)


def v4_date(dt: None | datetime = None, /) -> str:
    return _utc(dt).strftime("%Y%m%d")


def v4_timestamp(dt: None | datetime = None, /) -> str:
    return _utc(dt).strftime("%Y%m%dT%H%M%SZ")
