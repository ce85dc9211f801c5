import asyncio
import sys
import threading
from typing import AsyncIterator, Optional, TextIO

from sse_debugger.utils.exceptions import InputClosedError


class InputReader:
    """按行读取终端输入。

    阻塞的 readline 在守护线程中执行，读到的行通过 call_soon_threadsafe
    交回事件循环，事件循环上的其他任务（例如正在接收数据的 SSE 会话）
    不会被阻塞。守护线程不会被 asyncio.run 等待，Ctrl-C 时进程可以立即退出。
    输入流可注入，测试中可传入 StringIO。
    """

    def __init__(self, stream: TextIO | None = None, output: TextIO | None = None):
        self._stream = stream if stream is not None else sys.stdin
        self._output = output if output is not None else sys.stdout
        self._closed = False
        # 同一时刻最多一个读取线程；等待方被取消时结果保留给下一次读取
        self._pending: Optional[asyncio.Future] = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def _readline(self) -> str | None:
        if self._closed:
            return None
        pending = self._pending
        if pending is None or pending.get_loop() is not asyncio.get_running_loop():
            pending = self._pending = self._start_read()
        try:
            line = await asyncio.shield(pending)
        finally:
            if pending.done():
                self._pending = None
        if not line:
            self._closed = True
            return None
        return line.rstrip("\r\n")

    def _start_read(self) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        thread = threading.Thread(
            target=self._read_into,
            args=(loop, future),
            name="sse-debugger-input",
            daemon=True,
        )
        thread.start()
        return future

    def _read_into(self, loop: asyncio.AbstractEventLoop, future: asyncio.Future) -> None:
        try:
            line = self._stream.readline()
        except Exception as e:
            deliver, value = _set_exception, e
        else:
            deliver, value = _set_result, line
        try:
            loop.call_soon_threadsafe(deliver, future, value)
        except RuntimeError:
            # 事件循环已关闭（例如 Ctrl-C 之后），这一行无人等待
            pass

    async def prompt_line(self, question: str) -> str:
        """输出提示并等待一行输入（去掉行尾换行符）"""
        self._output.write(question)
        self._output.flush()
        line = await self._readline()
        if line is None:
            raise InputClosedError(f"Input closed while waiting for: {question.strip()}")
        return line

    async def lines(self) -> AsyncIterator[str]:
        """逐行产出去除首尾空白的输入，直到输入流关闭"""
        while True:
            line = await self._readline()
            if line is None:
                return
            yield line.strip()


def _set_result(future: asyncio.Future, line: str) -> None:
    if not future.cancelled():
        future.set_result(line)


def _set_exception(future: asyncio.Future, error: Exception) -> None:
    if not future.cancelled():
        future.set_exception(error)
