import asyncio
import contextlib
import time
from typing import AsyncIterator, Optional

import httpx

from sse_debugger.models.events import EventKind, SessionState, StreamEvent
from sse_debugger.models.request import RequestDescriptor
from sse_debugger.utils.exceptions import ConnectError, StreamError
from sse_debugger.utils.logger import get_logger

logger = get_logger(__name__)

ERROR_BODY_PREVIEW_CHARS = 200

# httpx 在 URL / 协议 / 响应解码层面抛出的异常并不都继承自 HTTPError
_TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError, ValueError)


class StreamSession:
    """单个 SSE 连接的生命周期。

    状态：CONNECTING -> STREAMING -> {ENDED, FAILED, CANCELLED}。
    所有信号写入会话私有的队列，通过 ``events()`` 按到达顺序读取；
    每个会话最多产生一个终止信号，终止信号之后不会再有数据块。
    """

    def __init__(self, descriptor: RequestDescriptor, client: httpx.AsyncClient):
        self.descriptor = descriptor
        self.state = SessionState.CONNECTING
        self.status_code: Optional[int] = None
        self.content_type: str = ""
        self.error: Optional[str] = None
        self._client = client
        # None 作为“启动失败、没有任何事件”的结束标记
        self._queue: asyncio.Queue[Optional[StreamEvent]] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self._connected: Optional[asyncio.Future] = None
        self._events_taken = False
        self._started_at = time.monotonic()

    # ------------------------------------------------------------------
    # 状态
    # ------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return not self.state.is_terminal

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started_at

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------
    async def start(self) -> None:
        """发起流式 POST，收到 2xx 响应头后返回；连接阶段失败抛出 ConnectError"""
        if self._task is not None:
            raise RuntimeError("Stream session already started")
        if self.state is SessionState.CANCELLED:
            return

        self._connected = asyncio.get_running_loop().create_future()
        self._task = asyncio.create_task(self._run())
        await self._connected

    async def cancel(self) -> None:
        """强制关闭连接；对已终止的会话无效果"""
        if not self._finish(SessionState.CANCELLED, StreamEvent(EventKind.CANCELLED)):
            return
        if self._connected is not None and not self._connected.done():
            self._connected.set_result(None)

        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.debug(f"Stream session for {self.descriptor.url} cancelled")

    async def wait(self) -> SessionState:
        """等待读取任务结束，返回最终状态"""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        return self.state

    async def events(self) -> AsyncIterator[StreamEvent]:
        """按到达顺序产出数据块，最后产出唯一的终止信号"""
        if self._events_taken:
            raise RuntimeError("Stream session events can only be consumed once")
        self._events_taken = True

        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
            if event.is_terminal:
                return

    # ------------------------------------------------------------------
    # 内部实现
    # ------------------------------------------------------------------
    async def _run(self) -> None:
        descriptor = self.descriptor
        try:
            async with self._client.stream(
                "POST",
                descriptor.url,
                headers=descriptor.headers,
                json=descriptor.body,
            ) as response:
                if not response.is_success:
                    raw = await response.aread()
                    preview = raw.decode("utf-8", errors="replace").strip()[:ERROR_BODY_PREVIEW_CHARS]
                    cause = f"HTTP {response.status_code} {response.reason_phrase}"
                    if preview:
                        cause += f": {preview}"
                    self._fail_connect(cause)
                    return

                self.status_code = response.status_code
                self.content_type = response.headers.get("content-type", "")
                self.state = SessionState.STREAMING
                if self._connected is not None and not self._connected.done():
                    self._connected.set_result(None)

                async for text in response.aiter_text():
                    # cancel() 会先切换状态，之后的数据块一律丢弃
                    if self.state is not SessionState.STREAMING:
                        return
                    self._queue.put_nowait(StreamEvent(EventKind.CHUNK, text))

            self._finish(SessionState.ENDED, StreamEvent(EventKind.END))
        except _TRANSPORT_ERRORS as e:
            self._fail(_describe_error(e))
        except Exception as e:
            logger.exception("Unexpected SSE session failure")
            self._fail(_describe_error(e))

    def _fail(self, cause: str) -> None:
        if self.state.is_terminal:
            return
        if self.state is SessionState.CONNECTING:
            self._fail_connect(cause)
        else:
            error = StreamError(cause)
            self.error = error.message
            self._finish(SessionState.FAILED, StreamEvent(EventKind.ERROR, error.message, error))

    def _fail_connect(self, cause: str) -> None:
        if self.state.is_terminal:
            return
        self.state = SessionState.FAILED
        self.error = cause
        self._queue.put_nowait(None)
        if self._connected is not None and not self._connected.done():
            self._connected.set_exception(ConnectError(cause))

    def _finish(self, state: SessionState, event: StreamEvent) -> bool:
        if self.state.is_terminal:
            return False
        self.state = state
        self._queue.put_nowait(event)
        return True


def _describe_error(error: BaseException) -> str:
    message = str(error).strip()
    name = type(error).__name__
    return f"{name}: {message}" if message else name
