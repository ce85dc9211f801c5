import asyncio
import json
from typing import List, Optional, Set

import httpx

from sse_debugger.core.cache_store import CacheStore
from sse_debugger.core.input_reader import InputReader
from sse_debugger.models.command import CommandKind, parse_command
from sse_debugger.models.events import EventKind
from sse_debugger.models.request import RequestDescriptor, build_descriptor
from sse_debugger.services.stream_session import StreamSession
from sse_debugger.utils.exceptions import (
    CacheCorruptError,
    CacheWriteError,
    ConnectError,
    InputClosedError,
    SetupParseError,
)
from sse_debugger.utils.logger import get_logger, log_chunk

logger = get_logger(__name__)

COMMAND_HINT = "Type `r` to re-run the last SSE request, or `stop` to stop it"
INVALID_COMMAND_HINT = "Invalid command! Type `r` to re-run or `stop` to stop the SSE request"


def _dumps(value) -> str:
    return json.dumps(value, ensure_ascii=False)


class SessionController:
    """交互式调试流程：加载缓存、收集参数、启动会话，然后进入指令循环"""

    def __init__(
        self,
        cache_store: CacheStore,
        input_reader: InputReader,
        client: httpx.AsyncClient,
        cancel_on_restart: bool = True,
    ):
        self._cache = cache_store
        self._input = input_reader
        self._client = client
        self._cancel_on_restart = cancel_on_restart
        self.descriptor: Optional[RequestDescriptor] = None
        self.current: Optional[StreamSession] = None
        self.sessions: List[StreamSession] = []
        self._drivers: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # 公开接口
    # ------------------------------------------------------------------
    async def run(self) -> int:
        """完整生命周期，返回进程退出码"""
        logger.info("Welcome to the SSE debugger!")
        try:
            self.descriptor = await self.setup()
        except SetupParseError as e:
            logger.error(e.message)
            return e.exit_code
        except InputClosedError as e:
            logger.error(f"{e.message}, aborting")
            return e.exit_code

        await self.start_session()
        logger.info(COMMAND_HINT)
        await self.command_loop()
        return 0

    async def setup(self) -> RequestDescriptor:
        """加载缓存并询问是否复用；否则收集新参数并写入缓存"""
        cached = self._load_cache()
        if cached is not None:
            logger.info("Found cached request from last run:")
            self._log_descriptor(cached)
            answer = await self._input.prompt_line("Reuse cached request? (y/n): ")
            if answer.strip().lower() == "y":
                return cached

        url = await self._input.prompt_line("SSE URL: ")
        headers_text = await self._input.prompt_line("Request headers (JSON, empty for none): ")
        body_text = await self._input.prompt_line("Request body (JSON, empty for none): ")
        descriptor = build_descriptor(url, headers_text, body_text)

        try:
            self._cache.save(descriptor)
        except CacheWriteError as e:
            logger.warning(f"{e.message}; continuing without cache")
        return descriptor

    async def start_session(self) -> StreamSession:
        """以当前请求参数启动新会话并设为 current"""
        if self.descriptor is None:
            raise RuntimeError("No request descriptor to start a session with")

        previous = self.current
        if self._cancel_on_restart and previous is not None and previous.is_active:
            await previous.cancel()

        # 只保留仍在运行的会话，已终止的会话不再需要 stop
        self.sessions = [s for s in self.sessions if s.is_active]
        session = StreamSession(self.descriptor, self._client)
        self.current = session
        self.sessions.append(session)
        task = asyncio.create_task(self._drive(session))
        self._drivers.add(task)
        task.add_done_callback(self._drivers.discard)
        return session

    async def command_loop(self) -> None:
        """读取输入行并分发 r / stop 指令，直到 stop 或输入关闭"""
        async for line in self._input.lines():
            command = parse_command(line)
            if command.kind is CommandKind.RESTART:
                logger.info("Re-running the last SSE request...")
                await self.start_session()
            elif command.kind is CommandKind.STOP:
                await self.stop()
                return
            else:
                logger.warning(INVALID_COMMAND_HINT)

        logger.info("Input closed, waiting for active SSE sessions to finish")
        await self._wait_drivers()

    async def stop(self) -> None:
        """取消当前会话（未自动取消的旧会话一并取消）并等待输出结束"""
        targets = [s for s in self.sessions if s.is_active]
        if self._cancel_on_restart:
            targets = [s for s in targets if s is self.current]
        for session in targets:
            await session.cancel()
        await self._wait_drivers()

    # ------------------------------------------------------------------
    # 内部实现
    # ------------------------------------------------------------------
    def _load_cache(self) -> Optional[RequestDescriptor]:
        try:
            return self._cache.load()
        except CacheCorruptError as e:
            logger.warning(f"{e.message}; ignoring cache")
            return None

    def _log_descriptor(self, descriptor: RequestDescriptor) -> None:
        logger.info(f"[URL] {descriptor.url}")
        logger.info(f"[Headers] {_dumps(descriptor.headers)}")
        logger.info(f"[Body] {_dumps(descriptor.body)}")

    async def _drive(self, session: StreamSession) -> None:
        logger.info("Connecting to SSE endpoint...")
        self._log_descriptor(session.descriptor)
        try:
            await session.start()
        except ConnectError as e:
            logger.error(f"SSE connection failed: {e.message}")
            logger.info(COMMAND_HINT)
            if self.current is session:
                self.current = None
            return

        if session.status_code is not None:
            logger.info(f"status={session.status_code} content_type={session.content_type}")

        async for event in session.events():
            if event.kind is EventKind.CHUNK:
                log_chunk(logger, session.elapsed, event.data)
            elif event.kind is EventKind.END:
                logger.info("SSE connection closed")
                logger.info(COMMAND_HINT)
            elif event.kind is EventKind.ERROR:
                logger.error(f"SSE stream error: {event.error.message}")
                logger.info(COMMAND_HINT)
            elif event.kind is EventKind.CANCELLED:
                logger.info("SSE request stopped manually")

    async def _wait_drivers(self) -> None:
        if not self._drivers:
            return
        results = await asyncio.gather(*list(self._drivers), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"SSE session driver crashed: {result!r}")
