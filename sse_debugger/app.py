#!/usr/bin/env python3
"""交互式 SSE 调试工具入口"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

import httpx

from sse_debugger.config import settings
from sse_debugger.core.cache_store import CacheStore
from sse_debugger.core.input_reader import InputReader
from sse_debugger.services.session_controller import SessionController
from sse_debugger.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Interactive SSE endpoint debugger")
    parser.add_argument(
        "--cache-file",
        default=str(settings.cache_path),
        help=f"Where the last request is cached (default: {settings.CACHE_FILE})",
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level")
    parser.add_argument(
        "--keep-previous",
        action="store_true",
        default=not settings.CANCEL_ON_RESTART,
        help="Do not cancel the running stream when `r` starts a new one",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=settings.CONNECT_TIMEOUT,
        help="Connect timeout in seconds (default: wait forever)",
    )
    return parser


def build_client(connect_timeout: float | None) -> httpx.AsyncClient:
    # 流式读取不设超时，挂起的连接只能由用户手动停止
    timeout = httpx.Timeout(None, connect=connect_timeout)
    return httpx.AsyncClient(timeout=timeout)


async def run(args: argparse.Namespace) -> int:
    async with build_client(args.connect_timeout) as client:
        controller = SessionController(
            cache_store=CacheStore(Path(args.cache_file).expanduser()),
            input_reader=InputReader(),
            client=client,
            cancel_on_restart=not args.keep_previous,
        )
        return await controller.run()


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
