#!/usr/bin/env python3
"""Local SSE endpoint for trying the debugger by hand.

Route:
  POST /sse   streams a few chunked `data:` events, echoing the request body
"""

from __future__ import annotations

import argparse
import json
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Mock SSE endpoint")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=19000)
    parser.add_argument("--chunk-delay", type=float, default=0.35)
    parser.add_argument("--chunks", type=int, default=3, help="Number of data events to send")
    parser.add_argument("--linger-seconds", type=float, default=0.0)
    return parser


class MockSseHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    route = "/sse"
    chunk_delay = 0.35
    chunk_count = 3
    linger_seconds = 0.0
    quiet = False

    def log_message(self, fmt: str, *args) -> None:
        if self.quiet:
            return
        message = fmt % args
        print(f"[mock] {self.command} {self.path} - {message}", flush=True)

    def _read_body(self) -> bytes:
        content_length = int(self.headers.get("Content-Length", "0") or 0)
        if content_length <= 0:
            return b""
        return self.rfile.read(content_length)

    def _send_chunk(self, payload: str) -> None:
        data = payload.encode("utf-8")
        self.wfile.write(f"{len(data):X}\r\n".encode("ascii"))
        self.wfile.write(data)
        self.wfile.write(b"\r\n")
        self.wfile.flush()

    def _send_json(self, status: int, payload: dict) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(body)
        self.wfile.flush()

    def do_POST(self) -> None:  # noqa: N802
        raw_body = self._read_body()

        if self.path != self.route:
            self._send_json(404, {"detail": "not found", "path": self.path})
            return

        try:
            echo = json.loads(raw_body) if raw_body else None
        except json.JSONDecodeError:
            self._send_json(400, {"detail": "body is not JSON"})
            return

        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Transfer-Encoding", "chunked")
        self.end_headers()

        chunks = [f"data: {json.dumps({'echo': echo})}\n\n"]
        chunks += [f"data: {json.dumps({'seq': i})}\n\n" for i in range(1, self.chunk_count + 1)]
        chunks.append('data: {"done": true}\n\n')

        try:
            for index, chunk in enumerate(chunks):
                self._send_chunk(chunk)
                if index + 1 < len(chunks):
                    time.sleep(self.chunk_delay)

            if self.linger_seconds > 0:
                time.sleep(self.linger_seconds)

            self.wfile.write(b"0\r\n\r\n")
            self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            # 客户端主动断开（stop / r）
            self.close_connection = True


def make_server(
    host: str = "127.0.0.1",
    port: int = 0,
    chunk_delay: float = 0.35,
    chunk_count: int = 3,
    linger_seconds: float = 0.0,
    quiet: bool = False,
) -> ThreadingHTTPServer:
    """构建服务实例；port=0 时由系统分配端口"""
    handler = type(
        "ConfiguredMockSseHandler",
        (MockSseHandler,),
        {
            "chunk_delay": max(chunk_delay, 0.0),
            "chunk_count": max(chunk_count, 0),
            "linger_seconds": max(linger_seconds, 0.0),
            "quiet": quiet,
        },
    )
    server = ThreadingHTTPServer((host, port), handler)
    server.daemon_threads = True
    return server


def main() -> None:
    args = build_arg_parser().parse_args()
    server = make_server(
        args.host,
        args.port,
        chunk_delay=args.chunk_delay,
        chunk_count=args.chunks,
        linger_seconds=args.linger_seconds,
    )
    host, port = server.server_address[:2]
    print(
        f"[mock] listening on http://{host}:{port}{MockSseHandler.route} "
        f"(chunk_delay={args.chunk_delay}s linger={args.linger_seconds}s)",
        flush=True,
    )
    server.serve_forever()


if __name__ == "__main__":
    main()
