import logging
import json
import sys
from datetime import datetime, timezone

from sse_debugger.config import settings

# log_chunk 写入 LogRecord 的附加字段
CHUNK_ELAPSED_ATTR = "sse_elapsed"
CHUNK_DATA_ATTR = "sse_chunk"


def format_chunk_prefix(elapsed: float) -> str:
    """数据块行前缀：距会话开始的秒数"""
    return f"[SSE +{elapsed:.3f}s]"


def log_chunk(logger: logging.Logger, elapsed: float, data: str) -> None:
    """记录一个原始 SSE 数据块。

    消息文本为 ``[SSE +1.234s] <原始文本>``；同时把耗时和原始文本作为
    附加字段写入记录，JSON 日志据此输出 ``elapsed`` / ``chunk`` 字段，
    彩色日志据此单独渲染数据块行。
    """
    logger.info(
        f"{format_chunk_prefix(elapsed)} {data}",
        extra={CHUNK_ELAPSED_ATTR: elapsed, CHUNK_DATA_ATTR: data},
    )


def _is_chunk(record: logging.LogRecord) -> bool:
    return hasattr(record, CHUNK_DATA_ATTR)


class JSONFormatter(logging.Formatter):
    """JSON 格式日志（生产环境），数据块记录附带 elapsed / chunk 字段"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if _is_chunk(record):
            log_data["elapsed"] = round(getattr(record, CHUNK_ELAPSED_ATTR), 3)
            log_data["chunk"] = getattr(record, CHUNK_DATA_ATTR)
        if record.exc_info and record.exc_info[0]:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False)


class ColorFormatter(logging.Formatter):
    """彩色控制台日志（开发环境）"""

    COLORS = {
        "DEBUG": "\033[36m",     # cyan
        "INFO": "\033[32m",      # green
        "WARNING": "\033[33m",   # yellow
        "ERROR": "\033[31m",     # red
        "CRITICAL": "\033[35m",  # magenta
    }
    CHUNK_COLOR = "\033[34m"     # blue
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        if _is_chunk(record):
            # SSE 以空行分隔事件，控制台上去掉末尾换行避免空日志行
            prefix = format_chunk_prefix(getattr(record, CHUNK_ELAPSED_ATTR))
            chunk = getattr(record, CHUNK_DATA_ATTR).rstrip("\r\n")
            return f"{self.CHUNK_COLOR}{timestamp} {prefix}{self.RESET} {chunk}"

        color = self.COLORS.get(record.levelname, self.RESET)
        msg = record.getMessage()
        formatted = f"{color}{timestamp} [{record.levelname:<7}]{self.RESET} {msg}"
        if record.exc_info and record.exc_info[0]:
            formatted += "\n" + self.formatException(record.exc_info)
        return formatted


def setup_logging(level: str = "INFO", environment: str | None = None) -> None:
    """配置全局日志：开发环境彩色输出，生产环境 JSON 输出"""
    env = environment or settings.ENVIRONMENT
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if env == "production":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ColorFormatter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # httpx 每个请求都会打 INFO 日志，会和数据块输出混在一起
    for name in ("httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """获取模块 logger"""
    return logging.getLogger(name)
