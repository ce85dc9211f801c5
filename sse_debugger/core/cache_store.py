import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from sse_debugger.models.request import RequestDescriptor
from sse_debugger.utils.exceptions import CacheCorruptError, CacheWriteError
from sse_debugger.utils.logger import get_logger

logger = get_logger(__name__)


class CacheStore:
    """上次请求参数的本地 JSON 缓存"""

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> Optional[RequestDescriptor]:
        """读取缓存；文件不存在返回 None，内容无法解析抛出 CacheCorruptError"""
        if not self.exists():
            return None
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise CacheCorruptError(f"Cannot read cache file {self._path}: {e}") from None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CacheCorruptError(f"Cache file {self._path} is not valid JSON: {e.msg}") from None
        try:
            return RequestDescriptor.model_validate(data)
        except ValidationError as e:
            raise CacheCorruptError(
                f"Cache file {self._path} is not a valid request: {e.error_count()} error(s)"
            ) from None

    def save(self, descriptor: RequestDescriptor) -> None:
        """覆盖写入缓存"""
        payload = json.dumps(descriptor.model_dump(), indent=2, ensure_ascii=False)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(payload, encoding="utf-8")
        except OSError as e:
            raise CacheWriteError(f"Cannot write cache file {self._path}: {e}") from None
        logger.debug(f"Saved request cache to {self._path}")
