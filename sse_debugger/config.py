from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """调试工具配置，自动从 .env 加载（变量前缀 SSE_DEBUG_）"""

    # Cache
    CACHE_FILE: str = "sse-cache.json"

    # Stream
    CANCEL_ON_RESTART: bool = True
    CONNECT_TIMEOUT: Optional[float] = None

    # Logging
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "SSE_DEBUG_",
        "extra": "ignore",
    }

    @property
    def cache_path(self) -> Path:
        """缓存文件路径，相对路径基于当前工作目录解析"""
        return Path(self.CACHE_FILE).expanduser()


settings = Settings()
