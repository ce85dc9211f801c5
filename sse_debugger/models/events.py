from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from sse_debugger.utils.exceptions import StreamError


class SessionState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    ENDED = "ended"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.ENDED, SessionState.FAILED, SessionState.CANCELLED)


class EventKind(str, Enum):
    CHUNK = "chunk"
    END = "end"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class StreamEvent:
    """单个会话发出的信号：数据块或终止信号；ERROR 信号附带 StreamError"""

    kind: EventKind
    data: str = ""
    error: Optional[StreamError] = field(default=None, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.kind is not EventKind.CHUNK
