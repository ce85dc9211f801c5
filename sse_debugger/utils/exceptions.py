class SSEDebuggerError(Exception):
    """调试工具基础异常"""

    def __init__(self, message: str = "SSE debugger error", exit_code: int = 1):
        self.message = message
        self.exit_code = exit_code
        super().__init__(self.message)


class SetupParseError(SSEDebuggerError):
    """启动阶段输入解析失败（致命）"""

    def __init__(self, field: str, message: str = ""):
        self.field = field
        super().__init__(message or f"Invalid {field}: must be valid JSON", exit_code=1)


class InputClosedError(SSEDebuggerError):
    """输入流已关闭"""

    def __init__(self, message: str = "Input closed"):
        super().__init__(message, exit_code=1)


class CacheCorruptError(SSEDebuggerError):
    """缓存文件存在但无法解析"""

    def __init__(self, message: str = "Cache file is corrupt"):
        super().__init__(message)


class CacheWriteError(SSEDebuggerError):
    """缓存写入失败"""

    def __init__(self, message: str = "Cache write failed"):
        super().__init__(message)


class ConnectError(SSEDebuggerError):
    """SSE 连接建立失败"""

    def __init__(self, message: str = "SSE connection failed"):
        super().__init__(message)


class StreamError(SSEDebuggerError):
    """SSE 流传输中断"""

    def __init__(self, message: str = "SSE stream error"):
        super().__init__(message)
