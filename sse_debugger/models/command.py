from dataclasses import dataclass
from enum import Enum


class CommandKind(str, Enum):
    RESTART = "r"
    STOP = "stop"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    text: str = ""


def parse_command(line: str) -> Command:
    """将一行输入解析为运行时指令"""
    text = line.strip()
    if text == CommandKind.RESTART.value:
        return Command(CommandKind.RESTART, text)
    if text == CommandKind.STOP.value:
        return Command(CommandKind.STOP, text)
    return Command(CommandKind.UNRECOGNIZED, text)
