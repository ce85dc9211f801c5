import json
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sse_debugger.utils.exceptions import SetupParseError


class RequestDescriptor(BaseModel):
    """一次调试请求的 URL / Headers / Body（不可变）"""

    model_config = ConfigDict(frozen=True)

    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def _url_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("url must not be empty")
        return value

    @field_validator("headers", mode="before")
    @classmethod
    def _stringify_header_values(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("headers must be a JSON object")
        return {
            str(k): v if isinstance(v, str) else json.dumps(v, ensure_ascii=False)
            for k, v in value.items()
        }


def parse_json_field(field: str, text: str) -> Any:
    """解析用户输入的 JSON 文本，空输入视为 {}"""
    text = text.strip()
    if not text:
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise SetupParseError(field, f"Invalid {field}: must be valid JSON ({e.msg})") from None


def build_descriptor(url: str, headers_text: str, body_text: str) -> RequestDescriptor:
    """由三项用户输入构建 RequestDescriptor，任何字段非法都抛出 SetupParseError"""
    headers = parse_json_field("headers", headers_text)
    body = parse_json_field("body", body_text)
    if not url.strip():
        raise SetupParseError("url", "Invalid url: must not be empty")
    if not isinstance(headers, dict):
        raise SetupParseError("headers", "Invalid headers: must be a JSON object")
    try:
        return RequestDescriptor(url=url, headers=headers, body=body)
    except ValidationError as e:
        field = str(e.errors()[0]["loc"][0]) if e.errors() else "request"
        raise SetupParseError(field, f"Invalid {field}: {e.errors()[0]['msg']}") from None
