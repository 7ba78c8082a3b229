"""
入参模型：脚本动作的 Pydantic v2 参数约束。
在 JSON 脚本 → 执行器 的边界先做强校验，坏数据不会进入引擎。
"""
# @file purpose: Define parameter schemas for script actions using Pydantic v2.

from typing import Annotated, Literal, Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, StringConstraints

NonEmptyStr = Annotated[str, StringConstraints(min_length=1, strip_whitespace=True)]
TimeoutMs = Annotated[int, Field(ge=0, le=600_000)]
TextLimited = Annotated[str, Field(max_length=4000)]


class _Params(BaseModel):
    model_config = ConfigDict(extra="forbid")


class OpenUrlParams(_Params):
    url: AnyHttpUrl
    wait_until: Literal["commit", "domcontentloaded", "load", "networkidle"] = "load"
    timeout_ms: Optional[TimeoutMs] = None


class SelectorParams(_Params):
    """Base for actions that target one element."""

    selector: NonEmptyStr
    has_text: Optional[str] = None
    nth: Optional[int] = None
    timeout_ms: Optional[TimeoutMs] = None


class ClickParams(SelectorParams):
    button: Literal["left", "right", "middle"] = "left"
    force: bool = False
    no_wait_after: bool = False


class HoverParams(SelectorParams):
    force: bool = False


class FillParams(SelectorParams):
    text: TextLimited


class TypeParams(SelectorParams):
    text: TextLimited
    delay_ms: Annotated[int, Field(ge=0, le=1_000)] = 0


class PressParams(SelectorParams):
    key: NonEmptyStr


class CheckParams(SelectorParams):
    pass


class SelectOptionParams(SelectorParams):
    values: list[str] = Field(min_length=1)


class UploadParams(SelectorParams):
    files: list[NonEmptyStr] = Field(min_length=1)


class WaitForParams(SelectorParams):
    state: Literal["attached", "detached", "visible", "hidden"] = "visible"


class WaitForUrlParams(_Params):
    url: NonEmptyStr
    wait_until: Literal["commit", "domcontentloaded", "load", "networkidle"] = "load"
    timeout_ms: Optional[TimeoutMs] = None


class ExtractTextParams(SelectorParams):
    inner: bool = False


class CountParams(_Params):
    selector: NonEmptyStr
    has_text: Optional[str] = None


class ExpectTextParams(SelectorParams):
    text: TextLimited
    contains: bool = False
