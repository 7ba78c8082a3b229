"""
结构化的动作返回值，用于向上层（Runner/CLI）汇报执行结果。
"""
# @file purpose: Define ActionResult model for script action outputs.

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class ActionResult(BaseModel):
    """
    - ok: 是否成功
    - extracted_content: 读取类动作（extract_text / count）的结果
    - meta: 诊断信息（selector / url / 尝试次数等）
    """

    ok: bool = True
    extracted_content: Optional[Any] = None
    meta: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, **meta: Any) -> "ActionResult":
        return cls(ok=True, meta=meta)

    @classmethod
    def extracted(cls, value: Any, **meta: Any) -> "ActionResult":
        return cls(ok=True, extracted_content=value, meta=meta)
