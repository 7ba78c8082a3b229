"""
脚本层的数据契约：
- ActionSpec: 一步脚本动作（name + args），args 由注册表中的参数模型校验
- Script: 一个 JSON 脚本文件 = 可选起始 URL + 有序动作列表
"""
# @file purpose: Define script data contracts.

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class ActionSpec(BaseModel):
    name: str = Field(..., description="Registered action name.")
    args: dict[str, Any] = Field(
        default_factory=dict, description="Parameters, validated against the action's params model."
    )


class Script(BaseModel):
    start_url: str | None = Field(default=None, description="Opened before the first step.")
    default_timeout_ms: float | None = Field(default=None, ge=0, description="Page default timeout override.")
    steps: list[ActionSpec] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Path) -> "Script":
        """Accept either {"steps": [...]} or a bare list of steps."""
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, list):
            data = {"steps": data}
        return cls.model_validate(data)
