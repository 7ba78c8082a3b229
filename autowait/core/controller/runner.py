# autowait/core/controller/runner.py
"""
Sequential runner for ActionSpec[].

Responsibilities:
- Validate each spec via registry
- Execute actions against one Page; the engine already waits and retries
  transient states, so the runner only retries whole steps that timed out
- Optional random per-step delay
- Return per-step outcomes for CLI rendering
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from .. import registry
from ..action import ActionSpec
from ..errors import ActionExecutionError

logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    """UI-friendly outcome used by the CLI."""

    index: int
    name: str
    ok: bool
    detail: str = "-"
    attempts: int = 1
    elapsed_ms: float = 0.0
    extracted: Any | None = None
    meta: dict[str, Any] | None = None


class Runner:
    def __init__(
        self,
        *,
        retries: int = 0,
        random_delay_ms: tuple[int, int] | None = None,
        stop_on_failure: bool = True,
    ) -> None:
        self.retries = max(0, retries)
        self.random_delay_ms = random_delay_ms
        self.stop_on_failure = stop_on_failure

    async def run(self, page: Any, specs: list[ActionSpec]) -> list[StepOutcome]:
        outcomes: list[StepOutcome] = []

        for i, spec in enumerate(specs, start=1):
            outcome = await self._run_step(page, i, spec)
            outcomes.append(outcome)
            await self._maybe_delay()
            if not outcome.ok and self.stop_on_failure:
                logger.info("step %d (%s) failed; stopping", i, spec.name)
                break

        return outcomes

    async def _run_step(self, page: Any, index: int, spec: ActionSpec) -> StepOutcome:
        name = spec.name
        try:
            _meta, params = registry.validate_spec(spec)
        except (ValidationError, KeyError, ValueError) as e:
            return StepOutcome(index=index, name=name, ok=False, detail=f"invalid spec: {e}", attempts=0)

        fn = registry.get_action(name)
        attempt = 0
        started = time.perf_counter()
        while True:
            attempt += 1
            try:
                res = await fn(page, params)
            except ActionExecutionError as e:
                if e.retryable and attempt <= self.retries:
                    logger.warning("step %d (%s) timed out, retrying (%d/%d)", index, name, attempt, self.retries)
                    # simple backoff
                    await asyncio.sleep(0.5 * attempt)
                    continue
                return StepOutcome(
                    index=index,
                    name=name,
                    ok=False,
                    detail=_first_line(str(e)),
                    attempts=attempt,
                    elapsed_ms=(time.perf_counter() - started) * 1000,
                )

            return StepOutcome(
                index=index,
                name=name,
                ok=bool(res.ok),
                detail=_detail(res),
                attempts=attempt,
                elapsed_ms=(time.perf_counter() - started) * 1000,
                extracted=res.extracted_content,
                meta=res.meta,
            )

    async def _maybe_delay(self) -> None:
        if not self.random_delay_ms:
            return
        low, high = self.random_delay_ms
        if low < 0 or high < 0 or high < low:
            return
        ms = random.randint(low, high)
        await asyncio.sleep(ms / 1000)


def _first_line(text: str) -> str:
    return text.splitlines()[0] if text else text


def _detail(res: Any) -> str:
    """Human-friendly detail for CLI."""
    if res.extracted_content is not None:
        text = str(res.extracted_content)
        return (text[:120] + "…") if len(text) > 120 else text
    m = res.meta or {}
    if "url" in m:
        return str(m["url"])
    if "selector" in m:
        return f'selector="{m["selector"]}"'
    return "-"
