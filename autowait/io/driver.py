"""
Driver process launcher.

Spawns the out-of-process automation driver with stdio pipes and hands back a
PipeTransport bound to them. What the driver does with the browser is its own
business; this module only owns the child process.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional, Sequence

from ..core.settings import Settings, settings as default_settings
from .transport import PipeTransport

logger = logging.getLogger(__name__)


class DriverProcess:
    """
    One driver child process.
    - start() spawns it (idempotent) and returns the transport
    - stop() closes the pipe, then terminates the process
    """

    def __init__(
        self,
        *,
        executable: Optional[str] = None,
        args: Optional[Sequence[str]] = None,
        env: Optional[dict[str, str]] = None,
        stop_timeout_s: float = 5.0,
        settings: Optional[Settings] = None,
    ) -> None:
        cfg = settings or default_settings
        self.executable = executable or cfg.driver_path
        self.args = list(args if args is not None else cfg.driver_args)
        self.env = env
        self.stop_timeout_s = stop_timeout_s

        self._process: Optional[asyncio.subprocess.Process] = None
        self._transport: Optional[PipeTransport] = None

    @property
    def transport(self) -> PipeTransport:
        if self._transport is None:
            raise RuntimeError("Driver not started. Call start() first.")
        return self._transport

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process is not None else None

    # ---------------- lifecycle ----------------

    async def start(self) -> PipeTransport:
        if self._transport is not None:
            return self._transport
        env = {**os.environ, **(self.env or {})}
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,  # inherit: driver diagnostics go straight to our stderr
                env=env,
            )
        except OSError as e:
            raise RuntimeError(f"Failed to start driver {self.executable!r}: {e}") from e
        assert process.stdout is not None and process.stdin is not None
        self._process = process
        self._transport = PipeTransport(process.stdout, process.stdin)
        logger.info("driver started (pid=%s, executable=%s)", process.pid, self.executable)
        return self._transport

    async def stop(self) -> None:
        process = self._process
        try:
            if self._transport is not None:
                await self._transport.close()
            if process is None or process.returncode is not None:
                return
            try:
                await asyncio.wait_for(process.wait(), timeout=self.stop_timeout_s)
            except asyncio.TimeoutError:
                logger.warning("driver did not exit after stdin closed; terminating")
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=self.stop_timeout_s)
                except asyncio.TimeoutError:
                    process.kill()
                    await process.wait()
        finally:
            self._process = None
            self._transport = None

    async def __aenter__(self) -> PipeTransport:
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
