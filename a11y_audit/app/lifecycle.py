"""Application lifecycle: process cleanup, launch over CDP, window discovery, shutdown."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from pathlib import Path
from typing import Any, Optional

import psutil
from playwright.async_api import Browser, Page, Playwright, async_playwright

from a11y_audit.models.config import AuditConfig
from a11y_audit.utils.async_utils import poll, retry, with_timeout
from a11y_audit.utils.file_utils import ensure_dir, safe_filename

logger = logging.getLogger(__name__)

NO_WINDOWS = "No windows available"


class AppState(str, enum.Enum):
    IDLE = "idle"
    LAUNCHING = "launching"
    RUNNING = "running"
    CLOSING_GRACEFUL = "closing_graceful"
    CLOSING_FORCED = "closing_forced"


def kill_processes_by_name(name: str) -> int:
    """Kill every process whose name matches ``name``. Returns the number killed."""
    if not name:
        return 0
    target = name.lower()
    killed = 0
    for proc in psutil.process_iter(["name"]):
        try:
            if (proc.info.get("name") or "").lower() == target:
                proc.kill()
                killed += 1
        except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
            logger.debug("Skipping process %s: %s", proc.pid, e)
    return killed


class AppManager:
    """Owns the application process, the CDP connection and the main window."""

    def __init__(self, config: AuditConfig):
        self.config = config
        self.state = AppState.IDLE
        self.process: Optional[asyncio.subprocess.Process] = None
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.window: Optional[Page] = None
        self.launched_at: Optional[float] = None

    async def cleanup_processes(self) -> None:
        """Best-effort removal of stale instances left by earlier runs."""
        try:
            killed = await asyncio.to_thread(kill_processes_by_name, self.config.process_name)
            if killed:
                logger.info("Terminated %d stale %s process(es)", killed, self.config.process_name)
        except Exception as e:
            logger.debug("Process cleanup skipped: %s", e)
        await asyncio.sleep(self.config.cleanup_settle_ms / 1000)

    def _command(self) -> list[str]:
        args = [self.config.exe_path, *self.config.launch_args]
        if self.config.debug:
            args.extend(self.config.debug_launch_args)
        args.append(f"--remote-debugging-port={self.config.remote_debugging_port}")
        return args

    async def _connect(self) -> Browser:
        endpoint = f"http://127.0.0.1:{self.config.remote_debugging_port}"
        return await self.playwright.chromium.connect_over_cdp(
            endpoint, timeout=self.config.timeout_ms,
        )

    async def launch_app(self) -> Browser:
        if self.is_running():
            raise RuntimeError("Application is already running")
        if not Path(self.config.exe_path).exists():
            raise FileNotFoundError(f"Executable not found: {self.config.exe_path}")

        self.state = AppState.LAUNCHING
        logger.info("Launching %s", self.config.exe_path)
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self._command(),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            self.playwright = await async_playwright().start()
            self.browser = await with_timeout(
                retry(self._connect, max_attempts=max(1, self.config.retry_attempts + 3),
                      base_delay=1.0, max_delay=5.0),
                self.config.timeout_ms / 1000,
                f"Could not connect to application within {self.config.timeout_ms}ms",
            )
        except Exception:
            await self._force_kill()
            await self._release()
            raise

        self.state = AppState.RUNNING
        self.launched_at = time.time()
        logger.info("Application running (pid=%s)", self.process.pid if self.process else "?")
        return self.browser

    def _first_window(self) -> Page:
        if self.browser is None:
            raise RuntimeError("Application is not running")
        for context in self.browser.contexts:
            if context.pages:
                return context.pages[0]
        raise RuntimeError(NO_WINDOWS)

    async def get_main_window(self) -> Page:
        async def _find() -> Page:
            return self._first_window()

        window = await retry(
            _find, max_attempts=5, base_delay=1.0,
            retry_condition=lambda e: NO_WINDOWS in str(e),
        )

        async def _has_title() -> bool:
            return bool(await window.title())

        await poll(
            _has_title, interval=0.25,
            timeout=self.config.window_ready_timeout_ms / 1000,
            message="Main window did not become ready",
        )
        self.window = window
        logger.info("Main window ready: %s", await window.title())
        return window

    async def _graceful_close(self) -> None:
        if self.browser is not None:
            await self.browser.close()
        if self.process is not None and self.process.returncode is None:
            self.process.terminate()
            await self.process.wait()

    async def _force_kill(self) -> None:
        if self.process is not None and self.process.returncode is None:
            try:
                self.process.kill()
            except ProcessLookupError:
                pass
        try:
            await asyncio.to_thread(kill_processes_by_name, self.config.process_name)
        except Exception as e:
            logger.debug("Kill by name failed: %s", e)

    async def _release(self) -> None:
        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.debug("Playwright stop failed: %s", e)
        self.playwright = None
        self.browser = None
        self.window = None
        self.process = None
        self.launched_at = None
        self.state = AppState.IDLE

    async def close_app(self) -> None:
        """Close gracefully under a timeout, fall back to a forced kill. Never raises."""
        if self.state == AppState.IDLE and self.process is None and self.browser is None:
            return
        self.state = AppState.CLOSING_GRACEFUL
        try:
            await with_timeout(
                self._graceful_close(),
                self.config.close_timeout_ms / 1000,
                "Graceful close timed out",
            )
            logger.info("Application closed")
        except Exception as e:
            logger.warning("Graceful close failed (%s), forcing shutdown", e)
            self.state = AppState.CLOSING_FORCED
            await self._force_kill()
        finally:
            await self._release()

    async def restart_app(self) -> Page:
        await self.close_app()
        await self.cleanup_processes()
        await self.launch_app()
        return await self.get_main_window()

    async def emergency_screenshot(self, reason: str) -> Optional[str]:
        """Full-window capture for diagnostics. Returns the path, or None."""
        if self.window is None:
            return None
        try:
            out_dir = ensure_dir(self.config.screenshots_dir)
            path = out_dir / f"emergency-{safe_filename(reason)}-{int(time.time() * 1000)}.png"
            await self.window.screenshot(path=str(path), full_page=True)
            logger.info("Emergency screenshot saved: %s", path)
            return str(path)
        except Exception as e:
            logger.warning("Emergency screenshot failed: %s", e)
            return None

    def is_running(self) -> bool:
        return self.state == AppState.RUNNING and self.browser is not None

    def info(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "running": self.is_running(),
            "pid": self.process.pid if self.process else None,
            "exe_path": self.config.exe_path,
            "process_name": self.config.process_name,
            "uptime_seconds": round(time.time() - self.launched_at, 1) if self.launched_at else 0,
            "has_window": self.window is not None,
        }
