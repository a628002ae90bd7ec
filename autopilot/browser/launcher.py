"""Chrome process launcher — starts Chromium with a remote debugging port."""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile

from autopilot.models.config import DEFAULT_DEBUG_PORT

logger = logging.getLogger(__name__)

_BASE_FLAGS = [
    "--no-first-run",
    "--no-default-browser-check",
    "--start-maximized",
    "--disable-blink-features=AutomationControlled",
]

_TERMINATE_GRACE_SECONDS = 5.0


def build_chrome_args(
    port: int,
    user_data_dir: str,
    headless: bool = False,
    devtools: bool = True,
) -> list[str]:
    """Build the Chromium command-line flags for a debuggable instance."""
    args = [f"--remote-debugging-port={port}", f"--user-data-dir={user_data_dir}", *_BASE_FLAGS]
    if headless:
        args.append("--headless=new")
    elif devtools:
        args.append("--auto-open-devtools-for-tabs")
    args.append("about:blank")
    return args


class ChromeProcess:
    """Handle to a running Chromium process."""

    def __init__(self, process: asyncio.subprocess.Process, port: int, user_data_dir: str):
        self.process = process
        self.port = port
        self.user_data_dir = user_data_dir

    @property
    def cdp_url(self) -> str:
        return f"http://localhost:{self.port}"

    async def terminate(self) -> None:
        """Stop the process, escalating to kill if it ignores SIGTERM."""
        if self.process.returncode is None:
            self.process.terminate()
            try:
                await asyncio.wait_for(self.process.wait(), timeout=_TERMINATE_GRACE_SECONDS)
            except asyncio.TimeoutError:
                logger.warning("Chrome (pid %s) did not exit, killing it", self.process.pid)
                self.process.kill()
                await self.process.wait()
        shutil.rmtree(self.user_data_dir, ignore_errors=True)


async def launch_chrome(
    executable: str,
    port: int = DEFAULT_DEBUG_PORT,
    headless: bool = False,
    devtools: bool = True,
) -> ChromeProcess:
    """Spawn Chromium listening for CDP connections on ``port``."""
    user_data_dir = tempfile.mkdtemp(prefix="autopilot-chrome-")
    args = build_chrome_args(port, user_data_dir, headless=headless, devtools=devtools)
    logger.debug("Launching %s %s", executable, " ".join(args))
    process = await asyncio.create_subprocess_exec(
        executable,
        *args,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    return ChromeProcess(process, port, user_data_dir)
