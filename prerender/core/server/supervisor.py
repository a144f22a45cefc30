"""
Preview Server Supervisor
=========================

Start and stop the application's local preview server as a subprocess.

Readiness is assumed after a fixed settle delay rather than probed. A server
that is still booting when rendering begins surfaces as per-page render
failures, not as a supervisor error.

The server runs in its own session. ``npm`` forks the real server as a child
and some wrappers exit while that child keeps serving, so shutdown targets
the whole process group and any surviving descendants, not just the process
that was spawned.
"""

from typing import Any, AsyncGenerator, Callable, Dict, List, Optional
from pathlib import Path
import asyncio
import os
import shlex
import signal
from contextlib import asynccontextmanager

import psutil

from prerender.config.logging import get_logger

logger = get_logger(__name__)


class ServerStartError(Exception):
    """Exception raised when the preview server cannot be started."""

    pass


class ServerHandle:
    """Handle for a preview server process and the group it leads."""

    def __init__(self, process: asyncio.subprocess.Process):
        self.process = process
        self.stopped = False
        self.output_task: Optional[asyncio.Task] = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def pgid(self) -> int:
        """Process group id; the server is a session leader, so this is its pid."""
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode


class PreviewServerSupervisor:
    """Owns the lifecycle of the preview server subprocess."""

    def __init__(
        self,
        port: int,
        cwd: Path,
        command: str = "npm run preview -- --port {port}",
        settle_delay: float = 3.0,
        stop_grace: float = 3.0,
    ):
        self.port = port
        self.cwd = cwd
        self.command = command
        self.settle_delay = settle_delay
        self.stop_grace = stop_grace
        self.logger: Any = logger.bind(component="preview_server")  # structlog.BoundLoggerBase

    def build_command(self) -> List[str]:
        """Expand the command template into an argument vector."""
        return shlex.split(self.command.format(port=self.port))

    async def start(self) -> ServerHandle:
        """
        Spawn the preview server and wait for the settle delay.

        A wrapper that exits with code 0 during the settle delay is tolerated;
        whatever it left running in its process group is still stopped by
        ``stop``.

        Returns:
            Handle for the server process

        Raises:
            ServerStartError: If the process cannot be spawned or exits with a
                non-zero code before the settle delay elapses
        """
        argv = self.build_command()
        self.logger.info("Starting preview server", port=self.port, command=" ".join(argv))

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(self.cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            raise ServerStartError(f"Failed to spawn preview server: {e}")

        handle = ServerHandle(process)
        handle.output_task = asyncio.create_task(self._drain_output(process))

        try:
            returncode = await asyncio.wait_for(process.wait(), timeout=self.settle_delay)
        except asyncio.TimeoutError:
            # wait() also waits for the pipe, which a forked child may hold open
            returncode = process.returncode
            if returncode is None:
                self.logger.info("Preview server started", pid=process.pid)
                return handle

        if returncode != 0:
            await self.stop(handle)
            raise ServerStartError(f"Server exited with code {returncode}")

        self.logger.warning("Preview server exited during startup", pid=process.pid, returncode=0)
        return handle

    async def stop(self, handle: Optional[ServerHandle]) -> None:
        """
        Terminate the server's process tree, escalating to SIGKILL.

        Runs even if the spawned process has already exited, so descendants
        it left behind are still reaped. Safe to call more than once; later
        calls are no-ops.
        """
        if handle is None or handle.stopped:
            return
        handle.stopped = True

        process = handle.process
        descendants = self._descendants(handle)

        if process.returncode is None or descendants:
            self.logger.info(
                "Stopping preview server", pid=process.pid, descendants=len(descendants)
            )
            self._signal_tree(handle, descendants, signal.SIGTERM)

            if not await self._wait_exited(process, descendants):
                self.logger.warning("Preview server ignored SIGTERM, killing", pgid=handle.pgid)
                self._signal_tree(handle, descendants, signal.SIGKILL)
                await self._wait_exited(process, descendants)

        await self._finish_output(handle)
        self.logger.info("Preview server stopped", returncode=process.returncode)

    @asynccontextmanager
    async def running(
        self, on_stopping: Optional[Callable[[], None]] = None
    ) -> AsyncGenerator[ServerHandle, None]:
        """
        Run the preview server for the duration of the block.

        Args:
            on_stopping: Called once the block exits, right before the server
                is stopped
        """
        handle = await self.start()
        try:
            yield handle
        finally:
            if on_stopping is not None:
                on_stopping()
            await self.stop(handle)

    def _descendants(self, handle: ServerHandle) -> List[psutil.Process]:
        """Live members of the server's process group plus its child tree."""
        found: Dict[int, psutil.Process] = {}

        for proc in psutil.process_iter():
            if proc.pid == handle.pid:
                continue
            try:
                if os.getpgid(proc.pid) == handle.pgid:
                    found[proc.pid] = proc
            except OSError:
                continue

        # Once reaped, the pid may already belong to an unrelated process
        if handle.returncode is None:
            try:
                for child in psutil.Process(handle.pid).children(recursive=True):
                    found.setdefault(child.pid, child)
            except psutil.Error:
                pass

        return [proc for proc in found.values() if self._is_running(proc)]

    def _signal_tree(
        self, handle: ServerHandle, descendants: List[psutil.Process], sig: signal.Signals
    ) -> None:
        try:
            os.killpg(handle.pgid, sig)
        except ProcessLookupError:
            pass
        except PermissionError as e:
            self.logger.warning("Server stop error", pgid=handle.pgid, error=str(e))

        # Descendants that moved to another session are not reached by killpg
        for proc in descendants:
            try:
                proc.send_signal(sig)
            except psutil.NoSuchProcess:
                pass
            except psutil.Error as e:
                self.logger.warning("Server stop error", pid=proc.pid, error=str(e))

    async def _wait_exited(
        self, process: asyncio.subprocess.Process, descendants: List[psutil.Process]
    ) -> bool:
        """Wait up to the grace period; True if the whole tree has exited."""
        try:
            await asyncio.wait_for(process.wait(), timeout=self.stop_grace)
        except asyncio.TimeoutError:
            return False

        if not descendants:
            return True
        _, alive = await asyncio.to_thread(psutil.wait_procs, descendants, timeout=self.stop_grace)
        return not [proc for proc in alive if self._is_running(proc)]

    @staticmethod
    def _is_running(proc: psutil.Process) -> bool:
        try:
            return proc.status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            return True

    async def _drain_output(self, process: asyncio.subprocess.Process) -> None:
        """Forward server output to debug logs so the pipe never fills."""
        if process.stdout is None:
            return
        async for raw in process.stdout:
            line = raw.decode("utf-8", errors="replace").rstrip()
            if line:
                self.logger.debug("preview", line=line)

    async def _finish_output(self, handle: ServerHandle) -> None:
        task = handle.output_task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
