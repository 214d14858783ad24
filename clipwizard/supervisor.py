"""Runs ffmpeg for a TranscodeSpec and reports progress and a single terminal state."""

import logging
import queue
import subprocess
import threading
import time
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, Callable

from clipwizard import ffutil
from clipwizard.models import TranscodeSpec

logger = logging.getLogger(__name__)

DIAGNOSTIC_TAIL_LINES = 20
LINE_QUEUE_SIZE = 256
CANCEL_POLL_INTERVAL = 0.1

_EOF = object()


class ConversionError(Exception):
    """Base class for failures of a conversion run."""

    def __init__(self, message: str, command: list[str] | None = None, output: str | None = None):
        self.message = message
        self.command = command
        self.output = output
        super().__init__(message)


class SpawnError(ConversionError):
    """ffmpeg could not be started."""


class EngineError(ConversionError):
    """ffmpeg exited with a non-zero code."""

    def __init__(self, message: str, returncode: int, command: list[str] | None = None, output: str | None = None):
        super().__init__(message, command=command, output=output)
        self.returncode = returncode


class ConversionBusyError(RuntimeError):
    """A conversion is already running in this session."""


class ConversionState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (ConversionState.SUCCEEDED, ConversionState.FAILED, ConversionState.CANCELLED)


@dataclass(frozen=True)
class Progress:
    """One diagnostic line, with the encoder position when the line carries one."""

    line: str
    time_seconds: float | None = None
    fraction: float | None = None


@dataclass(frozen=True)
class ConversionResult:
    state: ConversionState
    output_path: Path | None = None
    diagnostic: str = ""
    error: ConversionError | None = None

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error


class ConversionHandle:
    """Observable, cancellable view of one conversion run.

    The supervisor is the only writer; callers read ``state``/``progress``,
    subscribe to progress, and wait on :meth:`result`.
    """

    def __init__(self, spec: TranscodeSpec):
        self.spec = spec
        self.pid: int | None = None
        self.state = ConversionState.PENDING
        self.progress: Progress | None = None
        self._cancel_requested = threading.Event()
        self._future: Future = Future()
        self._subscribers: list[Callable[[Progress], None]] = []
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<ConversionHandle pid={self.pid} state={self.state.value} output={self.spec.output_path}>"

    def subscribe(self, callback: Callable[[Progress], None]) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def add_done_callback(self, callback: Callable[[ConversionResult], None]) -> None:
        self._future.add_done_callback(lambda fut: callback(fut.result()))

    def cancel(self) -> bool:
        """Ask the run to stop. False if it already reached a terminal state."""
        if self.done():
            return False
        self._cancel_requested.set()
        return True

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> ConversionResult:
        return self._future.result(timeout)

    def _mark_running(self, pid: int) -> None:
        with self._lock:
            self.pid = pid
            self.state = ConversionState.RUNNING

    def _publish(self, progress: Progress) -> None:
        with self._lock:
            if progress.time_seconds is not None:
                self.progress = progress
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(progress)
            except Exception:
                logger.exception("Progress subscriber raised")

    def _finish(self, result: ConversionResult) -> bool:
        with self._lock:
            if self.state.terminal:
                return False
            self.state = result.state
        self._future.set_result(result)
        return True


def _pump_lines(stream: IO[str], lines: queue.Queue) -> None:
    """Copy *stream* into *lines* one line at a time, then an EOF marker."""
    try:
        for raw_line in iter(stream.readline, ""):
            line = raw_line.rstrip()
            if line:
                lines.put(line)
    except (OSError, ValueError) as e:
        logger.debug(f"stderr reader stopped: {e}")
    finally:
        lines.put(_EOF)


class Supervisor:
    """Owns at most one running conversion at a time."""

    def __init__(
        self,
        ffmpeg: str | None = None,
        tail_lines: int = DIAGNOSTIC_TAIL_LINES,
        terminate_timeout: float = 5.0,
    ):
        self.ffmpeg = ffmpeg
        self.tail_lines = tail_lines
        self.terminate_timeout = terminate_timeout
        self._active: ConversionHandle | None = None
        self._lock = threading.Lock()

    @property
    def active(self) -> ConversionHandle | None:
        return self._active

    def busy(self) -> bool:
        handle = self._active
        return handle is not None and not handle.done()

    def start(
        self,
        spec: TranscodeSpec,
        on_progress: Callable[[Progress], None] | None = None,
    ) -> ConversionHandle:
        """Spawn ffmpeg for *spec* on a worker thread and return its handle.

        Raises ValueError for a spec ffmpeg cannot run, ConversionBusyError if
        another conversion has not finished yet.
        """
        cmd = [self.ffmpeg or ffutil.ffmpeg_bin(), *ffutil.build_ffmpeg_args(spec)]

        with self._lock:
            if self.busy():
                raise ConversionBusyError("A conversion is already running")
            handle = ConversionHandle(spec)
            self._active = handle

        if on_progress:
            handle.subscribe(on_progress)

        threading.Thread(
            target=self._run, args=(handle, cmd), daemon=True, name="clipwizard-convert"
        ).start()
        return handle

    def cancel(self, handle: ConversionHandle) -> bool:
        return handle.cancel()

    def reset(self) -> None:
        """Forget a finished handle so the session returns to idle."""
        with self._lock:
            if self._active is not None and self._active.done():
                self._active = None

    def _run(self, handle: ConversionHandle, cmd: list[str]) -> None:
        cmd_str = " ".join(cmd)
        logger.info(f"Starting conversion: {cmd_str}")
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            message = f"Failed to run ffmpeg: {e}"
            logger.error(message)
            handle._finish(
                ConversionResult(
                    ConversionState.FAILED,
                    diagnostic=message,
                    error=SpawnError(message, command=cmd, output=message),
                )
            )
            return

        handle._mark_running(process.pid)
        logger.info(f"ffmpeg process {process.pid} started")

        try:
            tail, cancelled = self._follow(handle, process)
            returncode, cancelled = self._wait(handle, process, cancelled)
        except Exception as e:
            logger.exception("Conversion supervision failed")
            if process.poll() is None:
                process.kill()
                process.wait()
            message = f"Conversion supervision failed: {e}"
            handle._finish(
                ConversionResult(
                    ConversionState.FAILED,
                    diagnostic=message,
                    error=EngineError(message, returncode=-1, command=cmd),
                )
            )
            return

        logger.info(f"ffmpeg process {process.pid} exited with code {returncode}")
        diagnostic = "\n".join(tail)

        if cancelled:
            result = ConversionResult(ConversionState.CANCELLED, diagnostic=diagnostic)
        elif returncode == 0:
            result = ConversionResult(
                ConversionState.SUCCEEDED, output_path=handle.spec.output_path, diagnostic=diagnostic
            )
        else:
            message = f"ffmpeg failed (rc={returncode})"
            result = ConversionResult(
                ConversionState.FAILED,
                diagnostic=diagnostic,
                error=EngineError(message, returncode=returncode, command=cmd, output=diagnostic),
            )
        handle._finish(result)

    def _wait(self, handle: ConversionHandle, process: subprocess.Popen, cancelled: bool) -> tuple[int, bool]:
        """Reap the process; a cancel can still arrive after stderr closed."""
        while not cancelled:
            try:
                return process.wait(timeout=CANCEL_POLL_INTERVAL), False
            except subprocess.TimeoutExpired:
                if handle.cancel_requested:
                    logger.info(f"Cancelling ffmpeg process {process.pid} after stderr closed")
                    process.terminate()
                    cancelled = True
        try:
            return process.wait(timeout=self.terminate_timeout), True
        except subprocess.TimeoutExpired:
            logger.warning(f"ffmpeg process {process.pid} still running after cancel, killing")
            process.kill()
            return process.wait(), True

    def _follow(self, handle: ConversionHandle, process: subprocess.Popen) -> tuple[deque, bool]:
        """Relay stderr lines until EOF, honoring cancellation along the way.

        Returns the capped diagnostic tail and whether the process was signalled
        because of a cancel request.
        """
        clip_seconds = handle.spec.trim.length_seconds
        lines: queue.Queue = queue.Queue(maxsize=LINE_QUEUE_SIZE)
        reader = threading.Thread(
            target=_pump_lines, args=(process.stderr, lines), daemon=True, name="clipwizard-stderr"
        )
        reader.start()

        tail: deque = deque(maxlen=self.tail_lines)
        cancelled = False
        kill_deadline: float | None = None

        while True:
            if handle.cancel_requested and not cancelled and process.poll() is None:
                logger.info(f"Cancelling ffmpeg process {process.pid}")
                process.terminate()
                cancelled = True
                kill_deadline = time.monotonic() + self.terminate_timeout
            if kill_deadline is not None and time.monotonic() > kill_deadline and process.poll() is None:
                logger.warning(f"ffmpeg process {process.pid} ignored terminate, killing")
                process.kill()
                kill_deadline = None

            try:
                line = lines.get(timeout=CANCEL_POLL_INTERVAL)
            except queue.Empty:
                continue
            if line is _EOF:
                break

            tail.append(line)
            seconds = ffutil.parse_progress_time(line)
            fraction = None
            if seconds is not None and clip_seconds > 0:
                fraction = min(1.0, max(0.0, seconds / clip_seconds))
            handle._publish(Progress(line, seconds, fraction))

        reader.join()
        if process.stderr:
            process.stderr.close()
        return tail, cancelled
