"""Orchestrator: the caller-facing API that ties prober, resolver, estimator and supervisor together."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable

from clipwizard import ffutil
from clipwizard.estimate import estimate_size
from clipwizard.models import MediaInfo, TranscodeSpec
from clipwizard.resolver import Selections, resolve
from clipwizard.supervisor import ConversionHandle, Progress, Supervisor

logger = logging.getLogger(__name__)


class NoMediaError(ValueError):
    """Raised when resolving before any file was probed."""


class ConversionSession:
    """One user session: at most one probed file and one active conversion.

    Probing and conversion never run on the caller's thread; results come back
    through futures and handles.
    """

    def __init__(self, supervisor: Supervisor | None = None, executor: ThreadPoolExecutor | None = None):
        self.supervisor = supervisor or Supervisor()
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="clipwizard-probe")
        self.input_path: Path | None = None
        self.media_info: MediaInfo | None = None

    def probe(self, path: str | Path) -> MediaInfo:
        """Probe *path* and remember its MediaInfo. Raises ProbeError."""
        return self.probe_async(path).result()

    def probe_async(self, path: str | Path) -> Future:
        path = Path(path)
        self.input_path = path
        self.media_info = None

        def _probe() -> MediaInfo:
            info = ffutil.probe(path)
            if self.input_path == path:
                self.media_info = info
            return info

        return self._executor.submit(_probe)

    def resolve(self, selections: Selections) -> TranscodeSpec:
        if self.media_info is None:
            raise NoMediaError("No media file has been probed yet")
        return resolve(selections, self.media_info)

    def estimate_size(self, spec: TranscodeSpec) -> str:
        if self.media_info is None:
            return "--"
        return estimate_size(spec, self.media_info)

    def start_conversion(
        self,
        spec: TranscodeSpec,
        on_progress: Callable[[Progress], None] | None = None,
    ) -> ConversionHandle:
        """Start converting *spec*.

        Raises ValueError when no output folder was chosen or *spec* cannot be
        turned into an ffmpeg command. Raises ConversionBusyError when a
        conversion is already active.
        """
        if not spec.output_path.parent.parts:
            raise ValueError("Choose an output folder.")
        handle = self.supervisor.start(spec, on_progress=on_progress)
        logger.info(f"Conversion started: {spec.input_path.name} -> {spec.output_path}")
        return handle

    def cancel(self, handle: ConversionHandle | None = None) -> bool:
        handle = handle or self.supervisor.active
        if handle is None:
            return False
        return self.supervisor.cancel(handle)

    @property
    def active(self) -> ConversionHandle | None:
        return self.supervisor.active

    def reset(self) -> None:
        self.supervisor.reset()

    def close(self) -> None:
        self._executor.shutdown(wait=False)
