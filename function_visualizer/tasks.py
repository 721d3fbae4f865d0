"""Background recomputation with latest-request-wins semantics.

A surface at full resolution needs tens of thousands of evaluations, so the
interactive side hands configurations to :class:`GeometryTask` and keeps
drawing the last ready geometry. Results for superseded submissions are
dropped on arrival.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Tuple

from .geometry import Geometry
from .pipeline import build_geometry
from .sampling import Configuration

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    READY = "ready"


class GeometryTask:
    def __init__(
        self,
        build: Callable[[Configuration], Geometry] = build_geometry,
        *,
        on_ready: Optional[Callable[[Configuration, Geometry], None]] = None,
    ) -> None:
        self._build = build
        self._on_ready = on_ready
        self._condition = threading.Condition()
        self._latest = 0
        self._status = TaskStatus.IDLE
        self._geometry: Optional[Geometry] = None
        self._configuration: Optional[Configuration] = None
        self._requested: Optional[Configuration] = None
        self._error: Optional[BaseException] = None

    @property
    def status(self) -> TaskStatus:
        with self._condition:
            return self._status

    @property
    def token(self) -> int:
        """Token of the computation currently in flight (or last finished)."""
        with self._condition:
            return self._latest

    @property
    def geometry(self) -> Optional[Geometry]:
        """Last committed geometry; stays available while a new one computes."""
        with self._condition:
            return self._geometry

    @property
    def configuration(self) -> Optional[Configuration]:
        with self._condition:
            return self._configuration

    @property
    def result(self) -> Tuple[Optional[Configuration], Optional[Geometry]]:
        """The last committed configuration and its geometry, read together."""
        with self._condition:
            return self._configuration, self._geometry

    @property
    def requested(self) -> Optional[Configuration]:
        """Configuration of the latest submission, finished or not."""
        with self._condition:
            return self._requested

    @property
    def error(self) -> Optional[BaseException]:
        with self._condition:
            return self._error

    def submit(self, configuration: Configuration) -> int:
        with self._condition:
            self._latest += 1
            token = self._latest
            self._requested = configuration
            self._status = TaskStatus.COMPUTING
        worker = threading.Thread(
            target=self._run,
            args=(token, configuration),
            name=f"geometry-{token}",
            daemon=True,
        )
        worker.start()
        logger.debug("Submitted computation %d for %r", token, configuration.expression)
        return token

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the latest submission settles. Returns False on timeout."""
        with self._condition:
            return self._condition.wait_for(lambda: self._status is not TaskStatus.COMPUTING, timeout)

    def _run(self, token: int, configuration: Configuration) -> None:
        try:
            geometry = self._build(configuration)
        except Exception as exc:
            # the pipeline recovers per sample; anything reaching here is a defect
            logger.exception("Computation %d failed", token)
            with self._condition:
                if token == self._latest:
                    self._error = exc
                    self._status = TaskStatus.READY if self._geometry is not None else TaskStatus.IDLE
                    self._condition.notify_all()
            return

        with self._condition:
            if token != self._latest:
                logger.debug("Discarded computation %d (latest is %d)", token, self._latest)
                return
            self._geometry = geometry
            self._configuration = configuration
            self._error = None
            self._status = TaskStatus.READY
            self._condition.notify_all()
        if self._on_ready is not None:
            self._on_ready(configuration, geometry)
