from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from errors import OperationCancelled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    source: str
    step: int
    total: int
    message: str = ""

    @property
    def fraction(self) -> float:
        return self.step / self.total if self.total > 0 else 1.0


ProgressListener = Callable[[ProgressEvent], None]


class ProgressMonitor:
    """Progress listeners plus a cooperative cancellation flag.

    Algorithms call `checkpoint` between outer-scan steps (one scanline in 2D,
    one slice in 3D). Listeners run synchronously on the calling thread;
    `cancel` may be called from any thread.
    """

    def __init__(self, listeners: Optional[List[ProgressListener]] = None):
        self._listeners: List[ProgressListener] = list(listeners or [])
        self._cancel = threading.Event()

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ProgressListener) -> None:
        self._listeners.remove(listener)

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def notify(self, source: str, step: int, total: int, message: str = "") -> None:
        if not self._listeners:
            return
        evt = ProgressEvent(source, int(step), int(total), message)
        for listener in self._listeners:
            listener(evt)

    def checkpoint(self, source: str, step: int, total: int) -> None:
        if self._cancel.is_set():
            logger.debug("%s cancelled at step %d/%d", source, step, total)
            raise OperationCancelled(f"{source} cancelled at step {step}/{total}")
        self.notify(source, step, total)

    def done(self, source: str, total: int) -> None:
        self.notify(source, total, total, "done")


def scan_steps(shape) -> tuple[int, int]:
    """Return (step_size, n_steps) for outer-scan progress over a raster.

    One step is a scanline for 2D shapes and a slice for 3D shapes.
    """
    n = 1
    for s in shape:
        n *= int(s)
    if len(shape) == 3:
        step = int(shape[1]) * int(shape[2])
    else:
        step = int(shape[-1])
    step = max(step, 1)
    return step, (n + step - 1) // step
