"""Execution deadline shared by the runtime and the injected loop checkpoints."""

import time
from typing import Callable


class DeadlineExceeded(BaseException):
    """Raised inside a script once its deadline has passed.

    Derives from ``BaseException`` so ``except Exception`` in a script
    cannot swallow it.
    """


class Deadline:
    def __init__(
        self, timeout_s: float, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._clock = clock
        self.expires_at = clock() + timeout_s

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    def checkpoint(self) -> bool:
        """Raise :class:`DeadlineExceeded` if expired, else return ``True``.

        Returning ``True`` lets the call double as a comprehension filter.
        """
        if self._clock() >= self.expires_at:
            raise DeadlineExceeded()
        return True
