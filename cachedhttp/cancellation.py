import threading
import time
from typing import Callable, Optional

from .errors import OperationCancelled


class CancellationToken:
    """
    Signals that pending storage work should be abandoned.

    A token fires either when `cancel()` is called or once its deadline (an
    absolute time as returned by `clock`) has been reached. Tokens may be shared
    between threads.
    """

    def __init__(self, deadline: Optional[float] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.__event = threading.Event()
        self.__deadline = deadline
        self.__clock = clock

    @classmethod
    def with_timeout(cls, seconds: float, clock: Callable[[], float] = time.monotonic) -> 'CancellationToken':
        return cls(deadline=clock() + seconds, clock=clock)

    @property
    def deadline(self) -> Optional[float]:
        return self.__deadline

    def cancel(self) -> None:
        self.__event.set()

    @property
    def cancelled(self) -> bool:
        if self.__event.is_set():
            return True
        return self.__deadline is not None and self.__clock() >= self.__deadline

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelled('The operation was cancelled')
