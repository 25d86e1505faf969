import contextlib
import logging
import time
from functools import wraps

logger = logging.getLogger(__name__)


class Timer(contextlib.ContextDecorator):
    """Accumulating wall-clock timer, usable as a context manager or decorator."""

    def __init__(self, name: str = None):
        self.name = name
        self.reset()

    def reset(self):
        self.start_time = None
        self.elapsed_time = 0.0
        self.total_time = 0.0
        self.count = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.elapsed_time = time.perf_counter() - self.start_time
        self.total_time += self.elapsed_time
        self.count += 1
        return False

    def avg_secs(self) -> float:
        if self.count == 0:
            return 0.0
        return self.total_time / self.count

    def report(self) -> str:
        avg = self.avg_secs()
        fps = 1 / avg if avg > 0 else 0.0
        return (
            f"{self.name} took".rjust(30)
            + f"{avg:.4f} seconds".center(16)
            + f"FPS:{fps:.2f}".ljust(20)
            + f"Number of runs:{self.count}".ljust(20)
        )

    def __call__(self, func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            with self:
                return func(*args, **kwargs)

        return wrapper
