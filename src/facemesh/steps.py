"""Per-step timing for the frame pipeline."""

import time
from functools import wraps


def processing_step(name: str):
    """Decorator marking a method as a timed processing step.

    When the owning object has a ``_step_timings`` dict (not None), the
    wrapped call's wall time in milliseconds is stored under ``name``.

    Example:
        class Pipeline:
            @processing_step("detect")
            def _detect(self, image):
                return self._detector.detect(image)
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            timings = getattr(self, "_step_timings", None)
            if timings is not None:
                start = time.perf_counter_ns()
                result = func(self, *args, **kwargs)
                timings[name] = (time.perf_counter_ns() - start) / 1_000_000
                return result
            return func(self, *args, **kwargs)

        return wrapper

    return decorator


__all__ = ["processing_step"]
