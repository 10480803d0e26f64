"""
Background execution of lesson generation work.

Jobs run on a thread pool so HTTP handlers return immediately. Each job
closes stale database connections before and after running, like any
Django code that touches the ORM outside the request cycle.
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from django.db import close_old_connections

from lesson_pipeline.config import config

logger = logging.getLogger(__name__)


def _run_with_fresh_connections(fn: Callable, *args, **kwargs):
    close_old_connections()
    try:
        return fn(*args, **kwargs)
    finally:
        close_old_connections()


class BackgroundRunner:
    """Thread pool for lesson jobs; failures are logged against the lesson id"""

    def __init__(self, max_workers: Optional[int] = None):
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers or config.background_max_workers,
            thread_name_prefix='lesson-gen',
        )

    def submit(self, lesson_id: int, fn: Callable, *args, **kwargs) -> Future:
        future = self.executor.submit(_run_with_fresh_connections, fn, *args, **kwargs)
        future.add_done_callback(lambda f: self._on_done(lesson_id, f))
        logger.debug(f"Submitted {getattr(fn, '__name__', fn)} for lesson {lesson_id}")
        return future

    def _on_done(self, lesson_id: int, future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Background job for lesson {lesson_id} failed: {error}")


class ImmediateRunner:
    """Runs jobs synchronously in the caller's thread (CLI and tests)"""

    def submit(self, lesson_id: int, fn: Callable, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            logger.error(f"Job for lesson {lesson_id} failed: {e}")
            future.set_exception(e)
        return future


_runner = None


def get_background_runner() -> BackgroundRunner:
    """Get or create the process-wide background runner"""
    global _runner
    if _runner is None:
        _runner = BackgroundRunner()
    return _runner
