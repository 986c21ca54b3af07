import contextlib
import logging
import time
import typing


log = logging.getLogger(__name__)


@contextlib.contextmanager
def timer(description: str, slow_query_ms: float = 1000) -> typing.Iterator[None]:
    started = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        if elapsed_ms > slow_query_ms:
            log.warning("Slow query %s took %.1f ms", description, elapsed_ms)
        else:
            log.debug("%s took %.1f ms", description, elapsed_ms)
