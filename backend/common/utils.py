"""
Helpers for calling external collaborators (SMS gateway, blob storage) with a
bounded timeout.
"""
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
import logging
import threading

from django.conf import settings

from common.exceptions import ErrorKind, VerificationError

logger = logging.getLogger(__name__)


def get_io_timeout() -> float:
    return float(getattr(settings, 'VERIFICATION_IO_TIMEOUT', 10))


class UpstreamPool:
    """
    Worker threads for collaborator calls.
    A call that times out keeps its worker until it returns, so calls beyond the
    pool size wait in the queue; that is logged as saturation.
    """

    def __init__(self, workers: int):
        self.workers = workers
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="upstream-io")
        self._lock = threading.Lock()
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def submit(self, func, *args, **kwargs):
        with self._lock:
            self._in_flight += 1
            in_flight = self._in_flight
        if in_flight > self.workers:
            logger.warning(f"Upstream I/O pool saturated: {in_flight} calls in flight for {self.workers} workers")

        future = self._executor.submit(func, *args, **kwargs)
        future.add_done_callback(self._release)
        return future

    def _release(self, future):
        with self._lock:
            self._in_flight -= 1


_pool = None
_pool_lock = threading.Lock()


def get_upstream_pool() -> UpstreamPool:
    """Shared pool, sized by VERIFICATION_IO_WORKERS on first use."""
    global _pool
    with _pool_lock:
        if _pool is None:
            _pool = UpstreamPool(int(getattr(settings, 'VERIFICATION_IO_WORKERS', 8)))
        return _pool


def call_with_timeout(func, *args, operation: str = "upstream call", timeout: float = None, **kwargs):
    """
    Run a collaborator call and wait at most `timeout` seconds for it.

    Args:
        func: Callable performing the external I/O
        operation: Short description used in logs and error messages
        timeout: Seconds to wait (defaults to VERIFICATION_IO_TIMEOUT)

    Returns:
        Whatever `func` returns

    Raises:
        VerificationError(UPSTREAM_TIMEOUT): call did not finish in time
        VerificationError(UPSTREAM_UNAVAILABLE): call raised, original cause attached
    """
    if timeout is None:
        timeout = get_io_timeout()

    future = get_upstream_pool().submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        future.cancel()
        logger.error(f"{operation} timed out after {timeout}s")
        raise VerificationError(
            ErrorKind.UPSTREAM_TIMEOUT,
            f"{operation} timed out. Please try again.",
            cause=e,
        ) from e
    except VerificationError:
        raise
    except Exception as e:
        logger.error(f"{operation} failed: {e!r}")
        raise VerificationError(
            ErrorKind.UPSTREAM_UNAVAILABLE,
            f"{operation} is currently unavailable.",
            cause=e,
        ) from e


def get_client_ip(request):
    """
    Get the client's IP address from the request.
    Handles proxy headers (X-Forwarded-For) correctly.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        # Get the first IP in the list (client IP)
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip
