"""Operation tracing for collabnotes.

Service operations are wrapped in ``traced``: every call is timed, logged
as a START/END pair sharing a short trace id, and counted in ``metrics``
together with the error codes it failed with. ``configure_logging``
attaches a rotating log file to the ``collabnotes`` logger for
applications embedding the engine.
"""
import functools
import inspect
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

from collabnotes.config import config
from collabnotes.exceptions import CollabNotesError
from collabnotes.models.schema import Note

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
LOG_FILE_NAME = "collabnotes.log"

# Call arguments naming the note, user or group an operation acts on
_CONTEXT_KEYS = ("id_or_alias", "alias", "new_alias", "tag", "owner", "author", "user")

F = TypeVar("F", bound=Callable[..., Any])

_installed_handlers: List[logging.Handler] = []
_handlers_lock = Lock()


def configure_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: Optional[int] = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    console: bool = False,
) -> Path:
    """Write ``collabnotes`` log records to a rotating file.

    Handlers installed by an earlier call are replaced, so calling this
    again (for example with another directory) never duplicates output.

    Args:
        log_dir: Directory for ``collabnotes.log``. Defaults to ``config.log_dir``.
        level: Logging level. Defaults to ``config.log_level``.
        max_bytes: Size at which the file is rotated.
        backup_count: Number of rotated files to keep.
        console: Also write to stderr.

    Returns:
        The log directory.
    """
    log_path = Path(log_dir) if log_dir else config.log_dir
    log_path.mkdir(parents=True, exist_ok=True)
    if level is None:
        level = config.get_log_level()

    package_logger = logging.getLogger("collabnotes")
    package_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers: List[logging.Handler] = [
        RotatingFileHandler(
            log_path / LOG_FILE_NAME,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())

    with _handlers_lock:
        for handler in _installed_handlers:
            package_logger.removeHandler(handler)
            handler.close()
        _installed_handlers.clear()
        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            package_logger.addHandler(handler)
            _installed_handlers.append(handler)

    logger.info(f"Logging to {log_path / LOG_FILE_NAME}")
    return log_path


@dataclass
class OperationStats:
    """Running totals for one traced operation."""
    calls: int = 0
    failures: int = 0
    total_ms: float = 0.0
    slowest_ms: float = 0.0
    # Failures keyed by ErrorCode name, or exception class for foreign errors
    failures_by_code: Dict[str, int] = field(default_factory=dict)
    last_error: Optional[str] = None

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.calls if self.calls else 0.0


class MetricsCollector:
    """Thread-safe call statistics for the engine's operations."""

    def __init__(self):
        self._stats: Dict[str, OperationStats] = {}
        self._lock = Lock()

    def record(
        self,
        operation: str,
        duration_ms: float,
        error: Optional[BaseException] = None,
    ) -> None:
        """Count one call of ``operation``; ``error`` marks it as failed."""
        with self._lock:
            stats = self._stats.setdefault(operation, OperationStats())
            stats.calls += 1
            stats.total_ms += duration_ms
            stats.slowest_ms = max(stats.slowest_ms, duration_ms)
            if error is not None:
                key = (
                    error.code.name
                    if isinstance(error, CollabNotesError)
                    else type(error).__name__
                )
                stats.failures += 1
                stats.failures_by_code[key] = stats.failures_by_code.get(key, 0) + 1
                stats.last_error = str(error)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Copy of the statistics, keyed by operation name."""
        with self._lock:
            return {
                operation: {
                    "calls": s.calls,
                    "failures": s.failures,
                    "mean_ms": round(s.mean_ms, 2),
                    "slowest_ms": round(s.slowest_ms, 2),
                    "failures_by_code": dict(s.failures_by_code),
                    "last_error": s.last_error,
                }
                for operation, s in self._stats.items()
            }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


metrics = MetricsCollector()


def _format_pairs(values: Dict[str, Any]) -> str:
    return ", ".join(f"{k}={v}" for k, v in values.items())


@contextmanager
def timed_operation(operation: str, **context):
    """Time a block, log it and record it in ``metrics``.

    Yields a dict; whatever the block stores in it is appended to the
    END log line.

    Example:
        with timed_operation("reconcile", id_or_alias=alias) as details:
            note = reconcile()
            details["user_grants"] = len(note.user_permissions)
    """
    trace_id = uuid.uuid4().hex[:8]
    details: Dict[str, Any] = {}
    logger.debug(f"[{trace_id}] START {operation} ({_format_pairs(context)})")

    start = time.perf_counter()
    error: Optional[BaseException] = None
    try:
        yield details
    except Exception as e:
        error = e
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        metrics.record(operation, duration_ms, error)
        status = "OK" if error is None else f"FAILED: {error}"
        logger.debug(
            f"[{trace_id}] END {operation} ({duration_ms:.2f}ms) [{status}] "
            f"{_format_pairs(details)}"
        )


def _describe_argument(value: Any) -> Any:
    # Users are logged by name, never with email or photo
    user_name = getattr(value, "user_name", None)
    return user_name if user_name is not None else value


def _describe_result(result: Any) -> Dict[str, Any]:
    if isinstance(result, Note):
        return {
            "note_id": result.id,
            "user_grants": len(result.user_permissions),
            "group_grants": len(result.group_permissions),
        }
    if isinstance(result, (list, tuple)):
        return {"result_count": len(result)}
    if isinstance(result, int) and not isinstance(result, bool):
        return {"value": result}
    return {}


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Decorator running a service method inside ``timed_operation``.

    Arguments named in ``_CONTEXT_KEYS`` are logged whether they were
    passed by position or keyword. Returned notes are summarized by ID
    and grant counts, lists by length.

    Args:
        operation_name: Name to record. Defaults to the function name.
    """
    def decorator(func: F) -> F:
        op_name = operation_name or func.__name__
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            arguments = signature.bind_partial(*args, **kwargs).arguments
            context = {
                key: _describe_argument(arguments[key])
                for key in _CONTEXT_KEYS
                if key in arguments
            }
            with timed_operation(op_name, **context) as details:
                result = func(*args, **kwargs)
                details.update(_describe_result(result))
                return result

        return wrapper  # type: ignore
    return decorator
