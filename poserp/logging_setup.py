"""Logger configuration, request logging and batched shipping of logs to Loki."""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

log = logging.getLogger(__name__)

LOKI_PUSH_PATH = "/loki/api/v1/push"
SERVICE_NAME = "pos_backend"
PUSH_TIMEOUT = 0.1
DEFAULT_LOG_PATH = "./tmp/application.log"
PACKAGE_LOGGER = "poserp"

_ACCEPTED_STATUSES = frozenset({200, 201, 202, 203, 204})
_LEVEL_NAMES = {"WARNING": "warn", "CRITICAL": "fatal"}
_ENVIRONMENT_LEVELS = {"PRODUCTION": logging.INFO}
_managed_handlers: list[logging.Handler] = []


class LokiPushError(RuntimeError):
    """Raised when logs could not be delivered to Loki."""


def build_loki_payload(logs: list[list[str]], level: str) -> dict[str, Any]:
    """Build the push request body for one level's log lines."""
    return {
        "Streams": [
            {
                "stream": {"service": SERVICE_NAME, "level": level},
                "values": logs,
            }
        ]
    }


def push_to_loki(logs: list[list[str]], endpoint: str, level: str) -> None:
    """Send log lines to Loki; raise ``LokiPushError`` if they were not accepted."""
    data = json.dumps(build_loki_payload(logs, level)).encode("utf-8")
    request = urllib.request.Request(
        f"{endpoint}{LOKI_PUSH_PATH}",
        data=data,
        method="POST",
        headers={"Content-Type": "application/json"},
    )
    try:
        with urllib.request.urlopen(request, timeout=PUSH_TIMEOUT) as response:
            status = response.status
    except urllib.error.HTTPError as error:
        status = error.code
        error.close()
    except (urllib.error.URLError, OSError) as error:
        raise LokiPushError(f"failed to send logs to loki: {error}") from error
    if status not in _ACCEPTED_STATUSES:
        raise LokiPushError(f"failed to push logs to loki: {status}")


@dataclass
class LokiClient:
    """Collects JSON log lines by level and pushes them to Loki in batches."""

    endpoint: str
    push_interval_seconds: float = 5
    max_batch_size: int = 10
    values: dict[str, list[list[str]]] = field(default_factory=dict)
    batch_count: int = 0
    pusher: Callable[[list[list[str]], str, str], None] = push_to_loki
    poll_interval: float = 0.05
    healthy: bool = field(default=True, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def write(self, line: str | bytes) -> int:
        """Queue one JSON log line under its level and return its length."""
        text = line.decode("utf-8") if isinstance(line, bytes) else line
        data = json.loads(text)
        if not isinstance(data, dict) or not isinstance(data.get("level"), str):
            raise ValueError("log line has no level")
        entry = [str(time.time_ns()), text]
        with self._lock:
            self.values.setdefault(data["level"], []).append(entry)
            self.batch_count += 1
        return len(line)

    def flush(self) -> bool:
        """Push everything queued; return whether every push succeeded."""
        with self._lock:
            pending = {level: logs for level, logs in self.values.items() if logs}
            for level in self.values:
                self.values[level] = []
            self.batch_count = 0
        ok = True
        for level, logs in pending.items():
            try:
                self.pusher(logs, self.endpoint, level)
            except (LokiPushError, OSError):
                ok = False
        self.healthy = ok
        return ok

    def run(self, stop_event: threading.Event) -> None:
        """Flush whenever the interval passes or the batch grows too big, until stopped."""
        last_push = time.monotonic()
        while not stop_event.is_set():
            elapsed = time.monotonic() - last_push
            if elapsed > self.push_interval_seconds or self.batch_count > self.max_batch_size:
                self.flush()
                last_push = time.monotonic()
            stop_event.wait(self.poll_interval)


def should_log_request(path: str, status: int) -> bool:
    """Favicon requests and not-found answers are not logged."""
    return not (path == "/favicon.ico" or status == 404)


def log_request(
    method: str, url: str, path: str, status: int, latency_ms: float, ip: str
) -> bool:
    """Log a handled request; return whether it was logged."""
    if not should_log_request(path, status):
        return False
    log.info(
        "Handled request",
        extra={
            "fields": {
                "method": method,
                "url": url,
                "status": status,
                "latency_ms": latency_ms,
                "ip": ip,
            }
        },
    )
    return True


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "level": _LEVEL_NAMES.get(record.levelname, record.levelname.lower()),
            "time": datetime.fromtimestamp(record.created)
            .astimezone()
            .isoformat(timespec="seconds"),
            "caller": f"{record.pathname}:{record.lineno}",
            "message": record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            entry.update(fields)
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logger(
    environment: str | None = None, log_path: str | os.PathLike[str] = DEFAULT_LOG_PATH
) -> logging.Logger:
    """Send the package's logs to the console and, as JSON lines, to a file."""
    if environment is None:
        environment = os.environ.get("ENVIRONMENT", "")
    level = _ENVIRONMENT_LEVELS.get(environment, logging.INFO)

    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in _managed_handlers:
        logger.removeHandler(handler)
        handler.close()
    _managed_handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(filename)s:%(lineno)d > %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    )
    file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    file_handler.setFormatter(_JsonFormatter())

    for handler in (console, file_handler):
        logger.addHandler(handler)
        _managed_handlers.append(handler)
    logger.setLevel(level)
    return logger