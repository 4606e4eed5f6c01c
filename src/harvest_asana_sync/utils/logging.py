"""Logging configuration for the Harvest to Asana synchronizer."""

import logging
from datetime import date, datetime
from pathlib import Path

DEFAULT_LOG_DIR = Path.home() / ".harvest-asana-sync" / "logs"


def setup_logging(log_level: int = logging.INFO, log_dir: Path | None = None) -> None:
    """Configure logging for the application.

    Args:
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG).
        log_dir: Directory to store log files. Defaults to ~/.harvest-asana-sync/logs/
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "harvest-asana-sync.log"

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # File handler
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(log_level)
    file_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler.setFormatter(file_formatter)
    root_logger.addHandler(file_handler)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        "%(name)s - %(levelname)s - %(message)s",
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)


class UpdateLog:
    """Append-only records of task updates.

    Successes go to success.log, failures to a file per day
    (YYYY-MM-DD_error.log) so a failed run can be traced afterwards.
    """

    TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

    def __init__(self, log_dir: Path | None = None) -> None:
        self.log_dir = log_dir or DEFAULT_LOG_DIR
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.success_file = self.log_dir / "success.log"

    def error_file_for(self, day: date | None = None) -> Path:
        """Get the error log path for a day (today by default)."""
        day = day or date.today()
        return self.log_dir / f"{day.isoformat()}_error.log"

    def record_success(self, task_id: str) -> None:
        """Append a success line for a task."""
        self._append(
            self.success_file,
            f"Successfully updated task {task_id} at {self._now()}",
        )

    def record_failure(
        self,
        task_id: str,
        error: str,
        status_code: int | None = None,
        response_body: str | None = None,
        action: str = "update custom field",
    ) -> None:
        """Append an error line for a task.

        Args:
            task_id: Asana task ID.
            error: Raw error message, used when no response is available.
            status_code: HTTP status of the failed response, if any.
            response_body: Body of the failed response, if any.
            action: What was being attempted.
        """
        if status_code is not None:
            line = (
                f"[{self._now()}] Error trying to {action} for task with ID {task_id}. "
                f"HTTP status: {status_code}. Response: {response_body or ''}"
            )
        else:
            line = f"[{self._now()}] Failed to {action} for task with ID {task_id}: {error}"
        self._append(self.error_file_for(), line)

    def _now(self) -> str:
        return datetime.now().strftime(self.TIMESTAMP_FORMAT)

    def _append(self, path: Path, line: str) -> None:
        with open(path, "a") as f:
            f.write(line.replace("\n", " ") + "\n")
