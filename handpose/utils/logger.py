"""
Structured logging with gesture transition logging.
"""

import os
import logging
import logging.handlers
import time
from collections import deque


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure console (and optional rotating file) logging for the application."""
    # Compact console format
    console_format = "%(asctime)s  %(levelname)-5s  %(threadName)-12s %(message)s"
    # Verbose format for log file
    file_format = "%(asctime)s [%(levelname)-7s] %(threadName)-12s %(name)-32s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Remove existing handlers
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(root_logger.level)
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class GestureLogger:
    """Logs gesture transitions (not every frame) and keeps a short history."""

    def __init__(self, max_history: int = 500):
        self.logger = logging.getLogger("gesture_events")
        self._history = deque(maxlen=max_history)
        self._last_key = None

    def observe(self, result) -> bool:
        """Record ``result`` if its gesture or motion differs from the last one.

        Returns:
            True if a transition was logged.
        """
        detail = result.detail
        if detail is None:
            key = (result.label, None, None)
        else:
            key = (detail.primary, detail.motion, detail.handedness)
        if key == self._last_key:
            return False
        self._last_key = key

        entry = {
            "timestamp": time.time(),
            "label": result.label,
            "confidence": result.confidence,
            "gesture": detail.primary.value if detail else None,
            "motion": detail.motion.value if detail else None,
            "handedness": detail.handedness.value if detail else None,
        }
        self._history.append(entry)
        self.logger.info(
            "Gesture: %-16s | Motion: %-13s | Hand: %-7s | Confidence: %.2f",
            entry["gesture"] or result.label,
            entry["motion"] or "-",
            entry["handedness"] or "-",
            result.confidence,
        )
        return True

    def get_history(self, last_n=None):
        """Get recent transitions, oldest first."""
        history = list(self._history)
        if last_n:
            return history[-last_n:]
        return history

    @property
    def total_transitions(self):
        return len(self._history)
