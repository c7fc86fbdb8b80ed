"""Configuration, logging and performance utilities."""
from .config import Config
from .logger import setup_logging, GestureLogger
from .performance_monitor import PerformanceMonitor, Timer

__all__ = ["Config", "setup_logging", "GestureLogger", "PerformanceMonitor", "Timer"]
