from .event_processor import EventProcessor
from .exception_tracker import ExceptionTracker
from .performance_monitor import PerformanceMonitor

__all__ = ["EventProcessor", "ExceptionTracker", "PerformanceMonitor"]
