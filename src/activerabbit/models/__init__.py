from .records import EventRecord, ExceptionRecord, PerformanceRecord, RecordEnvelope

__all__ = ["EventRecord", "ExceptionRecord", "PerformanceRecord", "RecordEnvelope"]
