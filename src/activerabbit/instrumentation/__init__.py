from .decorators import capture_exceptions, timed

__all__ = ["capture_exceptions", "timed"]
