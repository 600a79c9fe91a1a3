"""Propeller detection in event-camera streams by tracking periodic bursts of events."""

__version__ = "0.1.0"

__all__ = ["__version__"]