"""Exceptions raised by the market structure engine."""

from typing import Optional


class StructureError(Exception):
    """Base class for all engine errors."""


class InvalidInputError(StructureError, ValueError):
    """
    A bar sequence failed validation.

    Raised before any stage runs, so a failing batch never yields partial
    structure. ``index`` and ``time`` locate the offending bar when known.
    """

    def __init__(self, message: str, index: Optional[int] = None, time: Optional[int] = None):
        location = []
        if index is not None:
            location.append(f"index={index}")
        if time is not None:
            location.append(f"time={time}")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)
        self.index = index
        self.time = time


class ConfigurationError(StructureError, ValueError):
    """An engine threshold is out of range."""
