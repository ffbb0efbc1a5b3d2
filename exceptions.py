# exceptions.py

from typing import Any, Dict, Optional


class AllocatorError(Exception):
    """Base class for every error raised by the allocation engine."""

    def __init__(self, message: str, context_info: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context_info = context_info or {}


class InvalidRequest(AllocatorError): pass
class ProcessNotFound(AllocatorError): pass
class CapacityExceeded(AllocatorError): pass
class DuplicateIdentifier(AllocatorError): pass
class BlockTableError(AllocatorError): pass


class NoFitFound(AllocatorError):
    """No free block can hold the request under the active strategy."""

    def __init__(self, size: int, strategy: str):
        super().__init__(
            f"No suitable memory block found for {size} units ({strategy})",
            {"size": size, "strategy": strategy},
        )
        self.size = size
        self.strategy = strategy


__all__ = [
    "AllocatorError",
    "InvalidRequest",
    "NoFitFound",
    "ProcessNotFound",
    "CapacityExceeded",
    "DuplicateIdentifier",
    "BlockTableError",
]
