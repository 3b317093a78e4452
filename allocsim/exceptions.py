from __future__ import annotations
from typing import Optional


class AllocSimError(Exception):
    def __init__(self, message: str, **kwargs):
        super().__init__(message)
        self.message = message
        self.context = kwargs


class ConfigError(AllocSimError):
    pass


class InvalidRequest(AllocSimError):
    def __init__(self, message: str, reason: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason or message


class AllocationFailure(AllocSimError):
    def __init__(self, message: str, requested_size: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.requested_size = requested_size


class ExhaustedSpan(AllocationFailure):
    def __init__(self, message: str, class_index: Optional[int] = None,
                 span_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.class_index = class_index
        self.span_id = span_id


class CapacityExceeded(AllocationFailure):
    def __init__(self, message: str, reserved_bytes: Optional[int] = None,
                 total_capacity_bytes: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reserved_bytes = reserved_bytes
        self.total_capacity_bytes = total_capacity_bytes


OversizedArenaFailure = CapacityExceeded
