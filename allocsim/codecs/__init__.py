"""
Codec components for allocsim.

This module provides decoding of upstream allocation requests and
JSON-ready encoding of traces, snapshots and run reports.
"""

from .codec import LOCATION_NAMES, RequestCodec

__all__ = [
    "LOCATION_NAMES",
    "RequestCodec",
]
