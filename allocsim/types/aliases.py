"""
Type aliases for allocsim.

This module defines type aliases used throughout the library
for better type safety and code clarity.
"""

from typing import NewType

# Core type aliases
ByteSize = NewType('ByteSize', int)
ClassIndex = NewType('ClassIndex', int)
SpanID = NewType('SpanID', str)
BlockID = NewType('BlockID', str)
EntryID = NewType('EntryID', str)
