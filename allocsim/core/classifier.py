from __future__ import annotations
from dataclasses import replace
from numbers import Integral
from typing import Callable, Dict

import numpy as np

from ..types.descriptors import AllocationRequest, AllocatorConfig, Route
from ..types.enums import Location
from ..exceptions import InvalidRequest
from ..memory.size_classes import SizeClassTable


class Classifier:
    """Chooses the placement route for each allocation request.

    Static requests go to the static region and frame requests stay in the
    frame unless they must escape. Everything else is dynamic: oversized
    above the largest class, packed when small and pointer-free, and
    class-based otherwise.
    """

    __slots__ = ('_table', '_packed_threshold', '_packed_class_index', '_rules')

    def __init__(self, table: SizeClassTable, packed_threshold: int, packed_class_index: int):
        self._table = table
        self._packed_threshold = packed_threshold
        self._packed_class_index = packed_class_index
        self._rules: Dict[Location, Callable[[AllocationRequest], Route]] = {
            Location.STATIC: self._classify_static,
            Location.FRAME: self._classify_frame,
            Location.DYNAMIC: self._classify_dynamic,
        }
        missing = set(Location) - set(self._rules)
        if missing:
            raise TypeError(f"No classification rule for {sorted(m.name for m in missing)}")

    @classmethod
    def from_config(cls, config: AllocatorConfig) -> Classifier:
        return cls(SizeClassTable(config.size_classes), config.packed_threshold, config.packed_class_index)

    def validate(self, request: AllocationRequest) -> AllocationRequest:
        """Check ``request`` and return it with plain ``int``/``bool`` fields.

        Integer-like sizes such as numpy scalars are accepted; everything
        malformed raises ``InvalidRequest`` with a short ``reason``.
        """
        size = request.size
        if size is None:
            raise InvalidRequest(f"Request {request.name!r} has no size", reason="missing size")
        if isinstance(size, (bool, np.bool_)) or not isinstance(size, Integral):
            raise InvalidRequest(
                f"Request {request.name!r} has a non-integer size: {size!r}",
                reason=f"size must be an integer, got {type(size).__name__}",
            )
        if size <= 0:
            raise InvalidRequest(
                f"Request {request.name!r} has a non-positive size: {size}",
                reason=f"size must be at least 1, got {size}",
            )
        if not isinstance(request.location, Location):
            raise InvalidRequest(
                f"Request {request.name!r} has an unknown location: {request.location!r}",
                reason=f"unrecognized location {request.location!r}",
            )
        for flag in ('has_pointer', 'requires_dynamic'):
            value = getattr(request, flag)
            if not isinstance(value, (bool, np.bool_)):
                raise InvalidRequest(
                    f"Request {request.name!r} has a non-boolean {flag}: {value!r}",
                    reason=f"{flag} must be a boolean, got {type(value).__name__}",
                )

        if type(size) is int and type(request.has_pointer) is bool and type(request.requires_dynamic) is bool:
            return request
        return replace(request, size=int(size), has_pointer=bool(request.has_pointer),
                       requires_dynamic=bool(request.requires_dynamic))

    def classify(self, request: AllocationRequest) -> Route:
        request = self.validate(request)
        return self._rules[request.location](request)

    def _classify_static(self, request: AllocationRequest) -> Route:
        return Route.static()

    def _classify_frame(self, request: AllocationRequest) -> Route:
        if request.requires_dynamic:
            return self._classify_dynamic(request)
        return Route.frame()

    def _classify_dynamic(self, request: AllocationRequest) -> Route:
        if self._table.is_oversized(request.size):
            return Route.oversized()
        if request.size < self._packed_threshold and not request.has_pointer:
            return Route.packed(self._packed_class_index)
        return Route.classed(self._table.class_index_for(request.size))

    @property
    def table(self) -> SizeClassTable:
        return self._table
