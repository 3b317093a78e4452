"""
Request and trace codec for allocsim.

This module converts upstream allocation requests from JSON documents or
plain mappings into ``AllocationRequest`` objects, and turns trace
segments, snapshots and run reports into JSON-ready dictionaries.

Two request schemas are accepted. The native one uses ``location``
(``static``/``frame``/``dynamic``) and ``requires_dynamic``. The escape
analysis schema uses ``escapes`` and ``hasPointer`` together with
``stack``/``heap``/``data`` locations.
"""

from __future__ import annotations
import json
from typing import Any, Dict, Iterable, List, Mapping, Union

from ..types.descriptors import AllocationRequest, Placement
from ..types.enums import Location
from ..types.records import RunReport, SpanView, TraceSegment, WorldSnapshot
from ..exceptions import InvalidRequest

LOCATION_NAMES: Dict[str, Location] = {
    'static': Location.STATIC,
    'data': Location.STATIC,
    'frame': Location.FRAME,
    'stack': Location.FRAME,
    'dynamic': Location.DYNAMIC,
    'heap': Location.DYNAMIC,
}

_FIELD_ALIASES = {
    'hasPointer': 'has_pointer',
    'requiresDynamic': 'requires_dynamic',
}


class RequestCodec:
    """Decodes allocation requests and encodes engine output."""

    __slots__ = ()

    def decode_location(self, value: Any) -> Location:
        if isinstance(value, Location):
            return value
        if isinstance(value, str):
            try:
                return LOCATION_NAMES[value.strip().lower()]
            except KeyError:
                pass
        raise InvalidRequest(f"Unrecognized location: {value!r}",
                             reason=f"unrecognized location {value!r}")

    def decode_request(self, data: Mapping[str, Any]) -> AllocationRequest:
        """Build a request from one record without judging its values.

        Unknown locations, a missing size and non-boolean flags are carried
        through as given so the engine rejects that record alone.
        """
        if not isinstance(data, Mapping):
            raise InvalidRequest(f"Request must be an object, got {type(data).__name__}")

        fields = {_FIELD_ALIASES.get(key, key): value for key, value in data.items()}

        location = fields.get('location', 'frame')
        try:
            location = self.decode_location(location)
        except InvalidRequest:
            pass

        requires_dynamic = fields.get('requires_dynamic', False)
        if 'escapes' in fields and location == Location.FRAME:
            requires_dynamic = fields['escapes']

        return AllocationRequest(
            name=str(fields.get('name', 'anonymous')),
            size=fields.get('size'),
            has_pointer=fields.get('has_pointer', False),
            location=location,
            requires_dynamic=requires_dynamic,
            reason=str(fields.get('reason', '')),
        )

    def decode_requests(self, source: Union[str, bytes, Iterable[Mapping[str, Any]]]) -> List[AllocationRequest]:
        if isinstance(source, (str, bytes)):
            try:
                source = json.loads(source)
            except json.JSONDecodeError as exc:
                raise InvalidRequest(f"Request document is not valid JSON: {exc}") from exc
        if isinstance(source, Mapping):
            source = source.get('requests', [])
        if isinstance(source, (str, bytes, Mapping)) or not isinstance(source, Iterable):
            raise InvalidRequest(
                f"Request document must be a list or an object with a 'requests' list, "
                f"got {type(source).__name__}"
            )
        return [self.decode_request(item) for item in source]

    def encode_request(self, request: AllocationRequest) -> Dict[str, Any]:
        return {
            'name': request.name,
            'size': request.size,
            'has_pointer': request.has_pointer,
            'location': request.location_name,
            'requires_dynamic': request.requires_dynamic,
            'reason': request.reason,
        }

    def encode_placement(self, placement: Placement) -> Dict[str, Any]:
        return {
            'route': str(placement.route),
            'size': placement.size,
            'class_size': placement.class_size,
            'waste': placement.waste,
            'span_id': placement.span_id,
            'slot': placement.slot,
            'offset': placement.offset,
            'block_id': placement.block_id,
            'entry_id': placement.entry_id,
        }

    def encode_segment(self, segment: TraceSegment) -> Dict[str, Any]:
        return {
            'request': self.encode_request(segment.request),
            'route': str(segment.route),
            'entries': [
                {'phase': entry.phase.name, 'message': entry.message}
                for entry in segment.entries
            ],
            'placement': self.encode_placement(segment.placement),
        }

    def encode_span(self, view: SpanView) -> Dict[str, Any]:
        return {
            'class_index': view.class_index,
            'class_size': view.class_size,
            'span_id': view.span_id,
            'total_slots': view.total_slots,
            'free_slots': view.free_slots,
            'utilization': round(view.utilization, 4),
            'occupancy': ''.join('1' if used else '0' for used in view.occupancy),
        }

    def encode_snapshot(self, snapshot: WorldSnapshot) -> Dict[str, Any]:
        arena = snapshot.arena
        return {
            'static_region': [
                {'entry_id': e.entry_id, 'name': e.name, 'size': e.size} for e in snapshot.static_region
            ],
            'frame_stack': [
                {'entry_id': e.entry_id, 'name': e.name, 'size': e.size} for e in snapshot.frame_stack
            ],
            'cache': [self.encode_span(view) for view in snapshot.cache],
            'central': [
                {'class_index': c.class_index, 'class_size': c.class_size,
                 'non_empty': c.non_empty, 'empty': c.empty}
                for c in snapshot.central
                if c.non_empty or c.empty
            ],
            'arena': {
                'reserved_bytes': arena.reserved_bytes,
                'active_bytes': arena.active_bytes,
                'padding_bytes': arena.padding_bytes,
                'total_capacity_bytes': arena.total_capacity_bytes,
                'committed_spans': arena.committed_spans,
                'oversized_blocks': arena.oversized_blocks,
                'usage_ratio': arena.usage_ratio,
                'over_capacity': arena.over_capacity,
            },
        }

    def encode_report(self, report: RunReport) -> Dict[str, Any]:
        return {
            'processed': report.processed,
            'segments': [self.encode_segment(segment) for segment in report.segments],
            'rejections': [
                {'request': self.encode_request(r.request), 'reason': r.reason}
                for r in report.rejections
            ],
            'failures': [
                {'request': self.encode_request(f.request), 'reason': f.reason, 'error': f.error}
                for f in report.failures
            ],
        }
