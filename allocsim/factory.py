from __future__ import annotations
from functools import lru_cache
from typing import Iterable

from .core.engine import AllocationEngine
from .types.descriptors import AllocatorConfig
from .types.protocols import ITraceObserver


@lru_cache(maxsize=1)
def get_default_config() -> AllocatorConfig:
    return AllocatorConfig()


def create_engine(observers: Iterable[ITraceObserver] = (), **kwargs) -> AllocationEngine:
    config = get_default_config().with_overrides(**kwargs) if kwargs else get_default_config()
    return AllocationEngine(config, observers=observers)


def create_runtime_like_engine(observers: Iterable[ITraceObserver] = ()) -> AllocationEngine:
    return create_engine(
        observers,
        prewarm_classes=8,  # first 8 classes start with spans in their central pools
        prewarm_spans_per_class=2,
    )


def create_strict_engine(
    total_capacity_bytes: int = 64 * 1024**2,  # 64MB
    observers: Iterable[ITraceObserver] = ()
) -> AllocationEngine:
    return create_engine(
        observers,
        total_capacity_bytes=total_capacity_bytes,
        strict_capacity=True,
    )
