"""
Command-line interface for allocsim.

This module provides CLI commands for running a sequence of allocation
requests through the engine and for inspecting the size-class table.
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .codecs.codec import RequestCodec
from .core.engine import AllocationEngine
from .exceptions import AllocSimError
from .factory import create_engine, create_runtime_like_engine, create_strict_engine
from .memory.size_classes import SizeClassTable
from .types.descriptors import AllocatorConfig

logger = logging.getLogger(__name__)


def simulate_command(argv: Optional[List[str]] = None) -> int:
    """CLI command for simulating a sequence of allocation requests."""
    parser = argparse.ArgumentParser(description='Simulate allocation requests')
    parser.add_argument('input', help="JSON file with allocation requests ('-' for stdin)")
    parser.add_argument('--preset', choices=['default', 'runtime', 'strict'],
                       default='default', help='Engine preset to use')
    parser.add_argument('--config', type=str, help='JSON file with configuration overrides')
    parser.add_argument('--format', choices=['json', 'text'], default='json',
                       help='Output format for the trace')
    parser.add_argument('--stats', action='store_true',
                       help='Include allocation statistics in the output')
    parser.add_argument('--output', type=str, help='Output file for results')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    codec = RequestCodec()
    try:
        engine = build_engine(args.preset, args.config)
        requests = codec.decode_requests(read_input(args.input))
        logger.debug("Loaded %d requests from %s", len(requests), args.input)
        report = engine.run(requests)
    except (AllocSimError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.format == 'text':
        lines = [str(entry) for entry in report.entries]
        lines.extend(f"[REJECTED] {r.request.name}: {r.reason}" for r in report.rejections)
        lines.extend(f"[FAILED] {f.request.name}: {f.error}: {f.reason}" for f in report.failures)
        arena = engine.snapshot().arena
        lines.append(
            f"Arena: {arena.reserved_bytes}B reserved, {arena.active_bytes}B active, "
            f"{arena.padding_bytes}B padding "
            f"({arena.usage_ratio:.4%} of capacity)"
        )
        if args.stats:
            lines.append(engine.statistics.export('json'))
        text = "\n".join(lines)
    else:
        results: Dict[str, Any] = codec.encode_report(report)
        results['snapshot'] = codec.encode_snapshot(engine.snapshot())
        if args.stats:
            results['statistics'] = engine.statistics.get_summary()
        text = json.dumps(results, indent=2)

    write_output(text, args.output)
    return 0


def classes_command(argv: Optional[List[str]] = None) -> int:
    """CLI command for printing the size-class table."""
    parser = argparse.ArgumentParser(description='Show the allocator size classes')
    parser.add_argument('--config', type=str, help='JSON file with configuration overrides')
    parser.add_argument('--size', type=int, help='Show which class a request size maps to')

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (AllocSimError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    table = SizeClassTable(config.size_classes)

    if args.size is not None:
        index = table.class_index_for(args.size)
        if index is None:
            pages = -(-args.size // config.page_size)
            print(f"{args.size}B is oversized: {pages} pages ({pages * config.page_size}B)")
        else:
            print(f"{args.size}B -> class {index} ({table.class_size(index)}B)")
        return 0

    for index, size in enumerate(table):
        slots = max(1, config.page_size // size)
        print(f"{index:3d}  {size:6d}B  {slots:5d} slots/span")
    return 0


def build_engine(preset: str, config_path: Optional[str] = None) -> AllocationEngine:
    if config_path:
        return AllocationEngine(load_config(config_path))
    if preset == 'runtime':
        return create_runtime_like_engine()
    if preset == 'strict':
        return create_strict_engine()
    return create_engine()


def load_config(path: Optional[str]) -> AllocatorConfig:
    if not path:
        return AllocatorConfig()
    with open(path) as f:
        return AllocatorConfig.from_mapping(json.load(f))


def read_input(path: str) -> str:
    if path == '-':
        return sys.stdin.read()
    with open(path) as f:
        return f.read()


def write_output(text: str, path: Optional[str]) -> None:
    if path:
        with open(path, 'w') as f:
            f.write(text)
            f.write("\n")
    else:
        print(text)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


COMMANDS = {
    'simulate': simulate_command,
    'classes': classes_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in COMMANDS:
        if argv:
            print(f"Unknown command: {argv[0]}")
        print("Usage: python -m allocsim.cli <command>")
        print("Commands: " + ", ".join(COMMANDS))
        return 1

    return COMMANDS[argv[0]](argv[1:])


if __name__ == '__main__':
    sys.exit(main())
