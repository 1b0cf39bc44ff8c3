"""
Main CLI Module for Market Structure Analysis

Commands:
- analyze: Compute structure for a CSV file and print a summary or JSON
- signals: List trading points for a CSV file, optionally replaying bars
  one at a time through the incremental analyzer
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from ..data.ohlc_loader import load_bars
from ..engine import StructureEngine, StructureResult
from ..errors import StructureError
from ..incremental import IncrementalAnalyzer
from ..structure_config import StructureConfig
from ..summary import format_summary, summarize

logger = logging.getLogger(__name__)


def load_config(path: Optional[str]) -> StructureConfig:
    """Read a JSON config file, or return defaults when no path is given."""
    if path is None:
        return StructureConfig.default()
    with open(path, 'r') as f:
        return StructureConfig.from_dict(json.load(f))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _load(args) -> list:
    return load_bars(args.data, start_time=args.start_time, end_time=args.end_time, limit=args.limit)


def run_analyze_command(args) -> int:
    """Compute structure for a data file."""
    config = load_config(args.config)
    bars = _load(args)
    engine = StructureEngine(config)
    result = engine.calculate(bars) if args.level == 'basic' else engine.calculate_full(bars)

    if args.json:
        print(result.to_json(indent=2))
    else:
        print(format_summary(summarize(result)))
    return 0


def run_signals_command(args) -> int:
    """Print trading points, from a batch run or a bar-by-bar replay."""
    config = load_config(args.config)
    bars = _load(args)

    if args.replay:
        analyzer = IncrementalAnalyzer(config)
        reported = 0
        for bar in bars:
            result: StructureResult = analyzer.update(bar)
            # Emitted points are never withdrawn, so only the tail is new.
            for point in result.trading_points[reported:]:
                logger.info(f"New L{point.level} {point.type.value} at bar time {bar.time}")
            reported = len(result.trading_points)
        points = analyzer.result.trading_points
    else:
        points = StructureEngine(config).trading_points(bars)

    for point in points:
        if args.json:
            print(json.dumps(point.to_dict()))
        else:
            print(
                f"{point.date:%Y-%m-%d %H:%M}  "
                f"L{point.level} {point.type.value:<4} {point.price}  [{point.confidence.value}]  "
                f"{point.reason}"
            )
    if not points and not args.json:
        print("No trading points")
    return 0


def _add_data_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--data', required=True, help='Path to OHLCV CSV file')
    parser.add_argument('--config', help='JSON file with StructureConfig overrides')
    parser.add_argument('--start-time', type=int, help='Inclusive start, epoch ms')
    parser.add_argument('--end-time', type=int, help='Inclusive end, epoch ms')
    parser.add_argument('--limit', type=int, help='Use only the most recent N bars')
    parser.add_argument('--json', action='store_true', help='Print JSON instead of text')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog='market-structure',
        description="Market structure decomposition CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    analyze_parser = subparsers.add_parser(
        'analyze',
        help='Compute merged bars, fractals, strokes, segments, pivots and trading points'
    )
    _add_data_arguments(analyze_parser)
    analyze_parser.add_argument(
        '--level',
        choices=['basic', 'full'],
        default='full',
        help='basic: merged bars, fractals, strokes; full: everything (default: full)'
    )

    signals_parser = subparsers.add_parser(
        'signals',
        help='List classified trading points'
    )
    _add_data_arguments(signals_parser)
    signals_parser.add_argument(
        '--replay',
        action='store_true',
        help='Feed bars one at a time through the incremental analyzer'
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    _configure_logging(args.verbose)

    try:
        if args.command == 'analyze':
            return run_analyze_command(args)
        if args.command == 'signals':
            return run_signals_command(args)
    except (StructureError, FileNotFoundError, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
