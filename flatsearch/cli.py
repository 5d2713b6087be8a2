"""
Command line entry point
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import load_config
from .index_builder import IndexBuilder, SampleQueryGenerator
from .loader import IndexLoader
from .metrics import MetricsCollector, Reporter
from .query_processor import QueryProcessor

logger = logging.getLogger(__name__)

EXIT_KEYWORD = 'exit()'
LOG_FORMAT = '%(asctime)s [%(levelname)s] [%(name)s] %(message)s'


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None, verbose: bool = False):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='flatsearch', description="Flat-file inverted index search engine")
    p.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    p.add_argument('-c', '--config', type=Path, help="JSON configuration file")
    p.add_argument('-v', '--verbose', action='store_true', help="debug logging")
    p.add_argument('--log-file', help="also write the log to this file")
    sub = p.add_subparsers(dest='cmd', required=True)

    build = sub.add_parser('build', help="index a directory of documents")
    build.add_argument('source_dir', type=Path)
    build.add_argument('-o', '--output', type=Path, default=Path('index'), dest='index_dir')

    serve = sub.add_parser('serve', help="interactive search prompt")
    serve.add_argument('index_dir', type=Path)

    query = sub.add_parser('query', help="run a single query")
    query.add_argument('index_dir', type=Path)
    query.add_argument('query', nargs='+')

    bench = sub.add_parser('bench', help="measure query latency and throughput")
    bench.add_argument('index_dir', type=Path)
    bench.add_argument('-n', '--num-queries', type=int, default=50)
    return p


def cmd_build(args, config) -> int:
    if not args.source_dir.is_dir():
        print(f"Source directory not found: {args.source_dir}", file=sys.stderr)
        return 1
    builder = IndexBuilder(config)
    stats = builder.build_index(args.source_dir, args.index_dir)
    Reporter.print_build_report(stats)
    return 0


def _load(args, config):
    builder = IndexBuilder(config)
    builder.load_index(args.index_dir)
    Reporter.print_load_report(builder.loader.statistics(), MetricsCollector.measure_memory())
    return builder


def cmd_query(args, config) -> int:
    processor = _load(args, config).get_query_processor()
    print(processor.process_query(' '.join(args.query)).format())
    return 0


def cmd_serve(args, config) -> int:
    builder = IndexBuilder(config)
    loader = IndexLoader.from_config(config)
    loader.load_index(args.index_dir)
    print("Loading index, please wait ...")
    index = loader.wait()
    Reporter.print_load_report(loader.statistics(), MetricsCollector.measure_memory())

    processor = QueryProcessor.from_config(index, builder.analyzer, config)
    while True:
        try:
            query = input("\nPlease enter a query: ")
        except EOFError:
            break
        logger.info("Query provided: %s", query)
        if query.strip().lower() == EXIT_KEYWORD:
            break
        print(processor.process_query(query).format())

    print("Exiting Search Engine.")
    return 0


def cmd_bench(args, config) -> int:
    if args.num_queries <= 0:
        print("--num-queries must be positive", file=sys.stderr)
        return 2
    builder = _load(args, config)
    processor = builder.get_query_processor()
    queries = SampleQueryGenerator.generate_queries(builder.index, args.num_queries)

    metrics = {
        'latency': MetricsCollector.measure_query_latency(processor, queries),
        'throughput': MetricsCollector.measure_throughput(processor, queries),
        'memory': MetricsCollector.measure_memory(),
        'index_size': MetricsCollector.measure_index_size(args.index_dir),
    }
    Reporter.print_metrics_report(str(args.index_dir), metrics)
    return 0


COMMANDS = {
    'build': cmd_build,
    'serve': cmd_serve,
    'query': cmd_query,
    'bench': cmd_bench,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    setup_logging(config['log_level'], args.log_file or config['log_file'], args.verbose)

    if args.cmd != 'build' and not args.index_dir.is_dir():
        print(f"Index directory not found: {args.index_dir}", file=sys.stderr)
        return 1

    return COMMANDS[args.cmd](args, config)


if __name__ == '__main__':
    sys.exit(main())
