"""Main entry point for the paired-stream extractor."""
import argparse
import logging
import sys

from pairstream.config import BUILTIN_PROFILES, load_config
from pairstream.engine import PairingEngine
from pairstream.errors import StreamReadError
from pairstream.prom_exporter import MetricsExporter
from pairstream.sink import LineSink, open_output


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def build_formatter(log_format: str) -> logging.Formatter:
    """Formatter for the configured log format."""
    # For JSON logging, you'd use a library like python-json-logger
    # For now, both settings use the structured text format
    return logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)


def setup_logging(log_level: str, log_format: str):
    """Setup logging configuration. Diagnostics go to stderr, never to the output."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(build_formatter(log_format))

    logging.basicConfig(
        level=level,
        handlers=[handler]
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Pair two numeric series out of block-structured XML read from a stream"
    )
    parser.add_argument(
        "--config",
        "-c",
        help="Path to configuration YAML file"
    )
    parser.add_argument(
        "--profile",
        "-p",
        choices=sorted(BUILTIN_PROFILES),
        help="Built-in element profile (overrides the config file)"
    )
    parser.add_argument(
        "--input",
        "-i",
        help="XML input file (default: stdin)"
    )
    parser.add_argument(
        "--output",
        "-o",
        help="Output file (default: stdout)"
    )
    parser.add_argument(
        "--strategy",
        choices=["bounded", "unbounded"],
        help="Series queue strategy"
    )
    parser.add_argument(
        "--capacity",
        type=int,
        help="Capacity of both series queues (bounded strategy)"
    )
    parser.add_argument(
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ...)"
    )
    return parser


def apply_overrides(config, args):
    """Apply command line overrides on top of the loaded configuration."""
    updates = {}
    if args.profile:
        updates["profile"] = args.profile
        updates["custom_profile"] = None

    engine_updates = {}
    if args.strategy:
        engine_updates["queue_strategy"] = args.strategy
    if args.capacity is not None:
        if args.capacity < 1:
            raise ValueError(f"--capacity must be at least 1, got {args.capacity}")
        engine_updates["first_capacity"] = args.capacity
        engine_updates["second_capacity"] = args.capacity
    if engine_updates:
        updates["engine"] = config.engine.model_copy(update=engine_updates)

    if args.output:
        updates["output"] = config.output.model_copy(update={"path": args.output})
    if args.log_level:
        updates["global_"] = config.global_.model_copy(update={"log_level": args.log_level})

    return config.model_copy(update=updates)


def main(argv=None) -> int:
    """Main function."""
    args = build_parser().parse_args(argv)

    # Load configuration
    try:
        config = apply_overrides(load_config(args.config), args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.global_.log_level, config.global_.log_format)
    logger = logging.getLogger(__name__)

    profile = config.resolve_profile()
    logger.info(f"Profile: {config.profile if config.custom_profile is None else 'custom'}")
    logger.info(f"Queue strategy: {config.engine.queue_strategy}")
    logger.debug(f"Element profile: {profile.model_dump()}")

    exporter = MetricsExporter(config.metrics)

    if args.input:
        try:
            in_stream = open(args.input, "rb")
        except OSError as e:
            logger.error(f"Cannot open input: {e}")
            return 1
    else:
        in_stream = sys.stdin.buffer

    try:
        out_stream, owns_output = open_output(config.output)
    except OSError as e:
        logger.error(f"Cannot open output: {e}")
        if args.input:
            in_stream.close()
        return 1

    try:
        sink = LineSink(out_stream)
        engine = PairingEngine(config, sink, metrics=exporter.self_metrics)
        engine.run(in_stream)
    except StreamReadError:
        # Already logged by the engine
        return 1
    except OSError as e:
        logger.error(f"I/O error during run: {e}")
        return 1
    except MemoryError:
        logger.error("Out of memory while queueing values, aborting run")
        return 1
    finally:
        if args.input:
            in_stream.close()
        if owns_output:
            out_stream.close()
        exporter.write_textfile()

    return 0


if __name__ == "__main__":
    sys.exit(main())
