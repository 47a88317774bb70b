import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path

import aiofiles

from chunkpipe.benchmark.benchmark import Benchmarker
from chunkpipe.chunks import calculate_file_hash, chunk_file
from chunkpipe.config import PipelineConfig, load_config
from chunkpipe.exceptions import TaskCancelledError
from chunkpipe.pipeline import process_chunks

logger = logging.getLogger(__name__)

EXIT_CANCELLED = 130


def setup_logging(level: str = "INFO", log_file: str = "chunkpipe.log"):
    """Configure root logging for the CLI"""
    logging.basicConfig(
        level=getattr(logging, level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file)
        ]
    )


def make_part_writer(output_dir: Path, name: str):
    """Processor that stores each chunk as <name>.part<index> in output_dir"""
    async def write_part(chunk, interrupt):
        if interrupt.fired:
            raise RuntimeError(f"Chunk {chunk.index} interrupted before write")

        part = output_dir / f"{name}.part{chunk.index}"
        async with aiofiles.open(part, 'wb') as f:
            await f.write(chunk.payload)

    return write_part


async def run_hash(args, config: PipelineConfig):
    """Print the whole-file hash"""
    sources = chunk_file(args.file, chunk_size=config.chunk_size, workers=config.workers)
    digest = await calculate_file_hash(sources)

    print(f"{digest}  {args.file}")
    return 0


async def run_copy(args, config: PipelineConfig):
    """Copy a file into per-chunk part files through the scheduler"""
    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    source = Path(args.file)
    sources = chunk_file(source, chunk_size=config.chunk_size, workers=config.workers)

    def on_progress(completed: int, total: int):
        logger.info(f"Progress: {completed}/{total}")

    controller = process_chunks(
        sources,
        make_part_writer(output_dir, source.name),
        concurrency=config.concurrency,
        on_progress=on_progress,
        policy=config.retry_policy()
    )

    loop = asyncio.get_running_loop()
    handlers = {
        signal.SIGINT: controller.cancel,
        signal.SIGUSR1: controller.pause,
        signal.SIGUSR2: controller.resume,
    }
    for sig, handler in handlers.items():
        try:
            loop.add_signal_handler(sig, handler)
        except (NotImplementedError, AttributeError):
            logger.debug(f"Signal {sig} not supported on this platform")

    try:
        await controller.wait()
    finally:
        for sig in handlers:
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, AttributeError):
                pass

    digest = await calculate_file_hash(sources)
    logger.info(f"Copied {controller.total} chunks to {output_dir}, hash {digest}")
    return 0


async def run_benchmark(args, config: PipelineConfig):
    """Run throughput benchmark"""
    logger.info("=== Starting chunkpipe benchmark ===")

    benchmarker = Benchmarker(output_dir=Path(args.output))

    if args.all:
        await benchmarker.run_matrix(
            total_chunks=args.chunks,
            latency_ms=args.latency,
            failure_rate=args.failure_rate
        )
    else:
        await benchmarker.run_case(
            config.concurrency,
            total_chunks=args.chunks,
            latency_ms=args.latency,
            failure_rate=args.failure_rate
        )

    benchmarker.save_results()

    if not args.no_plot:
        benchmarker.generate_report()

    best = benchmarker.best_concurrency()
    if best:
        logger.info(f"Best throughput: {best['throughput_chunks_s']:.1f} chunks/s "
                    f"at concurrency {best['concurrency']}")
    return 0


def create_parser():
    """Create argument parser"""
    parser = argparse.ArgumentParser(
        description='chunkpipe - concurrent chunked file processing',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Whole-file hash from chunk hashes
  chunkpipe hash big.iso

  # Copy into part files, 8 at a time (SIGUSR1 pauses, SIGUSR2 resumes)
  chunkpipe copy big.iso --output ./parts --concurrency 8

  # Benchmark all concurrency levels
  chunkpipe benchmark --all
        """
    )

    parser.add_argument(
        'mode',
        choices=['hash', 'copy', 'benchmark'],
        help='Execution mode'
    )
    parser.add_argument(
        'file',
        nargs='?',
        help='File to process (hash and copy modes)'
    )
    parser.add_argument(
        '--output',
        default='./chunkpipe_out',
        help='Output directory (default: ./chunkpipe_out)'
    )
    parser.add_argument(
        '--config',
        help='YAML configuration file'
    )

    # Pipeline arguments
    parser.add_argument(
        '--concurrency',
        type=int,
        help='Maximum chunks processed at once (default: 6)'
    )
    parser.add_argument(
        '--chunk-size',
        type=int,
        help='Chunk size in bytes (default: min(1MB, file size))'
    )
    parser.add_argument(
        '--workers',
        type=int,
        help='Number of chunk readers (default: CPU count)'
    )
    parser.add_argument(
        '--max-attempts',
        type=int,
        help='Give up on a chunk after this many attempts (default: retry forever)'
    )

    # Benchmark-specific arguments
    parser.add_argument(
        '--chunks',
        type=int,
        default=64,
        help='Number of synthetic chunks (default: 64)'
    )
    parser.add_argument(
        '--latency',
        type=float,
        default=20,
        help='Simulated processor latency in ms (default: 20)'
    )
    parser.add_argument(
        '--failure-rate',
        type=float,
        default=0.0,
        help='Fraction of simulated attempts that fail (default: 0)'
    )
    parser.add_argument(
        '--all',
        action='store_true',
        help='Benchmark all concurrency levels'
    )
    parser.add_argument(
        '--no-plot',
        action='store_true',
        help='Skip generating plots'
    )

    # Logging
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Minimal output'
    )

    return parser


async def async_main(argv=None) -> int:
    """Parse arguments and dispatch to a mode"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.mode in ('hash', 'copy') and not args.file:
        parser.error(f"{args.mode} mode requires a file")

    try:
        config = load_config(
            args.config,
            concurrency=args.concurrency,
            chunk_size=args.chunk_size,
            workers=args.workers,
            max_attempts=args.max_attempts
        )
    except (ValueError, TypeError) as e:
        parser.error(f"Invalid configuration: {e}")

    setup_logging(config.log_level)
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.WARNING)

    modes = {
        'hash': run_hash,
        'copy': run_copy,
        'benchmark': run_benchmark,
    }

    try:
        return await modes[args.mode](args, config)
    except TaskCancelledError:
        logger.warning("Cancelled by user")
        return EXIT_CANCELLED
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


def main():
    """Console script entry point"""
    try:
        sys.exit(asyncio.run(async_main()))
    except KeyboardInterrupt:
        sys.exit(EXIT_CANCELLED)


if __name__ == '__main__':
    main()
