import asyncio
import time
import random
import psutil
import json
from pathlib import Path
from typing import List, Dict, Optional
from dataclasses import dataclass, asdict
import logging

from ..chunks.producer import chunk_bytes
from ..control.retry import RetryPolicy
from ..control.token import InterruptSignal
from ..pipeline.scheduler import process_chunks

logger = logging.getLogger(__name__)


@dataclass
class BenchmarkResult:
    """Single benchmark result"""
    concurrency: int
    total_chunks: int
    chunk_size: int
    latency_ms: float
    failure_rate: float
    wall_time_ms: float
    throughput_chunks_s: float
    throughput_mb_s: float
    attempts: int
    retries: int
    max_in_flight: int
    cpu_usage: float
    memory_mb_delta: float
    timestamp: float


class SimulatedProcessor:
    """
    Stand-in for an upload: sleeps for the configured latency and fails
    a fraction of attempts
    """

    def __init__(self, latency_ms: float, failure_rate: float, seed: Optional[int] = None):
        self.latency_ms = latency_ms
        self.failure_rate = failure_rate
        self.rng = random.Random(seed)
        self.attempts = 0
        self.failures = 0
        self.active = 0
        self.max_active = 0

    async def __call__(self, chunk, signal: InterruptSignal):
        self.attempts += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.latency_ms / 1000)
            if signal.fired:
                raise RuntimeError(f"Chunk {chunk.index} interrupted")
            if self.rng.random() < self.failure_rate:
                self.failures += 1
                raise RuntimeError(f"Simulated failure on chunk {chunk.index}")
        finally:
            self.active -= 1


class Benchmarker:
    """
    Throughput benchmarking for the chunk scheduler
    Measures wall time, retries and resource usage per concurrency level
    """

    def __init__(self, output_dir: Path, retry_delay_ms: float = 10):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.policy = RetryPolicy(base_delay_ms=retry_delay_ms, max_delay_ms=retry_delay_ms * 5)
        self.results: List[BenchmarkResult] = []

        # Process for resource monitoring
        self.process = psutil.Process()

    async def run_case(self, concurrency: int, total_chunks: int = 64,
                       chunk_size: int = 64 * 1024, latency_ms: float = 20,
                       failure_rate: float = 0.0, seed: Optional[int] = None) -> BenchmarkResult:
        """Run the scheduler once over synthetic data"""
        logger.info(f"Benchmarking concurrency={concurrency}, chunks={total_chunks}, "
                    f"latency={latency_ms}ms, failure_rate={failure_rate}")

        data = random.Random(seed).randbytes(chunk_size * total_chunks)
        sources = chunk_bytes(data, chunk_size=chunk_size)
        processor = SimulatedProcessor(latency_ms, failure_rate, seed)

        self.process.cpu_percent()
        mem_before = self.process.memory_info().rss / 1024 / 1024
        start = time.perf_counter()

        controller = process_chunks(sources, processor, concurrency=concurrency,
                                    policy=self.policy)
        await controller.wait()

        elapsed = time.perf_counter() - start
        cpu = self.process.cpu_percent()
        mem_after = self.process.memory_info().rss / 1024 / 1024

        result = BenchmarkResult(
            concurrency=concurrency,
            total_chunks=total_chunks,
            chunk_size=chunk_size,
            latency_ms=latency_ms,
            failure_rate=failure_rate,
            wall_time_ms=elapsed * 1000,
            throughput_chunks_s=total_chunks / elapsed if elapsed else 0.0,
            throughput_mb_s=len(data) / 1024 / 1024 / elapsed if elapsed else 0.0,
            attempts=processor.attempts,
            retries=processor.attempts - total_chunks,
            max_in_flight=processor.max_active,
            cpu_usage=cpu,
            memory_mb_delta=mem_after - mem_before,
            timestamp=time.time()
        )

        self.results.append(result)
        return result

    async def run_matrix(self, concurrency_levels=(1, 2, 4, 6, 8, 16), **case_options):
        """Run one case per concurrency level"""
        total = len(concurrency_levels)

        for count, concurrency in enumerate(concurrency_levels, 1):
            logger.info(f"Progress: {count}/{total}")
            await self.run_case(concurrency, **case_options)

        logger.info(f"Completed {len(self.results)} benchmarks")

    def save_results(self):
        """Save benchmark results to JSON and CSV"""
        timestamp = int(time.time())

        json_file = self.output_dir / f"benchmark_{timestamp}.json"
        with open(json_file, 'w') as f:
            json.dump(
                [asdict(r) for r in self.results],
                f,
                indent=2
            )
        logger.info(f"Saved results to {json_file}")

        csv_file = self.output_dir / f"benchmark_{timestamp}.csv"
        with open(csv_file, 'w') as f:
            if self.results:
                fields = asdict(self.results[0]).keys()
                f.write(','.join(fields) + '\n')

                for result in self.results:
                    values = [str(v) for v in asdict(result).values()]
                    f.write(','.join(values) + '\n')

        logger.info(f"Saved CSV to {csv_file}")
        return json_file, csv_file

    def generate_report(self):
        """Plot throughput and wall time against concurrency"""
        if not self.results:
            logger.warning("No results to generate report")
            return

        try:
            import matplotlib.pyplot as plt
            import pandas as pd
        except ImportError:
            logger.warning("matplotlib/pandas not installed, skipping visualization")
            return

        df = pd.DataFrame([asdict(r) for r in self.results])

        fig, axes = plt.subplots(1, 3, figsize=(18, 6))
        fig.suptitle('Chunk Pipeline Benchmarks', fontsize=16, fontweight='bold')

        ax = axes[0]
        df.plot(x='concurrency', y='throughput_chunks_s', kind='line', marker='o', ax=ax, legend=False)
        ax.set_title('Throughput')
        ax.set_ylabel('Chunks / s')

        ax = axes[1]
        df.plot(x='concurrency', y='wall_time_ms', kind='bar', ax=ax, legend=False)
        ax.set_title('Wall Time')
        ax.set_ylabel('Time (ms)')

        ax = axes[2]
        df.plot(x='concurrency', y=['attempts', 'retries'], kind='bar', ax=ax)
        ax.set_title('Attempts and Retries')

        plt.tight_layout()

        timestamp = int(time.time())
        plot_file = self.output_dir / f"benchmark_plot_{timestamp}.png"
        plt.savefig(plot_file, dpi=150, bbox_inches='tight')
        logger.info(f"Saved plot to {plot_file}")

        plt.close()

    def best_concurrency(self) -> Dict:
        """Result with the highest throughput"""
        if not self.results:
            return {}
        best = max(self.results, key=lambda r: r.throughput_chunks_s)
        return asdict(best)
