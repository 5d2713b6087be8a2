"""
Metrics collection and reporting module
Collects performance metrics for index builds and query processing
"""

import time
from pathlib import Path
from typing import Dict, List

import numpy as np
import psutil


class MetricsCollector:
    """Collect and analyze system metrics"""

    @staticmethod
    def measure_memory() -> float:
        """Get current process memory usage in MB"""
        process = psutil.Process()
        return process.memory_info().rss / 1024 / 1024

    @staticmethod
    def measure_index_size(index_dir: Path) -> float:
        """Total size of the index files on disk in MB"""
        index_dir = Path(index_dir)
        if not index_dir.is_dir():
            return 0.0
        total_size = sum(p.stat().st_size for p in index_dir.iterdir() if p.is_file())
        return total_size / 1024 / 1024

    @staticmethod
    def measure_query_latency(query_processor,
                              queries: List[str],
                              repetitions: int = 1) -> Dict:
        """
        Measure query latency statistics (averaged over multiple repetitions)
        Returns dict with averaged mean, p95, p99 latencies in milliseconds
        """
        if not queries:
            return {}

        all_results = []
        for _ in range(repetitions):
            latencies = []
            for query in queries:
                start_time = time.perf_counter()
                query_processor.process_query(query)
                latencies.append((time.perf_counter() - start_time) * 1000)

            all_results.append({
                'mean': np.mean(latencies),
                'median': np.median(latencies),
                'p95': np.percentile(latencies, 95),
                'p99': np.percentile(latencies, 99),
                'min': np.min(latencies),
                'max': np.max(latencies),
                'std': np.std(latencies)
            })

        return {k: float(np.mean([res[k] for res in all_results])) for k in all_results[0]}

    @staticmethod
    def measure_throughput(query_processor,
                           queries: List[str],
                           repetitions: int = 1) -> float:
        """Queries per second over all repetitions"""
        if not queries:
            return 0.0

        query_count = 0
        start_time = time.perf_counter()
        for _ in range(repetitions):
            for query in queries:
                query_processor.process_query(query)
                query_count += 1
        elapsed = time.perf_counter() - start_time

        return query_count / elapsed if elapsed > 0 else 0.0


class Reporter:
    """Print reports"""

    @staticmethod
    def print_build_report(stats: Dict):
        print(f"\n{'='*70}")
        print("Build Report")
        print(f"{'='*70}")
        print(f"  Files found:        {stats.get('files_found', 0)}")
        print(f"  Documents indexed:  {stats.get('documents', 0)}")
        print(f"  Documents failed:   {stats.get('documents_failed', 0)}")
        print(f"  Unique tokens:      {stats.get('tokens', 0)}")
        print(f"  Intersections:      {stats.get('intersections', 0)}")
        print(f"  Index files:        {stats.get('files', 0)}")
        print(f"  Tokens scanned:     {stats.get('preprocessing_size', 0)}")
        print(f"  Tokens kept:        {stats.get('postprocessing_size', 0)}")
        print(f"  Duration:           {stats.get('duration', 0.0):.2f}s")
        print(f"{'='*70}\n")

    @staticmethod
    def print_load_report(stats: Dict, memory: float):
        print(f"Loaded {stats['tokens']} tokens, {stats['documents']} documents, "
              f"and {stats['intersections']} intersections ({memory:.2f} MB in use).")

    @staticmethod
    def print_metrics_report(name: str, metrics: Dict):
        """Print formatted metrics report"""
        print(f"\n{'='*70}")
        print(f"Metrics Report: {name}")
        print(f"{'='*70}")

        if metrics.get('latency'):
            print("\nLatency Statistics (ms):")
            print(f"  Mean:     {metrics['latency']['mean']:.2f}")
            print(f"  Median:   {metrics['latency']['median']:.2f}")
            print(f"  P95:      {metrics['latency']['p95']:.2f}")
            print(f"  P99:      {metrics['latency']['p99']:.2f}")

        if 'throughput' in metrics:
            print(f"\nThroughput: {metrics['throughput']:.2f} queries/second")

        if 'memory' in metrics:
            print(f"\nMemory Usage: {metrics['memory']:.2f} MB")

        if 'index_size' in metrics:
            print(f"Index Size on Disk: {metrics['index_size']:.2f} MB")

        print(f"{'='*70}\n")
