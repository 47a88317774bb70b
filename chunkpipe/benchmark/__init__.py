from .benchmark import Benchmarker, BenchmarkResult, SimulatedProcessor

__all__ = [
    'Benchmarker',
    'BenchmarkResult',
    'SimulatedProcessor'
]
