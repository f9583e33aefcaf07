"""
Profiling script for PyArbor simulation performance analysis.

This script profiles stepping over a few graph shapes, with exact and
approximate repulsion, to identify bottlenecks.
"""

import cProfile
import pstats
import io
from pstats import SortKey
import time

import numpy as np
from pyarbor import ArborSystem


# Sample tree graph, 36 nodes
SAMPLE_EDGES = [
    ("1", "4"), ("1", "12"), ("4", "21"), ("4", "23"), ("7", "34"),
    ("7", "13"), ("7", "44"), ("12", "25"), ("12", "24"), ("23", "50"),
    ("23", "53"), ("24", "6"), ("24", "42"), ("25", "94"), ("25", "66"),
    ("32", "47"), ("32", "84"), ("42", "32"), ("42", "7"), ("50", "72"),
    ("50", "65"), ("53", "67"), ("53", "68"), ("66", "79"), ("66", "80"),
    ("67", "88"), ("67", "83"), ("68", "77"), ("68", "91"), ("80", "99"),
    ("80", "97"), ("88", "110"), ("88", "104"), ("91", "106"), ("91", "100"),
]


def create_system(edges, theta=0.4):
    """Create a system with sample viewer parameters."""
    sys = ArborSystem(10000, 500, 0.1, seed=42)
    sys.theta(theta).auto_stop(False)
    sys.set_screen_size(800, 600)
    for source, target in edges:
        sys.add_edge(source, target)
    return sys


def random_edges(n_nodes, n_edges):
    """Random edges between n nodes, approximately n_edges of them."""
    np.random.seed(42)
    edges = []
    for _ in range(n_edges):
        source = np.random.randint(0, n_nodes)
        target = np.random.randint(0, n_nodes)
        if source != target:
            edges.append((str(source), str(target)))
    return edges


def run_steps(sys, steps):
    sys.start()
    for _ in range(steps):
        sys.tick()
    sys.stop()


def profile_sample_graph():
    """Profile the sample tree graph (36 nodes, 35 edges)."""
    run_steps(create_system(SAMPLE_EDGES), 200)


def profile_sample_graph_exact():
    """Profile the sample tree graph with exact repulsion."""
    run_steps(create_system(SAMPLE_EDGES, theta=0.0), 200)


def profile_medium_graph():
    """Profile a medium graph (100 nodes, 200 edges)."""
    run_steps(create_system(random_edges(100, 200)), 100)


def profile_large_graph():
    """Profile a large graph (500 nodes, 1000 edges)."""
    run_steps(create_system(random_edges(500, 1000)), 30)


def benchmark_scenario(name, func):
    """Benchmark a scenario and print timing."""
    print(f"\n{'='*60}")
    print(f"Profiling: {name}")
    print('='*60)

    profiler = cProfile.Profile()

    start_time = time.time()
    profiler.enable()
    func()
    profiler.disable()
    elapsed = time.time() - start_time

    print(f"\nTotal time: {elapsed:.3f}s")

    s = io.StringIO()
    ps = pstats.Stats(profiler, stream=s).sort_stats(SortKey.CUMULATIVE)
    ps.print_stats(20)  # Top 20 functions

    print("\nTop 20 functions by cumulative time:")
    print(s.getvalue())

    return profiler


def main():
    """Run all profiling scenarios."""
    print("PyArbor Performance Profiling")
    print("=" * 60)

    scenarios = [
        ("Sample Graph (36 nodes, theta 0.4)", profile_sample_graph),
        ("Sample Graph (36 nodes, theta 0)", profile_sample_graph_exact),
        ("Medium Graph (100 nodes, 200 edges)", profile_medium_graph),
        ("Large Graph (500 nodes, 1000 edges)", profile_large_graph),
    ]

    profilers = {}
    for name, func in scenarios:
        profilers[name] = benchmark_scenario(name, func)

    print("\n" + "="*60)
    print("Saving detailed profiles...")
    print("="*60)

    for name, profiler in profilers.items():
        filename = f"profile_{name.lower().replace(' ', '_').replace('(', '').replace(')', '').replace(',', '')}.prof"
        profiler.dump_stats(filename)
        print(f"Saved: {filename}")

    print("\nTo view detailed profile, use:")
    print("  python -m pstats <profile_file>")


if __name__ == "__main__":
    main()
