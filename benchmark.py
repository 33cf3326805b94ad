"""
Benchmark and Profiling Module for the Shift Engine.

Provides:
- Function-level profiling with decorators
- Benchmark runner with statistical analysis
- A synthetic multi-store fleet for timing detection, balancing and validation

Usage:
    # Run benchmarks
    python benchmark.py

    # Use profiling decorator
    @profile_function
    def my_function():
        pass
"""
import time
import random
import statistics
import functools
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field


# =============================================================================
# PROFILING DECORATOR
# =============================================================================

@dataclass
class ProfileResult:
    """Result of profiling a function call."""
    function_name: str
    execution_time: float
    timestamp: datetime = field(default_factory=datetime.now)
    success: bool = True
    error: Optional[str] = None


# Global profiling data store
_profile_data: Dict[str, List[ProfileResult]] = {}


def profile_function(func: Callable) -> Callable:
    """
    Decorator to record the execution time of every call.

    Usage:
        @profile_function
        def detect_conflicts(self):
            ...

    Results are stored per qualified name and can be retrieved via
    get_profile_summary(). Exceptions are recorded and re-raised.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        start_time = time.perf_counter()
        error_msg = None
        success = True

        try:
            return func(*args, **kwargs)
        except Exception as e:
            success = False
            error_msg = str(e)
            raise
        finally:
            func_name = func.__qualname__
            _profile_data.setdefault(func_name, []).append(ProfileResult(
                function_name=func_name,
                execution_time=time.perf_counter() - start_time,
                success=success,
                error=error_msg,
            ))

    return wrapper


def get_profile_summary() -> Dict[str, Dict[str, Any]]:
    """
    Get summary of all profiled functions.

    Returns:
        Dictionary with function names as keys and stats as values
    """
    summary = {}

    for func_name, results in _profile_data.items():
        times = [r.execution_time for r in results]
        successes = sum(1 for r in results if r.success)

        summary[func_name] = {
            "call_count": len(results),
            "success_count": successes,
            "failure_count": len(results) - successes,
            "total_time": sum(times),
            "avg_time": statistics.mean(times) if times else 0,
            "min_time": min(times) if times else 0,
            "max_time": max(times) if times else 0,
            "std_dev": statistics.stdev(times) if len(times) > 1 else 0,
        }

    return summary


def clear_profile_data() -> None:
    """Clear all profiling data."""
    _profile_data.clear()


def print_profile_report() -> None:
    """Print a formatted profiling report."""
    summary = get_profile_summary()

    if not summary:
        print("No profiling data collected.")
        return

    print("\n" + "=" * 80)
    print("PROFILING REPORT")
    print("=" * 80)

    # Slowest first
    sorted_funcs = sorted(
        summary.items(),
        key=lambda x: x[1]['total_time'],
        reverse=True
    )

    for func_name, stats in sorted_funcs:
        print(f"\n📊 {func_name}")
        print(f"   Calls: {stats['call_count']} ({stats['success_count']} success, "
              f"{stats['failure_count']} failed)")
        print(f"   Total: {stats['total_time'] * 1000:.1f}ms | Avg: {stats['avg_time'] * 1000:.1f}ms")
        print(f"   Range: {stats['min_time'] * 1000:.1f}ms - {stats['max_time'] * 1000:.1f}ms")
        if stats['std_dev'] > 0:
            print(f"   Std Dev: {stats['std_dev'] * 1000:.1f}ms")

    print("\n" + "=" * 80)


# =============================================================================
# BENCHMARK RUNNER
# =============================================================================

@dataclass
class BenchmarkResult:
    """Timings of one benchmark, in seconds."""
    name: str
    iterations: int
    times: List[float]
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def mean(self) -> float:
        return statistics.mean(self.times) if self.times else 0

    @property
    def median(self) -> float:
        return statistics.median(self.times) if self.times else 0

    @property
    def std_dev(self) -> float:
        return statistics.stdev(self.times) if len(self.times) > 1 else 0

    @property
    def min_time(self) -> float:
        return min(self.times) if self.times else 0

    @property
    def max_time(self) -> float:
        return max(self.times) if self.times else 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "iterations": self.iterations,
            "successful": len(self.times),
            "mean": self.mean,
            "median": self.median,
            "std_dev": self.std_dev,
            "min": self.min_time,
            "max": self.max_time,
            "timestamp": self.timestamp.isoformat(),
        }


class Benchmark:
    """
    Benchmark runner for engine operations.

    Usage:
        bench = Benchmark()
        bench.add("Detection", engine.detect_conflicts, iterations=10)
        bench.run()
        bench.print_report()
    """

    # Mean time (seconds) below which a benchmark is rated excellent/good/acceptable
    THRESHOLDS = (0.1, 0.5, 2.0)

    def __init__(self, verbose: bool = True):
        self.verbose = verbose
        self.benchmarks: List[Dict] = []
        self.results: List[BenchmarkResult] = []

    def add(self, name: str, func: Callable, iterations: int = 5,
            args: tuple = (), kwargs: dict = None) -> "Benchmark":
        """Add a benchmark test."""
        self.benchmarks.append({
            "name": name,
            "func": func,
            "iterations": iterations,
            "args": args,
            "kwargs": kwargs or {}
        })
        return self

    def run(self) -> List[BenchmarkResult]:
        """Run all benchmarks; failed iterations are reported and skipped."""
        self.results = []

        for bench in self.benchmarks:
            if self.verbose:
                print(f"Running benchmark: {bench['name']}...")
            times = []

            for i in range(bench['iterations']):
                start = time.perf_counter()
                try:
                    bench['func'](*bench['args'], **bench['kwargs'])
                except Exception as e:
                    print(f"  Iteration {i + 1} failed: {e}")
                    continue
                times.append(time.perf_counter() - start)
                if self.verbose:
                    print(f"  Iteration {i + 1}: {times[-1] * 1000:.1f}ms")

            self.results.append(BenchmarkResult(
                name=bench['name'],
                iterations=bench['iterations'],
                times=times
            ))

        return self.results

    def rating(self, result: BenchmarkResult) -> str:
        excellent, good, acceptable = self.THRESHOLDS
        if not result.times:
            return "❌ FAILED"
        if result.mean < excellent:
            return "✅ EXCELLENT"
        if result.mean < good:
            return "✅ GOOD"
        if result.mean < acceptable:
            return "⚠️ ACCEPTABLE"
        return "❌ NEEDS IMPROVEMENT"

    def print_report(self) -> None:
        """Print benchmark results."""
        if not self.results:
            print("No benchmark results. Run benchmarks first.")
            return

        print("\n" + "=" * 80)
        print("BENCHMARK REPORT")
        print("=" * 80)

        for result in self.results:
            print(f"\n🏃 {result.name}")
            print(f"   Iterations: {result.iterations} (successful: {len(result.times)})")
            print(f"   Mean: {result.mean * 1000:.1f}ms | Median: {result.median * 1000:.1f}ms")
            print(f"   Range: {result.min_time * 1000:.1f}ms - {result.max_time * 1000:.1f}ms")
            print(f"   Std Dev: {result.std_dev * 1000:.1f}ms")
            print(f"   Status: {self.rating(result)}")

        print("\n" + "=" * 80)

    def get_results_dict(self) -> List[dict]:
        """Get results as list of dictionaries."""
        return [r.to_dict() for r in self.results]


# =============================================================================
# SYNTHETIC FLEET
# =============================================================================

def build_synthetic_fleet(stores: int = 5,
                          employees_per_store: int = 12,
                          week_start: date = date(2024, 1, 15),
                          seed: int = 42) -> Dict[str, list]:
    """
    Generate a reproducible multi-store week of shifts.

    Each employee gets three to six random shifts, so the fleet contains
    a realistic mix of overtime, short rest and understaffed days.

    Returns:
        Dictionary with "employees", "stores" and "shifts" lists
    """
    from models.employee import Employee, EmployeeRole
    from models.shift import Shift
    from models.store import Store, standard_opening_hours

    rng = random.Random(seed)
    starts = ["06:00", "07:00", "09:00", "11:00", "14:00", "16:00"]
    lengths = [4, 6, 8, 9]
    roles = [EmployeeRole.JUNIOR, EmployeeRole.SENIOR, EmployeeRole.SENIOR, EmployeeRole.MANAGER]

    fleet_stores = [
        Store(id=f"store-{s}", name=f"Store {s}", opening_hours=standard_opening_hours(sunday=True))
        for s in range(1, stores + 1)
    ]
    fleet_employees = []
    fleet_shifts = []
    shift_counter = 0

    for store in fleet_stores:
        for n in range(1, employees_per_store + 1):
            employee = Employee(
                id=f"{store.id}-emp-{n}",
                first_name=f"Employee{n}",
                last_name=store.name.replace(" ", ""),
                role=rng.choice(roles),
                store_id=store.id,
                contract_hours=rng.choice([None, 20.0, 32.0, 40.0]),
            )
            fleet_employees.append(employee)

            for offset in sorted(rng.sample(range(7), rng.randint(3, 6))):
                shift_counter += 1
                start = rng.choice(starts)
                end_hour = int(start[:2]) + rng.choice(lengths)
                fleet_shifts.append(Shift(
                    id=f"shift-{shift_counter}",
                    employee_id=employee.id,
                    store_id=store.id,
                    date=week_start + timedelta(days=offset),
                    start_time=start,
                    end_time=f"{min(end_hour, 23):02d}:00",
                    break_duration=30 if end_hour - int(start[:2]) >= 6 else 0,
                ))

    return {"employees": fleet_employees, "stores": fleet_stores, "shifts": fleet_shifts}


# =============================================================================
# SYSTEM BENCHMARK (MAIN)
# =============================================================================

def run_system_benchmark(stores: int = 5, employees_per_store: int = 12,
                         iterations: int = 5) -> List[dict]:
    """
    Time detection, balancing and validation on a synthetic fleet.
    """
    from config import AppConfig
    from engine.coordinator import ShiftEngine

    week_start = date(2024, 1, 15)
    fleet = build_synthetic_fleet(stores, employees_per_store, week_start)

    print("=" * 80)
    print("SHIFT ENGINE - BENCHMARK SUITE")
    print("=" * 80)
    print(f"Started at: {datetime.now().isoformat()}")
    print(f"Fleet: {len(fleet['stores'])} stores, {len(fleet['employees'])} employees, "
          f"{len(fleet['shifts'])} shifts")
    print()

    engine = ShiftEngine(config=AppConfig(), verbose=False, clock=lambda: week_start)
    engine.refresh(fleet["employees"], fleet["stores"], fleet["shifts"])

    def benchmark_validation():
        """Validate every suggestion, starting from a cold cache."""
        engine.cache.invalidate()
        report = engine.last_report or engine.compute_balancing(week_start)
        for suggestion in report.suggestions:
            affected = [
                s for s in engine.state.all_shifts()
                if s.employee_id == suggestion.source_employee_id
            ]
            engine.validate(suggestion, affected)

    bench = Benchmark()
    bench.add("Conflict Detection (1 week)", engine.detect_conflicts,
              iterations=iterations, kwargs={"reference_date": week_start})
    bench.add("Workload Balancing (1 week)", engine.compute_balancing,
              iterations=iterations, args=(week_start,))
    bench.add("Suggestion Validation (cold cache)", benchmark_validation,
              iterations=iterations)

    bench.run()
    bench.print_report()

    print_profile_report()

    return bench.get_results_dict()


if __name__ == "__main__":
    run_system_benchmark()
