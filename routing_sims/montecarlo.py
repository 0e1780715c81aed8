"""
Repeated independent simulation runs.

Each run gets its own index; run `i` derives its random stream from
`(seed, i)` only, so runs can execute in any order, on any worker, and still
reduce to the same totals. Results are summed after collection; no counter is
shared between runs.
"""
import logging
import time
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from functools import reduce

from .metrics import Series
from .results import AggregateStats

logger = logging.getLogger(__name__)


@dataclass
class MonteCarloResults:
    stats: AggregateStats
    results: list = field(default_factory=list)     # SimulationResult, by run index
    requested: int = 0

    @property
    def skipped(self) -> int:
        return self.requested - self.stats.samples

    def series(self) -> dict:
        """Cumulative estimates after each completed run, in run-index order."""
        lost, comp = Series("p_lost_estimate"), Series("p_compromised_estimate")
        acc = AggregateStats()
        for k, r in enumerate(self.results, start=1):
            acc = acc + AggregateStats.of(r)
            lost.add_point(k, acc.p_lost)
            comp.add_point(k, acc.p_compromised)
        return {lost.name: lost, comp.name: comp}


class MonteCarloRunner:
    def __init__(self, cfg):
        self.cfg = cfg

    def _deadline(self):
        if self.cfg.deadline_s is None:
            return None
        return time.monotonic() + self.cfg.deadline_s

    def run(self, run_fn) -> MonteCarloResults:
        """Call `run_fn(cfg, i)` for i in range(repetitions) and reduce."""
        n = self.cfg.repetitions
        deadline = self._deadline()
        if self.cfg.workers <= 1:
            results = self._run_serial(run_fn, n, deadline)
        else:
            results = self._run_pool(run_fn, n, deadline)

        results.sort(key=lambda r: r.run_index)
        stats = reduce(lambda a, b: a + b, (AggregateStats.of(r) for r in results), AggregateStats())
        out = MonteCarloResults(stats=stats, results=results, requested=n)
        if out.skipped:
            logger.warning("deadline reached: %d of %d runs completed (seed=%d)",
                           stats.samples, n, self.cfg.seed)
        return out

    def _run_serial(self, run_fn, n, deadline):
        results = []
        for i in range(n):
            if deadline is not None and time.monotonic() >= deadline:
                break
            results.append(run_fn(self.cfg, i))
        return results

    def _run_pool(self, run_fn, n, deadline):
        pool_cls = ProcessPoolExecutor if self.cfg.executor == "process" else ThreadPoolExecutor
        results = []
        with pool_cls(max_workers=self.cfg.workers) as pool:
            pending = {pool.submit(run_fn, self.cfg, i) for i in range(n)}
            while pending:
                timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
                done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
                results.extend(f.result() for f in done)
                if deadline is not None and time.monotonic() >= deadline:
                    for f in pending:
                        f.cancel()
                    break
        return results
