"""
Exceptions raised by the routing simulations.

Configuration problems are reported before anything runs; failures inside a
simulation run carry the seed and run index needed to reproduce them.
"""


class RoutingSimError(Exception):
    """Base class for all simulation errors."""


class ConfigError(RoutingSimError, ValueError):
    """Invalid parameters, detected before any simulation runs."""


class NetworkError(ConfigError):
    """Network state that cannot keep the minimum section size (e.g. one undersized section)."""


class SimulationError(RoutingSimError):
    """A simulation run aborted. Never retried; rerun with `seed`/`run_index` to reproduce."""

    def __init__(self, message: str, seed: int, run_index: int):
        super().__init__(f"{message} (seed={seed}, run_index={run_index})")
        self.message = message
        self.seed = seed
        self.run_index = run_index

    def __reduce__(self):
        # keeps the error intact when raised inside a worker process
        return (self.__class__, (self.message, self.seed, self.run_index))
