import math
from dataclasses import dataclass, field, fields

from scipy.stats import binomtest


@dataclass(frozen=True)
class SimulationResult:
    """Outcome of one full simulation: did any section at any observed step lose/compromise quorum."""
    lost_quorum: bool
    compromised_quorum: bool
    run_index: int = 0
    steps_run: int = 0
    double_vote: bool = False           # some section could reach two conflicting decisions
    data_compromised: bool = False      # malicious nodes alone reached quorum in some data group


@dataclass(frozen=True)
class AggregateStats:
    lost: int = 0
    compromised: int = 0
    samples: int = 0
    double_vote: int = 0
    data_compromised: int = 0

    @classmethod
    def of(cls, result: SimulationResult):
        return cls(int(result.lost_quorum), int(result.compromised_quorum), 1,
                   int(result.double_vote), int(result.data_compromised))

    def __add__(self, other):
        return AggregateStats(self.lost + other.lost,
                              self.compromised + other.compromised,
                              self.samples + other.samples,
                              self.double_vote + other.double_vote,
                              self.data_compromised + other.data_compromised)

    def _rate(self, count: int) -> float:
        return count / self.samples if self.samples else 0.0

    @property
    def p_lost(self) -> float:
        return self._rate(self.lost)

    @property
    def p_compromised(self) -> float:
        return self._rate(self.compromised)

    @property
    def p_double_vote(self) -> float:
        return self._rate(self.double_vote)

    @property
    def p_data_compromise(self) -> float:
        return self._rate(self.data_compromised)

    @staticmethod
    def _std_error(p: float, n: int) -> float:
        return math.sqrt(p * (1.0 - p) / n) if n else float("nan")

    @property
    def std_error_lost(self) -> float:
        return self._std_error(self.p_lost, self.samples)

    @property
    def std_error_compromised(self) -> float:
        return self._std_error(self.p_compromised, self.samples)

    def confidence_interval(self, which: str = "lost", level: float = 0.95, method: str = "wilson"):
        k = {"lost": self.lost, "compromised": self.compromised,
             "double_vote": self.double_vote, "data_compromised": self.data_compromised}[which]
        if not self.samples:
            return (0.0, 1.0)
        ci = binomtest(k, self.samples).proportion_ci(confidence_level=level, method=method)
        return (max(0.0, float(ci.low)), min(1.0, float(ci.high)))


@dataclass
class ToolResult:
    tool: str
    p_lost_quorum: float
    p_compromised_quorum: float
    p_double_vote: float | None = None          # full simulation only
    p_data_compromise: float | None = None
    samples: int | None = None
    ci_lost: tuple | None = None
    ci_compromised: tuple | None = None
    std_error_lost: float | None = None
    std_error_compromised: float | None = None
    runs: list | None = None                 # per-run (lost, compromised) pairs
    series: dict = field(default_factory=dict)
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        out = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "series"}
        out["series"] = {k: s.to_dict() for k, s in self.series.items()}
        if self.runs is not None:
            out["runs"] = [list(r) for r in self.runs]
        return out
