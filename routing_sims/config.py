import math
from dataclasses import dataclass

from .errors import ConfigError

TOOLS = ("direct", "structure", "full_sim")
QUORUMS = ("simple", "age")
ATTACKS = ("untargetted", "simple_targetted")
EXECUTORS = ("process", "thread")
JOIN_RESTRICTIONS = ("none", "one_per_age")


def _in_unit(x) -> bool:
    return 0.0 < x <= 1.0


@dataclass
class SimConfig:
    # Tool & rules
    tool: str = "full_sim"              # direct | structure | full_sim
    quorum: str = "simple"              # simple | age
    quorum_prop: float = 0.5            # count proportion needed for quorum
    age_quorum_prop: float = 0.5        # age proportion (age quorum only)
    attack: str = "untargetted"         # untargetted | simple_targetted
    any_section: bool = True            # closed forms: any section vs one section

    # Network shape
    initial_size: int = 400
    min_size: int = 8
    max_size: int = 20

    # Churn (per step)
    join_rate: float = 2.0              # expected honest joins
    leave_rate: float = 0.002           # per-node leave probability

    # Ageing relocation
    relocation_interval: int = 1        # relocate every N steps
    relocation_age: int = 16            # nodes older than this are relocated

    # Joins
    join_restriction: str = "none"      # none | one_per_age

    # Data groups (inside each section)
    group_size: int = 8                 # nodes holding each piece of data
    group_quorum_prop: float = 0.5

    # Adversary
    malicious_fraction: float = 0.1
    malicious_join_rate: float | None = None   # default keeps joiners at malicious_fraction

    # Time
    warmup_steps: int = 20
    steps: int = 100
    structure_steps: int = 100
    evaluate_every_step: bool = True

    # Monte Carlo
    repetitions: int = 100
    seed: int = 42
    workers: int = 1
    executor: str = "process"           # process | thread
    deadline_s: float | None = None
    keep_runs: bool = False
    confidence: float = 0.95

    @property
    def initial_malicious(self) -> int:
        return int(round(self.malicious_fraction * self.initial_size))

    @property
    def initial_honest(self) -> int:
        return self.initial_size - self.initial_malicious

    @property
    def attack_join_rate(self) -> float:
        if self.malicious_join_rate is not None:
            return self.malicious_join_rate
        f = self.malicious_fraction
        if f <= 0.0 or f >= 1.0:
            return 0.0
        return self.join_rate * f / (1.0 - f)

    def min_viable_size(self) -> int:
        """Smallest section in which one node cannot reach quorum alone."""
        return int(math.floor(1.0 / self.quorum_prop)) + 1

    def validate(self) -> "SimConfig":
        if self.tool not in TOOLS:
            raise ConfigError(f"unknown tool {self.tool!r}; expected one of {TOOLS}")
        if self.quorum not in QUORUMS:
            raise ConfigError(f"unknown quorum {self.quorum!r}; expected one of {QUORUMS}")
        if self.attack not in ATTACKS:
            raise ConfigError(f"unknown attack {self.attack!r}; expected one of {ATTACKS}")
        if self.executor not in EXECUTORS:
            raise ConfigError(f"unknown executor {self.executor!r}; expected one of {EXECUTORS}")

        if not _in_unit(self.quorum_prop):
            raise ConfigError(f"quorum_prop must be in (0, 1], got {self.quorum_prop}")
        if self.quorum == "age" and not _in_unit(self.age_quorum_prop):
            raise ConfigError(f"age_quorum_prop must be in (0, 1], got {self.age_quorum_prop}")

        if self.min_size < self.min_viable_size():
            raise ConfigError(
                f"min_size={self.min_size} is below {self.min_viable_size()}, the smallest "
                f"section where a single node cannot reach quorum at quorum_prop={self.quorum_prop}"
            )
        if self.max_size < 2 * self.min_size - 1:
            raise ConfigError(
                f"max_size={self.max_size} must be at least 2*min_size-1={2 * self.min_size - 1} "
                "so both halves of a split stay viable"
            )

        f = self.malicious_fraction
        if not (0.0 <= f <= 1.0):
            raise ConfigError(f"malicious_fraction must be in [0, 1], got {f}")
        if self.tool != "direct" and f >= 1.0:
            raise ConfigError("simulated tools need honest nodes; malicious_fraction must be < 1")
        if self.malicious_join_rate is not None and self.malicious_join_rate < 0:
            raise ConfigError(f"malicious_join_rate must be >= 0, got {self.malicious_join_rate}")

        if self.join_rate < 0:
            raise ConfigError(f"join_rate must be >= 0, got {self.join_rate}")
        if not (0.0 <= self.leave_rate <= 1.0):
            raise ConfigError(f"leave_rate must be in [0, 1], got {self.leave_rate}")
        if self.relocation_interval < 1:
            raise ConfigError(f"relocation_interval must be >= 1, got {self.relocation_interval}")
        if self.relocation_age < 0:
            raise ConfigError(f"relocation_age must be >= 0, got {self.relocation_age}")
        if self.join_restriction not in JOIN_RESTRICTIONS:
            raise ConfigError(f"unknown join_restriction {self.join_restriction!r}; "
                              f"expected one of {JOIN_RESTRICTIONS}")
        if self.group_size < 1:
            raise ConfigError(f"group_size must be >= 1, got {self.group_size}")
        if not _in_unit(self.group_quorum_prop):
            raise ConfigError(f"group_quorum_prop must be in (0, 1], got {self.group_quorum_prop}")

        if self.tool != "direct" and self.initial_honest < self.min_size:
            raise ConfigError(
                f"initial network has {self.initial_honest} honest nodes, "
                f"fewer than min_size={self.min_size}"
            )
        if min(self.warmup_steps, self.steps, self.structure_steps) < 0:
            raise ConfigError("step counts must be >= 0")
        if self.tool == "full_sim" and self.repetitions <= 0:
            raise ConfigError(f"repetitions must be > 0, got {self.repetitions}")
        if self.seed < 0:
            raise ConfigError(f"seed must be >= 0, got {self.seed}")
        if not (0.0 < self.confidence < 1.0):
            raise ConfigError(f"confidence must be in (0, 1), got {self.confidence}")
        return self
