import logging
from dataclasses import dataclass
from enum import Enum, auto

logger = logging.getLogger(__name__)


class ActionKind(Enum):
    JOIN = auto()       # add a fresh malicious node to a section
    RESET = auto()      # drop a malicious identity and rejoin as a fresh node (age 0)


@dataclass(frozen=True)
class AttackAction:
    kind: ActionKind
    section_id: int
    node_name: int | None = None    # RESET only


@dataclass
class AttackBehavior:
    # untargetted | simple_targetted
    mode: str = "untargetted"
    initial_nodes: int = 0          # malicious nodes joined when the attack starts
    join_rate: float = 0.0          # expected malicious joins per step

    @classmethod
    def from_config(cls, cfg):
        return cls(mode=cfg.attack, initial_nodes=cfg.initial_malicious,
                   join_rate=cfg.attack_join_rate)


class Attacker:
    """
    Attacker model with two behaviours:
    - untargetted: malicious nodes join uniformly random sections and never reset.
    - simple_targetted: one target section; joins go there, and after every step
      each malicious node outside the target resets and rejoins aiming at it.

    Only the target's id is held. The network is read, never mutated; it applies
    the returned actions itself.

    Resetting zeroes a node's age, so under the age quorum targeting brings no
    advantage; this strategy is only meaningful against the simple quorum.
    """
    def __init__(self, beh: AttackBehavior):
        self.b = beh
        self.target_section = None

    # --- helpers ---
    def _joins(self, rng) -> int:
        return int(rng.poisson(self.b.join_rate)) if self.b.join_rate > 0 else 0

    def _ensure_target(self, net, rng) -> int:
        if self.target_section in net.sections:
            return self.target_section
        best, best_count = None, 0
        for sec in net.sections_in_order():
            c = sec.malicious_count
            if c > best_count:
                best, best_count = sec.id, c
        if best is None:
            best = net.random_section(rng)
        logger.debug("step %d: target section %s -> %d (%d malicious)",
                     net.step, self.target_section, best, best_count)
        self.target_section = best
        return best

    def _dest(self, net, rng) -> int:
        if self.b.mode == "untargetted":
            return net.random_section(rng)
        if self.b.mode == "simple_targetted":
            return self._ensure_target(net, rng)
        raise ValueError(f"unknown attack mode {self.b.mode!r}")

    # --- public API ---
    def initial_actions(self, net, rng):
        return [AttackAction(ActionKind.JOIN, self._dest(net, rng))
                for _ in range(self.b.initial_nodes)]

    def on_step(self, net, rng):
        actions = [AttackAction(ActionKind.JOIN, self._dest(net, rng))
                   for _ in range(self._joins(rng))]
        if self.b.mode != "simple_targetted":
            return actions

        target = self._ensure_target(net, rng)
        for sec in net.sections_in_order():
            if sec.id == target:
                continue
            for node in sec.malicious():
                actions.append(AttackAction(ActionKind.RESET, target, node.name))
        return actions
