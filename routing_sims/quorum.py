import math
from dataclasses import dataclass

# Float tolerance for the ceiling rule, so that e.g. 0.7 * 10 needs 7 nodes, not 8.
_EPS = 1e-9


@dataclass(frozen=True)
class QuorumOutcome:
    reached: bool
    correct: bool


@dataclass(frozen=True)
class QuorumRule:
    """
    Quorum decision for one section.

    - mode="simple": reached iff responding >= ceil(quorum_prop * total)
    - mode="age":    the count condition AND
                     sum(age responding) >= age_quorum_prop * sum(age all)

    A decision is correct iff honest responders strictly outnumber malicious
    ones (ties are counted as incorrect).
    """
    mode: str = "simple"                 # simple | age
    quorum_prop: float = 0.5
    age_quorum_prop: float = 0.5

    @classmethod
    def from_config(cls, cfg):
        return cls(mode=cfg.quorum, quorum_prop=cfg.quorum_prop,
                   age_quorum_prop=cfg.age_quorum_prop)

    @classmethod
    def for_data_groups(cls, cfg):
        """Same rule kind, with the data-group count proportion."""
        return cls(mode=cfg.quorum, quorum_prop=cfg.group_quorum_prop,
                   age_quorum_prop=cfg.age_quorum_prop)

    # --- thresholds ---
    def quorum_size(self, total: int) -> int:
        """Responding nodes needed among `total` (ceiling rule)."""
        return max(0, math.ceil(self.quorum_prop * total - _EPS))

    def count_threshold(self, total: int) -> int:
        """
        Count threshold used by the closed forms. With equal ages the age
        fraction equals the count fraction, so the age rule needs the larger
        of its two proportions.
        """
        prop = self.quorum_prop
        if self.mode == "age":
            prop = max(prop, self.age_quorum_prop)
        return max(0, math.ceil(prop * total - _EPS))

    def min_viable_size(self) -> int:
        return int(math.floor(1.0 / self.quorum_prop)) + 1

    # --- evaluation ---
    def evaluate(self, responding, silent=()) -> QuorumOutcome:
        responding = list(responding)
        silent = list(silent)
        total = len(responding) + len(silent)
        honest = sum(1 for n in responding if not n.malicious)
        correct = honest > len(responding) - honest
        if total == 0:
            return QuorumOutcome(reached=False, correct=correct)

        reached = len(responding) >= self.quorum_size(total)
        if self.mode == "age" and reached:
            reached = self._age_reached(responding, silent)
        elif self.mode not in ("simple", "age"):
            raise ValueError(f"unknown quorum mode {self.mode!r}")
        return QuorumOutcome(reached=reached, correct=correct)

    def _age_reached(self, responding, silent) -> bool:
        age_resp = sum(n.age for n in responding)
        age_all = age_resp + sum(n.age for n in silent)
        if age_all == 0:
            # all members are fresh: every node weighs the same
            return len(responding) >= self.age_quorum_prop * (len(responding) + len(silent)) - _EPS
        return age_resp >= self.age_quorum_prop * age_all - _EPS


def section_outcome(rule: QuorumRule, section):
    """
    Worst case for one section against its malicious members.

    Returns (lost, compromised):
      lost:        honest members alone cannot reach quorum (malicious withhold)
      compromised: malicious members alone reach quorum, an incorrect decision
    """
    honest, malicious = section.honest(), section.malicious()
    lost = not rule.evaluate(honest, malicious).reached
    bad = rule.evaluate(malicious, honest)
    compromised = bad.reached and not bad.correct
    return lost, compromised


def evaluate_network(rule: QuorumRule, network):
    lost = compromised = False
    for sec in network.sections_in_order():
        l, c = section_outcome(rule, sec)
        lost |= l
        compromised |= c
    return lost, compromised


def double_vote_possible(rule: QuorumRule, section) -> bool:
    """
    Whether the malicious members could back two conflicting decisions that
    both reach quorum: the honest members split between the two sides and
    every malicious member votes on both. For the age rule the honest age is
    treated as freely divisible, which makes this an upper bound.
    """
    if rule.mode not in ("simple", "age"):
        raise ValueError(f"unknown quorum mode {rule.mode!r}")
    honest, malicious = section.honest(), section.malicious()
    if not malicious:
        return False
    need = max(0, rule.quorum_size(section.size) - len(malicious))
    if 2 * need > len(honest):
        return False
    if rule.mode == "age":
        age_m = sum(n.age for n in malicious)
        age_h = sum(n.age for n in honest)
        if age_m + age_h > 0:
            need_age = max(0.0, rule.age_quorum_prop * (age_m + age_h) - age_m)
            return 2 * need_age <= age_h + _EPS
    return True


def double_vote_sections(rule: QuorumRule, network) -> int:
    return sum(1 for sec in network.sections_in_order() if double_vote_possible(rule, sec))


def data_groups(section, group_size: int):
    """
    Groups of `group_size` nodes adjacent in name order, one per window; each
    holds the data whose keys fall among its names. A section no larger than
    `group_size` is a single group.
    """
    names = section.sorted_names()
    if len(names) <= group_size:
        return [names] if names else []
    return [names[i:i + group_size] for i in range(len(names) - group_size + 1)]


def compromised_data_fraction(group_rule: QuorumRule, network, group_size: int) -> float:
    """Share of all data groups in which the malicious members alone reach quorum."""
    total = bad = 0
    for sec in network.sections_in_order():
        for names in data_groups(sec, group_size):
            members = [sec.members[n] for n in names]
            malicious = [n for n in members if n.malicious]
            honest = [n for n in members if not n.malicious]
            out = group_rule.evaluate(malicious, honest)
            total += 1
            bad += out.reached and not out.correct
    return bad / total if total else 0.0
