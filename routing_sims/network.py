import logging

import numpy as np

from .attack import ActionKind
from .errors import NetworkError
from .node import Node, Section, new_node_name

logger = logging.getLogger(__name__)


class Network:
    """
    Sections of nodes under churn, ageing and relocation.

    Simplifications: joins, leaves, splits and merges are instantaneous; node
    names are random numbers; joining nodes land in a uniformly random section.

    `order` lists section ids; neighbours in this list are the merge candidates,
    and the two halves of a split take their parent's place.
    """

    def __init__(self, cfg, ageing: bool = True):
        self.cfg = cfg
        self.min_size = cfg.min_size
        self.max_size = cfg.max_size
        self.ageing = ageing
        self.sections = {}      # id -> Section
        self.order = []
        self.step = 0
        self.refused_joins = 0
        self._where = {}        # node name -> section id
        self._next_id = 0

    @classmethod
    def bootstrap(cls, cfg, honest: int, rng, ageing: bool = True):
        """All honest nodes in one section, split until every section fits."""
        net = cls(cfg, ageing=ageing)
        sec = net._new_section()
        net.order.append(sec.id)
        for _ in range(honest):
            net.add_node(net.fresh_node(rng), sec.id)
        net._split_oversized()
        return net

    # === Queries ===
    def sections_in_order(self):
        return [self.sections[sid] for sid in self.order]

    def section_of(self, name: int) -> Section:
        return self.sections[self._where[name]]

    def node_count(self) -> int:
        return len(self._where)

    def malicious_count(self) -> int:
        return sum(s.malicious_count for s in self.sections.values())

    def sizes(self):
        return [self.sections[sid].size for sid in self.order]

    def random_section(self, rng, exclude=None) -> int:
        ids = self.order if exclude is None else [sid for sid in self.order if sid != exclude]
        return ids[int(rng.integers(0, len(ids)))]

    # === Node operations ===
    def fresh_node(self, rng, malicious: bool = False) -> Node:
        name = new_node_name(rng)
        while name in self._where:
            name = new_node_name(rng)
        return Node(name=name, malicious=malicious)

    def add_node(self, node: Node, section_id: int):
        self.sections[section_id].add(node)
        self._where[node.name] = section_id

    def remove_node(self, name: int) -> Node:
        sid = self._where.pop(name)
        return self.sections[sid].remove(name)

    def can_join(self, node: Node, section_id: int) -> bool:
        """
        Join restriction. With "one_per_age", a section above min_size takes
        a node of age 0 or 1 only while it holds fewer than two of that age.
        """
        if self.cfg.join_restriction == "none":
            return True
        if self.cfg.join_restriction != "one_per_age":
            raise ValueError(f"unknown join restriction {self.cfg.join_restriction!r}")
        sec = self.sections[section_id]
        if sec.size <= self.min_size or node.age > 1:
            return True
        return sum(1 for n in sec.members.values() if n.age == node.age) < 2

    def join(self, node: Node, section_id: int) -> bool:
        """Add a joining node unless the section refuses it."""
        if not self.can_join(node, section_id):
            self.refused_joins += 1
            return False
        self.add_node(node, section_id)
        return True

    # === Structure ===
    def _new_section(self, members=None) -> Section:
        sec = Section(id=self._next_id, members=dict(members or {}))
        self._next_id += 1
        self.sections[sec.id] = sec
        for name in sec.members:
            self._where[name] = sec.id
        return sec

    def split_section(self, section_id: int):
        """Split by sorted node name; returns (left_id, right_id)."""
        old = self.sections.pop(section_id)
        names = old.sorted_names()
        half = len(names) // 2
        left = self._new_section({n: old.members[n] for n in names[:half]})
        right = self._new_section({n: old.members[n] for n in names[half:]})
        i = self.order.index(section_id)
        self.order[i:i + 1] = [left.id, right.id]
        logger.debug("split section %d (%d) -> %d (%d) + %d (%d)",
                     section_id, old.size, left.id, left.size, right.id, right.size)
        return left.id, right.id

    def merge_sections(self, a: int, b: int) -> int:
        sa, sb = self.sections.pop(a), self.sections.pop(b)
        members = dict(sa.members)
        members.update(sb.members)
        merged = self._new_section(members)
        ia, ib = self.order.index(a), self.order.index(b)
        lo, hi = min(ia, ib), max(ia, ib)
        del self.order[hi]
        self.order[lo] = merged.id
        logger.debug("merged sections %d (%d) + %d (%d) -> %d (%d)",
                     a, sa.size, b, sb.size, merged.id, merged.size)
        return merged.id

    def _split_oversized(self):
        while True:
            big = [sid for sid in self.order if self.sections[sid].size > self.max_size]
            if not big:
                return
            for sid in big:
                self.split_section(sid)

    def enforce_bounds(self):
        """
        Merge undersized sections, then split oversized ones.

        Each merge pass is planned from a snapshot of the sizes and applied as
        one batch; passes repeat until no section is below min_size. Splits
        then repeat until none is above max_size. With
        max_size >= 2*min_size-1 no split half is undersized.
        """
        while True:
            sizes = {sid: self.sections[sid].size for sid in self.order}
            small = [sid for sid in self.order if sizes[sid] < self.min_size]
            if not small:
                break
            if len(self.order) == 1:
                raise NetworkError(
                    f"single section with {sizes[small[0]]} nodes is below min_size={self.min_size} "
                    f"and has nothing to merge into (step {self.step})"
                )

            claimed, merges = set(), []
            for sid in small:
                if sid in claimed:
                    continue
                i = self.order.index(sid)
                neighbours = [self.order[j] for j in (i - 1, i + 1)
                              if 0 <= j < len(self.order) and self.order[j] not in claimed]
                if not neighbours:
                    continue    # left for the next pass
                other = min(neighbours, key=lambda n: sizes[n])
                claimed.update((sid, other))
                merges.append((sid, other))
            for a, b in merges:
                self.merge_sections(a, b)

        self._split_oversized()

    # === Step phases ===
    def _churn(self, rng):
        joins = int(rng.poisson(self.cfg.join_rate)) if self.cfg.join_rate > 0 else 0
        for _ in range(joins):
            self.join(self.fresh_node(rng), self.random_section(rng))

        if self.cfg.leave_rate > 0 and self._where:
            names = list(self._where)
            leaving = np.flatnonzero(rng.random(len(names)) < self.cfg.leave_rate)
            for k in leaving:
                self.remove_node(names[k])

    def _age(self):
        for sec in self.sections.values():
            for node in sec.members.values():
                node.age += 1

    def _relocate(self, rng):
        """
        Every node older than relocation_age moves, age kept, to a random other
        section. No section drops below min_size this way; when not all of its
        eligible nodes can leave, the oldest go first.
        """
        if len(self.order) < 2:
            return
        moves = []
        for sec in self.sections_in_order():
            room = sec.size - self.min_size
            if room <= 0:
                continue    # relocation blocked to keep the section viable
            eligible = [n for n in sec.members.values() if n.age > self.cfg.relocation_age]
            eligible.sort(key=lambda n: (-n.age, n.name))
            for node in eligible[:room]:
                moves.append((node.name, self.random_section(rng, exclude=sec.id)))
        for name, dest in moves:
            self.add_node(self.remove_node(name), dest)
        if moves:
            logger.debug("step %d: relocated %d nodes", self.step, len(moves))

    def apply_actions(self, actions, rng):
        for act in actions:
            dest = act.section_id if act.section_id in self.sections else self.random_section(rng)
            if act.kind is ActionKind.RESET:
                if act.node_name not in self._where:
                    continue
                # the old identity leaves and a fresh one (age 0) joins; when the
                # section refuses the newcomer the old identity stays put
                node = self.fresh_node(rng, malicious=True)
                if not self.can_join(node, dest):
                    self.refused_joins += 1
                    continue
                self.remove_node(act.node_name)
                self.add_node(node, dest)
            else:
                self.join(self.fresh_node(rng, malicious=True), dest)

    def advance(self, rng, attacker=None):
        """One step: churn, ageing, relocation, attack phase, size bounds."""
        self.step += 1
        self._churn(rng)
        if self.ageing:
            self._age()
            if self.step % self.cfg.relocation_interval == 0:
                self._relocate(rng)
        if attacker is not None:
            self.apply_actions(attacker.on_step(self, rng), rng)
        self.enforce_bounds()
