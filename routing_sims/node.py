from dataclasses import dataclass, field

NAME_BITS = 63


@dataclass(eq=False)
class Node:
    name: int
    malicious: bool = False
    age: int = 0


def new_node_name(rng) -> int:
    return int(rng.integers(0, 2**NAME_BITS))


@dataclass(eq=False)
class Section:
    id: int
    members: dict = field(default_factory=dict)   # name -> Node

    @property
    def size(self) -> int:
        return len(self.members)

    def add(self, node: Node):
        if node.name in self.members:
            raise KeyError(f"node {node.name} already in section {self.id}")
        self.members[node.name] = node

    def remove(self, name: int) -> Node:
        return self.members.pop(name)

    def nodes(self):
        return list(self.members.values())

    def honest(self):
        return [n for n in self.members.values() if not n.malicious]

    def malicious(self):
        return [n for n in self.members.values() if n.malicious]

    @property
    def malicious_count(self) -> int:
        return sum(1 for n in self.members.values() if n.malicious)

    def malicious_fraction(self) -> float:
        return self.malicious_count / self.size if self.members else 0.0

    def sorted_names(self):
        return sorted(self.members)
