import json
from dataclasses import dataclass, field

import pandas as pd


@dataclass
class Series:
    """One named metric as (step, value) points."""
    name: str
    x: list = field(default_factory=list)
    y: list = field(default_factory=list)

    def add_point(self, x, y):
        self.x.append(int(x))
        self.y.append(y)

    def __len__(self):
        return len(self.x)

    def to_dict(self) -> dict:
        return {"name": self.name, "x": list(self.x), "y": list(self.y)}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class Metrics:
    """
    Step-indexed timeline of one simulation run.

    Network-wide series: num_sections, num_nodes, num_malicious,
    most_malicious (largest per-section malicious fraction), lost, compromised,
    double_vote_sections (sections open to a double vote) and
    compromised_data_fraction (share of data groups the malicious nodes control).
    Per-section series are keyed by section id; a section only has points for
    the steps it existed in.
    """
    def __init__(self):
        self.num_sections = Series("num_sections")
        self.num_nodes = Series("num_nodes")
        self.num_malicious = Series("num_malicious")
        self.most_malicious = Series("most_malicious")
        self.lost = Series("lost")
        self.compromised = Series("compromised")
        self.double_vote_sections = Series("double_vote_sections")
        self.compromised_data_fraction = Series("compromised_data_fraction")
        self.section_sizes = {}         # section id -> Series
        self.section_malicious = {}     # section id -> Series (malicious fraction)

        self.first_lost_step = None
        self.first_compromised_step = None

    def update(self, step, net, lost=False, compromised=False, double_votes=0, data_fraction=0.0):
        sections = net.sections_in_order()
        self.num_sections.add_point(step, len(sections))
        self.num_nodes.add_point(step, net.node_count())
        self.num_malicious.add_point(step, net.malicious_count())
        self.most_malicious.add_point(step, max((s.malicious_fraction() for s in sections), default=0.0))
        self.lost.add_point(step, bool(lost))
        self.compromised.add_point(step, bool(compromised))
        self.double_vote_sections.add_point(step, int(double_votes))
        self.compromised_data_fraction.add_point(step, float(data_fraction))

        for sec in sections:
            key = str(sec.id)
            if key not in self.section_sizes:
                self.section_sizes[key] = Series(f"section_{key}_size")
                self.section_malicious[key] = Series(f"section_{key}_malicious")
            self.section_sizes[key].add_point(step, sec.size)
            self.section_malicious[key].add_point(step, sec.malicious_fraction())

        if lost and self.first_lost_step is None:
            self.first_lost_step = int(step)
        if compromised and self.first_compromised_step is None:
            self.first_compromised_step = int(step)

    def series(self) -> dict:
        return {s.name: s for s in (self.num_sections, self.num_nodes, self.num_malicious,
                                    self.most_malicious, self.lost, self.compromised,
                                    self.double_vote_sections, self.compromised_data_fraction)}

    def timeline_frame(self) -> pd.DataFrame:
        """Network-wide series as one row per step."""
        data = {"step": self.num_sections.x}
        for name, s in self.series().items():
            data[name] = s.y
        return pd.DataFrame(data)

    def to_dict(self) -> dict:
        return {
            "timeline": {name: s.to_dict() for name, s in self.series().items()},
            "section_sizes": {k: s.to_dict() for k, s in self.section_sizes.items()},
            "section_malicious": {k: s.to_dict() for k, s in self.section_malicious.items()},
            "first_lost_step": self.first_lost_step,
            "first_compromised_step": self.first_compromised_step,
        }
