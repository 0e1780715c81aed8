"""Calculation tools and tool selection."""
import logging
from collections import Counter

import numpy as np

from . import prob
from .config import SimConfig
from .network import Network
from .quorum import QuorumRule
from .results import ToolResult
from .sim_core import FullSimTool

logger = logging.getLogger(__name__)


class DirectCalcTool:
    """
    Assumes every section has exactly `min_size` nodes; no simulation, no
    targeting, no ageing. Exact under that assumption.
    """
    name = "direct"

    def __init__(self, cfg: SimConfig):
        self.cfg = cfg.validate()
        self.rule = QuorumRule.from_config(cfg)

    def num_sections(self) -> float:
        return self.cfg.initial_size / self.cfg.min_size

    def calc(self) -> ToolResult:
        n, f = self.cfg.min_size, self.cfg.malicious_fraction
        pl, pc = prob.section_probs(self.rule, n, f)
        logger.debug("n=%d f=%.3f threshold=%d p_lost=%.3e p_compromised=%.3e",
                     n, f, self.rule.count_threshold(n), pl, pc)
        if self.cfg.any_section:
            k = self.num_sections()
            pl, pc = prob.any_of(pl, k), prob.any_of(pc, k)
        return ToolResult(tool=self.name, p_lost_quorum=pl, p_compromised_quorum=pc,
                          extra={"section_size": n, "any_section": self.cfg.any_section})


class SimStructureTool:
    """
    Simulates how nodes divide into sections (churn, splits, merges; no ageing,
    no attack), then applies the closed form to each resulting section size.
    Refines DirectCalcTool's fixed-size assumption; same other limitations.
    """
    name = "structure"

    def __init__(self, cfg: SimConfig):
        self.cfg = cfg.validate()
        self.rule = QuorumRule.from_config(cfg)

    def size_distribution(self):
        """Sorted (size, number_of_sections) pairs after the structure run."""
        rng = np.random.default_rng(self.cfg.seed)
        # every node is honest here; malicious ones are assumed afterwards
        net = Network.bootstrap(self.cfg, self.cfg.initial_size, rng, ageing=False)
        for _ in range(self.cfg.structure_steps):
            net.advance(rng)
        return sorted(Counter(net.sizes()).items())

    def calc(self) -> ToolResult:
        dist = self.size_distribution()
        pl, pc = prob.weighted(dist, self.rule, self.cfg.malicious_fraction, self.cfg.any_section)
        logger.info("structure: %d sections, sizes %s", sum(c for _, c in dist), dist)
        return ToolResult(tool=self.name, p_lost_quorum=pl, p_compromised_quorum=pc,
                          extra={"size_distribution": [[int(n), int(c)] for n, c in dist],
                                 "any_section": self.cfg.any_section})


TOOL_CLASSES = {
    "direct": DirectCalcTool,
    "structure": SimStructureTool,
    "full_sim": FullSimTool,
}


def make_tool(cfg: SimConfig):
    cfg.validate()
    return TOOL_CLASSES[cfg.tool](cfg)
