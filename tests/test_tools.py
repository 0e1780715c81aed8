"""
Tests for the closed forms and the two analytic tools.
"""
from dataclasses import replace

import pytest
from scipy.stats import binom

from routing_sims import prob
from routing_sims.config import SimConfig
from routing_sims.errors import ConfigError
from routing_sims.quorum import QuorumRule
from routing_sims.sim_core import FullSimTool
from routing_sims.tools import DirectCalcTool, SimStructureTool, make_tool

SIMPLE = QuorumRule("simple", quorum_prop=0.5)


class TestClosedForms:
    def test_half_quorum_ten_nodes(self):
        # lost needs 6+ malicious, compromised needs 5+
        assert prob.p_lost(10, 0.5, 5) == pytest.approx(386 / 1024)
        assert prob.p_compromised(10, 0.5, 5) == pytest.approx(638 / 1024)

    def test_three_nodes(self):
        f = 0.1
        expected = 3 * f ** 2 * (1 - f) + f ** 3
        assert prob.p_compromised(3, f, 2) == pytest.approx(expected)
        assert prob.p_lost(3, f, 2) == pytest.approx(expected)

    def test_boundaries(self):
        assert prob.p_lost(10, 0.0, 5) == 0.0
        assert prob.p_compromised(10, 0.0, 5) == 0.0
        assert prob.p_lost(10, 1.0, 5) == pytest.approx(1.0)
        assert prob.p_compromised(10, 1.0, 5) == pytest.approx(1.0)
        assert prob.p_lost(0, 0.3, 0) == 1.0
        assert prob.p_compromised(0, 0.3, 0) == 0.0

    @pytest.mark.parametrize("fn", [prob.p_lost, prob.p_compromised])
    def test_increases_with_fraction(self, fn):
        values = [fn(12, f, 6) for f in (0.05, 0.1, 0.2, 0.3, 0.4)]
        assert values == sorted(values)
        assert values[0] < values[-1]

    def test_larger_sections_are_safer(self):
        assert prob.p_compromised(20, 0.1, 10) < prob.p_compromised(8, 0.1, 4)

    def test_any_of(self):
        assert prob.any_of(0.1, 1) == pytest.approx(0.1)
        assert prob.any_of(0.1, 2) == pytest.approx(0.19)
        assert prob.any_of(0.5, 0) == 0.0
        assert prob.any_of(0.0, 50) == 0.0

    def test_age_rule_uses_larger_threshold(self):
        age = QuorumRule("age", quorum_prop=0.5, age_quorum_prop=0.7)
        pl, pc = prob.section_probs(age, 10, 0.2)
        assert pc == pytest.approx(binom.sf(6, 10, 0.2))
        assert pl == pytest.approx(binom.sf(3, 10, 0.2))


class TestWeighted:
    def test_single_size_mean_is_section_prob(self):
        pl, pc = prob.weighted([(10, 4)], SIMPLE, 0.2, any_section=False)
        assert (pl, pc) == pytest.approx(prob.section_probs(SIMPLE, 10, 0.2))

    def test_single_size_any_section(self):
        pl, pc = prob.weighted([(10, 4)], SIMPLE, 0.2, any_section=True)
        el, ec = prob.section_probs(SIMPLE, 10, 0.2)
        assert pl == pytest.approx(prob.any_of(el, 4))
        assert pc == pytest.approx(prob.any_of(ec, 4))

    def test_mixed_sizes_weight_by_count(self):
        dist = [(8, 3), (12, 1)]
        _, pc = prob.weighted(dist, SIMPLE, 0.1, any_section=False)
        expected = 0.75 * prob.p_compromised(8, 0.1, 4) + 0.25 * prob.p_compromised(12, 0.1, 6)
        assert pc == pytest.approx(expected)

    def test_empty_distribution(self):
        assert prob.weighted([], SIMPLE, 0.1, any_section=True) == (0.0, 0.0)


class TestDirectCalcTool:
    def test_one_section(self):
        cfg = SimConfig(tool="direct", min_size=8, max_size=20, malicious_fraction=0.1,
                        any_section=False)
        res = DirectCalcTool(cfg).calc()
        assert res.tool == "direct"
        assert res.p_compromised_quorum == pytest.approx(binom.sf(3, 8, 0.1))
        assert res.p_lost_quorum == pytest.approx(binom.sf(4, 8, 0.1))
        assert res.samples is None

    def test_any_section_scales_with_network(self):
        cfg = SimConfig(tool="direct", initial_size=400, min_size=8, any_section=True)
        tool = DirectCalcTool(cfg)
        assert tool.num_sections() == 50
        one = binom.sf(3, 8, 0.1)
        assert tool.calc().p_compromised_quorum == pytest.approx(1 - (1 - one) ** 50)

    def test_zero_fraction(self):
        cfg = SimConfig(tool="direct", malicious_fraction=0.0)
        res = DirectCalcTool(cfg).calc()
        assert res.p_lost_quorum == 0.0
        assert res.p_compromised_quorum == 0.0

    def test_invalid_config_is_rejected(self):
        with pytest.raises(ConfigError):
            DirectCalcTool(SimConfig(tool="direct", quorum_prop=0.0))


class TestSimStructureTool:
    def test_distribution_accounts_for_every_node(self, small_cfg):
        cfg = replace(small_cfg, tool="structure", join_rate=0.0, leave_rate=0.0)
        dist = SimStructureTool(cfg).size_distribution()
        assert sum(n * c for n, c in dist) == cfg.initial_size
        assert all(cfg.min_size <= n <= cfg.max_size for n, _ in dist)
        assert [n for n, _ in dist] == sorted(n for n, _ in dist)

    def test_same_seed_same_distribution(self, small_cfg):
        cfg = replace(small_cfg, tool="structure")
        assert SimStructureTool(cfg).size_distribution() == SimStructureTool(cfg).size_distribution()

    def test_calc_matches_weighted(self, small_cfg):
        cfg = replace(small_cfg, tool="structure", any_section=False)
        tool = SimStructureTool(cfg)
        res = tool.calc()
        dist = [tuple(p) for p in res.extra["size_distribution"]]
        pl, pc = prob.weighted(dist, tool.rule, cfg.malicious_fraction, any_section=False)
        assert res.p_lost_quorum == pytest.approx(pl)
        assert res.p_compromised_quorum == pytest.approx(pc)

    def test_any_section_is_never_below_mean(self, small_cfg):
        cfg = replace(small_cfg, tool="structure")
        mean = SimStructureTool(replace(cfg, any_section=False)).calc()
        anyp = SimStructureTool(replace(cfg, any_section=True)).calc()
        assert anyp.p_compromised_quorum >= mean.p_compromised_quorum


@pytest.mark.parametrize("tool, cls", [
    ("direct", DirectCalcTool),
    ("structure", SimStructureTool),
    ("full_sim", FullSimTool),
])
def test_make_tool(small_cfg, tool, cls):
    assert isinstance(make_tool(replace(small_cfg, tool=tool)), cls)


def test_make_tool_rejects_unknown(small_cfg):
    with pytest.raises(ConfigError):
        make_tool(replace(small_cfg, tool="exact"))
