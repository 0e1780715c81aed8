import logging

import numpy as np

from .attack import AttackBehavior, Attacker
from .config import SimConfig
from .errors import SimulationError
from .metrics import Metrics
from .montecarlo import MonteCarloRunner
from .network import Network
from .quorum import QuorumRule, compromised_data_fraction, double_vote_sections, evaluate_network
from .results import SimulationResult, ToolResult

logger = logging.getLogger(__name__)


def run_seed(base_seed: int, run_index: int) -> np.random.SeedSequence:
    """Independent, reproducible stream for run `run_index`."""
    return np.random.SeedSequence(base_seed, spawn_key=(run_index,))


def run_one(cfg: SimConfig, run_index: int) -> SimulationResult:
    """Top-level entry so worker processes can pickle it."""
    return FullSimTool(cfg).run_single(run_index)


class FullSimTool:
    """
    Simulates section operations with churn, ageing relocation and an attack.

    Relocation is always on here: it is a property of the network, not of
    the quorum rule. No closed form covers ageing and adversarial dynamics
    together, so the run is repeated by the Monte Carlo harness.
    """
    name = "full_sim"

    def __init__(self, cfg: SimConfig):
        self.cfg = cfg.validate()
        self.rule = QuorumRule.from_config(cfg)
        self.group_rule = QuorumRule.for_data_groups(cfg)

    def run_single(self, run_index: int, metrics: Metrics | None = None) -> SimulationResult:
        try:
            return self._run(run_index, metrics)
        except Exception as exc:
            raise SimulationError(f"run failed: {exc}", seed=self.cfg.seed, run_index=run_index) from exc

    def _run(self, run_index, metrics):
        cfg = self.cfg
        rng = np.random.default_rng(run_seed(cfg.seed, run_index))

        # 1. Honest network, aged by a warm-up before the attack starts
        net = Network.bootstrap(cfg, cfg.initial_honest, rng, ageing=True)
        for _ in range(cfg.warmup_steps):
            net.advance(rng)

        # 2. Malicious nodes join
        attacker = Attacker(AttackBehavior.from_config(cfg))
        net.apply_actions(attacker.initial_actions(net, rng), rng)
        net.enforce_bounds()

        # 3. Attack phase
        lost = compromised = double_vote = data_compromised = False
        double_votes, data_fraction = 0, 0.0
        steps_run = 0
        for t in range(cfg.steps):
            net.advance(rng, attacker)
            steps_run += 1
            if cfg.evaluate_every_step or t == cfg.steps - 1:
                l, c = evaluate_network(self.rule, net)
                lost |= l
                compromised |= c
                double_votes = double_vote_sections(self.rule, net)
                data_fraction = compromised_data_fraction(self.group_rule, net, cfg.group_size)
                double_vote |= double_votes > 0
                data_compromised |= data_fraction > 0.0
            if metrics is not None:
                metrics.update(net.step, net, lost, compromised, double_votes, data_fraction)
            elif lost and compromised and double_vote and data_compromised:
                break

        if net.refused_joins:
            logger.debug("run %d: %d joins refused", run_index, net.refused_joins)
        return SimulationResult(lost_quorum=lost, compromised_quorum=compromised,
                                run_index=run_index, steps_run=steps_run,
                                double_vote=double_vote, data_compromised=data_compromised)

    def trace(self, run_index: int = 0) -> Metrics:
        """One run with its full timeline recorded."""
        metrics = Metrics()
        self.run_single(run_index, metrics)
        return metrics

    def calc(self) -> ToolResult:
        logger.info("full simulation: %d runs, quorum=%s, attack=%s, f=%.3f",
                    self.cfg.repetitions, self.cfg.quorum, self.cfg.attack, self.cfg.malicious_fraction)
        res = MonteCarloRunner(self.cfg).run(run_one)
        stats = res.stats
        out = ToolResult(
            tool=self.name,
            p_lost_quorum=stats.p_lost,
            p_compromised_quorum=stats.p_compromised,
            p_double_vote=stats.p_double_vote,
            p_data_compromise=stats.p_data_compromise,
            samples=stats.samples,
            ci_lost=stats.confidence_interval("lost", self.cfg.confidence),
            ci_compromised=stats.confidence_interval("compromised", self.cfg.confidence),
            std_error_lost=stats.std_error_lost,
            std_error_compromised=stats.std_error_compromised,
            runs=[(r.lost_quorum, r.compromised_quorum) for r in res.results] if self.cfg.keep_runs else None,
            series=res.series(),
        )
        logger.info("full simulation done: p_lost=%.5f p_compromised=%.5f (%d samples)",
                    out.p_lost_quorum, out.p_compromised_quorum, stats.samples)
        return out
