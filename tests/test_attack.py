"""
Tests for the attack strategies.
"""
from dataclasses import replace

import pytest

from routing_sims.attack import ActionKind, AttackAction, AttackBehavior, Attacker
from routing_sims.network import Network


@pytest.fixture
def net(small_cfg, rng):
    cfg = replace(small_cfg, join_rate=0.0, leave_rate=0.0, relocation_age=1000)
    return Network.bootstrap(cfg, 40, rng)      # four sections of 10


class TestBehavior:
    def test_from_config(self, small_cfg):
        beh = AttackBehavior.from_config(small_cfg)
        assert beh.mode == "untargetted"
        assert beh.initial_nodes == 6
        assert beh.join_rate == pytest.approx(1.0 * 0.1 / 0.9)

    def test_explicit_join_rate_wins(self, small_cfg):
        cfg = replace(small_cfg, malicious_join_rate=0.25)
        assert AttackBehavior.from_config(cfg).join_rate == 0.25

    def test_no_fraction_no_attack(self, small_cfg):
        cfg = replace(small_cfg, malicious_fraction=0.0)
        beh = AttackBehavior.from_config(cfg)
        assert beh.initial_nodes == 0
        assert beh.join_rate == 0.0


class TestUntargetted:
    def test_initial_joins_spread(self, net, rng):
        attacker = Attacker(AttackBehavior("untargetted", initial_nodes=200))
        actions = attacker.initial_actions(net, rng)
        assert len(actions) == 200
        assert all(a.kind is ActionKind.JOIN for a in actions)
        assert len({a.section_id for a in actions}) == len(net.order)

    def test_never_resets(self, net, rng):
        attacker = Attacker(AttackBehavior("untargetted", initial_nodes=10, join_rate=3.0))
        net.apply_actions(attacker.initial_actions(net, rng), rng)
        for _ in range(5):
            actions = attacker.on_step(net, rng)
            assert all(a.kind is ActionKind.JOIN for a in actions)
        assert attacker.target_section is None

    def test_joins_follow_rate(self, net, rng):
        attacker = Attacker(AttackBehavior("untargetted", join_rate=4.0))
        total = sum(len(attacker.on_step(net, rng)) for _ in range(200))
        assert 600 < total < 1000


class TestSimpleTargetted:
    def test_initial_joins_hit_one_section(self, net, rng):
        attacker = Attacker(AttackBehavior("simple_targetted", initial_nodes=5))
        actions = attacker.initial_actions(net, rng)
        assert len({a.section_id for a in actions}) == 1
        assert actions[0].section_id == attacker.target_section

    def test_outsiders_reset_into_target(self, net, rng):
        a, b, c, _ = net.order
        for sid, k in ((a, 1), (b, 3), (c, 2)):
            net.apply_actions([AttackAction(ActionKind.JOIN, sid)] * k, rng)
        attacker = Attacker(AttackBehavior("simple_targetted"))
        actions = attacker.on_step(net, rng)
        # the section holding most malicious nodes becomes the target
        assert attacker.target_section == b
        resets = [x for x in actions if x.kind is ActionKind.RESET]
        assert len(resets) == 3
        assert all(x.section_id == b for x in resets)

        net.apply_actions(actions, rng)
        assert net.sections[b].malicious_count == 6
        assert all(n.age == 0 for n in net.sections[b].malicious())
        assert net.malicious_count() == 6

    def test_insiders_stay(self, net, rng):
        target = net.order[2]
        net.apply_actions([AttackAction(ActionKind.JOIN, target)] * 4, rng)
        attacker = Attacker(AttackBehavior("simple_targetted"))
        assert attacker.on_step(net, rng) == []
        assert attacker.target_section == target

    def test_retargets_after_split(self, net, rng):
        target = net.order[0]
        net.apply_actions([AttackAction(ActionKind.JOIN, target)] * 4, rng)
        attacker = Attacker(AttackBehavior("simple_targetted"))
        attacker.on_step(net, rng)
        assert attacker.target_section == target

        left, right = net.split_section(target)
        attacker.on_step(net, rng)
        counts = {left: net.sections[left].malicious_count, right: net.sections[right].malicious_count}
        assert attacker.target_section in (left, right)
        assert counts[attacker.target_section] == max(counts.values())

    def test_random_target_without_malicious_nodes(self, net, rng):
        attacker = Attacker(AttackBehavior("simple_targetted"))
        attacker.on_step(net, rng)
        assert attacker.target_section in net.sections


def test_unknown_mode(net, rng):
    attacker = Attacker(AttackBehavior("sybil", initial_nodes=1))
    with pytest.raises(ValueError):
        attacker.initial_actions(net, rng)


class TestAgainstAgeing:
    """Targeted attacks running on a network with relocation and size bounds."""

    def test_old_target_members_are_relocated_and_reset(self, small_cfg, rng):
        cfg = replace(small_cfg, join_rate=0.0, leave_rate=0.0, relocation_age=9)
        net = Network.bootstrap(cfg, 40, rng)
        target = net.order[0]
        net.apply_actions([AttackAction(ActionKind.JOIN, target)] * 2, rng)
        for node in net.sections[target].malicious():
            node.age = 9
        attacker = Attacker(AttackBehavior("simple_targetted"))
        attacker.target_section = target

        net.advance(rng, attacker)
        # both outgrew the target, were moved out, then rejoined it fresh
        bad = net.sections[target].malicious()
        assert len(bad) == 2
        assert all(n.age == 0 for n in bad)
        assert net.malicious_count() == 2

    def test_sizes_stay_in_bounds_under_flooding(self, small_cfg, rng):
        cfg = replace(small_cfg, attack="simple_targetted", malicious_fraction=0.3).validate()
        net = Network.bootstrap(cfg, cfg.initial_honest, rng)
        for _ in range(cfg.warmup_steps):
            net.advance(rng)
        attacker = Attacker(AttackBehavior.from_config(cfg))
        net.apply_actions(attacker.initial_actions(net, rng), rng)
        net.enforce_bounds()
        assert cfg.min_size <= min(net.sizes()) and max(net.sizes()) <= cfg.max_size

        for _ in range(30):
            net.advance(rng, attacker)
            assert max(net.sizes()) <= cfg.max_size
            assert min(net.sizes()) >= cfg.min_size
