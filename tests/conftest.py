"""
Shared fixtures: small, fast configurations and node builders.
"""
import numpy as np
import pytest

from routing_sims.config import SimConfig
from routing_sims.node import Node


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def small_cfg() -> SimConfig:
    """A network of ~60 nodes that runs in milliseconds."""
    return SimConfig(
        initial_size=60,
        min_size=5,
        max_size=12,
        join_rate=1.0,
        leave_rate=0.01,
        relocation_age=6,
        malicious_fraction=0.1,
        warmup_steps=10,
        steps=30,
        structure_steps=20,
        repetitions=8,
        seed=7,
    )


def make_nodes(ages, malicious=False, start=0):
    return [Node(name=start + i, malicious=malicious, age=a) for i, a in enumerate(ages)]
