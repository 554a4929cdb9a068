import os
import random

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from graph_engine import GraphEngine
from scheduler import ManualScheduler


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def make_engine(scheduler):
    def factory(viewport=(400, 400), config=None, seed=7, **kwargs):
        return GraphEngine(scheduler, viewport=viewport, config=config, rng=random.Random(seed), **kwargs)
    return factory
