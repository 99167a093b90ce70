"""Shared fixtures for the workflow tests."""

import pytest

import generate_random_number
import greater
import less_or_equal
from stepfunction_cdk.local_runner import LambdaHandlerTask, LocalWorkflowRunner
from stepfunction_cdk.workflow_definition import build_random_number_workflow


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FixedRandom:
    """Stands in for SystemRandom and always draws the same number."""

    def __init__(self, value):
        self.value = value

    def randint(self, low, high):
        return self.value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def definition():
    return build_random_number_workflow()


@pytest.fixture
def lambda_tasks():
    return {
        "generate_random_number": LambdaHandlerTask(generate_random_number.handler),
        "greater": LambdaHandlerTask(greater.handler),
        "less_or_equal": LambdaHandlerTask(less_or_equal.handler),
    }


@pytest.fixture
def runner(definition, lambda_tasks, clock):
    return LocalWorkflowRunner(definition, lambda_tasks, sleep=clock.sleep, clock=clock)


@pytest.fixture
def draw(monkeypatch):
    """Force the generator to draw a given number."""

    def _draw(value):
        monkeypatch.setattr(generate_random_number, "rng", FixedRandom(value))

    return _draw
