"""Tests for the fire-and-forget GET / trigger."""

import threading

import pytest

import greater
import less_or_equal
from stepfunction_cdk.config import WorkflowConfig
from stepfunction_cdk.local_runner import FAILED, SUCCEEDED, LambdaHandlerTask, LocalTrigger, LocalWorkflowRunner


@pytest.fixture
def fast_runner(definition, lambda_tasks):
    return LocalWorkflowRunner(definition, lambda_tasks, sleep=lambda seconds: None)


@pytest.fixture
def trigger(fast_runner):
    trigger = LocalTrigger(fast_runner, WorkflowConfig().default_execution_input())
    yield trigger
    trigger.shutdown()


def test_returns_before_workflow_finishes(definition) -> None:
    started = threading.Event()
    release = threading.Event()

    def blocking_generator(payload):
        started.set()
        release.wait(timeout=5)
        return {"generatedRandomNumber": 8, "maxNumber": 10, "numberToCheck": 5}

    runner = LocalWorkflowRunner(
        definition,
        {
            "generate_random_number": blocking_generator,
            "greater": LambdaHandlerTask(greater.handler),
            "less_or_equal": LambdaHandlerTask(less_or_equal.handler),
        },
        sleep=lambda seconds: None,
    )

    with LocalTrigger(runner, {"maxNumber": 10, "numberToCheck": "5"}) as trigger:
        status, body = trigger.handle_get()

        assert (status, body) == (200, {"done": True})
        assert started.wait(timeout=5)
        assert not trigger.executions[0].done()

        release.set()
        result = trigger.executions[0].result(timeout=5)

    assert result.status == SUCCEEDED
    assert result.output["comparison"] == "greater"


def test_ack_does_not_depend_on_outcome(fast_runner) -> None:
    with LocalTrigger(fast_runner, {"maxNumber": 0, "numberToCheck": "5"}) as trigger:
        assert trigger.handle_get() == (200, {"done": True})
        result = trigger.executions[0].result(timeout=5)

    assert result.status == FAILED
    assert result.error == "InvalidInputError"


def test_each_call_starts_an_independent_execution(trigger) -> None:
    calls = 5
    for _ in range(calls):
        assert trigger.handle_get() == (200, {"done": True})

    results = [future.result(timeout=5) for future in trigger.executions]

    assert len(results) == calls
    assert len({result.execution_id for result in results}) == calls
    for result in results:
        assert result.status == SUCCEEDED
        assert 1 <= result.output["generatedRandomNumber"] <= 10


def test_query_parameters_override_defaults(trigger) -> None:
    assert trigger.handle_get({"maxNumber": "1", "numberToCheck": "0"}) == (200, {"done": True})
    result = trigger.executions[0].result(timeout=5)

    assert result.output["maxNumber"] == 1
    assert result.output["numberToCheck"] == 0
    assert result.output["comparison"] == "greater"


def test_empty_query_parameters_keep_defaults(trigger) -> None:
    trigger.handle_get({"maxNumber": "", "numberToCheck": ""})
    result = trigger.executions[0].result(timeout=5)

    assert result.output["maxNumber"] == 10
    assert result.output["numberToCheck"] == 5


def test_malformed_max_number_is_rejected(trigger) -> None:
    status, body = trigger.handle_get({"maxNumber": "ten"})

    assert status == 400
    assert "ten" in body["message"]
    assert trigger.executions == []


def test_cannot_start_after_shutdown(fast_runner) -> None:
    trigger = LocalTrigger(fast_runner, {"maxNumber": 10, "numberToCheck": "5"})
    trigger.shutdown()

    status, body = trigger.handle_get()

    assert status == 500
    assert "message" in body


@pytest.mark.parametrize(
    "query",
    [
        {"maxNumber": '10,"numberToCheck":"-1"'},
        {"maxNumber": '"'},
        {"maxNumber": "2.5"},
        {"numberToCheck": "abc"},
        {"numberToCheck": "5'"},
        {"numberToCheck": "5\n"},
    ],
)
def test_non_integer_parameters_are_rejected(trigger, query) -> None:
    status, body = trigger.handle_get(query)

    assert status == 400
    assert "must be an integer" in body["message"]
    assert trigger.executions == []


def test_negative_parameters_reach_the_workflow(trigger) -> None:
    assert trigger.handle_get({"maxNumber": "-1"}) == (200, {"done": True})
    result = trigger.executions[0].result(timeout=5)

    assert result.status == FAILED
    assert result.error == "InvalidInputError"


def test_pop_finished_drops_completed_executions(trigger) -> None:
    for _ in range(3):
        trigger.handle_get()
    for future in list(trigger.executions):
        future.result(timeout=5)

    finished = trigger.pop_finished()

    assert len(finished) == 3
    assert all(future.done() for future in finished)
    assert trigger.executions == []
    assert trigger.pop_finished() == []
