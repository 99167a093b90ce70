'''
In-process stand-ins for Step Functions and the API Gateway trigger.

LocalWorkflowRunner walks a WorkflowDefinition the way Step Functions would,
invoking plain Python callables instead of deployed Lambdas. LocalTrigger is
the GET / endpoint: it hands each execution to a thread pool and acknowledges
immediately, without waiting for the workflow to finish.
'''
import copy
import logging
import re
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol

from stepfunction_cdk.config import INTEGER_PARAMETER_PATTERN
from stepfunction_cdk.workflow_definition import (
    ChoiceState,
    TaskState,
    WaitState,
    WorkflowDefinition,
    WorkflowDefinitionError,
    select_path,
)

logger = logging.getLogger(__name__)

SUCCEEDED = "SUCCEEDED"
FAILED = "FAILED"
TIMED_OUT = "TIMED_OUT"


class InvocableTask(Protocol):
    def __call__(self, payload: dict) -> dict:
        ...


class LambdaHandlerTask:
    '''Adapts a Lambda entry point, handler(event, context), to InvocableTask.'''

    def __init__(self, handler, context=None):
        self.handler = handler
        self.context = context

    def __call__(self, payload: dict) -> dict:
        return self.handler(payload, self.context)


class ExecutionTimedOut(Exception):
    pass


@dataclass
class ExecutionResult:
    execution_id: str
    status: str
    output: dict | None = None
    error: str | None = None
    cause: str | None = None
    history: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED


class LocalWorkflowRunner:

    def __init__(self, definition: WorkflowDefinition, tasks: dict, sleep=time.sleep, clock=time.monotonic):
        missing = [name for name in definition.task_functions() if name not in tasks]
        if missing:
            raise WorkflowDefinitionError(f"No task registered for functions: {missing}")

        self.definition = definition
        self.tasks = dict(tasks)
        self._sleep = sleep
        self._clock = clock

    def run(self, execution_input: dict, execution_id: str | None = None) -> ExecutionResult:
        execution_id = execution_id or str(uuid.uuid4())
        result = ExecutionResult(execution_id=execution_id, status=SUCCEEDED)

        deadline = None
        if self.definition.timeout_seconds is not None:
            deadline = self._clock() + self.definition.timeout_seconds

        # Each execution owns its data
        data = copy.deepcopy(execution_input)
        name = self.definition.start_at
        logger.info("Execution %s started with input %s", execution_id, data)

        try:
            while name is not None:
                self._check_deadline(deadline)
                state = self.definition.states[name]
                result.history.append(name)
                logger.debug("Execution %s entering state %s", execution_id, name)

                if isinstance(state, TaskState):
                    data = self._run_task(state, data)
                    self._check_deadline(deadline)
                    name = state.next
                elif isinstance(state, WaitState):
                    self._wait(state.seconds, deadline)
                    name = state.next
                elif isinstance(state, ChoiceState):
                    name = state.select(data)
                    logger.info("Execution %s: %s selected %s", execution_id, state.name, name)
                else:
                    raise WorkflowDefinitionError(f"Unsupported state type: {type(state).__name__}")
        except ExecutionTimedOut as exc:
            logger.warning("Execution %s timed out: %s", execution_id, exc)
            result.status = TIMED_OUT
            result.error = "States.Timeout"
            result.cause = str(exc)
            return result
        except Exception as exc:
            logger.warning("Execution %s failed in state %s: %s", execution_id, name, exc)
            result.status = FAILED
            result.error = type(exc).__name__
            result.cause = str(exc)
            return result

        result.output = data
        logger.info("Execution %s succeeded with output %s", execution_id, data)
        return result

    def _run_task(self, state: TaskState, data):
        payload = select_path(data, state.input_path)
        task = self.tasks[state.function]
        # Same shape as the lambda:invoke integration response
        response = {"Payload": task(copy.deepcopy(payload)), "StatusCode": 200}
        return select_path(response, state.output_path)

    def _wait(self, seconds, deadline):
        if deadline is not None:
            remaining = deadline - self._clock()
            if seconds > remaining:
                self._sleep(max(remaining, 0))
                raise ExecutionTimedOut(f"Timed out while waiting {seconds}s")
        self._sleep(seconds)

    def _check_deadline(self, deadline):
        if deadline is not None and self._clock() >= deadline:
            raise ExecutionTimedOut(
                f"Execution exceeded {self.definition.timeout_seconds}s timeout")


class LocalTrigger:
    '''
    Fire-and-forget GET / handler.

    Futures of started executions collect in `executions` until
    pop_finished() hands the completed ones back.
    '''

    def __init__(self, runner: LocalWorkflowRunner, execution_input: dict, executor=None, max_workers=None):
        self.runner = runner
        self.execution_input = dict(execution_input)
        self.executions = []
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="workflow-execution")
        self._lock = threading.Lock()

    def handle_get(self, query_params: dict | None = None):
        '''Start one execution and return (status_code, body).'''
        try:
            execution_input = self._build_input(query_params or {})
        except ValueError as exc:
            return 400, {"message": str(exc)}

        try:
            future = self._executor.submit(self.runner.run, execution_input)
        except RuntimeError as exc:
            logger.error("Could not start execution: %s", exc)
            return 500, {"message": str(exc)}

        with self._lock:
            self.executions.append(future)
        return 200, {"done": True}

    def pop_finished(self):
        '''Remove and return the futures of executions that have completed.'''
        with self._lock:
            finished, pending = [], []
            for future in self.executions:
                (finished if future.done() else pending).append(future)
            self.executions = pending
        return finished

    def _build_input(self, query_params):
        max_number = self._integer_param(query_params, "maxNumber")
        number_to_check = self._integer_param(query_params, "numberToCheck")

        execution_input = dict(self.execution_input)
        if max_number is not None:
            execution_input["maxNumber"] = int(max_number)
        if number_to_check is not None:
            execution_input["numberToCheck"] = number_to_check
        return execution_input

    @staticmethod
    def _integer_param(query_params, name):
        value = query_params.get(name)
        if value in (None, ""):
            return None
        value = str(value)
        if not re.fullmatch(INTEGER_PARAMETER_PATTERN, value):
            raise ValueError(f"{name} must be an integer: {value!r}")
        return value

    def shutdown(self, wait=True):
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.shutdown()
