'''
Topology of the random number workflow as plain data.

    Generate Random Number -> Wait 1 Second -> Compare Numbers
                                                 |-- greater  --> Number Is Greater
                                                 |-- <=       --> Number Is Less Or Equal
                                                 '-- default  --> Number Is Less Or Equal

The same definition drives three consumers: the CDK stack translates it into
Step Functions constructs, to_asl() renders it as an Amazon States Language
document, and the local runner interprets it in-process for tests.
'''
import operator
from dataclasses import dataclass, field

from stepfunction_cdk.config import WorkflowConfig

GENERATE_NUMBER = "Generate Random Number"
WAIT = "Wait 1 Second"
COMPARE_NUMBERS = "Compare Numbers"
NUMBER_IS_GREATER = "Number Is Greater"
NUMBER_IS_LESS_OR_EQUAL = "Number Is Less Or Equal"

LAMBDA_INVOKE_RESOURCE = "arn:aws:states:::lambda:invoke"

NUMERIC_GREATER_THAN_PATH = "NumericGreaterThanPath"
NUMERIC_LESS_THAN_EQUALS_PATH = "NumericLessThanEqualsPath"

COMPARATORS = {
    NUMERIC_GREATER_THAN_PATH: operator.gt,
    NUMERIC_LESS_THAN_EQUALS_PATH: operator.le,
}


class WorkflowDefinitionError(ValueError):
    pass


def select_path(data, path):
    '''Resolve a reference path such as "$" or "$.a.b" against data.'''
    if path == "$":
        return data
    if not path.startswith("$."):
        raise ValueError(f"Unsupported path: {path}")

    value = data
    for key in path[2:].split("."):
        if not isinstance(value, dict) or key not in value:
            raise KeyError(f"Path {path} not found in state data")
        value = value[key]
    return value


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class TaskState:
    name: str
    function: str
    next: str | None = None
    input_path: str = "$"
    output_path: str = "$.Payload"

    @property
    def end(self):
        return self.next is None

    def successors(self):
        return [] if self.end else [self.next]

    def to_asl(self):
        state = {
            "Type": "Task",
            "Resource": LAMBDA_INVOKE_RESOURCE,
            "Parameters": {"FunctionName": self.function, "Payload.$": "$"},
            "InputPath": self.input_path,
            "OutputPath": self.output_path,
        }
        if self.end:
            state["End"] = True
        else:
            state["Next"] = self.next
        return state


@dataclass(frozen=True)
class WaitState:
    name: str
    seconds: int
    next: str

    def successors(self):
        return [self.next]

    def to_asl(self):
        return {"Type": "Wait", "Seconds": self.seconds, "Next": self.next}


@dataclass(frozen=True)
class ChoiceRule:
    variable: str
    comparator: str
    other_path: str
    next: str

    def matches(self, data):
        left = select_path(data, self.variable)
        right = select_path(data, self.other_path)
        # Mismatched types never satisfy a numeric comparison
        if not (_is_number(left) and _is_number(right)):
            return False
        return COMPARATORS[self.comparator](left, right)

    def to_asl(self):
        return {
            "Variable": self.variable,
            self.comparator: self.other_path,
            "Next": self.next,
        }


@dataclass(frozen=True)
class ChoiceState:
    name: str
    rules: tuple[ChoiceRule, ...]
    default: str | None = None

    def successors(self):
        targets = [rule.next for rule in self.rules]
        if self.default is not None:
            targets.append(self.default)
        return targets

    def select(self, data):
        '''Return the next state name. First matching rule wins.'''
        for rule in self.rules:
            if rule.matches(data):
                return rule.next
        return self.default

    def to_asl(self):
        state = {"Type": "Choice", "Choices": [rule.to_asl() for rule in self.rules]}
        if self.default is not None:
            state["Default"] = self.default
        return state


@dataclass
class WorkflowDefinition:
    start_at: str
    states: dict = field(default_factory=dict)
    timeout_seconds: int | None = None
    comment: str | None = None

    def validate(self):
        if self.start_at not in self.states:
            raise WorkflowDefinitionError(f"Start state {self.start_at!r} is not defined")

        for state in self.states.values():
            if isinstance(state, ChoiceState):
                if not state.rules:
                    raise WorkflowDefinitionError(f"Choice state {state.name!r} has no rules")
                if state.default is None:
                    raise WorkflowDefinitionError(f"Choice state {state.name!r} has no default")
                for rule in state.rules:
                    if rule.comparator not in COMPARATORS:
                        raise WorkflowDefinitionError(
                            f"Unknown comparator {rule.comparator!r} in {state.name!r}")
            for target in state.successors():
                if target not in self.states:
                    raise WorkflowDefinitionError(
                        f"State {state.name!r} transitions to unknown state {target!r}")

        unreachable = set(self.states) - self.reachable_states()
        if unreachable:
            raise WorkflowDefinitionError(f"Unreachable states: {sorted(unreachable)}")

        return self

    def reachable_states(self):
        seen = set()
        pending = [self.start_at]
        while pending:
            name = pending.pop()
            if name in seen or name not in self.states:
                continue
            seen.add(name)
            pending.extend(self.states[name].successors())
        return seen

    def task_functions(self):
        functions = []
        for state in self.states.values():
            if isinstance(state, TaskState) and state.function not in functions:
                functions.append(state.function)
        return functions

    def to_asl(self):
        '''
        Amazon States Language view of the topology.

        FunctionName holds the logical function name; the CDK stack swaps in
        the deployed function ARN. Deployed task states also carry the
        LambdaInvoke default Retry on Lambda service exceptions
        (Lambda.ServiceException and friends, 6 attempts, backoff 2), which
        is platform behavior and is not rendered here.
        '''
        document = {}
        if self.comment:
            document["Comment"] = self.comment
        document["StartAt"] = self.start_at
        document["States"] = {name: state.to_asl() for name, state in self.states.items()}
        if self.timeout_seconds is not None:
            document["TimeoutSeconds"] = self.timeout_seconds
        return document


class WorkflowBuilder:

    def __init__(self, comment=None):
        self._comment = comment
        self._start_at = None
        self._states = {}
        self._timeout_seconds = None

    def start_with(self, state):
        self._start_at = state.name
        return self.add(state)

    def add(self, state):
        if state.name in self._states:
            raise WorkflowDefinitionError(f"Duplicate state name {state.name!r}")
        self._states[state.name] = state
        return self

    def timeout(self, seconds):
        self._timeout_seconds = seconds
        return self

    def build(self):
        if self._start_at is None:
            raise WorkflowDefinitionError("Workflow has no start state")
        definition = WorkflowDefinition(
            start_at=self._start_at,
            states=dict(self._states),
            timeout_seconds=self._timeout_seconds,
            comment=self._comment,
        )
        return definition.validate()


def build_random_number_workflow(config: WorkflowConfig | None = None) -> WorkflowDefinition:
    config = config or WorkflowConfig()

    return (
        WorkflowBuilder(comment="Generate a random number and compare it to numberToCheck")
        .start_with(TaskState(GENERATE_NUMBER, function="generate_random_number", next=WAIT))
        .add(WaitState(WAIT, seconds=config.wait_seconds, next=COMPARE_NUMBERS))
        .add(ChoiceState(
            COMPARE_NUMBERS,
            rules=(
                ChoiceRule("$.generatedRandomNumber", NUMERIC_GREATER_THAN_PATH,
                           "$.numberToCheck", NUMBER_IS_GREATER),
                # Same target as the default
                ChoiceRule("$.generatedRandomNumber", NUMERIC_LESS_THAN_EQUALS_PATH,
                           "$.numberToCheck", NUMBER_IS_LESS_OR_EQUAL),
            ),
            default=NUMBER_IS_LESS_OR_EQUAL,
        ))
        .add(TaskState(NUMBER_IS_GREATER, function="greater"))
        .add(TaskState(NUMBER_IS_LESS_OR_EQUAL, function="less_or_equal"))
        .timeout(config.timeout_minutes * 60)
        .build()
    )
