'''
Deployment settings for the random number workflow.

Defaults match the deployed workflow. Any of them can be overridden through
CDK context, either in cdk.json or on the command line:

    cdk deploy -c maxNumber=100 -c numberToCheck=50
'''
from dataclasses import dataclass

# Query parameters accepted by GET /, shared by the API mapping template and
# the local trigger
INTEGER_PARAMETER_PATTERN = r"^-?[0-9]+$"


@dataclass(frozen=True)
class WorkflowConfig:
    state_machine_name: str = "randomNumberStateMachine"
    max_number: int = 10
    number_to_check: str = "5"
    wait_seconds: int = 1
    timeout_minutes: int = 5
    function_timeout_seconds: int = 3

    @classmethod
    def from_context(cls, node) -> "WorkflowConfig":
        '''Build the config from a construct node's CDK context.'''
        defaults = cls()

        def lookup(key, default):
            value = node.try_get_context(key)
            return default if value is None else value

        return cls(
            state_machine_name=lookup("stateMachineName", defaults.state_machine_name),
            max_number=int(lookup("maxNumber", defaults.max_number)),
            number_to_check=str(lookup("numberToCheck", defaults.number_to_check)),
            wait_seconds=int(lookup("waitSeconds", defaults.wait_seconds)),
            timeout_minutes=int(lookup("timeoutMinutes", defaults.timeout_minutes)),
            function_timeout_seconds=int(
                lookup("functionTimeoutSeconds", defaults.function_timeout_seconds)),
        )

    def default_execution_input(self) -> dict:
        return {
            "maxNumber": self.max_number,
            "numberToCheck": self.number_to_check,
        }
