'''
GET / -> API Gateway -> states:StartExecution -> randomNumberStateMachine

API Gateway talks to Step Functions directly (no Lambda in between) using a
role that can only start executions of this one state machine. The caller
gets {"done": true} back as soon as the execution is started.
'''
from pathlib import Path

from aws_cdk import (
    CfnOutput,
    Duration,
    Stack,
    aws_apigateway as apigw,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_stepfunctions as sfn,
    aws_stepfunctions_tasks as tasks,
)
from constructs import Construct

from stepfunction_cdk.config import INTEGER_PARAMETER_PATTERN, WorkflowConfig
from stepfunction_cdk.workflow_definition import (
    NUMERIC_GREATER_THAN_PATH,
    NUMERIC_LESS_THAN_EQUALS_PATH,
    ChoiceState,
    TaskState,
    WaitState,
    WorkflowDefinition,
    build_random_number_workflow,
)

LAMBDA_ASSET_PATH = str(Path(__file__).resolve().parent.parent / "lambda")

# Construct ids of the deployed functions, keyed by handler module
FUNCTION_IDS = {
    "generate_random_number": "RandomNumberGenerator",
    "greater": "NumberGreaterThan",
    "less_or_equal": "NumberLessThan",
}

CONDITIONS = {
    NUMERIC_GREATER_THAN_PATH: sfn.Condition.number_greater_than_json_path,
    NUMERIC_LESS_THAN_EQUALS_PATH: sfn.Condition.number_less_than_equals_json_path,
}

# Builds the StartExecution request; query parameters override the defaults.
# Non-integer values leave out stateMachineArn, so StartExecution answers 400.
START_EXECUTION_TEMPLATE = r'''#set($maxNumber = $input.params('maxNumber'))
#if($maxNumber == "")#set($maxNumber = "DEFAULT_MAX_NUMBER")#end
#set($numberToCheck = $input.params('numberToCheck'))
#if($numberToCheck == "")#set($numberToCheck = "DEFAULT_NUMBER_TO_CHECK")#end
#if($maxNumber.matches("INTEGER_PATTERN") && $numberToCheck.matches("INTEGER_PATTERN"))
{
    "stateMachineArn": "STATE_MACHINE_ARN",
    "input": "{\"maxNumber\": $maxNumber, \"numberToCheck\": \"$numberToCheck\"}"
}
#else
{
    "input": "{}"
}
#end'''


class StepFunctionStack(Stack):

    def __init__(self, scope: Construct, construct_id: str, config: WorkflowConfig = None, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        config = config or WorkflowConfig.from_context(self.node)
        self.workflow = build_random_number_workflow(config)

        # One Lambda per function the workflow invokes
        self.functions = {}
        for function in self.workflow.task_functions():
            self.functions[function] = lambda_.Function(
                self, FUNCTION_IDS.get(function, function),
                runtime=lambda_.Runtime.PYTHON_3_12,
                handler=f"{function}.handler",
                code=lambda_.Code.from_asset(LAMBDA_ASSET_PATH),
                timeout=Duration.seconds(config.function_timeout_seconds),
            )

        states = self._build_states(self.workflow)

        self.state_machine = sfn.StateMachine(
            self, "StateMachine",
            state_machine_name=config.state_machine_name,
            definition_body=sfn.DefinitionBody.from_chainable(states[self.workflow.start_at]),
            timeout=Duration.seconds(self.workflow.timeout_seconds),
        )

        # Role API Gateway assumes to start executions, nothing else
        credentials_role = iam.Role(
            self, "getRole",
            assumed_by=iam.ServicePrincipal("apigateway.amazonaws.com"),
        )

        credentials_role.attach_inline_policy(iam.Policy(
            self, "getPolicy",
            statements=[
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=["states:StartExecution"],
                    resources=[self.state_machine.state_machine_arn],
                )
            ]
        ))

        request_template = (
            START_EXECUTION_TEMPLATE
            .replace("DEFAULT_MAX_NUMBER", str(config.max_number))
            .replace("DEFAULT_NUMBER_TO_CHECK", config.number_to_check)
            .replace("INTEGER_PATTERN", INTEGER_PARAMETER_PATTERN)
            .replace("STATE_MACHINE_ARN", self.state_machine.state_machine_arn)
        )

        start_execution = apigw.AwsIntegration(
            service="states",
            action="StartExecution",
            integration_http_method="POST",
            options=apigw.IntegrationOptions(
                credentials_role=credentials_role,
                request_templates={"application/json": request_template},
                passthrough_behavior=apigw.PassthroughBehavior.WHEN_NO_TEMPLATES,
                integration_responses=[
                    apigw.IntegrationResponse(
                        status_code="200",
                        response_templates={"application/json": '{"done": true}'},
                    ),
                    apigw.IntegrationResponse(status_code="400", selection_pattern=r"4\d{2}"),
                    apigw.IntegrationResponse(status_code="500", selection_pattern=r"5\d{2}"),
                ],
            ),
        )

        # API Gateway
        api = apigw.RestApi(
            self, "endpoint",
            description="Starts an execution of the random number state machine",
        )

        api.root.add_method(
            "GET",
            start_execution,
            request_parameters={
                "method.request.querystring.maxNumber": False,
                "method.request.querystring.numberToCheck": False,
            },
            method_responses=[
                apigw.MethodResponse(status_code="200"),
                apigw.MethodResponse(status_code="400"),
                apigw.MethodResponse(status_code="500"),
            ],
        )

        self.api_url = api.url

        CfnOutput(self, "ApiUrl", value=api.url)
        CfnOutput(self, "StateMachineArn", value=self.state_machine.state_machine_arn)

    def _build_states(self, workflow: WorkflowDefinition):
        states = {}
        for name, state in workflow.states.items():
            if isinstance(state, TaskState):
                states[name] = tasks.LambdaInvoke(
                    self, name,
                    lambda_function=self.functions[state.function],
                    input_path=state.input_path,
                    output_path=state.output_path,
                )
            elif isinstance(state, WaitState):
                states[name] = sfn.Wait(
                    self, name,
                    time=sfn.WaitTime.duration(Duration.seconds(state.seconds)),
                )
            elif isinstance(state, ChoiceState):
                states[name] = sfn.Choice(self, name)

        # Wire transitions once every state exists
        for name, state in workflow.states.items():
            if isinstance(state, ChoiceState):
                choice = states[name]
                for rule in state.rules:
                    condition = CONDITIONS[rule.comparator](rule.variable, rule.other_path)
                    choice.when(condition, states[rule.next])
                choice.otherwise(states[state.default])
            elif state.successors():
                states[name].next(states[state.next])

        return states
