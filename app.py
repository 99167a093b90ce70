#!/usr/bin/env python3
import aws_cdk as cdk

from stepfunction_cdk.stepfunction_stack import StepFunctionStack


app = cdk.App()

stepfunction_stack = StepFunctionStack(app, "AwsStepfunctionCdkStack")


app.synth()
