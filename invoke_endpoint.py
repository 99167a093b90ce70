#!/usr/bin/env python3
"""
Smoke test for the deployed GET / endpoint.

The endpoint only acknowledges that an execution was started. To see how the
executions ended, set RANDOM_NUMBER_STATE_MACHINE_ARN (the StateMachineArn
output of `cdk deploy`) and the script polls Step Functions afterwards.

    python invoke_endpoint.py https://abc123.execute-api.us-east-1.amazonaws.com/prod/ 3
"""

import json
import os
import sys
import time

import boto3
import requests

API_BASE_URL = os.environ.get("RANDOM_NUMBER_API_URL", "")
STATE_MACHINE_ARN = os.environ.get("RANDOM_NUMBER_STATE_MACHINE_ARN", "")


def start_execution(url, max_number=None, number_to_check=None):
    """Call the endpoint once and return the decoded acknowledgement"""
    params = {}
    if max_number is not None:
        params["maxNumber"] = max_number
    if number_to_check is not None:
        params["numberToCheck"] = number_to_check

    response = requests.get(url, params=params, timeout=10)
    response.raise_for_status()
    return response.json()


def recent_executions(state_machine_arn, max_results=10, client=None):
    """Return status and output of the most recent executions"""
    client = client or boto3.client("stepfunctions")

    executions = client.list_executions(
        stateMachineArn=state_machine_arn,
        maxResults=max_results
    )["executions"]

    results = []
    for execution in executions:
        details = client.describe_execution(executionArn=execution["executionArn"])
        output = details.get("output")
        results.append({
            "name": execution["name"],
            "status": details["status"],
            "output": json.loads(output) if output else None,
        })
    return results


def main():
    url = sys.argv[1] if len(sys.argv) > 1 else API_BASE_URL
    count = int(sys.argv[2]) if len(sys.argv) > 2 else 1

    if not url:
        print("Set RANDOM_NUMBER_API_URL or pass the API URL as the first argument")
        print("The URL is the ApiUrl output of `cdk deploy`")
        sys.exit(1)

    for i in range(count):
        try:
            result = start_execution(url)
            print(f"Execution {i + 1}: {result}")
        except requests.exceptions.RequestException as e:
            print(f"Error starting execution {i + 1}: {e}")

    if not STATE_MACHINE_ARN:
        return

    # Executions take about a second (the wait state) plus Lambda time
    time.sleep(5)
    for execution in recent_executions(STATE_MACHINE_ARN, max_results=count):
        print(f"- {execution['name']}: {execution['status']}")
        if execution["output"]:
            print(f"  {execution['output'].get('message')}")


if __name__ == "__main__":
    main()
