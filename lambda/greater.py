import json


def handler(event, context):
    print("Number is greater event:", json.dumps(event))

    generated = event['generatedRandomNumber']
    number_to_check = event['numberToCheck']

    result = dict(event)
    result['comparison'] = 'greater'
    result['message'] = f"{generated} is greater than {number_to_check}"

    print(result['message'])
    return result
