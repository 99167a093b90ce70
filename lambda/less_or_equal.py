import json


def handler(event, context):
    print("Number is less or equal event:", json.dumps(event))

    generated = event['generatedRandomNumber']
    number_to_check = event['numberToCheck']

    result = dict(event)
    result['comparison'] = 'lessOrEqual'
    if generated == number_to_check:
        result['message'] = f"{generated} is equal to {number_to_check}"
    else:
        result['message'] = f"{generated} is less than {number_to_check}"

    print(result['message'])
    return result
