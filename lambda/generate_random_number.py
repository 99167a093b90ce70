import json
import random

# OS entropy, independent per invocation
rng = random.SystemRandom()


class InvalidInputError(ValueError):
    '''Raised for execution input the generator cannot work with.'''


def handler(event, context):
    print("Generate random number event:", json.dumps(event))

    max_number = parse_max_number(event.get('maxNumber'))
    number_to_check = parse_number_to_check(event.get('numberToCheck'))

    random_number = generate_random(max_number)
    print("randomNumber", random_number)

    return {
        'generatedRandomNumber': random_number,
        'maxNumber': max_number,
        'numberToCheck': number_to_check,
    }


def generate_random(max_number):
    return rng.randint(1, max_number)


def parse_max_number(value):
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError(f"maxNumber must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidInputError(f"maxNumber must be greater than 0, got {value}")
    return value


def parse_number_to_check(value):
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise InvalidInputError(f"numberToCheck must be a decimal string, got {value!r}")
    try:
        return int(value)
    except ValueError:
        raise InvalidInputError(f"numberToCheck is not an integer: {value!r}") from None
