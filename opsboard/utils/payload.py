"""
Helpers for reading JSON request bodies into model columns.
"""
from flask import request
from opsboard.errors import InputError
from opsboard.utils.dates import parse_datetime


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InputError('Request body must be a JSON object')
    return data


def require(data, *fields):
    missing = [f for f in fields if data.get(f) is None or data.get(f) == '']
    if missing:
        raise InputError(f'Missing required fields: {", ".join(missing)}')


def number(data, key, default=None, minimum=None):
    value = data.get(key)
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise InputError(f'{key} must be a number')
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InputError(f'{key} must be a number')
    if minimum is not None and value < minimum:
        raise InputError(f'{key} must be at least {minimum}')
    return value


def integer(data, key, default=None, minimum=None):
    value = number(data, key, default=None, minimum=minimum)
    if value is None:
        return default
    if value != int(value):
        raise InputError(f'{key} must be a whole number')
    return int(value)


def choice(data, key, options, default=None):
    value = data.get(key, default)
    if value is not None and value not in options:
        raise InputError(f'{key} must be one of: {", ".join(options)}')
    return value


def assign(obj, data, mapping):
    """
    Copy present keys from ``data`` onto ``obj``.
    ``mapping`` is {jsonKey: (attribute, converter)}; converter may be None.
    """
    for key, (attribute, convert) in mapping.items():
        if key not in data:
            continue
        value = data[key]
        if convert is not None:
            value = convert(data, key)
        setattr(obj, attribute, value)


def as_datetime(data, key):
    return parse_datetime(data.get(key), key)


def as_number(data, key):
    return number(data, key)


def as_integer(data, key):
    return integer(data, key)


def as_bool(data, key):
    return bool(data.get(key))
