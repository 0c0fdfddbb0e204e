from flask import request
from marshmallow import ValidationError as SchemaValidationError

from microjob.utils.exceptions import ValidationError


def load_json(schema):
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return schema.load(data)
    except SchemaValidationError as exc:
        raise ValidationError("Invalid request body", exc.messages)


def int_arg(name, default):
    value = request.args.get(name)
    if value in (None, ""):
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"Query parameter '{name}' must be an integer")
