from marshmallow import ValidationError as SchemaValidationError

from ..errors import ValidationError

def validate_or_abort(schema, payload):
    """
    Deserialize `payload` with `schema`, turning marshmallow errors into the
    VALIDATION_ERROR envelope before any storage call is made.
    """
    try:
        return schema.load(payload or {})
    except SchemaValidationError as e:
        raise ValidationError("Validation error", details=e.messages) from None
