from marshmallow import Schema, fields, validate, validates_schema, ValidationError

class ContestantCreateSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    post_id = fields.UUID(required=True)
    bio = fields.Str(required=False, load_default="")
    image = fields.Str(required=False, load_default="", validate=validate.Length(max=500))

class VoteAdjustSchema(Schema):
    delta = fields.Int(required=True, strict=True)
    reason = fields.Str(required=False, allow_none=True, validate=validate.Length(max=500))

    @validates_schema
    def non_zero(self, data, **kwargs):
        if data.get("delta") == 0:
            raise ValidationError("delta must not be zero", field_name="delta")

class VoteSetSchema(Schema):
    votes = fields.Int(required=True, strict=True)
    reason = fields.Str(required=False, allow_none=True, validate=validate.Length(max=500))

class ContestantPublicSchema(Schema):
    """Voting booth view: no tallies."""
    id = fields.UUID()
    post_id = fields.UUID()
    name = fields.Str()
    image = fields.Str()
    bio = fields.Str()

class ContestantReadSchema(ContestantPublicSchema):
    votes = fields.Int()
    created_at = fields.DateTime()
