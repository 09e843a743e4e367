from marshmallow import Schema, fields, validate
from .contestant import ContestantPublicSchema

class PostCreateSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=120))
    description = fields.Str(required=False, allow_none=True)

class PostReadSchema(Schema):
    id = fields.UUID()
    name = fields.Str()
    description = fields.Str(allow_none=True)
    created_at = fields.DateTime()

class BallotPostSchema(PostReadSchema):
    contestants = fields.List(fields.Nested(ContestantPublicSchema))
