from marshmallow import Schema, fields

from .contestant import ContestantReadSchema
from .post import PostReadSchema

class PostStandingSchema(Schema):
    post = fields.Nested(PostReadSchema, required=True)
    total_votes = fields.Int(required=True)
    winner = fields.Nested(ContestantReadSchema, allow_none=True)
    others = fields.List(fields.Nested(ContestantReadSchema), required=True)

class StandingsSchema(Schema):
    results_announced = fields.Bool(required=True)
    posts = fields.List(fields.Nested(PostStandingSchema), required=True)

class ElectionStatusSchema(Schema):
    state = fields.Str(required=True)
    results_announced = fields.Bool(required=True)
    changed = fields.Bool()
