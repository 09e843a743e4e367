from marshmallow import Schema, fields

class VoteSubmitSchema(Schema):
    contestant_id = fields.UUID(required=True)

class VoteReceiptSchema(Schema):
    vote_id = fields.UUID(attribute="id")
    post_id = fields.UUID()
    contestant_id = fields.UUID()
    cast_at = fields.DateTime()

class VoteHistorySchema(Schema):
    id = fields.UUID()
    voter_id = fields.Str()
    post_id = fields.UUID()
    post_name = fields.Function(lambda v: v.post.name if v.post else None)
    contestant_id = fields.UUID()
    contestant_name = fields.Function(lambda v: v.contestant.name if v.contestant else None)
    cast_at = fields.DateTime()
