from marshmallow import Schema, fields

class AuditLogReadSchema(Schema):
    id = fields.UUID()
    created_at = fields.DateTime(format="iso")
    actor_id = fields.Str(allow_none=True)
    actor_role = fields.Str(allow_none=True)
    action = fields.Str()
    entity_type = fields.Str(allow_none=True)
    entity_id = fields.Str(allow_none=True)
    ip_address = fields.Str(allow_none=True)
    user_agent = fields.Str(allow_none=True)
    details = fields.Dict(allow_none=True)
