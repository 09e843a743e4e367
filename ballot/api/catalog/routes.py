from flask import Blueprint, request
from flasgger import swag_from

from ...services import catalog
from ...schemas.contestant import ContestantCreateSchema, ContestantReadSchema
from ...schemas.post import PostCreateSchema, PostReadSchema
from ...utils.rbac import Role, roles_required
from ...utils.validation import validate_or_abort

catalog_bp = Blueprint("catalog", __name__)

post_create_schema = PostCreateSchema()
post_read_schema = PostReadSchema()
post_read_many_schema = PostReadSchema(many=True)
contestant_create_schema = ContestantCreateSchema()
contestant_read_schema = ContestantReadSchema()


@catalog_bp.post("/posts")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin: Posts"],
    "summary": "Create a post",
    "responses": {201: {"description": "Created"}, 400: {"description": "Validation error"}, 403: {"description": "Forbidden"}},
})
def create_post():
    payload = validate_or_abort(post_create_schema, request.get_json(silent=True))
    post = catalog.create_post(payload["name"], payload.get("description"))
    return {"message": "Post created successfully", "post": post_read_schema.dump(post)}, 201


@catalog_bp.get("/posts")
@roles_required(Role.ADMIN)
@swag_from({"tags": ["Admin: Posts"], "summary": "List posts", "responses": {200: {}, 403: {}}})
def list_posts():
    return {"posts": post_read_many_schema.dump(catalog.list_posts())}, 200


@catalog_bp.delete("/posts/<uuid:post_id>")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin: Posts"],
    "summary": "Delete a post with its contestants and their votes",
    "responses": {200: {}, 403: {}, 404: {}},
})
def delete_post(post_id):
    catalog.delete_post(post_id)
    return {"message": "Post deleted", "post_id": str(post_id)}, 200


@catalog_bp.post("/contestants")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin: Contestants"],
    "summary": "Add a contestant (JSON, or multipart with an optional image_file)",
    "responses": {201: {"description": "Created"}, 400: {"description": "Validation error"}, 404: {"description": "Post not found"}},
})
def create_contestant():
    if request.mimetype == "multipart/form-data":
        payload = validate_or_abort(contestant_create_schema, request.form.to_dict())
        upload = request.files.get("image_file")
    else:
        payload = validate_or_abort(contestant_create_schema, request.get_json(silent=True))
        upload = None

    warnings = []
    image = payload.get("image") or ""
    if upload and upload.filename:
        image = catalog.upload_image(upload) or ""
        if not image:
            warnings.append("Image upload failed, contestant added without image")

    contestant = catalog.create_contestant(
        name=payload["name"],
        post_id=payload["post_id"],
        bio=payload.get("bio", ""),
        image=image,
    )
    response = {"message": "Contestant added successfully", "contestant": contestant_read_schema.dump(contestant)}
    if warnings:
        response["warnings"] = warnings
    return response, 201


@catalog_bp.get("/contestants")
@roles_required(Role.ADMIN)
@swag_from({"tags": ["Admin: Contestants"], "summary": "List contestants with tallies", "responses": {200: {}, 403: {}}})
def list_contestants():
    return {"contestants": catalog.contestants_with_tallies(contestant_read_schema.dump)}, 200


@catalog_bp.delete("/contestants/<uuid:contestant_id>")
@roles_required(Role.ADMIN)
@swag_from({
    "tags": ["Admin: Contestants"],
    "summary": "Delete a contestant and the votes cast for them",
    "responses": {200: {}, 403: {}, 404: {}},
})
def delete_contestant(contestant_id):
    catalog.delete_contestant(contestant_id)
    return {"message": "Contestant deleted", "contestant_id": str(contestant_id)}, 200
