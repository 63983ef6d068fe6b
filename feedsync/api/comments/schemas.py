# feedsync/api/comments/schemas.py
from marshmallow import Schema, fields, validate
from feedsync.api.posts.schemas import AuthorSchema # same author snapshot as posts

class CommentCreateSchema(Schema):
    """
    POST /api/posts/{post_id}/comments
    Blank content and the COMMENT_MAX_LENGTH limit are checked by CommentService.
    """
    content = fields.Str(required=True, validate=validate.Length(min=1, error="Comments must not be empty."))

class CommentResponseSchema(Schema):
    comment_id = fields.Str(required=True)
    post_id = fields.Str(required=True)
    author = fields.Nested(AuthorSchema, required=True)
    content = fields.Str(required=True)
    created_at = fields.DateTime(allow_none=True)
