# feedsync/api/posts/schemas.py
from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from feedsync.models.post import PostType

# --- shared nested schemas ---
class AuthorSchema(Schema):
    """Author snapshot embedded in posts and comments."""
    user_id = fields.Str(required=True)
    display_name = fields.Str(required=True)
    avatar_url = fields.Str(allow_none=True)

class MetricsSchema(Schema):
    likes = fields.Int(required=True)
    comments = fields.Int(required=True)
    views = fields.Int(required=True)

# --- request / response schemas ---

class PostCreateSchema(Schema):
    """Validates the body of POST /api/posts. Which fields are required depends on `type`."""
    type = fields.Str(required=True, validate=validate.OneOf([t.value for t in PostType]))
    # article
    title = fields.Str(validate=validate.Length(max=300))
    content = fields.Str(validate=validate.Length(max=50000))
    tags = fields.List(fields.Str(validate=validate.Length(min=1, max=50)), validate=validate.Length(max=10))
    cover_image = fields.URL(allow_none=True)
    # resume / portfolio / whiteboard
    asset_id = fields.Str()
    asset_url = fields.Str()
    caption = fields.Str(allow_none=True, validate=validate.Length(max=500))
    thumbnail_url = fields.URL(allow_none=True)

    @validates_schema
    def validate_variant(self, data, **kwargs):
        if data.get('type') == PostType.ARTICLE.value:
            missing = [name for name in ('title', 'content') if not (data.get(name) or '').strip()]
        else:
            missing = [name for name in ('asset_id', 'asset_url') if not data.get(name)]
        if missing:
            raise ValidationError({name: ["Missing data for required field."] for name in missing})

class PostResponseSchema(Schema):
    """JSON shape of a post. `payload` depends on `type`."""
    post_id = fields.Str(dump_only=True)
    author = fields.Nested(AuthorSchema, required=True)
    type = fields.Str(required=True)
    payload = fields.Dict(required=True)
    metrics = fields.Nested(MetricsSchema, required=True)
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)
    is_liked = fields.Bool(dump_only=True, dump_default=False)

class PopularTagSchema(Schema):
    tag = fields.Str(required=True)
    count = fields.Int(required=True)
