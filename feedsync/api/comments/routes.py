# feedsync/api/comments/routes.py
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError

from feedsync.api.comments.schemas import CommentCreateSchema, CommentResponseSchema
from feedsync.core.errors import FeedSyncError
from feedsync.core.identity import current_identity


comments_bp = Blueprint('comments_bp', __name__)

@comments_bp.route('/posts/<string:post_id>/comments', methods=['POST'])
@jwt_required()
def create_comment(post_id: str):
    """
    Adds a comment to the post and bumps its comment counter in the same transaction.
    - 201 with the stored comment on success
    """
    comment_service = current_app.services['comments']
    identity = current_identity()
    try:
        data = CommentCreateSchema().load(request.get_json() or {})
        new_comment = comment_service.add_comment(
            post_id, identity.user_id, identity.display_name, identity.avatar_url, data['content']
        )
        return jsonify(CommentResponseSchema().dump(new_comment)), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except FeedSyncError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception as e:
        logging.error(f"Comment creation failed (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "COMMENT_CREATION_FAILED", "message": "Could not create the comment."}), 500

@comments_bp.route('/posts/<string:post_id>/comments', methods=['GET'])
def get_comments(post_id: str):
    """Whole thread of the post, oldest first."""
    comment_service = current_app.services['comments']
    comments = comment_service.list_comments(post_id)
    return jsonify({"comments": CommentResponseSchema(many=True).dump(comments)}), 200
