# feedsync/api/users/routes.py
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required

from feedsync.api.posts.schemas import PostResponseSchema
from feedsync.core.errors import FeedSyncError
from feedsync.core.identity import current_identity

users_bp = Blueprint('users_bp', __name__)


@users_bp.route('/<string:author_id>/posts', methods=['GET'])
@jwt_required(optional=True)
def get_user_posts(author_id: str):
    """Posts written by one user, newest first (the 'my posts' page)."""
    post_service = current_app.services['posts']
    identity = current_identity()
    cursor = request.args.get('cursor', None, type=str)
    limit = request.args.get('limit', None, type=int)
    try:
        posts, next_cursor = post_service.list_posts_by_author(author_id, cursor=cursor, limit=limit)
    except FeedSyncError as e:
        return jsonify(e.to_dict()), e.http_status
    viewer_id = identity.user_id if identity else None
    return jsonify({
        "posts": PostResponseSchema(many=True).dump(post_service.with_like_state(posts, viewer_id)),
        "next_cursor": next_cursor
    }), 200
