# feedsync/api/posts/routes.py
import logging
from flask import Blueprint, request, jsonify, Response, current_app
from flask_jwt_extended import jwt_required
from marshmallow import ValidationError

from feedsync.api.posts.schemas import PostCreateSchema, PostResponseSchema, PopularTagSchema
from feedsync.core.errors import FeedSyncError
from feedsync.core.identity import current_identity

posts_bp = Blueprint('posts_bp', __name__)


@posts_bp.route('/posts', methods=['GET'])
@jwt_required(optional=True)
def list_posts():
    """
    Feed page, newest first.
    - query: type (optional filter), cursor (from the previous page), limit
    """
    post_service = current_app.services['posts']
    identity = current_identity()
    type_filter = request.args.get('type', None, type=str)
    cursor = request.args.get('cursor', None, type=str)
    limit = request.args.get('limit', None, type=int)
    try:
        posts, next_cursor = post_service.list_posts(type_filter=type_filter, cursor=cursor, limit=limit)
        viewer_id = identity.user_id if identity else None
        return jsonify({
            "posts": PostResponseSchema(many=True).dump(post_service.with_like_state(posts, viewer_id)),
            "next_cursor": next_cursor
        }), 200
    except FeedSyncError as e:
        return jsonify(e.to_dict()), e.http_status


@posts_bp.route('/posts', methods=['POST'])
@jwt_required()
def create_post():
    post_service = current_app.services['posts']
    try:
        data = PostCreateSchema().load(request.get_json() or {})
        post_type = data.pop('type')
        new_post = post_service.create_post(current_identity(), post_type, data)
        return jsonify(PostResponseSchema().dump(new_post.to_dict())), 201
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400
    except FeedSyncError as e:
        return jsonify(e.to_dict()), e.http_status


@posts_bp.route('/posts/<string:post_id>', methods=['GET'])
@jwt_required(optional=True)
def get_post(post_id: str):
    post_service = current_app.services['posts']
    identity = current_identity()
    try:
        post = post_service.get_post(post_id)
    except FeedSyncError as e:
        return jsonify(e.to_dict()), e.http_status
    data = post.to_dict()
    data['is_liked'] = post_service.is_liked(post_id, identity.user_id if identity else None)
    return jsonify(PostResponseSchema().dump(data)), 200


@posts_bp.route('/posts/<string:post_id>', methods=['DELETE'])
@jwt_required()
def delete_post(post_id: str):
    post_service = current_app.services['posts']
    try:
        post_service.delete_post(post_id, current_identity().user_id)
        return Response(status=204)
    except FeedSyncError as e:
        return jsonify(e.to_dict()), e.http_status


@posts_bp.route('/posts/<string:post_id>/like', methods=['POST'])
@jwt_required()
def toggle_like(post_id: str):
    """Likes or unlikes the post. Answers with the new liked state."""
    post_service = current_app.services['posts']
    identity = current_identity()
    try:
        liked = post_service.toggle_like(post_id, identity.user_id if identity else None)
        return jsonify({"post_id": post_id, "liked": liked}), 200
    except FeedSyncError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception as e:
        logging.error(f"Like toggle failed (post_id: {post_id}): {e}", exc_info=True)
        return jsonify({"error_code": "LIKE_TOGGLE_FAILED", "message": "Could not update the like."}), 500


@posts_bp.route('/posts/<string:post_id>/view', methods=['POST'])
def record_view(post_id: str):
    post_service = current_app.services['posts']
    try:
        post_service.record_view(post_id)
        return Response(status=204)
    except FeedSyncError as e:
        return jsonify(e.to_dict()), e.http_status


@posts_bp.route('/posts/tags/popular', methods=['GET'])
def popular_tags():
    post_service = current_app.services['posts']
    top = request.args.get('top', 8, type=int)
    return jsonify({"tags": PopularTagSchema(many=True).dump(post_service.popular_tags(top=top))}), 200
