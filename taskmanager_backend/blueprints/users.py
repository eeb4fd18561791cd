from flask import Blueprint, request, jsonify

from taskmanager_backend.services.user_service import UserService
from taskmanager_backend.utils.serialization import optional_object_id, to_object_id


def init_users_blueprint(mongo, token_required, serialize_doc):
    """Initialize the users blueprint with database and auth decorator"""
    users_bp = Blueprint('users', __name__, url_prefix='/users')
    service = UserService(mongo.db)

    @users_bp.route('/', methods=['GET'])
    @token_required
    def get_users(current_user):
        """List users visible to the caller"""
        optional_id = optional_object_id(request.args.get('id'), 'id')
        users = service.get_list(current_user, optional_id)
        return jsonify({
            'success': True,
            'data': [serialize_doc(u) for u in users],
            'message': 'Users retrieved successfully'
        })

    @users_bp.route('/lookup', methods=['GET'])
    @token_required
    def get_users_lookup(current_user):
        return jsonify({
            'success': True,
            'data': [serialize_doc(u) for u in service.get_lookup_list(current_user)],
            'message': 'User lookup retrieved successfully'
        })

    @users_bp.route('/<user_id>', methods=['GET'])
    @token_required
    def get_user(current_user, user_id):
        user = service.get_model(to_object_id(user_id), current_user)
        return jsonify({
            'success': True,
            'data': serialize_doc(user),
            'message': 'User retrieved successfully'
        })

    @users_bp.route('/', methods=['POST'])
    @token_required
    def create_user(current_user):
        data = request.get_json(silent=True) or {}
        user = service.insert(data, current_user)
        return jsonify({
            'success': True,
            'data': serialize_doc(user),
            'message': 'User created successfully'
        }), 201

    @users_bp.route('/<user_id>', methods=['PUT'])
    @token_required
    def update_user(current_user, user_id):
        data = request.get_json(silent=True) or {}
        user = service.update(to_object_id(user_id), data, current_user)
        return jsonify({
            'success': True,
            'data': serialize_doc(user),
            'message': 'User updated successfully'
        })

    @users_bp.route('/<user_id>', methods=['DELETE'])
    @token_required
    def delete_user(current_user, user_id):
        service.delete(to_object_id(user_id), current_user)
        return jsonify({
            'success': True,
            'data': None,
            'message': 'User deleted successfully'
        })

    @users_bp.route('/check-duplicate-email', methods=['POST'])
    @token_required
    def check_duplicate_email(current_user):
        data = request.get_json(silent=True) or {}
        exclude_id = optional_object_id(data.get('excludeId'), 'excludeId')
        return jsonify({
            'success': True,
            'data': {'isDuplicate': service.check_duplicate_email(data.get('email'), exclude_id)},
            'message': 'Duplicate check completed'
        })

    return users_bp
