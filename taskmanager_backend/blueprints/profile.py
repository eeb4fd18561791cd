from flask import Blueprint, request, jsonify

from taskmanager_backend.services.user_service import ProfileService


def init_profile_blueprint(mongo, token_required, serialize_doc):
    """Current-user profile endpoints"""
    profile_bp = Blueprint('profile', __name__, url_prefix='/profile')
    service = ProfileService(mongo.db)

    @profile_bp.route('/', methods=['GET'])
    @token_required
    def get_profile(current_user):
        return jsonify({
            'success': True,
            'data': serialize_doc(service.get_profile(current_user['_id'])),
            'message': 'Profile retrieved successfully'
        })

    @profile_bp.route('/', methods=['PUT'])
    @token_required
    def update_profile(current_user):
        data = request.get_json(silent=True) or {}
        profile = service.update_profile(current_user['_id'], data)
        return jsonify({
            'success': True,
            'data': serialize_doc(profile),
            'message': 'Profile updated successfully'
        })

    @profile_bp.route('/check-duplicate-email', methods=['POST'])
    @token_required
    def check_duplicate_email(current_user):
        data = request.get_json(silent=True) or {}
        return jsonify({
            'success': True,
            'data': {'isDuplicate': service.check_duplicate_email(current_user['_id'], data.get('email'))},
            'message': 'Duplicate check completed'
        })

    return profile_bp
