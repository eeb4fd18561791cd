from flask import Blueprint, request, jsonify, g

from taskmanager_backend.services.auth_service import AuthService, RESET_OK, RESET_EXPIRED


def init_auth_blueprint(mongo, token_required, serialize_doc, limiter, app_config):
    """Initialize the auth blueprint with database, limiter and config"""
    auth_bp = Blueprint('auth', __name__, url_prefix='/auth')
    service = AuthService(mongo.db, app_config)

    def set_auth_cookie(response, token, expires_at):
        response.set_cookie(
            app_config['AUTH_COOKIE_NAME'],
            token,
            expires=expires_at,
            httponly=True,
            secure=app_config['COOKIE_SECURE'],
            samesite='Lax',
            path='/',
        )
        return response

    @auth_bp.route('/signup', methods=['POST'])
    @limiter.limit("20 per hour")
    def signup():
        data = request.get_json(silent=True) or {}
        user = service.signup(data)
        return jsonify({
            'success': True,
            'data': serialize_doc(user),
            'message': 'Account created successfully'
        }), 201

    @auth_bp.route('/login', methods=['POST'])
    @limiter.limit("10 per minute")
    def login():
        data = request.get_json(silent=True) or {}
        result = service.login(
            data.get('email'),
            data.get('password', ''),
            remember_me=data.get('rememberMe', False),
        )

        response = jsonify({
            'success': True,
            'data': {
                'token': result['token'],
                'expiresAt': result['expiresAt'].isoformat() + 'Z',
                'user': serialize_doc(result['user']),
            },
            'message': 'Login successful'
        })
        return set_auth_cookie(response, result['token'], result['expiresAt'])

    @auth_bp.route('/logout', methods=['POST'])
    @token_required
    def logout(current_user):
        service.logout(g.token_payload, current_user['_id'])
        response = jsonify({
            'success': True,
            'data': None,
            'message': 'Logged out successfully'
        })
        response.delete_cookie(app_config['AUTH_COOKIE_NAME'], path='/')
        return response

    @auth_bp.route('/me', methods=['GET'])
    @token_required
    def me(current_user):
        return jsonify({
            'success': True,
            'data': serialize_doc(service.me(current_user)),
            'message': 'Current user retrieved successfully'
        })

    @auth_bp.route('/forgot-password', methods=['POST'])
    @limiter.limit("5 per minute")
    def forgot_password():
        data = request.get_json(silent=True) or {}
        message = service.forgot_password(data.get('email'), data.get('resetPageBaseUrl'))
        return jsonify({
            'success': True,
            'data': None,
            'message': message
        })

    @auth_bp.route('/reset-password/<code>', methods=['GET'])
    def validate_reset_code(code):
        status = service.validate_reset_code(code)
        messages = {
            RESET_OK: 'Reset code is valid',
            RESET_EXPIRED: 'Reset code has expired',
        }
        return jsonify({
            'success': status == RESET_OK,
            'data': {'status': status},
            'message': messages.get(status, 'Invalid reset code')
        }), 200 if status == RESET_OK else 400

    @auth_bp.route('/reset-password', methods=['POST'])
    def reset_password():
        data = request.get_json(silent=True) or {}
        service.reset_password(data.get('code'), data.get('password'))
        return jsonify({
            'success': True,
            'data': None,
            'message': 'Password reset successfully'
        })

    return auth_bp
