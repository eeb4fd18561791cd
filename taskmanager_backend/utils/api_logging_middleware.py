"""
API Logging Middleware - log method, path, status and duration of every API call
"""
from flask import request, g
import logging
import time

logger = logging.getLogger('taskmanager_backend.api')


def setup_api_logging(app):
    """Setup middleware to log all API calls"""

    @app.before_request
    def before_request():
        """Record request start time"""
        g.start_time = time.time()

    @app.after_request
    def after_request(response):
        """Log API call after request completes"""
        if hasattr(g, 'start_time'):
            response_time_ms = (time.time() - g.start_time) * 1000
        else:
            response_time_ms = 0

        # Set by token_required
        user_id = getattr(g, 'current_user_id', None)

        endpoint = request.endpoint
        if endpoint and not endpoint.startswith('static'):
            logger.info(
                "%s %s -> %s (%.1f ms) user=%s",
                request.method,
                request.path,
                response.status_code,
                response_time_ms,
                user_id or '-',
            )

        return response

    return app
