"""
JWT issue / verify / revoke helpers.

Revoked token ids live in the revoked_tokens collection with a TTL index on
expiresAt, so every worker process sees a logout immediately.
"""
import logging
import uuid
from datetime import datetime, timezone

import jwt
from pymongo.errors import DuplicateKeyError

logger = logging.getLogger(__name__)


def issue_token(user, config, remember_me=False):
    """
    Sign an access token for a user document.

    Returns:
        tuple: (token, expires_at, jti)
    """
    now = datetime.utcnow()
    delta = config['JWT_REMEMBER_ME_DELTA'] if remember_me else config['JWT_EXPIRATION_DELTA']
    expires_at = now + delta
    jti = uuid.uuid4().hex

    payload = {
        'sub': str(user['_id']),
        'role': user.get('role', 'user'),
        'firstName': user.get('firstName', ''),
        'lastName': user.get('lastName', ''),
        'email': user.get('email', ''),
        'jti': jti,
        'iat': now,
        'exp': expires_at,
    }
    token = jwt.encode(payload, config['JWT_SECRET'], algorithm=config['JWT_ALGORITHM'])
    return token, expires_at, jti


def decode_token(token, config):
    """Verify signature and expiry; raises jwt.InvalidTokenError subclasses."""
    return jwt.decode(
        token,
        config['JWT_SECRET'],
        algorithms=[config['JWT_ALGORITHM']],
        options={'require': ['sub', 'exp', 'jti']},
    )


def extract_token(request, cookie_name):
    """Bearer header first, then the auth cookie."""
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(cookie_name) or None


def revoke_token(db, payload):
    expires_at = payload['exp']
    if isinstance(expires_at, (int, float)):
        expires_at = datetime.fromtimestamp(expires_at, tz=timezone.utc).replace(tzinfo=None)
    try:
        db.revoked_tokens.insert_one({
            'jti': payload['jti'],
            'userId': payload.get('userId'),
            'revokedOn': datetime.utcnow(),
            'expiresAt': expires_at,
        })
    except DuplicateKeyError:
        # Already revoked by an earlier logout
        logger.debug(f"Token {payload['jti']} already revoked")


def is_revoked(db, jti):
    return db.revoked_tokens.count_documents({'jti': jti}, limit=1) > 0
