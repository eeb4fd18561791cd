"""
Authentication flows: signup, login, logout, password reset.
"""
import logging
import uuid
from datetime import datetime, timedelta
from urllib.parse import urlparse

from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from werkzeug.security import check_password_hash, generate_password_hash

from taskmanager_backend.models import ModelValidator
from taskmanager_backend.services.user_service import UserService, normalize_email
from taskmanager_backend.utils.auth_tokens import issue_token, revoke_token
from taskmanager_backend.utils.email_service import get_email_service
from taskmanager_backend.utils.errors import ErrorKind, ServiceError, validation_error
from taskmanager_backend.utils.names import clean_display_name
from taskmanager_backend.utils.serialization import full_name

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = 'If the email exists, a reset link has been sent'

RESET_OK = 'ok'
RESET_INVALID = 'invalid'
RESET_EXPIRED = 'expired'


class AuthService:

    def __init__(self, db, config, users=None, email_service=None):
        self.db = db
        self.config = config
        self.users = users or UserService(db)
        self._email_service = email_service

    @property
    def email_service(self):
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    def signup(self, payload):
        email = normalize_email(payload.get('email'))
        password = payload.get('password') or ''

        errors = {}
        if not email:
            errors['email'] = ['Email is required']
        elif len(email) > ModelValidator.MAX_NAME_LENGTH or not ModelValidator.validate_email(email):
            errors['email'] = ['Invalid email format']
        if not password:
            errors['password'] = ['Password is required']
        elif len(password) < ModelValidator.MIN_SIGNUP_PASSWORD_LENGTH:
            errors['password'] = [f'Password must be at least {ModelValidator.MIN_SIGNUP_PASSWORD_LENGTH} characters']
        for field in ('firstName', 'lastName'):
            if len(clean_display_name(payload.get(field))) > ModelValidator.MAX_NAME_LENGTH:
                errors[field] = [f'{field} must be at most {ModelValidator.MAX_NAME_LENGTH} characters']
        if errors:
            raise ServiceError(ErrorKind.VALIDATION, 'Validation failed', errors)

        if self.users.check_duplicate_email(email):
            raise UserService.duplicate_email_error()

        user_id = ObjectId()
        now = datetime.utcnow()
        doc = {
            '_id': user_id,
            'firstName': clean_display_name(payload.get('firstName')),
            'lastName': clean_display_name(payload.get('lastName')),
            'email': email,
            'password': generate_password_hash(password),
            'avatarUrl': None,
            'role': 'user',
            'resetPasswordCode': None,
            'resetPasswordCodeValidUpto': None,
            'lastLogin': None,
            'isDeleted': False,
            'createdBy': user_id,
            'createdOn': now,
            'updatedBy': user_id,
            'updatedOn': now,
        }
        doc.update(self.users.apply_location(payload, user_id))

        try:
            self.db.users.insert_one(doc)
        except DuplicateKeyError:
            raise UserService.duplicate_email_error()

        logger.info(f"New signup: {email}")

        # Best effort; signup succeeds even when mail is down
        result = self.email_service.send_registration_email(email, full_name(doc) or None)
        if not result.get('success'):
            logger.warning(f"Registration email not sent to {email}: {result.get('error')}")

        return self.users.to_read_model(doc)

    def login(self, email, password, remember_me=False):
        """
        Check credentials and issue a token.

        Returns:
            dict: {'token', 'expiresAt', 'user'}
        """
        email = normalize_email(email)
        if not email or not password:
            errors = {}
            if not email:
                errors['email'] = ['Email is required']
            if not password:
                errors['password'] = ['Password is required']
            raise ServiceError(ErrorKind.VALIDATION, 'Email and password are required', errors)

        user = self.db.users.find_one({'email': email, 'isDeleted': {'$ne': True}})
        if not user or not check_password_hash(user.get('password', ''), password):
            logger.info(f"Failed login for {email}")
            raise ServiceError(ErrorKind.UNAUTHORIZED, 'Invalid credentials', {'email': ['Invalid email or password']})

        token, expires_at, _ = issue_token(user, self.config, remember_me=bool(remember_me))
        self.db.users.update_one({'_id': user['_id']}, {'$set': {'lastLogin': datetime.utcnow()}})

        return {
            'token': token,
            'expiresAt': expires_at,
            'user': self.me(user),
        }

    def logout(self, token_payload, user_id=None):
        revoke_token(self.db, {**token_payload, 'userId': user_id})
        logger.info(f"User {user_id} logged out")

    @staticmethod
    def me(user):
        return {
            '_id': user['_id'],
            'email': user.get('email', ''),
            'firstName': user.get('firstName', ''),
            'lastName': user.get('lastName', ''),
            'name': full_name(user),
            'role': user.get('role', 'user'),
            'avatarUrl': user.get('avatarUrl'),
        }

    def forgot_password(self, email, reset_page_base_url=None):
        """Store a reset code and email the link; the reply never reveals whether the email exists."""
        email = normalize_email(email)
        if not email:
            raise validation_error('email', 'Email is required')

        user = self.db.users.find_one({'email': email, 'isDeleted': {'$ne': True}})
        if not user:
            logger.info(f"Password reset requested for unknown email {email}")
            return FORGOT_PASSWORD_MESSAGE

        minutes = self.config['RESET_PASSWORD_EXP_MINUTES']
        code = str(uuid.uuid4())
        self.db.users.update_one(
            {'_id': user['_id']},
            {'$set': {
                'resetPasswordCode': code,
                'resetPasswordCodeValidUpto': datetime.utcnow() + timedelta(minutes=minutes),
            }}
        )

        base = self._reset_base_url(reset_page_base_url).rstrip('/')
        result = self.email_service.send_password_reset(
            to_email=user['email'],
            reset_link=f'{base}/{code}',
            user_name=full_name(user) or None,
            expires_in_minutes=minutes,
        )
        if not result.get('success'):
            logger.warning(f"Password reset email not sent to {email}: {result.get('error')}")

        return FORGOT_PASSWORD_MESSAGE

    def _reset_base_url(self, requested):
        """The client may pick the reset page only on an origin it is already allowed to call from."""
        default = self.config['RESET_PAGE_BASE_URL']
        if not requested:
            return default
        parsed = urlparse(str(requested).strip())
        origin = f'{parsed.scheme}://{parsed.netloc}'
        allowed = {o.rstrip('/') for o in self.config.get('CORS_ORIGINS') or []}
        if parsed.scheme in ('http', 'https') and parsed.netloc and origin in allowed:
            return str(requested).strip()
        logger.warning(f"Ignoring reset page base URL outside allowed origins: {requested}")
        return default

    def validate_reset_code(self, code):
        if not code:
            return RESET_INVALID
        user = self.db.users.find_one({'resetPasswordCode': code, 'isDeleted': {'$ne': True}})
        if not user:
            return RESET_INVALID
        valid_upto = user.get('resetPasswordCodeValidUpto')
        if not valid_upto or valid_upto < datetime.utcnow():
            return RESET_EXPIRED
        return RESET_OK

    def reset_password(self, code, new_password):
        if not new_password or len(new_password) < ModelValidator.MIN_SIGNUP_PASSWORD_LENGTH:
            raise validation_error('password', f'Password must be at least {ModelValidator.MIN_SIGNUP_PASSWORD_LENGTH} characters')

        status = self.validate_reset_code(code)
        if status == RESET_INVALID:
            raise validation_error('code', 'Invalid reset code')
        if status == RESET_EXPIRED:
            raise validation_error('code', 'Reset code has expired')

        self.db.users.update_one(
            {'resetPasswordCode': code},
            {'$set': {
                'password': generate_password_hash(new_password),
                'resetPasswordCode': None,
                'resetPasswordCodeValidUpto': None,
                'updatedOn': datetime.utcnow(),
            }}
        )
        logger.info("Password reset completed")
        return True
