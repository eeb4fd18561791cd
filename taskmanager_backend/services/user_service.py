"""
User administration and the current-user profile.

Non-admins only see and change their own row and rows they created.
Addresses are resolved into country/state/city ids through the
LocationResolver and denormalized onto the user document.
"""
import logging
from datetime import datetime

from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from werkzeug.security import generate_password_hash

from taskmanager_backend.models import ModelValidator
from taskmanager_backend.services.location_resolver import LocationResolver
from taskmanager_backend.utils.errors import ErrorKind, ServiceError, forbidden, not_found, validation_error
from taskmanager_backend.utils.names import clean_display_name, normalize_zip_codes
from taskmanager_backend.utils.serialization import full_name

logger = logging.getLogger(__name__)

ACTIVE = {'isDeleted': {'$ne': True}}

# Never leaves the service layer
PRIVATE_FIELDS = ('password', 'resetPasswordCode', 'resetPasswordCodeValidUpto')

LOCATION_FIELDS = ('address', 'countryName', 'stateName', 'cityName', 'zipCode', 'zipCodes')


def is_admin(principal):
    return bool(principal) and principal.get('role') == 'admin'


def normalize_email(email):
    return (email or '').strip().lower()


class UserService:

    def __init__(self, db, resolver=None):
        self.db = db
        self.resolver = resolver or LocationResolver(db)

    # ---- reads ----

    def get_list(self, principal, optional_id=None):
        query = {**ACTIVE, **self._ownership_filter(principal)}
        if optional_id is not None:
            query['_id'] = optional_id
        rows = list(self.db.users.find(query).sort('createdOn', -1))
        return [self.to_read_model(row) for row in rows]

    def get_model(self, user_id, principal):
        user = self._get_visible(user_id, principal)
        return self.to_read_model(user)

    def get_lookup_list(self, principal):
        query = {**ACTIVE, **self._ownership_filter(principal)}
        rows = self.db.users.find(query, {'firstName': 1, 'lastName': 1, 'email': 1}).sort([('firstName', 1), ('lastName', 1)])
        return [
            {'_id': row['_id'], 'name': full_name(row), 'email': row.get('email', '')}
            for row in rows
        ]

    def check_duplicate_email(self, email, exclude_id=None):
        email = normalize_email(email)
        if not email:
            return False
        query = {'email': email, **ACTIVE}
        if exclude_id is not None:
            query['_id'] = {'$ne': exclude_id}
        return self.db.users.count_documents(query, limit=1) > 0

    # ---- writes ----

    def insert(self, payload, principal):
        fields = self.validate_identity(payload)
        password = payload.get('password') or ''
        if not ModelValidator.validate_password_policy(password):
            raise validation_error(
                'password',
                'Password must be 8-18 characters with at least one uppercase letter, one digit and one special character'
            )

        if self.check_duplicate_email(fields['email']):
            raise self.duplicate_email_error()

        role = 'user'
        if is_admin(principal) and payload.get('role'):
            role = self._validate_role(payload.get('role'))

        now = datetime.utcnow()
        doc = {
            '_id': ObjectId(),
            **fields,
            'password': generate_password_hash(password),
            'avatarUrl': payload.get('avatarUrl') or None,
            'role': role,
            'resetPasswordCode': None,
            'resetPasswordCodeValidUpto': None,
            'lastLogin': None,
            'isDeleted': False,
            'createdBy': principal['_id'],
            'createdOn': now,
            'updatedBy': principal['_id'],
            'updatedOn': now,
        }
        doc.update(self.apply_location(payload, principal['_id']))

        try:
            self.db.users.insert_one(doc)
        except DuplicateKeyError:
            raise self.duplicate_email_error()

        logger.info(f"User {doc['email']} created by {principal['_id']}")
        return self.to_read_model(doc)

    def update(self, user_id, payload, principal):
        existing = self._get_visible(user_id, principal)
        fields = self.validate_identity(payload)

        if self.check_duplicate_email(fields['email'], exclude_id=user_id):
            raise self.duplicate_email_error()

        updates = {
            **fields,
            'updatedBy': principal['_id'],
            'updatedOn': datetime.utcnow(),
        }

        if payload.get('updatePassword'):
            password = payload.get('password') or ''
            if not ModelValidator.validate_password_policy(password):
                raise validation_error(
                    'password',
                    'Password must be 8-18 characters with at least one uppercase letter, one digit and one special character'
                )
            updates['password'] = generate_password_hash(password)

        if 'avatarUrl' in payload:
            updates['avatarUrl'] = payload.get('avatarUrl') or None

        if 'role' in payload and payload.get('role'):
            if not is_admin(principal):
                if payload['role'] != existing.get('role'):
                    raise forbidden('Only admins can change roles')
            else:
                updates['role'] = self._validate_role(payload['role'])

        if any(f in payload for f in LOCATION_FIELDS):
            updates.update(self.apply_location(payload, principal['_id']))

        try:
            self.db.users.update_one({'_id': user_id}, {'$set': updates})
        except DuplicateKeyError:
            raise self.duplicate_email_error()

        return self.to_read_model(self.db.users.find_one({'_id': user_id}))

    def delete(self, user_id, principal):
        self._get_visible(user_id, principal)

        if self.db.tasks.count_documents({'assignedTo': user_id, **ACTIVE}, limit=1):
            raise ServiceError(ErrorKind.IN_USE, 'User has tasks assigned and cannot be deleted')

        self.db.users.delete_one({'_id': user_id})
        logger.info(f"User {user_id} deleted by {principal['_id']}")
        return True

    # ---- shared helpers ----

    def apply_location(self, payload, current_user_id):
        """
        Location fields for a user document.

        An address requires country, state and city names; those are
        resolved (created if needed) and the three ids stored on the user.
        An empty address clears the location.
        """
        address = clean_display_name(payload.get('address'))
        zip_field = 'zipCodes' if payload.get('zipCodes') else 'zipCode'
        zip_codes = normalize_zip_codes(payload.get(zip_field), zip_field)

        if not address:
            return {
                'address': None,
                'countryId': None,
                'stateId': None,
                'cityId': None,
                'zipCode': None,
                'zipCodes': [],
            }

        if len(address) > ModelValidator.MAX_ADDRESS_LENGTH:
            raise validation_error('address', f'Address must be at most {ModelValidator.MAX_ADDRESS_LENGTH} characters')

        errors = {}
        for field, label in (('countryName', 'Country'), ('stateName', 'State'), ('cityName', 'City')):
            if not clean_display_name(payload.get(field)):
                errors[field] = [f'{label} is required when an address is given']
        if errors:
            raise ServiceError(ErrorKind.VALIDATION, 'Country, state and city are required with an address', errors)

        country_id, state_id, city_id = self.resolver.resolve_location_ids(
            current_user_id,
            payload.get('countryName'),
            payload.get('stateName'),
            payload.get('cityName'),
            zip_codes,
        )
        return {
            'address': address,
            'countryId': country_id,
            'stateId': state_id,
            'cityId': city_id,
            'zipCode': zip_codes[0] if zip_codes else None,
            'zipCodes': zip_codes,
        }

    def to_read_model(self, user):
        model = {k: v for k, v in user.items() if k not in PRIVATE_FIELDS}
        model['name'] = full_name(user)
        model.update(self.resolver.describe_location(user))

        audit_ids = [user.get('createdBy'), user.get('updatedBy')]
        names = {}
        for u in self.db.users.find({'_id': {'$in': [i for i in audit_ids if i]}}, {'firstName': 1, 'lastName': 1}):
            names[u['_id']] = full_name(u)
        model['createdByUserName'] = names.get(user.get('createdBy'), '')
        model['updatedByUserName'] = names.get(user.get('updatedBy'), '')
        return model

    def validate_identity(self, payload):
        first_name = clean_display_name(payload.get('firstName'))
        last_name = clean_display_name(payload.get('lastName'))
        email = normalize_email(payload.get('email'))

        errors = {}
        if not first_name:
            errors['firstName'] = ['First name is required']
        elif len(first_name) > ModelValidator.MAX_NAME_LENGTH:
            errors['firstName'] = [f'First name must be at most {ModelValidator.MAX_NAME_LENGTH} characters']
        if not last_name:
            errors['lastName'] = ['Last name is required']
        elif len(last_name) > ModelValidator.MAX_NAME_LENGTH:
            errors['lastName'] = [f'Last name must be at most {ModelValidator.MAX_NAME_LENGTH} characters']
        if not email:
            errors['email'] = ['Email is required']
        elif len(email) > ModelValidator.MAX_NAME_LENGTH or not ModelValidator.validate_email(email):
            errors['email'] = ['Invalid email format']
        if errors:
            raise ServiceError(ErrorKind.VALIDATION, 'Validation failed', errors)

        return {'firstName': first_name, 'lastName': last_name, 'email': email}

    @staticmethod
    def _validate_role(role):
        role = str(role).strip().lower()
        if not ModelValidator.validate_user_role(role):
            raise validation_error('role', "Role must be 'admin' or 'user'")
        return role

    @staticmethod
    def duplicate_email_error():
        return ServiceError(ErrorKind.DUPLICATE, 'Email is already registered', {'email': ['Email is already registered']})

    @staticmethod
    def _ownership_filter(principal):
        if is_admin(principal):
            return {}
        return {'$or': [{'_id': principal['_id']}, {'createdBy': principal['_id']}]}

    def _get_visible(self, user_id, principal):
        user = self.db.users.find_one({'_id': user_id, **ACTIVE})
        if not user:
            raise not_found('User')
        if is_admin(principal):
            return user
        if user['_id'] != principal['_id'] and user.get('createdBy') != principal['_id']:
            raise forbidden('You do not have access to this user')
        return user


class ProfileService:
    """The signed-in user's own profile."""

    def __init__(self, db, users=None):
        self.db = db
        self.users = users or UserService(db)

    def get_profile(self, user_id):
        user = self.db.users.find_one({'_id': user_id, **ACTIVE})
        if not user:
            raise not_found('User')
        return self.users.to_read_model(user)

    def update_profile(self, user_id, payload):
        user = self.db.users.find_one({'_id': user_id, **ACTIVE})
        if not user:
            raise not_found('User')

        fields = self.users.validate_identity(payload)
        if self.users.check_duplicate_email(fields['email'], exclude_id=user_id):
            raise UserService.duplicate_email_error()

        updates = {**fields, 'updatedBy': user_id, 'updatedOn': datetime.utcnow()}
        if 'avatarUrl' in payload:
            updates['avatarUrl'] = payload.get('avatarUrl') or None
        if any(f in payload for f in LOCATION_FIELDS):
            updates.update(self.users.apply_location(payload, user_id))

        try:
            self.db.users.update_one({'_id': user_id}, {'$set': updates})
        except DuplicateKeyError:
            raise UserService.duplicate_email_error()

        return self.get_profile(user_id)

    def check_duplicate_email(self, user_id, email):
        return self.users.check_duplicate_email(email, exclude_id=user_id)
