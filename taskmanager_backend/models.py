from datetime import datetime
import logging
import re
from typing import Dict, List, Optional, Any

from bson import ObjectId

logger = logging.getLogger(__name__)


class DatabaseSchema:
    """
    Centralized database schema definitions for all collections.
    Provides field documentation and index definitions.

    Every reference field is stored as an ObjectId written by this service.
    """

    # ==================== COUNTRIES COLLECTION ====================

    @staticmethod
    def get_country_schema() -> Dict[str, Any]:
        """Country master. Soft-deleted rows are kept and restored on re-create."""
        return {
            '_id': ObjectId,
            'name': str,  # Display name, trimmed, whitespace collapsed, max 50
            'nameKey': str,  # Canonical lowercase key, unique
            'isDeleted': bool,  # Soft delete flag
            'createdBy': Optional[ObjectId],  # Reference to users._id
            'createdOn': datetime,
            'updatedBy': Optional[ObjectId],
            'updatedOn': datetime,
        }

    @staticmethod
    def get_country_indexes() -> List[Dict[str, Any]]:
        return [
            {'keys': [('nameKey', 1)], 'unique': True, 'name': 'uniq_country_name_key'},
            {'keys': [('isDeleted', 1)], 'name': 'country_is_deleted'},
        ]

    # ==================== STATES COLLECTION ====================

    @staticmethod
    def get_state_schema() -> Dict[str, Any]:
        """State master; always belongs to a country."""
        return {
            '_id': ObjectId,
            'name': str,
            'nameKey': str,
            'countryId': ObjectId,  # Reference to countries._id
            'isDeleted': bool,
            'createdBy': Optional[ObjectId],
            'createdOn': datetime,
            'updatedBy': Optional[ObjectId],
            'updatedOn': datetime,
        }

    @staticmethod
    def get_state_indexes() -> List[Dict[str, Any]]:
        return [
            {'keys': [('countryId', 1), ('nameKey', 1)], 'unique': True, 'name': 'uniq_state_country_name_key'},
            {'keys': [('isDeleted', 1)], 'name': 'state_is_deleted'},
        ]

    # ==================== CITIES COLLECTION ====================

    @staticmethod
    def get_city_schema() -> Dict[str, Any]:
        """City master; belongs to a state and carries zero or more zip codes."""
        return {
            '_id': ObjectId,
            'name': str,
            'nameKey': str,
            'stateId': ObjectId,  # Reference to states._id
            'zipCodes': List[str],  # Each code 1-6 chars
            'isDeleted': bool,
            'createdBy': Optional[ObjectId],
            'createdOn': datetime,
            'updatedBy': Optional[ObjectId],
            'updatedOn': datetime,
        }

    @staticmethod
    def get_city_indexes() -> List[Dict[str, Any]]:
        return [
            {'keys': [('stateId', 1), ('nameKey', 1)], 'unique': True, 'name': 'uniq_city_state_name_key'},
            {'keys': [('isDeleted', 1)], 'name': 'city_is_deleted'},
        ]

    # ==================== USERS COLLECTION ====================

    @staticmethod
    def get_user_schema() -> Dict[str, Any]:
        """
        Schema for users collection.
        Stores authentication, profile and the denormalized location ids.
        """
        return {
            '_id': ObjectId,
            'firstName': str,  # Required, max 50
            'lastName': str,  # Required, max 50
            'email': str,  # Required, unique, lowercase, max 50
            'password': str,  # Hashed with werkzeug.security
            'address': Optional[str],  # Max 100
            'countryId': Optional[ObjectId],
            'stateId': Optional[ObjectId],
            'cityId': Optional[ObjectId],
            'zipCode': Optional[str],
            'zipCodes': List[str],
            'avatarUrl': Optional[str],
            'role': str,  # 'admin' or 'user'
            'resetPasswordCode': Optional[str],
            'resetPasswordCodeValidUpto': Optional[datetime],
            'lastLogin': Optional[datetime],
            'isDeleted': bool,
            'createdBy': Optional[ObjectId],
            'createdOn': datetime,
            'updatedBy': Optional[ObjectId],
            'updatedOn': datetime,
        }

    @staticmethod
    def get_user_indexes() -> List[Dict[str, Any]]:
        """Define indexes for users collection."""
        return [
            {'keys': [('email', 1)], 'unique': True, 'name': 'email_unique'},
            {'keys': [('role', 1)], 'name': 'role_index'},
            {'keys': [('createdBy', 1)], 'name': 'created_by'},
            {'keys': [('cityId', 1)], 'name': 'user_city'},
            {'keys': [('stateId', 1)], 'name': 'user_state'},
            {'keys': [('countryId', 1)], 'name': 'user_country'},
            {'keys': [('resetPasswordCode', 1)], 'sparse': True, 'name': 'reset_password_code'},
        ]

    # ==================== TASKS COLLECTION ====================

    @staticmethod
    def get_task_schema() -> Dict[str, Any]:
        return {
            '_id': ObjectId,
            'taskName': str,  # Required, max 50
            'descrPlainText': str,
            'descrFormattedText': str,
            'assignedTo': List[ObjectId],  # References to users._id
            'dueDate': Optional[datetime],
            'priority': int,  # 0 = Low, 1 = Medium, 2 = High
            'completed': bool,
            'completedByUserId': Optional[ObjectId],
            'completedOn': Optional[datetime],
            'isDeleted': bool,
            'createdBy': Optional[ObjectId],
            'createdOn': datetime,
            'updatedBy': Optional[ObjectId],
            'updatedOn': datetime,
        }

    @staticmethod
    def get_task_indexes() -> List[Dict[str, Any]]:
        return [
            {'keys': [('dueDate', 1), ('priority', 1)], 'name': 'due_date_priority'},
            {'keys': [('createdBy', 1), ('dueDate', 1)], 'name': 'created_by_due_date'},
            {'keys': [('assignedTo', 1)], 'name': 'assigned_to'},
        ]

    # ==================== REVOKED TOKENS COLLECTION ====================

    @staticmethod
    def get_revoked_token_schema() -> Dict[str, Any]:
        """Logged-out JWT ids, kept until the token would have expired."""
        return {
            '_id': ObjectId,
            'jti': str,
            'userId': Optional[ObjectId],
            'revokedOn': datetime,
            'expiresAt': datetime,
        }

    @staticmethod
    def get_revoked_token_indexes() -> List[Dict[str, Any]]:
        return [
            {'keys': [('jti', 1)], 'unique': True, 'name': 'jti_unique'},
            {'keys': [('expiresAt', 1)], 'expireAfterSeconds': 0, 'name': 'expires_at_ttl'},
        ]


collections = {
    'countries': DatabaseSchema.get_country_indexes,
    'states': DatabaseSchema.get_state_indexes,
    'cities': DatabaseSchema.get_city_indexes,
    'users': DatabaseSchema.get_user_indexes,
    'tasks': DatabaseSchema.get_task_indexes,
    'revoked_tokens': DatabaseSchema.get_revoked_token_indexes,
}


class DatabaseInitializer:
    """
    Creates collections and indexes idempotently at startup.
    """

    def __init__(self, mongo_db):
        """
        Initialize with MongoDB database instance.

        Args:
            mongo_db: PyMongo database instance
        """
        self.db = mongo_db

    def initialize_collections(self):
        """
        Create all collections and their indexes if they don't exist.

        Returns:
            dict: Summary of created collections, indexes and errors
        """
        results = {
            'created': [],
            'existing': [],
            'indexes_created': [],
            'errors': [],
        }

        existing_collections = self.db.list_collection_names()

        for collection_name, get_indexes in collections.items():
            try:
                if collection_name not in existing_collections:
                    self.db.create_collection(collection_name)
                    results['created'].append(collection_name)
                    logger.info("Created collection '%s'", collection_name)
                else:
                    results['existing'].append(collection_name)

                collection = self.db[collection_name]
                existing_indexes = collection.index_information()

                for index_def in get_indexes():
                    index_name = index_def.get('name')

                    if index_name and index_name in existing_indexes:
                        continue

                    options = {
                        'unique': index_def.get('unique', False),
                        'sparse': index_def.get('sparse', False),
                        'name': index_name,
                    }
                    if 'expireAfterSeconds' in index_def:
                        options['expireAfterSeconds'] = index_def['expireAfterSeconds']

                    try:
                        created_index_name = collection.create_index(index_def['keys'], **options)
                        results['indexes_created'].append(f"{collection_name}.{created_index_name}")
                        logger.info("Created index '%s' on '%s'", created_index_name, collection_name)
                    except Exception as index_error:
                        error_msg = f"Failed to create index '{index_name}' on {collection_name}: {index_error}"
                        results['errors'].append(error_msg)
                        logger.error(error_msg)

            except Exception as e:
                error_msg = f"Failed to initialize collection {collection_name}: {e}"
                results['errors'].append(error_msg)
                logger.error(error_msg)

        return results


class ModelValidator:
    """
    Validation utilities for model data.
    """

    EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
    # 8-18 chars, one uppercase, one digit, one special character
    PASSWORD_POLICY = re.compile(r'^(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z0-9]).{8,18}$')

    MAX_NAME_LENGTH = 50
    MAX_ADDRESS_LENGTH = 100
    MIN_SIGNUP_PASSWORD_LENGTH = 6

    VALID_ROLES = ('admin', 'user')
    VALID_PRIORITIES = (0, 1, 2)

    @classmethod
    def validate_email(cls, email: str) -> bool:
        return bool(email) and cls.EMAIL_PATTERN.match(email) is not None

    @classmethod
    def validate_password_policy(cls, password: str) -> bool:
        return bool(password) and cls.PASSWORD_POLICY.match(password) is not None

    @classmethod
    def validate_user_role(cls, role: str) -> bool:
        return role in cls.VALID_ROLES

    @classmethod
    def validate_priority(cls, priority) -> bool:
        return priority in cls.VALID_PRIORITIES


__all__ = [
    'DatabaseSchema',
    'DatabaseInitializer',
    'ModelValidator',
]
