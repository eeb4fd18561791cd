"""
Shared fixtures: an in-memory MongoDB (mongomock) and an app wired to it.
"""
import unittest
from datetime import datetime

import mongomock
from bson import ObjectId
from werkzeug.security import generate_password_hash

from taskmanager_backend.app import create_app
from taskmanager_backend.models import DatabaseInitializer
from taskmanager_backend.utils.auth_tokens import issue_token

TEST_CONFIG = {
    'TESTING': True,
    'RATELIMIT_ENABLED': False,
    'JWT_SECRET': 'test-jwt-secret',
    'SECRET_KEY': 'test-secret-key',
    'COOKIE_SECURE': False,
    'ENVIRONMENT': 'testing',
    'RESET_PAGE_BASE_URL': 'http://frontend.test/reset-password',
    'CORS_ORIGINS': ['http://frontend.test'],
    'LOG_LEVEL': 'WARNING',
}

DEFAULT_PASSWORD = 'Passw0rd!'


class MockMongo:
    """Stands in for flask_pymongo.PyMongo: exposes `.db`."""

    def __init__(self):
        self.cx = mongomock.MongoClient()
        self.db = self.cx['task_manager_test']


class DatabaseTestCase(unittest.TestCase):
    """Service-level tests against mongomock with the real indexes."""

    def setUp(self):
        self.mock_mongo = MockMongo()
        self.db = self.mock_mongo.db
        DatabaseInitializer(self.db).initialize_collections()

    def create_user(self, email, role='user', password=DEFAULT_PASSWORD, created_by=None, **extra):
        user_id = ObjectId()
        now = datetime.utcnow()
        user = {
            '_id': user_id,
            'firstName': extra.pop('firstName', email.split('@')[0].title()),
            'lastName': extra.pop('lastName', 'Tester'),
            'email': email,
            'password': generate_password_hash(password),
            'address': None,
            'countryId': None,
            'stateId': None,
            'cityId': None,
            'zipCode': None,
            'zipCodes': [],
            'avatarUrl': None,
            'role': role,
            'resetPasswordCode': None,
            'resetPasswordCodeValidUpto': None,
            'lastLogin': None,
            'isDeleted': False,
            'createdBy': created_by or user_id,
            'createdOn': now,
            'updatedBy': created_by or user_id,
            'updatedOn': now,
        }
        user.update(extra)
        self.db.users.insert_one(user)
        return user


class ApiTestCase(DatabaseTestCase):
    """Adds a Flask test client bound to the same mongomock database."""

    def setUp(self):
        super().setUp()
        self.app = create_app(TEST_CONFIG, mongo=self.mock_mongo)
        self.client = self.app.test_client()
        self.admin = self.create_user('admin@tm.com', role='admin')

    def get_token(self, user, remember_me=False):
        token, _, _ = issue_token(user, self.app.config, remember_me=remember_me)
        return token

    def auth_headers(self, user):
        return {'Authorization': f'Bearer {self.get_token(user)}'}
