#!/usr/bin/env python3
"""
Admin Setup Script for the Task Manager backend

Creates (or promotes) the seed admin account and makes sure collections and
indexes exist.

Usage:
    python -m taskmanager_backend.setup_admin

Default admin credentials (override with SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD):
    Email: admin@tm.com
    Password: Admin@123
    Role: admin
"""

import sys
import logging
from datetime import datetime
from werkzeug.security import generate_password_hash
from pymongo import MongoClient
from bson import ObjectId

from taskmanager_backend.config import environment
from taskmanager_backend.models import DatabaseInitializer

logger = logging.getLogger(__name__)


def seed_admin(db, admin_email, admin_password):
    """
    Create the admin user if missing, or promote an existing user to admin.

    Returns:
        tuple: (user_id, created)
    """
    admin_email = admin_email.strip().lower()

    existing_admin = db.users.find_one({"email": admin_email})
    if existing_admin:
        if existing_admin.get('role') != 'admin':
            db.users.update_one(
                {"_id": existing_admin['_id']},
                {"$set": {"role": "admin", "updatedOn": datetime.utcnow()}}
            )
            logger.info(f"Updated existing user {admin_email} to admin role")
        return existing_admin['_id'], False

    admin_id = ObjectId()
    now = datetime.utcnow()
    db.users.insert_one({
        "_id": admin_id,
        "email": admin_email,
        "password": generate_password_hash(admin_password),
        "firstName": "System",
        "lastName": "Administrator",
        "address": None,
        "countryId": None,
        "stateId": None,
        "cityId": None,
        "zipCode": None,
        "zipCodes": [],
        "avatarUrl": None,
        "role": "admin",
        "resetPasswordCode": None,
        "resetPasswordCodeValidUpto": None,
        "lastLogin": None,
        "isDeleted": False,
        "createdBy": admin_id,
        "createdOn": now,
        "updatedBy": admin_id,
        "updatedOn": now,
    })
    logger.info(f"Created admin user {admin_email} (ID: {admin_id})")
    return admin_id, True


def main():
    logging.basicConfig(level=environment.LOG_LEVEL)
    print("Task Manager Admin Setup")
    print("=" * 50)

    client = MongoClient(environment.MONGO_URI)
    try:
        db = client.get_default_database()
        results = DatabaseInitializer(db).initialize_collections()
        for error in results['errors']:
            print(f"Index warning: {error}")

        admin_id, created = seed_admin(db, environment.SEED_ADMIN_EMAIL, environment.SEED_ADMIN_PASSWORD)
        if created:
            print("Admin user created successfully!")
            print(f"   Email: {environment.SEED_ADMIN_EMAIL}")
            print(f"   Password: {environment.SEED_ADMIN_PASSWORD}")
        else:
            print(f"Admin user {environment.SEED_ADMIN_EMAIL} already exists")
        print(f"   User ID: {admin_id}")
        return 0
    except Exception as e:
        print(f"Error setting up admin user: {str(e)}")
        return 1
    finally:
        client.close()


if __name__ == '__main__':
    sys.exit(main())
