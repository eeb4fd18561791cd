"""
Admin CRUD for the Country / State / City masters.
"""
import logging
from datetime import datetime

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from taskmanager_backend.models import ModelValidator
from taskmanager_backend.services.dependency_guard import CITY, COUNTRY, STATE, DependencyGuard
from taskmanager_backend.utils.errors import ErrorKind, ServiceError, not_found, validation_error
from taskmanager_backend.utils.names import canonicalize, clean_display_name, normalize_zip_codes
from taskmanager_backend.utils.serialization import full_name, to_object_id

logger = logging.getLogger(__name__)

ACTIVE = {'isDeleted': {'$ne': True}}


class LocationService:
    """Shared CRUD; subclasses declare the collection and the parent link."""

    level = None
    collection_name = None
    label = None
    parent_field = None
    parent_collection = None
    parent_label = None

    def __init__(self, db, guard=None):
        self.db = db
        self.guard = guard or DependencyGuard(db)

    @property
    def collection(self):
        return self.db[self.collection_name]

    # ---- reads ----

    def get_list(self, parent_id=None):
        query = dict(ACTIVE)
        if self.parent_field and parent_id is not None:
            query[self.parent_field] = parent_id
        rows = list(self.collection.find(query).sort('createdOn', -1))
        return self._decorate(rows)

    def get_model(self, entity_id):
        row = self.collection.find_one({'_id': entity_id, **ACTIVE})
        if not row:
            raise not_found(self.label)
        return self._decorate([row])[0]

    def get_lookup_list(self, parent_id=None):
        query = dict(ACTIVE)
        if self.parent_field and parent_id is not None:
            query[self.parent_field] = parent_id
        projection = {'name': 1}
        if self.parent_field:
            projection[self.parent_field] = 1
        return list(self.collection.find(query, projection).sort('name', 1))

    def check_duplicate_name(self, name, parent_id=None, exclude_id=None):
        key = canonicalize(name)
        if not key:
            return False
        query = {'nameKey': key, **ACTIVE}
        if self.parent_field:
            query[self.parent_field] = parent_id
        if exclude_id is not None:
            query['_id'] = {'$ne': exclude_id}
        return self.collection.count_documents(query, limit=1) > 0

    # ---- writes ----

    def insert(self, payload, current_user_id):
        name, key = self._validate_name(payload)
        parent_id = self._validate_parent(payload)
        extra = self._extra_fields(payload)

        if self.check_duplicate_name(name, parent_id):
            raise self._duplicate(name)

        now = datetime.utcnow()
        doc = {
            '_id': ObjectId(),
            'name': name,
            'nameKey': key,
            'isDeleted': False,
            'createdBy': current_user_id,
            'createdOn': now,
            'updatedBy': current_user_id,
            'updatedOn': now,
            **extra,
        }
        if self.parent_field:
            doc[self.parent_field] = parent_id

        try:
            self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise self._duplicate(name)

        logger.info(f"{self.label} '{name}' created by {current_user_id}")
        return self.get_model(doc['_id'])

    def update(self, entity_id, payload, current_user_id):
        existing = self.collection.find_one({'_id': entity_id, **ACTIVE})
        if not existing:
            raise not_found(self.label)

        name, key = self._validate_name(payload)
        parent_id = self._validate_parent(payload)
        extra = self._extra_fields(payload, partial=True)

        if self.check_duplicate_name(name, parent_id, exclude_id=entity_id):
            raise self._duplicate(name)

        updates = {
            'name': name,
            'nameKey': key,
            'updatedBy': current_user_id,
            'updatedOn': datetime.utcnow(),
            **extra,
        }
        if self.parent_field:
            updates[self.parent_field] = parent_id

        try:
            self.collection.update_one({'_id': entity_id}, {'$set': updates})
        except DuplicateKeyError:
            raise self._duplicate(name)

        return self.get_model(entity_id)

    def delete(self, entity_id, current_user_id):
        return self.guard.delete(self.level, entity_id, current_user_id)

    # ---- helpers ----

    def _validate_name(self, payload):
        name = clean_display_name(payload.get('name'))
        if not name:
            raise validation_error('name', f'{self.label} name is required')
        if len(name) > ModelValidator.MAX_NAME_LENGTH:
            raise validation_error('name', f'{self.label} name must be at most {ModelValidator.MAX_NAME_LENGTH} characters')
        return name, canonicalize(name)

    def _validate_parent(self, payload):
        if not self.parent_field:
            return None
        parent_id = to_object_id(payload.get(self.parent_field), self.parent_field)
        if not self.db[self.parent_collection].find_one({'_id': parent_id, **ACTIVE}, {'_id': 1}):
            raise validation_error(self.parent_field, f'{self.parent_label} does not exist')
        return parent_id

    def _extra_fields(self, payload, partial=False):
        """Level-specific fields; `partial` is set on update, where absent keys keep their stored value."""
        return {}

    def _duplicate(self, name):
        message = f"{self.label} '{name}' already exists"
        return ServiceError(ErrorKind.DUPLICATE, message, {'name': [message]})

    def _decorate(self, rows):
        """Attach createdByUserName / updatedByUserName to read models."""
        user_ids = {r.get(f) for r in rows for f in ('createdBy', 'updatedBy') if r.get(f)}
        users = {}
        if user_ids:
            for u in self.db.users.find({'_id': {'$in': list(user_ids)}}, {'firstName': 1, 'lastName': 1}):
                users[u['_id']] = full_name(u)

        decorated = []
        for row in rows:
            row = dict(row)
            row.pop('nameKey', None)
            row['createdByUserName'] = users.get(row.get('createdBy'), '')
            row['updatedByUserName'] = users.get(row.get('updatedBy'), '')
            decorated.append(row)
        return decorated

    def _parent_names(self, rows, field, collection, target):
        ids = list({r.get(field) for r in rows if r.get(field)})
        names = {}
        if ids:
            names = {p['_id']: p.get('name', '') for p in self.db[collection].find({'_id': {'$in': ids}}, {'name': 1})}
        for row in rows:
            row[target] = names.get(row.get(field), '')
        return rows


class CountryService(LocationService):
    level = COUNTRY
    collection_name = 'countries'
    label = 'Country'

    def insert(self, payload, current_user_id):
        name, key = self._validate_name(payload)

        # A soft-deleted country with the same key is brought back under its old id
        deleted = self.collection.find_one({'nameKey': key, 'isDeleted': True})
        if deleted:
            self.collection.update_one(
                {'_id': deleted['_id']},
                {'$set': {
                    'name': name,
                    'isDeleted': False,
                    'updatedBy': current_user_id,
                    'updatedOn': datetime.utcnow(),
                }}
            )
            logger.info(f"Restored soft-deleted country '{name}' ({deleted['_id']})")
            return self.get_model(deleted['_id'])

        return super().insert(payload, current_user_id)

    def check_duplicate_name(self, name, parent_id=None, exclude_id=None):
        # A rename cannot take a soft-deleted country's key (the unique index spans all rows);
        # a create with that key restores the deleted row instead.
        if exclude_id is None:
            return super().check_duplicate_name(name, parent_id)
        key = canonicalize(name)
        if not key:
            return False
        return self.collection.count_documents({'nameKey': key, '_id': {'$ne': exclude_id}}, limit=1) > 0


class StateService(LocationService):
    level = STATE
    collection_name = 'states'
    label = 'State'
    parent_field = 'countryId'
    parent_collection = 'countries'
    parent_label = 'Country'

    def _decorate(self, rows):
        return self._parent_names(super()._decorate(rows), 'countryId', 'countries', 'countryName')


class CityService(LocationService):
    level = CITY
    collection_name = 'cities'
    label = 'City'
    parent_field = 'stateId'
    parent_collection = 'states'
    parent_label = 'State'

    def _extra_fields(self, payload, partial=False):
        if partial and 'zipCodes' not in payload:
            return {}
        return {'zipCodes': normalize_zip_codes(payload.get('zipCodes'))}

    def _decorate(self, rows):
        return self._parent_names(super()._decorate(rows), 'stateId', 'states', 'stateName')
