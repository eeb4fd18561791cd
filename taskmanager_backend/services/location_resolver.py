"""
Location Resolver

Turns free-text (country, state, city) names into documents in the
countries / states / cities collections, creating whatever is missing.
The unique (scope, nameKey) indexes are the source of truth: a concurrent
insert that loses the race gets a DuplicateKeyError and re-reads the row
the winner created.
"""
import logging
from datetime import datetime

from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from taskmanager_backend.utils.errors import ErrorKind, ServiceError
from taskmanager_backend.utils.names import canonicalize, clean_display_name, normalize_zip_codes

logger = logging.getLogger(__name__)

ACTIVE = {'isDeleted': {'$ne': True}}


class LocationResolver:

    def __init__(self, db):
        self.db = db

    def resolve_location(self, current_user_id, country_name, state_name, city_name, zip_codes=None):
        """Return the city id for the triple, or None when any name is blank."""
        ids = self.resolve_location_ids(current_user_id, country_name, state_name, city_name, zip_codes)
        if ids is None:
            return None
        return ids[2]

    def resolve_location_ids(self, current_user_id, country_name, state_name, city_name, zip_codes=None):
        """
        Resolve the triple level by level and return (country_id, state_id, city_id).

        Args:
            current_user_id: ObjectId stamped as createdBy/updatedBy
            country_name, state_name, city_name: free-text names
            zip_codes: list or comma separated string forwarded to the city

        Returns:
            tuple of ObjectIds, or None if any name is empty after canonicalization

        Raises:
            ServiceError(LOCATION_UPSERT_FAILED) when a level cannot be persisted
        """
        if not canonicalize(country_name) or not canonicalize(state_name) or not canonicalize(city_name):
            return None

        try:
            country = self._resolve_country(current_user_id, country_name)
            state = self._resolve_child(
                'states', 'countryId', country['_id'], current_user_id, state_name
            )
            city = self._resolve_child(
                'cities', 'stateId', state['_id'], current_user_id, city_name,
                zip_codes=normalize_zip_codes(zip_codes)
            )
        except ServiceError:
            raise
        except PyMongoError as e:
            logger.error(f"Location upsert failed for ({country_name}, {state_name}, {city_name}): {str(e)}")
            raise ServiceError(ErrorKind.LOCATION_UPSERT_FAILED, 'Unable to save location')

        return country['_id'], state['_id'], city['_id']

    def describe_location(self, doc):
        """Display names for the location ids carried by a user document."""
        names = {'countryName': '', 'stateName': '', 'cityName': ''}
        if not doc:
            return names

        for field, collection, key in (
            ('countryId', 'countries', 'countryName'),
            ('stateId', 'states', 'stateName'),
            ('cityId', 'cities', 'cityName'),
        ):
            ref = doc.get(field)
            if not ref:
                continue
            found = self.db[collection].find_one({'_id': ref}, {'name': 1})
            if found:
                names[key] = found.get('name', '')
        return names

    # ---- per level ----

    def _resolve_country(self, current_user_id, country_name):
        name = clean_display_name(country_name)
        key = canonicalize(country_name)

        # The unique index spans soft-deleted rows too, so look at every row
        existing = self._find('countries', {'nameKey': key})
        if existing:
            return self._reuse(
                'countries', existing, name, current_user_id,
                restore=existing.get('isDeleted', False)
            )

        doc = self._new_doc(name, key, current_user_id)
        try:
            self.db.countries.insert_one(doc)
            logger.info(f"Created country '{name}'")
            return doc
        except DuplicateKeyError:
            logger.warning(f"Country '{name}' created concurrently, re-reading")
            existing = self._find('countries', {'nameKey': key})
            if not existing:
                raise ServiceError(ErrorKind.LOCATION_UPSERT_FAILED, f'Unable to save country {name}')
            return self._reuse(
                'countries', existing, name, current_user_id,
                restore=existing.get('isDeleted', False)
            )

    def _resolve_child(self, collection, parent_field, parent_id, current_user_id, raw_name, zip_codes=None):
        name = clean_display_name(raw_name)
        key = canonicalize(raw_name)
        query = {parent_field: parent_id, 'nameKey': key, **ACTIVE}

        existing = self._find(collection, query)
        if existing:
            return self._reuse(collection, existing, name, current_user_id, zip_codes=zip_codes)

        doc = self._new_doc(name, key, current_user_id)
        doc[parent_field] = parent_id
        if collection == 'cities':
            doc['zipCodes'] = zip_codes or []

        try:
            self.db[collection].insert_one(doc)
            logger.info(f"Created {collection} entry '{name}'")
            return doc
        except DuplicateKeyError:
            logger.warning(f"{collection} entry '{name}' created concurrently, re-reading")
            existing = self._find(collection, query)
            if not existing:
                raise ServiceError(ErrorKind.LOCATION_UPSERT_FAILED, f'Unable to save {name}')
            return self._reuse(collection, existing, name, current_user_id, zip_codes=zip_codes)

    def _find(self, collection, query):
        return self.db[collection].find_one(query)

    def _reuse(self, collection, existing, name, current_user_id, restore=False, zip_codes=None):
        """Apply last-write-wins display updates to a matched row and return it."""
        updates = {}
        if existing.get('name') != name:
            updates['name'] = name
        if zip_codes and existing.get('zipCodes') != zip_codes:
            updates['zipCodes'] = zip_codes
        if restore:
            updates['isDeleted'] = False

        if updates:
            updates['updatedBy'] = current_user_id
            updates['updatedOn'] = datetime.utcnow()
            self.db[collection].update_one({'_id': existing['_id']}, {'$set': updates})
            existing = {**existing, **updates}
            if restore:
                logger.info(f"Restored soft-deleted {collection} entry '{name}'")
        return existing

    @staticmethod
    def _new_doc(name, key, current_user_id):
        now = datetime.utcnow()
        return {
            '_id': ObjectId(),
            'name': name,
            'nameKey': key,
            'isDeleted': False,
            'createdBy': current_user_id,
            'createdOn': now,
            'updatedBy': current_user_id,
            'updatedOn': now,
        }
