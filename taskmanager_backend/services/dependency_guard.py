"""
Dependency Guard for location deletes.

Countries are soft-deleted and restored on re-create; states and cities are
hard-deleted. Any delete is refused while an active child location or an
active referencing document still points at the row.
"""
import logging
from collections import namedtuple
from datetime import datetime

from taskmanager_backend.utils.errors import ErrorKind, ServiceError, not_found

logger = logging.getLogger(__name__)

COUNTRY = 'country'
STATE = 'state'
CITY = 'city'

LEVELS = {
    COUNTRY: {'collection': 'countries', 'label': 'Country'},
    STATE: {'collection': 'states', 'label': 'State'},
    CITY: {'collection': 'cities', 'label': 'City'},
}

# One declared (collection, field) per level for documents that reference a
# location. Tasks carry no location; add entries here when a collection does.
REFERENCE_FIELDS = {
    COUNTRY: [('users', 'countryId')],
    STATE: [('users', 'stateId')],
    CITY: [('users', 'cityId')],
}

ACTIVE = {'isDeleted': {'$ne': True}}

DeleteCheck = namedtuple('DeleteCheck', ['allowed', 'reason'])


class DependencyGuard:

    def __init__(self, db, reference_fields=None):
        self.db = db
        self.reference_fields = reference_fields or REFERENCE_FIELDS

    def can_delete(self, entity_type, entity_id):
        """
        Check whether a location row may be deleted.

        Returns:
            DeleteCheck(allowed, reason)

        Raises:
            ServiceError(NOT_FOUND) if the row is missing or already deleted
        """
        level = self._level(entity_type)
        entity = self.db[level['collection']].find_one({'_id': entity_id, **ACTIVE})
        if not entity:
            raise not_found(level['label'])

        if entity_type == COUNTRY:
            if self.db.states.count_documents({'countryId': entity_id, **ACTIVE}, limit=1):
                return DeleteCheck(False, 'Country has active states')
            state_ids = self.db.states.distinct('_id', {'countryId': entity_id})
            if state_ids and self.db.cities.count_documents({'stateId': {'$in': state_ids}, **ACTIVE}, limit=1):
                return DeleteCheck(False, 'Country has active cities')
        elif entity_type == STATE:
            if self.db.cities.count_documents({'stateId': entity_id, **ACTIVE}, limit=1):
                return DeleteCheck(False, 'State has active cities')

        for collection, field in self.reference_fields.get(entity_type, []):
            if self.db[collection].count_documents({field: entity_id, **ACTIVE}, limit=1):
                return DeleteCheck(False, f"{level['label']} is referenced by {collection}")

        return DeleteCheck(True, None)

    def delete(self, entity_type, entity_id, current_user_id):
        """Delete after the dependency check; raises IN_USE when blocked."""
        check = self.can_delete(entity_type, entity_id)
        level = self._level(entity_type)

        if not check.allowed:
            logger.info(f"Blocked delete of {entity_type} {entity_id}: {check.reason}")
            raise ServiceError(ErrorKind.IN_USE, f"{level['label']} is in use and cannot be deleted: {check.reason}")

        collection = self.db[level['collection']]
        if entity_type == COUNTRY:
            now = datetime.utcnow()
            collection.update_one(
                {'_id': entity_id},
                {'$set': {'isDeleted': True, 'updatedBy': current_user_id, 'updatedOn': now}}
            )
        else:
            collection.delete_one({'_id': entity_id})

        logger.info(f"Deleted {entity_type} {entity_id}")
        return True

    @staticmethod
    def _level(entity_type):
        try:
            return LEVELS[entity_type]
        except KeyError:
            raise ValueError(f'Unknown location level: {entity_type}')
