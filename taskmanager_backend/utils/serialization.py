from datetime import datetime

from bson import ObjectId
from bson.errors import InvalidId

from taskmanager_backend.utils.errors import validation_error


def _serialize_value(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat() + 'Z'
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(item) for item in value]
    return value


def serialize_doc(doc):
    """Convert a Mongo document (or read model) into JSON-safe values."""
    if not doc:
        return doc

    doc = doc.copy()

    # Handle _id field
    if '_id' in doc:
        doc['id'] = str(doc['_id'])
        del doc['_id']

    for key, value in list(doc.items()):
        doc[key] = _serialize_value(value)
    return doc


def to_object_id(value, field='id'):
    """Parse an id coming from a URL or payload; raise a validation error if malformed."""
    if isinstance(value, ObjectId):
        return value
    if value is None or str(value).strip() == '':
        raise validation_error(field, f'{field} is required')
    try:
        return ObjectId(str(value).strip())
    except (InvalidId, TypeError):
        raise validation_error(field, f'Invalid {field}')


def optional_object_id(value, field='id'):
    if value is None or str(value).strip() == '':
        return None
    return to_object_id(value, field)


def parse_datetime(value, field):
    """Parse an ISO-8601 date/time string (a trailing 'Z' is accepted)."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1]
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise validation_error(field, f'{field} must be an ISO-8601 date')
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def full_name(user):
    if not user:
        return ''
    return f"{user.get('firstName', '')} {user.get('lastName', '')}".strip()
