"""
Task service: CRUD, assignment, completion and filtered listing.
"""
import logging
import math
import re
from datetime import datetime

from bson import ObjectId

from taskmanager_backend.models import ModelValidator
from taskmanager_backend.services.user_service import is_admin
from taskmanager_backend.utils.errors import forbidden, not_found, validation_error
from taskmanager_backend.utils.names import clean_display_name
from taskmanager_backend.utils.serialization import full_name, optional_object_id, parse_datetime, to_object_id

logger = logging.getLogger(__name__)

ACTIVE = {'isDeleted': {'$ne': True}}

PRIORITY_LABELS = {0: 'Low', 1: 'Medium', 2: 'High'}

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

TASK_SORT = [('dueDate', 1), ('priority', -1), ('createdOn', -1)]


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    text = str(value).strip().lower()
    if text in ('true', '1', 'yes'):
        return True
    if text in ('false', '0', 'no'):
        return False
    return None


class TaskService:

    def __init__(self, db):
        self.db = db

    # ---- writes ----

    def create(self, payload, principal):
        task_name = self._validate_task_name(payload.get('taskName'))
        assigned_to = self._validate_assignees(payload.get('assignedTo'))
        priority = self._validate_priority(payload.get('priority', 0))
        due_date = parse_datetime(payload.get('dueDate'), 'dueDate')

        now = datetime.utcnow()
        doc = {
            '_id': ObjectId(),
            'taskName': task_name,
            'descrPlainText': payload.get('descrPlainText') or '',
            'descrFormattedText': payload.get('descrFormattedText') or '',
            'assignedTo': assigned_to,
            'dueDate': due_date,
            'priority': priority,
            'completed': False,
            'completedByUserId': None,
            'completedOn': None,
            'isDeleted': False,
            'createdBy': principal['_id'],
            'createdOn': now,
            'updatedBy': principal['_id'],
            'updatedOn': now,
        }
        self.db.tasks.insert_one(doc)
        logger.info(f"Task {doc['_id']} created by {principal['_id']}")
        return self.get(doc['_id'], principal)

    def update(self, task_id, payload, principal):
        task = self._get_active(task_id)
        self._require_owner(task, principal)

        updates = {}
        if 'taskName' in payload:
            updates['taskName'] = self._validate_task_name(payload.get('taskName'))
        if 'descrPlainText' in payload:
            updates['descrPlainText'] = payload.get('descrPlainText') or ''
        if 'descrFormattedText' in payload:
            updates['descrFormattedText'] = payload.get('descrFormattedText') or ''
        if 'assignedTo' in payload:
            updates['assignedTo'] = self._validate_assignees(payload.get('assignedTo'))
        if 'priority' in payload:
            updates['priority'] = self._validate_priority(payload.get('priority'))
        if 'dueDate' in payload:
            updates['dueDate'] = parse_datetime(payload.get('dueDate'), 'dueDate')
        if 'completed' in payload:
            updates.update(self._completion_fields(payload.get('completed'), task, principal))

        updates['updatedBy'] = principal['_id']
        updates['updatedOn'] = datetime.utcnow()
        self.db.tasks.update_one({'_id': task_id}, {'$set': updates})
        return self.get(task_id, principal)

    def delete(self, task_id, principal):
        task = self._get_active(task_id)
        self._require_owner(task, principal)
        self.db.tasks.delete_one({'_id': task_id})
        logger.info(f"Task {task_id} deleted by {principal['_id']}")
        return True

    def mark_complete(self, task_id, completed, principal):
        task = self._get_active(task_id)
        uid = principal['_id']
        if not is_admin(principal) and task.get('createdBy') != uid and uid not in task.get('assignedTo', []):
            raise forbidden('You do not have access to this task')

        updates = self._completion_fields(completed, task, principal)
        updates['updatedBy'] = uid
        updates['updatedOn'] = datetime.utcnow()
        self.db.tasks.update_one({'_id': task_id}, {'$set': updates})
        return self.get(task_id, principal)

    # ---- reads ----

    def get(self, task_id, principal):
        task = self._get_active(task_id)
        self._require_visible(task, principal)
        return self._to_read_models([task])[0]

    def list(self, principal, page=1, limit=DEFAULT_PAGE_SIZE, filters=None):
        """
        Paginated task listing.

        Args:
            principal: requesting user document
            page: 1-based page number
            limit: page size, clamped to 1..100
            filters: dict with any of completed, priority, assignedTo,
                dueDateFrom, dueDateTo, search

        Returns:
            dict: {items, total, page, pages}
        """
        filters = filters or {}
        page = max(self._to_int(page, 1), 1)
        limit = min(max(self._to_int(limit, DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

        clauses = [dict(ACTIVE)]
        if not is_admin(principal):
            clauses.append({'$or': [{'createdBy': principal['_id']}, {'assignedTo': principal['_id']}]})

        completed = parse_bool(filters.get('completed'))
        if completed is not None:
            clauses.append({'completed': completed})

        if filters.get('priority') not in (None, ''):
            clauses.append({'priority': self._validate_priority(filters.get('priority'))})

        assignee = optional_object_id(filters.get('assignedTo'), 'assignedTo')
        if assignee is not None:
            clauses.append({'assignedTo': assignee})

        due_from = parse_datetime(filters.get('dueDateFrom'), 'dueDateFrom')
        due_to = parse_datetime(filters.get('dueDateTo'), 'dueDateTo')
        if due_from or due_to:
            due_range = {}
            if due_from:
                due_range['$gte'] = due_from
            if due_to:
                due_range['$lte'] = due_to
            clauses.append({'dueDate': due_range})

        search = (filters.get('search') or '').strip()
        if search:
            pattern = re.escape(search)
            clauses.append({'$or': [
                {'taskName': {'$regex': pattern, '$options': 'i'}},
                {'descrPlainText': {'$regex': pattern, '$options': 'i'}},
            ]})

        query = {'$and': clauses}
        total = self.db.tasks.count_documents(query)
        rows = list(
            self.db.tasks.find(query)
            .sort(TASK_SORT)
            .skip((page - 1) * limit)
            .limit(limit)
        )

        return {
            'items': self._to_read_models(rows),
            'total': total,
            'page': page,
            'pages': math.ceil(total / limit) if total else 0,
        }

    def get_assigned_users_lookup(self):
        rows = self.db.users.find(ACTIVE, {'firstName': 1, 'lastName': 1, 'email': 1})
        users = [
            {
                '_id': u['_id'],
                'firstName': u.get('firstName', ''),
                'lastName': u.get('lastName', ''),
                'name': full_name(u),
                'email': u.get('email', ''),
            }
            for u in rows
        ]
        return sorted(users, key=lambda u: u['name'].lower())

    # ---- helpers ----

    def _get_active(self, task_id):
        task = self.db.tasks.find_one({'_id': task_id, **ACTIVE})
        if not task:
            raise not_found('Task')
        return task

    @staticmethod
    def _require_visible(task, principal):
        if is_admin(principal):
            return
        uid = principal['_id']
        if task.get('createdBy') != uid and uid not in task.get('assignedTo', []):
            raise forbidden('You do not have access to this task')

    @staticmethod
    def _require_owner(task, principal):
        if not is_admin(principal) and task.get('createdBy') != principal['_id']:
            raise forbidden('Only the task creator or an admin can change this task')

    @staticmethod
    def _completion_fields(completed, task, principal):
        flag = parse_bool(completed)
        if flag is None:
            raise validation_error('completed', 'completed must be true or false')
        if flag:
            if task.get('completed'):
                return {'completed': True}
            return {
                'completed': True,
                'completedByUserId': principal['_id'],
                'completedOn': datetime.utcnow(),
            }
        return {'completed': False, 'completedByUserId': None, 'completedOn': None}

    @staticmethod
    def _validate_task_name(value):
        name = clean_display_name(value)
        if not name:
            raise validation_error('taskName', 'Task name is required')
        if len(name) > ModelValidator.MAX_NAME_LENGTH:
            raise validation_error('taskName', f'Task name must be at most {ModelValidator.MAX_NAME_LENGTH} characters')
        return name

    @staticmethod
    def _validate_priority(value):
        if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
            raise validation_error('priority', 'Priority must be 0 (Low), 1 (Medium) or 2 (High)')
        try:
            priority = int(value)
        except (TypeError, ValueError):
            raise validation_error('priority', 'Priority must be 0 (Low), 1 (Medium) or 2 (High)')
        if not ModelValidator.validate_priority(priority):
            raise validation_error('priority', 'Priority must be 0 (Low), 1 (Medium) or 2 (High)')
        return priority

    def _validate_assignees(self, value):
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not value:
            raise validation_error('assignedTo', 'At least one assignee is required')

        ids = []
        for raw in value:
            oid = to_object_id(raw, 'assignedTo')
            if oid not in ids:
                ids.append(oid)

        found = self.db.users.count_documents({'_id': {'$in': ids}, **ACTIVE})
        if found != len(ids):
            raise validation_error('assignedTo', 'One or more assigned users do not exist')
        return ids

    @staticmethod
    def _to_int(value, default):
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _to_read_models(self, tasks):
        """Expand assignee ids and resolve audit user names in one users query."""
        user_ids = set()
        for t in tasks:
            user_ids.update(t.get('assignedTo', []))
            for field in ('createdBy', 'updatedBy', 'completedByUserId'):
                if t.get(field):
                    user_ids.add(t[field])

        users = {}
        if user_ids:
            for u in self.db.users.find({'_id': {'$in': list(user_ids)}}, {'firstName': 1, 'lastName': 1, 'email': 1}):
                users[u['_id']] = u

        models = []
        for t in tasks:
            model = dict(t)
            model['assignedTo'] = [
                {
                    '_id': uid,
                    'firstName': users[uid].get('firstName', ''),
                    'lastName': users[uid].get('lastName', ''),
                    'email': users[uid].get('email', ''),
                }
                for uid in t.get('assignedTo', []) if uid in users
            ]
            model['priorityLabel'] = PRIORITY_LABELS.get(t.get('priority'), '')
            model['createdByUserName'] = full_name(users.get(t.get('createdBy')))
            model['updatedByUserName'] = full_name(users.get(t.get('updatedBy')))
            model['completedByUserName'] = full_name(users.get(t.get('completedByUserId')))
            models.append(model)
        return models
