from flask import Blueprint, request, jsonify

from taskmanager_backend.services.task_service import TaskService
from taskmanager_backend.utils.serialization import to_object_id

LIST_FILTERS = ('completed', 'priority', 'assignedTo', 'dueDateFrom', 'dueDateTo', 'search')


def init_tasks_blueprint(mongo, token_required, serialize_doc):
    """Initialize the tasks blueprint"""
    tasks_bp = Blueprint('tasks', __name__, url_prefix='/tasks')
    service = TaskService(mongo.db)

    @tasks_bp.route('/', methods=['GET'])
    @token_required
    def get_tasks(current_user):
        """Paginated, filtered task list"""
        filters = {key: request.args.get(key) for key in LIST_FILTERS if request.args.get(key) is not None}
        result = service.list(
            current_user,
            page=request.args.get('page', 1),
            limit=request.args.get('limit', 20),
            filters=filters,
        )
        return jsonify({
            'success': True,
            'data': {
                'items': [serialize_doc(t) for t in result['items']],
                'pagination': {
                    'total': result['total'],
                    'page': result['page'],
                    'pages': result['pages'],
                },
            },
            'message': 'Tasks retrieved successfully'
        })

    @tasks_bp.route('/assigned-users-lookup', methods=['GET'])
    @token_required
    def get_assigned_users_lookup(current_user):
        return jsonify({
            'success': True,
            'data': [serialize_doc(u) for u in service.get_assigned_users_lookup()],
            'message': 'Assignable users retrieved successfully'
        })

    @tasks_bp.route('/', methods=['POST'])
    @token_required
    def create_task(current_user):
        data = request.get_json(silent=True) or {}
        task = service.create(data, current_user)
        return jsonify({
            'success': True,
            'data': serialize_doc(task),
            'message': 'Task created successfully'
        }), 201

    @tasks_bp.route('/<task_id>', methods=['GET'])
    @token_required
    def get_task(current_user, task_id):
        task = service.get(to_object_id(task_id), current_user)
        return jsonify({
            'success': True,
            'data': serialize_doc(task),
            'message': 'Task retrieved successfully'
        })

    @tasks_bp.route('/<task_id>', methods=['PUT'])
    @token_required
    def update_task(current_user, task_id):
        data = request.get_json(silent=True) or {}
        task = service.update(to_object_id(task_id), data, current_user)
        return jsonify({
            'success': True,
            'data': serialize_doc(task),
            'message': 'Task updated successfully'
        })

    @tasks_bp.route('/<task_id>', methods=['DELETE'])
    @token_required
    def delete_task(current_user, task_id):
        service.delete(to_object_id(task_id), current_user)
        return jsonify({
            'success': True,
            'data': None,
            'message': 'Task deleted successfully'
        })

    @tasks_bp.route('/<task_id>/complete', methods=['PATCH'])
    @token_required
    def mark_complete(current_user, task_id):
        data = request.get_json(silent=True) or {}
        task = service.mark_complete(to_object_id(task_id), data.get('completed', True), current_user)
        return jsonify({
            'success': True,
            'data': serialize_doc(task),
            'message': 'Task marked as completed' if task['completed'] else 'Task marked as not completed'
        })

    return tasks_bp
