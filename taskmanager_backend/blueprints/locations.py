"""
Country / State / City master endpoints.

The three resources share one route layout; reads need any signed-in user,
writes need an admin.
"""
from flask import Blueprint, request, jsonify

from taskmanager_backend.services.location_service import CityService, CountryService, StateService
from taskmanager_backend.utils.serialization import optional_object_id, to_object_id


def _build_location_blueprint(name, service, token_required, admin_required, serialize_doc, parent_param=None):
    bp = Blueprint(name, __name__, url_prefix=f'/{name}')
    label = service.label

    def parent_filter(source):
        if not parent_param:
            return None
        return optional_object_id(source.get(parent_param), parent_param)

    @bp.route('/', methods=['GET'])
    @token_required
    def get_list(current_user):
        rows = service.get_list(parent_filter(request.args))
        return jsonify({
            'success': True,
            'data': [serialize_doc(r) for r in rows],
            'message': f'{label} list retrieved successfully'
        })

    @bp.route('/lookup', methods=['GET'])
    @token_required
    def get_lookup_list(current_user):
        rows = service.get_lookup_list(parent_filter(request.args))
        return jsonify({
            'success': True,
            'data': [serialize_doc(r) for r in rows],
            'message': f'{label} lookup retrieved successfully'
        })

    @bp.route('/<entity_id>', methods=['GET'])
    @token_required
    def get_model(current_user, entity_id):
        row = service.get_model(to_object_id(entity_id))
        return jsonify({
            'success': True,
            'data': serialize_doc(row),
            'message': f'{label} retrieved successfully'
        })

    @bp.route('/', methods=['POST'])
    @token_required
    @admin_required
    def insert(current_user):
        data = request.get_json(silent=True) or {}
        row = service.insert(data, current_user['_id'])
        return jsonify({
            'success': True,
            'data': serialize_doc(row),
            'message': f'{label} saved successfully'
        }), 201

    @bp.route('/<entity_id>', methods=['PUT'])
    @token_required
    @admin_required
    def update(current_user, entity_id):
        data = request.get_json(silent=True) or {}
        row = service.update(to_object_id(entity_id), data, current_user['_id'])
        return jsonify({
            'success': True,
            'data': serialize_doc(row),
            'message': f'{label} updated successfully'
        })

    @bp.route('/<entity_id>', methods=['DELETE'])
    @token_required
    @admin_required
    def delete(current_user, entity_id):
        service.delete(to_object_id(entity_id), current_user['_id'])
        return jsonify({
            'success': True,
            'data': None,
            'message': f'{label} deleted successfully'
        })

    @bp.route('/check-duplicate-name', methods=['POST'])
    @token_required
    def check_duplicate_name(current_user):
        data = request.get_json(silent=True) or {}
        is_duplicate = service.check_duplicate_name(
            data.get('name'),
            parent_filter(data),
            optional_object_id(data.get('excludeId'), 'excludeId'),
        )
        return jsonify({
            'success': True,
            'data': {'isDuplicate': is_duplicate},
            'message': 'Duplicate check completed'
        })

    return bp


def init_countries_blueprint(mongo, token_required, admin_required, serialize_doc):
    return _build_location_blueprint(
        'countries', CountryService(mongo.db), token_required, admin_required, serialize_doc
    )


def init_states_blueprint(mongo, token_required, admin_required, serialize_doc):
    return _build_location_blueprint(
        'states', StateService(mongo.db), token_required, admin_required, serialize_doc, parent_param='countryId'
    )


def init_cities_blueprint(mongo, token_required, admin_required, serialize_doc):
    return _build_location_blueprint(
        'cities', CityService(mongo.db), token_required, admin_required, serialize_doc, parent_param='stateId'
    )
