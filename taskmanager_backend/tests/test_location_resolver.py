"""
Unit Tests for the Location Resolver
Covers idempotence, case/whitespace variants, restore and creation races
"""

import unittest
from unittest import mock

from bson import ObjectId

from taskmanager_backend.services.dependency_guard import COUNTRY, DependencyGuard
from taskmanager_backend.services.location_resolver import LocationResolver
from taskmanager_backend.tests.base import DatabaseTestCase
from taskmanager_backend.utils.errors import ErrorKind, ServiceError


class TestLocationResolver(DatabaseTestCase):

    def setUp(self):
        super().setUp()
        self.resolver = LocationResolver(self.db)
        self.user_id = ObjectId()

    def test_same_triple_twice_yields_same_city(self):
        first = self.resolver.resolve_location(self.user_id, 'India', 'Madhya Pradesh', 'Indore')
        second = self.resolver.resolve_location(self.user_id, 'India', 'Madhya Pradesh', 'Indore')

        self.assertIsNotNone(first)
        self.assertEqual(first, second)
        self.assertEqual(self.db.countries.count_documents({}), 1)
        self.assertEqual(self.db.states.count_documents({}), 1)
        self.assertEqual(self.db.cities.count_documents({}), 1)

    def test_case_and_whitespace_variants_resolve_to_same_city(self):
        """
        Scenario: resolve("India", "  madhya pradesh ", "Indore") then
        resolve("india", "Madhya Pradesh", "indore")
        Expected: same city id, one row per level
        """
        first = self.resolver.resolve_location(self.user_id, 'India', '  madhya pradesh ', 'Indore')
        second = self.resolver.resolve_location(self.user_id, 'india', 'Madhya Pradesh', 'indore')

        self.assertEqual(first, second)
        self.assertEqual(self.db.cities.count_documents({}), 1)

    def test_display_name_is_last_write_wins(self):
        self.resolver.resolve_location(self.user_id, 'india', 'madhya pradesh', 'indore')
        self.resolver.resolve_location(self.user_id, 'India', 'Madhya  Pradesh', 'Indore')

        state = self.db.states.find_one({})
        self.assertEqual(state['name'], 'Madhya Pradesh')
        self.assertEqual(state['nameKey'], 'madhya pradesh')

    def test_blank_name_returns_none_without_writes(self):
        self.assertIsNone(self.resolver.resolve_location(self.user_id, 'India', '   ', 'Indore'))
        self.assertIsNone(self.resolver.resolve_location(self.user_id, None, 'MP', 'Indore'))
        self.assertEqual(self.db.countries.count_documents({}), 0)

    def test_same_city_name_in_different_states_is_distinct(self):
        a = self.resolver.resolve_location(self.user_id, 'USA', 'Oregon', 'Portland')
        b = self.resolver.resolve_location(self.user_id, 'USA', 'Maine', 'Portland')

        self.assertNotEqual(a, b)
        self.assertEqual(self.db.countries.count_documents({}), 1)

    def test_zip_codes_are_stored_and_updated(self):
        city_id = self.resolver.resolve_location(self.user_id, 'India', 'MP', 'Indore', '452001,452002')
        self.assertEqual(self.db.cities.find_one({'_id': city_id})['zipCodes'], ['452001', '452002'])

        # An empty list leaves the stored codes alone
        self.resolver.resolve_location(self.user_id, 'India', 'MP', 'Indore', [])
        self.assertEqual(self.db.cities.find_one({'_id': city_id})['zipCodes'], ['452001', '452002'])

        self.resolver.resolve_location(self.user_id, 'India', 'MP', 'Indore', ['452010'])
        self.assertEqual(self.db.cities.find_one({'_id': city_id})['zipCodes'], ['452010'])

    def test_created_rows_carry_audit_fields(self):
        self.resolver.resolve_location(self.user_id, 'India', 'MP', 'Indore')
        country = self.db.countries.find_one({})
        self.assertEqual(country['createdBy'], self.user_id)
        self.assertFalse(country['isDeleted'])
        self.assertIsNotNone(country['createdOn'])

    def test_soft_deleted_country_is_restored(self):
        self.resolver.resolve_location(self.user_id, 'Testland', 'North', 'Alpha')
        country = self.db.countries.find_one({'nameKey': 'testland'})
        self.db.countries.update_one({'_id': country['_id']}, {'$set': {'isDeleted': True}})

        country_id, _, _ = self.resolver.resolve_location_ids(self.user_id, 'testland', 'North', 'Alpha')

        self.assertEqual(country_id, country['_id'])
        restored = self.db.countries.find_one({'_id': country_id})
        self.assertFalse(restored['isDeleted'])
        self.assertEqual(self.db.countries.count_documents({}), 1)

    def test_soft_deleted_country_via_guard_is_restored(self):
        country_id, state_id, city_id = self.resolver.resolve_location_ids(self.user_id, 'Testland', 'North', 'Alpha')
        self.db.cities.delete_one({'_id': city_id})
        self.db.states.delete_one({'_id': state_id})
        DependencyGuard(self.db).delete(COUNTRY, country_id, self.user_id)

        again, _, _ = self.resolver.resolve_location_ids(self.user_id, 'TESTLAND', 'North', 'Alpha')
        self.assertEqual(again, country_id)

    def test_losing_a_creation_race_rereads_the_winner(self):
        """
        Scenario: another request inserts the country between our lookup and insert
        Expected: DuplicateKeyError is absorbed and the existing row is reused
        """
        first = self.resolver.resolve_location(self.user_id, 'India', 'MP', 'Indore')

        real_find = self.resolver._find
        calls = []

        def racing_find(collection, query):
            calls.append(collection)
            if len(calls) == 1:
                return None
            return real_find(collection, query)

        with mock.patch.object(self.resolver, '_find', side_effect=racing_find):
            second = self.resolver.resolve_location(self.user_id, 'India', 'MP', 'Indore')

        self.assertEqual(first, second)
        self.assertEqual(self.db.countries.count_documents({}), 1)

    def test_unrecoverable_race_raises_location_upsert_failed(self):
        self.resolver.resolve_location(self.user_id, 'India', 'MP', 'Indore')

        with mock.patch.object(self.resolver, '_find', return_value=None):
            with self.assertRaises(ServiceError) as ctx:
                self.resolver.resolve_location(self.user_id, 'India', 'MP', 'Indore')

        self.assertEqual(ctx.exception.kind, ErrorKind.LOCATION_UPSERT_FAILED)
        self.assertEqual(ctx.exception.status_code, 500)

    def test_describe_location(self):
        country_id, state_id, city_id = self.resolver.resolve_location_ids(self.user_id, 'India', 'MP', 'Indore')
        names = self.resolver.describe_location({'countryId': country_id, 'stateId': state_id, 'cityId': city_id})
        self.assertEqual(names, {'countryName': 'India', 'stateName': 'MP', 'cityName': 'Indore'})

        self.assertEqual(
            self.resolver.describe_location({'cityId': ObjectId()}),
            {'countryName': '', 'stateName': '', 'cityName': ''}
        )


if __name__ == '__main__':
    unittest.main()
