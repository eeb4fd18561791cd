"""
API Tests for the Country / State / City endpoints
"""

import unittest

from taskmanager_backend.tests.base import ApiTestCase


class TestCountriesApi(ApiTestCase):

    def create_country(self, name):
        response = self.client.post('/countries/', headers=self.auth_headers(self.admin), json={'name': name})
        self.assertEqual(response.status_code, 201, response.json)
        return response.json['data']

    def test_admin_creates_country(self):
        data = self.create_country('  New   Zealand ')

        self.assertEqual(data['name'], 'New Zealand')
        self.assertNotIn('nameKey', data)
        self.assertEqual(data['createdByUserName'], 'Admin Tester')

    def test_non_admin_cannot_create(self):
        user = self.create_user('user@example.com')
        response = self.client.post('/countries/', headers=self.auth_headers(user), json={'name': 'Atlantis'})

        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.db.countries.count_documents({}), 0)

    def test_non_admin_can_read(self):
        self.create_country('Peru')
        user = self.create_user('user@example.com')

        response = self.client.get('/countries/', headers=self.auth_headers(user))

        self.assertEqual(response.status_code, 200)
        self.assertEqual([c['name'] for c in response.json['data']], ['Peru'])

    def test_requires_authentication(self):
        response = self.client.get('/countries/')
        self.assertEqual(response.status_code, 401)

    def test_duplicate_name_is_conflict(self):
        self.create_country('Chile')
        response = self.client.post('/countries/', headers=self.auth_headers(self.admin), json={'name': 'CHILE '})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json['errorKind'], 'duplicate')
        self.assertIn('name', response.json['errors'])

    def test_name_validation(self):
        headers = self.auth_headers(self.admin)

        blank = self.client.post('/countries/', headers=headers, json={'name': '   '})
        self.assertEqual(blank.status_code, 400)
        self.assertEqual(blank.json['errorKind'], 'validation')

        too_long = self.client.post('/countries/', headers=headers, json={'name': 'x' * 51})
        self.assertEqual(too_long.status_code, 400)

    def test_recreating_soft_deleted_country_restores_it(self):
        """
        Scenario: create "Testland" -> soft-delete -> create "testland"
        Expected: same id, isDeleted false
        """
        created = self.create_country('Testland')
        headers = self.auth_headers(self.admin)

        deleted = self.client.delete(f"/countries/{created['id']}", headers=headers)
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.client.get(f"/countries/{created['id']}", headers=headers).status_code, 404)

        restored = self.create_country('testland')

        self.assertEqual(restored['id'], created['id'])
        self.assertFalse(restored['isDeleted'])
        self.assertEqual(self.db.countries.count_documents({}), 1)

    def test_update_and_duplicate_excludes_self(self):
        chile = self.create_country('Chile')
        self.create_country('Peru')
        headers = self.auth_headers(self.admin)

        same = self.client.put(f"/countries/{chile['id']}", headers=headers, json={'name': 'chile'})
        self.assertEqual(same.status_code, 200)
        self.assertEqual(same.json['data']['name'], 'chile')

        clash = self.client.put(f"/countries/{chile['id']}", headers=headers, json={'name': 'Peru'})
        self.assertEqual(clash.status_code, 409)

    def test_check_duplicate_name(self):
        chile = self.create_country('Chile')
        headers = self.auth_headers(self.admin)

        response = self.client.post('/countries/check-duplicate-name', headers=headers, json={'name': ' chile'})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json['data']['isDuplicate'])

        response = self.client.post(
            '/countries/check-duplicate-name', headers=headers,
            json={'name': 'Chile', 'excludeId': chile['id']}
        )
        self.assertFalse(response.json['data']['isDuplicate'])

    def test_rename_onto_soft_deleted_name_is_reported_as_duplicate(self):
        gone = self.create_country('Testland')
        chile = self.create_country('Chile')
        headers = self.auth_headers(self.admin)
        self.client.delete(f"/countries/{gone['id']}", headers=headers)

        check = self.client.post(
            '/countries/check-duplicate-name', headers=headers,
            json={'name': 'testland', 'excludeId': chile['id']}
        )
        self.assertTrue(check.json['data']['isDuplicate'])

        rename = self.client.put(f"/countries/{chile['id']}", headers=headers, json={'name': 'testland'})
        self.assertEqual(rename.status_code, 409)

        # Creating under that name restores the deleted row, so it is not a duplicate
        create_check = self.client.post('/countries/check-duplicate-name', headers=headers, json={'name': 'testland'})
        self.assertFalse(create_check.json['data']['isDuplicate'])

    def test_lookup_sorted_by_name(self):
        for name in ('Peru', 'Argentina', 'Chile'):
            self.create_country(name)

        response = self.client.get('/countries/lookup', headers=self.auth_headers(self.admin))

        self.assertEqual([c['name'] for c in response.json['data']], ['Argentina', 'Chile', 'Peru'])
        self.assertEqual(set(response.json['data'][0].keys()), {'id', 'name'})

    def test_malformed_and_unknown_ids(self):
        headers = self.auth_headers(self.admin)

        bad = self.client.get('/countries/not-an-id', headers=headers)
        self.assertEqual(bad.status_code, 400)

        missing = self.client.get('/countries/64b7f0c2a1b2c3d4e5f60718', headers=headers)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json['errorKind'], 'not_found')


class TestStatesAndCitiesApi(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.headers = self.auth_headers(self.admin)
        self.country = self.client.post('/countries/', headers=self.headers, json={'name': 'India'}).json['data']
        self.state = self.client.post(
            '/states/', headers=self.headers, json={'name': 'Madhya Pradesh', 'countryId': self.country['id']}
        ).json['data']

    def test_state_requires_existing_country(self):
        response = self.client.post(
            '/states/', headers=self.headers, json={'name': 'Nowhere', 'countryId': '64b7f0c2a1b2c3d4e5f60718'}
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn('countryId', response.json['errors'])

        missing = self.client.post('/states/', headers=self.headers, json={'name': 'Nowhere'})
        self.assertEqual(missing.status_code, 400)

    def test_state_list_filters_by_country(self):
        other = self.client.post('/countries/', headers=self.headers, json={'name': 'Nepal'}).json['data']
        self.client.post('/states/', headers=self.headers, json={'name': 'Bagmati', 'countryId': other['id']})

        response = self.client.get(f"/states/?countryId={self.country['id']}", headers=self.headers)

        self.assertEqual(response.status_code, 200)
        self.assertEqual([s['name'] for s in response.json['data']], ['Madhya Pradesh'])
        self.assertEqual(response.json['data'][0]['countryName'], 'India')
        self.assertEqual(len(self.client.get('/states/', headers=self.headers).json['data']), 2)

    def test_same_state_name_allowed_in_other_country(self):
        other = self.client.post('/countries/', headers=self.headers, json={'name': 'Nepal'}).json['data']
        response = self.client.post(
            '/states/', headers=self.headers, json={'name': 'Madhya Pradesh', 'countryId': other['id']}
        )
        self.assertEqual(response.status_code, 201)

    def test_city_zip_codes(self):
        response = self.client.post(
            '/cities/', headers=self.headers,
            json={'name': 'Indore', 'stateId': self.state['id'], 'zipCodes': '452001, 452002'}
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json['data']['zipCodes'], ['452001', '452002'])
        self.assertEqual(response.json['data']['stateName'], 'Madhya Pradesh')

        too_long = self.client.post(
            '/cities/', headers=self.headers,
            json={'name': 'Bhopal', 'stateId': self.state['id'], 'zipCodes': ['4620011']}
        )
        self.assertEqual(too_long.status_code, 400)
        self.assertIn('zipCodes', too_long.json['errors'])

    def test_rename_keeps_zip_codes(self):
        """
        Scenario: city created with zip codes, then renamed without sending zipCodes
        Expected: stored zip codes are kept; an explicit empty list clears them
        """
        city = self.client.post(
            '/cities/', headers=self.headers,
            json={'name': 'Indore', 'stateId': self.state['id'], 'zipCodes': ['452001']}
        ).json['data']

        renamed = self.client.put(
            f"/cities/{city['id']}", headers=self.headers,
            json={'name': 'Indore City', 'stateId': self.state['id']}
        )
        self.assertEqual(renamed.status_code, 200)
        self.assertEqual(renamed.json['data']['name'], 'Indore City')
        self.assertEqual(renamed.json['data']['zipCodes'], ['452001'])

        cleared = self.client.put(
            f"/cities/{city['id']}", headers=self.headers,
            json={'name': 'Indore City', 'stateId': self.state['id'], 'zipCodes': []}
        )
        self.assertEqual(cleared.json['data']['zipCodes'], [])

    def test_delete_state_with_city_is_conflict(self):
        city = self.client.post(
            '/cities/', headers=self.headers, json={'name': 'X', 'stateId': self.state['id']}
        ).json['data']

        response = self.client.delete(f"/states/{self.state['id']}", headers=self.headers)

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json['errorKind'], 'in_use')
        still_there = self.client.get(f"/cities/{city['id']}", headers=self.headers).json['data']
        self.assertEqual(still_there['stateId'], self.state['id'])

    def test_delete_country_with_state_is_conflict(self):
        response = self.client.delete(f"/countries/{self.country['id']}", headers=self.headers)
        self.assertEqual(response.status_code, 409)

    def test_delete_chain_bottom_up(self):
        city = self.client.post(
            '/cities/', headers=self.headers, json={'name': 'Indore', 'stateId': self.state['id']}
        ).json['data']

        self.assertEqual(self.client.delete(f"/cities/{city['id']}", headers=self.headers).status_code, 200)
        self.assertEqual(self.client.delete(f"/states/{self.state['id']}", headers=self.headers).status_code, 200)
        self.assertEqual(self.client.delete(f"/countries/{self.country['id']}", headers=self.headers).status_code, 200)

        self.assertEqual(self.db.cities.count_documents({}), 0)
        self.assertEqual(self.db.states.count_documents({}), 0)
        self.assertTrue(self.db.countries.find_one({})['isDeleted'])

    def test_city_lookup_filters_by_state(self):
        self.client.post('/cities/', headers=self.headers, json={'name': 'Indore', 'stateId': self.state['id']})

        response = self.client.get(f"/cities/lookup?stateId={self.state['id']}", headers=self.headers)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json['data'][0]['name'], 'Indore')
        self.assertEqual(response.json['data'][0]['stateId'], self.state['id'])


if __name__ == '__main__':
    unittest.main()
