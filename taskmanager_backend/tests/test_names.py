"""
Unit Tests for name canonicalization and zip code normalization
"""

import unittest

from taskmanager_backend.utils.errors import ErrorKind, ServiceError
from taskmanager_backend.utils.names import canonicalize, clean_display_name, normalize_zip_codes


class TestCanonicalize(unittest.TestCase):

    def test_trims_collapses_and_lowercases(self):
        self.assertEqual(canonicalize('  Madhya   Pradesh '), 'madhya pradesh')

    def test_tabs_and_newlines_count_as_whitespace(self):
        self.assertEqual(canonicalize('New\tYork\n City'), 'new york city')

    def test_blank_input_gives_empty_key(self):
        self.assertEqual(canonicalize('   '), '')
        self.assertEqual(canonicalize(''), '')
        self.assertEqual(canonicalize(None), '')

    def test_non_string_input_is_coerced(self):
        self.assertEqual(canonicalize(12345), '12345')

    def test_case_variants_share_a_key(self):
        self.assertEqual(canonicalize('INDIA'), canonicalize(' india '))


class TestCleanDisplayName(unittest.TestCase):

    def test_keeps_casing(self):
        self.assertEqual(clean_display_name('  Madhya   Pradesh '), 'Madhya Pradesh')


class TestNormalizeZipCodes(unittest.TestCase):

    def test_comma_separated_string(self):
        self.assertEqual(normalize_zip_codes(' 452001, 452002 ,,'), ['452001', '452002'])

    def test_list_input(self):
        self.assertEqual(normalize_zip_codes(['10001', ' ', None, '10002']), ['10001', '10002'])

    def test_codes_longer_than_six_characters_are_rejected(self):
        with self.assertRaises(ServiceError) as ctx:
            normalize_zip_codes(['452001', '4620011'])
        self.assertEqual(ctx.exception.kind, ErrorKind.VALIDATION)
        self.assertIn('zipCodes', ctx.exception.errors)

    def test_error_names_the_given_field(self):
        with self.assertRaises(ServiceError) as ctx:
            normalize_zip_codes('1234567', 'zipCode')
        self.assertIn('zipCode', ctx.exception.errors)

    def test_empty_and_unsupported_input(self):
        self.assertEqual(normalize_zip_codes(None), [])
        self.assertEqual(normalize_zip_codes(''), [])
        self.assertEqual(normalize_zip_codes([]), [])
        with self.assertRaises(ServiceError):
            normalize_zip_codes(42)


if __name__ == '__main__':
    unittest.main()
