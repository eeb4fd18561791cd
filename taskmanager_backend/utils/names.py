"""
Name canonicalization helpers shared by the location services.
"""
import re

from taskmanager_backend.utils.errors import validation_error

_WHITESPACE_RUN = re.compile(r'\s+')

MAX_ZIP_CODE_LENGTH = 6


def clean_display_name(name):
    """Trim and collapse internal whitespace, keeping the original casing."""
    if name is None:
        return ''
    return _WHITESPACE_RUN.sub(' ', str(name)).strip()


def canonicalize(name):
    """
    Comparison key for a display name.

    '  Madhya   Pradesh ' -> 'madhya pradesh'. Whitespace-only input gives ''
    and callers must reject it before persisting anything.
    """
    return clean_display_name(name).lower()


def normalize_zip_codes(raw, field='zipCodes'):
    """
    Accept a list or a comma separated string; return trimmed, non-empty codes.

    Codes longer than MAX_ZIP_CODE_LENGTH and any other input type are
    VALIDATION errors on `field`.
    """
    if raw is None or raw == '':
        return []
    if isinstance(raw, str):
        parts = raw.split(',')
    elif isinstance(raw, (list, tuple)):
        parts = list(raw)
    else:
        raise validation_error(field, 'Zip codes must be a list or a comma separated string')

    codes = []
    for part in parts:
        code = str(part).strip() if part is not None else ''
        if not code:
            continue
        if len(code) > MAX_ZIP_CODE_LENGTH:
            raise validation_error(field, f'Zip code {code} must be at most {MAX_ZIP_CODE_LENGTH} characters')
        codes.append(code)
    return codes
