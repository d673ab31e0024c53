"""
Profile Utilities

Edit the biographical and contact fields of one person. Relationship
fields (families, parent_families, generation, is_patrilineal) are
never touched here; they change only through graph_utils.GraphEngine.
"""

import os
import logging
from typing import Dict, Any
from dotenv import load_dotenv
import funcUtils as fu
import db_utils as dbm
from err_utils import ValidationError, NotFoundError
from graph_utils import check_gender_change, FATHER, MOTHER

# Load environment variables from .env file
load_dotenv(".env")

# Configure log for this module
log = logging.getLogger(__name__)
# Set log level from environment variable or default to WARNING
log_level = os.getenv('LOGGING', 'WARNING').upper()
log.setLevel(getattr(logging, log_level, logging.WARNING))

# Configure console handler for debug output
console_handler = logging.StreamHandler()
console_handler.setLevel(log_level)
formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s')
console_handler.setFormatter(formatter)
log.addHandler(console_handler)

# Free-text fields; blank means NULL
Text_Fields = [
    'nick_name', 'birth_date', 'birth_place', 'death_date', 'death_place',
    'phone', 'email', 'zalo', 'facebook', 'current_address', 'hometown',
    'occupation', 'company', 'education', 'notes'
]
Year_Fields = ['birth_year', 'death_year']
Flag_Fields = ['is_living', 'is_privacy_filtered']

Profile_Fields = ['display_name', 'gender'] + Year_Fields + Flag_Fields + Text_Fields


def clean_profile(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize profile form values into a partial person record.

    Raises:
        ValidationError: blank display name, bad gender or year,
            or a field that is not a profile field
    """
    unknown = [k for k in fields if k not in Profile_Fields]
    if unknown:
        raise ValidationError(f"Not a profile field: {', '.join(unknown)}")

    changes: Dict[str, Any] = {}
    if 'display_name' in fields:
        name = (fields['display_name'] or '').strip()
        if not name:
            raise ValidationError("Display name is required")
        changes['display_name'] = name
    if 'gender' in fields:
        try:
            gender = int(fields['gender'])
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid gender: {fields['gender']!r}")
        if gender not in dbm.Gender.values():
            raise ValidationError(f"Invalid gender: {fields['gender']!r}")
        changes['gender'] = gender
    for field in Year_Fields:
        if field in fields:
            changes[field] = fu.parse_year(fields[field], field)
    for field in Flag_Fields:
        if field in fields:
            changes[field] = bool(fields[field])
    for field in Text_Fields:
        if field in fields:
            value = fields[field]
            value = str(value).strip() if value is not None else ''
            changes[field] = value or None

    if changes.get('is_living'):
        for field in ('death_year', 'death_date', 'death_place'):
            changes[field] = None
    return changes


def update_profile(store: dbm.RecordStore, handle: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Update a person's profile.

    Args:
        store: the record store
        handle: the person to update
        fields: any subset of Profile_Fields, as typed into the form

    Returns:
        Dict[str, Any]: the updated person record

    Raises:
        ValidationError: see clean_profile(); also a gender change while
            the person is a father or mother in a family
        NotFoundError: If no person has this handle
        StoreError: If the update fails

    Example:
        >>> update_profile(store, 'p-1', {'phone': ' 0903 ', 'notes': ''})
        {'handle': 'p-1', 'phone': '0903', 'notes': None, ...}
    """
    changes = clean_profile(fields)
    person = store.get('people', handle)
    if person is None:
        raise NotFoundError('people', handle)
    if 'gender' in changes and changes['gender'] != person['gender']:
        families = store.find('families', either={FATHER: handle, MOTHER: handle})
        check_gender_change(families, handle, changes['gender'])
    if changes and not store.update('people', handle, changes):
        raise NotFoundError('people', handle)
    log.info(f"Updated profile of {handle}: {', '.join(changes) or 'no changes'}")
    return store.get('people', handle)
