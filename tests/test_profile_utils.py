"""Tests for profile editing (biographical and contact fields)."""

import pytest

import db_utils as dbm
import profile_utils as pu
from err_utils import ValidationError, NotFoundError


class TestCleanProfile:

    def test_strips_text_and_blanks_to_none(self):
        changes = pu.clean_profile({'phone': ' 0903 123 456 ', 'notes': '   ', 'zalo': None})

        assert changes == {'phone': '0903 123 456', 'notes': None, 'zalo': None}

    def test_years_and_flags(self):
        changes = pu.clean_profile({'birth_year': '1950', 'death_year': '', 'is_privacy_filtered': 1})

        assert changes['birth_year'] == 1950
        assert changes['death_year'] is None
        assert changes['is_privacy_filtered'] is True

    def test_living_clears_death_fields(self):
        changes = pu.clean_profile({'is_living': True, 'death_year': '2001', 'death_place': 'Hue'})

        assert changes['death_year'] is None
        assert changes['death_date'] is None
        assert changes['death_place'] is None

    @pytest.mark.parametrize("fields", [
        {'display_name': '  '},
        {'gender': 3},
        {'gender': 'male'},
        {'birth_year': 'nineteen fifty'},
        {'generation': 4},
        {'families': []},
    ])
    def test_rejected(self, fields):
        """Blank names, bad values and relationship fields are refused."""
        with pytest.raises(ValidationError):
            pu.clean_profile(fields)


class TestUpdateProfile:

    def test_updates_only_profile_fields(self, engine, family, store):
        before = store.get('people', family['son'])

        person = pu.update_profile(store, family['son'], {
            'display_name': ' Nguyen Van Con Trai ',
            'occupation': 'Teacher',
            'hometown': 'Nam Dinh'
        })

        assert person['display_name'] == 'Nguyen Van Con Trai'
        assert person['occupation'] == 'Teacher'
        assert person['hometown'] == 'Nam Dinh'
        assert person['generation'] == before['generation']
        assert person['families'] == before['families']
        assert person['parent_families'] == before['parent_families']

    def test_gender_as_form_string(self, store):
        store.insert('people', {'handle': 'A', 'display_name': 'A'})

        person = pu.update_profile(store, 'A', {'gender': str(dbm.Gender['female'])})

        assert person['gender'] == dbm.Gender['female']

    def test_parent_gender_change_refused(self, engine, family, store):
        with pytest.raises(ValidationError):
            pu.update_profile(store, family['grandma'], {'gender': str(dbm.Gender['male'])})

        assert store.get('people', family['grandma'])['gender'] == dbm.Gender['female']

    def test_empty_update_returns_person(self, store):
        store.insert('people', {'handle': 'A', 'display_name': 'A'})

        assert pu.update_profile(store, 'A', {})['handle'] == 'A'

    def test_missing_person(self, store):
        with pytest.raises(NotFoundError):
            pu.update_profile(store, 'nobody', {'phone': '1'})

    def test_invalid_input_writes_nothing(self, store):
        store.insert('people', {'handle': 'A', 'display_name': 'A', 'phone': '1'})

        with pytest.raises(ValidationError):
            pu.update_profile(store, 'A', {'phone': '2', 'birth_year': 'abc'})

        assert store.get('people', 'A')['phone'] == '1'
