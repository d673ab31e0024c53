"""Tests for the SQLite record store and the page queries."""

import pytest

import db_utils as dbm
from err_utils import NotFoundError, StoreError


# ============================================================================
# Record store contract
# ============================================================================

class TestRecordStore:
    """insert / get / find / update / delete over both tables."""

    def test_insert_generates_handle_and_defaults(self, store):
        """A person without a handle gets a 'p-' handle and empty lists."""
        person = store.insert('people', {'display_name': 'Nguyen Van A'})

        assert person['handle'].startswith('p-')
        assert person['families'] == []
        assert person['parent_families'] == []
        assert person['is_living'] is True
        assert person['created_at']

    def test_family_handle_embeds_first_parent(self, store):
        """Family handles are built from the first known parent."""
        family = store.insert('families', {'father_handle': None, 'mother_handle': 'p-mom'})

        assert family['handle'].startswith('f-p-mom-')
        assert family['children'] == []

    def test_insert_keeps_given_handle(self, store):
        store.insert('people', {'handle': 'A', 'display_name': 'A'})

        assert store.get('people', 'A')['display_name'] == 'A'

    def test_duplicate_handle_is_store_error(self, store):
        store.insert('people', {'handle': 'A', 'display_name': 'A'})

        with pytest.raises(StoreError):
            store.insert('people', {'handle': 'A', 'display_name': 'Again'})

    def test_lists_and_booleans_round_trip(self, store):
        """List columns come back as lists, flag columns as bool."""
        store.insert('families', {'handle': 'F', 'father_handle': 'A', 'children': ['B', 'C']})
        store.insert('people', {'handle': 'A', 'display_name': 'A', 'families': ['F'],
                                'is_privacy_filtered': True})

        assert store.get('families', 'F')['children'] == ['B', 'C']
        person = store.get('people', 'A')
        assert person['families'] == ['F']
        assert person['is_privacy_filtered'] is True

    def test_get_missing_returns_none(self, store):
        assert store.get('people', 'nobody') is None

    def test_unknown_table_or_column(self, store):
        with pytest.raises(ValueError):
            store.find('members')
        with pytest.raises(ValueError):
            store.insert('people', {'display_name': 'A', 'shoe_size': 42})

    def test_update_partial(self, store):
        store.insert('people', {'handle': 'A', 'display_name': 'A', 'generation': 1})

        assert store.update('people', 'A', {'generation': 4}) is True
        person = store.get('people', 'A')
        assert person['generation'] == 4
        assert person['display_name'] == 'A'

    def test_update_missing_or_empty(self, store):
        """Updating nothing, or a record that isn't there, returns False."""
        store.insert('people', {'handle': 'A', 'display_name': 'A'})

        assert store.update('people', 'nobody', {'generation': 2}) is False
        assert store.update('people', 'A', {}) is False

    def test_update_cannot_change_handle(self, store):
        store.insert('people', {'handle': 'A', 'display_name': 'A'})

        with pytest.raises(ValueError):
            store.update('people', 'A', {'handle': 'B'})

    def test_delete_and_delete_where(self, store):
        for handle in ('F1', 'F2', 'F3'):
            store.insert('families', {'handle': handle})

        assert store.delete('families', 'F1') is True
        assert store.delete('families', 'F1') is False
        assert store.delete_where('families', ['F2', 'F3', 'F9']) == 2
        assert store.delete_where('families', []) == 0
        assert store.count('families') == 0


class TestFind:
    """Equality, NULL, IN, OR and list-membership filters."""

    @pytest.fixture
    def families(self, store):
        store.insert('families', {'handle': 'F1', 'father_handle': 'A', 'mother_handle': None, 'children': ['B']})
        store.insert('families', {'handle': 'F2', 'father_handle': 'A', 'mother_handle': 'M', 'children': ['C', 'D']})
        store.insert('families', {'handle': 'F3', 'father_handle': None, 'mother_handle': 'M', 'children': []})
        return store

    def test_exact_match_with_null(self, families):
        """None in where matches only an empty slot."""
        found = families.find('families', where={'father_handle': 'A', 'mother_handle': None})

        assert [f['handle'] for f in found] == ['F1']

    def test_in_filter(self, families):
        found = families.find('families', where={'handle': ['F3', 'F1']})

        assert [f['handle'] for f in found] == ['F1', 'F3']
        assert families.find('families', where={'handle': []}) == []

    def test_contains(self, families):
        found = families.find('families', contains={'children': 'D'})

        assert [f['handle'] for f in found] == ['F2']

    def test_either(self, families):
        found = families.find('families', either={'father_handle': 'M', 'mother_handle': 'M'})

        assert [f['handle'] for f in found] == ['F2', 'F3']

    def test_order_and_limit(self, families):
        found = families.find('families', order_by=['-handle'], limit=2)

        assert [f['handle'] for f in found] == ['F3', 'F2']


class TestTransaction:
    """Statements inside transaction() commit or roll back together."""

    def test_commit(self, store):
        with store.transaction():
            store.insert('people', {'handle': 'A', 'display_name': 'A'})
            assert store.in_transaction
            assert store.get('people', 'A') is not None

        assert not store.in_transaction
        assert store.get('people', 'A') is not None

    def test_rollback_on_error(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.insert('people', {'handle': 'A', 'display_name': 'A'})
                raise RuntimeError("boom")

        assert store.get('people', 'A') is None

    def test_nested_joins_outer(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    store.insert('people', {'handle': 'A', 'display_name': 'A'})
                raise RuntimeError("boom")

        assert store.count('people') == 0

    def test_snapshot(self, store):
        store.insert('people', {'handle': 'A', 'display_name': 'A'})
        store.insert('families', {'handle': 'F', 'father_handle': 'A'})

        people, families = store.snapshot()

        assert [p['handle'] for p in people] == ['A']
        assert [f['handle'] for f in families] == ['F']


# ============================================================================
# Page queries
# ============================================================================

class TestQueries:
    """Listing, search and family lookups used by the pages."""

    def test_get_people_ordering_and_search(self, store):
        store.insert('people', {'handle': 'C', 'display_name': 'Nguyen Van C', 'generation': 2})
        store.insert('people', {'handle': 'B', 'display_name': 'Nguyen Van B', 'generation': 2})
        store.insert('people', {'handle': 'A', 'display_name': 'Tran Thi A', 'generation': 1})

        assert [p['handle'] for p in dbm.get_people(store)] == ['A', 'B', 'C']
        assert [p['handle'] for p in dbm.get_people(store, 'nguyen')] == ['B', 'C']

    def test_get_person_missing(self, store):
        with pytest.raises(NotFoundError) as err:
            dbm.get_person(store, 'nobody')
        assert err.value.handle == 'nobody'

    def test_parents_children_and_details(self, engine, family, store):
        """get_family_details gathers parents, partner and children."""
        parents = dbm.get_parents(store, family['son'])
        assert [p['handle'] for p in parents] == [family['grandpa'], family['grandma']]

        children = dbm.get_children(store, family['son'])
        assert [c['handle'] for c in children] == [family['grandson'], family['granddaughter']]

        details = dbm.get_family_details(store, family['son'])
        assert details['person']['handle'] == family['son']
        assert len(details['families']) == 1
        assert details['families'][0]['partner']['handle'] == family['daughter_in_law']
        assert [c['handle'] for c in details['families'][0]['children']] == [
            family['grandson'], family['granddaughter']]

    def test_no_parents(self, store):
        store.insert('people', {'handle': 'A', 'display_name': 'A'})

        assert dbm.get_parents(store, 'A') == []
        assert dbm.get_children(store, 'A') == []
