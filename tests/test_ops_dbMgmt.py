"""Tests for the admin database operations: stats, structure, cleanup and audit."""

import pytest

import ops_dbMgmt as ops
from err_utils import StoreError


def kinds(issues):
    return sorted(issue['kind'] for issue in issues)


class TestTableInfo:

    def test_stats(self, engine, family, store):
        assert ops.get_table_stats(store) == {'people': 6, 'families': 2}

    def test_structure(self, store):
        columns = ops.get_table_structure(store, 'families')

        names = [c['Column Name'] for c in columns]
        assert names[:4] == ['handle', 'father_handle', 'mother_handle', 'children']
        assert columns[0]['Primary Key'] == 'Yes'

    def test_structure_unknown_table(self, store):
        with pytest.raises(ValueError):
            ops.get_table_structure(store, 'members')


class TestRunCleanup:

    def test_removes_only_zombies(self, engine, family, store):
        store.insert('families', {'handle': 'Z1', 'father_handle': 'gone', 'children': ['also-gone']})
        store.insert('families', {'handle': 'Z2'})

        assert ops.run_cleanup(engine) == 2
        assert store.count('families') == 2
        assert ops.run_cleanup(engine) == 0


class TestAudit:

    def test_consistent_graph(self, engine, family, store):
        assert ops.run_audit(store) == []

    def test_dangling_references(self):
        people = [{'handle': 'A', 'generation': 1, 'families': ['F', 'F-missing'], 'parent_families': []}]
        families = [{'handle': 'F', 'father_handle': 'A', 'mother_handle': 'W-missing', 'children': ['C-missing']}]

        issues = ops.audit_graph(people, families)

        assert kinds(issues) == ['dangling_family', 'dangling_person', 'dangling_person']

    def test_asymmetric_slot(self):
        people = [
            {'handle': 'A', 'generation': 1, 'families': [], 'parent_families': []},
            {'handle': 'B', 'generation': 1, 'families': ['F'], 'parent_families': []},
        ]
        families = [{'handle': 'F', 'father_handle': 'A', 'mother_handle': None, 'children': []}]

        issues = ops.audit_graph(people, families)

        assert kinds(issues) == ['asymmetric_slot', 'asymmetric_slot']
        assert {i['handle'] for i in issues} == {'B', 'F'}

    def test_child_links(self):
        people = [
            {'handle': 'A', 'generation': 1, 'families': ['F'], 'parent_families': []},
            {'handle': 'B', 'generation': 2, 'families': [], 'parent_families': ['F']},
            {'handle': 'C', 'generation': 2, 'families': [], 'parent_families': []},
        ]
        families = [{'handle': 'F', 'father_handle': 'A', 'mother_handle': None, 'children': ['C']}]

        issues = ops.audit_graph(people, families)

        assert kinds(issues) == ['missing_child_link', 'parent_families_mismatch']

    def test_cycle(self):
        people = [
            {'handle': 'A', 'generation': 1, 'families': ['FA'], 'parent_families': ['FB']},
            {'handle': 'B', 'generation': 2, 'families': ['FB'], 'parent_families': ['FA']},
        ]
        families = [
            {'handle': 'FA', 'father_handle': 'A', 'mother_handle': None, 'children': ['B']},
            {'handle': 'FB', 'father_handle': 'B', 'mother_handle': None, 'children': ['A']},
        ]

        issues = [i for i in ops.audit_graph(people, families) if i['kind'] == 'cycle']

        assert {i['handle'] for i in issues} == {'A', 'B'}

    def test_generation_mismatch(self, engine, family, store):
        store.update('people', family['grandson'], {'generation': 7})
        store.update('people', family['daughter_in_law'], {'generation': 5})

        issues = ops.run_audit(store)

        assert kinds(issues) == ['generation_mismatch'] * 3
        assert family['grandson'] in {i['handle'] for i in issues}

    def test_zombie(self):
        families = [{'handle': 'Z', 'father_handle': None, 'mother_handle': None, 'children': []}]

        assert kinds(ops.audit_graph([], families)) == ['zombie']

    def test_audit_does_not_write(self, engine, family, store):
        store.insert('families', {'handle': 'Z'})

        ops.run_audit(store)

        assert store.get('families', 'Z') is not None


def test_store_errors_surface(store, monkeypatch):
    def broken(*args, **kwargs):
        raise StoreError("disk I/O error")

    monkeypatch.setattr(store, 'count', broken)

    with pytest.raises(StoreError):
        ops.get_table_stats(store)
