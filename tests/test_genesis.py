"""Tests for the demo seed and the session actor helpers."""

import context_utils as cu
import genesis
import ops_dbMgmt as ops


def test_seed_demo_family(engine, store):
    assert genesis.seed_demo_family(engine) == 7

    assert ops.get_table_stats(store) == {'people': 7, 'families': 2}
    assert ops.run_audit(store) == []
    generations = sorted(p['generation'] for p in store.find('people'))
    assert generations == [1, 1, 2, 2, 2, 3, 3]


def test_actor():
    assert cu.make_actor('u1', 'Admin') == {'user_id': 'u1', 'role': 'admin'}
    assert cu.make_actor(None, None) == {'user_id': '', 'role': 'member'}
    assert cu.is_admin(cu.make_actor('u1', 'admin'))
    assert not cu.is_admin(cu.make_actor('u1', 'member'))
    assert not cu.is_admin({})
