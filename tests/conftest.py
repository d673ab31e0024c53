"""Shared fixtures: a fresh SQLite store per test and engines over it."""

import pytest

import db_utils as dbm
from graph_utils import GraphEngine

MALE = dbm.Gender['male']
FEMALE = dbm.Gender['female']


@pytest.fixture
def store(tmp_path):
    """Record store backed by a throwaway database file."""
    return dbm.RecordStore(str(tmp_path / "giapha.db"))


@pytest.fixture
def engine(store):
    """Engine running each operation in one transaction."""
    return GraphEngine(store, atomic=True)


@pytest.fixture
def loose_engine(store):
    """Engine applying writes one by one (no transaction)."""
    return GraphEngine(store, atomic=False)


@pytest.fixture
def add(engine):
    """Shortcut: add(name, gender=..., **relations) -> person record."""
    def _add(name, gender=MALE, patrilineal=True, generation=None, **relations):
        attrs = {'display_name': name, 'gender': gender, 'is_patrilineal': patrilineal}
        if generation is not None:
            attrs['generation'] = generation
        return engine.add_person(attrs, **relations)
    return _add


@pytest.fixture
def family(add):
    """
    Three generations:

        grandpa (1) + grandma (1, married in)
          └─ son (2) + daughter_in_law (2, married in)
               ├─ grandson (3)
               └─ granddaughter (3)
    """
    grandpa = add("Nguyen Van Ong", generation=1)
    grandma = add("Tran Thi Ba", FEMALE, patrilineal=False, spouse_handle=grandpa['handle'])
    son = add("Nguyen Van Con", father_handle=grandpa['handle'], mother_handle=grandma['handle'])
    daughter_in_law = add("Le Thi Dau", FEMALE, patrilineal=False, spouse_handle=son['handle'])
    grandson = add("Nguyen Van Chau", father_handle=son['handle'], mother_handle=daughter_in_law['handle'])
    granddaughter = add("Nguyen Thi Chau", FEMALE,
                        father_handle=son['handle'], mother_handle=daughter_in_law['handle'])
    return {
        'grandpa': grandpa['handle'],
        'grandma': grandma['handle'],
        'son': son['handle'],
        'daughter_in_law': daughter_in_law['handle'],
        'grandson': grandson['handle'],
        'granddaughter': granddaughter['handle'],
    }
