"""
Database Management Operations

This module contains the database operations behind the admin
sidebar: table statistics and structure, the manual family cleanup,
and a read-only audit of the family graph that reports every
inconsistency a failed or interrupted save may have left behind.
"""
import sqlite3
import db_utils as dbm
import logging
from typing import List, Dict, Any, Iterable
from dotenv import load_dotenv
import os
import funcUtils as fu
from err_utils import StoreError
from graph_utils import GraphEngine, FamilyIndex, find_zombie_families, FATHER, MOTHER

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

# Kinds of issue reported by audit_graph()
Issue_Kinds = {
    'dangling_family': 'Person lists a family that does not exist',
    'dangling_person': 'Family references a person who does not exist',
    'asymmetric_slot': "Person and family disagree on a parent slot",
    'missing_child_link': "Person's parent family does not list them as a child",
    'parent_families_mismatch': "Family lists a child whose parent family is different",
    'cycle': 'Person is their own ancestor',
    'generation_mismatch': 'Generation does not follow from parents or spouse',
    'zombie': 'Family has no existing parent and no existing child'
}


def get_table_structure(store: dbm.RecordStore, table: str) -> List[Dict[str, Any]]:
    """Get the columns of a logical table ('people' or 'families')"""
    if table not in dbm.db_tables:
        raise ValueError(f"Unknown table: {table}. Must be one of {list(dbm.db_tables)}")
    try:
        conn = dbm.get_db_connection(store.db_file)
        try:
            cursor = conn.cursor()
            cursor.execute(f"PRAGMA table_info({dbm.db_tables[table]})")
            return [{
                'Column Name': col[1],
                'Data Type': col[2],
                'Allow NULL': 'No' if col[3] else 'Yes',
                'Default': col[4] or 'None',
                'Primary Key': 'Yes' if col[5] else 'No'
            } for col in cursor.fetchall()]
        finally:
            conn.close()
    except sqlite3.Error as e:
        error_msg = f"Database error in {fu.get_function_name()}: {str(e)}"
        log.error(error_msg)
        raise StoreError(error_msg) from e


def get_table_stats(store: dbm.RecordStore) -> Dict[str, int]:
    """Record count of each table"""
    stats = {table: store.count(table) for table in dbm.db_tables}
    log.debug(f"Table stats: {stats}")
    return stats


def run_cleanup(engine: GraphEngine) -> int:
    """Run the zombie family cleanup on demand; returns the number removed"""
    removed = engine.cleanup_families()
    log.info(f"Manual cleanup removed {removed} families")
    return removed


def _issue(kind: str, handle: str, detail: str) -> Dict[str, str]:
    return {'kind': kind, 'handle': handle, 'detail': detail}


def audit_graph(people: Iterable[Dict[str, Any]], families: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Check the family graph without writing anything.

    Verifies that people.families matches the father/mother slots,
    that people.parent_families matches families.children, that nobody
    is their own ancestor, that generations follow from parents and
    spouses, and that no zombie family is left.

    Args:
        people: person records
        families: family records

    Returns:
        List[Dict[str, str]]: issues as {'kind', 'handle', 'detail'},
        kind being one of Issue_Kinds; empty when the graph is consistent
    """
    index = FamilyIndex(people, families)
    issues: List[Dict[str, str]] = []

    for handle, person in index.people.items():
        for family_handle in person.get('families') or []:
            family = index.families.get(family_handle)
            if family is None:
                issues.append(_issue('dangling_family', handle, f"families lists missing {family_handle}"))
            elif handle not in (family.get(FATHER), family.get(MOTHER)):
                issues.append(_issue('asymmetric_slot', handle,
                                     f"lists {family_handle} but is neither its father nor mother"))
        for family_handle in person.get('parent_families') or []:
            family = index.families.get(family_handle)
            if family is None:
                issues.append(_issue('dangling_family', handle, f"parent_families lists missing {family_handle}"))
            elif handle not in family['children']:
                issues.append(_issue('missing_child_link', handle, f"{family_handle} does not list them as a child"))
        if len(person.get('parent_families') or []) > 1:
            issues.append(_issue('parent_families_mismatch', handle,
                                 f"has {len(person['parent_families'])} parent families"))

    for family_handle, family in index.families.items():
        for slot in (FATHER, MOTHER):
            parent = family.get(slot)
            if not parent:
                continue
            if parent not in index.people:
                issues.append(_issue('dangling_person', family_handle, f"{slot} {parent} does not exist"))
            elif family_handle not in (index.people[parent].get('families') or []):
                issues.append(_issue('asymmetric_slot', family_handle,
                                     f"{slot} {parent} does not list this family"))
        for child in family['children']:
            if child not in index.people:
                issues.append(_issue('dangling_person', family_handle, f"child {child} does not exist"))
            elif family_handle not in (index.people[child].get('parent_families') or []):
                issues.append(_issue('parent_families_mismatch', family_handle,
                                     f"child {child} has parent_families {index.people[child]['parent_families']}"))

    depth = len(index.people) + 1
    for handle in index.people:
        if handle in index.ancestors(handle, depth):
            issues.append(_issue('cycle', handle, "appears among their own ancestors"))

    for family_handle, family in index.families.items():
        parents = [index.people[p] for p in (family.get(FATHER), family.get(MOTHER)) if p in index.people]
        if len(parents) == 2 and parents[0]['generation'] != parents[1]['generation']:
            issues.append(_issue('generation_mismatch', family_handle,
                                 f"spouses at generations {parents[0]['generation']} and {parents[1]['generation']}"))
        if not parents:
            continue
        expected = max(p['generation'] for p in parents) + 1
        for child in family['children']:
            if child in index.people and index.people[child]['generation'] != expected:
                issues.append(_issue('generation_mismatch', child,
                                     f"generation {index.people[child]['generation']}, expected {expected}"))

    for family_handle in find_zombie_families(set(index.people), index.families.values()):
        issues.append(_issue('zombie', family_handle, Issue_Kinds['zombie']))

    log.debug(f"Audit found {len(issues)} issue(s)")
    return issues


def run_audit(store: dbm.RecordStore) -> List[Dict[str, str]]:
    """Audit the graph as currently stored"""
    people, families = store.snapshot()
    return audit_graph(people, families)
