"""
graph_utils.py - Family Graph Engine

Keeps the family graph consistent while an admin adds, edits or
deletes a person:

    people.families         <->  families.father_handle / mother_handle
    people.parent_families  <->  families.children

Each operation reads one snapshot of both tables into a FamilyIndex,
validates the request against it (required fields, unknown handles,
circular ancestry) before writing anything, then applies the family
writes, stages the person writes and flushes them at the end. Empty
("zombie") families are removed after every operation.

With ATOMIC_WRITES on (default) an operation runs inside one store
transaction; otherwise writes are applied one by one and a failure
leaves earlier writes in place until the next cleanup or audit.
"""

import os
import logging
from collections import deque
from contextlib import nullcontext
from typing import Optional, List, Dict, Any, Tuple, Set, Iterable
from dotenv import load_dotenv
import funcUtils as fu
import db_utils as dbm
from err_utils import ValidationError, CircularRelationshipError, StoreError, NotFoundError
from glogTime import func_timer_decorator

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

# Engine settings
MAX_ANCESTOR_DEPTH = int(os.getenv("MAX_ANCESTOR_DEPTH", "100"))
ATOMIC_WRITES = os.getenv("ATOMIC_WRITES", "1").strip().lower() not in ('0', 'false', 'no', 'off')

FATHER = 'father_handle'
MOTHER = 'mother_handle'


class _Keep:
    def __repr__(self):
        return 'KEEP'


# edit_person() default for a relationship that should stay as it is
KEEP = _Keep()

# Family slot taken by a parent of each gender
GENDER_SLOTS = {
    dbm.Gender['male']: FATHER,
    dbm.Gender['female']: MOTHER
}

# Person fields an add/edit request may set
Person_Attrs = [
    'display_name', 'gender', 'generation', 'birth_year', 'death_year',
    'is_living', 'is_patrilineal', 'is_privacy_filtered'
]

New_Person_Defaults = {
    'gender': dbm.Gender['male'],
    'generation': 1,
    'is_living': True,
    'is_privacy_filtered': False,
    'is_patrilineal': True
}


def parent_slot(gender: Any) -> str:
    """
    Family slot a parent of the given gender occupies.

    Raises:
        ValidationError: If the gender is not one of dbm.Gender
    """
    try:
        return GENDER_SLOTS[int(gender)]
    except (KeyError, TypeError, ValueError):
        raise ValidationError(f"Invalid gender: {gender!r}")


def other_slot(slot: str) -> str:
    return MOTHER if slot == FATHER else FATHER


class FamilyIndex:
    """
    In-memory view of the people and families tables for one operation.

    Lookups:
        by_parents: (father_handle, mother_handle) -> family handles
        child_of:   person handle -> handles of families listing them as a child

    Family changes go through put_family()/change_family() so the
    lookups stay in step with what has been written.
    """

    def __init__(self, people: Iterable[Dict[str, Any]], families: Iterable[Dict[str, Any]]):
        self.people: Dict[str, Dict[str, Any]] = {p['handle']: dict(p) for p in people}
        self.families: Dict[str, Dict[str, Any]] = {}
        self.by_parents: Dict[Tuple[Optional[str], Optional[str]], List[str]] = {}
        self.child_of: Dict[str, List[str]] = {}
        for family in families:
            self._add(dict(family))

    def _add(self, family: Dict[str, Any]) -> None:
        handle = family['handle']
        family['children'] = list(family.get('children') or [])
        self.families[handle] = family
        self.by_parents.setdefault((family.get(FATHER), family.get(MOTHER)), []).append(handle)
        for child in family['children']:
            self.child_of.setdefault(child, []).append(handle)

    def _drop(self, family: Dict[str, Any]) -> None:
        handle = family['handle']
        key = (family.get(FATHER), family.get(MOTHER))
        handles = self.by_parents.get(key, [])
        if handle in handles:
            handles.remove(handle)
        if not handles:
            self.by_parents.pop(key, None)
        for child in family['children']:
            owners = self.child_of.get(child, [])
            if handle in owners:
                owners.remove(handle)
            if not owners:
                self.child_of.pop(child, None)

    def put_family(self, family: Dict[str, Any]) -> Dict[str, Any]:
        old = self.families.pop(family['handle'], None)
        if old is not None:
            self._drop(old)
        self._add(dict(family))
        return self.families[family['handle']]

    def change_family(self, handle: str, **changes: Any) -> Dict[str, Any]:
        family = dict(self.families[handle])
        family.update(changes)
        return self.put_family(family)

    def match(self, father: Optional[str], mother: Optional[str]) -> Optional[Dict[str, Any]]:
        """First family whose slots are exactly (father, mother); None matches only None."""
        handles = self.by_parents.get((father, mother))
        return self.families[handles[0]] if handles else None

    def families_as_child(self, handle: str) -> List[Dict[str, Any]]:
        return [self.families[h] for h in list(self.child_of.get(handle, []))]

    def families_as_parent(self, handle: str) -> List[Dict[str, Any]]:
        return [f for f in self.families.values() if handle in (f.get(FATHER), f.get(MOTHER))]

    def parents_of(self, handle: str) -> Tuple[Optional[str], Optional[str]]:
        """(father, mother) of a person, from their parent family."""
        person = self.people.get(handle)
        family = None
        if person and person.get('parent_families'):
            family = self.families.get(person['parent_families'][0])
        if family is None and self.child_of.get(handle):
            family = self.families[self.child_of[handle][0]]
        if family is None:
            return None, None
        return family.get(FATHER), family.get(MOTHER)

    def spouse_family(self, handle: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """First family in the person's list that pairs them with a partner."""
        person = self.people.get(handle)
        for family_handle in (person or {}).get('families', []):
            family = self.families.get(family_handle)
            if not family:
                continue
            if family.get(FATHER) == handle and family.get(MOTHER):
                return family, family[MOTHER]
            if family.get(MOTHER) == handle and family.get(FATHER):
                return family, family[FATHER]
        return None, None

    def open_family(self, partner: str, slot: str) -> Optional[Dict[str, Any]]:
        """First family where partner holds the other slot and slot is still empty."""
        for family in self.families_as_parent(partner):
            if family.get(other_slot(slot)) == partner and not family.get(slot):
                return family
        return None

    def ancestors(self, handle: str, max_depth: int = MAX_ANCESTOR_DEPTH) -> Set[str]:
        """All fathers and mothers reachable upwards from handle, up to max_depth levels."""
        found: Set[str] = set()
        frontier = [handle]
        depth = 0
        while frontier and depth < max_depth:
            depth += 1
            next_frontier = []
            for current in frontier:
                for parent in self.parents_of(current):
                    if parent and parent not in found:
                        found.add(parent)
                        next_frontier.append(parent)
            frontier = next_frontier
        return found


def would_create_cycle(index: FamilyIndex, subject: str, candidate_parent: str,
                       max_depth: int = MAX_ANCESTOR_DEPTH) -> bool:
    """True if making candidate_parent a parent of subject makes subject their own ancestor."""
    if candidate_parent == subject:
        return True
    return subject in index.ancestors(candidate_parent, max_depth)


def sync_generations(index: FamilyIndex, start: str, target: int,
                     visited: Optional[Set[str]] = None) -> Dict[str, int]:
    """
    Compute the generation of everyone whose generation follows from
    start being at target: spouses share a generation, children are
    one generation below their parents.

    Breadth-first over a worklist; a handle already in visited is never
    processed again, which also stops the walk on cyclic data. Nothing
    is written here.

    Args:
        index: the operation's FamilyIndex
        start: handle of the person whose generation changes
        target: new generation of start
        visited: handles already settled (shared between calls)

    Returns:
        Dict[str, int]: handle -> new generation, start included

    Example:
        >>> sync_generations(index, 'B', 5)
        {'B': 5, 'B-wife': 5, 'G': 6}
    """
    visited = set() if visited is None else visited
    pending: Dict[str, int] = {}
    queue = deque([(start, target)])
    while queue:
        handle, generation = queue.popleft()
        if handle in visited:
            continue
        visited.add(handle)
        person = index.people.get(handle)
        if person is None:
            continue
        pending[handle] = generation
        for family_handle in person.get('families', []):
            family = index.families.get(family_handle)
            if family is None:
                continue
            spouse = family.get(MOTHER) if family.get(FATHER) == handle else family.get(FATHER)
            if spouse:
                queue.append((spouse, generation))
            for child in family['children']:
                queue.append((child, generation + 1))
    return pending


def find_zombie_families(person_handles: Set[str], families: Iterable[Dict[str, Any]]) -> List[str]:
    """
    Handles of families with no existing parent and no existing child.
    """
    zombies = []
    for family in families:
        father_exists = bool(family.get(FATHER)) and family[FATHER] in person_handles
        mother_exists = bool(family.get(MOTHER)) and family[MOTHER] in person_handles
        live_children = [c for c in family.get('children') or [] if c in person_handles]
        if not father_exists and not mother_exists and not live_children:
            zombies.append(family['handle'])
    return zombies


def check_gender_change(families: Iterable[Dict[str, Any]], handle: str, gender: Any) -> None:
    """
    A person may only change gender while they hold no parent slot
    of their current gender.

    Raises:
        ValidationError: If handle is a father (mother) in one of families
            and gender is not male (female)
    """
    slot = parent_slot(gender)
    for family in families:
        if family.get(other_slot(slot)) == handle:
            role = 'father' if other_slot(slot) == FATHER else 'mother'
            raise ValidationError(
                f"Cannot change the gender of {handle}: they are the {role} "
                f"in family {family['handle']}")


class GraphMutation:
    """
    Write side of one engine operation.

    Family rows are written as soon as they change (a new family's
    handle must exist before a person can reference it). Person
    changes are staged and written by flush(), the subject last.
    """

    def __init__(self, store: dbm.RecordStore, index: FamilyIndex):
        self.store = store
        self.index = index
        self.staged: Dict[str, Dict[str, Any]] = {}

    # ----- people -----

    def stage(self, handle: str, **changes: Any) -> None:
        person = self.index.people.get(handle)
        if person is None:
            raise NotFoundError('people', handle)
        person.update(changes)
        self.staged.setdefault(handle, {}).update(changes)

    def add_family_to_person(self, handle: str, family_handle: str) -> None:
        families = list(self.index.people[handle].get('families') or [])
        if family_handle not in families:
            families.append(family_handle)
            self.stage(handle, families=families)

    def remove_family_from_person(self, handle: str, family_handle: str) -> None:
        families = list(self.index.people[handle].get('families') or [])
        if family_handle in families:
            families.remove(family_handle)
            self.stage(handle, families=families)

    def flush(self, subject: Optional[str] = None) -> None:
        for handle, changes in self.staged.items():
            if handle != subject:
                self._write_person(handle, changes)
        if subject in self.staged:
            self._write_person(subject, self.staged[subject])
        self.staged = {}

    def _write_person(self, handle: str, changes: Dict[str, Any]) -> None:
        if not self.store.update('people', handle, changes):
            raise NotFoundError('people', handle)

    # ----- families -----

    def create_family(self, father: Optional[str], mother: Optional[str],
                      children: Optional[List[str]] = None) -> Dict[str, Any]:
        family = self.store.insert('families', {
            'handle': fu.new_handle('f', father or mother),
            FATHER: father,
            MOTHER: mother,
            'children': list(children or [])
        })
        log.debug(f"Created family {family['handle']} (father={father}, mother={mother})")
        return self.index.put_family(family)

    def update_family(self, handle: str, **changes: Any) -> Dict[str, Any]:
        if not self.store.update('families', handle, changes):
            raise NotFoundError('families', handle)
        return self.index.change_family(handle, **changes)

    # ----- linkage -----

    def find_or_create_family(self, father: Optional[str], mother: Optional[str]) -> Dict[str, Any]:
        """
        Family whose slots equal (father, mother) exactly, created when
        there is none. The family is registered in each parent's list.
        """
        family = self.index.match(father, mother)
        if family is None:
            family = self.create_family(father, mother)
        else:
            log.debug(f"Reusing family {family['handle']} (father={father}, mother={mother})")
        for parent in (father, mother):
            if parent:
                self.add_family_to_person(parent, family['handle'])
        return family

    def detach_from_parents(self, handle: str) -> None:
        for family in self.index.families_as_child(handle):
            self.update_family(family['handle'],
                               children=[c for c in family['children'] if c != handle])

    def link_parents(self, handle: str, father: Optional[str], mother: Optional[str]) -> Optional[str]:
        """Make handle a child of (father, mother); returns the family handle."""
        if not father and not mother:
            self.stage(handle, parent_families=[])
            return None
        family = self.find_or_create_family(father, mother)
        if handle not in family['children']:
            family = self.update_family(family['handle'], children=family['children'] + [handle])
        self.stage(handle, parent_families=[family['handle']])
        return family['handle']

    def link_spouse(self, handle: str, gender: int, spouse: str) -> str:
        """
        Pair handle with spouse: fill the empty slot of a family where
        the spouse is a parent, or create a family holding both.
        """
        slot = parent_slot(gender)
        family = self.index.open_family(spouse, slot)
        if family is not None:
            family = self.update_family(family['handle'], **{slot: handle})
            log.debug(f"Filled {slot} of family {family['handle']} with {handle}")
            self.add_family_to_person(handle, family['handle'])
            self.add_family_to_person(spouse, family['handle'])
            return family['handle']

        spouse_slot = parent_slot(self.index.people[spouse]['gender'])
        slots = {spouse_slot: spouse, other_slot(spouse_slot): handle}
        family = self.create_family(slots[FATHER], slots[MOTHER])
        self.add_family_to_person(handle, family['handle'])
        self.add_family_to_person(spouse, family['handle'])
        return family['handle']

    def unlink_spouse(self, handle: str, family_handle: str) -> None:
        """Empty handle's slot in a spousal family; the family and its children stay."""
        family = self.index.families[family_handle]
        for slot in (FATHER, MOTHER):
            if family.get(slot) == handle:
                self.update_family(family_handle, **{slot: None})
        self.remove_family_from_person(handle, family_handle)
        log.debug(f"Removed {handle} from spousal family {family_handle}")

    def link_children(self, handle: str, gender: int, children: List[str],
                      generation: int, visited: Set[str]) -> str:
        """
        Make children the children of handle. The person's first family
        is reused when they hold their gender's slot in it, otherwise a
        new single-parent family is created. Each child leaves its old
        parent family and its subtree moves to generation + 1.
        """
        slot = parent_slot(gender)
        person = self.index.people[handle]
        family = None
        if person.get('families'):
            first = self.index.families.get(person['families'][0])
            if first and first.get(slot) == handle:
                family = first

        if family is None:
            slots = {FATHER: None, MOTHER: None, slot: handle}
            family = self.create_family(slots[FATHER], slots[MOTHER], children)
            self.add_family_to_person(handle, family['handle'])
        else:
            merged = family['children'] + [c for c in children if c not in family['children']]
            if merged != family['children']:
                family = self.update_family(family['handle'], children=merged)

        for child in children:
            for old in self.index.families_as_child(child):
                if old['handle'] != family['handle']:
                    self.update_family(old['handle'],
                                       children=[c for c in old['children'] if c != child])
            self.stage(child, parent_families=[family['handle']])
            for person_handle, new_generation in sync_generations(
                    self.index, child, generation + 1, visited).items():
                self.stage(person_handle, generation=new_generation)
        return family['handle']


class GraphEngine:
    """
    Add, edit and delete people while keeping the family graph consistent.

    Example:
        >>> engine = GraphEngine(dbm.RecordStore())
        >>> a = engine.add_person({'display_name': 'Nguyen Van A'})
        >>> b = engine.add_person({'display_name': 'Nguyen Van B'}, father_handle=a['handle'])
        >>> b['generation'], b['parent_families'] != []
        (2, True)
    """

    def __init__(self, store: dbm.RecordStore, atomic: Optional[bool] = None,
                 max_ancestor_depth: Optional[int] = None):
        self.store = store
        self.atomic = ATOMIC_WRITES if atomic is None else atomic
        self.max_ancestor_depth = max_ancestor_depth or MAX_ANCESTOR_DEPTH

    def _writes(self):
        return self.store.transaction() if self.atomic else nullcontext(self.store)

    def load_index(self) -> FamilyIndex:
        people, families = self.store.snapshot()
        return FamilyIndex(people, families)

    # ----- request validation -----

    def _clean_attrs(self, attrs: Dict[str, Any], require_name: bool) -> Dict[str, Any]:
        unknown = [k for k in attrs if k not in Person_Attrs]
        if unknown:
            raise ValidationError(f"Unknown person field(s): {', '.join(unknown)}")
        cleaned = {k: attrs[k] for k in Person_Attrs if k in attrs}

        if require_name or 'display_name' in cleaned:
            name = (cleaned.get('display_name') or '').strip()
            if not name:
                raise ValidationError("Display name is required")
            cleaned['display_name'] = name
        if 'gender' in cleaned:
            parent_slot(cleaned['gender'])
            cleaned['gender'] = int(cleaned['gender'])
        if 'generation' in cleaned:
            try:
                generation = int(cleaned['generation'])
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid generation: {cleaned['generation']!r}")
            if generation < 1:
                raise ValidationError("Generation must be 1 or greater")
            cleaned['generation'] = generation
        for field in ('birth_year', 'death_year'):
            if field in cleaned:
                cleaned[field] = fu.parse_year(cleaned[field], field)
        for field in ('is_living', 'is_patrilineal', 'is_privacy_filtered'):
            if field in cleaned:
                cleaned[field] = bool(cleaned[field])
        if cleaned.get('is_living'):
            cleaned['death_year'] = None
        return cleaned

    @staticmethod
    def _clean_children(child_handles: Optional[Iterable[str]]) -> List[str]:
        children = []
        for child in child_handles or []:
            child = fu.clean_handle(child)
            if child and child not in children:
                children.append(child)
        return children

    def _check_request(self, index: FamilyIndex, subject: Optional[str],
                       father: Optional[str], mother: Optional[str],
                       spouse: Optional[str], children: List[str],
                       unchanged: Tuple[Optional[str], ...] = (),
                       joined: Optional[Dict[str, Any]] = None,
                       child_partner: Optional[str] = None) -> None:
        """
        Referenced people exist, roles don't collide, no ancestry cycle.
        Parents listed in unchanged are already linked and not re-checked.

        joined is the family the spouse link will fill (its children get
        the subject as a parent); child_partner is the other parent the
        picked children will get. See _planned_links().
        """
        for handle in [father, mother, spouse] + children:
            if handle and handle != subject and handle not in index.people:
                raise NotFoundError('people', handle)

        father_new = bool(father) and father not in unchanged
        mother_new = bool(mother) and mother not in unchanged
        if father and mother and father == mother:
            raise ValidationError("Father and mother must be different people")
        if father_new and father != subject and index.people[father]['gender'] != dbm.Gender['male']:
            raise ValidationError(f"{index.people[father]['display_name']} cannot be a father")
        if mother_new and mother != subject and index.people[mother]['gender'] != dbm.Gender['female']:
            raise ValidationError(f"{index.people[mother]['display_name']} cannot be a mother")
        if spouse and (spouse == subject or spouse in (father, mother) or spouse in children):
            raise ValidationError("A spouse cannot also be the person, a parent or a child")

        # the father and mother slots are checked independently
        for label, parent, is_new in (('father', father, father_new), ('mother', mother, mother_new)):
            if is_new and subject and would_create_cycle(index, subject, parent, self.max_ancestor_depth):
                raise CircularRelationshipError(
                    f"Cannot make {parent} the {label} of {subject}: "
                    f"{subject} would become their own ancestor")

        future_ancestors: Set[str] = set()
        for parent in (father, mother):
            if parent:
                future_ancestors.add(parent)
                future_ancestors |= index.ancestors(parent, self.max_ancestor_depth)
        for child in children:
            if child == subject or child in future_ancestors:
                raise CircularRelationshipError(
                    f"Cannot make {child} a child of {subject or 'the new person'}: "
                    f"{child} would become their own ancestor")

        if joined is not None:
            for child in joined['children']:
                if child == subject or child in future_ancestors:
                    raise CircularRelationshipError(
                        f"Cannot link {subject or 'the new person'} to spouse {spouse}: "
                        f"{child} of family {joined['handle']} would become their own ancestor")

        if child_partner and children:
            partner_line = {child_partner} | index.ancestors(child_partner, self.max_ancestor_depth)
            for child in children:
                if child in partner_line:
                    raise CircularRelationshipError(
                        f"Cannot make {child} a child of {subject or 'the new person'} "
                        f"and {child_partner}: {child} would become their own ancestor")

    @staticmethod
    def _planned_links(index: FamilyIndex, handle: Optional[str], gender: int,
                       spouse: Optional[str], leaving: Optional[str] = None
                       ) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """
        Predict, before writing, what link_spouse() and link_children()
        will do for handle.

        Args:
            spouse: spouse that will be linked, None if the spouse link is skipped
            leaving: spousal family handle is about to be removed from

        Returns:
            (family link_spouse will fill or None, partner in the family
            link_children will reuse or None)
        """
        slot = parent_slot(gender)
        person = index.people.get(handle) or {}
        families = [f for f in person.get('families') or [] if f != leaving]
        joined = index.open_family(spouse, slot) if spouse else None

        if families:
            first = index.families.get(families[0])
            if first and first.get(slot) == handle:
                return joined, first.get(other_slot(slot))
            return joined, None
        # the family added by the spouse link becomes the first one
        if not spouse:
            return None, None
        if joined is not None:
            return joined, spouse
        spouse_slot = parent_slot(index.people[spouse]['gender'])
        return None, spouse if other_slot(spouse_slot) == slot else None

    def _cleanup_after(self) -> None:
        try:
            self.cleanup_families()
        except StoreError as e:
            log.error(f"Cleanup after {fu.get_function_name()} failed: {str(e)}")

    # ----- operations -----

    @func_timer_decorator
    def add_person(
        self,
        attrs: Dict[str, Any],
        father_handle: Optional[str] = None,
        mother_handle: Optional[str] = None,
        spouse_handle: Optional[str] = None,
        child_handles: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Add a person and link them to their parents, spouse and children.

        The generation follows the parents (max + 1) when a parent is
        given, and the spouse's generation for a marriage-in member
        (is_patrilineal False) linked to a spouse; otherwise
        attrs['generation'] (default 1) is used. The spouse link is
        ignored for bloodline members.

        Args:
            attrs: person fields, see Person_Attrs; display_name required
            father_handle, mother_handle: parents, '' or None if unknown
            spouse_handle: spouse of a marriage-in member
            child_handles: existing people to make children of the new person

        Returns:
            Dict[str, Any]: the created person as stored

        Raises:
            ValidationError: blank name, bad field values, conflicting roles
            CircularRelationshipError: a child is an ancestor of a given parent
            NotFoundError: a referenced person doesn't exist
            StoreError: the database failed
        """
        attrs = self._clean_attrs(attrs, require_name=True)
        record = dict(New_Person_Defaults)
        record.update(attrs)
        father = fu.clean_handle(father_handle)
        mother = fu.clean_handle(mother_handle)
        spouse = fu.clean_handle(spouse_handle)
        children = self._clean_children(child_handles)

        index = self.load_index()
        linked_spouse = None if record['is_patrilineal'] else spouse
        if linked_spouse and linked_spouse not in index.people:
            raise NotFoundError('people', linked_spouse)
        joined, child_partner = self._planned_links(index, None, record['gender'], linked_spouse)
        self._check_request(index, None, father, mother, spouse, children,
                            joined=joined, child_partner=child_partner)

        parents = [index.people[p] for p in (father, mother) if p]
        if parents:
            record['generation'] = max(p['generation'] for p in parents) + 1
        if linked_spouse:
            record['generation'] = index.people[linked_spouse]['generation']
        elif spouse:
            log.debug(f"Ignoring spouse {spouse} for bloodline member {record['display_name']}")
        spouse = linked_spouse

        try:
            with self._writes():
                person = self.store.insert('people', dict(record, families=[], parent_families=[]))
                handle = person['handle']
                index.people[handle] = person
                mutation = GraphMutation(self.store, index)

                if father or mother:
                    mutation.link_parents(handle, father, mother)
                if spouse:
                    mutation.link_spouse(handle, record['gender'], spouse)
                if children:
                    mutation.link_children(handle, record['gender'], children,
                                           record['generation'], visited={handle})
                mutation.flush(subject=handle)
            log.info(f"Added person {handle}: {record['display_name']}")
        finally:
            self._cleanup_after()
        return self.store.get('people', handle)

    @func_timer_decorator
    def edit_person(
        self,
        handle: str,
        attrs: Dict[str, Any],
        father_handle: Any = KEEP,
        mother_handle: Any = KEEP,
        spouse_handle: Any = KEEP,
        child_handles: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """
        Edit a person's fields and relationships.

        father/mother/spouse give the wanted state: KEEP (the default)
        leaves that relationship as it is, None (or '') means "no
        father", "no mother", "no spouse". The spouse is only changed
        for marriage-in members; for bloodline members the current
        spouse is kept. child_handles are added to the person's
        children. A generation change moves spouses to the same
        generation and every descendant below it.

        Returns:
            Dict[str, Any]: the updated person as stored

        Raises:
            ValidationError, CircularRelationshipError, NotFoundError, StoreError

        Example:
            >>> engine.edit_person('B', {'generation': 5})
            {'handle': 'B', 'generation': 5, ...}
        """
        attrs = self._clean_attrs(attrs, require_name=False)
        children = self._clean_children(child_handles)

        index = self.load_index()
        person = index.people.get(handle)
        if person is None:
            raise NotFoundError('people', handle)

        gender = attrs.get('gender', person['gender'])
        patrilineal = attrs.get('is_patrilineal', person['is_patrilineal'])
        old_father, old_mother = index.parents_of(handle)
        old_spouse_family, old_spouse = index.spouse_family(handle)
        father = old_father if father_handle is KEEP else fu.clean_handle(father_handle)
        mother = old_mother if mother_handle is KEEP else fu.clean_handle(mother_handle)
        if patrilineal or spouse_handle is KEEP:
            target_spouse = old_spouse
        else:
            target_spouse = fu.clean_handle(spouse_handle)
        if gender != person['gender']:
            check_gender_change(index.families_as_parent(handle), handle, gender)

        spouse_changes = target_spouse != old_spouse
        if spouse_changes and target_spouse and target_spouse not in index.people:
            raise NotFoundError('people', target_spouse)
        joined, child_partner = self._planned_links(
            index, handle, gender,
            target_spouse if spouse_changes else None,
            leaving=old_spouse_family['handle'] if spouse_changes and old_spouse_family else None)
        self._check_request(index, handle, father, mother, target_spouse, children,
                            unchanged=(old_father, old_mother),
                            joined=joined, child_partner=child_partner)

        generation = attrs.get('generation', person['generation'])
        if target_spouse and spouse_changes:
            generation = index.people[target_spouse]['generation']
        attrs['generation'] = generation

        try:
            with self._writes():
                mutation = GraphMutation(self.store, index)

                if (father, mother) != (old_father, old_mother):
                    mutation.detach_from_parents(handle)
                    mutation.link_parents(handle, father, mother)

                if spouse_changes:
                    if old_spouse_family:
                        mutation.unlink_spouse(handle, old_spouse_family['handle'])
                    if target_spouse:
                        mutation.link_spouse(handle, gender, target_spouse)

                # walks the links as they are after the spouse change
                visited = {handle}
                if generation != person['generation']:
                    visited = set()
                    pending = sync_generations(index, handle, generation, visited)
                    log.debug(f"Generation of {handle}: {person['generation']} -> {generation}, "
                              f"{len(pending) - 1} other(s) follow")
                    for other, new_generation in pending.items():
                        if other != handle:
                            mutation.stage(other, generation=new_generation)

                if children:
                    mutation.link_children(handle, gender, children, generation, visited)

                mutation.stage(handle, **attrs)
                mutation.flush(subject=handle)
            log.info(f"Edited person {handle}")
        finally:
            self._cleanup_after()
        return self.store.get('people', handle)

    @func_timer_decorator
    def delete_person(self, handle: str) -> bool:
        """
        Delete a person. The handle is first removed from every family
        listing them as a child or parent; a failure on one family is
        logged and does not stop the delete.

        Returns:
            bool: True once the person record is deleted

        Raises:
            NotFoundError: If no person has this handle
            StoreError: If the person record cannot be deleted
        """
        if self.store.get('people', handle) is None:
            raise NotFoundError('people', handle)

        try:
            with self._writes():
                for family in self.store.find('families', contains={'children': handle}):
                    try:
                        self.store.update('families', family['handle'],
                                          {'children': [c for c in family['children'] if c != handle]})
                    except StoreError as e:
                        log.warning(f"Could not remove {handle} from family {family['handle']}: {str(e)}")

                for family in self.store.find('families', either={FATHER: handle, MOTHER: handle}):
                    slots = {slot: None for slot in (FATHER, MOTHER) if family.get(slot) == handle}
                    try:
                        self.store.update('families', family['handle'], slots)
                    except StoreError as e:
                        log.warning(f"Could not clear {handle} from family {family['handle']}: {str(e)}")

                if not self.store.delete('people', handle):
                    raise NotFoundError('people', handle)
            log.info(f"Deleted person {handle}")
        finally:
            self._cleanup_after()
        return True

    def cleanup_families(self) -> int:
        """
        Delete every zombie family in one batch. Safe to run at any time.

        Returns:
            int: number of families removed
        """
        people, families = self.store.snapshot()
        zombies = find_zombie_families({p['handle'] for p in people}, families)
        if not zombies:
            return 0
        with self._writes():
            deleted = self.store.delete_where('families', zombies)
        log.info(f"Cleaned up {deleted} zombie families: {zombies}")
        return deleted
