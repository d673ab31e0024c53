"""
Admin Form Controller

Turns the "manage people" form into engine calls and back:

    form_from_person()   person -> form values for the edit dialog
    *_candidates()       choices offered by the father/mother/spouse/children pickers
    suggest_generation() generation implied by the picked parent or spouse
    save_form()          form values -> GraphEngine.add_person / edit_person
    people_frame()       people list -> pandas DataFrame for the table

A form is a plain dict shaped like EMPTY_FORM; handle pickers use ''
for "not chosen".
"""

import os
import logging
from typing import Dict, Any, List, Tuple, Optional
import pandas as pd
from dotenv import load_dotenv
import db_utils as dbm
from graph_utils import GraphEngine, FamilyIndex, Person_Attrs

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

EMPTY_FORM = {
    'display_name': '',
    'gender': dbm.Gender['male'],
    'generation': 1,
    'birth_year': '',
    'death_year': '',
    'is_living': True,
    'is_patrilineal': True,
    'is_privacy_filtered': False,
    'father_handle': '',
    'mother_handle': '',
    'spouse_handle': '',
    'child_handles': []
}

GENDER_LABELS = {
    dbm.Gender['male']: 'Male',
    dbm.Gender['female']: 'Female'
}


def new_form() -> Dict[str, Any]:
    form = dict(EMPTY_FORM)
    form['child_handles'] = []
    return form


def form_from_person(index: FamilyIndex, handle: str) -> Dict[str, Any]:
    """
    Prefill the edit form for a person.

    Father and mother come from the family listing the person as a
    child, the spouse from the first family pairing them with a
    partner. The children picker starts empty: children chosen there
    are added to the person's family.
    """
    person = index.people[handle]
    father, mother = index.parents_of(handle)
    _, spouse = index.spouse_family(handle)

    form = new_form()
    form.update({
        'display_name': person['display_name'] or '',
        'gender': person['gender'] or dbm.Gender['male'],
        'generation': person['generation'] or 1,
        'birth_year': '' if person['birth_year'] is None else str(person['birth_year']),
        'death_year': '' if person['death_year'] is None else str(person['death_year']),
        'is_living': bool(person['is_living']),
        'is_patrilineal': bool(person['is_patrilineal']),
        'is_privacy_filtered': bool(person['is_privacy_filtered']),
        'father_handle': father or '',
        'mother_handle': mother or '',
        'spouse_handle': spouse or ''
    })
    return form


def _partner_name(index: FamilyIndex, handle: str) -> Optional[str]:
    _, partner = index.spouse_family(handle)
    if partner and partner in index.people:
        return index.people[partner]['display_name']
    return None


def candidate_label(index: FamilyIndex, person: Dict[str, Any]) -> str:
    """'Gen 3 · Nguyen Van A (Tran Thi B)', the partner's name in brackets if any."""
    label = f"Gen {person['generation']} · {person['display_name']}"
    partner = _partner_name(index, person['handle'])
    return f"{label} ({partner})" if partner else label


def _parent_candidates(index: FamilyIndex, form: Dict[str, Any], gender: int,
                       edit_handle: Optional[str]) -> List[Tuple[str, str]]:
    generation = int(form.get('generation') or 1)
    choices = []
    for person in index.people.values():
        if person['handle'] == edit_handle or person['gender'] != gender:
            continue
        if generation > 1 and person['generation'] != generation - 1:
            continue
        choices.append((person['handle'], candidate_label(index, person)))
    return sorted(choices, key=lambda c: c[1])


def father_candidates(index: FamilyIndex, form: Dict[str, Any],
                      edit_handle: Optional[str] = None) -> List[Tuple[str, str]]:
    """Men one generation above the form's generation (everyone male for generation 1)."""
    return _parent_candidates(index, form, dbm.Gender['male'], edit_handle)


def mother_candidates(index: FamilyIndex, form: Dict[str, Any],
                      edit_handle: Optional[str] = None) -> List[Tuple[str, str]]:
    return _parent_candidates(index, form, dbm.Gender['female'], edit_handle)


def spouse_candidates(index: FamilyIndex, form: Dict[str, Any],
                      edit_handle: Optional[str] = None) -> List[Tuple[str, str]]:
    """Bloodline members a married-in person can be linked to, labelled with their father's name."""
    choices = []
    for person in index.people.values():
        if person['handle'] == edit_handle or not person['is_patrilineal']:
            continue
        label = f"Gen {person['generation']} · {person['display_name']}"
        father, _ = index.parents_of(person['handle'])
        if father and father in index.people:
            label += f" (son/daughter of {index.people[father]['display_name']})"
        choices.append((person['handle'], label))
    return sorted(choices, key=lambda c: c[1])


def child_candidates(index: FamilyIndex, form: Dict[str, Any],
                     edit_handle: Optional[str] = None) -> List[Tuple[str, str]]:
    """People one generation below who have no parents yet, plus those already picked."""
    generation = int(form.get('generation') or 1)
    picked = set(form.get('child_handles') or [])
    choices = []
    for person in index.people.values():
        if person['handle'] == edit_handle or person['generation'] != generation + 1:
            continue
        if person['parent_families'] and person['handle'] not in picked:
            continue
        choices.append((person['handle'], f"{person['display_name']} (Gen {person['generation']})"))
    return sorted(choices, key=lambda c: c[1])


def suggest_generation(index: FamilyIndex, form: Dict[str, Any]) -> int:
    """
    Generation implied by the form's picks: the father's (or, without a
    father, the mother's) generation + 1; for a married-in member the
    spouse's generation. Falls back to the form's own value.
    """
    father = form.get('father_handle')
    mother = form.get('mother_handle')
    spouse = form.get('spouse_handle')
    if not form.get('is_patrilineal', True) and spouse in index.people:
        return index.people[spouse]['generation']
    if father in index.people:
        return index.people[father]['generation'] + 1
    if mother in index.people:
        return index.people[mother]['generation'] + 1
    return int(form.get('generation') or 1)


def refresh_generation(index: FamilyIndex, form: Dict[str, Any], last_suggestion: Optional[int]) -> int:
    """
    Prefill the form's generation only when the suggestion moved since
    last_suggestion, so a typed generation survives reruns.

    Returns:
        int: the current suggestion, to pass back in on the next rerun
    """
    suggested = suggest_generation(index, form)
    if suggested != last_suggestion:
        form['generation'] = suggested
    return suggested


def form_to_request(form: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Split a form into (person attrs, relationship keyword arguments)."""
    attrs = {k: form[k] for k in Person_Attrs if k in form}
    relations = {
        'father_handle': form.get('father_handle') or None,
        'mother_handle': form.get('mother_handle') or None,
        'spouse_handle': None if form.get('is_patrilineal', True) else (form.get('spouse_handle') or None),
        'child_handles': list(form.get('child_handles') or [])
    }
    return attrs, relations


def save_form(engine: GraphEngine, form: Dict[str, Any], edit_handle: Optional[str] = None) -> Dict[str, Any]:
    """
    Save the form: add a new person, or edit edit_handle.

    Returns:
        Dict[str, Any]: the saved person record

    Raises:
        GenealogyError: whatever the engine raises, for the page to show
    """
    attrs, relations = form_to_request(form)
    if edit_handle:
        log.debug(f"Saving edit of {edit_handle}")
        return engine.edit_person(edit_handle, attrs, **relations)
    log.debug(f"Saving new person {attrs.get('display_name')!r}")
    return engine.add_person(attrs, **relations)


def people_frame(people: List[Dict[str, Any]]) -> pd.DataFrame:
    """Table shown on the manage-people page, in the order given."""
    rows = [{
        'Generation': p['generation'],
        'Name': p['display_name'],
        'Gender': GENDER_LABELS.get(p['gender'], ''),
        'Born': p['birth_year'],
        'Died': p['death_year'],
        'Lineage': 'Bloodline' if p['is_patrilineal'] else 'Married in',
        'Living': bool(p['is_living']),
        'Handle': p['handle']
    } for p in people]
    columns = ['Generation', 'Name', 'Gender', 'Born', 'Died', 'Lineage', 'Living', 'Handle']
    return pd.DataFrame(rows, columns=columns)
