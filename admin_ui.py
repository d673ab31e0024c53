"""
Admin UI Module

Manage People: the admin page to list, add, edit and delete people.
Every save goes through graph_utils.GraphEngine so parents, spouses,
children and generations stay consistent.
"""
import streamlit as st

# 頁面配置必須是第一個 Streamlit 命令
st.set_page_config(
    page_title="Manage People",
    page_icon="🌳",
    layout="wide",
    initial_sidebar_state="expanded"
)

import pandas as pd
import db_utils as dbm
import form_utils as fm
import ops_dbMgmt as ops
import context_utils as cu
from err_utils import GenealogyError

# Constants for UI text
UI_TEXTS = {
    "common": {
        "app_title": "Manage People",
        "modes": ["Add person", "Edit person"],
        "none": "(none)"
    },
    "list": {
        "title": "People",
        "search": "Search by name",
        "count": "Showing {shown} / {total} people",
        "page": "Page",
        "empty": "No people found"
    },
    "form": {
        "pick_person": "Person to edit",
        "name": "Full Name*",
        "gender": "Gender",
        "patrilineal": "Bloodline member (uncheck for married-in)",
        "father": "Father",
        "mother": "Mother",
        "spouse": "Spouse",
        "generation": "Generation",
        "birth_year": "Birth year",
        "death_year": "Death year",
        "living": "Living",
        "privacy": "Hide private details",
        "children": "Children",
        "save": "Save",
        "added": "Added {name}",
        "saved": "Saved {name}",
        "error": "Could not save: {error}"
    },
    "delete": {
        "title": "Delete",
        "warning": "⚠️ Warning: This action cannot be undone!",
        "confirm_checkbox": "I confirm that I want to delete {name}",
        "confirm_button": "Delete person",
        "success": "Deleted {name}",
        "error": "Could not delete: {error}"
    },
    "sidebar": {
        "title": "Database",
        "stats": "{people} people · {families} families",
        "cleanup": "Clean up empty families",
        "cleanup_done": "Removed {count} empty families",
        "audit": "Check family graph",
        "audit_ok": "No problems found",
        "audit_found": "{count} problem(s) found",
        "structure": "Table structure"
    }
}


def show_admin_sidebar(store, engine):
    """Display the admin sidebar"""
    texts = UI_TEXTS["sidebar"]
    with st.sidebar:
        st.title(texts["title"])
        try:
            stats = ops.get_table_stats(store)
            st.caption(texts["stats"].format(**stats))
        except GenealogyError as e:
            st.error(str(e))

        if st.button(texts["cleanup"], use_container_width=True):
            try:
                st.success(texts["cleanup_done"].format(count=ops.run_cleanup(engine)))
            except GenealogyError as e:
                st.error(str(e))

        if st.button(texts["audit"], use_container_width=True):
            issues = ops.run_audit(store)
            if issues:
                st.warning(texts["audit_found"].format(count=len(issues)))
                st.dataframe(pd.DataFrame(issues), hide_index=True)
            else:
                st.success(texts["audit_ok"])

        with st.expander(texts["structure"], expanded=False):
            for table in dbm.db_tables:
                st.markdown(f"**{table}**")
                st.table(ops.get_table_structure(store, table))


def show_people_table(store):
    """Searchable, paged list of people"""
    texts = UI_TEXTS["list"]
    st.subheader(texts["title"])
    search = st.text_input(texts["search"], "")
    people = dbm.get_people(store, search)
    total = store.count('people')
    st.caption(texts["count"].format(shown=len(people), total=total))
    if not people:
        st.info(texts["empty"])
        return

    per_page = st.session_state.app_context['items_per_page']
    pages = max(1, (len(people) + per_page - 1) // per_page)
    page = st.number_input(texts["page"], min_value=1, max_value=pages, value=1, step=1)
    start = (page - 1) * per_page
    st.dataframe(fm.people_frame(people[start:start + per_page]), hide_index=True, use_container_width=True)


def _select_handle(label, choices, current, key):
    """Selectbox over (handle, label) choices with '' meaning none"""
    labels = dict(choices)
    options = [''] + [h for h, _ in choices]
    if current and current not in labels:
        options.append(current)
    return st.selectbox(
        label, options,
        index=options.index(current) if current in options else 0,
        format_func=lambda h: labels.get(h, h) if h else UI_TEXTS["common"]["none"],
        key=key
    )


def load_form(index, handle):
    """Put a fresh (or prefilled) form into the session"""
    st.session_state.person_form = fm.form_from_person(index, handle) if handle else fm.new_form()
    st.session_state.form_handle = handle
    st.session_state.form_key = st.session_state.get('form_key', 0) + 1
    st.session_state.last_suggestion = fm.suggest_generation(index, st.session_state.person_form)


def show_person_form(engine, index, edit_handle):
    """Add/edit form with the relationship pickers"""
    texts = UI_TEXTS["form"]
    if st.session_state.get('form_handle', '') != edit_handle or 'person_form' not in st.session_state:
        load_form(index, edit_handle)
    form = st.session_state.person_form
    key = st.session_state.form_key

    col1, col2 = st.columns(2)
    with col1:
        form['display_name'] = st.text_input(texts["name"], value=form['display_name'], key=f"name_{key}")
        form['gender'] = st.radio(
            texts["gender"], list(fm.GENDER_LABELS),
            index=list(fm.GENDER_LABELS).index(form['gender']),
            format_func=fm.GENDER_LABELS.get, horizontal=True, key=f"gender_{key}")
        form['is_patrilineal'] = st.checkbox(texts["patrilineal"], value=form['is_patrilineal'], key=f"patri_{key}")
        form['father_handle'] = _select_handle(
            texts["father"], fm.father_candidates(index, form, edit_handle), form['father_handle'], f"father_{key}")
        form['mother_handle'] = _select_handle(
            texts["mother"], fm.mother_candidates(index, form, edit_handle), form['mother_handle'], f"mother_{key}")
        if not form['is_patrilineal']:
            form['spouse_handle'] = _select_handle(
                texts["spouse"], fm.spouse_candidates(index, form, edit_handle), form['spouse_handle'], f"spouse_{key}")
    with col2:
        before = form['generation']
        st.session_state.last_suggestion = fm.refresh_generation(
            index, form, st.session_state.get('last_suggestion'))
        if form['generation'] != before:
            # new picks: rebuild the widget so it shows the prefill
            st.session_state.gen_version = st.session_state.get('gen_version', 0) + 1
        form['generation'] = st.number_input(
            texts["generation"], min_value=1, step=1, value=int(form['generation']),
            key=f"gen_{key}_{st.session_state.get('gen_version', 0)}")
        form['birth_year'] = st.text_input(texts["birth_year"], value=form['birth_year'], key=f"born_{key}")
        form['is_living'] = st.checkbox(texts["living"], value=form['is_living'], key=f"living_{key}")
        if not form['is_living']:
            form['death_year'] = st.text_input(texts["death_year"], value=form['death_year'], key=f"died_{key}")
        form['is_privacy_filtered'] = st.checkbox(
            texts["privacy"], value=form['is_privacy_filtered'], key=f"privacy_{key}")
        children = dict(fm.child_candidates(index, form, edit_handle))
        form['child_handles'] = st.multiselect(
            texts["children"], list(children),
            default=[c for c in form['child_handles'] if c in children],
            format_func=children.get, key=f"children_{key}")

    if st.button(texts["save"], type="primary"):
        try:
            person = fm.save_form(engine, form, edit_handle or None)
            msg = texts["saved"] if edit_handle else texts["added"]
            st.success(msg.format(name=person['display_name']))
            load_form(engine.load_index(), person['handle'] if edit_handle else None)
        except GenealogyError as e:
            st.error(texts["error"].format(error=str(e)))


def show_delete(engine, person):
    """Delete section for the person being edited"""
    texts = UI_TEXTS["delete"]
    with st.expander(texts["title"], expanded=False):
        st.warning(texts["warning"])
        confirmed = st.checkbox(texts["confirm_checkbox"].format(name=person['display_name']),
                                key=f"confirm_delete_{person['handle']}")
        if st.button(texts["confirm_button"], disabled=not confirmed):
            try:
                engine.delete_person(person['handle'])
                st.success(texts["success"].format(name=person['display_name']))
                st.session_state.pop('person_form', None)
            except GenealogyError as e:
                st.error(texts["error"].format(error=str(e)))


def show_main_content(store, engine):
    """Display the main content area"""
    st.title(UI_TEXTS["common"]["app_title"])
    show_people_table(store)
    st.markdown("---")

    index = engine.load_index()
    mode = st.radio("Mode", UI_TEXTS["common"]["modes"], horizontal=True, label_visibility="collapsed")
    edit_handle = ''
    if mode == UI_TEXTS["common"]["modes"][1]:
        people = dbm.get_people(store)
        if not people:
            st.info(UI_TEXTS["list"]["empty"])
            return
        labels = {p['handle']: fm.candidate_label(index, p) for p in people}
        edit_handle = st.selectbox(UI_TEXTS["form"]["pick_person"], list(labels), format_func=labels.get)

    show_person_form(engine, index, edit_handle)
    if edit_handle:
        show_delete(engine, index.people[edit_handle])


# Main application
def main():
    """Main application entry point"""
    cu.require_admin()
    store = st.session_state.store
    engine = st.session_state.engine
    show_admin_sidebar(store, engine)
    show_main_content(store, engine)


if __name__ == "__main__":
    main()
