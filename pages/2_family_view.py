"""
Family View Page

Shows one person with their parents, spouses and children as a
graph, followed by the same people as lists.
"""

import streamlit as st
import db_utils as dbm
import context_utils as cu
import tree_utils as tu
from err_utils import GenealogyError

# Constants for UI text
UI_TEXTS = {
    "title": "Family View",
    "pick_person": "Person",
    "parents": "Parents",
    "family": "Family with {partner}",
    "no_partner": "Family (partner unknown)",
    "children": "Children",
    "none": "None recorded",
    "empty": "No people yet"
}


def person_line(person):
    line = f"**{person['display_name']}** (Gen {person['generation']})"
    if person.get('birth_year'):
        line += f" · *{person['birth_year']}"
    if person.get('death_year'):
        line += f" · †{person['death_year']}"
    return line


def show_family_lists(details):
    st.subheader(UI_TEXTS["parents"])
    if details['parents']:
        for parent in details['parents']:
            st.markdown(f"- {person_line(parent)}")
    else:
        st.caption(UI_TEXTS["none"])

    for family in details['families']:
        partner = family['partner']
        st.subheader(UI_TEXTS["family"].format(partner=partner['display_name']) if partner
                     else UI_TEXTS["no_partner"])
        st.markdown(f"_{UI_TEXTS['children']}_")
        if family['children']:
            for child in family['children']:
                st.markdown(f"- {person_line(child)}")
        else:
            st.caption(UI_TEXTS["none"])


def main():
    cu.require_admin()
    store = st.session_state.store
    st.title(UI_TEXTS["title"])

    people = dbm.get_people(store)
    if not people:
        st.info(UI_TEXTS["empty"])
        return
    labels = {p['handle']: f"Gen {p['generation']} · {p['display_name']}" for p in people}
    handles = list(labels)
    current = st.session_state.app_context.get('view_handle')
    handle = st.selectbox(UI_TEXTS["pick_person"], handles,
                          index=handles.index(current) if current in handles else 0,
                          format_func=labels.get)
    cu.update_context({'view_handle': handle})

    try:
        details = dbm.get_family_details(store, handle)
    except GenealogyError as e:
        st.error(str(e))
        return

    st.graphviz_chart(tu.build_family_graph(details), use_container_width=True)
    show_family_lists(details)


main()
