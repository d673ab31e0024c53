"""
Profile Page

Edit the biographical and contact details of one person. Parents,
spouses and children are managed on the Manage People page.
"""

import streamlit as st
import db_utils as dbm
import context_utils as cu
import profile_utils as pu
import form_utils as fm
import funcUtils as fu
from err_utils import GenealogyError

# Constants for UI text
UI_TEXTS = {
    "title": "Edit Profile",
    "pick_person": "Person",
    "sections": {
        "basic": "Basic information",
        "life": "Birth & death",
        "contact": "Contact",
        "work": "Work & education",
        "notes": "Notes"
    },
    "fields": {
        "display_name": "Full Name*",
        "nick_name": "Nickname",
        "gender": "Gender",
        "is_living": "Living",
        "is_privacy_filtered": "Hide private details",
        "birth_year": "Birth year",
        "birth_date": "Birth date",
        "birth_place": "Birth place",
        "death_year": "Death year",
        "death_date": "Death date",
        "death_place": "Death place",
        "phone": "Phone",
        "email": "Email",
        "zalo": "Zalo",
        "facebook": "Facebook",
        "current_address": "Current address",
        "hometown": "Hometown",
        "occupation": "Occupation",
        "company": "Company",
        "education": "Education",
        "notes": "Notes"
    },
    "save": "Save profile",
    "success": "Profile saved",
    "error": "Could not save: {error}",
    "empty": "No people yet",
    "updated": "Last updated: {when}"
}


def text_value(person, field):
    value = person.get(field)
    return '' if value is None else str(value)


def show_profile_form(store, person):
    """Profile form for one person"""
    f = UI_TEXTS["fields"]
    sections = UI_TEXTS["sections"]
    handle = person['handle']

    with st.form(f"profile_{handle}"):
        st.subheader(sections["basic"])
        col1, col2 = st.columns(2)
        with col1:
            display_name = st.text_input(f["display_name"], text_value(person, 'display_name'))
            nick_name = st.text_input(f["nick_name"], text_value(person, 'nick_name'))
        with col2:
            genders = list(fm.GENDER_LABELS)
            gender = st.radio(f["gender"], genders, index=genders.index(person['gender']),
                              format_func=fm.GENDER_LABELS.get, horizontal=True)
            is_living = st.checkbox(f["is_living"], value=bool(person['is_living']))
            is_privacy_filtered = st.checkbox(f["is_privacy_filtered"], value=bool(person['is_privacy_filtered']))

        st.subheader(sections["life"])
        col1, col2 = st.columns(2)
        with col1:
            birth_year = st.text_input(f["birth_year"], text_value(person, 'birth_year'))
            birth_date = st.text_input(f["birth_date"], text_value(person, 'birth_date'))
            birth_place = st.text_input(f["birth_place"], text_value(person, 'birth_place'))
        with col2:
            death_year = st.text_input(f["death_year"], text_value(person, 'death_year'))
            death_date = st.text_input(f["death_date"], text_value(person, 'death_date'))
            death_place = st.text_input(f["death_place"], text_value(person, 'death_place'))

        st.subheader(sections["contact"])
        col1, col2 = st.columns(2)
        with col1:
            phone = st.text_input(f["phone"], text_value(person, 'phone'))
            email = st.text_input(f["email"], text_value(person, 'email'))
            zalo = st.text_input(f["zalo"], text_value(person, 'zalo'))
        with col2:
            facebook = st.text_input(f["facebook"], text_value(person, 'facebook'))
            current_address = st.text_input(f["current_address"], text_value(person, 'current_address'))
            hometown = st.text_input(f["hometown"], text_value(person, 'hometown'))

        st.subheader(sections["work"])
        col1, col2, col3 = st.columns(3)
        with col1:
            occupation = st.text_input(f["occupation"], text_value(person, 'occupation'))
        with col2:
            company = st.text_input(f["company"], text_value(person, 'company'))
        with col3:
            education = st.text_input(f["education"], text_value(person, 'education'))

        st.subheader(sections["notes"])
        notes = st.text_area(f["notes"], text_value(person, 'notes'))

        if st.form_submit_button(UI_TEXTS["save"], type="primary"):
            fields = {
                'display_name': display_name, 'nick_name': nick_name, 'gender': gender,
                'is_living': is_living, 'is_privacy_filtered': is_privacy_filtered,
                'birth_year': birth_year, 'birth_date': birth_date, 'birth_place': birth_place,
                'death_year': death_year, 'death_date': death_date, 'death_place': death_place,
                'phone': phone, 'email': email, 'zalo': zalo, 'facebook': facebook,
                'current_address': current_address, 'hometown': hometown,
                'occupation': occupation, 'company': company, 'education': education,
                'notes': notes
            }
            try:
                pu.update_profile(store, handle, fields)
                st.success(UI_TEXTS["success"])
            except GenealogyError as e:
                st.error(UI_TEXTS["error"].format(error=str(e)))


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
    current = st.session_state.app_context.get('edit_handle')
    handle = st.selectbox(UI_TEXTS["pick_person"], handles,
                          index=handles.index(current) if current in handles else 0,
                          format_func=labels.get)
    cu.update_context({'edit_handle': handle})
    person = dbm.get_person(store, handle)
    st.caption(UI_TEXTS["updated"].format(when=fu.format_timestamp(person.get('updated_at'))))
    show_profile_form(store, person)


main()
