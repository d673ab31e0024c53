"""
Context Utilities

This module provides utility functions for managing application context and settings.
"""
import os
from typing import Dict, Any
from dotenv import load_dotenv
import streamlit as st
import db_utils as dbm
from graph_utils import GraphEngine

# Load environment variables
load_dotenv(".env")

# ===== Application Settings (Module Level) =====
# These settings can be imported by other modules using context_utils

# General Settings
SITE_TITLE = os.getenv("APP_NAME", "Gia Pha")

# UI Settings
ITEMS_PER_PAGE = int(os.getenv("ITEMS_PER_PAGE", "50"))

# Database Settings
DB_NAME = dbm.database_name

# Actor injected when no host application supplies one
ADMIN_USER_ID = os.getenv("ADMIN_USER_ID", "")
ADMIN_ROLE = os.getenv("ADMIN_ROLE", "member")
# ===== End of Module Settings =====


def init_context() -> Dict[str, Any]:
    """
    Initialize and return a dictionary containing
    application settings

    Returns:
        Dict[str, Any]: Dictionary containing settings
    """
    default_settings = {
        'site_title': SITE_TITLE,
        'items_per_page': ITEMS_PER_PAGE,
        'db_name': DB_NAME,
        'edit_handle': None,
        'view_handle': None
    }

    return default_settings


# Function to update application context
def update_context(new_values: dict):
    if 'app_context' not in st.session_state:
        st.session_state.app_context = init_context()
    st.session_state.app_context.update(new_values)


def make_actor(user_id: str, role: str) -> Dict[str, str]:
    """The opaque actor the pages check: {'user_id', 'role'}"""
    return {'user_id': user_id or '', 'role': (role or 'member').lower()}


def is_admin(actor: Dict[str, str]) -> bool:
    return bool(actor) and actor.get('role') == 'admin'


def init_session_state():
    """Initialize session state variables"""
    if 'app_context' not in st.session_state:
        st.session_state.app_context = init_context()
    if 'actor' not in st.session_state:
        st.session_state.actor = make_actor(ADMIN_USER_ID, ADMIN_ROLE)
    if 'store' not in st.session_state:
        st.session_state.store = dbm.RecordStore(DB_NAME)
    if 'engine' not in st.session_state:
        st.session_state.engine = GraphEngine(st.session_state.store)


def require_admin():
    """Stop the page unless the session actor is an admin"""
    init_session_state()
    if not is_admin(st.session_state.actor):
        st.error("You do not have permission to manage the family register.")
        st.stop()
