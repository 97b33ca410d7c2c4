# =============================================================================
# app.py
# Streamlit task list on top of the local-first task store
# =============================================================================
"""
Run with:
    streamlit run app.py

The sidebar sign-in only records a user id; real authentication is handled by
whatever identity provider fronts the deployment.
"""

from __future__ import annotations
import streamlit as st

from task_core.config import load_settings
from task_core.errors import ErrorContext, error_boundary
from task_core.logging import setup_logging
from task_core.services import TaskService, build_task_service

st.set_page_config(
    page_title="Tasks",
    page_icon="✅",
    layout="centered",
)


@st.cache_resource
def get_service() -> TaskService:
    """One service (store, engine, worker pool) per server process."""
    settings = load_settings()
    setup_logging(settings.log_level)
    return build_task_service(settings)


service = get_service()


# ============================================================================
# SIDEBAR - identity and sync status
# ============================================================================
with st.sidebar:
    st.header("Account")
    if service.session.is_signed_in:
        st.write(f"Signed in as **{service.session.user_id}**")
        if st.button("Sign out"):
            service.session.sign_out()
            st.rerun()
    else:
        user_id = st.text_input("User id")
        if st.button("Sign in", disabled=not user_id):
            with ErrorContext("Signing in") as ctx:
                service.session.sign_in(user_id)
            if ctx.error is None:
                st.session_state["pulled"] = False
                st.rerun()

    st.divider()
    status = service.get_status()
    st.caption(f"Pending sync: {status['pending_count']}")
    st.caption(f"Last pull: {status['last_success'] or 'never'}")

if not service.session.is_signed_in:
    st.info("Sign in to see your tasks.")
    st.stop()

# Pull once after sign-in / app start, and on demand
if not st.session_state.get("pulled", False):
    service.pull_sync()
    st.session_state["pulled"] = True

st.title("Tasks")

if st.button("🔄 Refresh"):
    result = service.pull_sync()
    if result.ok:
        st.toast(f"Pulled {result.fetched} tasks ({result.changed} changed)")
    else:
        st.toast(f"Pull {result.status.value.replace('_', ' ')}")


# ============================================================================
# ADD TASK
# ============================================================================
with st.form("add_task", clear_on_submit=True):
    title = st.text_input("Title")
    description = st.text_area("Description")
    if st.form_submit_button("Add task"):
        with ErrorContext("Adding task") as ctx:
            service.create_task(title, description or None)
        if ctx.error is None:
            st.rerun()


# ============================================================================
# TASK LIST
# ============================================================================
@error_boundary(default_return=[], error_message="Could not load tasks")
def load_tasks():
    return service.list_tasks()


for task in load_tasks():
    done_col, body_col, sync_col, delete_col = st.columns([1, 8, 1, 1])

    with done_col:
        checked = st.checkbox(
            "done",
            value=task.is_completed,
            key=f"done_{task.id}",
            label_visibility="collapsed",
        )
        if checked != task.is_completed:
            with ErrorContext("Updating task") as ctx:
                service.toggle_complete(task.id)
            if ctx.error is None:
                st.rerun()

    with body_col:
        label = f"~~{task.title}~~" if task.is_completed else task.title
        with st.expander(label):
            with st.form(f"edit_{task.id}"):
                new_title = st.text_input("Title", value=task.title)
                new_description = st.text_area("Description", value=task.description or "")
                if st.form_submit_button("Save"):
                    with ErrorContext("Saving task") as ctx:
                        service.update_task(task.id, new_title, new_description or None)
                    if ctx.error is None:
                        st.rerun()

    with sync_col:
        st.write("☁️" if task.synced else "⏳")

    with delete_col:
        if st.button("🗑️", key=f"delete_{task.id}"):
            with ErrorContext("Deleting task") as ctx:
                service.delete_task(task.id)
            if ctx.error is None:
                st.rerun()
