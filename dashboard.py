import datetime
import os

import pandas as pd
import streamlit as st
from dotenv import load_dotenv

from imam_roster.client import BookingSelection, RosterApiError, RosterClient
from imam_roster.core.config import settings
from imam_roster.services.calendar_service import generate_days
from imam_roster.views import build_rows

load_dotenv()

API_URL = os.getenv("ROSTER_API_URL", "http://localhost:8000")

# Page Config
st.set_page_config(
    page_title="Jadwal Imam",
    page_icon="🕌",
    layout="wide"
)

st.title("Jadwal Imam Ramadhan")

# One client (and its cache) per browser session. The admin gets its own so
# access codes never land in the public cache.
if "client" not in st.session_state:
    st.session_state.client = RosterClient(API_URL)
if "admin_client" not in st.session_state:
    st.session_state.admin_client = RosterClient(API_URL)
client: RosterClient = st.session_state.client
admin_client: RosterClient = st.session_state.admin_client

if st.button("Refresh"):
    client.cache.clear()
    admin_client.cache.clear()
    st.rerun()

def to_frame(rows):
    df = pd.DataFrame(rows)
    if df.empty:
        return df
    return df.rename(columns={
        "hijri": "Hijri",
        "gregorian": "Date",
        "weekday": "Day",
        "imam": "Imam",
        "status": "Status",
        "removable": "Removable",
    }).drop(columns=["date_key", "selectable"], errors="ignore")

def flash(kind, message):
    st.session_state.flash = (kind, message)

def show_flash():
    if "flash" in st.session_state:
        kind, message = st.session_state.pop("flash")
        getattr(st, kind)(message)

def admin_wrote():
    # Other tabs read through their own cache
    client.cache.clear()

# --- Imam tab callbacks (run before the rerun, so widget state may be reset here) ---

def sync_picks():
    selection: BookingSelection = st.session_state.selection
    refused = selection.sync(st.session_state.picks)
    if refused:
        flash("warning", refused[0])
    st.session_state.picks = list(selection.pending)

def save_picks():
    selection: BookingSelection = st.session_state.selection
    try:
        result = selection.save()
        flash("success", f"Bookings saved successfully! {result['bookingsAdded']} day(s) added.")
    except RosterApiError as e:
        flash("error", e.message)
    st.session_state.picks = list(selection.pending)

def imam_logout():
    del st.session_state.selection
    st.session_state.pop("picks", None)

try:
    days = list(generate_days(client.get_start_date()))
    bookings = client.get_bookings()
    imams = client.get_imams()
except RosterApiError as e:
    st.error(f"Failed to load schedule: {e.message}")
    st.stop()

show_flash()
public_tab, imam_tab, admin_tab = st.tabs(["Schedule", "Imam", "Admin"])

with public_tab:
    if not days:
        st.info("Schedule not available yet.")
    else:
        col1, col2 = st.columns(2)
        col1.metric("Days assigned", f"{len(bookings)} / {len(days)}")
        col2.metric("Imams", len(imams))
        st.dataframe(to_frame(build_rows(days, bookings, imams, audience="public")), use_container_width=True)

with imam_tab:
    if "selection" not in st.session_state:
        code = st.text_input("Access code", type="password")
        if st.button("Enter") and code:
            try:
                imam = client.verify_access_code(code.strip())
                st.session_state.selection = BookingSelection(client, imam)
                st.session_state.picks = []
                st.rerun()
            except RosterApiError as e:
                st.error(e.message)
    elif not days:
        st.warning("Calendar not configured yet. Please contact administrator.")
    else:
        selection: BookingSelection = st.session_state.selection
        st.subheader(f"Assalamu'alaikum, {selection.imam['name']}")
        st.caption(f"{selection.total()} of {selection.quota} days chosen")

        rows = build_rows(
            days, bookings, imams, audience="imam",
            current_imam_id=selection.imam["id"], selected=selection.pending,
        )
        choices = [row["date_key"] for row in rows if row["status"] in ("available", "selected")]
        # A picked day someone else took meanwhile is no longer offered
        st.session_state.picks = [key for key in st.session_state.get("picks", []) if key in choices]
        selection.pending = [key for key in selection.pending if key in choices]
        st.multiselect("Pick days", choices, key="picks", on_change=sync_picks)
        st.dataframe(to_frame(rows), use_container_width=True)

        col1, col2 = st.columns(2)
        col1.button("Save bookings", disabled=not selection.pending, on_click=save_picks)
        col2.button("Log out", on_click=imam_logout)

with admin_tab:
    if not admin_client.admin_token:
        with st.form("admin_login"):
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Log in"):
                try:
                    admin_client.admin_login(username.strip(), password)
                    st.rerun()
                except RosterApiError as e:
                    st.error(e.message)
    else:
        try:
            start_date = admin_client.get_start_date()
            admin_imams = admin_client.get_imams()
            admin_bookings = admin_client.get_bookings()
        except RosterApiError as e:
            # A 401 already dropped the token; the next run shows the login form
            st.error(e.message)
            st.stop()

        if st.button("Log out", key="admin_logout"):
            admin_client.admin_logout()
            st.rerun()

        st.subheader("Ramadhan start date")
        current = datetime.date.fromisoformat(start_date) if start_date else datetime.date.today()
        new_start = st.date_input("First day of Ramadhan", value=current)
        if st.button("Save date"):
            try:
                admin_client.save_start_date(new_start.isoformat())
                admin_wrote()
                flash("success", "Ramadhan start date saved successfully!")
                st.rerun()
            except RosterApiError as e:
                st.error(e.message)

        st.subheader("Imams")
        with st.form("add_imam", clear_on_submit=True):
            name = st.text_input("Name")
            quota = st.number_input(
                "Quota", min_value=settings.MIN_QUOTA, max_value=settings.MAX_QUOTA,
                value=settings.DEFAULT_QUOTA, step=1,
            )
            if st.form_submit_button("Add imam"):
                try:
                    imam = admin_client.create_imam(name, int(quota))
                    admin_wrote()
                    flash("success", f"Imam added! Access code: {imam['accessCode']}")
                    st.rerun()
                except RosterApiError as e:
                    st.error(e.message)

        if not admin_imams:
            st.info("No imams yet.")
        else:
            st.dataframe(
                pd.DataFrame(admin_imams)[["name", "accessCode", "quota", "booked"]],
                use_container_width=True,
                column_config={
                    "name": "Name",
                    "accessCode": "Access code",
                    "quota": "Quota",
                    "booked": "Booked",
                },
            )
            by_label = {f"{imam['name']} ({imam['booked']}/{imam['quota']})": imam for imam in admin_imams}
            picked = by_label[st.selectbox("Imam", list(by_label))]
            col1, col2, col3 = st.columns(3)
            new_quota = col1.number_input(
                "New quota", min_value=settings.MIN_QUOTA, max_value=settings.MAX_QUOTA,
                value=int(picked["quota"]), step=1,
            )
            if col2.button("Update quota"):
                try:
                    admin_client.update_imam(picked["id"], quota=int(new_quota))
                    admin_wrote()
                    flash("success", "Quota updated.")
                    st.rerun()
                except RosterApiError as e:
                    st.error(e.message)
            if col3.button("Delete imam"):
                try:
                    admin_client.delete_imam(picked["id"])
                    admin_wrote()
                    flash("success", f"{picked['name']} and their bookings were removed.")
                    st.rerun()
                except RosterApiError as e:
                    st.error(e.message)

        st.subheader("Calendar")
        admin_days = list(generate_days(start_date))
        if not admin_days:
            st.info("Set the start date to see the calendar.")
        else:
            rows = build_rows(admin_days, admin_bookings, admin_imams, audience="admin")
            st.dataframe(to_frame(rows), use_container_width=True)
            removable = [row["date_key"] for row in rows if row["removable"]]
            if removable:
                day = st.selectbox("Booked day", removable)
                if st.button("Free this day"):
                    try:
                        admin_client.delete_booking(day)
                        admin_wrote()
                        flash("success", f"{day} is available again.")
                        st.rerun()
                    except RosterApiError as e:
                        st.error(e.message)

# Footer
st.markdown("---")
st.caption(f"Imam Roster • {API_URL}")
