"""Streamlit desk finder for the Workspace Desk Matcher API."""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

import pandas as pd
import requests
import streamlit as st

# ==========================================
# Configuration & Constants
# ==========================================
# Point this to your local FastAPI server
API_BASE_URL = os.getenv("DESKMATCH_API_BASE_URL", "http://127.0.0.1:8000")
QUERY_MAX_LENGTH = 200

st.set_page_config(
    page_title="Desk Finder",
    page_icon="🪑",
    layout="wide",
)


# ==========================================
# API Helper Functions
# ==========================================
def fetch_matches(query: str, employee_id: str) -> Optional[Dict[str, Any]]:
    """Calls the backend desk matching endpoint."""
    payload: Dict[str, Any] = {"query": query}
    if employee_id.strip():
        payload["employeeId"] = employee_id.strip()
    try:
        response = requests.post(
            f"{API_BASE_URL}/api/match",
            json=payload,
            timeout=60,
        )
    except requests.exceptions.RequestException as e:
        st.error(f"Backend connection failed: {e}")
        return None

    body = response.json() if response.headers.get("content-type", "").startswith("application/json") else {}
    if response.status_code != 200:
        st.error(body.get("error") or f"Request failed with status {response.status_code}")
        return None
    return body


def _desks_frame(desks: list[Dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(desks)
    df.insert(0, "rank", range(1, len(df) + 1))
    df["features"] = df["features"].map(", ".join)
    df["last_used"] = pd.to_datetime(df["last_used"], utc=True, errors="coerce")
    return df[
        ["rank", "id", "type", "zone", "floor", "features", "last_used", "location_description"]
    ]


# ==========================================
# UI Page
# ==========================================
def render_finder_page() -> None:
    st.header("🪑 Find a Desk")
    st.markdown("Describe the desk you need. Stored preferences fill in anything you leave out.")

    col1, col2 = st.columns([3, 1])
    with col1:
        query = st.text_input(
            "What are you looking for?",
            value="standing desk near marketing on 3rd floor",
            max_chars=QUERY_MAX_LENGTH,
        )
    with col2:
        employee_id = st.text_input("Employee ID (optional)", value="")

    if st.button("Find Desks", type="primary"):
        if not query.strip():
            st.warning("Please enter a request first.")
            return
        with st.spinner("Matching desks against policies and live occupancy..."):
            result = fetch_matches(query, employee_id)

        if result:
            desks = result.get("data", [])
            st.subheader(result.get("message", ""))
            if desks:
                st.dataframe(_desks_frame(desks), use_container_width=True)
            else:
                st.info("Try relaxing equipment or location requirements.")


def main() -> None:
    st.sidebar.title("Workspace Desk Matcher")
    st.sidebar.markdown("---")
    st.sidebar.caption(f"API: {API_BASE_URL}")
    st.sidebar.caption("Ranking: adjacency, equipment, least recently used, utilization")
    render_finder_page()


if __name__ == "__main__":
    main()
