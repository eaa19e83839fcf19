"""Streamlit dashboard for image traffic"""

import asyncio
from typing import Any

import asyncpg
import pandas as pd
import plotly.express as px
import streamlit as st

from hitstats import settings
from hitstats.interface import get_overview, get_traffic
from hitstats.lod_cache import ChartSession, Frame, TrafficQuery
from hitstats.models import Overview, TrafficResult


def format_number(n: float) -> str:
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return f"{n:g}"


async def fetch_traffic(query: TrafficQuery) -> TrafficResult:
    connection = await asyncpg.connect(**settings.connect_kwargs())
    try:
        return await get_traffic(connection, query.days, query.start, query.end)
    finally:
        await connection.close()


async def fetch_overview(days: float) -> Overview:
    connection = await asyncpg.connect(**settings.connect_kwargs())
    try:
        return await get_overview(connection, days)
    finally:
        await connection.close()


def _chart_session() -> ChartSession:
    if "chart_session" not in st.session_state:
        session = ChartSession(fetch_traffic, days=settings.DEFAULT_DAYS)
        st.session_state.chart_session = session

        async def initial_load() -> None:
            session.load()
            await session.wait()

        asyncio.run(initial_load())
    return st.session_state.chart_session


def _interact(session: ChartSession, action: str, *args: Any) -> None:
    # Each rerun gets its own event loop, so fetches must finish before it closes
    async def apply() -> None:
        getattr(session, action)(*args)
        await session.wait()

    asyncio.run(apply())


def _selected_window(event: Any) -> tuple[int, int] | None:
    try:
        box = event.selection.box[0]
    except (AttributeError, IndexError, KeyError):
        return None
    bounds = []
    for value in box["x"]:
        timestamp = pd.Timestamp(value)
        if timestamp.tzinfo is None:
            timestamp = timestamp.tz_localize("UTC")
        bounds.append(int(timestamp.timestamp()))
    return min(bounds), max(bounds)


def _render_chart(frame: Frame, loading: bool) -> Any:
    df = pd.DataFrame(
        {
            "time": pd.to_datetime(frame.timestamps, unit="s", utc=True),
            "hits": frame.hits,
        }
    )
    fig = px.line(
        df,
        x="time",
        y="hits",
        title=f"Traffic ({frame.granularity})",
        labels={"time": "Time", "hits": "Hits"},
    )
    fig.update_traces(line_color="#dc602e", fill="tozeroy")
    fig.update_layout(hovermode="x unified", dragmode="select")
    fig.update_xaxes(
        range=[
            pd.to_datetime(frame.window.start, unit="s", utc=True),
            pd.to_datetime(frame.window.end, unit="s", utc=True),
        ]
    )

    notes = []
    if frame.approximate:
        notes.append("showing cached approximation")
    if loading:
        notes.append("loading…")
    if notes:
        st.caption(", ".join(notes))

    return st.plotly_chart(
        fig, use_container_width=True, on_select="rerun", selection_mode="box", key="traffic"
    )


st.set_page_config(page_title="Image Traffic", page_icon="📈", layout="wide")
st.title("📈 Image Traffic")

try:
    session = _chart_session()

    choices = list(settings.DAY_CHOICES)
    index = choices.index(session.days) if session.days in choices else 0
    days = st.radio("Time range (days)", choices, index=index, horizontal=True)
    if days != session.days:
        st.session_state.pop("applied_selection", None)
        _interact(session, "load", days)

    overview = asyncio.run(fetch_overview(session.days))
    col1, col2 = st.columns(2)
    with col1:
        st.metric("Total Hits", format_number(overview.total_hits))
    with col2:
        st.metric("Unique Images", f"{overview.unique_images:,}")

    if session.frame is None:
        st.info("No traffic recorded in this range yet.")
    else:
        event = _render_chart(session.frame, session.loading)
        window = _selected_window(event)
        if window is not None and window != st.session_state.get("applied_selection"):
            st.session_state.applied_selection = window
            _interact(session, "zoom", *window)
            st.rerun()

        if st.button("Reset zoom", disabled=session.current_range is None):
            st.session_state.pop("applied_selection", None)
            _interact(session, "reset")
            st.rerun()

    st.subheader("Top Images")
    if not overview.top_images:
        st.info("No data yet")
    else:
        st.dataframe(
            pd.DataFrame(
                {
                    "Rank": range(1, len(overview.top_images) + 1),
                    "Image": [image.key for image in overview.top_images],
                    "Hits": [image.total for image in overview.top_images],
                }
            ),
            hide_index=True,
            use_container_width=True,
        )

except (OSError, asyncpg.PostgresError):
    st.error("Unable to connect to the database.")
    st.info("💡 Make sure PostgreSQL is running and migrated: `python -m hitstats.migrate`")
