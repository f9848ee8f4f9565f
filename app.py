import logging
import os
from concurrent.futures import ThreadPoolExecutor

import streamlit as st

# This MUST be the first Streamlit command in the whole app
st.set_page_config(
    page_title="Style Shuffle",
    page_icon="🎨",
    layout="wide",
)

from ai_styling import StyleRequester  # noqa: E402
from core import (  # noqa: E402
    StylesheetSlot,
    apply_theme_css,
    df_raw,
    draw_filter_controls,
    filter_data,
    get_theme,
    show_charts,
    show_data_table,
)

logging.basicConfig(
    level=os.environ.get("STYLE_SHUFFLE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Per-session styling state; nothing is shared between browser sessions
if "stylesheet" not in st.session_state:
    st.session_state["stylesheet"] = StylesheetSlot()
    st.session_state["styler"] = StyleRequester(
        apply_stylesheet=st.session_state["stylesheet"].apply
    )
    st.session_state["styler_pool"] = ThreadPoolExecutor(
        max_workers=1, thread_name_prefix="ai-styling"
    )

apply_theme_css(get_theme())
st.session_state["stylesheet"].render()

st.title("Style Shuffle")

pending = st.session_state.get("styling_future")


# Polls once a second while a request is outstanding so the rest of the
# page keeps reacting to filter changes.
@st.fragment(run_every=1.0 if pending is not None else None)
def styling_panel() -> None:
    styler = st.session_state["styler"]

    prompt = st.text_area(
        "AI Styling Prompt:",
        placeholder="Example: Make this app look like a New York Times front page",
        height=100,
        key="prompt",
    )
    if st.button("Apply AI Styling", type="primary", key="apply_styling"):
        future = styler.submit(prompt, st.session_state["styler_pool"])
        if future is not None:
            st.session_state["styling_future"] = future
            st.rerun()

    future = st.session_state.get("styling_future")
    if future is not None and future.done():
        st.session_state.pop("styling_future")
        future.result()
        st.rerun()

    if styler.status:
        st.code(styler.status, language=None)

    st.markdown("#### Applied CSS:")
    st.code(styler.css, language="css")


left, right = st.columns([1, 2])

with left:
    with st.container(border=True):
        st.subheader("Data Controls")
        filters = draw_filter_controls(df_raw)
        styling_panel()

with right:
    with st.container(border=True):
        st.subheader("Data Visualization")
        df = filter_data(df_raw, filters)
        show_charts(df)
        show_data_table(df)
