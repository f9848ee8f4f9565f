import math
from dataclasses import dataclass
from pathlib import Path

import altair as alt
import pandas as pd
import streamlit as st

# ------------------------------
# DATA PATH & FILTER SETTINGS
# ------------------------------
DATA_PATH = Path(__file__).resolve().parent / "data" / "mpg.csv"

# Sentinel meaning "do not constrain on this field"
ALL = "All"

PAGE_SIZE = 10

# FilterState field -> (dataset column, dropdown label)
FILTER_FIELDS = {
    "manufacturer": ("manufacturer", "Manufacturer:"),
    "cylinders": ("cyl", "Number of Cylinders:"),
    "transmission": ("trans", "Transmission:"),
}

# Columns the filters, charts and tooltips depend on
REQUIRED_COLUMNS = ["manufacturer", "model", "cyl", "trans", "displ", "hwy", "class"]


# ------------------------------
# DATA LOADING
# ------------------------------
@st.cache_data
def load_data(path: Path) -> pd.DataFrame:
    df = pd.read_csv(path)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Expected columns not found in CSV: {', '.join(missing)}")
    df["cyl"] = pd.to_numeric(df["cyl"], errors="raise").astype(int)
    df["displ"] = pd.to_numeric(df["displ"], errors="coerce")
    df["hwy"] = pd.to_numeric(df["hwy"], errors="coerce")

    return df


df_raw = load_data(DATA_PATH)


# ------------------------------
# THEME (LIGHT ONLY) + CSS
# ------------------------------
def get_theme() -> dict:
    """Base colors, applied before any AI-generated stylesheet."""
    return {
        "APP_BG": "#f3f4f6",
        "TEXT_COLOR": "#111827",
        "CARD_BG": "#ffffff",
        "BORDER": "#e5e7eb",
    }


def apply_theme_css(theme: dict) -> None:
    st.markdown(
        f"""
        <style>
        .stApp {{
            background-color: {theme["APP_BG"]};
            color: {theme["TEXT_COLOR"]};
            font-family: "Inter", system-ui, -apple-system, BlinkMacSystemFont,
                         "Segoe UI", sans-serif;
        }}
        div[data-testid="stVerticalBlockBorderWrapper"] {{
            background: {theme["CARD_BG"]};
            border-color: {theme["BORDER"]};
            border-radius: 12px;
        }}
        </style>
        """,
        unsafe_allow_html=True,
    )


def inject_stylesheet(css: str, target=None) -> None:
    """Write ``css`` as the whole content of the reserved ai-styles element."""
    target = st if target is None else target
    target.markdown(
        f'<style id="ai-styles">{css}</style>',
        unsafe_allow_html=True,
    )


class StylesheetSlot:
    """Holds the text of the reserved <style id="ai-styles"> element."""

    def __init__(self):
        self.text = ""

    def apply(self, css: str) -> None:
        # replace, never append
        self.text = css

    def render(self, target=None) -> None:
        inject_stylesheet(self.text, target)


# ------------------------------
# FILTERS
# ------------------------------
@dataclass(frozen=True)
class FilterState:
    manufacturer: str = ALL
    cylinders: str = ALL
    transmission: str = ALL


def filter_choices(df: pd.DataFrame, column: str) -> list:
    """The sentinel followed by the distinct values of ``column`` as strings."""
    values = df[column].dropna().astype(str).unique().tolist()
    return [ALL] + values


def filter_data(df: pd.DataFrame, filters: FilterState) -> pd.DataFrame:
    """AND-combine an equality filter per field that is not "All"."""
    mask = pd.Series(True, index=df.index)
    for field, (column, _) in FILTER_FIELDS.items():
        value = getattr(filters, field)
        if value != ALL:
            mask &= df[column].astype(str) == str(value)
    return df[mask].copy()


def reset_filters() -> None:
    for key in list(st.session_state.keys()):
        if key.startswith("filter_") or key == "page":
            st.session_state.pop(key)


def draw_filter_controls(df: pd.DataFrame) -> FilterState:
    """Draw the three dropdowns and return the current selection."""
    st.button("Reset Filters", on_click=reset_filters, key="reset_filters")

    selected = {}
    for field, (column, label) in FILTER_FIELDS.items():
        selected[field] = st.selectbox(
            label,
            filter_choices(df, column),
            key=f"filter_{field}",
        )
    return FilterState(**selected)


# ------------------------------
# AGGREGATION
# ------------------------------
def aggregate_by_class(df: pd.DataFrame) -> pd.DataFrame:
    """Mean highway MPG and row count per class, ascending by mean."""
    if df.empty:
        return pd.DataFrame(
            {
                "class": pd.Series(dtype=str),
                "avg_hwy": pd.Series(dtype=float),
                "count": pd.Series(dtype=int),
            }
        )

    agg = (
        df.groupby("class")
        .agg(avg_hwy=("hwy", "mean"), count=("hwy", "size"))
        .reset_index()
    )
    agg = agg[agg["count"] > 0]
    return agg.sort_values("avg_hwy", kind="stable").reset_index(drop=True)


# ------------------------------
# CHARTS
# ------------------------------
def scatter_chart(df: pd.DataFrame) -> alt.Chart:
    return (
        alt.Chart(df)
        .mark_circle(size=80, opacity=0.7)
        .encode(
            x=alt.X("displ:Q", title="Engine Displacement (L)"),
            y=alt.Y("hwy:Q", title="Highway MPG"),
            color=alt.Color("class:N", title="Vehicle Class"),
            tooltip=[
                alt.Tooltip("manufacturer:N"),
                alt.Tooltip("model:N"),
                alt.Tooltip("displ:Q", title="Displacement (L)"),
                alt.Tooltip("hwy:Q", title="Highway MPG"),
                alt.Tooltip("class:N"),
            ],
        )
        .properties(title="Highway MPG vs. Engine Displacement")
    )


def bar_chart(agg: pd.DataFrame) -> alt.Chart:
    order = agg["class"].tolist()
    return (
        alt.Chart(agg)
        .mark_bar()
        .encode(
            x=alt.X("class:N", sort=order, title="Vehicle Class"),
            y=alt.Y("avg_hwy:Q", title="Average Highway MPG"),
            color=alt.Color("class:N", legend=None),
            tooltip=[
                alt.Tooltip("class:N", title="Vehicle Class"),
                alt.Tooltip("avg_hwy:Q", format=".1f", title="Average Highway MPG"),
                alt.Tooltip("count:Q", title="Vehicles"),
            ],
        )
        .properties(title="Average Highway MPG by Vehicle Class")
    )


# ------------------------------
# TABLE PAGINATION
# ------------------------------
def page_count(n_rows: int, page_size: int = PAGE_SIZE) -> int:
    return max(1, math.ceil(n_rows / page_size))


def paginate(df: pd.DataFrame, page: int, page_size: int = PAGE_SIZE) -> pd.DataFrame:
    """Rows of 1-based ``page``; out-of-range pages clamp to the nearest page."""
    page = min(max(1, int(page)), page_count(len(df), page_size))
    start = (page - 1) * page_size
    return df.iloc[start : start + page_size]


# ------------------------------
# PAGE RENDERERS
# ------------------------------
def show_charts(df: pd.DataFrame) -> None:
    if df.empty:
        st.info("No data for the current filter selection.")

    c1, c2 = st.columns(2)
    with c1:
        with st.container(border=True):
            st.markdown("#### Scatter Plot")
            st.altair_chart(scatter_chart(df), width="stretch")
    with c2:
        with st.container(border=True):
            st.markdown("#### Bar Chart")
            st.altair_chart(bar_chart(aggregate_by_class(df)), width="stretch")


def show_data_table(df: pd.DataFrame) -> None:
    with st.container(border=True):
        st.markdown("#### Data Table")

        n_pages = page_count(len(df))
        # filters may have shrunk the table below the remembered page
        if st.session_state.get("page", 1) > n_pages:
            st.session_state["page"] = n_pages

        st.dataframe(
            paginate(df, st.session_state.get("page", 1)),
            width="stretch",
            hide_index=True,
        )

        left, right = st.columns([3, 1])
        with left:
            page = st.number_input(
                "Page",
                min_value=1,
                max_value=n_pages,
                step=1,
                key="page",
            )
            first = (page - 1) * PAGE_SIZE + 1 if len(df) else 0
            last = min(page * PAGE_SIZE, len(df))
            st.caption(f"Showing {first} to {last} of {len(df)} entries (page {page} of {n_pages})")
        with right:
            st.download_button(
                "Download Filtered CSV",
                df.to_csv(index=False).encode("utf-8"),
                "filtered_mpg.csv",
                "text/csv",
            )
