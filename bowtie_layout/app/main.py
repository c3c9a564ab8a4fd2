import math
from pathlib import Path

import streamlit as st

from bowtie_layout.app.utils import build_view, edges_frame, issues_frame, load_diagrams, nodes_frame
from bowtie_layout.validation.diagram_validator import validate_bowtie_diagram

# Configuration
st.set_page_config(page_title="Bowtie Diagram Layout", layout="wide")
BASE_DIR = Path(__file__).resolve().parent.parent.parent
SAMPLE_DIR = BASE_DIR / "data" / "sample"


def main():
    st.title("🛡️ Bowtie Diagram Layout")

    with st.spinner("Loading diagrams..."):
        diagrams = load_diagrams(SAMPLE_DIR)

    if not diagrams:
        st.warning(f"No diagrams found in {SAMPLE_DIR}")
        return
    st.sidebar.success(f"Loaded {len(diagrams)} diagrams")

    name = st.sidebar.selectbox("Diagram", list(diagrams))
    diagram = diagrams[name]
    show_all = st.sidebar.checkbox("Show all levels", value=True)
    view_level = math.inf if show_all else st.sidebar.slider("View level", 0, 5, 0)

    view = build_view(diagram, view_level)
    if view.status == "error":
        st.error(view.error)
        return

    controller = view.controller
    controller.set_filter_text(st.sidebar.text_input("Search", placeholder="Threats, barriers, owners..."))
    controller.set_severity_filter(st.sidebar.selectbox(
        "Severity focus", ["all", "low", "medium", "high", "critical"]
    ))

    focusable = [n for n in controller.raw_nodes if n.type in ("threat", "consequence")]
    labels = {n.id: n.data.label for n in focusable}
    focus_id = st.sidebar.selectbox(
        "Focus", [None, *labels], format_func=lambda k: "Overview" if k is None else labels[k]
    )
    if focus_id:
        controller.double_activate(focus_id)
        st.caption(f"Focused on {controller.focus_label}")

    graph = view.render()
    nodes = nodes_frame(graph)

    col1, col2, col3 = st.columns(3)
    col1.metric("Nodes", len(graph.nodes))
    col2.metric("Edges", len(graph.edges))
    col3.metric("Highlighted", int(nodes["highlighted"].sum()) if not nodes.empty else 0)

    st.divider()
    if not nodes.empty:
        st.scatter_chart(nodes.assign(y=-nodes["y"]), x="x", y="y", color="type")
    st.dataframe(nodes, use_container_width=True)
    with st.expander("Edges"):
        st.dataframe(edges_frame(graph), use_container_width=True)

    st.subheader("Validation")
    issues = validate_bowtie_diagram(diagram)
    if issues:
        st.dataframe(issues_frame(issues), use_container_width=True)
    else:
        st.success("No validation issues")


if __name__ == "__main__":
    main()
