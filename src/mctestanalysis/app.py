"""
Streamlit MC Test Analysis

Interactive browser UI for exploring a multiple-choice test: upload the
answer key and the student responses, then browse item statistics, option
selection, IRT fits and download the HTML report.

Run with ``mctestanalysis app`` or ``streamlit run app.py``.
"""

import os
import sys

import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st

from mctestanalysis import plots
from mctestanalysis.config import IRT_MODELS, get_default_config
from mctestanalysis.ctt import eigen_summary
from mctestanalysis.data import load_answer_key, load_test_data
from mctestanalysis.irt import compare_models
from mctestanalysis.report import generate_report
from mctestanalysis.session import MCTestData, as_frame


def init_session_state():
    """Initialize session state with default values."""
    if "mctd" not in st.session_state:
        st.session_state.mctd = MCTestData(config=get_default_config())

    if "uploads" not in st.session_state:
        st.session_state.uploads = {}


def _upload_changed(uploads: dict, name: str, upload, *options) -> bool:
    """True when the file or its read options differ from the last load under ``name``."""
    key = None if upload is None else (upload.file_id, *options)
    if uploads.get(name) == key:
        return False
    uploads[name] = key
    return upload is not None


def _reset_results(mctd: MCTestData) -> None:
    mctd.clear_derived()
    st.session_state.pop("report", None)


def render_sidebar() -> None:
    """Upload widgets and analysis options."""
    mctd: MCTestData = st.session_state.mctd
    config = mctd.config

    st.sidebar.header("Data")
    answer_upload = st.sidebar.file_uploader("Answer key (CSV/TSV)", type=["csv", "tsv", "txt"])
    test_upload = st.sidebar.file_uploader("Test results (CSV/TSV)", type=["csv", "tsv", "txt"])
    has_student_id = st.sidebar.checkbox("First column holds student IDs", value=True)

    uploads = st.session_state.uploads
    try:
        if _upload_changed(uploads, "answer_key", answer_upload):
            answer_upload.seek(0)
            load_answer_key(mctd, answer_upload)
            _reset_results(mctd)
        if _upload_changed(uploads, "test", test_upload, has_student_id) or (
            test_upload is not None and mctd.test is None
        ):
            test_upload.seek(0)
            load_test_data(mctd, test_upload, has_student_id=has_student_id)
            _reset_results(mctd)
    except (ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        st.sidebar.error(str(e))

    st.sidebar.header("IRT")
    models = st.sidebar.multiselect(
        "Models", list(IRT_MODELS), default=config["irt"]["models"],
        format_func=str.upper,
    )
    group_fraction = st.sidebar.slider(
        "Upper/lower group share", 0.1, 0.5, config["analysis"]["group_fraction"], 0.01
    )

    if models != config["irt"]["models"] or group_fraction != config["analysis"]["group_fraction"]:
        config["irt"]["models"] = models
        config["analysis"]["group_fraction"] = group_fraction
        _reset_results(mctd)


def render_data_tab(mctd: MCTestData) -> None:
    if mctd.answer_key is not None:
        st.subheader("Answer Key")
        st.dataframe(mctd.answer_key, hide_index=True, use_container_width=True)
    if mctd.test is not None:
        st.subheader("Responses")
        st.dataframe(mctd.test, use_container_width=True)
        n_dropped = len(mctd.test) - len(mctd.test_complete)
        if n_dropped:
            st.warning(f"{n_dropped} students with missing responses are excluded from the analysis.")


def render_summary_tab(mctd: MCTestData) -> None:
    summary = mctd["test_summary"]
    alpha = mctd["alpha"]

    cols = st.columns(4)
    cols[0].metric("Students", summary["n_students"])
    cols[1].metric("Items", summary["n_items"])
    cols[2].metric("Mean score", f"{summary['mean']:.2f}")
    cols[3].metric("Cronbach's alpha", f"{alpha['alpha']:.3f}")

    st.pyplot(plots.plot_score_distribution(mctd["scores"], summary["n_items"]))
    st.dataframe(as_frame(summary), use_container_width=True)

    st.subheader("Concepts")
    st.dataframe(mctd["concept_summary"], use_container_width=True)


def render_item_tab(mctd: MCTestData) -> None:
    items = mctd["item_analysis"].join(
        [mctd["pbcc"], mctd["pbcc_modified"], mctd["alpha"]["alpha_if_deleted"]]
    )
    st.dataframe(items.round(3), use_container_width=True)
    st.pyplot(plots.plot_item_map(mctd["item_analysis"]))

    st.subheader("Item Review")
    st.dataframe(mctd["item_review"], use_container_width=True)

    st.subheader("Dimensionality")
    if "tetrachoric" not in mctd:
        if st.button("Compute tetrachoric correlations"):
            with st.spinner("Computing tetrachoric correlations..."):
                mctd.requires("tetrachoric")
    if "tetrachoric" in mctd:
        eigen = eigen_summary(mctd["tetrachoric"])
        st.pyplot(plots.plot_scree(eigen))
        st.dataframe(mctd["tetrachoric"].round(2), use_container_width=True)


def render_options_tab(mctd: MCTestData) -> None:
    options = mctd["options_selected"]
    question = st.selectbox("Question", list(mctd.answer_key["Question"]))
    title = mctd.answer_key.set_index("Question").loc[question, "Title"]
    st.caption(str(title))

    st.pyplot(plots.plot_option_selection(options, question))
    distractors = mctd["distractor_analysis"]
    st.dataframe(
        distractors[distractors["Question"] == question].set_index("option"),
        use_container_width=True,
    )


def render_irt_tab(mctd: MCTestData) -> None:
    if not mctd.config["irt"]["models"]:
        st.info("Select at least one IRT model in the sidebar.")
        return

    if "irt_models" not in mctd:
        with st.spinner("Fitting IRT models..."):
            try:
                mctd.requires("irt_models")
            except ValueError as e:
                st.error(f"IRT models could not be fitted: {e}")
                return

    fits = mctd["irt_models"]
    st.subheader("Model Comparison")
    st.dataframe(compare_models(fits).round(3), use_container_width=True)
    st.pyplot(plots.plot_test_information(fits))

    name = st.radio("Model", list(fits), format_func=str.upper, horizontal=True)
    fit = fits[name]
    if not fit.converged:
        st.warning(f"{name.upper()} estimation did not converge.")
    st.dataframe(fit.coefficients.round(3), use_container_width=True)
    st.pyplot(plots.plot_item_characteristic_curves(fit))

    item_fit = mctd["item_fit"]
    st.subheader("Item Fit")
    st.dataframe(item_fit[item_fit["model"] == name].round(3), hide_index=True, use_container_width=True)


def render_report_tab(mctd: MCTestData) -> None:
    st.write("The report collects every table and figure of this analysis in a single HTML file.")
    if st.button("Generate report"):
        with st.spinner("Generating report..."):
            st.session_state.report = generate_report(mctd)
    if "report" in st.session_state:
        st.download_button(
            "Download report",
            data=st.session_state.report,
            file_name="mctestanalysis_report.html",
            mime="text/html",
        )


def main():
    st.set_page_config(
        page_title="MC Test Analysis",
        page_icon="📊",
        layout="wide",
    )
    init_session_state()
    st.title("MC Test Analysis")

    render_sidebar()
    mctd: MCTestData = st.session_state.mctd

    tabs = st.tabs(["Data", "Summary", "Item Analysis", "Options", "IRT", "Report"])
    with tabs[0]:
        render_data_tab(mctd)

    if not mctd.is_ready:
        for tab in tabs[1:]:
            with tab:
                st.info("Upload an answer key and test results to start.")
        return
    if mctd.test_complete.empty:
        for tab in tabs[1:]:
            with tab:
                st.error("No students with complete responses, nothing to analyze.")
        return

    for tab, render in zip(
        tabs[1:],
        [render_summary_tab, render_item_tab, render_options_tab, render_irt_tab, render_report_tab],
    ):
        with tab:
            render(mctd)
    plt.close("all")


def run_app():
    """Launch the Streamlit server on this module."""
    from streamlit.web import cli as stcli

    sys.argv = ["streamlit", "run", os.path.abspath(__file__)]
    sys.exit(stcli.main())


if __name__ == "__main__":
    main()
