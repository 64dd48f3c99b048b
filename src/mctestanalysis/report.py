"""
Standalone HTML report for a test analysis.

Tables are rendered with pandas and figures are embedded as base64 PNG
images, so the report is a single file that opens in any browser.
"""

import base64
import html
import io
import time
from typing import Any

import matplotlib.pyplot as plt
import pandas as pd
from loguru import logger

from mctestanalysis import plots
from mctestanalysis.config import merge_config
from mctestanalysis.ctt import eigen_summary
from mctestanalysis.fit import calculate_fit_statistics, expected_responses, identify_misfitting_items
from mctestanalysis.irt import compare_models
from mctestanalysis.session import MCTestData, as_frame

STYLE = """
body { font-family: sans-serif; margin: 2em auto; max-width: 1100px; color: #222; }
h1 { border-bottom: 2px solid #6A040F; padding-bottom: 0.3em; }
h2 { margin-top: 2em; color: #6A040F; }
table.dataframe { border-collapse: collapse; font-size: 0.85em; margin: 1em 0; }
table.dataframe th, table.dataframe td { border: 1px solid #ddd; padding: 4px 8px; text-align: right; }
table.dataframe th { background: #f5f5f5; }
img { max-width: 100%; }
.note { color: #666; font-size: 0.9em; }
"""


def figure_to_html(fig: plt.Figure) -> str:
    buffer = io.BytesIO()
    fig.savefig(buffer, format="png", dpi=120, bbox_inches="tight")
    plt.close(fig)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f'<img src="data:image/png;base64,{encoded}"/>'


def table_to_html(table: Any, decimals: int) -> str:
    return as_frame(table).to_html(float_format=lambda v: f"{v:.{decimals}f}", na_rep="")


class _Sections:
    def __init__(self, decimals: int, include_plots: bool):
        self.parts: list[str] = []
        self.decimals = decimals
        self.include_plots = include_plots

    def heading(self, text: str) -> None:
        self.parts.append(f"<h2>{html.escape(text)}</h2>")

    def note(self, text: str) -> None:
        self.parts.append(f'<p class="note">{html.escape(text)}</p>')

    def table(self, table: Any) -> None:
        self.parts.append(table_to_html(table, self.decimals))

    def figure(self, build, *args, **kwargs) -> None:
        if self.include_plots:
            self.parts.append(figure_to_html(build(*args, **kwargs)))


def generate_report(
    mctd: MCTestData,
    output_path: str | None = None,
    config: dict[str, Any] | None = None,
) -> str:
    """
    Build the HTML report for a session, computing missing tables on the way.

    Args:
        mctd (MCTestData): Session object with answer key and test data loaded
        output_path (str | None): If given, the report is also written to this file
        config (dict[str, Any] | None): Configuration, defaults to the session's

    Returns:
        str: The HTML document
    """
    config = merge_config(config) if config is not None else mctd.config
    options = config["report"]
    start_time = time.time()
    logger.info("Generating report...")

    mctd.requires(
        "test_summary",
        "alpha",
        "item_analysis",
        "discrimination_index",
        "pbcc",
        "pbcc_modified",
        "options_selected",
        "distractor_analysis",
        "concept_summary",
        "item_review",
    )

    out = _Sections(options["decimals"], options["include_plots"])

    out.heading("Test Summary")
    out.table(mctd["test_summary"])
    out.figure(plots.plot_score_distribution, mctd["scores"], mctd["test_summary"]["n_items"])

    out.heading("Reliability")
    alpha = mctd["alpha"]
    out.note(
        f"Cronbach's alpha {alpha['alpha']:.3f} "
        f"({alpha['confidence']:.0%} CI {alpha['ci_lower']:.3f} to {alpha['ci_upper']:.3f}), "
        f"standardised alpha {alpha['std_alpha']:.3f}."
    )
    out.table(alpha["alpha_if_deleted"])

    out.heading("Item Analysis")
    item_table = mctd["item_analysis"].join(
        [mctd["discrimination_index"], mctd["pbcc"], mctd["pbcc_modified"]]
    )
    out.table(item_table)
    out.figure(plots.plot_item_map, mctd["item_analysis"])

    out.heading("Item Review")
    out.table(mctd["item_review"])

    out.heading("Concepts")
    out.table(mctd["concept_summary"])

    out.heading("Options Selected")
    out.table(mctd["options_selected"].set_index(["Question", "option"]))
    out.heading("Distractor Analysis")
    out.note("Share of the upper and lower scoring groups choosing each option.")
    out.table(mctd["distractor_analysis"].set_index(["Question", "option"]))

    if "tetrachoric" in mctd:
        out.heading("Dimensionality")
        eigen = eigen_summary(mctd["tetrachoric"])
        out.table(eigen.set_index("component"))
        out.figure(plots.plot_scree, eigen)

    _irt_sections(mctd, out, config)

    title = html.escape(options["title"])
    document = (
        "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"utf-8\"/>\n"
        f"<title>{title}</title>\n<style>{STYLE}</style>\n</head>\n<body>\n"
        f"<h1>{title}</h1>\n" + "\n".join(out.parts) + "\n</body>\n</html>\n"
    )

    if output_path is not None:
        try:
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(document)
        except (IOError, OSError) as e:
            logger.error(f"Error writing report to {output_path}: {e}")
            raise
        logger.info(f"Saved report to {output_path}")

    logger.info(f"Report generated in {time.time() - start_time:.2f} seconds")
    return document


def _irt_sections(mctd: MCTestData, out: _Sections, config: dict[str, Any]) -> None:
    try:
        mctd.requires("irt_models", "item_fit")
    except ValueError as e:
        logger.warning(f"Skipping IRT sections: {e}")
        out.heading("Item Response Theory")
        out.note(f"IRT models could not be fitted: {e}")
        return

    fits = mctd["irt_models"]
    responses = mctd["item_score"].to_numpy(dtype=float).T

    out.heading("IRT Model Comparison")
    comparison = compare_models(fits)
    for name, fit in fits.items():
        expected = expected_responses(fit.abilities.to_numpy(), fit.coefficients)
        for key, value in calculate_fit_statistics(responses, expected).items():
            comparison.loc[name, key] = value
    out.table(comparison)
    out.figure(plots.plot_test_information, fits)

    thresholds = config["fit"]
    for name, fit in fits.items():
        out.heading(f"{name.upper()} Coefficients")
        if not fit.converged:
            out.note("Estimation did not converge; interpret with care.")
        out.table(fit.coefficients)
        out.figure(plots.plot_item_characteristic_curves, fit)

        item_fit = mctd["item_fit"]
        misfit = identify_misfitting_items(
            item_fit[item_fit["model"] == name],
            infit_threshold=thresholds["infit_threshold"],
            outfit_threshold=thresholds["outfit_threshold"],
            min_point_biserial=thresholds["min_point_biserial"],
        )
        if misfit.empty:
            out.note("No misfitting items.")
        else:
            out.note(f"{len(misfit)} misfitting items:")
            out.table(misfit.set_index("item_id"))
