# stan_solid/viz.py
"""
Newton-Raphson convergence plot.

Shows the relative residual norm of every iteration on a log axis, one
line per load increment, with the convergence tolerance as a dashed line.
"""

from pathlib import Path
from typing import Optional, Union

import matplotlib.pyplot as plt

from .solver import AnalysisResult

COLORS = {
    'residual': '#2C3E50',       # Dark blue-gray
    'tolerance': '#E74C3C',      # Coral red
    'grid': '#BDC3C7',
}


def plot_convergence(
    result: AnalysisResult,
    tolerance: Optional[float] = None,
    path: Union[str, Path, None] = None,
    title: str = "Newton-Raphson convergence",
):
    """
    Plot residual history of an AnalysisResult.

    Parameters:
    -----------
    result : AnalysisResult
        Returned by run_analysis
    tolerance : float, optional
        Drawn as a horizontal line when given
    path : str or Path, optional
        Save the figure there (PNG, 150 dpi) and close it

    Returns:
    --------
    matplotlib.figure.Figure
    """
    fig, ax = plt.subplots(figsize=(8, 5))
    for record in result.increments:
        if not record.residuals:
            continue
        iterations = range(len(record.residuals))
        # zero residuals can't be drawn on a log axis
        values = [max(r, 1e-300) for r in record.residuals]
        ax.semilogy(iterations, values, marker="o", color=COLORS['residual'],
                    alpha=0.4 + 0.6 * record.increment / max(len(result.increments), 1),
                    label=f"increment {record.increment}")

    if tolerance is not None:
        ax.axhline(tolerance, linestyle="--", color=COLORS['tolerance'], label="tolerance")

    ax.set_xlabel("Iteration")
    ax.set_ylabel("‖residual‖ / ‖F‖")
    ax.set_title(title)
    ax.grid(True, which="both", color=COLORS['grid'], linewidth=0.5)
    if result.increments:
        ax.legend(fontsize=8)
    fig.tight_layout()

    if path is not None:
        fig.savefig(path, dpi=150)
        plt.close(fig)
    return fig
