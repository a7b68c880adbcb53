"""
Visualization functions for eye tracking data.
"""
import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from typing import List, Optional
import seaborn as sns
from pathlib import Path

from gaze_analysis.clustering import NOISE


def plot_clusters(points: pd.DataFrame, labels: np.ndarray,
                  fig: Optional[Figure] = None) -> Figure:
    """
    Scatter plot of gaze points coloured by fixation cluster.

    Parameters:
    -----------
    points : pd.DataFrame
        Filtered gaze points with 'x' and 'y' columns
    labels : np.ndarray
        Cluster id per point, NOISE for noise
    fig : Optional[Figure], optional
        Matplotlib figure to plot on, by default None

    Returns:
    --------
    Figure
        Matplotlib figure with the plot
    """
    if fig is None:
        fig = plt.figure(figsize=(10, 8))

    ax = fig.add_subplot(111)
    labels = np.asarray(labels)

    if len(points) == 0:
        ax.text(0.5, 0.5, 'No valid gaze points', ha='center', va='center')
        ax.axis('off')
        return fig

    noise = labels == NOISE
    ax.scatter(points['x'][noise], points['y'][noise], s=4, color='grey', alpha=0.4, label='Noise')
    if (~noise).any():
        sc = ax.scatter(points['x'][~noise], points['y'][~noise], s=6, c=labels[~noise], cmap='tab20')
        plt.colorbar(sc, ax=ax, label='Cluster')

    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_title('Fixation Clusters')
    ax.legend(loc='upper right')

    return fig


def plot_scanpath(scanpath: pd.DataFrame, fig: Optional[Figure] = None,
                  show_clusters: bool = True) -> Figure:
    """
    Plot scanpath trajectory.

    Parameters:
    -----------
    scanpath : pd.DataFrame
        Ordered points with 'x' and 'y' columns and an optional 'cluster' column
    fig : Optional[Figure], optional
        Matplotlib figure to plot on, by default None
    show_clusters : bool, optional
        Whether to mark clustered points, by default True

    Returns:
    --------
    Figure
        Matplotlib figure with the scanpath
    """
    if fig is None:
        fig = plt.figure(figsize=(12, 8))

    ax = fig.add_subplot(111)

    if not scanpath.empty:
        ax.plot(scanpath['x'], scanpath['y'], '-', alpha=0.5, linewidth=1, color='blue')
        ax.scatter(scanpath['x'].iloc[[0]], scanpath['y'].iloc[[0]], color='green', s=40, label='Start')
        ax.scatter(scanpath['x'].iloc[[-1]], scanpath['y'].iloc[[-1]], color='black', s=40, label='End')

        if show_clusters and 'cluster' in scanpath.columns:
            fixations = scanpath[scanpath['cluster'] != NOISE]
            if not fixations.empty:
                ax.scatter(fixations['x'], fixations['y'], s=10, alpha=0.6, color='red', label='Fixation')
        ax.legend(loc='upper right')

    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_title('Scanpath Trajectory')

    return fig


def plot_entropy_over_time(series: pd.DataFrame, sample_rate: Optional[float] = None) -> Figure:
    """Line plot of windowed AOI entropy; x in seconds when sample_rate is given."""

    fig = plt.figure(figsize=(10, 4))
    ax = fig.add_subplot(111)

    if series.empty:
        ax.text(0.5, 0.5, 'Sequence shorter than one window', ha='center', va='center')
        ax.axis('off')
        return fig

    x = series['window_start']
    xlabel = 'Window start (sample)'
    if sample_rate:
        x = x / sample_rate
        xlabel = 'Window start (s)'
    ax.plot(x, series['entropy'], marker='o')
    ax.set_xlabel(xlabel)
    ax.set_ylabel('Entropy (bits)')
    ax.set_title('AOI Entropy over Time')
    fig.tight_layout()

    return fig


def plot_transition_matrix(matrix: pd.DataFrame) -> Figure:
    """Display a heatmap of transition counts."""

    fig = plt.figure(figsize=(6, 5))
    ax = fig.add_subplot(111)

    if isinstance(matrix, pd.DataFrame) and not matrix.empty:
        sns.heatmap(matrix, annot=True, fmt='g', cmap='Blues', ax=ax)
    else:
        ax.text(0.5, 0.5, 'No transitions', ha='center', va='center')
        ax.axis('off')
        return fig

    ax.set_title('Transition Matrix')
    ax.set_xlabel('Next AOI')
    ax.set_ylabel('Previous AOI')
    fig.tight_layout()

    return fig


def plot_correlation(joined: pd.DataFrame, metric: str, r: float = np.nan,
                     slope: float = np.nan, intercept: float = np.nan) -> Figure:
    """Scatter plot of a summary metric against learning gain with its trend line."""

    fig = plt.figure(figsize=(6, 5))
    ax = fig.add_subplot(111)

    if joined.empty:
        ax.text(0.5, 0.5, 'No matched participants', ha='center', va='center')
        ax.axis('off')
        return fig

    sns.scatterplot(data=joined, x=metric, y='gain', ax=ax)
    if np.isfinite(slope) and np.isfinite(intercept):
        xs = np.linspace(joined[metric].min(), joined[metric].max(), 50)
        ax.plot(xs, intercept + slope * xs, color='red', linewidth=1)
    for _, row in joined.iterrows():
        ax.annotate(row['participant'], (row[metric], row['gain']), fontsize=7, alpha=0.7)

    title = f'{metric} vs learning gain'
    if np.isfinite(r):
        title += f' (r = {r:.2f})'
    ax.set_title(title)
    ax.set_xlabel(metric)
    ax.set_ylabel('Learning gain')
    fig.tight_layout()

    return fig


def _save(fig: Figure, path: Path) -> Path:
    fig.savefig(path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    return path


def save_participant_visualizations(output_dir: str, points: pd.DataFrame, labels: np.ndarray,
                                    scanpath: pd.DataFrame, transitions: pd.DataFrame,
                                    entropy_series: pd.DataFrame,
                                    sample_rate: Optional[float] = None) -> List[Path]:
    """
    Generate and save the plots of one participant.

    Parameters:
    -----------
    output_dir : str
        Directory to save visualizations
    points : pd.DataFrame
        Filtered gaze points
    labels : np.ndarray
        Cluster assignment of ``points``
    scanpath : pd.DataFrame
        Output of ``build_scanpath``
    transitions : pd.DataFrame
        Labelled transition matrix
    entropy_series : pd.DataFrame
        Windowed entropy with 'window_start' and 'entropy' columns
    sample_rate : Optional[float], optional
        Samples per second, used for the entropy time axis

    Returns:
    --------
    List[Path]
        Paths of the saved images
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    return [
        _save(plot_clusters(points, labels), output_path / "clusters.png"),
        _save(plot_scanpath(scanpath), output_path / "scanpath.png"),
        _save(plot_transition_matrix(transitions), output_path / "transitions.png"),
        _save(plot_entropy_over_time(entropy_series, sample_rate), output_path / "entropy_over_time.png"),
    ]


def save_correlation_plots(report, output_dir: str) -> List[Path]:
    """Save one scatter plot per correlated metric."""
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    saved = []
    for corr in report.correlations:
        fig = plot_correlation(report.joined, corr.metric, corr.r, corr.slope, corr.intercept)
        saved.append(_save(fig, output_path / f"correlation_{corr.metric}.png"))
    return saved
