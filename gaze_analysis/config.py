"""
Configuration for the analysis pipeline.

Example:
    >>> from gaze_analysis.config import AnalysisConfig
    >>> cfg = AnalysisConfig(
    ...     data_folder="data",
    ...     output_folder="results",
    ...     epsilon=0.05,
    ...     min_points=5,
    ...     sample_rate=90.0,
    ...     interactive_aois=("Button", "Slider"),
    ...     window_size=100,
    ...     max_points=5000,
    ... )
    >>> cfg.validate()
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from gaze_etl.errors import InvalidParameterError
from gaze_etl.io import AOI_COLUMN, TIME_COLUMN, X_COLUMN, Y_COLUMN


@dataclass
class AnalysisConfig:
    """
    Parameters of one batch run. None of them has a hidden default that
    changes the metrics; callers pass them explicitly.
    """

    data_folder: str
    output_folder: str

    # DBSCAN neighbourhood radius (coordinate units) and core-point size
    epsilon: float
    min_points: int

    # Samples per second, used to turn sample counts into dwell time.
    # Assumes uniform sampling without gaps.
    sample_rate: float

    # AOI labels whose samples count towards dwell time
    interactive_aois: Tuple[str, ...]

    # Entropy window length in samples
    window_size: int

    # Keep only the first N valid points for clustering
    max_points: int

    pattern: str = "*.csv"
    learning_gain_path: Optional[str] = None

    x_column: str = X_COLUMN
    y_column: str = Y_COLUMN
    aoi_column: str = AOI_COLUMN
    time_column: str = TIME_COLUMN

    generate_visualizations: bool = True

    def __post_init__(self) -> None:
        self.interactive_aois = tuple(self.interactive_aois)

    def validate(self) -> None:
        """Raise InvalidParameterError for any out-of-range parameter."""
        if not self.epsilon > 0:
            raise InvalidParameterError(f"epsilon must be > 0, got {self.epsilon}")
        if self.min_points < 1:
            raise InvalidParameterError(f"min_points must be >= 1, got {self.min_points}")
        if not self.sample_rate > 0:
            raise InvalidParameterError(f"sample_rate must be > 0, got {self.sample_rate}")
        if self.window_size < 1:
            raise InvalidParameterError(f"window_size must be >= 1, got {self.window_size}")
        if self.max_points < 1:
            raise InvalidParameterError(f"max_points must be >= 1, got {self.max_points}")
