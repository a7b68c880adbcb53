"""
Eye tracking data preprocessing: point filtering, AOI sequences and scanpaths.
"""
import pandas as pd
import numpy as np
from typing import List, Optional
import logging

from gaze_etl.errors import EmptyDataError, InvalidParameterError, SchemaError
from gaze_etl.io import AOI_COLUMN, TIME_COLUMN, X_COLUMN, Y_COLUMN

logger = logging.getLogger(__name__)


def _require_columns(df: pd.DataFrame, columns: List[str]) -> None:
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise SchemaError(missing)


def filter_points(df: pd.DataFrame, x_col: str = X_COLUMN, y_col: str = Y_COLUMN,
                  max_points: Optional[int] = None) -> pd.DataFrame:
    """
    Keep only samples whose gaze coordinates are both finite.

    Parameters:
    -----------
    df : pd.DataFrame
        Raw eye tracking rows
    x_col : str, optional
        Column holding the x coordinate, by default ``gazeOrigin_x``
    y_col : str, optional
        Column holding the y coordinate, by default ``gazeOrigin_y``
    max_points : Optional[int], optional
        Keep only the first ``max_points`` valid samples, by default None

    Returns:
    --------
    pd.DataFrame
        Valid rows in recording order with numeric ``x`` and ``y`` columns
        added. The original row index is kept.

    Notes:
    ------
    ``max_points`` truncates to a prefix of the recording. It bounds the cost
    of clustering but is not a representative sample of the session.
    """
    _require_columns(df, [x_col, y_col])
    if max_points is not None and max_points < 1:
        raise InvalidParameterError(f"max_points must be >= 1, got {max_points}")

    x = pd.to_numeric(df[x_col], errors='coerce').to_numpy(dtype=float)
    y = pd.to_numeric(df[y_col], errors='coerce').to_numpy(dtype=float)
    valid = np.isfinite(x) & np.isfinite(y)

    points = df.loc[valid].copy()
    points['x'] = x[valid]
    points['y'] = y[valid]
    logger.debug('filter_points kept %d of %d rows', len(points), len(df))

    if points.empty:
        raise EmptyDataError(f"No finite ({x_col}, {y_col}) samples in {len(df)} row(s)")

    if max_points is not None and len(points) > max_points:
        logger.info('Truncating %d valid points to the first %d', len(points), max_points)
        points = points.iloc[:max_points]

    return points


def aoi_sequence(df: pd.DataFrame, aoi_col: str = AOI_COLUMN) -> List[Optional[str]]:
    """
    Extract the AOI label of every sample, ``None`` where the label is missing.

    Blank strings count as missing. Positions are kept so that windows over
    the sequence line up with the recording.
    """
    _require_columns(df, [aoi_col])
    labels = df[aoi_col].astype(object)
    labels = labels.where(labels.notna(), None)
    return [
        None if label is None or str(label).strip() == '' else str(label)
        for label in labels
    ]


def build_scanpath(points: pd.DataFrame, labels: Optional[np.ndarray] = None) -> pd.DataFrame:
    """Order filtered points into a scanpath, optionally tagged with cluster ids."""
    scanpath = pd.DataFrame({
        'step': np.arange(len(points)),
        'x': points['x'].to_numpy(dtype=float),
        'y': points['y'].to_numpy(dtype=float),
    })
    if labels is not None:
        if len(labels) != len(points):
            raise ValueError(
                f"Cluster assignment has {len(labels)} entries for {len(points)} points"
            )
        scanpath['cluster'] = np.asarray(labels, dtype=int)
    return scanpath


def aoi_statistics(df: pd.DataFrame, aoi_col: str = AOI_COLUMN,
                   time_col: str = TIME_COLUMN) -> pd.DataFrame:
    """
    Per-AOI sample count and time span.

    Parameters
    ----------
    df : pd.DataFrame
        Raw rows with AOI label and timestamp columns.

    Returns
    -------
    pd.DataFrame
        ``aoi``, ``fixation_count``, ``start_time``, ``end_time`` and
        ``duration`` for every AOI, in order of first appearance.
    """
    _require_columns(df, [aoi_col, time_col])
    columns = ['aoi', 'fixation_count', 'start_time', 'end_time', 'duration']

    frame = pd.DataFrame({
        'aoi': aoi_sequence(df, aoi_col),
        'time': pd.to_numeric(df[time_col], errors='coerce').to_numpy(dtype=float),
    }).dropna(subset=['aoi'])
    if frame.empty:
        return pd.DataFrame(columns=columns)

    stats = (
        frame.groupby('aoi', sort=False)
        .agg(fixation_count=('time', 'size'), start_time=('time', 'min'), end_time=('time', 'max'))
        .reset_index()
    )
    stats['duration'] = stats['end_time'] - stats['start_time']
    return stats[columns]
