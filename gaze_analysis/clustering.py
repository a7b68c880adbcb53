"""
Density-based clustering of gaze points into fixations (DBSCAN).
"""
from collections import deque
import logging

import numpy as np
import pandas as pd
from scipy.spatial import cKDTree

from gaze_etl.errors import InvalidParameterError

logger = logging.getLogger(__name__)

NOISE = 0


def _as_points(points) -> np.ndarray:
    if isinstance(points, pd.DataFrame):
        points = points[['x', 'y']].to_numpy(dtype=float)
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return arr.reshape(0, 2)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"Expected an (M, 2) array of points, got shape {arr.shape}")
    return arr


def dbscan(points, epsilon: float, min_points: int) -> np.ndarray:
    """
    Cluster gaze points with DBSCAN.

    Parameters
    ----------
    points : array-like or pd.DataFrame
        ``(M, 2)`` coordinates, or a frame with ``x`` and ``y`` columns.
    epsilon : float
        Neighbourhood radius in coordinate units. A point's neighbourhood
        includes the point itself.
    min_points : int
        Minimum neighbourhood size for a core point.

    Returns
    -------
    np.ndarray
        Cluster id per point. ``NOISE`` (0) marks noise; clusters are
        numbered from 1 in the order they are discovered.

    Notes
    -----
    Points are visited in input order and clusters grow breadth-first. A
    border point reachable from several clusters keeps the first cluster that
    reaches it, so the result only depends on input order and parameters.
    """
    if not epsilon > 0:
        raise InvalidParameterError(f"epsilon must be > 0, got {epsilon}")
    if min_points < 1:
        raise InvalidParameterError(f"min_points must be >= 1, got {min_points}")

    coords = _as_points(points)
    n = len(coords)
    labels = np.full(n, NOISE, dtype=int)
    if n == 0:
        return labels

    tree = cKDTree(coords)
    neighbourhoods = tree.query_ball_point(coords, r=epsilon)
    visited = np.zeros(n, dtype=bool)
    cluster = NOISE

    for i in range(n):
        if visited[i]:
            continue
        visited[i] = True
        if len(neighbourhoods[i]) < min_points:
            continue

        cluster += 1
        labels[i] = cluster
        queue = deque(sorted(neighbourhoods[i]))
        while queue:
            j = queue.popleft()
            if labels[j] == NOISE:
                labels[j] = cluster
            if visited[j]:
                continue
            visited[j] = True
            if len(neighbourhoods[j]) >= min_points:
                queue.extend(sorted(neighbourhoods[j]))

    logger.debug('dbscan: %d points, %d clusters, %d noise',
                 n, cluster, int((labels == NOISE).sum()))
    return labels


def count_clusters(labels: np.ndarray) -> int:
    """Number of genuine clusters in an assignment."""
    labels = np.asarray(labels)
    return int(labels.max()) if labels.size and labels.max() > NOISE else 0


def cluster_centroids(points, labels: np.ndarray) -> pd.DataFrame:
    """Mean position and size of every cluster, noise excluded."""
    coords = _as_points(points)
    labels = np.asarray(labels, dtype=int)
    if len(labels) != len(coords):
        raise ValueError(f"Cluster assignment has {len(labels)} entries for {len(coords)} points")

    frame = pd.DataFrame({'cluster': labels, 'x': coords[:, 0], 'y': coords[:, 1]})
    frame = frame[frame['cluster'] != NOISE]
    if frame.empty:
        return pd.DataFrame(columns=['cluster', 'x', 'y', 'n_points'])

    centroids = frame.groupby('cluster').agg(
        x=('x', 'mean'), y=('y', 'mean'), n_points=('x', 'size')
    )
    return centroids.reset_index()
