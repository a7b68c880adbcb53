"""
Entropy and transition metrics over AOI label sequences.
"""
import math
from collections import Counter
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from gaze_etl.errors import InvalidParameterError


def is_missing_label(label) -> bool:
    """True for ``None``, NaN and blank strings."""
    if label is None or label is pd.NA:
        return True
    if isinstance(label, float) and math.isnan(label):
        return True
    if isinstance(label, str) and label.strip() == '':
        return True
    return False


class LabelRegistry:
    """Assigns AOI labels a stable index in the order they are first seen."""

    def __init__(self, labels: Iterable[Hashable] = ()):
        self._index: Dict[Hashable, int] = {}
        for label in labels:
            self.add(label)

    def add(self, label: Hashable) -> int:
        if label not in self._index:
            self._index[label] = len(self._index)
        return self._index[label]

    def index(self, label: Hashable) -> int:
        return self._index[label]

    @property
    def labels(self) -> List[Hashable]:
        return list(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, label) -> bool:
        return label in self._index


def compute_entropy(sequence: Sequence) -> float:
    """
    Shannon entropy (bits) of the label distribution.

    Missing labels are left out of the counts and the total. Empty sequences
    and sequences with a single distinct label have entropy 0.0.
    """
    counts = Counter(label for label in sequence if not is_missing_label(label))
    total = sum(counts.values())
    if total == 0 or len(counts) < 2:
        return 0.0

    p = np.fromiter(counts.values(), dtype=float) / total
    return float(-(p * np.log2(p)).sum())


def entropy_over_time(sequence: Sequence, window_size: int) -> List[Tuple[int, float]]:
    """
    Entropy of consecutive, non-overlapping windows.

    Parameters
    ----------
    sequence : Sequence
        AOI labels, one per sample. Missing labels still occupy a position.
    window_size : int
        Samples per window.

    Returns
    -------
    List[Tuple[int, float]]
        ``(start_index, entropy)`` for windows starting at 0, ``window_size``,
        ``2 * window_size``, ... A trailing window shorter than
        ``window_size`` is dropped.
    """
    if window_size <= 0:
        raise InvalidParameterError(f"window_size must be > 0, got {window_size}")

    sequence = list(sequence)
    n_windows = len(sequence) // window_size
    return [
        (start, compute_entropy(sequence[start:start + window_size]))
        for start in range(0, n_windows * window_size, window_size)
    ]


def entropy_series_frame(sequence: Sequence, window_size: int) -> pd.DataFrame:
    """``entropy_over_time`` as a frame with ``window_start`` and ``entropy`` columns."""
    series = entropy_over_time(sequence, window_size)
    return pd.DataFrame(series, columns=['window_start', 'entropy'])


def transition_matrix(sequence: Sequence) -> Tuple[np.ndarray, List[str]]:
    """Compute transitions between consecutive AOI labels.

    Parameters
    ----------
    sequence : Sequence
        AOI labels in recording order, possibly with missing entries.

    Returns
    -------
    Tuple[np.ndarray, List[str]]
        Square count matrix (rows: from, columns: to) and the labels that
        index it, in order of first appearance. A missing label breaks the
        chain: no transition is counted across it.
    """
    registry = LabelRegistry(label for label in sequence if not is_missing_label(label))
    mat = np.zeros((len(registry), len(registry)), dtype=int)

    prev: Optional[Hashable] = None
    for label in sequence:
        if is_missing_label(label):
            prev = None
            continue
        if prev is not None:
            mat[registry.index(prev), registry.index(label)] += 1
        prev = label

    return mat, registry.labels


def transition_frame(matrix: np.ndarray, labels: List[str]) -> pd.DataFrame:
    """Label a transition matrix with its AOIs for export and plotting."""
    return pd.DataFrame(matrix, index=labels, columns=labels)
