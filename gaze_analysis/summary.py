"""
Participant-level summaries and correlation with learning outcomes.
"""
from dataclasses import dataclass, field, asdict
import logging
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from scipy import stats

from gaze_etl.errors import InvalidParameterError, JoinMismatchError
from gaze_analysis.sequence import compute_entropy, transition_matrix

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ['participant', 'entropy', 'dwell_time', 'transition_sum']
CORRELATED_METRICS = ('entropy', 'dwell_time')


@dataclass(frozen=True)
class ParticipantSummary:
    participant: str
    entropy: float
    dwell_time: float
    transition_sum: int


def dwell_time(sequence: Sequence, interactive_labels: Iterable[str], sample_rate: float) -> float:
    """
    Time spent on the interactive AOIs, in seconds.

    Every sample labelled with an interactive AOI counts ``1 / sample_rate``
    seconds. This holds only for uniformly sampled recordings without gaps;
    the recording is not checked for gaps.
    """
    if not sample_rate > 0:
        raise InvalidParameterError(f"sample_rate must be > 0, got {sample_rate}")
    interactive = set(interactive_labels)
    count = sum(1 for label in sequence if label in interactive)
    return count / sample_rate


def summarize_participant(participant: str, sequence: Sequence,
                          interactive_labels: Iterable[str], sample_rate: float) -> ParticipantSummary:
    """Entropy, interactive dwell time and total transition count for one participant."""
    matrix, _ = transition_matrix(sequence)
    return ParticipantSummary(
        participant=str(participant),
        entropy=compute_entropy(sequence),
        dwell_time=dwell_time(sequence, interactive_labels, sample_rate),
        transition_sum=int(matrix.sum()),
    )


class SummaryAccumulator:
    """
    Collects one summary per participant.

    Accumulators filled independently (e.g. by worker processes) can be
    merged; ``to_frame`` sorts by participant so the table does not depend on
    processing order.
    """

    def __init__(self, summaries: Iterable[ParticipantSummary] = ()):
        self._rows: Dict[str, ParticipantSummary] = {}
        for summary in summaries:
            self.add(summary)

    def add(self, summary: ParticipantSummary) -> None:
        if summary.participant in self._rows:
            raise ValueError(f"Duplicate summary for participant {summary.participant!r}")
        self._rows[summary.participant] = summary

    def merge(self, other: "SummaryAccumulator") -> "SummaryAccumulator":
        for summary in other:
            self.add(summary)
        return self

    def __iter__(self):
        return iter(self._rows.values())

    def __len__(self) -> int:
        return len(self._rows)

    def to_frame(self) -> pd.DataFrame:
        rows = [asdict(self._rows[key]) for key in sorted(self._rows)]
        return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


@dataclass
class MetricCorrelation:
    metric: str
    r: float
    p_value: float
    n: int
    slope: float = np.nan
    intercept: float = np.nan


@dataclass
class CorrelationReport:
    joined: pd.DataFrame
    correlations: List[MetricCorrelation] = field(default_factory=list)
    mismatch: Optional[JoinMismatchError] = None

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(c) for c in self.correlations],
                            columns=['metric', 'r', 'p_value', 'n', 'slope', 'intercept'])


def _pearson(x: np.ndarray, y: np.ndarray):
    """Pearson r and p-value; NaN when undefined (n < 3 or a constant column)."""
    if len(x) < 3 or np.ptp(x) == 0 or np.ptp(y) == 0:
        return np.nan, np.nan
    r, p = stats.pearsonr(x, y)
    return float(r), float(p)


def _ols_line(df: pd.DataFrame, metric: str):
    """Intercept and slope of ``gain ~ metric``."""
    if len(df) < 3 or np.ptp(df[metric].to_numpy(dtype=float)) == 0:
        return np.nan, np.nan
    model = smf.ols(f"gain ~ {metric}", data=df).fit()
    return float(model.params['Intercept']), float(model.params[metric])


def correlate_with_learning_gain(summary: pd.DataFrame, gains: pd.DataFrame) -> CorrelationReport:
    """
    Correlate entropy and dwell time with learning gain.

    Parameters
    ----------
    summary : pd.DataFrame
        Summary table with ``participant``, ``entropy`` and ``dwell_time``.
    gains : pd.DataFrame
        Learning gain with ``participant`` and ``gain`` columns.

    Returns
    -------
    CorrelationReport
        Joined table, Pearson r / p-value and OLS trend line per metric, and
        a JoinMismatchError describing every dropped row (None when every
        participant matched once).

    Notes
    -----
    Gain rows without a numeric gain are dropped. When a participant has
    several gain rows only the first is used; the others are reported as
    duplicates.
    """
    summary = summary.assign(participant=summary['participant'].astype(str).str.strip())
    gains = gains.assign(participant=gains['participant'].astype(str).str.strip())

    invalid = gains['gain'].isna()
    invalid_gain = gains.loc[invalid, 'participant'].tolist()
    gains = gains[~invalid]
    duplicated = gains['participant'].duplicated(keep='first')
    duplicate_gain = gains.loc[duplicated, 'participant'].tolist()
    gains = gains[~duplicated]

    joined = summary.merge(gains[['participant', 'gain']], on='participant', how='inner')
    joined = joined.sort_values('participant').reset_index(drop=True)

    missing_gain = set(summary['participant']) - set(gains['participant'])
    missing_summary = set(gains['participant']) - set(summary['participant'])
    mismatch = None
    if missing_gain or missing_summary or invalid_gain or duplicate_gain:
        mismatch = JoinMismatchError(missing_gain, missing_summary, invalid_gain, duplicate_gain)
        logger.warning("Learning-gain join dropped rows: %s", mismatch)

    report = CorrelationReport(joined=joined, mismatch=mismatch)
    for metric in CORRELATED_METRICS:
        x = joined[metric].to_numpy(dtype=float)
        y = joined['gain'].to_numpy(dtype=float)
        r, p = _pearson(x, y)
        intercept, slope = _ols_line(joined, metric)
        report.correlations.append(MetricCorrelation(
            metric=metric, r=r, p_value=p, n=len(joined), slope=slope, intercept=intercept,
        ))
        logger.info("%s ~ gain: r=%.3f (n=%d)", metric, r, len(joined))

    return report
