"""
Analysis Pipeline runner for eye tracking data.

This module provides a command-line interface to run the analysis pipeline
over a folder of participant recordings.
"""
import argparse
from dataclasses import dataclass, field
import logging
from multiprocessing import Pool
from pathlib import Path
from typing import List, Optional, Tuple

import pandas as pd

from gaze_etl.errors import EmptyDataError, GazeAnalysisError, InvalidParameterError
from gaze_etl.io import (
    list_participant_files, load_learning_gain, load_participant, participant_id, save_table,
)
from gaze_etl.preprocess import aoi_sequence, aoi_statistics, build_scanpath, filter_points
from gaze_analysis.clustering import count_clusters, dbscan
from gaze_analysis.config import AnalysisConfig
from gaze_analysis.sequence import entropy_series_frame, transition_frame, transition_matrix
from gaze_analysis.summary import (
    CorrelationReport, ParticipantSummary, SummaryAccumulator,
    correlate_with_learning_gain, summarize_participant,
)
from gaze_analysis.viz import save_correlation_plots, save_participant_visualizations

logger = logging.getLogger(__name__)


def setup_logging(verbosity: int = 0) -> None:
    """
    Set up logging with appropriate verbosity.

    Parameters:
    -----------
    verbosity : int, optional
        0 = WARNING, 1 = INFO, 2 = DEBUG, by default 0
    """
    log_levels = {
        0: logging.WARNING,
        1: logging.INFO,
        2: logging.DEBUG
    }
    level = log_levels.get(verbosity, logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@dataclass
class ParticipantResult:
    participant: str
    summary: Optional[ParticipantSummary] = None
    n_points: int = 0
    n_clusters: int = 0
    error: Optional[Exception] = None


@dataclass
class BatchReport:
    summary: pd.DataFrame
    processed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    issues: List[Tuple[str, Exception]] = field(default_factory=list)
    correlation: Optional[CorrelationReport] = None

    def issues_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [(pid, type(err).__name__, str(err)) for pid, err in self.issues],
            columns=['participant', 'error', 'message'],
        )

    def log_summary(self) -> None:
        logger.info("Processed %d participant(s), skipped %d", len(self.processed), len(self.skipped))
        for pid, err in self.issues:
            logger.warning("%s: %s: %s", pid, type(err).__name__, err)


def process_participant(path: Path, config: AnalysisConfig,
                        accumulator: SummaryAccumulator) -> ParticipantResult:
    """
    Analyse one recording and add its summary to ``accumulator``.

    Writes ``aoi_statistics.csv``, ``transitions.csv``,
    ``entropy_over_time.csv`` and ``clusters.csv`` (plus plots when enabled)
    to ``<output_folder>/<participant>/``.

    A recording without valid gaze points still gets AOI metrics and a
    summary row; the EmptyDataError is returned in the result. A missing
    column raises SchemaError and nothing is added.
    """
    path = Path(path)
    pid = participant_id(path)
    out_dir = Path(config.output_folder) / pid
    logger.info("Processing participant %s", pid)

    df = load_participant(path, config.aoi_column)

    # AOI metrics do not depend on the gaze coordinates
    sequence = aoi_sequence(df, config.aoi_column)
    stats = aoi_statistics(df, config.aoi_column, config.time_column)
    matrix, aois = transition_matrix(sequence)
    transitions = transition_frame(matrix, aois)
    entropy_series = entropy_series_frame(sequence, config.window_size)
    summary = summarize_participant(pid, sequence, config.interactive_aois, config.sample_rate)

    result = ParticipantResult(participant=pid, summary=summary)
    try:
        points = filter_points(df, config.x_column, config.y_column, config.max_points)
    except EmptyDataError as e:
        logger.warning("Participant %s: %s", pid, e)
        result.error = e
        points = pd.DataFrame({'x': pd.Series(dtype=float), 'y': pd.Series(dtype=float)})

    labels = dbscan(points, config.epsilon, config.min_points)
    scanpath = build_scanpath(points, labels)
    result.n_points = len(points)
    result.n_clusters = count_clusters(labels)
    logger.debug("Participant %s: %d points, %d clusters", pid, result.n_points, result.n_clusters)

    save_table(stats, out_dir / "aoi_statistics.csv")
    save_table(transitions.rename_axis('from').reset_index(), out_dir / "transitions.csv")
    save_table(entropy_series, out_dir / "entropy_over_time.csv")
    save_table(scanpath, out_dir / "clusters.csv")

    if config.generate_visualizations:
        save_participant_visualizations(
            out_dir, points, labels, scanpath, transitions, entropy_series,
            sample_rate=config.sample_rate,
        )

    accumulator.add(summary)
    return result


def _process_file(path: Path, config: AnalysisConfig) -> Tuple[ParticipantResult, SummaryAccumulator]:
    """Process one file in isolation; errors are returned, not raised."""
    accumulator = SummaryAccumulator()
    try:
        result = process_participant(path, config, accumulator)
    except InvalidParameterError:
        raise
    except Exception as e:
        logger.error("Skipping participant %s: %s", participant_id(path), e,
                     exc_info=not isinstance(e, GazeAnalysisError))
        result = ParticipantResult(participant=participant_id(path), error=e)
    return result, accumulator


def run_batch(config: AnalysisConfig, parallel: bool = False) -> BatchReport:
    """
    Run the analysis pipeline over every recording in ``config.data_folder``.

    Parameters:
    -----------
    config : AnalysisConfig
        Analysis parameters, validated before any file is read
    parallel : bool, optional
        Process participants in a worker pool, by default False

    Returns:
    --------
    BatchReport
        Summary table sorted by participant, processed ids, per-participant
        issues and the optional learning-gain correlation
    """
    config.validate()
    output_path = Path(config.output_folder)
    output_path.mkdir(parents=True, exist_ok=True)

    files = list_participant_files(config.data_folder, config.pattern)
    logger.info("Found %d recording(s) in %s", len(files), config.data_folder)

    if parallel and len(files) > 1:
        with Pool() as p:
            outcomes = p.starmap(_process_file, [(f, config) for f in files])
    else:
        outcomes = [_process_file(f, config) for f in files]

    accumulator = SummaryAccumulator()
    processed, skipped, issues = [], [], []
    for result, partial in outcomes:
        accumulator.merge(partial)
        if result.summary is not None:
            processed.append(result.participant)
        else:
            skipped.append(result.participant)
        if result.error is not None:
            issues.append((result.participant, result.error))

    report = BatchReport(summary=accumulator.to_frame(), processed=sorted(processed),
                         skipped=sorted(skipped), issues=issues)
    save_table(report.summary, output_path / "summary.csv")

    if config.learning_gain_path:
        logger.info("Correlating with learning gain from %s", config.learning_gain_path)
        gains = load_learning_gain(config.learning_gain_path)
        report.correlation = correlate_with_learning_gain(report.summary, gains)
        if report.correlation.mismatch is not None:
            report.issues.append(('learning_gain', report.correlation.mismatch))
        save_table(report.correlation.to_frame(), output_path / "correlation.csv")
        if config.generate_visualizations:
            save_correlation_plots(report.correlation, output_path)

    if report.issues:
        save_table(report.issues_frame(), output_path / "issues.csv")
    report.log_summary()
    return report


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the analysis pipeline.
    """
    parser = argparse.ArgumentParser(description="Eye-tracking AOI Analysis Pipeline")
    parser.add_argument("--data-folder", type=str, required=True,
                        help="Folder containing one CSV recording per participant")
    parser.add_argument("--output-dir", type=str, required=True,
                        help="Directory to save analysis results")
    parser.add_argument("--pattern", type=str, default="*.csv",
                        help="File pattern to match")
    parser.add_argument("--epsilon", type=float, required=True,
                        help="DBSCAN neighbourhood radius in coordinate units")
    parser.add_argument("--min-points", type=int, required=True,
                        help="DBSCAN minimum neighbourhood size")
    parser.add_argument("--sample-rate", type=float, required=True,
                        help="Sampling rate in Hz (assumes gap-free recordings)")
    parser.add_argument("--interactive-aois", type=str, nargs="+", required=True,
                        help="AOI labels counted towards dwell time")
    parser.add_argument("--window-size", type=int, required=True,
                        help="Entropy window length in samples")
    parser.add_argument("--max-points", type=int, required=True,
                        help="Cluster only the first N valid points of each recording")
    parser.add_argument("--learning-gain", type=str,
                        help="CSV with participant, pre_score and post_score columns")
    parser.add_argument("--no-visualizations", action="store_true",
                        help="Skip generating visualizations")
    parser.add_argument("--parallel", action="store_true",
                        help="Process participants in parallel")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase verbosity (can be used multiple times)")

    args = parser.parse_args(argv)

    # Set up logging
    setup_logging(args.verbose)

    config = AnalysisConfig(
        data_folder=args.data_folder,
        output_folder=args.output_dir,
        epsilon=args.epsilon,
        min_points=args.min_points,
        sample_rate=args.sample_rate,
        interactive_aois=args.interactive_aois,
        window_size=args.window_size,
        max_points=args.max_points,
        pattern=args.pattern,
        learning_gain_path=args.learning_gain,
        generate_visualizations=not args.no_visualizations,
    )

    try:
        report = run_batch(config, parallel=args.parallel)
        logger.info("Analysis pipeline completed: %d participant(s) summarised", len(report.summary))
    except InvalidParameterError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    except Exception as e:
        logger.error("Error in analysis pipeline: %s", e, exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    exit(main())
