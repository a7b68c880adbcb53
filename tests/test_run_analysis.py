import numpy as np
import pytest

pd = pytest.importorskip("pandas")
pytest.importorskip("matplotlib")
from gaze_etl.errors import EmptyDataError, InvalidParameterError, JoinMismatchError, SchemaError
from gaze_analysis.config import AnalysisConfig
from gaze_analysis.run import main, run_batch


def _recording(seed: int, n: int = 60) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    half = n // 2
    x = np.concatenate([rng.normal(0.2, 0.005, half), rng.normal(0.8, 0.005, n - half)])
    y = np.concatenate([rng.normal(0.3, 0.005, half), rng.normal(0.7, 0.005, n - half)])
    x[5] = np.nan
    aois = rng.choice(['Button', 'Screen', 'Board'], size=n).astype(object)
    aois[10] = None
    return pd.DataFrame({
        'gazeOrigin_x': x,
        'gazeOrigin_y': y,
        'gazePointAOI_target_name': aois,
        'eyeDataTimestamp': np.arange(n) / 60.0,
    })


def _config(data_dir, out_dir, **kwargs) -> AnalysisConfig:
    params = dict(
        data_folder=str(data_dir),
        output_folder=str(out_dir),
        epsilon=0.05,
        min_points=5,
        sample_rate=60.0,
        interactive_aois=('Button',),
        window_size=10,
        max_points=5000,
        generate_visualizations=False,
    )
    params.update(kwargs)
    return AnalysisConfig(**params)


@pytest.fixture
def data_dir(tmp_path):
    folder = tmp_path / "data"
    folder.mkdir()
    _recording(1).to_csv(folder / "P02.csv", index=False)
    _recording(2).to_csv(folder / "P01.csv", index=False)
    return folder


def test_run_batch_basic(data_dir, tmp_path):
    out_dir = tmp_path / "out"
    report = run_batch(_config(data_dir, out_dir))

    assert report.processed == ['P01', 'P02']
    assert report.skipped == []
    assert report.issues == []
    assert report.summary['participant'].tolist() == ['P01', 'P02']
    assert set(['participant', 'entropy', 'dwell_time', 'transition_sum']) == set(report.summary.columns)
    assert (out_dir / "summary.csv").exists()
    assert not (out_dir / "correlation.csv").exists()

    for name in ['aoi_statistics.csv', 'transitions.csv', 'entropy_over_time.csv', 'clusters.csv']:
        assert (out_dir / "P01" / name).exists()

    clusters = pd.read_csv(out_dir / "P01" / "clusters.csv")
    assert len(clusters) == 59
    assert set(clusters['cluster']) == {1, 2}

    entropy = pd.read_csv(out_dir / "P01" / "entropy_over_time.csv")
    assert entropy['window_start'].tolist() == [0, 10, 20, 30, 40, 50]


def test_run_batch_metrics_match_recording(data_dir, tmp_path):
    report = run_batch(_config(data_dir, tmp_path / "out"))
    row = report.summary.set_index('participant').loc['P02']
    aois = _recording(1)['gazePointAOI_target_name']
    assert row['dwell_time'] == pytest.approx((aois == 'Button').sum() / 60.0)
    # one missing label breaks two transitions
    assert row['transition_sum'] == 60 - 1 - 2


def test_run_batch_max_points_truncates(data_dir, tmp_path):
    out_dir = tmp_path / "out"
    run_batch(_config(data_dir, out_dir, max_points=20))
    clusters = pd.read_csv(out_dir / "P01" / "clusters.csv")
    assert len(clusters) == 20
    assert set(clusters['cluster']) == {1}


def test_run_batch_is_deterministic(data_dir, tmp_path):
    first = run_batch(_config(data_dir, tmp_path / "a"))
    second = run_batch(_config(data_dir, tmp_path / "b"))
    pd.testing.assert_frame_equal(first.summary, second.summary)
    for name in ['clusters.csv', 'transitions.csv', 'entropy_over_time.csv']:
        pd.testing.assert_frame_equal(
            pd.read_csv(tmp_path / "a" / "P02" / name),
            pd.read_csv(tmp_path / "b" / "P02" / name),
        )


def test_run_batch_parallel_matches_sequential(data_dir, tmp_path):
    sequential = run_batch(_config(data_dir, tmp_path / "seq"))
    parallel = run_batch(_config(data_dir, tmp_path / "par"), parallel=True)
    pd.testing.assert_frame_equal(sequential.summary, parallel.summary)


def test_empty_file_gets_zero_metrics(data_dir, tmp_path):
    (data_dir / "P03.csv").write_text("")
    report = run_batch(_config(data_dir, tmp_path / "out"))

    assert report.processed == ['P01', 'P02', 'P03']
    row = report.summary.set_index('participant').loc['P03']
    assert row['entropy'] == 0.0
    assert row['dwell_time'] == 0.0
    assert row['transition_sum'] == 0
    assert [(pid, type(err)) for pid, err in report.issues] == [('P03', EmptyDataError)]
    assert (tmp_path / "out" / "issues.csv").exists()


def test_no_valid_points_keeps_aoi_metrics(data_dir, tmp_path):
    df = _recording(3)
    df['gazeOrigin_x'] = np.nan
    df.to_csv(data_dir / "P04.csv", index=False)
    report = run_batch(_config(data_dir, tmp_path / "out"))

    row = report.summary.set_index('participant').loc['P04']
    assert row['transition_sum'] > 0
    assert isinstance(dict(report.issues)['P04'], EmptyDataError)
    assert pd.read_csv(tmp_path / "out" / "P04" / "clusters.csv").empty


def test_schema_error_skips_participant(data_dir, tmp_path):
    _recording(4).drop(columns=['gazePointAOI_target_name']).to_csv(data_dir / "P05.csv", index=False)
    report = run_batch(_config(data_dir, tmp_path / "out"))

    assert report.skipped == ['P05']
    assert 'P05' not in report.summary['participant'].tolist()
    assert isinstance(dict(report.issues)['P05'], SchemaError)


def test_invalid_config_aborts_before_processing(data_dir, tmp_path):
    out_dir = tmp_path / "out"
    with pytest.raises(InvalidParameterError):
        run_batch(_config(data_dir, out_dir, epsilon=0.0))
    assert not out_dir.exists()


def test_learning_gain_correlation(data_dir, tmp_path):
    for seed, pid in [(5, 'P03'), (6, 'P04')]:
        _recording(seed).to_csv(data_dir / f"{pid}.csv", index=False)
    gain_path = tmp_path / "gain.csv"
    pd.DataFrame({
        'participant': ['P01', 'P02', 'P03', 'P99'],
        'pre_score': [1, 2, 3, 4],
        'post_score': [5, 3, 9, 4],
    }).to_csv(gain_path, index=False)

    out_dir = tmp_path / "out"
    report = run_batch(_config(data_dir, out_dir, learning_gain_path=str(gain_path),
                               generate_visualizations=True))

    assert report.correlation is not None
    assert report.correlation.joined['participant'].tolist() == ['P01', 'P02', 'P03']
    mismatch = dict(report.issues)['learning_gain']
    assert isinstance(mismatch, JoinMismatchError)
    assert mismatch.missing_gain == ['P04']
    assert mismatch.missing_summary == ['P99']
    assert (out_dir / "correlation.csv").exists()
    assert (out_dir / "correlation_entropy.png").exists()
    assert (out_dir / "correlation_dwell_time.png").exists()
    assert (out_dir / "P01" / "clusters.png").exists()
    assert (out_dir / "P01" / "transitions.png").exists()


def test_main_cli(data_dir, tmp_path):
    out_dir = tmp_path / "cli"
    code = main([
        "--data-folder", str(data_dir), "--output-dir", str(out_dir),
        "--epsilon", "0.05", "--min-points", "5", "--sample-rate", "60",
        "--interactive-aois", "Button", "Screen", "--window-size", "10",
        "--max-points", "5000", "--no-visualizations",
    ])
    assert code == 0
    assert (out_dir / "summary.csv").exists()


def test_main_cli_invalid_parameter(data_dir, tmp_path):
    code = main([
        "--data-folder", str(data_dir), "--output-dir", str(tmp_path / "cli"),
        "--epsilon", "0.05", "--min-points", "0", "--sample-rate", "60",
        "--interactive-aois", "Button", "--window-size", "10",
        "--max-points", "5000", "--no-visualizations",
    ])
    assert code == 2


def test_learning_gain_zero_padded_ids(tmp_path):
    folder = tmp_path / "data"
    folder.mkdir()
    for seed, pid in [(1, '001'), (2, '002'), (3, '003')]:
        _recording(seed).to_csv(folder / f"{pid}.csv", index=False)
    gain_path = tmp_path / "gain.csv"
    gain_path.write_text("participant,pre_score,post_score\n001,1,4\n002,2,3\n003,3,9\n")

    report = run_batch(_config(folder, tmp_path / "out", learning_gain_path=str(gain_path)))

    assert report.summary['participant'].tolist() == ['001', '002', '003']
    assert report.correlation.joined['participant'].tolist() == ['001', '002', '003']
    assert report.correlation.mismatch is None
    assert report.issues == []


def test_numeric_aoi_labels_count_towards_dwell_time(tmp_path):
    folder = tmp_path / "data"
    folder.mkdir()
    df = _recording(1, n=20)
    df['gazePointAOI_target_name'] = ['1', None, '2', '1'] * 5
    df.to_csv(folder / "P01.csv", index=False)

    report = run_batch(_config(folder, tmp_path / "out", interactive_aois=('1',)))

    row = report.summary.set_index('participant').loc['P01']
    assert row['dwell_time'] == pytest.approx(10 / 60.0)
    transitions = pd.read_csv(tmp_path / "out" / "P01" / "transitions.csv", dtype={'from': str})
    assert transitions['from'].tolist() == ['1', '2']


def test_non_numeric_gain_rows_are_reported(data_dir, tmp_path):
    gain_path = tmp_path / "gain.csv"
    gain_path.write_text("participant,pre_score,post_score\nP01,1,4\nP02,n/a,3\nP02,2,5\n")

    out_dir = tmp_path / "out"
    report = run_batch(_config(data_dir, out_dir, learning_gain_path=str(gain_path)))

    assert report.correlation.joined['participant'].tolist() == ['P01', 'P02']
    mismatch = dict(report.issues)['learning_gain']
    assert mismatch.invalid_gain == ['P02']
    assert mismatch.dropped == 1
    issues = pd.read_csv(out_dir / "issues.csv")
    assert issues['participant'].tolist() == ['learning_gain']
    assert 'non-numeric' in issues['message'].iloc[0]


def test_main_cli_logs_through_module_logger(data_dir, tmp_path, caplog):
    code = main([
        "--data-folder", str(data_dir), "--output-dir", str(tmp_path / "cli"),
        "--epsilon", "-1", "--min-points", "5", "--sample-rate", "60",
        "--interactive-aois", "Button", "--window-size", "10",
        "--max-points", "5000", "--no-visualizations",
    ])
    assert code == 2
    errors = [r for r in caplog.records if r.levelname == "ERROR"]
    assert errors and all(r.name == "gaze_analysis.run" for r in errors)
    assert "epsilon" in errors[0].getMessage()
