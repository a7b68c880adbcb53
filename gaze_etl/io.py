"""
Functions for loading and saving eye tracking data
"""
import logging
from pathlib import Path
from typing import List

import pandas as pd

from gaze_etl.errors import SchemaError

logger = logging.getLogger(__name__)

X_COLUMN = 'gazeOrigin_x'
Y_COLUMN = 'gazeOrigin_y'
AOI_COLUMN = 'gazePointAOI_target_name'
TIME_COLUMN = 'eyeDataTimestamp'

GAIN_COLUMNS = ['participant', 'pre_score', 'post_score']


def participant_id(path: Path) -> str:
    """Participant id for a recording, taken from the file name ("P01.csv" -> "P01")."""
    return Path(path).stem


def list_participant_files(folder: str = "data", pattern: str = "*.csv") -> List[Path]:
    """
    List the participant recordings in a folder.
    
    Parameters:
    -----------
    folder : str, optional
        Path to the folder containing CSV files, by default "data"
    pattern : str, optional
        File pattern to match, by default "*.csv"
    
    Returns:
    --------
    List[Path]
        Matching files sorted by name
    """
    folder_path = Path(folder)
    files = sorted(folder_path.glob(pattern))
    
    if not files:
        raise FileNotFoundError(f"No files matching '{pattern}' found in {folder}")
    
    return files


def load_participant(path: Path, aoi_col: str = AOI_COLUMN) -> pd.DataFrame:
    """
    Load the raw recording of a single participant.
    
    Parameters:
    -----------
    path : Path
        Path to the CSV file
    aoi_col : str, optional
        AOI label column, read as text so labels such as "1" stay unchanged
    
    Returns:
    --------
    pd.DataFrame
        Raw rows with an added ``participant`` column
    
    Notes:
    ------
    A zero-byte file is read as a table without rows so that it flows
    through the pipeline as empty data instead of failing in the parser.
    """
    path = Path(path)
    
    try:
        df = pd.read_csv(path, dtype={aoi_col: str})
    except pd.errors.EmptyDataError:
        logger.warning("File %s is empty", path)
        df = pd.DataFrame(columns=[X_COLUMN, Y_COLUMN, aoi_col, TIME_COLUMN])
    
    df['participant'] = participant_id(path)
    logger.debug('load_participant %s shape: %s', path.name, df.shape)
    return df


def load_learning_gain(path: str) -> pd.DataFrame:
    """
    Load learning-gain data.

    The file needs ``participant``, ``pre_score`` and ``post_score`` columns;
    the returned frame holds ``participant`` and ``gain = post_score - pre_score``.
    Participant ids are kept as text ("001" stays "001"). Rows with
    non-numeric scores keep a NaN gain so the join can report them.
    """
    df = pd.read_csv(path, dtype={'participant': str})
    missing = [col for col in GAIN_COLUMNS if col not in df.columns]
    if missing:
        raise SchemaError(missing, source=str(path))

    gains = pd.DataFrame({
        'participant': df['participant'].astype(str).str.strip(),
        'gain': pd.to_numeric(df['post_score'], errors='coerce')
                - pd.to_numeric(df['pre_score'], errors='coerce'),
    })
    invalid = gains['gain'].isna()
    if invalid.any():
        logger.warning("%d learning-gain row(s) with non-numeric scores", int(invalid.sum()))
    return gains


def save_table(df: pd.DataFrame, output_path: str) -> None:
    """Write a result table as CSV, creating its folder when needed."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
