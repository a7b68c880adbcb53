"""
Errors raised while loading and analysing gaze recordings.
"""


class GazeAnalysisError(Exception):
    """Base class for all pipeline errors."""


class SchemaError(GazeAnalysisError):
    """A required column is missing from an input table."""

    def __init__(self, missing, source=None):
        self.missing = list(missing)
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Missing required column(s){where}: {', '.join(self.missing)}")

    def __reduce__(self):
        return type(self), (self.missing, self.source)


class EmptyDataError(GazeAnalysisError):
    """No valid gaze samples remain after filtering."""


class InvalidParameterError(GazeAnalysisError, ValueError):
    """A clustering, window or sampling parameter is out of range."""


class JoinMismatchError(GazeAnalysisError):
    """
    Participants were dropped while joining summaries with learning-gain data.

    This is recorded in the batch report rather than raised.
    """

    def __init__(self, missing_gain, missing_summary, invalid_gain=(), duplicate_gain=()):
        self.missing_gain = sorted(missing_gain)
        self.missing_summary = sorted(missing_summary)
        self.invalid_gain = sorted(invalid_gain)
        self.duplicate_gain = sorted(duplicate_gain)
        super().__init__(
            f"{len(self.missing_gain)} participant(s) without learning-gain data, "
            f"{len(self.missing_summary)} learning-gain row(s) without a summary, "
            f"{len(self.invalid_gain)} learning-gain row(s) with non-numeric scores, "
            f"{len(self.duplicate_gain)} duplicate learning-gain row(s)"
        )

    def __reduce__(self):
        return type(self), (self.missing_gain, self.missing_summary,
                            self.invalid_gain, self.duplicate_gain)

    @property
    def dropped(self) -> int:
        """Rows dropped from either table."""
        return (len(self.missing_gain) + len(self.missing_summary)
                + len(self.invalid_gain) + len(self.duplicate_gain))
