# ========================
# src/bikeshare/errors.py
# ========================

"""
Pipeline Errors

Hard failures detected while loading or cleaning trip data. Any of these
aborts the run: aggregates over an incomplete dataset are not meaningful.
"""

from typing import List, Optional


class PipelineError(Exception):
    """Base class for errors that abort a pipeline run."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        self.file_path = file_path
        super().__init__(message)


class SchemaMismatch(PipelineError):
    """An input file's header differs from the first file's header."""

    def __init__(self, file_path: str, expected: List[str], actual: List[str]):
        self.expected = list(expected)
        self.actual = list(actual or [])
        missing = [c for c in self.expected if c not in self.actual]
        unexpected = [c for c in self.actual if c not in self.expected]

        if not self.actual:
            detail = "file has no header row"
        elif missing or unexpected:
            detail = f"missing columns {missing}, unexpected columns {unexpected}"
        else:
            detail = "columns are in a different order"

        super().__init__(f"Schema mismatch in '{file_path}': {detail}", file_path)


class MissingColumn(PipelineError):
    """A column the cleaner needs is absent from the loaded data."""

    def __init__(self, column: str, available: List[str], file_path: Optional[str] = None):
        self.column = column
        self.available = list(available or [])
        location = f" in '{file_path}'" if file_path else ""
        super().__init__(
            f"Required column '{column}' not found{location}; available columns: {self.available}",
            file_path
        )


class ParseError(PipelineError):
    """A timestamp, coordinate or user type value could not be parsed."""

    def __init__(self, column: str, value, file_path: Optional[str] = None,
                 line: Optional[int] = None, reason: str = "unparsable value"):
        self.column = column
        self.value = value
        self.line = line
        location = ""
        if file_path:
            location += f" in '{file_path}'"
        if line is not None:
            location += f" at line {line}"
        super().__init__(f"Cannot parse column '{column}'{location}: {value!r} ({reason})", file_path)
