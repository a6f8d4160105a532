# ========================
# src/bikeshare/cleaning.py
# ========================

"""
Data Cleaning Module

Turns raw trip rows into typed TripRecord objects and filters out rides
whose duration is not plausible.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Any

from .errors import MissingColumn, ParseError
from .ingestion import SOURCE_FILE_KEY, SOURCE_LINE_KEY
from .records import (
    TripRecord, USER_TYPES, USER_TYPE_SOURCE_COLUMN,
    STATION_COLUMNS, COORDINATE_COLUMNS, TIMESTAMP_FORMAT
)

logger = logging.getLogger(__name__)

ABORT = 'abort'
SKIP = 'skip'
PARSE_ERROR_POLICIES = (ABORT, SKIP)

MINUTES_PER_DAY = 1440.0


class TripCleaner:
    """
    Applies the cleaning rules to raw trip rows.

    Rows with a malformed timestamp, coordinate or user type either abort the
    run or are skipped and counted, depending on ``on_parse_error``. Rides
    with a non-positive or excessive duration are always dropped, and the two
    cases are counted separately.
    """

    REQUIRED_COLUMNS = ['ride_id', 'rideable_type', 'started_at', 'ended_at']

    TIMESTAMP_FORMATS = [
        TIMESTAMP_FORMAT,
        "%Y-%m-%d %H:%M:%S.%f",
        "%Y-%m-%dT%H:%M:%S",
        "%Y-%m-%dT%H:%M:%S.%f",
    ]

    def __init__(self,
                 user_type_column: str = USER_TYPE_SOURCE_COLUMN,
                 max_ride_length: float = MINUTES_PER_DAY,
                 on_parse_error: str = ABORT,
                 anomaly_examples_limit: int = 5):
        """
        Initialize the trip cleaner.

        Args:
            user_type_column (str): Source column renamed to 'user_type'
            max_ride_length (float): Rides this long or longer (minutes) are dropped
            on_parse_error (str): 'abort' to raise ParseError, 'skip' to drop the row
            anomaly_examples_limit (int): Example rows kept per anomaly class
        """
        if on_parse_error not in PARSE_ERROR_POLICIES:
            raise ValueError(f"on_parse_error must be one of {PARSE_ERROR_POLICIES}, got {on_parse_error!r}")

        self.user_type_column = user_type_column
        self.max_ride_length = float(max_ride_length)
        self.on_parse_error = on_parse_error
        self.anomaly_examples_limit = anomaly_examples_limit

        self.records_processed = 0
        self.records_unparsable = 0
        self.negative_duration = 0
        self.excessive_duration = 0
        self.negative_examples: List[Dict[str, Any]] = []
        self.excessive_examples: List[Dict[str, Any]] = []

        logger.info(
            f"TripCleaner initialized: user type column '{user_type_column}', "
            f"max ride length {self.max_ride_length} min, parse errors -> {on_parse_error}"
        )

    def check_columns(self, header: List[str], file_path: Optional[str] = None) -> None:
        """
        Make sure every column the cleaner reads is present.

        Raises:
            MissingColumn: If a required column or the user type column is absent
        """
        for column in self.REQUIRED_COLUMNS:
            if column not in header:
                raise MissingColumn(column, header, file_path)

        if self.user_type_column not in header and 'user_type' not in header:
            raise MissingColumn(self.user_type_column, header, file_path)

    def clean_chunk(self, rows: List[Dict[str, Any]]) -> List[TripRecord]:
        """Clean a chunk of raw rows and return the records that pass validation."""
        cleaned = []
        for row in rows:
            record = self.clean_record(row)
            if record is not None:
                cleaned.append(record)
        return cleaned

    def clean_record(self, row: Dict[str, Any]) -> Optional[TripRecord]:
        """
        Applies all cleaning rules to a single raw row.

        Args:
            row (dict): A dictionary representing a single CSV row.

        Returns:
            TripRecord or None: The cleaned record, or None if the row was
                                filtered out.

        Raises:
            ParseError: If a value is malformed and the policy is 'abort'
        """
        self.records_processed += 1

        try:
            record = self._build_record(row)
        except ParseError as e:
            if self.on_parse_error == ABORT:
                logger.error(str(e))
                raise
            self.records_unparsable += 1
            logger.debug(f"Skipping unparsable row: {e}")
            return None

        if record.ride_length <= 0:
            self.negative_duration += 1
            self._keep_example(self.negative_examples, record, row, 'non-positive duration')
            return None

        if record.ride_length >= self.max_ride_length:
            self.excessive_duration += 1
            self._keep_example(self.excessive_examples, record, row, 'excessive duration')
            return None

        return record

    def _build_record(self, row: Dict[str, Any]) -> TripRecord:
        self._check_encoding(row)

        if self.user_type_column in row:
            user_type = row.get(self.user_type_column)
        else:
            user_type = row.get('user_type')

        fields = {
            'ride_id': (row.get('ride_id') or '').strip(),
            'rideable_type': (row.get('rideable_type') or '').strip(),
            'started_at': self._parse_timestamp(row, 'started_at'),
            'ended_at': self._parse_timestamp(row, 'ended_at'),
            'user_type': self._parse_user_type(row, user_type),
        }
        for column in STATION_COLUMNS:
            fields[column] = self._optional_string(row.get(column))
        for column in COORDINATE_COLUMNS:
            fields[column] = self._parse_coordinate(row, column)

        return TripRecord(**fields)

    def _check_encoding(self, row: Dict[str, Any]) -> None:
        """Reject rows holding bytes that were not valid UTF-8 in the source file."""
        for column, value in row.items():
            if not isinstance(value, str):
                continue
            try:
                value.encode('utf-8')
            except UnicodeEncodeError:
                raise self._parse_error(row, column, value, "invalid UTF-8 bytes")

    def _parse_timestamp(self, row: Dict[str, Any], column: str) -> datetime:
        value = row.get(column)
        if not isinstance(value, str) or not value.strip():
            raise self._parse_error(row, column, value, "missing timestamp")

        text = value.strip()
        for fmt in self.TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        raise self._parse_error(row, column, value, f"expected {TIMESTAMP_FORMAT}")

    def _parse_coordinate(self, row: Dict[str, Any], column: str) -> Optional[float]:
        value = row.get(column)
        if value is None or (isinstance(value, str) and not value.strip()) or value == 'NA':
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            raise self._parse_error(row, column, value, "not a number")

    def _parse_user_type(self, row: Dict[str, Any], value: Any) -> str:
        user_type = value.strip().lower() if isinstance(value, str) else ''
        if user_type not in USER_TYPES:
            raise self._parse_error(row, self.user_type_column, value, f"expected one of {USER_TYPES}")
        return user_type

    @staticmethod
    def _optional_string(value: Any) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()

    @staticmethod
    def _parse_error(row: Dict[str, Any], column: str, value: Any, reason: str) -> ParseError:
        return ParseError(column, value, row.get(SOURCE_FILE_KEY), row.get(SOURCE_LINE_KEY), reason)

    def _keep_example(self, examples: List[Dict[str, Any]], record: TripRecord,
                      row: Dict[str, Any], reason: str) -> None:
        if len(examples) >= self.anomaly_examples_limit:
            return
        example = record.to_row()
        example['anomaly'] = reason
        example['source_file'] = row.get(SOURCE_FILE_KEY, '')
        example['source_line'] = row.get(SOURCE_LINE_KEY, '')
        examples.append(example)

    @property
    def records_dropped(self) -> int:
        return self.records_unparsable + self.negative_duration + self.excessive_duration

    def get_statistics(self) -> Dict[str, Any]:
        """Get cleaning statistics."""
        cleaned = self.records_processed - self.records_dropped
        return {
            'records_processed': self.records_processed,
            'records_dropped': self.records_dropped,
            'records_cleaned': cleaned,
            'records_unparsable': self.records_unparsable,
            'negative_duration': self.negative_duration,
            'excessive_duration': self.excessive_duration,
            'success_rate': cleaned / self.records_processed * 100 if self.records_processed > 0 else 0
        }

    def log_anomaly_summary(self) -> None:
        """Surface the duration anomaly counts and a few examples."""
        logger.warning(f"Rides with non-positive duration removed: {self.negative_duration:,}")
        for example in self.negative_examples:
            logger.warning(f"  e.g. ride {example['ride_id']}: {example['ride_length']:.2f} min")

        logger.warning(
            f"Rides of {self.max_ride_length:.0f} min or longer removed: {self.excessive_duration:,}"
        )
        for example in self.excessive_examples:
            logger.warning(f"  e.g. ride {example['ride_id']}: {example['ride_length']:.2f} min")

        if self.records_unparsable:
            logger.warning(f"Unparsable rows skipped: {self.records_unparsable:,}")
