# ========================
# src/bikeshare/records.py
# ========================

"""
Trip Record Model

Typed representation of a single bike rental plus the calendar and duration
fields derived from its timestamps.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional, Any

# Column layout of the monthly trip-data exports
SOURCE_COLUMNS = [
    'ride_id', 'rideable_type', 'started_at', 'ended_at',
    'start_station_name', 'start_station_id', 'end_station_name', 'end_station_id',
    'start_lat', 'start_lng', 'end_lat', 'end_lng', 'member_casual'
]

USER_TYPE_SOURCE_COLUMN = 'member_casual'
USER_TYPES = ('casual', 'member')

# Columns of the combined cleaned dataset
BASE_COLUMNS = [c if c != USER_TYPE_SOURCE_COLUMN else 'user_type' for c in SOURCE_COLUMNS]
DERIVED_COLUMNS = ['day', 'day_number', 'month', 'ride_length']
OUTPUT_COLUMNS = BASE_COLUMNS + DERIVED_COLUMNS

STATION_COLUMNS = ['start_station_name', 'start_station_id', 'end_station_name', 'end_station_id']
COORDINATE_COLUMNS = ['start_lat', 'start_lng', 'end_lat', 'end_lng']

# Sunday=1 .. Saturday=7
DAY_NAMES = ('Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday')
DAY_NUMBERS = {name: number for number, name in enumerate(DAY_NAMES, start=1)}
WEEKDAYS = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday')
WEEKEND = ('Saturday', 'Sunday')

MONTH_NAMES = ('January', 'February', 'March', 'April', 'May', 'June', 'July',
               'August', 'September', 'October', 'November', 'December')

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def day_name(timestamp: datetime) -> str:
    """English weekday name, independent of the process locale."""
    # datetime.weekday() is Monday=0 .. Sunday=6
    return DAY_NAMES[(timestamp.weekday() + 1) % 7]


def month_name(timestamp: datetime) -> str:
    return MONTH_NAMES[timestamp.month - 1]


MICROSECONDS_PER_MINUTE = 60 * 1000000


def ride_duration_microseconds(started_at: datetime, ended_at: datetime) -> int:
    """Exact ride duration; negative when the ride ends before it starts."""
    return (ended_at - started_at) // timedelta(microseconds=1)


def ride_length_minutes(started_at: datetime, ended_at: datetime) -> float:
    """Ride duration in minutes, fractional minutes kept."""
    return ride_duration_microseconds(started_at, ended_at) / MICROSECONDS_PER_MINUTE


def format_timestamp(value: datetime) -> str:
    if value.microsecond:
        return value.strftime(TIMESTAMP_FORMAT + ".%f")
    return value.strftime(TIMESTAMP_FORMAT)


@dataclass
class TripRecord:
    """One bike rental event with its derived fields."""

    ride_id: str
    rideable_type: str
    started_at: datetime
    ended_at: datetime
    user_type: str
    start_station_name: Optional[str] = None
    start_station_id: Optional[str] = None
    end_station_name: Optional[str] = None
    end_station_id: Optional[str] = None
    start_lat: Optional[float] = None
    start_lng: Optional[float] = None
    end_lat: Optional[float] = None
    end_lng: Optional[float] = None
    day: str = field(init=False)
    day_number: int = field(init=False)
    month: str = field(init=False)
    ride_length: float = field(init=False)

    def __post_init__(self):
        self.day = day_name(self.started_at)
        self.day_number = DAY_NUMBERS[self.day]
        self.month = month_name(self.started_at)
        self.ride_length = ride_length_minutes(self.started_at, self.ended_at)

    @property
    def duration_microseconds(self) -> int:
        return ride_duration_microseconds(self.started_at, self.ended_at)

    @property
    def year(self) -> int:
        return self.started_at.year

    def to_row(self) -> Dict[str, Any]:
        """Flatten the record into a row for the combined CSV output."""
        row = {}
        for column in OUTPUT_COLUMNS:
            value = getattr(self, column)
            if isinstance(value, datetime):
                value = format_timestamp(value)
            elif value is None:
                value = ''
            row[column] = value
        return row
