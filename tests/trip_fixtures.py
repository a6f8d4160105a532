# ========================
# tests/trip_fixtures.py
# ========================

"""Helpers for building small trip-data CSV files in tests."""

import csv
import os
import sys
from datetime import datetime, timedelta

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.bikeshare.records import SOURCE_COLUMNS, format_timestamp

# 2022-07-04 was a Monday; 2022-07-09 a Saturday
MONDAY = datetime(2022, 7, 4, 8, 30, 0)
SATURDAY = datetime(2022, 7, 9, 14, 0, 0)


def make_row(ride_id, start, minutes, user_type='member',
             rideable_type='classic_bike', **overrides):
    """Build a raw CSV row dict for a ride of ``minutes`` minutes."""
    ended_at = start + timedelta(minutes=minutes)
    row = {
        'ride_id': ride_id,
        'rideable_type': rideable_type,
        'started_at': format_timestamp(start),
        'ended_at': format_timestamp(ended_at),
        'start_station_name': 'Streeter Dr & Grand Ave',
        'start_station_id': '13022',
        'end_station_name': 'Michigan Ave & Oak St',
        'end_station_id': '13042',
        'start_lat': '41.892278',
        'start_lng': '-87.612043',
        'end_lat': '41.90096',
        'end_lng': '-87.623777',
        'member_casual': user_type,
    }
    row.update(overrides)
    return row


def write_trip_csv(file_path, rows, columns=None):
    """Write rows to a CSV with the standard trip-data header."""
    columns = columns or SOURCE_COLUMNS
    with open(file_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=columns, extrasaction='ignore')
        writer.writeheader()
        writer.writerows(rows)
    return str(file_path)
