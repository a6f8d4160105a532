# ========================
# tests/test_cleaning.py
# ========================

import unittest
import sys
import os
from datetime import datetime, timedelta

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.bikeshare.cleaning import TripCleaner
from src.bikeshare.errors import MissingColumn, ParseError
from src.bikeshare.ingestion import SOURCE_FILE_KEY, SOURCE_LINE_KEY
from src.bikeshare.records import SOURCE_COLUMNS, DAY_NAMES, DAY_NUMBERS, TripRecord, day_name
from trip_fixtures import MONDAY, SATURDAY, make_row


class TestTripCleaner(unittest.TestCase):

    def setUp(self):
        self.cleaner = TripCleaner()

    def test_cleaner_valid_record(self):
        """
        Tests cleaning logic with a valid ride.
        """
        row = make_row('ABC123', MONDAY, 12.5, user_type=' Casual ', rideable_type='electric_bike')

        record = self.cleaner.clean_record(row)

        self.assertIsInstance(record, TripRecord)
        self.assertEqual(record.user_type, 'casual')
        self.assertEqual(record.rideable_type, 'electric_bike')
        self.assertEqual(record.started_at, datetime(2022, 7, 4, 8, 30, 0))
        self.assertEqual(record.day, 'Monday')
        self.assertEqual(record.day_number, 2)
        self.assertEqual(record.month, 'July')
        self.assertAlmostEqual(record.ride_length, 12.5)
        self.assertAlmostEqual(record.start_lat, 41.892278)

    def test_fractional_minutes_kept(self):
        """Ride length keeps seconds as a fraction of a minute."""
        row = make_row('A', MONDAY, 0)
        row['ended_at'] = '2022-07-04 08:31:15'

        record = self.cleaner.clean_record(row)
        self.assertEqual(record.ride_length, 1.25)

    def test_user_type_column_renamed(self):
        """The member_casual value ends up in user_type and nowhere else."""
        record = self.cleaner.clean_record(make_row('A', MONDAY, 5, user_type='member'))
        row = record.to_row()

        self.assertEqual(row['user_type'], 'member')
        self.assertNotIn('member_casual', row)

    def test_missing_user_type_column(self):
        """A header without member_casual raises MissingColumn."""
        header = [c for c in SOURCE_COLUMNS if c != 'member_casual']

        with self.assertRaises(MissingColumn) as ctx:
            self.cleaner.check_columns(header, '202207-divvy-tripdata.csv')

        self.assertEqual(ctx.exception.column, 'member_casual')
        self.assertIn('202207-divvy-tripdata.csv', str(ctx.exception))

    def test_missing_timestamp_column(self):
        header = [c for c in SOURCE_COLUMNS if c != 'ended_at']
        with self.assertRaises(MissingColumn):
            self.cleaner.check_columns(header)

    def test_already_renamed_header_accepted(self):
        """A previously cleaned file, with user_type instead of member_casual, passes."""
        header = ['user_type' if c == 'member_casual' else c for c in SOURCE_COLUMNS]
        self.cleaner.check_columns(header)

    def test_malformed_timestamp_aborts(self):
        """Under the default policy a bad timestamp raises ParseError with its location."""
        row = make_row('A', MONDAY, 5, started_at='07/04/2022 8:30')
        row[SOURCE_FILE_KEY] = '202207-divvy-tripdata.csv'
        row[SOURCE_LINE_KEY] = 17

        with self.assertRaises(ParseError) as ctx:
            self.cleaner.clean_record(row)

        error = ctx.exception
        self.assertEqual(error.column, 'started_at')
        self.assertEqual(error.line, 17)
        self.assertIn('202207-divvy-tripdata.csv', str(error))
        self.assertIn('line 17', str(error))

    def test_malformed_timestamp_skipped(self):
        """Under the 'skip' policy bad rows are dropped and counted."""
        cleaner = TripCleaner(on_parse_error='skip')
        rows = [
            make_row('A', MONDAY, 5),
            make_row('B', MONDAY, 5, ended_at=''),
            make_row('C', MONDAY, 5, start_lat='north-ish'),
        ]

        cleaned = cleaner.clean_chunk(rows)
        stats = cleaner.get_statistics()

        self.assertEqual([r.ride_id for r in cleaned], ['A'])
        self.assertEqual(stats['records_unparsable'], 2)
        self.assertEqual(stats['records_dropped'], 2)
        self.assertEqual(stats['negative_duration'], 0)

    def test_invalid_policy(self):
        with self.assertRaises(ValueError):
            TripCleaner(on_parse_error='ignore')

    def test_unknown_user_type(self):
        with self.assertRaises(ParseError) as ctx:
            self.cleaner.clean_record(make_row('A', MONDAY, 5, user_type='subscriber'))
        self.assertEqual(ctx.exception.column, 'member_casual')

    def test_timestamp_variants(self):
        """Fractional seconds and ISO 'T' separators are accepted."""
        test_values = [
            ('2022-07-04 08:30:00', datetime(2022, 7, 4, 8, 30, 0)),
            ('2022-07-04 08:30:00.250000', datetime(2022, 7, 4, 8, 30, 0, 250000)),
            ('2022-07-04T08:30:00', datetime(2022, 7, 4, 8, 30, 0)),
        ]
        for value, expected in test_values:
            row = make_row('A', MONDAY, 5, started_at=value)
            self.assertEqual(self.cleaner._parse_timestamp(row, 'started_at'), expected, f"Failed for: {value}")

    def test_empty_station_and_coordinates(self):
        """Empty station fields and coordinates become None instead of failing."""
        row = make_row('A', MONDAY, 5, start_station_name='', start_station_id='  ', end_lat='', end_lng='NA')

        record = self.cleaner.clean_record(row)

        self.assertIsNone(record.start_station_name)
        self.assertIsNone(record.start_station_id)
        self.assertIsNone(record.end_lat)
        self.assertIsNone(record.end_lng)
        self.assertEqual(record.to_row()['end_lat'], '')


class TestDurationFilter(unittest.TestCase):

    def test_negative_and_excessive_counted_separately(self):
        """
        5 rides ending before they start and 3 lasting over a day among 100:
        both classes are counted on their own and 92 rides remain.
        """
        cleaner = TripCleaner(anomaly_examples_limit=2)
        rows = []
        for i in range(100):
            if i < 5:
                minutes = -(i + 1)
            elif i < 8:
                minutes = 1440 + i * 10
            else:
                minutes = 5 + i % 30
            rows.append(make_row(f'R{i:03d}', MONDAY + timedelta(hours=i), minutes))

        cleaned = cleaner.clean_chunk(rows)
        stats = cleaner.get_statistics()

        self.assertEqual(stats['negative_duration'], 5)
        self.assertEqual(stats['excessive_duration'], 3)
        self.assertEqual(stats['records_cleaned'], 92)
        self.assertEqual(len(cleaned), 92)
        self.assertEqual(len(cleaner.negative_examples), 2)
        self.assertEqual(len(cleaner.excessive_examples), 2)
        self.assertEqual(cleaner.negative_examples[0]['anomaly'], 'non-positive duration')

    def test_filter_postcondition(self):
        """Every kept ride satisfies 0 < ride_length < 1440."""
        cleaner = TripCleaner()
        minutes = [-30, -0.01, 0, 0.01, 1, 59.5, 720, 1439.99, 1440, 1440.01, 5000]
        rows = [make_row(f'R{i}', SATURDAY, m) for i, m in enumerate(minutes)]

        cleaned = cleaner.clean_chunk(rows)

        self.assertTrue(all(0 < r.ride_length < 1440 for r in cleaned))
        self.assertEqual(len(cleaned), 5)
        self.assertEqual(cleaner.negative_duration, 3)  # zero counts as non-positive
        self.assertEqual(cleaner.excessive_duration, 3)

    def test_custom_max_ride_length(self):
        cleaner = TripCleaner(max_ride_length=60)
        cleaned = cleaner.clean_chunk([make_row('A', MONDAY, 59), make_row('B', MONDAY, 61)])
        self.assertEqual([r.ride_id for r in cleaned], ['A'])
        self.assertEqual(cleaner.excessive_duration, 1)


class TestDayNumbers(unittest.TestCase):

    def test_day_number_bijection(self):
        """The seven weekday names map one-to-one onto 1..7, Sunday first."""
        self.assertEqual(sorted(DAY_NUMBERS.values()), list(range(1, 8)))
        self.assertEqual(set(DAY_NUMBERS), set(DAY_NAMES))
        self.assertEqual(DAY_NUMBERS['Sunday'], 1)
        self.assertEqual(DAY_NUMBERS['Saturday'], 7)

    def test_day_number_consistent_across_months(self):
        """Every date in a 13-month window gets the same number for the same day name."""
        cleaner = TripCleaner()
        seen = {}
        day = datetime(2022, 7, 1, 12, 0, 0)
        while day < datetime(2023, 8, 1):
            record = cleaner.clean_record(make_row('A', day, 10))
            seen.setdefault(record.day, set()).add(record.day_number)
            self.assertEqual(record.day, day_name(day))
            day += timedelta(days=1)

        self.assertEqual(len(seen), 7)
        self.assertTrue(all(len(numbers) == 1 for numbers in seen.values()))
        self.assertEqual(sorted(n for numbers in seen.values() for n in numbers), list(range(1, 8)))

    def test_known_dates(self):
        self.assertEqual(day_name(datetime(2022, 7, 1)), 'Friday')
        self.assertEqual(day_name(datetime(2023, 1, 1)), 'Sunday')
        self.assertEqual(day_name(datetime(2023, 7, 1)), 'Saturday')


if __name__ == '__main__':
    unittest.main()
