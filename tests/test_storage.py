# ========================
# tests/test_storage.py
# ========================

import unittest
import csv
import json
import sys
import os
import tempfile
from pathlib import Path

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.bikeshare.errors import ParseError
from src.bikeshare.orchestrator import TripPipeline
from src.bikeshare.records import OUTPUT_COLUMNS, MONTH_NAMES
from src.bikeshare.storage import CombinedDataWriter, TripDataSaver, COMBINED_DATA_FILE
from src.bikeshare.cleaning import TripCleaner
from src.utils.config import Config
from src.utils.data_generator import TripDataGenerator
from trip_fixtures import MONDAY, SATURDAY, make_row, write_trip_csv


def read_csv(file_path):
    with open(file_path, 'r', newline='', encoding='utf-8') as f:
        return list(csv.DictReader(f))


class TestCombinedDataWriter(unittest.TestCase):

    def test_writes_header_and_records(self):
        cleaner = TripCleaner()
        records = cleaner.clean_chunk([make_row('A', MONDAY, 5), make_row('B', SATURDAY, 7.5, user_type='casual')])

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / COMBINED_DATA_FILE
            with CombinedDataWriter(path) as writer:
                writer.write_records(records)

            self.assertEqual(writer.rows_written, 2)
            with open(path, 'r', encoding='utf-8') as f:
                header = next(csv.reader(f))
            self.assertEqual(header, OUTPUT_COLUMNS)

            rows = read_csv(path)
            self.assertEqual(rows[1]['user_type'], 'casual')
            self.assertEqual(rows[1]['day'], 'Saturday')
            self.assertEqual(rows[1]['day_number'], '7')
            self.assertEqual(float(rows[1]['ride_length']), 7.5)

    def test_aborted_block_leaves_no_file(self):
        """An exception inside the block discards the rows written so far."""
        records = TripCleaner().clean_chunk([make_row('A', MONDAY, 5)])

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / COMBINED_DATA_FILE
            with self.assertRaises(RuntimeError):
                with CombinedDataWriter(path) as writer:
                    writer.write_records(records)
                    raise RuntimeError("stop")

            self.assertFalse(path.exists())
            self.assertEqual(list(Path(tmp).iterdir()), [])

    def test_parse_error_abort_removes_combined_file(self):
        """After an aborted run there is no truncated combined file to reload."""
        rows = [make_row(f'R{i}', MONDAY, 5 + i) for i in range(50)]
        rows.append(make_row('BAD', MONDAY, 5, ended_at='x'))

        with tempfile.TemporaryDirectory() as tmp:
            source = write_trip_csv(Path(tmp) / "202207-divvy-tripdata.csv", rows)
            out = Path(tmp) / "out"
            pipeline = TripPipeline([source], str(out), chunk_size=10, config=Config(), write_combined=True)

            with self.assertRaises(ParseError):
                pipeline.run()

            self.assertFalse((out / COMBINED_DATA_FILE).exists())
            self.assertFalse((out / (COMBINED_DATA_FILE + '.partial')).exists())


class TestTripDataSaver(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.tmp = tempfile.TemporaryDirectory()
        cls.dir = Path(cls.tmp.name)
        cls.config = Config({'anomaly_examples_limit': 2})

        cls.generation = TripDataGenerator(seed=5).generate_dataset(
            cls.dir / "raw", start_month="2022-12", months=2, rows_per_month=250, anomaly_rate=0.04
        )
        cls.pipeline = TripPipeline(cls.generation['files'], str(cls.dir / "out"), chunk_size=100,
                                    config=cls.config, write_combined=True)
        cls.results = cls.pipeline.run()

    @classmethod
    def tearDownClass(cls):
        cls.tmp.cleanup()

    def test_combined_data_round_trip(self):
        """
        Reloading the combined file gives the same rides and the same
        aggregates as the original monthly files.
        """
        combined = self.results['saved_files']['combined_data']
        reloaded = TripPipeline([combined], str(self.dir / "out2"), chunk_size=100, config=self.config,
                                write_combined=False, user_type_column='user_type')
        results = reloaded.run()

        original = self.pipeline.aggregator
        self.assertEqual(results['data_quality_stats']['records_cleaned'],
                         self.results['data_quality_stats']['records_cleaned'])
        self.assertEqual(results['data_quality_stats']['records_dropped'], 0)
        for keys in [('user_type',), ('user_type', 'day'), ('user_type', 'month'), ('rideable_type',)]:
            self.assertEqual(reloaded.aggregator.count_by(keys), original.count_by(keys))
            self.assertEqual(reloaded.aggregator.mean_duration_by(keys), original.mean_duration_by(keys))

    def test_month_chart_data(self):
        """Chart rows are long form, in calendar order, and add up to the kept rides."""
        rows = read_csv(self.results['saved_files']['rides_by_month_chart'])

        self.assertEqual(list(rows[0].keys()), ['year', 'month', 'user_type', 'ride_count'])
        periods = [(int(r['year']), MONTH_NAMES.index(r['month'])) for r in rows]
        self.assertEqual(periods, sorted(periods))
        self.assertEqual({(r['year'], r['month']) for r in rows}, {('2022', 'December'), ('2023', 'January')})
        self.assertEqual(sum(int(r['ride_count']) for r in rows),
                         self.results['data_quality_stats']['records_cleaned'])

    def test_grouped_stats_file(self):
        rows = read_csv(self.results['saved_files']['rides_by_user_type_and_day'])

        self.assertEqual(list(rows[0].keys()),
                         ['user_type', 'day', 'ride_count', 'mean_ride_length', 'min_ride_length', 'max_ride_length'])
        for row in rows:
            self.assertGreater(float(row['min_ride_length']), 0)
            self.assertLess(float(row['max_ride_length']), 1440)

    def test_duration_anomalies_file(self):
        """At most the configured number of examples per class, with their source location."""
        rows = read_csv(self.results['saved_files']['duration_anomalies'])

        self.assertEqual(len(rows), 4)
        self.assertEqual(sorted({r['anomaly'] for r in rows}), ['excessive duration', 'non-positive duration'])
        for row in rows:
            self.assertTrue(row['source_file'].endswith('-divvy-tripdata.csv'))
            self.assertGreater(int(row['source_line']), 1)

    def test_summary_json(self):
        with open(self.results['saved_files']['summary'], 'r', encoding='utf-8') as f:
            summary = json.load(f)

        quality = summary['data_quality']
        self.assertEqual(quality['negative_duration'], self.generation['negative_rows'])
        self.assertEqual(quality['excessive_duration'], self.generation['excessive_rows'])
        self.assertEqual(sum(summary['rides_by_user_type'].values()), quality['records_cleaned'])
        self.assertAlmostEqual(
            summary['shares']['casual']['weekday_share'] + summary['shares']['member']['weekday_share'], 100.0
        )

    def test_data_dictionary(self):
        path = Path(self.results['saved_files']['data_dictionary'])
        content = path.read_text(encoding='utf-8')

        self.assertTrue(content.startswith('# Data Dictionary'))
        self.assertIn('day_number', content)
        self.assertIn('rides_by_month_chart.csv', content)

    def test_empty_anomalies_still_written(self):
        with tempfile.TemporaryDirectory() as tmp:
            saver = TripDataSaver(tmp)
            path = saver.save_duration_anomalies([])
            self.assertEqual(read_csv(path), [])
            self.assertTrue(Path(path).exists())


if __name__ == '__main__':
    unittest.main()
