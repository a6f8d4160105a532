# ========================
# src/bikeshare/storage.py
# ========================

"""
Data Storage Module

Writes the combined cleaned dataset and the aggregated tables consumed by
the reporting and charting tools.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Any

from .records import OUTPUT_COLUMNS, TripRecord

logger = logging.getLogger(__name__)

COMBINED_DATA_FILE = "combined_data.csv"


class CombinedDataWriter:
    """
    Streams cleaned records to a single CSV holding the original columns
    plus the derived ones. Use as a context manager.

    Rows go to a ``.partial`` file that replaces ``file_path`` only when the
    block exits cleanly; an aborted run leaves no combined file behind.
    """

    def __init__(self, file_path):
        self.file_path = Path(file_path)
        self.partial_path = self.file_path.with_name(self.file_path.name + '.partial')
        self.rows_written = 0
        self._file = None
        self._writer = None

    def __enter__(self) -> 'CombinedDataWriter':
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.partial_path, 'w', newline='', encoding='utf-8')
        self._writer = csv.DictWriter(self._file, fieldnames=OUTPUT_COLUMNS)
        self._writer.writeheader()
        logger.info(f"Writing combined cleaned data to {self.file_path}")
        return self

    def write_records(self, records: Iterable[TripRecord]) -> None:
        for record in records:
            self._writer.writerow(record.to_row())
            self.rows_written += 1

    def __exit__(self, exc_type, exc_value, traceback):
        self._file.close()
        if exc_type is None:
            self.partial_path.replace(self.file_path)
            logger.info(f"Saved {self.rows_written} cleaned records to {self.file_path}")
        else:
            self.partial_path.unlink(missing_ok=True)
            self.file_path.unlink(missing_ok=True)
            logger.warning(f"Run aborted: discarded combined data after {self.rows_written} records")
        return False


class TripDataSaver:
    """
    Saves the aggregated data from the TripAggregator to CSV and JSON files.
    """

    def __init__(self, output_dir: str = "data/processed"):
        """
        Initialize the data saver.

        Args:
            output_dir (str): Directory to save output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"TripDataSaver initialized with output directory: {self.output_dir}")

    @property
    def combined_data_path(self) -> Path:
        return self.output_dir / COMBINED_DATA_FILE

    def save_all_data(self, aggregator, cleaner) -> Dict[str, str]:
        """
        Save all aggregated data to files.

        Args:
            aggregator: TripAggregator instance with processed data
            cleaner: TripCleaner instance holding the anomaly counts

        Returns:
            dict: Mapping of data type to saved file path
        """
        saved_files = {}

        try:
            saved_files['rides_by_user_type'] = self.save_grouped_stats(
                aggregator, ('user_type',), "rides_by_user_type.csv")
            saved_files['rides_by_user_type_and_day'] = self.save_grouped_stats(
                aggregator, ('user_type', 'day'), "rides_by_user_type_and_day.csv")
            saved_files['rides_by_user_type_and_month'] = self.save_grouped_stats(
                aggregator, ('user_type', 'month'), "rides_by_user_type_and_month.csv")
            saved_files['rides_by_rideable_type'] = self.save_grouped_stats(
                aggregator, ('user_type', 'rideable_type'), "rides_by_rideable_type.csv")
            saved_files['rides_by_month_chart'] = self.save_month_chart_data(aggregator.rides_by_month())
            saved_files['weekday_weekend_share'] = self.save_shares(aggregator.get_shares())
            saved_files['duration_anomalies'] = self.save_duration_anomalies(
                cleaner.negative_examples + cleaner.excessive_examples)

            summary = {
                **aggregator.get_aggregation_summary(),
                'data_quality': cleaner.get_statistics(),
                'shares': aggregator.get_shares()
            }
            saved_files['summary'] = self._save_summary(summary)

            logger.info(f"All data saved successfully to {len(saved_files)} files")
            return saved_files

        except OSError as e:
            logger.error(f"Error saving data: {e}")
            raise

    def save_grouped_stats(self, aggregator, keys, file_name: str) -> str:
        """Save ride count and ride length statistics grouped by ``keys``."""
        file_path = self.output_dir / file_name
        headers = list(keys) + ['ride_count', 'mean_ride_length', 'min_ride_length', 'max_ride_length']
        rows = [
            {**dict(zip(keys, group)), **stats}
            for group, stats in aggregator.duration_stats_by(keys).items()
        ]
        self._write_csv(file_path, headers, rows)
        return str(file_path)

    def save_month_chart_data(self, data: List[Dict[str, Any]]) -> str:
        """Save the long-form month / user type ride counts for bar charts."""
        file_path = self.output_dir / "rides_by_month_chart.csv"
        self._write_csv(file_path, ['year', 'month', 'user_type', 'ride_count'], data)
        return str(file_path)

    def save_shares(self, shares: Dict[str, Dict[str, float]]) -> str:
        """Save weekday and weekend ride shares per user type."""
        file_path = self.output_dir / "weekday_weekend_share.csv"
        rows = [{'user_type': k, **v} for k, v in shares.items()]
        self._write_csv(file_path, ['user_type', 'weekday_share', 'weekend_share'], rows)
        return str(file_path)

    def save_duration_anomalies(self, data: List[Dict[str, Any]]) -> str:
        """Save example rows removed for a non-positive or excessive duration."""
        file_path = self.output_dir / "duration_anomalies.csv"
        headers = ['anomaly', 'source_file', 'source_line'] + OUTPUT_COLUMNS

        if not data:
            logger.info("No duration anomalies to save")

        self._write_csv(file_path, headers, data)
        return str(file_path)

    def _save_summary(self, summary_data: Dict) -> str:
        """Save aggregation summary as JSON."""
        file_path = self.output_dir / "aggregation_summary.json"

        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(summary_data, f, indent=2, ensure_ascii=False)

        logger.info(f"Summary saved to {file_path}")
        return str(file_path)

    def _write_csv(self, file_path: Path, headers: List[str], data_items: List[Dict]) -> None:
        """Write data to CSV file."""
        try:
            with open(file_path, 'w', newline='', encoding='utf-8') as f:
                writer = csv.DictWriter(f, fieldnames=headers)
                writer.writeheader()
                writer.writerows(data_items)

            logger.info(f"Saved {len(data_items)} records to {file_path}")

        except OSError as e:
            logger.error(f"Error writing CSV file {file_path}: {e}")
            raise

    def create_data_dictionary(self) -> str:
        """Create a data dictionary explaining all output files."""
        file_path = self.output_dir / "DATA_DICTIONARY.md"

        content = """# Data Dictionary

Files generated by the bike-share usage pipeline. Ride lengths are in minutes.

## combined_data.csv
All cleaned rides from every monthly file, oldest month first.

| Column | Type | Description |
|--------|------|-------------|
| ride_id | string | Unique ride identifier |
| rideable_type | string | classic_bike, electric_bike or docked_bike |
| started_at / ended_at | datetime | YYYY-MM-DD HH:MM:SS |
| start_station_name / _id | string | May be empty |
| end_station_name / _id | string | May be empty |
| start_lat / start_lng / end_lat / end_lng | float | May be empty |
| user_type | string | member or casual (source column member_casual) |
| day | string | Weekday name of started_at |
| day_number | integer | Sunday=1 .. Saturday=7 |
| month | string | Month name of started_at |
| ride_length | float | ended_at - started_at in minutes |

## rides_by_user_type*.csv, rides_by_rideable_type.csv
One row per group with ride_count, mean_ride_length, min_ride_length and
max_ride_length.

## rides_by_month_chart.csv
Long-form year, month, user_type, ride_count rows for comparative bar charts,
in calendar order. The year keeps July 2022 and July 2023 on separate bars.

## weekday_weekend_share.csv
Percentage of Monday-Friday and Saturday-Sunday rides taken by each user type.

## duration_anomalies.csv
Example rides removed because their duration was zero or negative, or one
day or longer. Full counts are in aggregation_summary.json.

## aggregation_summary.json
Record counts, data-quality statistics and shares for the run.

## Data Quality Notes

- Only rides with 0 < ride_length < 1440 are kept
- Grouped tables by month merge the same month of different years;
  rides_by_month_chart.csv keeps them apart by year
- Files are concatenated without deduplication
"""

        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(content)

        logger.info(f"Data dictionary created at {file_path}")
        return str(file_path)
