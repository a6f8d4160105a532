# ========================
# src/utils/data_generator.py
# ========================

"""
Data Generation Utilities

Writes synthetic monthly trip-data exports with realistic member and casual
riding patterns and a controlled number of bad durations.
"""

import csv
import random
import logging
from calendar import monthrange
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Dict, Any, Optional

from ..bikeshare.records import SOURCE_COLUMNS, format_timestamp

logger = logging.getLogger(__name__)


class TripDataGenerator:
    """
    Generator for realistic test trip datasets, one CSV per month.
    """

    def __init__(self, seed: Optional[int] = None, source: str = "divvy"):
        """
        Initialize data generator.

        Args:
            seed (int): Random seed for reproducible data generation
            source (str): Operator name used in file names
        """
        self.random = random.Random(seed)
        self.source = source
        self._initialize_data_patterns()
        logger.info(f"TripDataGenerator initialized with seed: {seed}")

    def _initialize_data_patterns(self) -> None:
        """Initialize stations, bike types and seasonal patterns."""
        self.stations = [
            {"name": "Streeter Dr & Grand Ave", "id": "13022", "lat": 41.892278, "lng": -87.612043},
            {"name": "DuSable Lake Shore Dr & Monroe St", "id": "13300", "lat": 41.880958, "lng": -87.616743},
            {"name": "Michigan Ave & Oak St", "id": "13042", "lat": 41.900960, "lng": -87.623777},
            {"name": "Clinton St & Washington Blvd", "id": "WL-012", "lat": 41.883380, "lng": -87.641170},
            {"name": "Kingsbury St & Kinzie St", "id": "KA1503000043", "lat": 41.889177, "lng": -87.638506},
            {"name": "Wells St & Concord Ln", "id": "TA1308000050", "lat": 41.912133, "lng": -87.634656},
            {"name": "University Ave & 57th St", "id": "KA1503000071", "lat": 41.791478, "lng": -87.599861},
            {"name": "Ellis Ave & 60th St", "id": "KA1503000014", "lat": 41.785097, "lng": -87.601073},
        ]

        # (bike type, weight for members, weight for casual riders)
        self.rideable_types = [
            ("classic_bike", 0.55, 0.45),
            ("electric_bike", 0.45, 0.45),
            ("docked_bike", 0.0, 0.10),
        ]

        # Month -> share of rides taken by casual riders on weekdays
        self.casual_share_by_month = {
            1: 0.15, 2: 0.15, 3: 0.22, 4: 0.28, 5: 0.36, 6: 0.42,
            7: 0.44, 8: 0.42, 9: 0.36, 10: 0.30, 11: 0.22, 12: 0.16
        }

    def generate_month(self,
                       file_path: str,
                       year: int,
                       month: int,
                       num_rows: int,
                       negative_rows: int = 0,
                       excessive_rows: int = 0) -> Dict[str, Any]:
        """
        Generate one monthly export.

        Args:
            file_path (str): Output CSV file path
            year (int): Year of the rides
            month (int): Month of the rides (1-12)
            num_rows (int): Total number of rows, anomalies included
            negative_rows (int): Rows whose ride ends before it starts
            excessive_rows (int): Rows lasting a day or longer

        Returns:
            dict: Generation statistics
        """
        if negative_rows + excessive_rows > num_rows:
            raise ValueError("More anomalies requested than rows")

        anomalies = ['negative'] * negative_rows + ['excessive'] * excessive_rows
        anomalies += [None] * (num_rows - len(anomalies))
        self.random.shuffle(anomalies)

        stats = {
            'file_path': str(file_path),
            'total_rows': num_rows,
            'negative_rows': negative_rows,
            'excessive_rows': excessive_rows,
            'rows_by_user_type': {'member': 0, 'casual': 0}
        }

        Path(file_path).parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(SOURCE_COLUMNS)

            for anomaly in anomalies:
                record = self._generate_single_record(year, month, anomaly)
                stats['rows_by_user_type'][record[-1]] += 1
                writer.writerow(record)

        logger.info(f"Generated {num_rows:,} rows in {file_path}")
        return stats

    def generate_dataset(self,
                         output_dir: str,
                         start_month: str = "2022-07",
                         months: int = 13,
                         rows_per_month: int = 2000,
                         anomaly_rate: float = 0.01) -> Dict[str, Any]:
        """
        Generate consecutive monthly exports named YYYYMM-<source>-tripdata.csv.

        Args:
            output_dir (str): Directory for the monthly files
            start_month (str): First month, 'YYYY-MM'
            months (int): Number of months to generate
            rows_per_month (int): Rows per file
            anomaly_rate (float): Fraction of rows with a bad duration,
                                  split evenly between negative and excessive

        Returns:
            dict: Generation statistics including the list of files
        """
        start = datetime.strptime(start_month, "%Y-%m")
        year, month = start.year, start.month
        anomalies_per_month = int(round(rows_per_month * anomaly_rate))

        stats = {
            'files': [],
            'total_rows': 0,
            'negative_rows': 0,
            'excessive_rows': 0,
            'anomaly_rate': anomaly_rate
        }

        for _ in range(months):
            file_path = Path(output_dir) / f"{year}{month:02d}-{self.source}-tripdata.csv"
            negative = anomalies_per_month // 2
            excessive = anomalies_per_month - negative
            month_stats = self.generate_month(str(file_path), year, month, rows_per_month, negative, excessive)

            stats['files'].append(month_stats['file_path'])
            stats['total_rows'] += month_stats['total_rows']
            stats['negative_rows'] += negative
            stats['excessive_rows'] += excessive

            month += 1
            if month > 12:
                year, month = year + 1, 1

        logger.info(
            f"Dataset generated: {len(stats['files'])} files, {stats['total_rows']:,} rows, "
            f"{stats['negative_rows']} negative and {stats['excessive_rows']} excessive durations"
        )
        return stats

    def _generate_single_record(self, year: int, month: int, anomaly: Optional[str]) -> List[Any]:
        """Generate a single CSV row."""
        started_at = self._random_start(year, month)
        weekend = started_at.weekday() >= 5

        casual_share = self.casual_share_by_month[month]
        if weekend:
            casual_share = min(casual_share + 0.2, 0.8)
        user_type = 'casual' if self.random.random() < casual_share else 'member'

        if anomaly == 'negative':
            minutes = -self.random.uniform(0.5, 30)
        elif anomaly == 'excessive':
            minutes = self.random.uniform(1440, 3000)
        else:
            minutes = self._ride_minutes(user_type, weekend)
        ended_at = started_at + timedelta(seconds=round(minutes * 60))

        rideable_type = self._pick_rideable_type(user_type)
        start = self.random.choice(self.stations)
        end = self.random.choice(self.stations)

        # Dockless e-bike rides often lack station details
        start_name, start_id = start['name'], start['id']
        end_name, end_id = end['name'], end['id']
        end_lat, end_lng = end['lat'], end['lng']
        if rideable_type == 'electric_bike' and self.random.random() < 0.15:
            start_name, start_id = '', ''
        if rideable_type == 'electric_bike' and self.random.random() < 0.15:
            end_name, end_id = '', ''
        if self.random.random() < 0.002:
            end_lat, end_lng = '', ''

        return [
            ''.join(self.random.choice('0123456789ABCDEF') for _ in range(16)),
            rideable_type,
            format_timestamp(started_at),
            format_timestamp(ended_at),
            start_name,
            start_id,
            end_name,
            end_id,
            round(start['lat'] + self.random.uniform(-0.001, 0.001), 6),
            round(start['lng'] + self.random.uniform(-0.001, 0.001), 6),
            end_lat,
            end_lng,
            user_type
        ]

    def _random_start(self, year: int, month: int) -> datetime:
        day = self.random.randint(1, monthrange(year, month)[1])
        # Rides cluster in commuting and afternoon hours
        hour = min(max(int(self.random.gauss(14, 4)), 0), 23)
        return datetime(year, month, day, hour, self.random.randint(0, 59), self.random.randint(0, 59))

    def _ride_minutes(self, user_type: str, weekend: bool) -> float:
        if user_type == 'member':
            minutes = self.random.lognormvariate(2.3, 0.6)
        else:
            minutes = self.random.lognormvariate(2.8 if weekend else 2.6, 0.8)
        return min(max(minutes, 1.0), 600.0)

    def _pick_rideable_type(self, user_type: str) -> str:
        column = 1 if user_type == 'member' else 2
        names = [r[0] for r in self.rideable_types]
        weights = [r[column] for r in self.rideable_types]
        return self.random.choices(names, weights=weights)[0]
