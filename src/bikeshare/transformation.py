# ========================
# src/bikeshare/transformation.py
# ========================

"""
Data Transformation Module

In-memory aggregations over cleaned trip records, comparing member and
casual riders by day of week, month and bike type.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Tuple, Any

from .records import (
    TripRecord, USER_TYPES, DAY_NAMES, MONTH_NAMES, WEEKDAYS, WEEKEND,
    MICROSECONDS_PER_MINUTE
)

logger = logging.getLogger(__name__)

# Finest grain the aggregator keeps; every grouping is a roll-up of these cells
GROUP_KEYS = ('user_type', 'rideable_type', 'day', 'month', 'year')


def _new_cell() -> Dict[str, Any]:
    # Durations are summed as integer microseconds so totals are exact
    # whatever order the rows arrive in.
    return {
        'count': 0,
        'duration_total_us': 0,
        'duration_count': 0,
        'duration_min_us': None,
        'duration_max_us': None
    }


def _merge_bound(current, value, pick):
    if value is None:
        return current
    return value if current is None else pick(current, value)


def _sort_value(key: str, value: Any):
    if key == 'day' and value in DAY_NAMES:
        return (0, DAY_NAMES.index(value))
    if key == 'month' and value in MONTH_NAMES:
        return (0, MONTH_NAMES.index(value))
    if key == 'year' and isinstance(value, int):
        return (0, value)
    return (1, str(value))


def _minutes(microseconds):
    return None if microseconds is None else microseconds / MICROSECONDS_PER_MINUTE


class TripAggregator:
    """
    Performs in-memory aggregations on chunks of cleaned trip records.
    Only per-cell counters are kept, so memory use does not grow with the
    number of rides, and results do not depend on the order rows arrive in.
    """

    def __init__(self):
        """Initialize the trip aggregator."""
        self._reset_aggregations()
        logger.info(f"TripAggregator initialized, grouping by {GROUP_KEYS}")

    def _reset_aggregations(self):
        """Reset all aggregation data structures."""
        self.cells = defaultdict(_new_cell)
        self.records_processed = 0

    def process_chunk(self, chunk: Iterable[TripRecord]) -> None:
        """
        Update the aggregation cells with a chunk of cleaned records.

        Args:
            chunk (list[TripRecord]): Records that passed cleaning.
        """
        chunk_size = 0
        for record in chunk:
            self._process_single_record(record)
            chunk_size += 1

        self.records_processed += chunk_size
        logger.debug(f"Chunk of {chunk_size} records aggregated. Total so far: {self.records_processed}")

    def _process_single_record(self, record: TripRecord) -> None:
        cell = self.cells[(record.user_type, record.rideable_type, record.day, record.month, record.year)]
        cell['count'] += 1

        duration = record.duration_microseconds
        cell['duration_total_us'] += duration
        cell['duration_count'] += 1
        cell['duration_min_us'] = _merge_bound(cell['duration_min_us'], duration, min)
        cell['duration_max_us'] = _merge_bound(cell['duration_max_us'], duration, max)

    def _roll_up(self, keys: Sequence[str]) -> Dict[Tuple, Dict[str, Any]]:
        """Merge the finest-grain cells into groups keyed by ``keys``."""
        if isinstance(keys, str):
            keys = (keys,)
        if not keys:
            raise ValueError("At least one grouping key is required")
        unknown = [k for k in keys if k not in GROUP_KEYS]
        if unknown:
            raise ValueError(f"Unknown grouping keys {unknown}; expected a subset of {GROUP_KEYS}")

        positions = [GROUP_KEYS.index(k) for k in keys]
        groups = defaultdict(_new_cell)
        for cell_key, cell in self.cells.items():
            group = groups[tuple(cell_key[p] for p in positions)]
            group['count'] += cell['count']
            group['duration_total_us'] += cell['duration_total_us']
            group['duration_count'] += cell['duration_count']
            group['duration_min_us'] = _merge_bound(group['duration_min_us'], cell['duration_min_us'], min)
            group['duration_max_us'] = _merge_bound(group['duration_max_us'], cell['duration_max_us'], max)

        ordered = sorted(groups, key=lambda k: tuple(_sort_value(keys[i], v) for i, v in enumerate(k)))
        return {k: groups[k] for k in ordered}

    def count_by(self, keys: Sequence[str]) -> Dict[Tuple, int]:
        """
        Count rides per group.

        Args:
            keys (tuple[str]): Grouping keys, a subset of GROUP_KEYS

        Returns:
            dict: Key tuple -> number of rides
        """
        return {k: v['count'] for k, v in self._roll_up(keys).items()}

    def mean_duration_by(self, keys: Sequence[str]) -> Dict[Tuple, float]:
        """Mean ride length in minutes per group."""
        return {
            k: v['duration_total_us'] / v['duration_count'] / MICROSECONDS_PER_MINUTE
            for k, v in self._roll_up(keys).items()
            if v['duration_count'] > 0
        }

    def duration_stats_by(self, keys: Sequence[str]) -> Dict[Tuple, Dict[str, Any]]:
        """Count, mean, min and max ride length (minutes) per group."""
        stats = {}
        for k, v in self._roll_up(keys).items():
            mean = None
            if v['duration_count'] > 0:
                mean = v['duration_total_us'] / v['duration_count'] / MICROSECONDS_PER_MINUTE
            stats[k] = {
                'ride_count': v['count'],
                'mean_ride_length': mean,
                'min_ride_length': _minutes(v['duration_min_us']),
                'max_ride_length': _minutes(v['duration_max_us'])
            }
        return stats

    def user_type_share(self, user_type: str, days: Iterable[str]) -> float:
        """
        Percentage of rides on the given days taken by ``user_type``.

        Args:
            user_type (str): 'casual' or 'member'
            days (iterable[str]): Weekday names making up the subset

        Returns:
            float: Share in [0, 100]; 0.0 when no rides fall on those days
        """
        if user_type not in USER_TYPES:
            raise ValueError(f"Unknown user type {user_type!r}; expected one of {USER_TYPES}")

        day_set = set(days)
        counts = {u: 0 for u in USER_TYPES}
        for (rider, day), count in self.count_by(('user_type', 'day')).items():
            if day in day_set:
                counts[rider] += count

        total = sum(counts.values())
        if total == 0:
            return 0.0
        return counts[user_type] * 100 / total

    def weekday_share(self, user_type: str = 'casual') -> float:
        """Share of Monday to Friday rides taken by ``user_type``."""
        return self.user_type_share(user_type, WEEKDAYS)

    def weekend_share(self, user_type: str = 'casual') -> float:
        """Share of Saturday and Sunday rides taken by ``user_type``."""
        return self.user_type_share(user_type, WEEKEND)

    def get_shares(self) -> Dict[str, Dict[str, float]]:
        return {
            user_type: {
                'weekday_share': self.weekday_share(user_type),
                'weekend_share': self.weekend_share(user_type)
            }
            for user_type in USER_TYPES
        }

    def rides_by_month(self) -> List[Dict[str, Any]]:
        """
        Long-form (year, month, user_type, ride_count) rows for the charting tool.
        The year keeps the same month of consecutive years on separate bars.
        """
        return [
            {'year': year, 'month': month, 'user_type': user_type, 'ride_count': count}
            for (year, month, user_type), count in self.count_by(('year', 'month', 'user_type')).items()
        ]

    def finalize_aggregations(self) -> None:
        """Log a summary once every chunk has been processed."""
        logger.info(f"Aggregation complete. Processed {self.records_processed} records")
        self._log_summary_statistics()

    def _log_summary_statistics(self) -> None:
        if self.records_processed == 0:
            logger.warning("No rides left to aggregate")
            return

        for (user_type,), stats in self.duration_stats_by(('user_type',)).items():
            logger.info(
                f"{user_type}: {stats['ride_count']:,} rides, "
                f"mean ride length {stats['mean_ride_length']:.2f} min"
            )
        logger.info(f"Casual share of weekday rides: {self.weekday_share():.1f}%")
        logger.info(f"Casual share of weekend rides: {self.weekend_share():.1f}%")

    def get_aggregation_summary(self) -> Dict[str, Any]:
        """Get a summary of all aggregations."""
        if not self.cells:
            return {
                'records_processed': self.records_processed,
                'aggregation_cells': 0,
                'rides_by_user_type': {},
                'months': 0,
                'rideable_types': 0
            }
        return {
            'records_processed': self.records_processed,
            'aggregation_cells': len(self.cells),
            'rides_by_user_type': {k[0]: v for k, v in self.count_by(('user_type',)).items()},
            'months': len(self.count_by(('month',))),
            'rideable_types': len(self.count_by(('rideable_type',)))
        }
