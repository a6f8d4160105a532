# ========================
# src/utils/config.py
# ========================

"""
Configuration Management

Centralized configuration for the trip data pipeline with environment support.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional


class Config:
    """
    Configuration class for the trip data pipeline.
    Supports environment variables and default values.
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            config_dict (dict): Optional configuration overrides
        """
        # Data Processing Configuration
        self.DEFAULT_CHUNK_SIZE = int(os.getenv('PIPELINE_CHUNK_SIZE', '10000'))

        # File Paths
        self.TRIP_DATA_DIR = os.getenv('TRIP_DATA_DIR', 'data/raw')
        self.TRIP_FILE_PATTERN = os.getenv('TRIP_FILE_PATTERN', r'^(\d{4})(\d{2})-[\w.]+-tripdata\.csv$')
        self.DEFAULT_OUTPUT_DIR = os.getenv('PIPELINE_OUTPUT_DIR', 'data/processed')
        self.WRITE_COMBINED_DATA = os.getenv('WRITE_COMBINED_DATA', 'true').lower() == 'true'

        # Cleaning Rules
        self.USER_TYPE_SOURCE_COLUMN = os.getenv('USER_TYPE_SOURCE_COLUMN', 'member_casual')
        self.MAX_RIDE_LENGTH_MINUTES = float(os.getenv('MAX_RIDE_LENGTH_MINUTES', '1440'))
        self.ON_PARSE_ERROR = os.getenv('ON_PARSE_ERROR', 'abort')
        self.ANOMALY_EXAMPLES_LIMIT = int(os.getenv('ANOMALY_EXAMPLES_LIMIT', '5'))

        # Sample Data Generation
        self.SAMPLE_START_MONTH = os.getenv('SAMPLE_START_MONTH', '2022-07')
        self.SAMPLE_MONTHS = int(os.getenv('SAMPLE_MONTHS', '13'))
        self.SAMPLE_ROWS_PER_MONTH = int(os.getenv('SAMPLE_ROWS_PER_MONTH', '2000'))

        # API Settings
        self.API_PORT = int(os.getenv('API_PORT', '8000'))
        self.JOB_METADATA_FILE = os.getenv('JOB_METADATA_FILE', 'data/job_metadata.json')

        # Logging Configuration
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
        self.LOG_DIR = os.getenv('LOG_DIR', 'logs')

        # Override with provided config
        if config_dict:
            self._update_from_dict(config_dict)

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Update configuration from dictionary."""
        for key, value in config_dict.items():
            if hasattr(self, key.upper()):
                setattr(self, key.upper(), value)

    def get_data_paths(self) -> Dict[str, Path]:
        """Get all configured data paths as Path objects."""
        return {
            'trip_data_dir': Path(self.TRIP_DATA_DIR),
            'output_dir': Path(self.DEFAULT_OUTPUT_DIR),
            'logs_dir': Path(self.LOG_DIR)
        }

    def ensure_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        for path_name, path in self.get_data_paths().items():
            if path_name.endswith('_dir'):
                path.mkdir(parents=True, exist_ok=True)

    def validate_config(self) -> Dict[str, bool]:
        """
        Validate configuration values.

        Returns:
            dict: Validation results for each setting
        """
        validations = {}

        validations['chunk_size'] = self.DEFAULT_CHUNK_SIZE > 0
        validations['max_ride_length'] = self.MAX_RIDE_LENGTH_MINUTES > 0
        validations['on_parse_error'] = self.ON_PARSE_ERROR in ('abort', 'skip')
        validations['anomaly_examples_limit'] = self.ANOMALY_EXAMPLES_LIMIT >= 0
        validations['sample_months'] = self.SAMPLE_MONTHS > 0
        validations['sample_rows_per_month'] = self.SAMPLE_ROWS_PER_MONTH > 0
        validations['api_port'] = 1000 <= self.API_PORT <= 65535

        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        validations['log_level'] = self.LOG_LEVEL.upper() in valid_log_levels

        return validations

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            attr: getattr(self, attr)
            for attr in dir(self)
            if not attr.startswith('_') and not callable(getattr(self, attr))
        }

    def save_to_file(self, file_path: str) -> None:
        """Save configuration to JSON file."""
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_from_file(cls, file_path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(file_path, 'r') as f:
            config_dict = json.load(f)
        return cls(config_dict)

    def __str__(self) -> str:
        lines = ["Configuration Settings:"]
        for key, value in sorted(self.to_dict().items()):
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)
