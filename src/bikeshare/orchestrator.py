# ========================
# src/bikeshare/orchestrator.py
# ========================

"""
Pipeline Orchestrator Module

Coordinates loading, cleaning, aggregating and saving the monthly trip data.
"""

import logging
from contextlib import nullcontext
from pathlib import Path
from typing import List, Optional, Sequence

from .ingestion import TripDataLoader, SOURCE_FILE_KEY, INPUT_ENCODING
from .cleaning import TripCleaner
from .transformation import TripAggregator
from .storage import TripDataSaver, CombinedDataWriter
from .errors import PipelineError
from ..utils.performance_monitor import monitor_performance
from ..utils.config import Config

logger = logging.getLogger(__name__)


class TripPipeline:
    """
    Orchestrates the trip data pipeline.
    Streams rows from every monthly file through the cleaner into the
    aggregator, then saves the summary tables.
    """

    def __init__(self,
                 input_files: Sequence[str],
                 output_dir: str,
                 chunk_size: int = 10000,
                 config: Optional[Config] = None,
                 write_combined: Optional[bool] = None,
                 user_type_column: Optional[str] = None):
        """
        Initialize the trip pipeline.

        Args:
            input_files (list[str]): Monthly trip-data CSV files
            output_dir (str): Directory for output files
            chunk_size (int): Number of rows to process per chunk
            config (Config): Configuration object
            write_combined (bool): Write the combined cleaned dataset;
                                   defaults to config.WRITE_COMBINED_DATA
            user_type_column (str): Column holding member/casual; defaults to
                                    config.USER_TYPE_SOURCE_COLUMN
        """
        self.config = config or Config()
        self.input_files: List[str] = [str(f) for f in input_files]
        self.output_dir = output_dir
        self.chunk_size = chunk_size
        self.write_combined = self.config.WRITE_COMBINED_DATA if write_combined is None else write_combined

        self.loader = TripDataLoader(self.input_files, chunk_size=self.chunk_size)
        self.cleaner = TripCleaner(
            user_type_column=user_type_column or self.config.USER_TYPE_SOURCE_COLUMN,
            max_ride_length=self.config.MAX_RIDE_LENGTH_MINUTES,
            on_parse_error=self.config.ON_PARSE_ERROR,
            anomaly_examples_limit=self.config.ANOMALY_EXAMPLES_LIMIT
        )
        self.aggregator = TripAggregator()
        self.saver = TripDataSaver(self.output_dir)
        self.performance_stats = {}

        logger.info("TripPipeline initialized:")
        logger.info(f"  Input files: {len(self.loader.file_paths)}")
        logger.info(f"  Output: {self.output_dir}")
        logger.info(f"  Chunk size: {self.chunk_size}")

    def run(self) -> dict:
        """
        Execute the complete pipeline from start to finish.

        Returns:
            dict: Summary of processing results and saved files

        Raises:
            PipelineError: On a schema mismatch, missing column or, under the
                           'abort' policy, an unparsable value
        """
        logger.info(f"Starting trip pipeline for {len(self.input_files)} files...")

        try:
            header = self.loader.validate_schema()
            self.cleaner.check_columns(header, self.loader.file_paths[0])
        except PipelineError as e:
            logger.error(f"Input rejected: {e}")
            raise

        saved_files = {}
        with monitor_performance("Trip pipeline") as monitor:
            writer = CombinedDataWriter(self.saver.combined_data_path) if self.write_combined else nullcontext()
            with writer as combined_writer:
                self._process_chunks(monitor, combined_writer)
            if self.write_combined:
                saved_files['combined_data'] = str(self.saver.combined_data_path)

            logger.info("All chunks processed. Finalizing aggregations...")
            self.aggregator.finalize_aggregations()
            self.cleaner.log_anomaly_summary()

            logger.info("Saving aggregated data...")
            saved_files.update(self.saver.save_all_data(self.aggregator, self.cleaner))
            saved_files['data_dictionary'] = self.saver.create_data_dictionary()
        self.performance_stats = monitor.summary

        results = {
            'pipeline_status': 'completed',
            'input_files': self.loader.file_paths,
            'output_directory': self.output_dir,
            'saved_files': saved_files,
            'processing_stats': self._get_processing_stats(),
            'data_quality_stats': self.cleaner.get_statistics(),
            'shares': self.aggregator.get_shares()
        }

        logger.info("Pipeline finished successfully.")
        self._log_final_summary(results)

        return results

    def _process_chunks(self, monitor, writer: Optional[CombinedDataWriter]) -> None:
        """Clean, aggregate and optionally write each chunk of raw rows."""
        chunk_num = 0
        current_file = None

        try:
            for raw_chunk in self.loader.read_in_chunks():
                chunk_num += 1
                chunk_file = raw_chunk[0].get(SOURCE_FILE_KEY)
                if chunk_file != current_file or chunk_num == 1:
                    monitor.start_file(chunk_file)
                    current_file = chunk_file

                cleaned_chunk = self.cleaner.clean_chunk(raw_chunk)
                logger.info(f"Chunk {chunk_num}: {len(cleaned_chunk)}/{len(raw_chunk)} records passed validation")

                self.aggregator.process_chunk(cleaned_chunk)
                if writer is not None:
                    writer.write_records(cleaned_chunk)

                monitor.update_progress(len(raw_chunk), len(cleaned_chunk))
        except PipelineError as e:
            logger.error(f"Pipeline aborted after {chunk_num} chunks: {e}")
            raise

    def _get_processing_stats(self) -> dict:
        """Get processing statistics."""
        return {
            **self.aggregator.get_aggregation_summary(),
            'rows_read': self.loader.total_rows,
            'rows_per_file': dict(self.loader.rows_per_file),
            'chunk_size': self.chunk_size,
            'input_size_bytes': sum(Path(f).stat().st_size for f in self.loader.file_paths if Path(f).exists()),
            'processing_time_seconds': self.performance_stats.get('total_processing_time_seconds', 0),
            'peak_memory_mb': self.performance_stats.get('peak_memory_usage_mb', 0),
            'file_timings': self.performance_stats.get('files', [])
        }

    def _log_final_summary(self, results: dict) -> None:
        """Log final pipeline summary."""
        logger.info("=" * 60)
        logger.info("PIPELINE EXECUTION SUMMARY")
        logger.info("=" * 60)

        processing_stats = results['processing_stats']
        quality_stats = results['data_quality_stats']

        logger.info(f"Input files: {len(results['input_files'])}")
        logger.info(f"Rows read: {processing_stats['rows_read']:,}")
        logger.info(f"Rides kept: {quality_stats['records_cleaned']:,} ({quality_stats['success_rate']:.1f}%)")
        logger.info(f"Non-positive durations removed: {quality_stats['negative_duration']:,}")
        logger.info(f"Excessive durations removed: {quality_stats['excessive_duration']:,}")
        logger.info(f"Output files generated: {len(results['saved_files'])}")
        logger.info(f"Output directory: {results['output_directory']}")

        for dataset_type, file_path in results['saved_files'].items():
            logger.info(f"  - {dataset_type}: {file_path}")

        logger.info("=" * 60)

    def validate_input(self) -> bool:
        """
        Validate that every input file exists and is readable.

        Returns:
            bool: True if input is valid
        """
        for input_file in self.loader.file_paths:
            input_path = Path(input_file)
            if not input_path.exists():
                logger.error(f"Input file does not exist: {input_file}")
                return False

            if not input_path.is_file():
                logger.error(f"Input path is not a file: {input_file}")
                return False

            try:
                with open(input_path, 'r', encoding=INPUT_ENCODING) as f:
                    f.readline()
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Cannot read input file {input_file}: {e}")
                return False

        logger.info(f"Input validation passed: {len(self.loader.file_paths)} files")
        return True

    def estimate_processing_time(self) -> dict:
        """
        Estimate processing time based on total file size and configuration.

        Returns:
            dict: Processing time estimates
        """
        try:
            total_size = sum(Path(f).stat().st_size for f in self.loader.file_paths)
        except OSError as e:
            logger.warning(f"Could not estimate processing time: {e}")
            return {}

        estimated_rows = total_size // 190  # a trip-data row is roughly 190 bytes
        base_rate = 50000  # rows per second, conservative

        estimated_seconds = estimated_rows / base_rate
        return {
            'file_size_mb': total_size / (1024 * 1024),
            'estimated_rows': estimated_rows,
            'estimated_processing_time_seconds': estimated_seconds,
            'estimated_processing_time_minutes': estimated_seconds / 60,
            'chunk_count_estimate': estimated_rows // self.chunk_size
        }
