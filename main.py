#!/usr/bin/env python3
# ========================
# main.py
# ========================

"""
Main Entry Point for the Bike-share Usage Pipeline

Loads every monthly trip export in the configured data directory, cleans
and aggregates them, and writes the tables the member vs casual report is
built from. Sample data is generated when the directory holds no exports.
"""

import sys
import logging
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from src.bikeshare import TripPipeline, PipelineError, discover_monthly_files
from src.utils import Config, setup_logging, TripDataGenerator


def main():
    """Main execution function."""
    config = Config()

    setup_logging(
        log_level=config.LOG_LEVEL,
        log_file="pipeline.log",
        log_dir=config.LOG_DIR
    )

    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info("BIKE-SHARE USAGE PIPELINE - MAIN EXECUTION")
    logger.info("=" * 60)

    invalid = [name for name, ok in config.validate_config().items() if not ok]
    if invalid:
        logger.error(f"Invalid configuration values: {invalid}")
        return 1

    config.ensure_directories()

    # Step 1: Locate the monthly exports
    logger.info(f"Step 1: Looking for trip data in {config.TRIP_DATA_DIR}...")
    input_files = discover_monthly_files(config.TRIP_DATA_DIR, config.TRIP_FILE_PATTERN)
    generation_stats = None

    if not input_files:
        logger.info("No monthly exports found. Generating sample data...")
        generator = TripDataGenerator(seed=42)
        generation_stats = generator.generate_dataset(
            output_dir=config.TRIP_DATA_DIR,
            start_month=config.SAMPLE_START_MONTH,
            months=config.SAMPLE_MONTHS,
            rows_per_month=config.SAMPLE_ROWS_PER_MONTH
        )
        input_files = generation_stats['files']

    # Step 2: Run the pipeline
    logger.info("Step 2: Running trip pipeline...")
    pipeline = TripPipeline(
        input_files=input_files,
        output_dir=config.DEFAULT_OUTPUT_DIR,
        chunk_size=config.DEFAULT_CHUNK_SIZE,
        config=config
    )

    if not pipeline.validate_input():
        logger.error("Input validation failed. Exiting.")
        return 1

    estimates = pipeline.estimate_processing_time()
    if estimates:
        logger.info(f"Processing estimates: {estimates}")

    try:
        results = pipeline.run()
    except PipelineError as e:
        logger.error(f"Pipeline aborted: {e}")
        return 1

    # Step 3: Print summary
    _print_execution_summary(results, generation_stats)
    logger.info("Pipeline execution completed successfully!")
    return 0


def _print_execution_summary(results: dict, generation_stats: dict = None) -> None:
    """Print final execution summary."""
    print("\n" + "=" * 70)
    print("PIPELINE EXECUTION SUMMARY")
    print("=" * 70)

    if generation_stats:
        print("Sample Data:")
        print(f"   - Monthly files generated: {len(generation_stats['files'])}")
        print(f"   - Rows generated: {generation_stats['total_rows']:,}")

    processing_stats = results['processing_stats']
    quality_stats = results['data_quality_stats']

    print("\nData Processing:")
    print(f"   - Input files: {len(results['input_files'])}")
    print(f"   - Rows read: {processing_stats['rows_read']:,}")
    print(f"   - Rides kept: {quality_stats['records_cleaned']:,} ({quality_stats['success_rate']:.1f}%)")
    print(f"   - Non-positive durations removed: {quality_stats['negative_duration']:,}")
    print(f"   - Durations of a day or more removed: {quality_stats['excessive_duration']:,}")
    if quality_stats['records_unparsable']:
        print(f"   - Unparsable rows skipped: {quality_stats['records_unparsable']:,}")

    print("\nMember vs Casual:")
    for user_type, count in processing_stats['rides_by_user_type'].items():
        print(f"   - {user_type}: {count:,} rides")
    casual = results['shares']['casual']
    print(f"   - Casual share of weekday rides: {casual['weekday_share']:.1f}%")
    print(f"   - Casual share of weekend rides: {casual['weekend_share']:.1f}%")

    print("\nGenerated Outputs:")
    for dataset_type, file_path in results['saved_files'].items():
        print(f"   - {dataset_type.replace('_', ' ').title()}: {Path(file_path).name}")

    print("=" * 70)


if __name__ == '__main__':
    exit_code = main()
    sys.exit(exit_code)
