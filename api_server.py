# ========================
# api_server.py
# ========================

"""
FastAPI Server for the Bike-share Usage Pipeline

Runs pipeline jobs in the background and serves their aggregated tables to
the reporting and charting tools.
"""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from fastapi import FastAPI, HTTPException, BackgroundTasks, Query
from fastapi.responses import FileResponse
import uvicorn

from src.bikeshare import TripPipeline, PipelineError, discover_monthly_files
from src.utils.config import Config
from src.utils.data_generator import TripDataGenerator
from src.utils.job_metadata import JobMetadataManager
from src.utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Bike-share Usage Pipeline API",
    description="Run the member vs casual trip pipeline and fetch its aggregated results",
    version="1.0.0"
)

JOB_NOT_FOUND_MSG = "Job not found"
JOB_NOT_COMPLETED_MSG = "Job not completed yet"


class PipelineJobManager:
    """Tracks pipeline jobs and runs them."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or Config()
        self.metadata = JobMetadataManager(self.config.JOB_METADATA_FILE)
        self.jobs: Dict[str, Dict[str, Any]] = self.metadata.load_job_metadata()

    def persist(self) -> None:
        self.metadata.save_job_metadata(self.jobs)

    def create_job(self, sample: bool, chunk_size: int) -> Dict[str, Any]:
        job_id = str(uuid.uuid4())
        output_dir = Path(self.config.DEFAULT_OUTPUT_DIR) / job_id

        job = {
            'job_id': job_id,
            'type': 'sample_data' if sample else 'trip_data',
            'status': 'queued',
            'created_at': datetime.now().isoformat(),
            'input_dir': str(output_dir / 'raw') if sample else self.config.TRIP_DATA_DIR,
            'output_dir': str(output_dir),
            'chunk_size': chunk_size
        }
        self.jobs[job_id] = job
        self.persist()
        return job

    def get_job(self, job_id: str) -> Dict[str, Any]:
        if job_id not in self.jobs:
            raise HTTPException(status_code=404, detail=JOB_NOT_FOUND_MSG)
        return self.jobs[job_id]

    def get_completed_job(self, job_id: str) -> Dict[str, Any]:
        job = self.get_job(job_id)
        if job['status'] != 'completed':
            raise HTTPException(status_code=400, detail=JOB_NOT_COMPLETED_MSG)
        return job

    @staticmethod
    def _mark_failed(job: Dict[str, Any], error: str) -> None:
        job['status'] = 'failed'
        job['error'] = error
        job['failed_at'] = datetime.now().isoformat()

    def run_job(self, job_id: str) -> None:
        """Run a queued job. Called as a background task."""
        job = self.jobs[job_id]
        logger.info(f"Starting pipeline job {job_id}")
        job['status'] = 'processing'
        job['started_at'] = datetime.now().isoformat()
        self.persist()

        try:
            if job['type'] == 'sample_data':
                generator = TripDataGenerator(seed=42)
                job['generation_stats'] = generator.generate_dataset(
                    output_dir=job['input_dir'],
                    start_month=self.config.SAMPLE_START_MONTH,
                    months=self.config.SAMPLE_MONTHS,
                    rows_per_month=self.config.SAMPLE_ROWS_PER_MONTH
                )

            input_files = discover_monthly_files(job['input_dir'], self.config.TRIP_FILE_PATTERN)
            if not input_files:
                raise FileNotFoundError(f"No monthly trip files found in {job['input_dir']}")

            pipeline = TripPipeline(
                input_files=input_files,
                output_dir=job['output_dir'],
                chunk_size=job['chunk_size'],
                config=self.config
            )
            if not pipeline.validate_input():
                raise ValueError("Input file validation failed")

            job['results'] = pipeline.run()
            job['status'] = 'completed'
            job['completed_at'] = datetime.now().isoformat()
            logger.info(f"Pipeline job {job_id} completed successfully")

        except (PipelineError, OSError, ValueError) as e:
            logger.error(f"Pipeline job {job_id} failed: {e}")
            self._mark_failed(job, str(e))

        except Exception as e:
            logger.exception(f"Pipeline job {job_id} failed unexpectedly")
            self._mark_failed(job, f"Unexpected error: {e}")

        finally:
            self.persist()


job_manager = PipelineJobManager()


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Bike-share Usage Pipeline API",
        "version": "1.0.0",
        "endpoints": {
            "run_pipeline": "/run-pipeline - Run the pipeline on the trip data directory (or sample data)",
            "status": "/status/{job_id} - Check job status",
            "jobs": "/jobs - List all jobs",
            "report": "/report/{job_id} - Aggregated results of a completed job",
            "job_data": "/job-data/{job_id}/{filename} - Download a generated file",
            "health": "/health - Health check",
            "api_docs": "/docs - API documentation"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "active_jobs": len([j for j in job_manager.jobs.values() if j['status'] == 'processing'])
    }


@app.post("/run-pipeline")
async def run_pipeline(
    background_tasks: BackgroundTasks,
    sample: bool = Query(False, description="Generate sample monthly files instead of using the trip data directory"),
    chunk_size: int = Query(10000, description="Number of rows to process per chunk", ge=100, le=1000000)
):
    """
    Queue a pipeline run.

    Returns:
        dict: Job ID and status information
    """
    job = job_manager.create_job(sample=sample, chunk_size=chunk_size)
    background_tasks.add_task(job_manager.run_job, job['job_id'])
    logger.info(f"Queued pipeline job {job['job_id']} ({job['type']})")

    return {
        "job_id": job['job_id'],
        "type": job['type'],
        "status": "queued",
        "message": "Pipeline processing started.",
        "estimated_processing_info": "Use /status/{job_id} to check progress"
    }


@app.get("/status/{job_id}")
async def get_job_status(job_id: str):
    """
    Get the status of a pipeline job.

    Args:
        job_id: Unique job identifier

    Returns:
        dict: Job status and results
    """
    job = job_manager.get_job(job_id).copy()

    if job['status'] == 'completed' and 'results' in job:
        results = job['results']
        job['summary'] = {
            'rides_kept': results['data_quality_stats']['records_cleaned'],
            'negative_duration': results['data_quality_stats']['negative_duration'],
            'excessive_duration': results['data_quality_stats']['excessive_duration'],
            'output_files': len(results['saved_files'])
        }

    return job


@app.get("/jobs")
async def list_jobs(
    status: Optional[str] = Query(None, description="Filter by status: queued, processing, completed, failed"),
    limit: int = Query(50, description="Maximum number of jobs to return", ge=1, le=100)
):
    """List pipeline jobs, newest first."""
    jobs = [
        {k: v for k, v in job.items() if k not in ('results', 'generation_stats')}
        for job in job_manager.jobs.values()
        if status is None or job['status'] == status
    ]
    jobs.sort(key=lambda j: j['created_at'], reverse=True)

    return {
        "jobs": jobs[:limit],
        "total_jobs": len(jobs),
        "filtered_by_status": status
    }


@app.get("/report/{job_id}")
async def get_job_report(job_id: str):
    """
    Aggregated results of a completed job, as read by the reporting tool.

    Args:
        job_id: Unique job identifier

    Returns:
        dict: Summary, data-quality statistics, shares and available files
    """
    job = job_manager.get_completed_job(job_id)
    summary_path = Path(job['output_dir']) / "aggregation_summary.json"
    if not summary_path.exists():
        raise HTTPException(status_code=404, detail=f"No summary found for job {job_id}")

    with open(summary_path, 'r', encoding='utf-8') as f:
        summary = json.load(f)

    return {
        "job_id": job_id,
        "completed_at": job.get('completed_at'),
        "summary": summary,
        "files": sorted(job_manager.metadata.discover_output_files(job['output_dir']))
    }


@app.get("/job-data/{job_id}/{filename}")
async def get_job_data_file(job_id: str, filename: str):
    """Serve one of a job's generated CSV files."""
    job = job_manager.get_completed_job(job_id)

    available = job_manager.metadata.discover_output_files(job['output_dir'])
    file_path = available.get(Path(filename).stem)
    if file_path is None or Path(file_path).name != filename or not filename.endswith('.csv'):
        raise HTTPException(status_code=404, detail=f"File {filename} not found for job {job_id}")

    return FileResponse(path=file_path, media_type='text/csv', filename=filename)


def start_server(host: str = "0.0.0.0", port: Optional[int] = None, reload: bool = False):
    """Start the FastAPI server."""
    config = job_manager.config
    setup_logging(log_level=config.LOG_LEVEL, log_file="api_server.log", log_dir=config.LOG_DIR)
    port = port or config.API_PORT
    logger.info(f"Starting Bike-share Usage Pipeline API server on {host}:{port}")
    uvicorn.run(
        "api_server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


if __name__ == "__main__":
    start_server(reload=True)
