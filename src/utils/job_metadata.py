# ========================
# src/utils/job_metadata.py
# ========================

"""
Job Metadata Management

Persists pipeline job records for the API server so finished jobs survive
a restart.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any

logger = logging.getLogger(__name__)


class JobMetadataManager:
    """Manages persistent job metadata storage."""

    def __init__(self, metadata_file: str = "data/job_metadata.json"):
        self.metadata_file = Path(metadata_file)
        self.metadata_file.parent.mkdir(parents=True, exist_ok=True)

    def save_job_metadata(self, jobs: Dict[str, Dict[str, Any]]) -> None:
        """Save all job metadata to persistent storage."""
        try:
            with open(self.metadata_file, 'w', encoding='utf-8') as f:
                json.dump(jobs, f, indent=2, default=str)
            logger.debug(f"Saved job metadata for {len(jobs)} jobs")
        except OSError as e:
            logger.error(f"Failed to save job metadata: {e}")

    def load_job_metadata(self) -> Dict[str, Dict[str, Any]]:
        """
        Load job metadata from persistent storage.

        Jobs that were still queued or processing when the server stopped
        are marked as failed, since nothing will resume them.
        """
        if not self.metadata_file.exists():
            return {}

        try:
            with open(self.metadata_file, 'r', encoding='utf-8') as f:
                jobs = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load job metadata: {e}")
            return {}

        for job in jobs.values():
            if job.get('status') in ('queued', 'processing'):
                job['status'] = 'failed'
                job['error'] = 'Server stopped before the job finished'

        logger.info(f"Loaded metadata for {len(jobs)} persisted jobs")
        return jobs

    def discover_output_files(self, output_dir: str) -> Dict[str, str]:
        """Map output file stems to paths for a job's output directory."""
        job_dir = Path(output_dir)
        if not job_dir.is_dir():
            return {}
        return {
            p.stem: str(p)
            for p in sorted(job_dir.iterdir())
            if p.suffix in ('.csv', '.json', '.md')
        }
