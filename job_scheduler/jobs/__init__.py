"""Schedulable jobs.

Add new jobs to ``JOB_CLASSES``; each one is built from the environment at
startup and skipped when its configuration is missing.
"""
from __future__ import annotations

from typing import Dict, List, Type

from loguru import logger

from job_scheduler.jobs.base import Job
from job_scheduler.jobs.bugutv import BugutvCheckinJob

JOB_CLASSES: Dict[str, Type[Job]] = {
    BugutvCheckinJob.name: BugutvCheckinJob,
}


def load_jobs() -> List[Job]:
    """Build every job whose configuration is present."""
    jobs = []
    for name, job_cls in JOB_CLASSES.items():
        job = job_cls.from_env()
        if job is None:
            logger.warning(f"Missing configuration for {name}, skipping")
            continue
        jobs.append(job)
    return jobs


__all__ = ["Job", "JOB_CLASSES", "BugutvCheckinJob", "load_jobs"]
