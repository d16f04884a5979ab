"""
In-memory job store.

Volatile: a restart loses every record. Used for status polling
only; the orchestrator never reads it back to decide what to do next.
"""

import uuid
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .models import Job, JobStatus

IMMUTABLE_FIELDS = frozenset(
    {"id", "product_name", "source_image", "additional_images", "created_at"}
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """Thread-safe id → Job map. Every read returns a detached copy."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._lock = threading.Lock()
        self._jobs: dict[str, Job] = {}
        self._clock = clock

    def create(self, **fields) -> Job:
        reserved = {"id", "created_at", "updated_at"} & fields.keys()
        if reserved:
            raise ValueError(f"Fields are assigned by the store: {sorted(reserved)}")

        now = self._clock()
        job = Job(id=str(uuid.uuid4()), created_at=now, updated_at=now, **fields)
        with self._lock:
            self._jobs[job.id] = job
        return job.model_copy(deep=True)

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def update(self, job_id: str, **fields) -> Optional[Job]:
        """
        Merge `fields` into the job and refresh updated_at.

        Returns None for an unknown id. Raises ValueError when the change would
        touch an immutable field, move status backwards, or break a Job invariant.
        """
        frozen = IMMUTABLE_FIELDS & fields.keys()
        if frozen:
            raise ValueError(f"Immutable job fields: {sorted(frozen)}")
        fields.pop("updated_at", None)

        with self._lock:
            existing = self._jobs.get(job_id)
            if existing is None:
                return None

            if "status" in fields:
                target = JobStatus(fields["status"])
                if not existing.status.can_advance_to(target):
                    raise ValueError(
                        f"Job {job_id}: illegal status change "
                        f"{existing.status.value} → {target.value}"
                    )
                fields["status"] = target

            stamp = self._clock()
            if stamp <= existing.updated_at:
                stamp = existing.updated_at + timedelta(microseconds=1)

            merged = Job.model_validate(
                {**existing.model_dump(), **fields, "updated_at": stamp}
            )
            self._jobs[job_id] = merged
            return merged.model_copy(deep=True)

    def list(self) -> list[Job]:
        with self._lock:
            jobs = [job.model_copy(deep=True) for job in self._jobs.values()]
        return sorted(jobs, key=lambda j: j.created_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
