"""Job repository for the invoice workflow application.

This module contains the JobRepository class, the persistence backend for
jobs, their files and their outputs. Every mutation is a narrow patch that
touches only the columns it names, and status changes are checked against
the forward-only lifecycle ``RECEIVED -> IN_PROGRESS -> COMPLETED``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..exceptions import (
    AuthorizationError,
    DatabaseError,
    InvalidTransitionError,
    JobNotFoundError,
    ValidationError,
)
from ..models import Job, JobFile, JobOutput, JobStatus, User, UserRole, WorkflowStep
from .database_manager import DatabaseManager

__all__ = ["JobRepository", "JobDetails", "AvailableJob"]

logger = logging.getLogger(__name__)

_STATUS_ORDER: Dict[JobStatus, int] = {
    JobStatus.RECEIVED: 0,
    JobStatus.IN_PROGRESS: 1,
    JobStatus.COMPLETED: 2,
}

# job attribute names accepted by the step update calls
_PATCHABLE_FIELDS = (
    "analysis_result",
    "confirmed_fields",
    "extracted_data",
    "supplier_name",
    "template_found",
)


@dataclass
class JobDetails:
    """A job together with its files and everything needed to process it.

    Attributes:
        job: The job row (detached from its session)
        files: The job's files in upload order
        client_name: Display name of the owning client, if known
        file_urls: Retrievable URLs for the files that could be resolved
    """
    job: Job
    files: List[JobFile] = field(default_factory=list)
    client_name: Optional[str] = None
    file_urls: List[str] = field(default_factory=list)


@dataclass
class AvailableJob:
    """An unassigned job as offered to compilers, priced at their cut."""
    job: Job
    compiler_price: int


class JobRepository:
    """Repository for job persistence and lifecycle transitions.

    Attributes:
        db_manager: DatabaseManager instance for database operations
        url_resolver: Maps a file storage id to a retrievable URL
    """

    def __init__(self, db_manager: DatabaseManager,
                 url_resolver: Optional[Callable[[str], Optional[str]]] = None) -> None:
        """Initialize repository with database manager.

        Args:
            db_manager: DatabaseManager instance for database operations
            url_resolver: Optional callable resolving storage ids to URLs;
                without one, storage ids are used as URLs unchanged
        """
        self.db_manager: DatabaseManager = db_manager
        self.url_resolver = url_resolver

    def create_job(self, title: str, client_id: int, total_price: int,
                   deadline_hours: float,
                   files: Optional[Iterable[Dict[str, Any]]] = None) -> int:
        """Create a new job in RECEIVED status.

        Args:
            title: Job title
            client_id: Owning client id
            total_price: Price in cents
            deadline_hours: Hours from now until the deadline
            files: File descriptors with ``fileName``, ``fileStorageId`` and
                optional ``fileSize``/``fileType``

        Returns:
            Database ID of the created job

        Raises:
            DatabaseError: If database operation fails
        """
        session: Session = self.db_manager.create_session()
        try:
            job = Job(
                title=title,
                client_id=client_id,
                status=JobStatus.RECEIVED.value,
                total_price=total_price,
                deadline_hours=deadline_hours,
                deadline=datetime.now(timezone.utc) + timedelta(hours=deadline_hours),
            )
            for descriptor in files or []:
                job.files.append(JobFile(
                    file_name=descriptor["fileName"],
                    file_storage_id=descriptor["fileStorageId"],
                    file_size=descriptor.get("fileSize"),
                    file_type=descriptor.get("fileType"),
                ))
            session.add(job)
            session.commit()
            logger.info("Created job %s (%s) with %d file(s)", job.id, title, len(job.files))
            return job.id
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database save error: {str(e)}")
        finally:
            session.close()

    def get_job(self, job_id: int) -> Optional[Job]:
        session: Session = self.db_manager.create_session()
        try:
            return session.get(Job, job_id)
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

    def get_job_details(self, job_id: int) -> Optional[JobDetails]:
        """Fetch a job with its files, client name and resolved file URLs.

        Returns:
            JobDetails, or None if the job does not exist
        """
        session: Session = self.db_manager.create_session()
        try:
            job = session.execute(
                select(Job)
                .options(selectinload(Job.files), selectinload(Job.client))
                .where(Job.id == job_id)
            ).scalar_one_or_none()
            if job is None:
                return None
            files = list(job.files)
            client_name = job.client.name if job.client is not None else None
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

        file_urls: List[str] = []
        for job_file in files:
            url = self._resolve_url(job_file.file_storage_id)
            if url:
                file_urls.append(url)
            else:
                logger.warning("No URL for file %s of job %s", job_file.file_storage_id, job_id)
        return JobDetails(job=job, files=files, client_name=client_name, file_urls=file_urls)

    def list_available(self, compiler_commission: int) -> List[AvailableJob]:
        """List unassigned jobs with the compiler's share of each price.

        Includes RECEIVED jobs and IN_PROGRESS jobs that the auto-processor
        left for review without a compiler.
        """
        session: Session = self.db_manager.create_session()
        try:
            jobs = session.execute(
                select(Job)
                .where(Job.compiler_id.is_(None))
                .where(Job.status.in_([JobStatus.RECEIVED.value, JobStatus.IN_PROGRESS.value]))
                .order_by(Job.deadline)
            ).scalars().all()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()
        return [
            AvailableJob(job=job, compiler_price=round(job.total_price * compiler_commission / 100))
            for job in jobs
        ]

    def accept_job(self, job_id: int, compiler_id: int) -> None:
        """Assign a compiler to an unassigned job and move it to IN_PROGRESS.

        Raises:
            JobNotFoundError: If the job does not exist
            AuthorizationError: If the caller is not a compiler
            InvalidTransitionError: If the job is already taken or completed
        """
        def apply(session: Session, job: Job) -> None:
            user = session.get(User, compiler_id)
            if user is None or user.role != UserRole.COMPILER.value:
                raise AuthorizationError("Unauthorized")
            if job.compiler_id is not None or job.status == JobStatus.COMPLETED.value:
                raise InvalidTransitionError("Job not available")
            job.status = JobStatus.IN_PROGRESS.value
            job.compiler_id = compiler_id

        self._mutate(job_id, apply)
        logger.info("Job %s accepted by compiler %s", job_id, compiler_id)

    def update_compiler_step(self, job_id: int, caller_id: int,
                             step: Optional[WorkflowStep] = None,
                             **fields: Any) -> None:
        """Persist the compiler's workflow step and any supplied job fields.

        Only the supplied (non-None) fields are written, so calling this
        repeatedly with the same values is harmless. Status is never
        changed here.

        Args:
            job_id: Job to update
            caller_id: Acting user; must be the assigned compiler
            step: New workflow step
            **fields: Any of analysis_result, confirmed_fields,
                extracted_data, supplier_name, template_found

        Raises:
            JobNotFoundError: If the job does not exist
            AuthorizationError: If the caller is not the assigned compiler
            InvalidTransitionError: If the job is completed or the step is
                ``completed`` (completion goes through complete_job)
        """
        step = _coerce_step(step)
        updates = _collect_fields(fields)

        def apply(session: Session, job: Job) -> None:
            if job.compiler_id != caller_id:
                raise AuthorizationError("Not your job")
            if job.status == JobStatus.COMPLETED.value:
                if step in (None, WorkflowStep.COMPLETED):
                    return
                raise InvalidTransitionError(f"Job {job_id} is completed")
            if step is WorkflowStep.COMPLETED:
                raise InvalidTransitionError("Jobs are completed through complete_job")
            if step is not None:
                job.compiler_step = step.value
            for name, value in updates.items():
                setattr(job, name, value)

        self._mutate(job_id, apply)

    def update_step_privileged(self, job_id: int, step: WorkflowStep,
                               status: Optional[JobStatus] = None,
                               **fields: Any) -> None:
        """Step/status/field patch for the unattended processing path.

        No ownership check is made. Status moves forward only, except
        that an IN_PROGRESS job with no compiler may be returned to
        RECEIVED.

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidTransitionError: If the status change is not permitted
        """
        step = _coerce_step(step)
        updates = _collect_fields(fields)
        new_status = JobStatus(status) if status is not None else None

        def apply(session: Session, job: Job) -> None:
            current = JobStatus(job.status)
            if current is JobStatus.COMPLETED:
                raise InvalidTransitionError(f"Job {job_id} is completed")
            if step is WorkflowStep.COMPLETED:
                raise InvalidTransitionError("Jobs are completed through auto_complete_job")
            if new_status is not None and new_status is not current:
                _check_status_change(job, current, new_status)
                job.status = new_status.value
            job.compiler_step = step.value
            for name, value in updates.items():
                setattr(job, name, value)

        self._mutate(job_id, apply)
        logger.debug("Job %s -> step=%s status=%s", job_id, step.value,
                     new_status.value if new_status else "unchanged")

    def return_to_queue(self, job_id: int) -> None:
        """Put a job back at the front of the manual queue.

        The step goes back to ``selecting``. The status goes back to
        RECEIVED only while no compiler holds the job.

        Raises:
            JobNotFoundError: If the job does not exist
            InvalidTransitionError: If the job is completed
        """
        def apply(session: Session, job: Job) -> None:
            if job.status == JobStatus.COMPLETED.value:
                raise InvalidTransitionError(f"Job {job_id} is completed")
            if job.compiler_id is None:
                job.status = JobStatus.RECEIVED.value
            job.compiler_step = WorkflowStep.SELECTING.value

        self._mutate(job_id, apply)
        logger.info("Job %s returned to the manual queue", job_id)

    def complete_job(self, job_id: int, caller_id: int, csv_storage_id: str,
                     header_fields: List[Dict[str, Any]],
                     line_item_fields: List[Dict[str, Any]],
                     extracted_data: Optional[Dict[str, Any]] = None,
                     output_file_url: Optional[str] = None) -> None:
        """Record the job output and mark the job COMPLETED (compiler path).

        Raises:
            AuthorizationError: If the caller is not the assigned compiler
            InvalidTransitionError: If the job is already completed
        """
        def apply(session: Session, job: Job) -> None:
            if job.compiler_id != caller_id:
                raise AuthorizationError("Not your job")
            self._complete(session, job, csv_storage_id, header_fields,
                           line_item_fields, extracted_data, output_file_url)

        self._mutate(job_id, apply)
        logger.info("Job %s completed by compiler %s", job_id, caller_id)

    def auto_complete_job(self, job_id: int, csv_storage_id: str,
                          header_fields: List[Dict[str, Any]],
                          line_item_fields: List[Dict[str, Any]],
                          extracted_data: Optional[Dict[str, Any]] = None,
                          output_file_url: Optional[str] = None) -> None:
        """Record the job output and mark the job COMPLETED without an owner check."""
        def apply(session: Session, job: Job) -> None:
            self._complete(session, job, csv_storage_id, header_fields,
                           line_item_fields, extracted_data, output_file_url)

        self._mutate(job_id, apply)
        logger.info("Job %s auto-completed", job_id)

    def merge_extracted_data(self, job_id: int, caller_id: int,
                             partial: Dict[str, Any]) -> Dict[str, Any]:
        """Merge a partial extraction update into the job's payload.

        Returns:
            The merged payload as stored
        """
        from ..workflow.payload import merge_extraction_update

        merged: Dict[str, Any] = {}

        def apply(session: Session, job: Job) -> None:
            if job.compiler_id != caller_id:
                raise AuthorizationError("Not your job")
            if job.status == JobStatus.COMPLETED.value:
                raise InvalidTransitionError(f"Job {job_id} is completed")
            merged.update(merge_extraction_update(job.extracted_data, partial))
            job.extracted_data = dict(merged)

        self._mutate(job_id, apply)
        return merged

    def get_output(self, job_id: int) -> Optional[JobOutput]:
        session: Session = self.db_manager.create_session()
        try:
            return session.execute(
                select(JobOutput).where(JobOutput.job_id == job_id)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseError(f"Database query error: {str(e)}")
        finally:
            session.close()

    def delete_job(self, job_id: int, caller_id: int) -> None:
        """Physically delete a job, its files and output (admin override).

        Raises:
            AuthorizationError: If the caller is not an admin
            JobNotFoundError: If the job does not exist
        """
        session: Session = self.db_manager.create_session()
        try:
            user = session.get(User, caller_id)
            if user is None or user.role != UserRole.ADMIN.value:
                raise AuthorizationError("Only admins can delete jobs")
            job = session.get(Job, job_id)
            if job is None:
                raise JobNotFoundError(f"Job {job_id} not found")
            output = session.execute(
                select(JobOutput).where(JobOutput.job_id == job_id)
            ).scalar_one_or_none()
            if output is not None:
                session.delete(output)
            session.delete(job)
            session.commit()
            logger.warning("Job %s deleted by admin %s", job_id, caller_id)
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database delete error: {str(e)}")
        finally:
            session.close()

    def _complete(self, session: Session, job: Job, csv_storage_id: str,
                  header_fields: List[Dict[str, Any]],
                  line_item_fields: List[Dict[str, Any]],
                  extracted_data: Optional[Dict[str, Any]],
                  output_file_url: Optional[str]) -> None:
        if job.status == JobStatus.COMPLETED.value:
            raise InvalidTransitionError(f"Job {job.id} is already completed")
        data = extracted_data if extracted_data is not None else job.extracted_data
        session.add(JobOutput(
            job_id=job.id,
            csv_storage_id=csv_storage_id,
            header_fields=header_fields,
            line_item_fields=line_item_fields,
            extracted_data=data,
        ))
        job.status = JobStatus.COMPLETED.value
        job.compiler_step = WorkflowStep.COMPLETED.value
        job.completed_at = datetime.now(timezone.utc)
        job.output_file_url = output_file_url
        if data is not None:
            job.extracted_data = data

    def _mutate(self, job_id: int, apply: Callable[[Session, Job], None]) -> None:
        """Load a job, apply a change and commit, rolling back on any failure."""
        session: Session = self.db_manager.create_session()
        try:
            job = session.get(Job, job_id)
            if job is None:
                raise JobNotFoundError(f"Job {job_id} not found")
            apply(session, job)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database update error: {str(e)}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _resolve_url(self, storage_id: str) -> Optional[str]:
        if self.url_resolver is None:
            return storage_id
        return self.url_resolver(storage_id)


def _coerce_step(step: Any) -> Optional[WorkflowStep]:
    if step is None:
        return None
    try:
        return WorkflowStep(step)
    except ValueError:
        raise ValidationError(f"Unknown workflow step: {step!r}")


def _collect_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - set(_PATCHABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot patch job fields: {', '.join(sorted(unknown))}")
    return {name: value for name, value in fields.items() if value is not None}


def _check_status_change(job: Job, current: JobStatus, new: JobStatus) -> None:
    if new is JobStatus.COMPLETED:
        raise InvalidTransitionError("Jobs are completed through auto_complete_job")
    if _STATUS_ORDER[new] > _STATUS_ORDER[current]:
        return
    if current is JobStatus.IN_PROGRESS and new is JobStatus.RECEIVED and job.compiler_id is None:
        return
    raise InvalidTransitionError(
        f"Job {job.id} cannot move from {current.value} to {new.value}"
    )
