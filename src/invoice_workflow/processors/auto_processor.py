"""Unattended processing pipeline for newly created jobs.

This module contains the AutoProcessingOrchestrator class, which tries to
take a job from creation to completion without a compiler: read the
supplier off the documents, look for a high-confidence saved template,
extract with that template's fields and either complete the job or leave
it ready for review. Anything short of that returns the job to the manual
queue.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from langfuse import observe

from ..config import Config, SystemConfig
from ..database import JobDetails, JobRepository
from ..exceptions import DatabaseError, JobNotFoundError, ValidationError
from ..extractors import ExtractionOracle
from ..matching import TemplateMatch, TemplateMatcher
from ..models import JobStatus, WorkflowStep
from ..utils import retry_async
from .completion_service import CompletionResult, JobCompletionService

__all__ = ["AutoProcessingOrchestrator", "AutoProcessingResult", "ProcessingAction"]

logger = logging.getLogger(__name__)


class ProcessingAction(str, Enum):
    """Where a job ended up after an auto-processing run."""
    AUTO_COMPLETED = "auto_completed"
    READY_FOR_REVIEW = "ready_for_review"
    MANUAL_PROCESSING = "manual_processing"


@dataclass(frozen=True)
class AutoProcessingResult:
    """Outcome of one auto-processing run.

    Attributes:
        success: False only when a fault occurred
        action: Where the job was routed; None if the job was never found
        reason: Why the job went to manual processing, for soft demotions
        template_score: Best template score seen, if matching ran
        supplier: Supplier name read from the documents
        error: Error message for failed runs
        completion: CSV details when the job was auto-completed
    """
    success: bool
    action: Optional[ProcessingAction] = None
    reason: Optional[str] = None
    template_score: Optional[float] = None
    supplier: Optional[str] = None
    error: Optional[str] = None
    completion: Optional[CompletionResult] = None


class AutoProcessingOrchestrator:
    """Server-side fast path run once per job right after creation.

    Blocking collaborators (database, OpenAI, storage) run in worker
    threads; the steps themselves are strictly sequential and each one is
    written to the job as ``compiler_step`` so the queue can follow along.

    Attributes:
        job_repository: Job persistence backend
        template_matcher: Saved template lookup
        oracle: Extraction oracle used for supplier and field extraction
        completion_service: Completes the job in auto-process mode
        config_provider: Returns the current SystemConfig
        min_score: Best template score required for unattended extraction
    """

    def __init__(self, job_repository: JobRepository, template_matcher: TemplateMatcher,
                 oracle: ExtractionOracle, completion_service: JobCompletionService,
                 config_provider: Callable[[], SystemConfig],
                 min_score: float = Config.AUTO_PROCESS_MIN_SCORE,
                 fetch_attempts: int = Config.JOB_FETCH_ATTEMPTS,
                 fetch_base_delay: float = Config.JOB_FETCH_BASE_DELAY,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        self.job_repository = job_repository
        self.template_matcher = template_matcher
        self.oracle = oracle
        self.completion_service = completion_service
        self.config_provider = config_provider
        self.min_score = min_score
        self.fetch_attempts = fetch_attempts
        self.fetch_base_delay = fetch_base_delay
        self._sleep = sleep

    @observe(name="auto_process_job")
    async def process(self, job_id: int) -> AutoProcessingResult:
        """Run the pipeline for one job.

        Negative outcomes (no supplier, no confident template) are not
        failures: the job is reset to the manual queue and the result is
        successful with action ``manual_processing``. Faults are contained
        the same way but reported with ``success=False``.

        Args:
            job_id: Job to process

        Returns:
            AutoProcessingResult describing where the job went
        """
        logger.info("Auto-processing job %s", job_id)

        details = await self._fetch_job(job_id)
        if details is None:
            logger.error("Job %s not found after %d attempts", job_id, self.fetch_attempts)
            return AutoProcessingResult(success=False, error="Job not found after retries")

        supplier: Optional[str] = None
        score: Optional[float] = None
        try:
            await self._mark(job_id, WorkflowStep.SELECTING, JobStatus.IN_PROGRESS)

            file_urls: List[str] = details.file_urls
            if not file_urls:
                raise ValidationError("No files found for processing")

            supplier = await asyncio.to_thread(self.oracle.extract_supplier, file_urls)
            if not supplier:
                return await self._mark_manual(job_id, "Could not extract supplier name")
            logger.info("Job %s supplier: %s", job_id, supplier)

            await self._mark(job_id, WorkflowStep.ANALYZING)
            matches: List[TemplateMatch] = await asyncio.to_thread(
                self.template_matcher.match, supplier, details.client_name
            )
            best = matches[0] if matches else None
            score = best.score if best else None
            if best is None or best.score < self.min_score:
                return await self._mark_manual(job_id, "No high-confidence template match",
                                               supplier=supplier, template_score=score)
            logger.info("Job %s matched template %s (score %.3f)",
                        job_id, best.template_id, best.score)

            await self._mark(job_id, WorkflowStep.EXTRACTING)
            extracted = await asyncio.to_thread(
                self.oracle.extract, file_urls, best.header_fields, best.line_item_fields
            )

            await self._mark(job_id, WorkflowStep.REVIEWING)
            config: SystemConfig = await asyncio.to_thread(self.config_provider)

            if config.auto_process:
                completion = await asyncio.to_thread(
                    self.completion_service.complete_unattended,
                    job_id, details.job.title, extracted,
                    best.header_fields, best.line_item_fields,
                )
                logger.info("Job %s auto-completed", job_id)
                return AutoProcessingResult(
                    success=True, action=ProcessingAction.AUTO_COMPLETED,
                    template_score=best.score, supplier=supplier, completion=completion,
                )

            await asyncio.to_thread(
                self.job_repository.update_step_privileged,
                job_id, WorkflowStep.REVIEWING, JobStatus.IN_PROGRESS,
                analysis_result=best.to_analysis().to_dict(),
                extracted_data=extracted,
                supplier_name=best.supplier,
                template_found=True,
            )
            logger.info("Job %s extracted and ready for review", job_id)
            return AutoProcessingResult(
                success=True, action=ProcessingAction.READY_FOR_REVIEW,
                template_score=best.score, supplier=supplier,
            )
        except Exception as e:
            logger.error("Auto-processing failed for job %s: %s", job_id, e, exc_info=True)
            await self._reset(job_id)
            return AutoProcessingResult(
                success=False, action=ProcessingAction.MANUAL_PROCESSING,
                template_score=score, supplier=supplier, error=str(e),
            )

    async def _fetch_job(self, job_id: int) -> Optional[JobDetails]:
        async def fetch() -> JobDetails:
            details = await asyncio.to_thread(self.job_repository.get_job_details, job_id)
            if details is None:
                raise JobNotFoundError(f"Job {job_id} not found")
            return details

        try:
            return await retry_async(fetch, attempts=self.fetch_attempts,
                                     base_delay=self.fetch_base_delay,
                                     retry_on=(DatabaseError, JobNotFoundError),
                                     sleep=self._sleep)
        except (DatabaseError, JobNotFoundError) as e:
            logger.warning("Giving up on job %s: %s", job_id, e)
            return None

    async def _mark(self, job_id: int, step: WorkflowStep,
                    status: Optional[JobStatus] = None) -> None:
        logger.info("Job %s -> %s", job_id, step.value)
        await asyncio.to_thread(self.job_repository.update_step_privileged, job_id, step, status)

    async def _mark_manual(self, job_id: int, reason: str,
                           supplier: Optional[str] = None,
                           template_score: Optional[float] = None) -> AutoProcessingResult:
        logger.info("Job %s needs manual processing: %s", job_id, reason)
        await asyncio.to_thread(self.job_repository.return_to_queue, job_id)
        return AutoProcessingResult(
            success=True, action=ProcessingAction.MANUAL_PROCESSING, reason=reason,
            template_score=template_score, supplier=supplier,
        )

    async def _reset(self, job_id: int) -> None:
        try:
            await asyncio.to_thread(self.job_repository.return_to_queue, job_id)
        except Exception as e:
            logger.error("Failed to reset job %s for manual processing: %s", job_id, e)
