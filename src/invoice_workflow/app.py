"""Application wiring for the invoice workflow.

This module contains the WorkflowApp class, which builds the repositories,
storage, OpenAI-backed services and processors from the environment and
hands out job intake, ready-to-use workbench sessions and the
auto-processor.
"""

import asyncio
import os
from typing import Optional, Sequence, Tuple

from dotenv import load_dotenv

from .config import Config, SystemConfig
from .database import (
    DatabaseManager,
    InboxRepository,
    JobRepository,
    SettingsRepository,
    TemplateRepository,
    UserRepository,
)
from .extractors import DocumentLoader, ExtractionOracle
from .matching import EmbeddingService, TemplateMatcher
from .notifications import CompletionNotifier, EmailSender, NullEmailSender, PostmarkEmailSender
from .processors import (
    AutoProcessingOrchestrator,
    AutoProcessingResult,
    InboundEmail,
    IntakeResult,
    JobCompletionService,
    JobIntakeService,
    UploadedDocument,
)
from .storage import BlobStorage
from .workflow import JobWorkflowStateMachine

__all__ = ["WorkflowApp"]

# Load environment variables
load_dotenv()


class WorkflowApp:
    """Dependency container for the invoice workflow.

    Database, storage and notification components are created eagerly.
    The OpenAI-backed services are created on first use, so commands that
    only touch the database run without an API key.

    Attributes:
        db_manager: DatabaseManager for database operations
        storage: Blob storage for documents and CSV files
        jobs: Job repository (file URLs resolved through storage)
        templates: Template repository
        settings: Settings repository
        inbox: Inbox repository
        users: User and client repository
        completion_service: Job completion service
        intake: Job intake from uploads and inbound email
    """

    def __init__(self, database_url: Optional[str] = None,
                 storage_dir: Optional[str] = None,
                 api_key: Optional[str] = None,
                 email_sender: Optional[EmailSender] = None) -> None:
        self.db_manager: DatabaseManager = DatabaseManager(database_url or Config.DATABASE_URL)
        self.storage: BlobStorage = BlobStorage(storage_dir or Config.STORAGE_DIR)
        self.jobs: JobRepository = JobRepository(self.db_manager, url_resolver=self.storage.get_url)
        self.templates: TemplateRepository = TemplateRepository(self.db_manager)
        self.settings: SettingsRepository = SettingsRepository(self.db_manager)
        self.inbox: InboxRepository = InboxRepository(self.db_manager)
        self.users: UserRepository = UserRepository(self.db_manager)

        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.email_sender: EmailSender = email_sender or self._create_email_sender()
        self.completion_service: JobCompletionService = JobCompletionService(
            self.jobs, self.storage,
            notifier=CompletionNotifier(self.inbox, self.email_sender),
        )
        self.intake: JobIntakeService = JobIntakeService(self.jobs, self.storage,
                                                         self.inbox, self.users)
        self._oracle: Optional[ExtractionOracle] = None
        self._matcher: Optional[TemplateMatcher] = None

    @property
    def oracle(self) -> ExtractionOracle:
        if self._oracle is None:
            self._oracle = ExtractionOracle(api_key=self.api_key, loader=DocumentLoader())
        return self._oracle

    @property
    def matcher(self) -> TemplateMatcher:
        if self._matcher is None:
            self._matcher = TemplateMatcher(self.templates, EmbeddingService(api_key=self.api_key))
        return self._matcher

    def system_config(self) -> SystemConfig:
        return SystemConfig.load(self.settings)

    def auto_processor(self) -> AutoProcessingOrchestrator:
        return AutoProcessingOrchestrator(
            self.jobs, self.matcher, self.oracle, self.completion_service,
            config_provider=self.system_config,
        )

    async def submit_job(self, title: str, client_id: int,
                         documents: Sequence[UploadedDocument],
                         total_price: int = 0, deadline_hours: float = 24,
                         auto_process: bool = True
                         ) -> Tuple[int, Optional[AutoProcessingResult]]:
        """Create a job from uploaded documents, then auto-process it.

        Returns:
            The new job id and the auto-processing result (None when skipped)
        """
        job_id = await asyncio.to_thread(self.intake.create_job, title, client_id, documents,
                                         total_price, deadline_hours)
        if not auto_process:
            return job_id, None
        return job_id, await self.auto_processor().process(job_id)

    async def receive_email(self, email: InboundEmail, auto_process: bool = True
                            ) -> Tuple[IntakeResult, Optional[AutoProcessingResult]]:
        """Create and link a job from an inbound email, then auto-process invoices."""
        intake = await asyncio.to_thread(self.intake.ingest_email, email)
        if not (auto_process and intake.auto_process):
            return intake, None
        return intake, await self.auto_processor().process(intake.job_id)

    def workbench(self, job_id: int, compiler_id: int) -> JobWorkflowStateMachine:
        """Return a loaded workbench session for a compiler's job."""
        session = JobWorkflowStateMachine(
            job_id, compiler_id, self.jobs,
            template_matcher=self.matcher,
            oracle=self.oracle,
            completion_service=self.completion_service,
        )
        session.load()
        return session

    def close(self) -> None:
        self.db_manager.dispose()

    @staticmethod
    def _create_email_sender() -> EmailSender:
        token = os.getenv("POSTMARK_SERVER_TOKEN") or Config.POSTMARK_SERVER_TOKEN
        if not token:
            return NullEmailSender()
        return PostmarkEmailSender(token)
