"""Job completion for the invoice workflow application.

This module contains the JobCompletionService class, which performs the
final step of a job: export the extracted data to CSV, upload it, record
the output and mark the job COMPLETED, then send the completion notice
when the job came from an email.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from ..config import Config
from ..database import JobRepository
from ..models import SuggestedField, fields_to_dicts
from ..notifications import CompletionNotifier
from ..output import CSVExporter, ExportedCSV
from ..storage import BlobStorage

__all__ = ["JobCompletionService", "CompletionResult"]

logger = logging.getLogger(__name__)

AUTO_CSV_TITLE = "Auto-extracted Invoice"


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of completing a job.

    Attributes:
        csv_storage_id: Storage id of the uploaded CSV
        csv_url: Retrievable URL of the CSV
        filename: Suggested download name of the CSV
        notified: Whether a completion email was sent
        redirect_path: Where the workbench navigates next, if anywhere
        redirect_delay: Seconds to wait before redirecting
    """
    csv_storage_id: str
    csv_url: Optional[str]
    filename: str
    notified: bool = False
    redirect_path: Optional[str] = None
    redirect_delay: float = 0.0


class JobCompletionService:
    """Completes jobs for compilers and for the unattended pipeline.

    Attributes:
        job_repository: Job persistence backend
        storage: Blob storage for the CSV artifact
        exporter: CSV serializer
        notifier: Optional completion email sender
    """

    def __init__(self, job_repository: JobRepository, storage: BlobStorage,
                 exporter: Optional[CSVExporter] = None,
                 notifier: Optional[CompletionNotifier] = None,
                 redirect_path: str = Config.COMPLETION_REDIRECT_PATH,
                 redirect_delay: float = Config.COMPLETION_REDIRECT_DELAY) -> None:
        self.job_repository = job_repository
        self.storage = storage
        self.exporter = exporter or CSVExporter()
        self.notifier = notifier
        self.redirect_path = redirect_path
        self.redirect_delay = redirect_delay

    def complete_for_compiler(self, job_id: int, compiler_id: int, job_title: str,
                              extracted_data: Dict[str, Any],
                              header_fields: Sequence[SuggestedField],
                              line_item_fields: Sequence[SuggestedField]) -> CompletionResult:
        """Complete a job on behalf of its assigned compiler.

        Raises:
            AuthorizationError: If the compiler does not own the job
            InvalidTransitionError: If the job is already completed
            StorageError: If the CSV cannot be stored
        """
        csv, storage_id, url = self._export_and_upload(job_title, extracted_data,
                                                       header_fields, line_item_fields)
        self.job_repository.complete_job(
            job_id, compiler_id, storage_id,
            header_fields=fields_to_dicts(header_fields),
            line_item_fields=fields_to_dicts(line_item_fields),
            extracted_data=extracted_data,
            output_file_url=url,
        )
        notified = self._notify(job_id, job_title, csv, storage_id)
        return CompletionResult(
            csv_storage_id=storage_id,
            csv_url=url,
            filename=csv.filename,
            notified=notified,
            redirect_path=self.redirect_path,
            redirect_delay=self.redirect_delay,
        )

    def complete_unattended(self, job_id: int, job_title: str,
                            extracted_data: Dict[str, Any],
                            header_fields: Sequence[SuggestedField],
                            line_item_fields: Sequence[SuggestedField],
                            csv_title: str = AUTO_CSV_TITLE) -> CompletionResult:
        """Complete a job without a compiler (auto-processing path).

        The CSV is named after ``csv_title``; the completion email still
        quotes the job's own title.
        """
        csv, storage_id, url = self._export_and_upload(csv_title, extracted_data,
                                                       header_fields, line_item_fields)
        self.job_repository.auto_complete_job(
            job_id, storage_id,
            header_fields=fields_to_dicts(header_fields),
            line_item_fields=fields_to_dicts(line_item_fields),
            extracted_data=extracted_data,
            output_file_url=url,
        )
        notified = self._notify(job_id, job_title, csv, storage_id)
        return CompletionResult(csv_storage_id=storage_id, csv_url=url,
                                filename=csv.filename, notified=notified)

    def _export_and_upload(self, job_title: str, extracted_data: Dict[str, Any],
                           header_fields: Sequence[SuggestedField],
                           line_item_fields: Sequence[SuggestedField]) -> Tuple[ExportedCSV, str, Optional[str]]:
        csv: ExportedCSV = self.exporter.export(
            extracted_data, [*header_fields, *line_item_fields], job_title
        )
        upload_url = self.storage.generate_upload_url()
        storage_id = self.storage.upload(upload_url, csv.data, "text/csv")
        url = self.storage.get_url(storage_id)
        logger.info("Uploaded %s as %s", csv.filename, storage_id)
        return csv, storage_id, url

    def _notify(self, job_id: int, job_title: str, csv: ExportedCSV, storage_id: str) -> bool:
        if self.notifier is None:
            return False
        return self.notifier.notify_if_linked(job_id, job_title, csv, storage_id)
