"""Compiler workbench state machine for a single job.

This module contains the JobWorkflowStateMachine class, which walks a job
through ``selecting -> analyzing -> confirming -> extracting -> reviewing
-> completed``. It reconciles agent tool results and user edits against
the field schema and writes its state back to the job after every change.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Set, Union

from ..exceptions import (
    DatabaseError,
    DataExtractionError,
    InvalidTransitionError,
    JobNotFoundError,
    PDFProcessingError,
    StorageError,
    ValidationError,
)
from ..matching import TemplateMatch
from ..models import AnalysisResult, FieldType, SuggestedField, WorkflowStep, fields_from_dicts
from .fields import FieldGroup, replace_in_analysis, replace_in_list, slugify_label, split_confirmed
from .payload import apply_review_edit
from .resume import resume_step
from .tool_results import (
    AnalyzeInvoiceResult,
    ExtractInvoiceResult,
    MatchTemplateResult,
    ToolInvocation,
    parse_tool_result,
)

if TYPE_CHECKING:
    from ..database import JobRepository
    from ..extractors import ExtractionOracle
    from ..matching import TemplateMatcher
    from ..processors import CompletionResult, JobCompletionService

__all__ = ["JobWorkflowStateMachine", "WorkflowState", "ALLOWED_TRANSITIONS"]

logger = logging.getLogger(__name__)

_S = WorkflowStep

ALLOWED_TRANSITIONS: Dict[WorkflowStep, Set[WorkflowStep]] = {
    _S.LOADING: {_S.SELECTING, _S.ANALYZING, _S.CONFIRMING, _S.EXTRACTING, _S.REVIEWING, _S.COMPLETED},
    _S.SELECTING: {_S.ANALYZING, _S.CONFIRMING, _S.REVIEWING},
    _S.ANALYZING: {_S.CONFIRMING, _S.REVIEWING},
    _S.CONFIRMING: {_S.EXTRACTING, _S.REVIEWING},
    _S.EXTRACTING: {_S.REVIEWING, _S.CONFIRMING},
    # back to confirming only on re-analysis or an explicit reconfigure
    _S.REVIEWING: {_S.CONFIRMING, _S.COMPLETED},
    _S.COMPLETED: set(),
}

# steps that are never written back to the job by the workbench
_UNPERSISTED = (_S.LOADING, _S.COMPLETED)


@dataclass
class WorkflowState:
    """In-memory workbench state for one job."""
    step: WorkflowStep = WorkflowStep.LOADING
    analysis: Optional[AnalysisResult] = None
    confirmed_fields: List[SuggestedField] = field(default_factory=list)
    extracted_data: Dict[str, Any] = field(default_factory=dict)
    supplier_name: Optional[str] = None
    template_found: Optional[bool] = None
    template_options: List[TemplateMatch] = field(default_factory=list)
    selected_template_id: Optional[int] = None
    error: Optional[str] = None
    processed_call_ids: Set[str] = field(default_factory=set)
    redirect: Optional[str] = None


class JobWorkflowStateMachine:
    """Drives one compiler's extraction session on one job.

    Every state change is followed by a single idempotent step update on
    the job (step plus analysis, confirmed fields, extracted data,
    supplier and template flag), so the session can be resumed later.

    Attributes:
        job_id: Job being worked on
        compiler_id: Compiler operating the workbench; must own the job
        job_repository: Job persistence backend
        template_matcher: Saved template lookup and storage
        oracle: Extraction oracle for analysis and extraction
        completion_service: Performs the final completion step
        state: Current WorkflowState
    """

    def __init__(self, job_id: int, compiler_id: int, job_repository: "JobRepository",
                 template_matcher: Optional["TemplateMatcher"] = None,
                 oracle: Optional["ExtractionOracle"] = None,
                 completion_service: Optional["JobCompletionService"] = None) -> None:
        self.job_id = job_id
        self.compiler_id = compiler_id
        self.job_repository = job_repository
        self.template_matcher = template_matcher
        self.oracle = oracle
        self.completion_service = completion_service
        self.state = WorkflowState()
        self.job_title: str = ""
        self.client_id: Optional[int] = None
        self.client_name: Optional[str] = None
        self.file_urls: List[str] = []
        self.file_count: int = 0

    @property
    def step(self) -> WorkflowStep:
        return self.state.step

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> WorkflowStep:
        """Load the job, restore saved progress and pick the resume step.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        details = self.job_repository.get_job_details(self.job_id)
        if details is None:
            raise JobNotFoundError(f"Job {self.job_id} not found")

        job = details.job
        self.job_title = job.title
        self.client_id = job.client_id
        self.client_name = details.client_name
        self.file_urls = list(details.file_urls)
        self.file_count = len(details.files)

        state = self.state
        if job.analysis_result:
            state.analysis = AnalysisResult.from_dict(job.analysis_result)
        if job.confirmed_fields:
            state.confirmed_fields = fields_from_dicts(job.confirmed_fields)
        if job.extracted_data:
            state.extracted_data = dict(job.extracted_data)
        if job.supplier_name:
            state.supplier_name = job.supplier_name
        if job.template_found is not None:
            state.template_found = job.template_found

        state.step = resume_step(job)
        logger.info("Job %s resumed at %s", self.job_id, state.step.value)
        self._persist()
        return state.step

    # ------------------------------------------------------------------
    # Agent tool results
    # ------------------------------------------------------------------

    def apply_tool_invocations(self,
                               invocations: Iterable[Union[ToolInvocation, Dict[str, Any]]]) -> int:
        """Apply finished tool calls from the agent stream.

        Each call id is handled at most once; replays are ignored.
        Invocations that have not finished yet are left unmarked so their
        result can be applied when it arrives.

        Returns:
            Number of invocations that changed state
        """
        applied = 0
        for raw in invocations:
            invocation = raw if isinstance(raw, ToolInvocation) else ToolInvocation.from_dict(raw)
            if invocation.call_id in self.state.processed_call_ids:
                continue
            if invocation.state != "result":
                continue
            self.state.processed_call_ids.add(invocation.call_id)
            result = parse_tool_result(invocation)
            if result is None or self.state.step is WorkflowStep.COMPLETED:
                continue

            if isinstance(result, AnalyzeInvoiceResult):
                self._apply_analysis(result.analysis)
            elif isinstance(result, ExtractInvoiceResult):
                self._apply_extraction(result)
            elif isinstance(result, MatchTemplateResult):
                self._apply_matches(result.matches)
            logger.debug("Applied %s (call %s) to job %s",
                         invocation.tool_name, invocation.call_id, self.job_id)
            applied += 1
        return applied

    def _apply_analysis(self, analysis: AnalysisResult) -> None:
        self.state.analysis = analysis
        self.state.confirmed_fields = analysis.all_fields
        self._goto(WorkflowStep.CONFIRMING)

    def _apply_extraction(self, result: ExtractInvoiceResult) -> None:
        self.state.extracted_data = result.extracted_data
        if self.state.analysis is None:
            self.state.analysis = AnalysisResult(
                header_fields=list(result.header_fields),
                line_item_fields=list(result.line_item_fields),
            )
        self._goto(WorkflowStep.REVIEWING)

    def _apply_matches(self, matches: List[TemplateMatch]) -> None:
        self.state.template_options = list(matches)
        self.state.template_found = True
        if self.state.selected_template_id is None:
            best = matches[0]
            self.state.selected_template_id = best.template_id
            if not self.state.supplier_name and best.supplier:
                self.state.supplier_name = best.supplier
            self._use_template(best)
        self._persist()

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def select_template(self, template_id: int) -> None:
        """Replace the field schema with a candidate template's.

        Any edits made to the current schema are discarded.

        Raises:
            ValidationError: If the template is not one of the options
        """
        template = next((t for t in self.state.template_options
                         if t.template_id == template_id), None)
        if template is None:
            raise ValidationError(f"Template {template_id} is not a candidate for this job")
        self.state.selected_template_id = template_id
        self._use_template(template)
        self._persist()

    def request_template_match(self, supplier: Optional[str] = None) -> List[TemplateMatch]:
        """Look up saved templates for the supplier and apply the matches."""
        if self.template_matcher is None:
            raise ValidationError("Template matching is not configured")
        query = supplier or self.state.supplier_name
        if not query:
            raise ValidationError("Supplier name is required for template matching")
        if supplier:
            self.state.supplier_name = supplier
        matches = self.template_matcher.match(query, self.client_name)
        if matches:
            self._apply_matches(matches)
        else:
            self.state.template_found = False
            self._persist()
        return matches

    def save_template(self, supplier: Optional[str] = None) -> int:
        """Save the confirmed fields as a template for the supplier.

        Updates the selected template when there is one.

        Returns:
            Template id
        """
        if self.template_matcher is None:
            raise ValidationError("Template matching is not configured")
        name = (supplier or self.state.supplier_name or "").strip()
        if not name:
            raise ValidationError("Supplier name is required to save a template")
        if self.state.analysis is None:
            raise ValidationError("No field schema to save")

        headers, line_items = split_confirmed(self.state.confirmed_fields, self.state.analysis)
        template_id = self.template_matcher.upsert_template(
            name, headers, line_items,
            client_id=self.client_id,
            client_name=self.client_name or "",
            template_id=self.state.selected_template_id,
            created_by=self.compiler_id,
        )
        self.state.supplier_name = name
        self.state.selected_template_id = template_id
        self.state.template_found = True
        if not any(t.template_id == template_id for t in self.state.template_options):
            self.state.template_options.append(TemplateMatch(
                template_id=template_id,
                supplier=name,
                client_name=self.client_name or "",
                header_fields=headers,
                line_item_fields=line_items,
                score=1.0,
            ))
        logger.info("Saved template %s for supplier %r from job %s", template_id, name, self.job_id)
        self._persist()
        return template_id

    def _use_template(self, template: TemplateMatch) -> None:
        self.state.analysis = template.to_analysis()
        self.state.confirmed_fields = [*template.header_fields, *template.line_item_fields]

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def request_analysis(self) -> Optional[AnalysisResult]:
        """Ask the oracle for a field schema and move to confirming.

        On failure the error is recorded and the step is left where it was.
        """
        if self.oracle is None:
            raise ValidationError("Extraction oracle is not configured")
        previous = self.state.step
        if previous is WorkflowStep.COMPLETED:
            raise InvalidTransitionError(f"Job {self.job_id} is completed")
        if WorkflowStep.ANALYZING in ALLOWED_TRANSITIONS[previous]:
            self._goto(WorkflowStep.ANALYZING)
        self.state.error = None
        try:
            analysis = self.oracle.analyze(self.file_urls)
        except (DataExtractionError, PDFProcessingError, ValidationError) as e:
            logger.error("Analysis failed for job %s: %s", self.job_id, e)
            self.state.error = str(e)
            self._rollback(previous)
            return None
        self._apply_analysis(analysis)
        return analysis

    # ------------------------------------------------------------------
    # Confirming
    # ------------------------------------------------------------------

    def toggle_field(self, name: str) -> bool:
        """Toggle a field in or out of the confirmed set.

        Returns:
            True if the field is confirmed afterwards
        """
        self._require_step(WorkflowStep.CONFIRMING)
        confirmed = self.state.confirmed_fields
        if any(f.name == name for f in confirmed):
            self.state.confirmed_fields = [f for f in confirmed if f.name != name]
            self._persist()
            return False

        original = self._analysis_field(name)
        if original is None:
            raise ValidationError(f"Unknown field: {name}")
        self.state.confirmed_fields = [*confirmed, original]
        self._persist()
        return True

    def rename_field(self, name: str, label: str) -> None:
        if not label or not label.strip():
            raise ValidationError("Field label cannot be empty")
        self._edit_field(name, label=label)

    def update_description(self, name: str, description: str) -> None:
        self._edit_field(name, description=description)

    def set_required(self, name: str, required: bool) -> None:
        self._edit_field(name, required=bool(required))

    def add_custom_field(self, group: Union[FieldGroup, str], label: str,
                         type: Union[FieldType, str] = FieldType.STRING,
                         description: str = "", required: bool = False) -> SuggestedField:
        """Add a user-defined field to a group; it starts out confirmed.

        The field name is the camelCase form of the label.

        Raises:
            ValidationError: If the label is blank, the group or type is
                unknown, or a field with the same name exists
        """
        self._require_step(WorkflowStep.CONFIRMING)
        if not label or not label.strip():
            raise ValidationError("Field label cannot be empty")
        try:
            group = FieldGroup(group)
            field_type = FieldType(type)
        except ValueError as e:
            raise ValidationError(str(e))

        name = slugify_label(label)
        if not name:
            raise ValidationError(f"Label {label!r} does not produce a field name")
        if self._analysis_field(name) is not None or any(
                f.name == name for f in self.state.confirmed_fields):
            raise ValidationError(f"Field {name} already exists")

        new_field = SuggestedField(name=name, label=label, type=field_type,
                                   description=description, required=required)
        analysis = self.state.analysis or AnalysisResult(header_fields=[], line_item_fields=[])
        if group is FieldGroup.HEADER:
            analysis = analysis.with_changes(header_fields=[*analysis.header_fields, new_field])
        else:
            analysis = analysis.with_changes(line_item_fields=[*analysis.line_item_fields, new_field])
        self.state.analysis = analysis
        self.state.confirmed_fields = [*self.state.confirmed_fields, new_field]
        self._persist()
        return new_field

    def _edit_field(self, name: str, **changes: Any) -> None:
        self._require_step(WorkflowStep.CONFIRMING)
        confirmed, in_confirmed = replace_in_list(self.state.confirmed_fields, name, **changes)
        in_analysis = False
        if self.state.analysis is not None:
            self.state.analysis, in_analysis = replace_in_analysis(self.state.analysis, name, **changes)
        if not (in_confirmed or in_analysis):
            raise ValidationError(f"Unknown field: {name}")
        self.state.confirmed_fields = confirmed
        self._persist()

    def _analysis_field(self, name: str) -> Optional[SuggestedField]:
        if self.state.analysis is None:
            return None
        return next((f for f in self.state.analysis.all_fields if f.name == name), None)

    # ------------------------------------------------------------------
    # Extracting and reviewing
    # ------------------------------------------------------------------

    def extract(self) -> bool:
        """Extract the confirmed fields from the job's documents.

        Returns:
            True on success (now reviewing); False with ``state.error`` set
            when nothing was extracted (back to confirming)
        """
        self._require_step(WorkflowStep.CONFIRMING)
        if not self.state.confirmed_fields:
            self.state.error = "Please select at least one field to extract"
            return False
        if self.oracle is None:
            raise ValidationError("Extraction oracle is not configured")

        self._goto(WorkflowStep.EXTRACTING)
        self.state.error = None
        try:
            if not self.file_urls or len(self.file_urls) < self.file_count:
                raise DataExtractionError("File URLs not available for selected files")
            headers, line_items = split_confirmed(self.state.confirmed_fields, self.state.analysis)
            data = self.oracle.extract(self.file_urls, headers, line_items)
        except (DataExtractionError, PDFProcessingError, ValidationError) as e:
            logger.error("Extraction failed for job %s: %s", self.job_id, e)
            self.state.error = str(e) or "Data extraction failed"
            self._rollback(WorkflowStep.CONFIRMING)
            return False

        self.state.extracted_data = data
        self._goto(WorkflowStep.REVIEWING)
        return True

    def edit_extracted_data(self, edit: Dict[str, Any],
                            document_index: Optional[int] = None) -> Dict[str, Any]:
        """Merge a reviewer's edit into the extracted data.

        With ``document_index`` the edit replaces that document of a
        multi-document payload and leaves the others untouched.
        """
        self._require_step(WorkflowStep.REVIEWING)
        self.state.extracted_data = apply_review_edit(self.state.extracted_data, edit,
                                                      document_index)
        self._persist()
        return self.state.extracted_data

    def reconfigure(self) -> None:
        """Go back from reviewing to adjust the confirmed fields."""
        self._require_step(WorkflowStep.REVIEWING)
        self._goto(WorkflowStep.CONFIRMING)

    def complete(self) -> Optional["CompletionResult"]:
        """Export, upload and complete the job.

        Returns:
            The completion result, or None with ``state.error`` set if the
            CSV could not be stored or the job could not be updated
        """
        self._require_step(WorkflowStep.REVIEWING)
        if self.completion_service is None:
            raise ValidationError("Job completion is not configured")
        if not self.state.extracted_data:
            raise ValidationError("No extracted data to complete the job with")

        analysis = self.state.analysis or AnalysisResult(header_fields=[], line_item_fields=[])
        try:
            result = self.completion_service.complete_for_compiler(
                self.job_id, self.compiler_id, self.job_title, self.state.extracted_data,
                analysis.header_fields, analysis.line_item_fields,
            )
        except (StorageError, DatabaseError) as e:
            logger.error("Completing job %s failed: %s", self.job_id, e)
            self.state.error = "Error completing job. Please try again."
            return None

        self.state.error = None
        self.state.step = WorkflowStep.COMPLETED
        self.state.redirect = result.redirect_path
        logger.info("Job %s completed by compiler %s", self.job_id, self.compiler_id)
        return result

    # ------------------------------------------------------------------
    # Step handling and persistence
    # ------------------------------------------------------------------

    def _goto(self, step: WorkflowStep) -> None:
        current = self.state.step
        if step is not current and step not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(f"Cannot move from {current.value} to {step.value}")
        self.state.step = step
        self._persist()

    def _rollback(self, step: WorkflowStep) -> None:
        self.state.step = step
        self._persist()

    def _require_step(self, step: WorkflowStep) -> None:
        if self.state.step is not step:
            raise InvalidTransitionError(
                f"Action requires step {step.value}, job is at {self.state.step.value}"
            )

    def _persist(self) -> None:
        state = self.state
        if state.step in _UNPERSISTED:
            return
        self.job_repository.update_compiler_step(
            self.job_id, self.compiler_id, state.step,
            analysis_result=state.analysis.to_dict() if state.analysis else None,
            confirmed_fields=[f.to_dict() for f in state.confirmed_fields] or None,
            extracted_data=state.extracted_data or None,
            supplier_name=state.supplier_name,
            template_found=state.template_found,
        )
