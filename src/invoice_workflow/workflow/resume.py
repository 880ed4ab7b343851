"""Where a compiler's workbench session picks up on a persisted job.

Precedence:

==============================  =================
Job state                       Resumed step
==============================  =================
status COMPLETED                ``completed``
extracted data present          ``reviewing``
valid persisted compiler step   that step
otherwise                       ``analyzing``
==============================  =================
"""

from typing import Any

from ..models import JobStatus, WorkflowStep

__all__ = ["resume_step"]


def resume_step(job: Any) -> WorkflowStep:
    """Return the workflow step to resume at for ``job``.

    ``job`` needs ``status``, ``extracted_data`` and ``compiler_step``
    attributes (a ``Job`` row or anything shaped like one).
    """
    if job.status == JobStatus.COMPLETED.value:
        return WorkflowStep.COMPLETED

    if job.extracted_data:
        return WorkflowStep.REVIEWING

    step = job.compiler_step
    if step:
        try:
            resumed = WorkflowStep(step)
        except ValueError:
            resumed = None
        if resumed not in (None, WorkflowStep.LOADING, WorkflowStep.COMPLETED):
            return resumed

    return WorkflowStep.ANALYZING
