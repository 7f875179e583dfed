"""Workflow and background job error classes."""

from business_case_ai.core.errors.common import BusinessCaseError


class StepStateError(BusinessCaseError):
    """Illegal transition of a workflow step (e.g. mutating a finished step)."""

    def __init__(self, message: str):
        super().__init__(message, code="step_state_error")


class JobNotFoundError(BusinessCaseError):
    """No status record exists for the requested job id."""

    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}", code="job_not_found")
        self.job_id = job_id
