from .lifecycle_service import (
    LifecycleError, SubmissionLifecycle, SubmissionResult, SubmissionStatus, VerificationOutcome
)
from .renewal_service import RenewalService

__all__ = [
    'LifecycleError', 'SubmissionLifecycle', 'SubmissionResult', 'SubmissionStatus',
    'VerificationOutcome', 'RenewalService'
]
