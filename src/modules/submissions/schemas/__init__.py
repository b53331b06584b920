from .submission_schemas import (
    DocumentType, DogInfo, Submission, MembershipApplication,
    RenewalSubmission, MemberLookupRequest, RequestMeta, parse_submission
)

__all__ = [
    'DocumentType', 'DogInfo', 'Submission', 'MembershipApplication',
    'RenewalSubmission', 'MemberLookupRequest', 'RequestMeta', 'parse_submission'
]
