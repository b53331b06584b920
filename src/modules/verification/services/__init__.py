from .verification_service import VerificationService, VerificationError

__all__ = ['VerificationService', 'VerificationError']
