from .verification_token import (
    VerificationToken, TokenValidation, TokenRejection, VerificationStats
)

__all__ = ['VerificationToken', 'TokenValidation', 'TokenRejection', 'VerificationStats']
