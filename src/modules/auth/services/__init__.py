from .auth_service import AuthService, AuthError
from .account_service import (
    AccountProvisioner, AccountProvisioningError, AccountRequest, AccountResult
)

__all__ = [
    'AuthService', 'AuthError',
    'AccountProvisioner', 'AccountProvisioningError', 'AccountRequest', 'AccountResult'
]
