from .email_service import EmailSender, EmailDeliveryError
from .notification_service import NotificationService

__all__ = ['EmailSender', 'EmailDeliveryError', 'NotificationService']
