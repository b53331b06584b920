from .email import Attachment, OutgoingEmail, SendResult

__all__ = ['Attachment', 'OutgoingEmail', 'SendResult']
