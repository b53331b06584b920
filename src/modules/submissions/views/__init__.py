from .verification_pages import failure_page, rejection_page, success_page

__all__ = ['failure_page', 'rejection_page', 'success_page']
