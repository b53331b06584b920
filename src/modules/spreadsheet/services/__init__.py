from .sheet_service import SheetService, STATUS_PENDING, STATUS_VERIFIED

__all__ = ['SheetService', 'STATUS_PENDING', 'STATUS_VERIFIED']
