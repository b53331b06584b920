from .sheet_repository import SheetRepository

__all__ = ['SheetRepository']
