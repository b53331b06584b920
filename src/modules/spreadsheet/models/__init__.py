from .sheet import SheetRow, SheetCell

__all__ = ['SheetRow', 'SheetCell']
