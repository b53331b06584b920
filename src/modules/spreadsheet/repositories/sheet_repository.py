from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from modules.spreadsheet.models.sheet import SheetCell, SheetRow


class SheetRepository:
    """Append-only rows plus addressable cells, grouped by sheet name"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def append_row(self, sheet: str, values: List) -> SheetRow:
        with self.session_factory() as session:
            row = SheetRow(sheet=sheet, data=list(values))
            session.add(row)
            session.commit()
            session.refresh(row)
            return row

    def find_rows(self, sheet: str) -> List[List]:
        with self.session_factory() as session:
            rows = (
                session.query(SheetRow)
                .filter(SheetRow.sheet == sheet)
                .order_by(SheetRow.id)
                .all()
            )
            return [row.data for row in rows]

    def read_cell(self, sheet: str, ref: str) -> Optional[str]:
        with self.session_factory() as session:
            cell = session.query(SheetCell).filter_by(sheet=sheet, ref=ref).first()
            return cell.value if cell else None

    def write_cell(self, sheet: str, ref: str, value: Optional[str]):
        with self.session_factory() as session:
            cell = session.query(SheetCell).filter_by(sheet=sheet, ref=ref).first()
            if cell is None:
                cell = SheetCell(sheet=sheet, ref=ref)
                session.add(cell)
            cell.value = value
            session.commit()
