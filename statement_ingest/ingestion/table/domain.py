from dataclasses import dataclass, field
from typing import Dict, List

from ...models import AnchorRole, ColumnAnchor, Row


@dataclass
class HeaderMatch:
    """
    Location of a table header on a page.
    A split header spans two rows: labels on the first, the amount label on the second.
    """
    row_index: int
    rows: List[Row]
    split: bool = False

    @property
    def data_start(self) -> int:
        return self.row_index + (2 if self.split else 1)


@dataclass
class ReconstructedRow:
    """
    A data row with its text assigned to anchored columns.
    credit_marker is set when the row was followed by a lone 'CR' row.
    """
    cells: Dict[AnchorRole, str]
    page: int
    row_index: int
    credit_marker: bool = False

    def cell(self, role: AnchorRole) -> str:
        return self.cells.get(role, "")

    @property
    def has_amount(self) -> bool:
        return bool(self.cells.get(AnchorRole.AMOUNT, "").strip())


@dataclass
class TableReconstruction:
    """All data rows found across pages, plus the anchors of the first header."""
    rows: List[ReconstructedRow] = field(default_factory=list)
    anchors: List[ColumnAnchor] = field(default_factory=list)
    pages_with_header: List[int] = field(default_factory=list)

    @property
    def found_header(self) -> bool:
        return bool(self.pages_with_header)
