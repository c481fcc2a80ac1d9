from typing import Dict, Iterable, List, Optional

import structlog

from ...config import Settings, get_settings
from ...models import AnchorRole, ColumnAnchor, PositionedTextItem, Row
from ...utils.progress import CancellationToken
from .domain import ReconstructedRow, TableReconstruction
from .header_detector import (
    anchors_usable,
    assign_anchors,
    find_header,
    is_credit_marker,
    is_non_data_row,
    nearest_anchor,
)
from .segmentation import cluster_rows, split_pages

logger = structlog.get_logger()


class TableReconstructor:
    """
    Rebuilds statement tables from positioned text.

    Pipeline per page:
    1. Cluster items into rows
    2. Locate the header (single or split) and anchor its columns
    3. Assign each data row's items to the nearest anchor
    4. Fold lone 'CR' rows into the row above as a credit flag
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def reconstruct(
        self,
        items: Iterable[PositionedTextItem],
        cancel_token: Optional[CancellationToken] = None,
    ) -> TableReconstruction:
        result = TableReconstruction()
        rows = cluster_rows(items, self.settings.table_row_tolerance)

        for page_rows in split_pages(rows):
            page = page_rows[0].page
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(stage="reconstructing", page=page)

            header = find_header(page_rows)
            if header is None:
                logger.debug("No table header on page", page=page + 1)
                continue

            anchors = assign_anchors(header)
            if not anchors_usable(anchors):
                logger.warning(
                    "Header without usable anchors, skipping page",
                    page=page + 1,
                    roles=[a.role.value for a in anchors],
                )
                continue

            if not result.anchors:
                result.anchors = anchors
            result.pages_with_header.append(page)

            page_result = self._read_rows(page_rows, header.data_start, anchors)
            result.rows.extend(page_result)
            logger.info("Reconstructed table page", page=page + 1, rows=len(page_result), split_header=header.split)

        return result

    def _read_rows(self, rows: List[Row], start: int, anchors: List[ColumnAnchor]) -> List[ReconstructedRow]:
        output: List[ReconstructedRow] = []
        index = start

        while index < len(rows):
            row = rows[index]
            if is_non_data_row(row) or is_credit_marker(row):
                index += 1
                continue

            cells = self._assign_cells(row, anchors)
            has_date = bool(cells.get(AnchorRole.TRANSACTION_DATE) or cells.get(AnchorRole.PROCESS_DATE))
            has_amount = bool(cells.get(AnchorRole.AMOUNT))

            if not has_date and not has_amount:
                # Wrapped description line
                if output and set(cells) <= {AnchorRole.DESCRIPTION}:
                    previous = output[-1]
                    extra = cells.get(AnchorRole.DESCRIPTION, "")
                    previous.cells[AnchorRole.DESCRIPTION] = (previous.cell(AnchorRole.DESCRIPTION) + " " + extra).strip()
                index += 1
                continue

            row_index = index
            credit = False
            if has_date and has_amount and index + 1 < len(rows) and is_credit_marker(rows[index + 1]):
                credit = True
                index += 1

            output.append(ReconstructedRow(cells=cells, page=row.page, row_index=row_index, credit_marker=credit))
            index += 1

        return output

    def _assign_cells(self, row: Row, anchors: List[ColumnAnchor]) -> Dict[AnchorRole, str]:
        parts: Dict[AnchorRole, List[str]] = {}
        for item in row.items:
            anchor = nearest_anchor(item.x, anchors, self.settings.column_match_tolerance)
            role = anchor.role if anchor is not None else AnchorRole.DESCRIPTION
            parts.setdefault(role, []).append(item.text)
        return {role: " ".join(texts).strip() for role, texts in parts.items()}
