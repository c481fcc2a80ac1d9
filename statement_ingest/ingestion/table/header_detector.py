"""
Table header detection and column anchoring for page-oriented statements.
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from ...models import AnchorRole, ColumnAnchor, Row
from .domain import HeaderMatch

logger = structlog.get_logger()

DATE_LIKE = re.compile(r"\bdate\b", re.I)
DESCRIPTION_LIKE = re.compile(r"\b(?:details|description|narrative|particulars)\b", re.I)
AMOUNT_LIKE = re.compile(r"\bamount\b|£|\bmoney\s+(?:in|out)\b|\bpaid\s+(?:in|out)\b", re.I)

# Checked in priority order for each header label. The first unanchored
# role whose pattern matches claims the label.
ANCHOR_RULES: Tuple[Tuple[AnchorRole, "re.Pattern[str]"], ...] = (
    (AnchorRole.PROCESS_DATE, re.compile(r"\bprocess|\bpost(?:ed|ing)\b", re.I)),
    (AnchorRole.DESCRIPTION, DESCRIPTION_LIKE),
    (AnchorRole.BALANCE, re.compile(r"\bbalance\b", re.I)),
    (AnchorRole.AMOUNT, AMOUNT_LIKE),
    (AnchorRole.TRANSACTION_DATE, re.compile(r"\btransaction\b|\bdate\b", re.I)),
)

REQUIRED_ANCHORS = (AnchorRole.TRANSACTION_DATE, AnchorRole.AMOUNT)

# Repeated headers, rate tables and banners inside the table area
NON_DATA_ROW = re.compile(
    r"transaction\s*date|\bamount\b|rates\s*of|how\s*you\s*can|"
    r"balance\s+(?:brought|carried)\s+forward|continued\s+(?:on|over)|page\s+\d+\s+of\s+\d+",
    re.I,
)

CREDIT_MARKER = re.compile(r"^\s*cr\.?\s*$", re.I)


def find_header(rows: Sequence[Row]) -> Optional[HeaderMatch]:
    """
    Find the first header row on a page.

    A row is a header when it carries date-like, description-like and
    amount-like labels. A row with only the date and description labels,
    directly followed by a row with the amount label, is a split header.
    """
    for index, row in enumerate(rows):
        text = row.text
        if not (DATE_LIKE.search(text) and DESCRIPTION_LIKE.search(text)):
            continue

        if AMOUNT_LIKE.search(text):
            return HeaderMatch(row_index=index, rows=[row], split=False)

        if index + 1 < len(rows) and AMOUNT_LIKE.search(rows[index + 1].text):
            logger.debug("Found split header", page=row.page, row=index)
            return HeaderMatch(row_index=index, rows=[row, rows[index + 1]], split=True)

    return None


def assign_anchors(header: HeaderMatch) -> List[ColumnAnchor]:
    """Turn header labels into column anchors, at most one per role."""
    anchors: Dict[AnchorRole, ColumnAnchor] = {}

    for row in header.rows:
        for item in row.items:
            for role, pattern in ANCHOR_RULES:
                if role in anchors:
                    continue
                if pattern.search(item.text):
                    anchors[role] = ColumnAnchor(role=role, x=item.x, label=item.text)
                    break

    return sorted(anchors.values(), key=lambda anchor: anchor.x)


def anchors_usable(anchors: Sequence[ColumnAnchor]) -> bool:
    roles = {anchor.role for anchor in anchors}
    return all(role in roles for role in REQUIRED_ANCHORS)


def nearest_anchor(x: float, anchors: Sequence[ColumnAnchor], tolerance: float) -> Optional[ColumnAnchor]:
    best = None
    best_distance = tolerance
    for anchor in anchors:
        distance = abs(anchor.x - x)
        if distance <= best_distance:
            if best is None or distance < best_distance:
                best = anchor
                best_distance = distance
    return best


def is_non_data_row(row: Row) -> bool:
    return bool(NON_DATA_ROW.search(row.text))


def is_credit_marker(row: Row) -> bool:
    return bool(CREDIT_MARKER.match(row.text))
