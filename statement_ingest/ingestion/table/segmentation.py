from itertools import groupby
from typing import Iterable, List

import structlog

from ...models import PositionedTextItem, Row

logger = structlog.get_logger()


def cluster_rows(items: Iterable[PositionedTextItem], tolerance: float) -> List[Row]:
    """
    Group positioned items into visual rows.

    Items are clustered page by page. Within a page they are taken from top
    to bottom (descending y); each joins the first row whose opening item
    lies within `tolerance`, otherwise it opens a new row. Every item ends up
    in exactly one row, and items inside a row are ordered by x.

    Returns:
        Rows ordered by page, then top to bottom.
    """
    rows: List[Row] = []
    ordered = sorted(items, key=lambda item: item.page)

    for page, page_items in groupby(ordered, key=lambda item: item.page):
        clusters: List[List[PositionedTextItem]] = []
        for item in sorted(page_items, key=lambda item: -item.y):
            for cluster in clusters:
                if abs(cluster[0].y - item.y) <= tolerance:
                    cluster.append(item)
                    break
            else:
                clusters.append([item])

        for cluster in clusters:
            rows.append(Row(
                items=tuple(sorted(cluster, key=lambda item: item.x)),
                page=page,
                y=cluster[0].y,
            ))

    logger.debug("Clustered rows", rows=len(rows), tolerance=tolerance)
    return rows


def rows_to_lines(rows: Iterable[Row]) -> List[str]:
    """One text line per row, pages separated by an empty line."""
    lines: List[str] = []
    previous_page = None
    for row in rows:
        if previous_page is not None and row.page != previous_page:
            lines.append("")
        lines.append(row.text)
        previous_page = row.page
    return lines


def split_pages(rows: List[Row]) -> List[List[Row]]:
    return [list(page_rows) for _, page_rows in groupby(rows, key=lambda row: row.page)]
