"""Input and layout models: raw documents, positioned text, rows and anchors."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .enums import AnchorRole, ExtractionMethod


@dataclass(frozen=True)
class RawDocument:
    """An uploaded file. Consumed once per pipeline run."""
    content: bytes
    filename: str
    mime_type: Optional[str] = None
    declared_size: Optional[int] = None

    @property
    def size(self) -> int:
        return max(self.declared_size or 0, len(self.content))

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower().lstrip(".")

    @classmethod
    def from_path(cls, path: Path, mime_type: Optional[str] = None) -> "RawDocument":
        path = Path(path)
        content = path.read_bytes()
        return cls(content=content, filename=path.name, mime_type=mime_type, declared_size=len(content))


@dataclass(frozen=True)
class PositionedTextItem:
    """
    A text run with its page position.

    x is the left edge; y is in PDF user space (measured up from the page
    bottom), so a higher item on the page has a larger y.
    """
    text: str
    x: float
    y: float
    page: int = 0


@dataclass(frozen=True)
class Row:
    """Items sharing approximately the same vertical position, ordered left to right."""
    items: Tuple[PositionedTextItem, ...]
    page: int
    y: float

    @property
    def text(self) -> str:
        return " ".join(item.text for item in self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class ColumnAnchor:
    """Horizontal position of a header label that defines a column."""
    role: AnchorRole
    x: float
    label: str


@dataclass
class ExtractedText:
    """Result of text extraction from a PDF or image."""
    method: ExtractionMethod
    items: List[PositionedTextItem] = field(default_factory=list)
    text: str = ""
    page_count: int = 0
    pages_processed: int = 0

    @property
    def has_positions(self) -> bool:
        return self.method == ExtractionMethod.NATIVE and bool(self.items)


@dataclass
class TabularData:
    """Header plus string rows read from CSV or a spreadsheet."""
    headers: List[str]
    rows: List[Dict[str, str]]

    def column_values(self, header: str, limit: Optional[int] = None) -> List[str]:
        rows = self.rows if limit is None else self.rows[:limit]
        return [row.get(header, "") for row in rows]
