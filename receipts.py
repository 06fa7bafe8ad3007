import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from errors import IOFailure
from models import TransactionKind

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp", "heic"})
DEFAULT_EXTENSION = "jpg"


def accepts_receipt(
    kind: TransactionKind, category_name: Optional[str], label: str
) -> bool:
    """Receipts are kept only for expenses in the designated category."""
    if kind != TransactionKind.expense or category_name is None:
        return False
    return category_name.strip().lower() == label.strip().lower()


def resolve_extension(filename: Optional[str]) -> str:
    suffix = Path(filename or "").suffix.lower().lstrip(".")
    if suffix in ALLOWED_EXTENSIONS:
        return suffix
    return DEFAULT_EXTENSION


def receipt_filename(extension: str, now: Optional[datetime] = None) -> str:
    # millisecond resolution; two uploads in the same millisecond share a name
    now = now or datetime.now()
    millis = int(now.timestamp() * 1000)
    return f"receipt-{millis}.{extension}"


class ReceiptStore:
    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def path_for(self, filename: str) -> Path:
        return self.directory / filename

    def save(
        self,
        content: bytes,
        original_name: Optional[str],
        *,
        now: Optional[datetime] = None,
    ) -> str:
        filename = receipt_filename(resolve_extension(original_name), now)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.path_for(filename).write_bytes(content)
        except OSError as exc:
            logger.exception(f"receipt_write_failed: file={filename}")
            raise IOFailure(f"Could not store receipt {filename}") from exc
        logger.info(f"receipt_stored: file={filename} bytes={len(content)}")
        return filename

    def discard(self, filename: str) -> None:
        self.path_for(filename).unlink(missing_ok=True)
        logger.info(f"receipt_discarded: file={filename}")
