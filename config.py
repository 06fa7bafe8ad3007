import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        receipts_dir: Path,
        secret_key: str,
        max_sessions: int = 5,
        receipt_category: str = "ЖКХ",
        min_password_length: int = 6,
    ) -> None:
        self.database_url = database_url
        self.receipts_dir = receipts_dir
        self.secret_key = secret_key
        self.max_sessions = max_sessions
        self.receipt_category = receipt_category
        self.min_password_length = min_password_length


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LUMEN_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "lumen.sqlite"
    database_url = os.getenv("LUMEN_DATABASE_URL", f"sqlite:///{default_db}")
    receipts_dir = Path(
        os.getenv("LUMEN_RECEIPTS_DIR", str(data_dir / "receipts"))
    ).resolve()
    secret_key = os.getenv(
        "LUMEN_SECRET_KEY",
        "5d1c0b9e6a7f4e22b8d0c3a9f1e47b6c2a8d5f0e9b3c7a1d4e6f8b2c0a9d7e5f",
    )
    max_sessions = int(os.getenv("LUMEN_MAX_SESSIONS", "5"))
    receipt_category = os.getenv("LUMEN_RECEIPT_CATEGORY", "ЖКХ")
    min_password_length = int(os.getenv("LUMEN_MIN_PASSWORD_LENGTH", "6"))
    return Settings(
        database_url=database_url,
        receipts_dir=receipts_dir,
        secret_key=secret_key,
        max_sessions=max_sessions,
        receipt_category=receipt_category,
        min_password_length=min_password_length,
    )
