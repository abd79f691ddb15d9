import os
from dataclasses import dataclass


@dataclass
class Settings:
    APP_NAME: str = os.getenv("APP_NAME", "Stockroom")
    ENV: str = os.getenv("STOCKROOM_ENV", "dev").lower()  # dev|stage|prod
    DEBUG: bool = os.getenv("DEBUG", "").lower() in {"1", "true", "yes"} or os.getenv("STOCKROOM_ENV", "dev").lower() != "prod"

    # Ledger storage keys (one for items, one for movements)
    ITEMS_KEY: str = "inventory_items_v5"
    MOVEMENTS_KEY: str = "inventory_movements_v5"
    LEGACY_ITEMS_KEY: str = "inventari_items_v5"
    LEGACY_MOVEMENTS_KEY: str = "inventari_moviments_v5"
    STORAGE_QUOTA_BYTES: int = 5 * 1024 * 1024

    # Export document metadata
    EXPORT_VERSION: str = "v5"
    SITE_LOCATION: str = os.getenv("STOCKROOM_SITE", "Misericordia Building")

    # Calendar arithmetic is done in this zone
    TIMEZONE: str = os.getenv("STOCKROOM_TZ", "UTC")
    REVIEW_HORIZON_DAYS: int = 30
    DEFAULT_ACTOR: str = os.getenv("STOCKROOM_ACTOR", "Administrator")

    def __post_init__(self):
        base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
        data_dir = os.getenv("STOCKROOM_DATA_DIR") or os.path.join(base_dir, "data")
        os.makedirs(data_dir, exist_ok=True)
        db_name = f"stockroom_{self.ENV}.sqlite3"
        self.DATA_DIR = data_dir
        self.DB_PATH = os.path.join(data_dir, db_name)
        self.DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{self.DB_PATH}"


# singleton settings
settings = Settings()

# Back-compat for modules importing DATABASE_URL directly
DATABASE_URL = settings.DATABASE_URL
