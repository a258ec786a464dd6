import logging
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    upload_dir: Path
    log_level: str = "INFO"
    currency_symbol: str = "₹"


def get_settings() -> Settings:
    data_dir = Path(os.environ.get("TRACKER_DATA_DIR") or Path.cwd() / ".data")
    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "tracker.sqlite",
        upload_dir=data_dir / "uploads" / "csv",
        log_level=os.environ.get("TRACKER_LOG_LEVEL", "INFO").upper(),
        currency_symbol=os.environ.get("TRACKER_CURRENCY_SYMBOL", "₹"),
    )


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the ``tracker`` logger."""
    logger = logging.getLogger("tracker")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    logger.addHandler(handler)
