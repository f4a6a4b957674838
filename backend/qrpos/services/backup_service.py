"""
Close backup: JSON snapshot of a business day's orders written at close time
"""
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from qrpos.domain.order import Order

logger = logging.getLogger(__name__)


class CloseBackupService:
    """Writes one backup file per closed day under ``backup_dir``"""

    def __init__(self, backup_dir: str):
        self.backup_dir = Path(backup_dir)

    def build_path(self, business_day_id: int, closed_at: datetime) -> Path:
        return self.backup_dir / f"backup_{closed_at.date().isoformat()}_{business_day_id}.json"

    def write(self, business_day_id: int, closed_at: datetime, orders: Iterable[Order]) -> str:
        """
        Write the backup file

        Returns:
            Path of the written file

        Raises:
            OSError: directory or file could not be written
        """
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        path = self.build_path(business_day_id, closed_at)

        payload = {
            "businessDayId": business_day_id,
            "date": closed_at.date().isoformat(),
            "timestamp": closed_at.isoformat(),
            "orders": [order.to_dict() for order in orders],
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)

        logger.info(f"Close backup written to {path}")
        return str(path)

    def discard(self, path: Optional[str]) -> None:
        """Remove a backup written by a close that was rolled back"""
        if not path:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove orphan backup {path}: {e}")
