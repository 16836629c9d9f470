"""
Excel Order Ledger with Concurrency Control

Appends one row per settled order to an .xlsx workbook. Several Celery
workers may write at once, so every read-modify-write of the workbook
happens under a FileLock next to it.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
from filelock import FileLock, Timeout

from restaurant_pos.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

DATA_DIR = Path(settings.data_directory)
ORDERS_FILE = DATA_DIR / settings.excel_filename
ORDERS_LOCK = DATA_DIR / f"{settings.excel_filename}.lock"


def summarize_items(items: list[dict[str, Any]]) -> str:
    """One cell per order: ``2x Sanguche de Chancho; 1x Chicha Morada (Jarra 1L)``."""
    parts = []
    for line in items or []:
        label = line.get("name", "?")
        if line.get("variant"):
            label = f"{label} ({line['variant']})"
        parts.append(f"{line.get('quantity', 1)}x {label}")
    return "; ".join(parts)


class ExcelManager:
    """File-locked Excel writer for the order ledger."""

    LOCK_TIMEOUT = settings.excel_lock_timeout

    ORDER_COLUMNS = [
        "order_id",
        "date_time",
        "order_origin",
        "status",
        "customer_name",
        "customer_phone",
        "modality",
        "address",
        "items",
        "total",
        "payment_method",
        "session_id",
        "exported_at",
    ]

    @classmethod
    def _ensure_data_dir(cls) -> None:
        if not DATA_DIR.exists():
            DATA_DIR.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {DATA_DIR}")

    @classmethod
    def _load_or_create_df(cls) -> pd.DataFrame:
        if ORDERS_FILE.exists():
            try:
                return pd.read_excel(ORDERS_FILE, engine="openpyxl")
            except Exception as e:
                logger.warning(f"Error reading {ORDERS_FILE}: {e}")
        return pd.DataFrame(columns=cls.ORDER_COLUMNS)

    @classmethod
    def export_order(cls, order_data: dict[str, Any]) -> dict[str, Any]:
        """
        Append a stored order (StoredOrder.to_dict() shape) to the ledger.

        Returns:
            dict with success, message, order_id and exported_at

        Raises:
            Timeout: the ledger lock was not acquired in time
            OSError: the workbook could not be written; both are retried
                by the export task
        """
        cls._ensure_data_dir()

        order_id = order_data.get("id", 0)
        result = {
            "success": False,
            "message": "",
            "order_id": order_id,
            "exported_at": None,
        }

        try:
            with FileLock(str(ORDERS_LOCK), timeout=cls.LOCK_TIMEOUT):
                logger.debug(f"Lock acquired for Order #{order_id}")

                df = cls._load_or_create_df()
                export_time = datetime.now().isoformat()
                new_row = {
                    "order_id": order_id,
                    "date_time": order_data.get("created_at", export_time),
                    "order_origin": order_data.get("order_origin"),
                    "status": order_data.get("status"),
                    "customer_name": order_data.get("customer_name"),
                    "customer_phone": order_data.get("customer_phone"),
                    "modality": order_data.get("modality"),
                    "address": order_data.get("address"),
                    "items": summarize_items(order_data.get("items", [])),
                    "total": order_data.get("total"),
                    "payment_method": order_data.get("payment_method"),
                    "session_id": order_data.get("session_id"),
                    "exported_at": export_time,
                }

                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True)
                df.to_excel(str(ORDERS_FILE), index=False, engine="openpyxl")

                logger.info(f"Order #{order_id} exported to Excel")
                result["success"] = True
                result["message"] = f"Order #{order_id} exported"
                result["exported_at"] = export_time

        except Timeout:
            logger.error(f"Lock timeout ({cls.LOCK_TIMEOUT}s) for Order #{order_id}")
            raise

        except OSError as e:
            logger.error(f"Could not write ledger for Order #{order_id}: {e}")
            raise

        except Exception as e:
            result["message"] = str(e)
            logger.exception(f"Error exporting Order #{order_id}")

        return result

    @classmethod
    def get_all_orders(cls) -> list[dict[str, Any]]:
        if not ORDERS_FILE.exists():
            return []
        try:
            df = pd.read_excel(ORDERS_FILE, engine="openpyxl")
            return df.to_dict("records")
        except Exception as e:
            logger.error(f"Error reading orders: {e}")
            return []

    @classmethod
    def clear_all(cls) -> bool:
        """Delete the ledger and its lock file."""
        try:
            for f in (ORDERS_FILE, ORDERS_LOCK):
                if f.exists():
                    f.unlink()
            logger.info("Order ledger cleared")
            return True
        except OSError as e:
            logger.error(f"Error clearing ledger: {e}")
            return False
