"""
Celery Tasks
Background export of settled orders to the Excel ledger.
"""

import logging
import time

from filelock import Timeout

from restaurant_pos.celery_worker import celery_app
from restaurant_pos.services.excel_manager import ExcelManager

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Timeout, OSError),
    retry_backoff=True,
)
def export_order_to_excel(self, order_data: dict) -> dict:
    """
    Append an order to the Excel ledger.

    A busy lock or a failed write raises, and Celery retries with backoff
    until max_retries is spent.

    Args:
        order_data: StoredOrder.to_dict() payload

    Returns:
        dict: ExcelManager result plus task id and timing
    """
    task_id = self.request.id
    order_id = order_data.get("id", "unknown")

    logger.info(f"📋 Task {task_id}: exporting order #{order_id} (attempt {self.request.retries + 1})")
    start_time = time.time()

    result = ExcelManager.export_order(order_data)

    elapsed = round(time.time() - start_time, 3)
    result["task_id"] = task_id
    result["processing_time_seconds"] = elapsed

    if result["success"]:
        logger.info(f"✅ Task {task_id}: order #{order_id} exported in {elapsed}s")
    else:
        logger.warning(f"⚠️ Task {task_id}: order #{order_id} not exported - {result['message']}")

    return result
