"""
Celery Tasks
Background export of settled bills to the Excel ledger.
"""

import logging
import time
from datetime import datetime, timezone

from restaurant_pos.celery_worker import celery_app
from restaurant_pos.services.ledger_export import BillLedgerExporter

logger = logging.getLogger(__name__)


class LedgerExportError(Exception):
    """The ledger could not take the bill (lock timeout, unwritable file)."""


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_bill_to_excel(self, bill_data: dict) -> dict:
    """
    Append a settled bill to the Excel ledger.
    This task runs asynchronously via Celery worker.

    Args:
        bill_data: Snapshot built by ``bill_snapshot``

    Returns:
        dict: Result of the export operation

    Raises:
        LedgerExportError: The export failed; Celery retries it. Exports are
            idempotent by bill number, so a retry never duplicates a row.
    """
    task_id = self.request.id
    bill_number = bill_data.get('bill_number', 'unknown')

    logger.info(f"📋 Task {task_id}: exporting bill {bill_number}")
    start_time = time.time()

    result = BillLedgerExporter.from_settings().export_bill(bill_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"✅ Task {task_id}: bill {bill_number} done in {elapsed}s")
    else:
        logger.warning(f"⚠️ Task {task_id}: bill {bill_number} failed - {result['message']}")
        raise LedgerExportError(result["message"])

    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now(timezone.utc).isoformat()
    }


@celery_app.task
def clear_bill_ledger() -> dict:
    """
    Delete the ledger file (for testing/reset purposes).
    """
    success = BillLedgerExporter.from_settings().clear()
    return {
        'success': success,
        'message': 'Bill ledger cleared' if success else 'Failed to clear bill ledger',
        'timestamp': datetime.now(timezone.utc).isoformat()
    }
