"""
Bill Ledger Export with Concurrency Control

Appends settled bills to an Excel workbook. Several Celery workers may
export at once, so every read-modify-write of the workbook happens under
a file lock.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout

from restaurant_pos.core.config import Settings, get_settings
from restaurant_pos.models import Bill
from restaurant_pos.services.billing import summarize_payments

logger = logging.getLogger(__name__)


def bill_snapshot(bill: Bill) -> dict[str, Any]:
    """
    JSON-safe copy of a bill and its payments for the export task.

    Args:
        bill: Bill loaded with its payments

    Returns:
        Plain dict accepted by the Celery json serializer
    """
    return {
        "bill_id": bill.id,
        "bill_number": bill.bill_number,
        "order_id": bill.order_id,
        "original_bill_id": bill.original_bill_id,
        "status": bill.status.value,
        "subtotal": bill.subtotal,
        "service_charge": bill.service_charge,
        "tax_amount": bill.tax_amount,
        "discount_amount": bill.discount_amount,
        "total_amount": bill.total_amount,
        "paid_amount": bill.paid_amount,
        "payment_count": len(bill.payments),
        "payment_methods": summarize_payments(bill.payments),
        "created_at": bill.created_at.isoformat() if bill.created_at else None,
        "settled_at": datetime.now(timezone.utc).isoformat(),
    }


class BillLedgerExporter:
    """File-locked Excel ledger with one row per settled bill."""

    LEDGER_COLUMNS = [
        "bill_id",
        "bill_number",
        "order_id",
        "original_bill_id",
        "status",
        "subtotal",
        "service_charge",
        "tax_amount",
        "discount_amount",
        "total_amount",
        "paid_amount",
        "payment_count",
        "payment_methods",
        "created_at",
        "settled_at",
        "exported_at",
    ]

    def __init__(self, directory: str, filename: str, lock_timeout: int = 30):
        self.data_dir = Path(directory)
        self.ledger_file = self.data_dir / filename
        self.lock_file = self.data_dir / f"{filename}.lock"
        self.lock_timeout = lock_timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "BillLedgerExporter":
        settings = settings or get_settings()
        return cls(settings.data_directory, settings.ledger_filename, settings.export_lock_timeout)

    def _ensure_data_dir(self) -> None:
        """Create data directory if needed."""
        if not self.data_dir.exists():
            self.data_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {self.data_dir}")

    def _load_or_create_df(self) -> pd.DataFrame:
        """Load existing ledger or start an empty one."""
        if self.ledger_file.exists():
            return pd.read_excel(self.ledger_file, engine="openpyxl")
        return pd.DataFrame(columns=self.LEDGER_COLUMNS)

    def export_bill(self, bill_data: dict[str, Any]) -> dict[str, Any]:
        """
        Append one settled bill to the ledger.

        A bill number already present is skipped, so a retried task does
        not write a second row.

        Returns:
            Result dict with success flag, message and export time
        """
        self._ensure_data_dir()

        bill_number = bill_data.get("bill_number", "unknown")
        result = {
            "success": False,
            "message": "",
            "bill_number": bill_number,
            "exported_at": None,
        }

        try:
            lock = FileLock(str(self.lock_file), timeout=self.lock_timeout)

            with lock:
                logger.debug(f"Lock acquired for bill {bill_number}")

                df = self._load_or_create_df()
                if not df.empty and bill_number in set(df["bill_number"].astype(str)):
                    result["success"] = True
                    result["message"] = f"Bill {bill_number} already in ledger"
                    logger.info(result["message"])
                    return result

                export_time = datetime.now(timezone.utc).isoformat()
                new_row = {column: bill_data.get(column) for column in self.LEDGER_COLUMNS}
                new_row["payment_methods"] = ", ".join(
                    f"{method}={amount:.2f}"
                    for method, amount in sorted((bill_data.get("payment_methods") or {}).items())
                )
                new_row["exported_at"] = export_time

                new_df = pd.DataFrame([new_row], columns=self.LEDGER_COLUMNS)
                df = new_df if df.empty else pd.concat([df, new_df], ignore_index=True)
                df.to_excel(str(self.ledger_file), index=False, engine="openpyxl")

                logger.info(f"Bill {bill_number} exported to ledger")

                result["success"] = True
                result["message"] = f"Bill {bill_number} exported"
                result["exported_at"] = export_time

            logger.debug(f"Lock released for bill {bill_number}")

        except Timeout:
            result["message"] = f"Lock timeout ({self.lock_timeout}s)"
            logger.error(f"Lock timeout for bill {bill_number}")

        except Exception as e:
            result["message"] = str(e)
            logger.exception(f"Error exporting bill {bill_number}")

        return result

    def get_all_rows(self) -> list[dict[str, Any]]:
        """Every ledger row, oldest first."""
        if not self.ledger_file.exists():
            return []
        df = pd.read_excel(self.ledger_file, engine="openpyxl")
        return df.to_dict("records")

    def clear(self) -> bool:
        """Delete the ledger and its lock file."""
        for f in [self.ledger_file, self.lock_file]:
            if f.exists():
                f.unlink()
        logger.info("Bill ledger cleared")
        return True
