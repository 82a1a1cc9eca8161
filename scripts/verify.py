"""
Bill Ledger Verification Script

Verifies data integrity of the Excel bill ledger written by the Celery
export task.
Run from project root: python scripts/verify.py
"""

import os
import sys
from datetime import datetime

import pandas as pd

from restaurant_pos.core.config import get_settings

settings = get_settings()
LEDGER_FILE = os.path.join(settings.data_directory, settings.ledger_filename)


def verify_ledger() -> bool:
    """Verify the bill ledger after a simulation run."""

    print("=" * 60)
    print("🔍 BILL LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {LEDGER_FILE}")
    print("=" * 60)

    # Check if file exists
    if not os.path.exists(LEDGER_FILE):
        print("\n❌ Ledger file not found!")
        print("   Run the simulation first: python scripts/simulate.py --settle ...")
        return False

    df = pd.read_excel(LEDGER_FILE, engine='openpyxl')
    print("\n✅ File loaded successfully!")

    # Statistics
    print("\n📊 STATISTICS:")
    print(f"   Settled bills: {len(df)}")
    print(f"   Columns: {len(df.columns)}")

    ok = True

    # Check required columns
    required = ['bill_number', 'order_id', 'total_amount', 'paid_amount', 'status']
    missing = [col for col in required if col not in df.columns]
    if missing:
        print(f"\n⚠️ Missing Columns: {missing}")
        return False
    print("\n✅ All required columns present")

    # Check duplicates
    duplicates = df['bill_number'].duplicated().sum()
    if duplicates > 0:
        print(f"\n⚠️ {duplicates} duplicate bill numbers found!")
        ok = False
    else:
        print("✅ No duplicate bill numbers")

    # Every exported bill must be fully paid
    underpaid = df[df['paid_amount'] + 0.005 < df['total_amount']]
    if len(underpaid) > 0:
        print(f"\n⚠️ {len(underpaid)} bill(s) exported before full payment!")
        print(underpaid[['bill_number', 'total_amount', 'paid_amount']].to_string(index=False))
        ok = False
    else:
        print("✅ Every exported bill is fully paid")

    # Revenue
    print("\n💰 REVENUE:")
    print(f"   Billed: ${df['total_amount'].sum():.2f}")
    print(f"   Collected: ${df['paid_amount'].sum():.2f}")

    # Sample data
    print("\n📋 RECENT BILLS:")
    print("-" * 60)
    if len(df) > 0:
        print(df[required].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "❌ VERIFICATION FAILED")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_ledger() else 1)
