"""
Excel Ledger Verification Script

Checks the exported order ledger after a simulation run.
Run from project root: python scripts/verify.py [--clear]
"""

import argparse
import os
from datetime import datetime

import pandas as pd

EXCEL_FILE = os.path.join("data", "orders.xlsx")
REQUIRED_COLUMNS = ["order_id", "order_origin", "status", "customer_name", "total"]


def verify_excel(path: str = EXCEL_FILE) -> bool:
    print("=" * 60)
    print("🔍 EXCEL VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {path}")
    print("=" * 60)

    if not os.path.exists(path):
        print("\n❌ Excel file not found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    try:
        df = pd.read_excel(path, engine="openpyxl")
    except (OSError, ValueError) as e:
        print(f"\n❌ Could not read Excel file: {e}")
        return False

    print("\n📊 STATISTICS:")
    print(f"   Total Orders: {len(df)}")

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        print(f"\n⚠️ Missing Columns: {missing}")
        return False
    print("✅ All required columns present")

    ok = True
    duplicates = df["order_id"].duplicated().sum()
    if duplicates > 0:
        print(f"⚠️ {duplicates} duplicate order IDs found!")
        ok = False
    else:
        print("✅ No duplicate order IDs")

    totals = pd.to_numeric(df["total"], errors="coerce")
    if totals.isna().any():
        print(f"⚠️ {int(totals.isna().sum())} rows with an unreadable total")
        ok = False

    print("\n💰 REVENUE BY ORIGIN:")
    for origin, amount in totals.groupby(df["order_origin"]).sum().items():
        print(f"   {origin:<8} S/ {amount:.2f}")

    if "payment_method" in df.columns:
        local = df[df["order_origin"] == "Local"]
        if len(local):
            print("\n💳 POS PAYMENT METHODS:")
            for method, count in local["payment_method"].value_counts().items():
                print(f"   {method:<10} {count}")

    print("\n📋 RECENT ORDERS:")
    print("-" * 60)
    if len(df) > 0:
        print(df[REQUIRED_COLUMNS].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "⚠️ VERIFICATION FOUND PROBLEMS")
    print("=" * 60)
    return ok


def clear_ledger() -> bool:
    """Delete the configured ledger before a fresh simulation run."""
    from restaurant_pos.services.excel_manager import ExcelManager

    cleared = ExcelManager.clear_all()
    print("🧹 Ledger cleared" if cleared else "❌ Could not clear the ledger")
    return cleared


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Excel ledger verification")
    parser.add_argument("--file", default=EXCEL_FILE, help="Path to the ledger")
    parser.add_argument("--clear", action="store_true", help="Delete the configured ledger instead of verifying")
    args = parser.parse_args()
    if args.clear:
        raise SystemExit(0 if clear_ledger() else 1)
    raise SystemExit(0 if verify_excel(args.file) else 1)
