"""Create a fresh inquiry and a sent quotation for manual testing."""

import sys
import time
from datetime import timedelta
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from config import Config
from core.database import DatabaseManager
from core.exceptions import DatabaseUnavailableError
from models import Inquiry, Quotation, QuotationStatus, utcnow

UNIT_PRICE = 20.00


def main():
    """Seed one inquiry/quotation pair and print how to fetch its PDF."""
    print(f"Database: {Config.DATABASE_URL}", file=sys.stderr)
    database = DatabaseManager(Config.DATABASE_URL)

    try:
        database.initialize()

        with database.session() as session:
            inquiry = Inquiry(
                status="pending",
                customer_name="Fresh Test Customer",
                parts=[{
                    "material": "Aluminum",
                    "thickness": "5mm",
                    "quantity": 25,
                    "remarks": "Fresh test part for quotation response",
                }],
                total_amount=0.0,
                currency=Config.DEFAULT_CURRENCY,
                delivery_address={
                    "street": "Fresh Test Street",
                    "city": "Mumbai",
                    "state": "Maharashtra",
                    "country": "India",
                    "zipCode": "400001",
                },
                special_instructions="Fresh inquiry for testing quotation PDF regeneration",
            )
            session.add(inquiry)
            session.flush()
            print(f"Inquiry created: {inquiry.inquiry_number}", file=sys.stderr)

            items = [
                {
                    "partRef": f"{part['material']}_{part['thickness']}",
                    "material": part["material"],
                    "thickness": part["thickness"],
                    "quantity": part["quantity"],
                    "unitPrice": UNIT_PRICE,
                    "totalPrice": UNIT_PRICE * part["quantity"],
                }
                for part in inquiry.parts
            ]
            # Points at a file that was never written, so the first request
            # goes through regeneration
            stale_pointer = f"quotation-{int(time.time() * 1000)}-0001.pdf"

            quotation = Quotation(
                inquiry_ref=inquiry.id,
                items=items,
                total_amount=sum(item["totalPrice"] for item in items),
                status=QuotationStatus.SENT.value,
                valid_until=utcnow() + timedelta(days=Config.QUOTATION_VALIDITY_DAYS),
                terms=Config.DEFAULT_TERMS,
                notes="Fresh quotation for testing PDF regeneration",
                artifact_pointer=stale_pointer,
            )
            session.add(quotation)

            inquiry.status = "quoted"
            session.commit()

        print("SUCCESS: Seed data created", file=sys.stderr)
        print()  # Blank line separator
        print(f"Inquiry ID:       {inquiry.id}")
        print(f"Inquiry Number:   {inquiry.inquiry_number}")
        print(f"Quotation ID:     {quotation.id}")
        print(f"Quotation Number: {quotation.quotation_number}")
        print(f"Status:           {quotation.status}")
        print(f"Total Amount:     {quotation.total_amount:.2f}")
        print(f"PDF:              /artifacts/quotations/{stale_pointer}")

    except DatabaseUnavailableError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    finally:
        database.cleanup()


if __name__ == "__main__":
    main()
