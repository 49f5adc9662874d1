import asyncio
from decimal import Decimal
from sqlmodel import select
from lekha.db.main import async_session_maker, init_db
from lekha.auth.models import Owner
from lekha.ledger.sql_store import SqlLedgerStore
from lekha.transactions.models import TransactionKind

SAMPLE_CUSTOMERS = [
    # name, mobile, address, [(kind, amount, notes)]
    ("Priya Sharma", "9876543210", "123, MG Road, Bangalore", [
        (TransactionKind.CREDIT, Decimal("5000"), "Groceries on credit"),
        (TransactionKind.DEBIT, Decimal("2000"), "Part payment"),
    ]),
    ("Rahul Verma", "9123456780", None, [
        (TransactionKind.DEBIT, Decimal("750"), "Advance for next order"),
    ]),
]

async def create_owner(mobile: str, business_name: str, with_samples: bool):
    await init_db()

    async with async_session_maker() as session:
        # Check if owner already exists
        statement = select(Owner).where(Owner.mobile == mobile)
        result = await session.exec(statement)
        owner = result.first()

        if owner:
            print(f"Owner with mobile '{mobile}' already exists.")
        else:
            owner = Owner(mobile=mobile, business_name=business_name)
            session.add(owner)
            try:
                await session.commit()
                await session.refresh(owner)
            except Exception as e:
                await session.rollback()
                print(f"Failed to create owner: {e}")
                return

        print(f"Mobile: {owner.mobile}")
        print(f"Business: {owner.business_name}")
        print(f"Owner ID: {owner.owner_id}")

        if not with_samples:
            return

        store = SqlLedgerStore(session)
        for name, customer_mobile, address, entries in SAMPLE_CUSTOMERS:
            customer = await store.create_customer(owner.owner_id, name, customer_mobile, address)
            for kind, amount, notes in entries:
                await store.add_transaction(owner.owner_id, customer.id, kind, amount, notes)
            ledger = await store.get_customer(owner.owner_id, customer.id)
            print(f"  {name}: balance {ledger.balance}")

if __name__ == "__main__":
    import sys

    if len(sys.argv) in (3, 4):
        # python seed_owner.py <mobile> <business_name> [--samples]
        mobile = sys.argv[1]
        business_name = sys.argv[2]
        with_samples = len(sys.argv) == 4 and sys.argv[3] == "--samples"
        asyncio.run(create_owner(mobile, business_name, with_samples))
    else:
        print("Usage: python seed_owner.py <mobile> <business_name> [--samples]")
        print("Example: python seed_owner.py 9876500000 'Sharma General Store' --samples")
