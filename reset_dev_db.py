#!/usr/bin/env python3
"""
Reset development database - creates fresh schema, demo users and contracts.
Run from the project root.
"""
import os
from pathlib import Path

project_dir = Path(__file__).parent
os.chdir(project_dir)

# Force load .env before importing vconn modules
from dotenv import load_dotenv  # noqa: E402

load_dotenv(project_dir / ".env", override=True)

# Always target the local sqlite dev DB for this script.
os.environ["DATABASE_URL"] = "sqlite:///./dev.db"
os.environ.setdefault("SECRET_KEY", "dev-only-secret-key-0123456789")

from vconn import models  # noqa: E402
from vconn.core.security import hash_password  # noqa: E402
from vconn.database import Base, SessionLocal, engine  # noqa: E402
from vconn.services import contract_registry  # noqa: E402

DEMO_USERS = [
    (
        "Fresh Farms Wholesale",
        "wholesaler@vconn.local",
        models.UserRole.wholesaler,
        "APMC Yard, Pune",
    ),
    ("Ravi Street Foods", "vendor@vconn.local", models.UserRole.vendor, "FC Road, Pune"),
]

DEMO_CONTRACTS = [
    {"product_name": "Tomatoes", "daily_quantity": 20, "price_per_unit": 30.0, "duration_days": 30},
    {"product_name": "Onions", "daily_quantity": 15, "price_per_unit": 25.0, "duration_days": 5},
    {"product_name": "Chillies", "daily_quantity": 5, "price_per_unit": 60.0, "duration_days": 14},
]


def main():
    db_path = project_dir / "dev.db"
    if db_path.exists():
        print(f"Removing existing database: {db_path}")
        db_path.unlink()

    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        users = {}
        for name, email, role, address in DEMO_USERS:
            user = models.User(
                name=name,
                email=email,
                hashed_password=hash_password("password123"),
                role=role,
                business_name=name,
                address=address,
                active=True,
            )
            db.add(user)
            users[role] = user
            print(f"  Created user: {email}")
        db.commit()

        wholesaler = users[models.UserRole.wholesaler]
        for fields in DEMO_CONTRACTS:
            contract = contract_registry.create(db, wholesaler_id=wholesaler.id, fields=fields)
            print(f"  Created contract #{contract.id}: {contract.product_name}")

        print("\nDevelopment database reset complete (password: password123)")
        print(f"   Database: {db_path}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
