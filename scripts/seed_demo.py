#!/usr/bin/env python3
"""
Seed script to create a demo restaurant with tables and accounts
"""

import asyncio
import uuid

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

DEMO_TABLES = [
    # number, capacity, zone, is_vip
    (1, 2, "terrace", False),
    (2, 2, "terrace", False),
    (3, 4, "main", False),
    (4, 4, "main", False),
    (5, 6, "main", False),
    (6, 8, "private", True),
]


async def seed_demo_data():
    """Seed demo data for development"""
    from app.database import SessionLocal, engine, Base
    from app.models.restaurant import Restaurant
    from app.models.table import Table, TableStatus
    from app.models.user import User, UserRole
    import app.models  # noqa: F401  register every table on Base.metadata

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo restaurant already exists
        from sqlalchemy import select
        result = await db.execute(
            select(Restaurant).where(Restaurant.name == "Casa Mesa")
        )
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo restaurant...")

        restaurant = Restaurant(
            id=uuid.uuid4(),
            name="Casa Mesa",
            timezone="America/New_York",
            holidays_json=[{"date": "2026-12-25", "closed": True}],
        )
        db.add(restaurant)
        await db.flush()

        print(f"Created restaurant: {restaurant.name} (ID: {restaurant.id})")

        for number, capacity, zone, is_vip in DEMO_TABLES:
            db.add(Table(
                restaurant_id=restaurant.id,
                number=number,
                capacity=capacity,
                zone=zone,
                is_vip=is_vip,
                status=TableStatus.AVAILABLE.value,
            ))

        admin_user = User(
            email="admin@mesa.dev",
            hashed_password=pwd_context.hash("admin123"),
            full_name="Platform Admin",
            role=UserRole.SUPER_ADMIN,
        )
        db.add(admin_user)

        owner = User(
            restaurant_id=restaurant.id,
            email="owner@casamesa.dev",
            hashed_password=pwd_context.hash("owner123"),
            full_name="Casa Mesa Owner",
            role=UserRole.RESTAURANT_ADMIN,
        )
        db.add(owner)

        host = User(
            restaurant_id=restaurant.id,
            email="host@casamesa.dev",
            hashed_password=pwd_context.hash("host123"),
            full_name="Front Desk",
            role=UserRole.STAFF,
        )
        db.add(host)

        guest = User(
            email="guest@example.com",
            hashed_password=pwd_context.hash("guest123"),
            full_name="Demo Guest",
            phone="+15550001111",
            role=UserRole.CUSTOMER,
        )
        db.add(guest)
        await db.flush()

        restaurant.owner_id = owner.id
        await db.commit()

        print(f"""
Demo data created successfully!

Restaurant: Casa Mesa
  ID: {restaurant.id}
  Tables: {len(DEMO_TABLES)}

Users:
  Super Admin:      admin@mesa.dev / admin123
  Restaurant Admin: owner@casamesa.dev / owner123
  Staff:            host@casamesa.dev / host123
  Guest:            guest@example.com / guest123
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
