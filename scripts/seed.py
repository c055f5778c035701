#!/usr/bin/env python3
"""Development seed script

Creates one admin, one seller and one buyer account plus a few products.
Existing accounts (matched by e-mail) are left untouched.

Usage:
    python scripts/seed.py
"""

import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from app.core.security import hash_password
from app.db.session import async_session_maker
from app.models.product import Product
from app.models.user import User, UserRole

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_PASSWORD = "123456"

USERS = [
    {
        "email": "admin@example.com",
        "first_name": "Admin",
        "last_name": "User",
        "role": UserRole.ADMIN,
        "company": "Sistem Yönetimi",
    },
    {
        "email": "ayse@firma.com",
        "first_name": "Ayşe",
        "last_name": "Yılmaz",
        "role": UserRole.SELLER,
        "company": "ABC Şirketi",
        "phone": "+90 532 123 45 67",
    },
    {
        "email": "mehmet@firma.com",
        "first_name": "Mehmet",
        "last_name": "Kaya",
        "role": UserRole.BUYER,
        "company": "XYZ Ltd.",
        "phone": "+90 535 987 65 43",
        "email_notifications": False,
    },
]

PRODUCTS = [
    {
        "name": "iPhone 14 Pro",
        "description": "128 GB, uzay siyahı, iki yıl distribütör garantili",
        "category": "elektronik",
        "price": Decimal("54999.00"),
        "stock": 25,
        "min_order_quantity": 1,
    },
    {
        "name": "Ofis Sandalyesi Ergonomik",
        "description": "Bel destekli, ayarlanabilir kolçaklı file sırtlı sandalye",
        "category": "mobilya",
        "price": Decimal("3499.90"),
        "stock": 120,
        "min_order_quantity": 5,
    },
    {
        "name": "A4 Fotokopi Kağıdı (5'li koli)",
        "description": "80 gr/m², 2500 yaprak",
        "category": "kirtasiye",
        "price": Decimal("749.00"),
        "stock": 400,
        "min_order_quantity": 10,
    },
]


async def get_or_create_user(db, data: dict) -> User:
    user = await db.scalar(select(User).where(User.email == data["email"]))
    if user is not None:
        logger.info(f"User exists: {user.email}")
        return user

    user = User(password_hash=hash_password(DEFAULT_PASSWORD), **data)
    db.add(user)
    await db.flush()
    logger.info(f"Created {user.role.value}: {user.email} (password: {DEFAULT_PASSWORD})")
    return user


async def seed() -> None:
    async with async_session_maker() as db:
        users = [await get_or_create_user(db, data) for data in USERS]
        seller = next(u for u in users if u.role == UserRole.SELLER)

        for data in PRODUCTS:
            exists = await db.scalar(
                select(Product.id).where(Product.seller_id == seller.id, Product.name == data["name"])
            )
            if exists:
                continue
            db.add(Product(seller_id=seller.id, **data))
            logger.info(f"Created product: {data['name']}")

        await db.commit()

    logger.info("✅ Seed complete")


if __name__ == "__main__":
    asyncio.run(seed())
