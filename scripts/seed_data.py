"""
Seed initial data: default settings and a few demo members with savings.
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from koperasi.db.base import SessionLocal
from koperasi.models.member import Member
from koperasi.models.ledger import SavingsCategory
from koperasi.models.system import SystemSetting
from koperasi.services import member as member_service
from koperasi.services import savings as savings_service
from decimal import Decimal
from datetime import date
import json


def seed_settings(db):
    """Seed default system settings."""
    print("Seeding settings...")
    defaults = {
        "settings.profile": json.dumps({"name": "Koperasi Simpan Pinjam", "city": "Jakarta"}),
        "settings.financial": json.dumps({
            "mandatory_deposit": "50000.00",
            "default_flat_rate_percent": "12.00",
            "late_fee_rate": "0.01",
        }),
    }

    for key, value in defaults.items():
        existing = db.query(SystemSetting).filter(SystemSetting.setting_key == key).first()
        if not existing:
            db.add(SystemSetting(setting_key=key, setting_value=value))

    db.commit()
    print("Settings seeded")


def seed_members(db):
    """Seed demo members, activate them and post opening deposits."""
    print("Seeding members...")
    members = [
        {"member_number": "AGT-0001", "name": "Siti Rahma", "nik": "3171010101800001"},
        {"member_number": "AGT-0002", "name": "Budi Santoso", "nik": "3171010101850002"},
        {"member_number": "AGT-0003", "name": "Dewi Lestari", "nik": "3171010101900003"},
    ]

    for member_data in members:
        existing = db.query(Member).filter(Member.member_number == member_data["member_number"]).first()
        if existing:
            continue
        member = member_service.register_member(db, joined_date=date(2024, 1, 2), **member_data)
        member_service.verify_member(db, member.id)
        member_service.activate_member(db, member.id)
        savings_service.deposit(db, member.id, SavingsCategory.MANDATORY, Decimal("100000.00"))
        savings_service.deposit(db, member.id, SavingsCategory.VOLUNTARY, Decimal("250000.00"))

    print("Members seeded")


if __name__ == "__main__":
    db = SessionLocal()
    try:
        seed_settings(db)
        seed_members(db)
        print("\nSeed data complete!")
    except Exception as e:
        db.rollback()
        print(f"Error seeding data: {e}")
        raise
    finally:
        db.close()
