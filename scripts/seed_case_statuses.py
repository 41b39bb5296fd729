"""
Seed Case Statuses — the default lifecycle statuses.

Usage:
    python scripts/seed_case_statuses.py                         # Uses development DB
    python scripts/seed_case_statuses.py --env production
    python scripts/seed_case_statuses.py --admin-user auth0|42 --admin-email ops@example.com

This script is idempotent — safe to run multiple times.
Optionally creates an admin user profile if it does not exist yet.
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import func, select

from app import create_app
from app.auth import ROLE_ADMIN
from app.models import db
from app.models.case_status import CaseStatus, seed_case_statuses
from app.models.reference import UserProfile


def seed_admin_profile(user_id, email):
    existing = db.session.execute(
        select(UserProfile).where(UserProfile.user_id == user_id)
    ).scalar_one_or_none()
    if existing:
        print(f"  ⏭️  Admin profile {user_id} already exists (role={existing.role})")
        return
    db.session.add(UserProfile(
        user_id=user_id, full_name="Administrator", email=email, role=ROLE_ADMIN,
    ))
    db.session.commit()
    print(f"  ✅ Admin profile {user_id} created")


def main():
    parser = argparse.ArgumentParser(description="Seed default case statuses")
    parser.add_argument("--env", default="development", help="App environment")
    parser.add_argument("--admin-user", help="Identity-provider user id to register as admin")
    parser.add_argument("--admin-email", default="", help="Email for the admin profile")
    args = parser.parse_args()

    os.environ.setdefault("APP_ENV", args.env)
    app = create_app(args.env)

    with app.app_context():
        print("=" * 60)
        print("  SEED: Case Statuses")
        print("=" * 60)

        added = seed_case_statuses()
        db.session.commit()
        print(f"\n📋 Case statuses added: {added}")

        if args.admin_user:
            print("\n🔑 Seeding admin profile...")
            seed_admin_profile(args.admin_user, args.admin_email)

        total = db.session.execute(select(func.count(CaseStatus.id))).scalar()
        print(f"\n  Case statuses total: {total}")
        print("\n✅ Seed complete!")


if __name__ == "__main__":
    main()
