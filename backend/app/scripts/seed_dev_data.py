from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy.orm import Session

# Ensure "app" is importable when running as a script (python app/scripts/seed_dev_data.py)
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import models  # noqa: E402
from app.core.security import create_access_token_for_subject  # noqa: E402
from app.database import SessionLocal  # noqa: E402


def ensure_role(db: Session, role_name: models.RoleName) -> models.Role:
    role = db.query(models.Role).filter(models.Role.name == role_name).first()
    if role:
        return role
    role = models.Role(name=role_name, description=role_name.value)
    db.add(role)
    db.flush()
    return role


def ensure_organization(db: Session, *, code: str, name: str, org_type: str) -> models.Organization:
    org = db.query(models.Organization).filter(models.Organization.code == code).first()
    if org:
        return org
    org = models.Organization(code=code, name=name, type=org_type, is_active=True)
    db.add(org)
    db.flush()
    return org


def ensure_user(
    db: Session,
    *,
    email: str,
    name: str,
    role: models.Role,
    organization: models.Organization,
) -> tuple[models.User, bool]:
    user = db.query(models.User).filter(models.User.email == email).first()
    created = False
    if not user:
        user = models.User(email=email, name=name, active=True)
        created = True
    user.name = name
    user.role_id = role.id
    user.organization_id = organization.id
    user.active = True
    db.add(user)
    db.flush()
    return user, created


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed organizations, users and listings for dev.")
    parser.add_argument("--domain", default="passport.local", help="Email domain (default: passport.local)")
    args = parser.parse_args()

    domain = str(args.domain).strip().lstrip("@") or "passport.local"

    db = SessionLocal()
    try:
        roles = {name: ensure_role(db, name) for name in models.RoleName}

        buyer = ensure_organization(db, code="BYR", name="Buyer Electronics", org_type="BUYER")
        supplier = ensure_organization(db, code="SUP", name="Supplier Components", org_type="SUPPLIER")

        targets = [
            ("buyer", roles[models.RoleName.customer], buyer, "Buyer Customer"),
            ("supplier", roles[models.RoleName.operator], supplier, "Supplier Operator"),
            ("admin", roles[models.RoleName.admin], supplier, "Administrator"),
        ]
        seeded: list[str] = []
        for local, role, org, name in targets:
            user, created = ensure_user(
                db, email=f"{local}@{domain}", name=name, role=role, organization=org
            )
            seeded.append(user.email)
            print(f"{'created' if created else 'updated'} {user.email} ({role.name.value}, {org.code})")

        if not db.query(models.MarketplaceProduct).filter_by(organization_id=supplier.id).first():
            db.add(
                models.MarketplaceProduct(
                    organization_id=supplier.id, listing_title="Li-ion battery pack 48V"
                )
            )
        if not db.query(models.BuyerRequirement).filter_by(organization_id=buyer.id).first():
            db.add(
                models.BuyerRequirement(
                    organization_id=buyer.id, title="Recycled battery cells, 10k units"
                )
            )

        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    print("\nDev bearer tokens:")
    for email in seeded:
        print(f"{email}: {create_access_token_for_subject(email)}")


if __name__ == "__main__":
    main()
