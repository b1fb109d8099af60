"""Seed a demo company with a catalog, a vendor and a monthly budget."""
from __future__ import annotations

from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

from sqlalchemy import select  # noqa: E402

from orderdesk import db, models  # noqa: E402
from orderdesk.config import get_settings  # noqa: E402
from orderdesk.services.periods import calculate_period_bounds  # noqa: E402
from orderdesk.utils.money import ZERO  # noqa: E402


def _user(session, username: str) -> models.User:
    user = session.scalars(select(models.User).where(models.User.username == username)).first()
    if user is None:
        user = models.User(username=username, email=f"{username}@example.com", is_active=True)
        session.add(user)
        session.flush()
    return user


def main() -> None:
    settings = get_settings()
    print(f"Using database: {settings.database_url}")

    db.create_all()
    session = db.get_sessionmaker()()

    try:
        if session.scalars(select(models.Company).where(models.Company.slug == "acme")).first():
            print("Seed data already present.")
            return

        alice = _user(session, "alice")
        bob = _user(session, "bob")
        vera = _user(session, "vera")

        acme = models.Company(name="Acme Corp", slug="acme", is_active=True)
        session.add(acme)
        session.flush()
        session.add_all(
            [
                models.CompanyMember(company_id=acme.id, user_id=alice.id, role=models.MemberRole.ADMIN),
                models.CompanyMember(
                    company_id=acme.id,
                    user_id=bob.id,
                    role=models.MemberRole.EMPLOYEE,
                    department="Sales",
                ),
            ]
        )
        vendor = models.Vendor(company_id=acme.id, name="Print Shop", contact_email="orders@print.example")
        session.add(vendor)
        session.flush()
        session.add(models.VendorMember(vendor_id=vendor.id, user_id=vera.id))

        hoodie = models.ProductType(company_id=acme.id, name="Hoodie", base_price=Decimal("45.00"))
        session.add(hoodie)
        session.flush()
        session.add_all(
            [
                models.ProductVariant(
                    product_type_id=hoodie.id,
                    name="Navy",
                    color="navy",
                    price_modifier=ZERO,
                    available_sizes=["S", "M", "L", "XL"],
                ),
                models.ProductVariant(
                    product_type_id=hoodie.id,
                    name="Heather embroidered",
                    color="grey",
                    price_modifier=Decimal("7.50"),
                    available_sizes=["M", "L"],
                ),
            ]
        )

        bounds = calculate_period_bounds(models.PeriodType.MONTHLY)
        amount = Decimal("5000.00")
        period = models.BudgetPeriod(
            company_id=acme.id,
            period_type=bounds.period_type,
            period_start=bounds.period_start,
            period_end=bounds.period_end,
            budget_amount=amount,
            created_by_id=alice.id,
        )
        session.add(period)
        session.flush()
        session.add(
            models.Budget(
                company_id=acme.id,
                budget_period_id=period.id,
                period_type=bounds.period_type,
                period_start=bounds.period_start,
                period_end=bounds.period_end,
                total_budget=amount,
                allocated_budget=ZERO,
                spent_budget=ZERO,
                remaining_budget=amount,
                status=models.BudgetStatus.ACTIVE,
                version=0,
            )
        )
        session.commit()
        print("Seed data inserted.")
    finally:
        session.close()


if __name__ == "__main__":
    main()
