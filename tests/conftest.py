"""Test configuration."""
import os
from collections.abc import AsyncIterator, Callable, Iterator
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# --- Default env, set before the settings object is built
os.environ.setdefault("DATABASE_URL", "sqlite:///./orderdesk_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ORDERDESK_ENV", "test")

from orderdesk.db import get_db  # noqa: E402
from orderdesk.main import app  # noqa: E402
from orderdesk.models import (  # noqa: E402
    ApiKey,
    ApiScope,
    Base,
    Budget,
    Company,
    CompanyMember,
    EmployeeBudget,
    MemberRole,
    Order,
    PeriodType,
    ProductType,
    ProductVariant,
    User,
    Vendor,
    VendorMember,
)
from orderdesk.security import Actor  # noqa: E402
from orderdesk.services import cart, ledger, orders  # noqa: E402
from orderdesk.services.periods import calculate_period_bounds  # noqa: E402
from orderdesk.utils.apikey import hash_key  # noqa: E402

DB_PATH = Path("./orderdesk_test.db")

if DB_PATH.exists():
    DB_PATH.unlink()

engine = create_engine(
    os.environ["DATABASE_URL"],
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

UNIT_PRICE = Decimal("50.00")


@dataclass
class CompanyWorld:
    """A company with an admin, an employee, a vendor and one orderable variant."""

    company: Company
    admin_user: User
    admin: Actor
    employee_user: User
    employee: Actor
    employee_member: CompanyMember
    vendor: Vendor
    vendor_user: User
    vendor_actor: Actor
    variant: ProductVariant


def actor_for(user: User, scope: ApiScope = ApiScope.user) -> Actor:
    return Actor(user_id=user.id, scope=scope, key_prefix="test")


@pytest.fixture
def db_session() -> Iterator[Session]:
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def override_db_dependency(db_session: Session) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def make_user(db_session: Session) -> Callable[..., User]:
    def _factory(name: str = "user") -> User:
        username = f"{name}-{uuid4().hex[:8]}"
        user = User(username=username, email=f"{username}@example.com", is_active=True)
        db_session.add(user)
        db_session.commit()
        return user

    return _factory


@pytest.fixture
def make_api_key(db_session: Session) -> Callable[..., dict[str, str]]:
    """Create a key for ``user`` and return the matching auth headers."""

    def _factory(user: User, scope: ApiScope = ApiScope.user, is_active: bool = True) -> dict[str, str]:
        token = f"odk_test-{uuid4().hex}"
        api_key = ApiKey(
            name=f"key-{uuid4().hex[:8]}",
            prefix="odk_test",
            key_hash=hash_key(token),
            scope=scope,
            user_id=user.id,
            is_active=is_active,
        )
        db_session.add(api_key)
        db_session.commit()
        return {"Authorization": f"Bearer {token}"}

    return _factory


@pytest.fixture
def admin_headers(make_user, make_api_key) -> dict[str, str]:
    return make_api_key(make_user("platform"), scope=ApiScope.admin)


@pytest.fixture
def make_company(db_session: Session, make_user: Callable[..., User]) -> Callable[..., CompanyWorld]:
    def _factory(slug: str = "acme", unit_price: Decimal = UNIT_PRICE) -> CompanyWorld:
        admin_user = make_user("admin")
        employee_user = make_user("employee")
        vendor_user = make_user("vendor")

        company = Company(name=slug.title(), slug=f"{slug}-{uuid4().hex[:6]}", is_active=True)
        db_session.add(company)
        db_session.flush()
        employee_member = CompanyMember(
            company_id=company.id,
            user_id=employee_user.id,
            role=MemberRole.EMPLOYEE,
            department="Sales",
            is_active=True,
        )
        db_session.add_all(
            [
                CompanyMember(
                    company_id=company.id, user_id=admin_user.id, role=MemberRole.ADMIN, is_active=True
                ),
                employee_member,
            ]
        )
        vendor = Vendor(company_id=company.id, name="Print Shop", is_active=True)
        db_session.add(vendor)
        db_session.flush()
        db_session.add(VendorMember(vendor_id=vendor.id, user_id=vendor_user.id, is_active=True))

        product = ProductType(company_id=company.id, name="T-Shirt", base_price=unit_price, is_active=True)
        db_session.add(product)
        db_session.flush()
        variant = ProductVariant(
            product_type_id=product.id,
            name="Classic",
            color="black",
            price_modifier=Decimal("0.00"),
            available_sizes=["S", "M", "L"],
            is_active=True,
        )
        db_session.add(variant)
        db_session.commit()

        return CompanyWorld(
            company=company,
            admin_user=admin_user,
            admin=actor_for(admin_user),
            employee_user=employee_user,
            employee=actor_for(employee_user),
            employee_member=employee_member,
            vendor=vendor,
            vendor_user=vendor_user,
            vendor_actor=actor_for(vendor_user),
            variant=variant,
        )

    return _factory


@pytest.fixture
def world(make_company: Callable[..., CompanyWorld]) -> CompanyWorld:
    return make_company()


@pytest.fixture
def add_employee(
    db_session: Session, make_user: Callable[..., User]
) -> Callable[..., tuple[Actor, CompanyMember]]:
    def _factory(world: CompanyWorld, department: str | None = "Ops") -> tuple[Actor, CompanyMember]:
        user = make_user("employee")
        member = CompanyMember(
            company_id=world.company.id,
            user_id=user.id,
            role=MemberRole.EMPLOYEE,
            department=department,
            is_active=True,
        )
        db_session.add(member)
        db_session.commit()
        return actor_for(user), member

    return _factory


@pytest.fixture
def place_order(db_session: Session) -> Callable[..., Order]:
    """Fill ``actor``'s cart with ``quantity`` units and turn it into an order.

    Each unit costs 50.00 unless the company was built with another price.
    """

    def _factory(
        world: CompanyWorld,
        actor: Actor,
        quantity: int,
        *,
        approve: bool = False,
        payment_source: str = "company_budget",
    ) -> Order:
        cart.add_to_cart(db_session, actor, world.company.id, world.variant.id, "M", quantity)
        order = orders.create_order_from_cart(
            db_session, actor, world.company.id, payment_source=payment_source
        )
        if approve:
            order = orders.approve_order(db_session, world.admin, order.id)
        return order

    return _factory


@pytest.fixture
def fund_member(db_session: Session) -> Callable[..., tuple[Budget, EmployeeBudget]]:
    """Give a member an allocation under the company's current monthly budget."""

    def _factory(
        world: CompanyWorld,
        amount: str,
        *,
        member: CompanyMember | None = None,
        total: str = "1000.00",
    ) -> tuple[Budget, EmployeeBudget]:
        member = member or world.employee_member
        budget = ledger.find_overlapping_budget(
            db_session, world.company.id, PeriodType.MONTHLY, *_current_month()
        )
        if budget is None:
            budget = ledger.create_budget(db_session, world.admin, world.company.id, "monthly", total)
        allocation = ledger.allocate(db_session, world.admin, budget.id, member.id, amount)
        return budget, allocation

    return _factory


def _current_month():
    bounds = calculate_period_bounds(PeriodType.MONTHLY)
    return bounds.period_start, bounds.period_end
