import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from dataclasses import dataclass
from decimal import Decimal

import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import dinelink.db.base  # noqa: F401
from dinelink.db.session import Base
from dinelink.models.event import DiningEvent, EventMember
from dinelink.models.user import User
from dinelink.schemas.bill import BillCreate, BillItemCreate
from dinelink.services.bill_services import add_bill_items, create_bill


@dataclass
class Party:
    event_id: int
    alice: int      # organizer
    bob: int        # confirmed member, creates the bills
    carol: int      # confirmed member
    dave: int       # confirmed member
    erin: int       # invited, never confirmed
    mallory: int    # not part of the event

    @property
    def confirmed(self):
        return [self.alice, self.bob, self.carol, self.dave]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def party(db):
    names = ["Alice", "Bob", "Carol", "Dave", "Erin", "Mallory"]
    users = [User(name=n, phone=f"+852 9000 00{i:02d}") for i, n in enumerate(names)]
    db.add_all(users)
    await db.flush()
    alice, bob, carol, dave, erin, mallory = users

    event = DiningEvent(name="Dim Sum Friday", organizer_id=alice.id)
    db.add(event)
    await db.flush()

    db.add_all([
        EventMember(event_id=event.id, user_id=alice.id, status="confirmed", role="organizer"),
        EventMember(event_id=event.id, user_id=bob.id, status="confirmed", role="member"),
        EventMember(event_id=event.id, user_id=carol.id, status="confirmed", role="member"),
        EventMember(event_id=event.id, user_id=dave.id, status="confirmed", role="member"),
        EventMember(event_id=event.id, user_id=erin.id, status="invited", role="member"),
    ])
    await db.commit()

    return Party(
        event_id=event.id,
        alice=alice.id,
        bob=bob.id,
        carol=carol.id,
        dave=dave.id,
        erin=erin.id,
        mallory=mallory.id,
    )


@pytest_asyncio.fixture
async def dinner(db, party):
    """Subtotal 360 with 10% service charge and a 40 tip, two shared dishes."""
    bill = await create_bill(
        db,
        BillCreate(
            event_id=party.event_id,
            subtotal=Decimal("360"),
            service_charge_rate=Decimal("0.10"),
            tip_amount=Decimal("40"),
        ),
        party.bob,
    )
    items = await add_bill_items(
        db,
        bill.id,
        [
            BillItemCreate(name="Roast Goose", price=Decimal("200"), is_shared=True),
            BillItemCreate(name="Har Gow", name_chinese="蝦餃", price=Decimal("160"), is_shared=True),
        ],
        party.bob,
    )
    return bill, items
