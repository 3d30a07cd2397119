from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from dinelink.core.errors import InvalidInput, InvalidState, NotFound, StorageError, Unauthorized
from dinelink.core.utils import equal_portion
from dinelink.models.item_assignment import ItemAssignment
from dinelink.schemas.bill import AssignmentInput, BillItemCreate
from dinelink.services import allocation_services
from dinelink.services.allocation_services import (
    allocate_amounts,
    assign_item_to_users,
    auto_split_bill,
    calculate_totals,
)
from dinelink.services.bill_services import add_bill_items, finalize_bill


async def assignments_for(db, item_id):
    res = await db.execute(
        select(ItemAssignment)
        .where(ItemAssignment.bill_item_id == item_id)
        .order_by(ItemAssignment.id)
    )
    return res.scalars().all()


def test_calculate_totals_hong_kong_service_charge():
    totals = calculate_totals(1000, 0.10, 0)

    assert totals.subtotal == Decimal("1000")
    assert totals.service_charge == Decimal("100")
    assert totals.tax_amount == Decimal("0")
    assert totals.total_amount == Decimal("1100")


def test_calculate_totals_rounds_each_charge_to_cents():
    totals = calculate_totals(Decimal("133.33"), Decimal("0.10"), Decimal("0"))

    assert totals.service_charge == Decimal("13.33")
    assert totals.total_amount == Decimal("146.66")


def test_calculate_totals_uses_default_rates():
    totals = calculate_totals(Decimal("360"))

    assert totals.service_charge == Decimal("36.00")
    assert totals.tax_amount == Decimal("0.00")
    assert totals.total_amount == Decimal("396")


def test_allocate_amounts_hands_leftover_cents_to_largest_remainders():
    amounts = allocate_amounts(Decimal("100"), [equal_portion(3)] * 3)

    assert amounts == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
    assert sum(amounts) == Decimal("100.00")


def test_allocate_amounts_uneven_portions():
    amounts = allocate_amounts(Decimal("10.01"), [Decimal("0.5"), Decimal("0.25"), Decimal("0.25")])

    assert sum(amounts) == Decimal("10.01")
    assert amounts[0] == Decimal("5.01")


def test_allocate_amounts_zero_total():
    assert allocate_amounts(Decimal("0"), [Decimal("0.5"), Decimal("0.5")]) == [Decimal("0"), Decimal("0")]


def test_allocate_amounts_covers_total_when_portions_fall_short_of_one():
    amounts = allocate_amounts(Decimal("1000000"), [equal_portion(3)] * 3)

    assert sum(amounts) == Decimal("1000000.00")
    assert amounts == [Decimal("333333.34"), Decimal("333333.33"), Decimal("333333.33")]


async def test_auto_split_all_shared_items_equally(db, party, dinner):
    bill, items = dinner

    result = await auto_split_bill(db, bill.id, party.confirmed, party.bob)

    assert set(result) == {item.id for item in items}
    for item in items:
        rows = await assignments_for(db, item.id)
        assert [r.user_id for r in rows] == party.confirmed
        assert all(r.portion == Decimal("0.25") for r in rows)
        assert sum(r.amount for r in rows) == item.price * item.quantity


async def test_auto_split_three_ways_keeps_every_cent(db, party):
    from dinelink.schemas.bill import BillCreate
    from dinelink.services.bill_services import create_bill

    bill = await create_bill(db, BillCreate(event_id=party.event_id, subtotal=Decimal("100")), party.alice)
    [item] = await add_bill_items(db, bill.id, [BillItemCreate(name="Char Siu", price=Decimal("100"))], party.alice)

    await auto_split_bill(db, bill.id, [party.alice, party.bob, party.carol], party.alice)

    rows = await assignments_for(db, item.id)
    assert sum(r.amount for r in rows) == Decimal("100.00")
    assert all(abs(r.portion - Decimal(1) / Decimal(3)) < Decimal("0.0000001") for r in rows)


async def test_auto_split_without_members_is_rejected(db, party, dinner):
    bill, _ = dinner

    with pytest.raises(InvalidState):
        await auto_split_bill(db, bill.id, [], party.bob)


async def test_auto_split_gives_personal_items_to_first_member(db, party, dinner):
    bill, _ = dinner
    [beer] = await add_bill_items(
        db, bill.id, [BillItemCreate(name="Beer", price=Decimal("48"), quantity=2, is_shared=False)], party.bob
    )

    await auto_split_bill(db, bill.id, [party.carol, party.bob], party.bob)

    rows = await assignments_for(db, beer.id)
    assert [(r.user_id, r.portion, r.amount) for r in rows] == [(party.carol, Decimal("1"), Decimal("96.00"))]


async def test_auto_split_honours_explicit_owners(db, party, dinner):
    bill, _ = dinner
    [beer] = await add_bill_items(
        db, bill.id, [BillItemCreate(name="Beer", price=Decimal("48"), is_shared=False)], party.bob
    )

    await auto_split_bill(db, bill.id, [party.carol, party.bob], party.bob, owners={beer.id: party.bob})

    rows = await assignments_for(db, beer.id)
    assert [r.user_id for r in rows] == [party.bob]


async def test_auto_split_rejects_owner_for_unknown_item(db, party, dinner):
    bill, _ = dinner

    with pytest.raises(InvalidInput):
        await auto_split_bill(db, bill.id, [party.bob], party.bob, owners={9999: party.bob})


async def test_auto_split_rerun_replaces_previous_assignments(db, party, dinner):
    bill, items = dinner

    await auto_split_bill(db, bill.id, party.confirmed, party.bob)
    await auto_split_bill(db, bill.id, [party.bob, party.carol], party.bob)

    for item in items:
        rows = await assignments_for(db, item.id)
        assert sorted(r.user_id for r in rows) == sorted([party.bob, party.carol])
        assert sum(r.amount for r in rows) == item.price


async def test_assign_item_replaces_previous_assignment_set(db, party, dinner):
    _, (goose, _) = dinner

    await assign_item_to_users(
        db,
        goose.id,
        [AssignmentInput(user_id=party.alice, portion=Decimal("0.5")),
         AssignmentInput(user_id=party.bob, portion=Decimal("0.5"))],
        party.bob,
    )
    item = await assign_item_to_users(
        db,
        goose.id,
        [AssignmentInput(user_id=party.carol, portion=Decimal("0.75")),
         AssignmentInput(user_id=party.dave, portion=Decimal("0.25"))],
        party.bob,
    )

    rows = await assignments_for(db, goose.id)
    assert [r.user_id for r in rows] == [party.carol, party.dave]
    assert [r.amount for r in rows] == [Decimal("150.00"), Decimal("50.00")]
    assert [a.user.name for a in item.assignments] == ["Carol", "Dave"]


async def test_assign_item_multiplies_price_by_quantity(db, party, dinner):
    bill, _ = dinner
    [buns] = await add_bill_items(
        db, bill.id, [BillItemCreate(name="Custard Bun", price=Decimal("32.50"), quantity=3)], party.bob
    )

    await assign_item_to_users(
        db,
        buns.id,
        [AssignmentInput(user_id=party.bob, portion=Decimal("0.5")),
         AssignmentInput(user_id=party.dave, portion=Decimal("0.5"))],
        party.bob,
    )

    rows = await assignments_for(db, buns.id)
    assert sorted(r.amount for r in rows) == [Decimal("48.75"), Decimal("48.75")]


async def test_zero_priced_item_is_allowed(db, party, dinner):
    bill, _ = dinner
    [tea] = await add_bill_items(db, bill.id, [BillItemCreate(name="Tea", price=Decimal("0"))], party.bob)

    await assign_item_to_users(db, tea.id, [AssignmentInput(user_id=party.bob, portion=Decimal("1"))], party.bob)

    rows = await assignments_for(db, tea.id)
    assert rows[0].amount == Decimal("0")


async def test_assign_missing_item(db, party):
    with pytest.raises(NotFound):
        await assign_item_to_users(db, 424242, [AssignmentInput(user_id=party.bob, portion=Decimal("1"))], party.bob)


@pytest.mark.parametrize("portions", [
    [Decimal("0.5"), Decimal("0.4")],
    [Decimal("1.5"), Decimal("-0.5")],
    [],
])
async def test_assign_rejects_malformed_portions(db, party, dinner, portions):
    _, (goose, _) = dinner
    users = [party.bob, party.carol]
    assignments = [AssignmentInput(user_id=u, portion=p) for u, p in zip(users, portions)]

    with pytest.raises(InvalidInput):
        await assign_item_to_users(db, goose.id, assignments, party.bob)


async def test_assign_rejects_duplicate_users(db, party, dinner):
    _, (goose, _) = dinner

    with pytest.raises(InvalidInput):
        await assign_item_to_users(
            db,
            goose.id,
            [AssignmentInput(user_id=party.bob, portion=Decimal("0.5")),
             AssignmentInput(user_id=party.bob, portion=Decimal("0.5"))],
            party.bob,
        )


async def test_assign_rejects_users_outside_the_event(db, party, dinner):
    _, (goose, _) = dinner

    with pytest.raises(InvalidInput):
        await assign_item_to_users(
            db, goose.id, [AssignmentInput(user_id=party.mallory, portion=Decimal("1"))], party.bob
        )

    assert await assignments_for(db, goose.id) == []


async def test_outsider_cannot_split(db, party, dinner):
    bill, (goose, _) = dinner

    with pytest.raises(Unauthorized):
        await assign_item_to_users(db, goose.id, [AssignmentInput(user_id=party.bob, portion=Decimal("1"))], party.mallory)

    with pytest.raises(Unauthorized):
        await auto_split_bill(db, bill.id, party.confirmed, party.erin)


async def test_finalized_bill_assignments_are_locked(db, party, dinner):
    bill, (goose, _) = dinner
    await auto_split_bill(db, bill.id, party.confirmed, party.bob)
    await finalize_bill(db, bill.id, party.bob)

    with pytest.raises(InvalidState):
        await assign_item_to_users(db, goose.id, [AssignmentInput(user_id=party.bob, portion=Decimal("1"))], party.bob)

    with pytest.raises(InvalidState):
        await auto_split_bill(db, bill.id, [party.bob], party.bob)

    assert len(await assignments_for(db, goose.id)) == 4


async def test_auto_split_large_item_three_ways_keeps_every_cent(db, party, dinner):
    bill, _ = dinner
    [banquet] = await add_bill_items(
        db, bill.id, [BillItemCreate(name="Wedding Banquet", price=Decimal("1000000"))], party.bob
    )

    await auto_split_bill(db, bill.id, [party.bob, party.carol, party.dave], party.bob)

    rows = await assignments_for(db, banquet.id)
    assert sum(r.amount for r in rows) == Decimal("1000000.00")


async def test_assign_portions_within_tolerance_still_cover_the_item(db, party, dinner):
    _, (goose, _) = dinner

    await assign_item_to_users(
        db,
        goose.id,
        [AssignmentInput(user_id=party.bob, portion=Decimal("0.49995")),
         AssignmentInput(user_id=party.carol, portion=Decimal("0.49995"))],
        party.bob,
    )

    rows = await assignments_for(db, goose.id)
    assert [r.amount for r in rows] == [Decimal("100.00"), Decimal("100.00")]


async def test_auto_split_storage_failure_keeps_previous_assignments(db, party, dinner, monkeypatch):
    bill, items = dinner
    await auto_split_bill(db, bill.id, party.confirmed, party.bob)
    totals = {item.id: item.price for item in items}

    replace = allocation_services._replace_assignments
    calls = []

    async def fail_on_second_item(db, item, assignments):
        calls.append(item.id)
        if len(calls) == 2:
            raise OperationalError("INSERT INTO item_assignments", {}, Exception("disk I/O error"))
        return await replace(db, item, assignments)

    monkeypatch.setattr(allocation_services, "_replace_assignments", fail_on_second_item)

    with pytest.raises(StorageError) as exc:
        await auto_split_bill(db, bill.id, [party.bob, party.carol], party.bob)

    assert exc.value.status_code == 503
    for item_id, price in totals.items():
        rows = await assignments_for(db, item_id)
        assert sorted(r.user_id for r in rows) == sorted(party.confirmed)
        assert sum(r.amount for r in rows) == price


async def test_auto_split_by_outsider_is_refused_before_member_checks(db, party, dinner):
    bill, _ = dinner

    with pytest.raises(Unauthorized):
        await auto_split_bill(db, bill.id, [], party.mallory)
