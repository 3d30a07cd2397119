"""
Authorization policy for bills.

Every bill operation names the action it performs and asks
`get_bill_for_action` (or `check_event_permission` before a bill exists).
The rule table below is the only place that decides who may do what.
"""

import enum
from dataclasses import dataclass
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from dinelink.core.errors import AccessDenied, InvalidInput, InvalidState, NotFound, Unauthorized, storage_errors
from dinelink.models.bill import Bill
from dinelink.models.event import DiningEvent, EventMember, MemberStatus


class BillAction(str, enum.Enum):
    VIEW = "view"
    EDIT = "edit"
    FINALIZE = "finalize"


@dataclass
class EventAccess:
    event_id: int
    organizer_id: int
    member_status: Optional[str]

    def is_organizer(self, user_id: int) -> bool:
        return self.organizer_id == user_id

    @property
    def is_member(self) -> bool:
        return self.member_status is not None

    @property
    def is_confirmed(self) -> bool:
        return self.member_status == MemberStatus.CONFIRMED.value


def _can_view(access: EventAccess, user_id: int, created_by: Optional[int]) -> bool:
    return access.is_organizer(user_id) or access.is_member


def _can_edit(access: EventAccess, user_id: int, created_by: Optional[int]) -> bool:
    return created_by == user_id or access.is_organizer(user_id) or access.is_confirmed


def _can_finalize(access: EventAccess, user_id: int, created_by: Optional[int]) -> bool:
    return created_by == user_id or access.is_organizer(user_id)


RULES = {
    BillAction.VIEW: (_can_view, AccessDenied, "Access denied to this bill"),
    BillAction.EDIT: (_can_edit, Unauthorized, "Unauthorized to modify this bill"),
    BillAction.FINALIZE: (_can_finalize, Unauthorized, "Unauthorized to finalize this bill"),
}


async def get_event_access(db: AsyncSession, event_id: int, user_id: int) -> Optional[EventAccess]:
    with storage_errors("load event membership"):
        res = await db.execute(select(DiningEvent.organizer_id).where(DiningEvent.id == event_id))
        organizer_id = res.scalar_one_or_none()

        if organizer_id is None:
            return None

        member_q = select(EventMember.status).where(
            EventMember.event_id == event_id,
            EventMember.user_id == user_id
        )
        member_res = await db.execute(member_q)
        member_status = member_res.scalar_one_or_none()

    return EventAccess(event_id=event_id, organizer_id=organizer_id, member_status=member_status)


def is_allowed(access: EventAccess, user_id: int, action: BillAction, created_by: Optional[int] = None) -> bool:
    rule, _, _ = RULES[action]
    return rule(access, user_id, created_by)


def enforce(access: Optional[EventAccess], user_id: int, action: BillAction, created_by: Optional[int] = None):
    _, error, message = RULES[action]
    if access is None or not is_allowed(access, user_id, action, created_by):
        raise error(message)


async def check_event_permission(db: AsyncSession, event_id: int, user_id: int, action: BillAction) -> EventAccess:
    access = await get_event_access(db, event_id, user_id)

    if access is None:
        raise NotFound("Event not found")

    enforce(access, user_id, action)
    return access


async def get_bill_for_action(db: AsyncSession, bill_id: int, user_id: int, action: BillAction) -> Bill:
    with storage_errors("load bill"):
        res = await db.execute(select(Bill).where(Bill.id == bill_id))
        bill = res.scalar_one_or_none()

    if not bill:
        raise NotFound("Bill not found")

    access = await get_event_access(db, bill.event_id, user_id)
    enforce(access, user_id, action, created_by=bill.created_by)
    return bill


def ensure_draft(bill: Bill):
    if bill.is_finalized:
        raise InvalidState("Bill is finalized and can no longer be changed")


async def ensure_event_participants(db: AsyncSession, event_id: int, user_ids: list[int], message: str):
    """Every id must be the event organizer or one of its members, whatever their status."""
    wanted = set(user_ids)

    with storage_errors("load event members"):
        res = await db.execute(
            select(EventMember.user_id).where(
                EventMember.event_id == event_id,
                EventMember.user_id.in_(list(wanted))
            )
        )
        found = set(res.scalars().all())

        organizer_res = await db.execute(select(DiningEvent.organizer_id).where(DiningEvent.id == event_id))
        organizer_id = organizer_res.scalar_one_or_none()

    if organizer_id is not None:
        found.add(organizer_id)

    if not wanted <= found:
        raise InvalidInput(message)
