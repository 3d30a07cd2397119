import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from dinelink.db.session import Base

class MemberStatus(str, enum.Enum):
    INVITED = "invited"
    CONFIRMED = "confirmed"
    DECLINED = "declined"

class DiningEvent(Base):
    __tablename__ = "dining_events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String, nullable=False, server_default="planning")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    members = relationship("EventMember", back_populates="event", cascade="all, delete")

class EventMember(Base):
    __tablename__ = "event_members"
    __table_args__ = (UniqueConstraint("event_id", "user_id"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("dining_events.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String, nullable=False, default=MemberStatus.INVITED.value)
    role = Column(String, nullable=False, default="member")

    event = relationship("DiningEvent", back_populates="members")
