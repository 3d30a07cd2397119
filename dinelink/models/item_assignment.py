from sqlalchemy import Column, Integer, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from dinelink.db.session import Base

class ItemAssignment(Base):
    __tablename__ = "item_assignments"

    id = Column(Integer, primary_key=True, index=True)
    bill_item_id = Column(Integer, ForeignKey("bill_items.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    portion = Column(Numeric(9, 8), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)

    bill_item = relationship("BillItem", back_populates="assignments")
    user = relationship("User")
