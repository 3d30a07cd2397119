# Import every model so the mapper registry and Base.metadata are complete
from dinelink.db.session import Base
from dinelink.models.user import User
from dinelink.models.event import DiningEvent, EventMember
from dinelink.models.bill import Bill
from dinelink.models.bill_item import BillItem
from dinelink.models.item_assignment import ItemAssignment
from dinelink.models.payment import Payment
from dinelink.models.notification import Notification
