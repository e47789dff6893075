from .inventory import InventoryRecord
from .orders import Order, OrderLineItem, OrderSequence, STAGE_TO_STATUS
from .events import ApprovalEvent

__all__ = [
    'InventoryRecord',
    'Order', 'OrderLineItem', 'OrderSequence', 'STAGE_TO_STATUS',
    'ApprovalEvent',
]
