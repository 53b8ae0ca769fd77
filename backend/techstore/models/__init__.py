from .users import User
from .catalog import Product, Discount
from .orders import Order, OrderLine, PaymentRecord, RefundRequest, OrderStatus, RefundStatus
from .notifications import Notification

__all__ = [
    'User',
    'Product', 'Discount',
    'Order', 'OrderLine', 'PaymentRecord', 'RefundRequest', 'OrderStatus', 'RefundStatus',
    'Notification',
]
