from .tenancy import Store, StoreStatus, STORE_STATUSES, Admin, AdminStatus
from .customers import Customer, CustomerBankDetail, CustomerStatus, CUSTOMER_STATUSES
from .catalog import Category, Product, ProductType
from .orders import Order, OrderItem
from .documents import Invoice, InvoiceStatus, INVOICE_STATUSES, DocumentSequence
from .settings import PaymentGateway, TaxSetting, ShippingSetting, ShippingZone
from .content import PromoBanner, Page, FooterSetting
from .auth import SessionToken, SubjectType
from .security import SecurityEvent
from .wishlist import WishlistItem

__all__ = [
    'Store', 'StoreStatus', 'STORE_STATUSES', 'Admin', 'AdminStatus',
    'Customer', 'CustomerBankDetail', 'CustomerStatus', 'CUSTOMER_STATUSES',
    'Category', 'Product', 'ProductType',
    'Order', 'OrderItem',
    'Invoice', 'InvoiceStatus', 'INVOICE_STATUSES', 'DocumentSequence',
    'PaymentGateway', 'TaxSetting', 'ShippingSetting', 'ShippingZone',
    'PromoBanner', 'Page', 'FooterSetting',
    'SessionToken', 'SubjectType',
    'SecurityEvent',
    'WishlistItem',
]
