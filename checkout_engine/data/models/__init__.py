#import wszystkich modeli żeby SQLAlchemy je zarejestrował w base metadata

from checkout_engine.data.models.store import StoreModel
from checkout_engine.data.models.variant import VariantModel
from checkout_engine.data.models.inventory import InventoryModel
from checkout_engine.data.models.discount import DiscountModel
from checkout_engine.data.models.discount_usage import DiscountUsageModel
from checkout_engine.data.models.cart import CartModel
from checkout_engine.data.models.cart_item import CartItemModel

__all__ = [
    "StoreModel",
    "VariantModel",
    "InventoryModel",
    "DiscountModel",
    "DiscountUsageModel",
    "CartModel",
    "CartItemModel",
]
