from votecart.cart.model import CartModel, MultiCart
from votecart.cart.storage import (
    STORAGE_KEY_PREFIX,
    CartStore,
    InMemoryCartStore,
    SqlCartStore,
    load_multi_cart,
    storage_key,
)

__all__ = [
    "STORAGE_KEY_PREFIX",
    "CartModel",
    "CartStore",
    "InMemoryCartStore",
    "MultiCart",
    "SqlCartStore",
    "load_multi_cart",
    "storage_key",
]
