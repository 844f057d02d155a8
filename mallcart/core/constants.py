"""Application-wide constants and configuration values.

Centralizes key names, defaults and wire constants shared by the cart
store, the shop connections and the aggregator.
"""

# ============== PERSISTED STATE ==============
DEFAULT_KEY_PREFIX = "mallcart:"
CARTS_KEY = "carts"  # shop domain -> cart id
CART_COUNT_KEY = "cartCount"  # cross-shop item counter

STORE_LOCK_TTL_SECONDS = 5
STORE_LOCK_WAIT_SECONDS = 2.0

# ============== SIGNAL CHANNELS ==============
STORAGE_CHANNEL = "mallcart:storage"
MESSAGES_CHANNEL = "mallcart:messages"

# Sent by a shop's hosted checkout once the order is placed
CHECKOUT_THANK_YOU_PAGE = "/checkout/thank_you"

# ============== REMOTE ENDPOINTS ==============
DEFAULT_DIRECTORY_URL = "http://localhost:8081/graphql"
DEFAULT_STOREFRONT_API_VERSION = "2021-10"
STOREFRONT_URL_TEMPLATE = "https://{domain}/api/{version}/graphql.json"
STOREFRONT_TOKEN_HEADER = "X-Shopify-Storefront-Access-Token"

# ============== API TIMEOUTS ==============
API_TIMEOUT_SECONDS = 30

# ============== CART ==============
CART_LINES_PAGE_SIZE = 20
PRODUCT_VARIANTS_PAGE_SIZE = 100
DEFAULT_CURRENCY = "CAD"
MIN_LINE_QUANTITY = 1

CHECKED_OUT_MESSAGE = "Checkout has already been completed for this shop!"
UNAVAILABLE_MESSAGE = "This shop is currently unavailable."

NO_IMAGE_URL = (
    "https://cdn.shopify.com/shopifycloud/shopify/assets/"
    "no-image-2048-5e88c1b20e087fb7bbe9a3771824e743c244f437e4f8ba93bbf7b11b53f7824c_1024x.gif"
)
