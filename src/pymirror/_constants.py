"""Internal constants shared across the library."""

SUBSCRIBE_TO_VALUES = "FIREBASE/SUBSCRIBE_TO_VALUES"
UNSUBSCRIBE_FROM_VALUES = "FIREBASE/UNSUBSCRIBE_FROM_VALUES"
RECEIVE_SNAPSHOTS = "FIREBASE/RECEIVE_SNAPSHOTS"
REHYDRATE = "FIREBASE/REHYDRATE"

#: Root state key the mirror reducer is expected to be mounted under.
DEFAULT_MOUNT_KEY = "firebaseMirror"

#: Prefix prepended to every path spec key in the key-value cache.
DEFAULT_CACHE_PREFIX = "firebase-mirror:"

PATH_SEPARATOR = "/"

# Joins the fields of a query key. Never valid inside a path segment.
KEY_DELIMITER = "|"

#: Order in which query fields are rendered into a key and applied to a ref.
FILTER_FIELDS: tuple[str, ...] = ("limit_to_last", "limit_to_first", "end_at", "start_at", "equal_to")
ORDER_FIELDS: tuple[str, ...] = ("order_by_key", "order_by_child", "order_by_value")

DEFAULT_SYNC_INTERVAL = 0.1
DEFAULT_MAX_FETCH_ROUNDS = 32
