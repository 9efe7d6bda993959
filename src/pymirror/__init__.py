"""pymirror - Mirror subtrees of a realtime database into a reducer-driven state store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pymirror")
except PackageNotFoundError:
    __version__ = "0+local"
from pymirror.config import MirrorConfig, PersistConfig, default_get_mirror_state
from pymirror.exceptions import (
    ConvergenceError,
    MirrorConfigError,
    MirrorError,
    PathSpecError,
    SubscriptionContractError,
)
from pymirror.ingestion.cache import KeyValueStorage, MemoryKeyValueStorage
from pymirror.mirror import FirebaseMirror
from pymirror.paths import (
    PathSpec,
    PathSpecLike,
    PlainPath,
    QueryFilter,
    QueryPath,
    coerce_path_spec,
    normalize_path,
    path_spec_key,
)
from pymirror.state.actions import (
    ReceivedValue,
    ReceiveSnapshots,
    Rehydrate,
    SubscribeToValues,
    UnsubscribeFromValues,
)
from pymirror.state.reducer import MirrorReducer, MirrorState, SubscriptionInfo
from pymirror.state.store import StateStore, combine_reducers
from pymirror.storage import DictMirrorStorage, MirrorStorage
from pymirror.subscription import Subscription

__all__ = [
    "__version__",
    "ConvergenceError",
    "DictMirrorStorage",
    "FirebaseMirror",
    "KeyValueStorage",
    "MemoryKeyValueStorage",
    "MirrorConfig",
    "MirrorConfigError",
    "MirrorError",
    "MirrorReducer",
    "MirrorState",
    "MirrorStorage",
    "PathSpec",
    "PathSpecError",
    "PathSpecLike",
    "PersistConfig",
    "PlainPath",
    "QueryFilter",
    "QueryPath",
    "ReceiveSnapshots",
    "ReceivedValue",
    "Rehydrate",
    "StateStore",
    "SubscribeToValues",
    "Subscription",
    "SubscriptionContractError",
    "SubscriptionInfo",
    "UnsubscribeFromValues",
    "coerce_path_spec",
    "combine_reducers",
    "default_get_mirror_state",
    "normalize_path",
    "path_spec_key",
]
