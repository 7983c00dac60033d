"""deepsignal: deep-observing reactive signals for Python."""

from importlib.metadata import version as _version

__version__ = _version("deepsignal")

from deepsignal._tracking import drain as flush, get_pending_count, set_scheduler
from deepsignal.exceptions import DeepSignalError, NormalizationDepthError
from deepsignal.interception import Hooks, IdentityCache, Wrapper, is_wrapper, unwrap, wrap
from deepsignal.normalize import normalize, register_opaque_type, set_max_depth
from deepsignal.signal import Signal, create_signal
from deepsignal.effect import Effect, run_effect
from deepsignal.derive import Derived, derive
from deepsignal.action import action, transaction

__all__ = [
    "Signal",
    "create_signal",
    "Effect",
    "run_effect",
    "derive",
    "Derived",
    "action",
    "transaction",
    "flush",
    "get_pending_count",
    "set_scheduler",
    "Hooks",
    "IdentityCache",
    "Wrapper",
    "wrap",
    "is_wrapper",
    "unwrap",
    "normalize",
    "register_opaque_type",
    "set_max_depth",
    "DeepSignalError",
    "NormalizationDepthError",
]
