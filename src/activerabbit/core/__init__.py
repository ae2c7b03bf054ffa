from ..version import __version__
from .client import ActiveRabbitClient
from .config import Configuration, RecordTransform
from .ignore_rules import IgnoreClass, IgnoreName, IgnorePattern, IgnoreRule, coerce_ignore_rule

__all__ = [
    "ActiveRabbitClient",
    "Configuration",
    "RecordTransform",
    "IgnoreClass",
    "IgnoreName",
    "IgnorePattern",
    "IgnoreRule",
    "coerce_ignore_rule",
    "__version__",
]
