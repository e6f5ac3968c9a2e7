"""
Autonym - declarative CRUD resources with staged authorization policies.

Declare a resource with a JSON schema, a store and policy expressions per
lifecycle stage; every operation runs through validation, policies and the
store in a fixed order and fails with a single ``AutonymError`` type.
"""

from autonym._version import __version__
from autonym.core.errors import AutonymError, ConfigurationError, ErrorCode
from autonym.runtime.logging import setup_logging
from autonym.runtime.memory_store import InMemoryStore
from autonym.runtime.registry import Reply, ResourceRegistry
from autonym.runtime.resource import Resource
from autonym.specs.expression import all_of, any_of, negate
from autonym.specs.resource import CrudMethod, ResourceConfig, Stage, normalize_config

__all__ = [
    "AutonymError",
    "ConfigurationError",
    "CrudMethod",
    "ErrorCode",
    "InMemoryStore",
    "Reply",
    "Resource",
    "ResourceConfig",
    "ResourceRegistry",
    "Stage",
    "__version__",
    "all_of",
    "any_of",
    "negate",
    "normalize_config",
    "setup_logging",
]
