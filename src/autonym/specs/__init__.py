"""
Resource declarations.

Immutable configuration models and the policy expression tree, built once
from a raw declaration by ``normalize_config``.
"""
