"""
Autonym runtime.

Schema validation, policy evaluation, the lifecycle runner, the resource
facade and the registry that dispatches operations to resources.
"""
