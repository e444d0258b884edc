"""Domain layer for the vCard platform.

Plan entitlement rules and the custom domain state machine live here.
It is intentionally framework-agnostic: domain logic should be testable without Flask.
"""
