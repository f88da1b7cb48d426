"""
Guardrails module for enforcing safety checks on pipeline runs.
Includes tool allowlisting, call budgets and address integrity checks.
"""

from chainscope.guardrails.enforcement import (
    GuardrailEnforcer,
    GuardrailViolation,
    validate_query_input,
)

__all__ = ["GuardrailEnforcer", "GuardrailViolation", "validate_query_input"]
