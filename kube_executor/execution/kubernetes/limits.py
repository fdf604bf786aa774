"""
Resource limit resolution for build, service and helper containers.
"""

import re
from typing import Any, Dict

from kubernetes.utils import parse_quantity
from pydantic import BaseModel, ConfigDict, Field

from kube_executor.core.exceptions import ConfigurationError

# <sign><digits>[.<digits>][<binarySI>|<decimalSI>|<decimalExponent>]
QUANTITY_PATTERN = re.compile(
    r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([KMGTPE]i|[numkMGTPE]|[eE][+-]?[0-9]+)?"
)


class ResourceLimits(BaseModel):
    """Container resource limits keyed by resource name ("cpu", "memory")."""

    model_config = ConfigDict(frozen=True)

    quantities: Dict[str, str] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.quantities

    def to_api(self) -> Dict[str, str]:
        return dict(self.quantities)


def _validate_quantity(value: Any, resource: str, role: str) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(
            f"invalid {role} {resource} limit {value!r}: expected a quantity string"
        )

    try:
        quantity = parse_quantity(value)
    except (ValueError, ArithmeticError) as e:
        raise ConfigurationError(
            f"invalid {role} {resource} limit {value!r}: {e}"
        ) from e

    # parse_quantity delegates to Decimal, which also takes NaN, Infinity,
    # underscores and padding
    if not QUANTITY_PATTERN.fullmatch(value) or not quantity.is_finite():
        raise ConfigurationError(
            f"invalid {role} {resource} limit {value!r}: not a Kubernetes quantity"
        )
    if quantity < 0:
        raise ConfigurationError(
            f"invalid {role} {resource} limit {value!r}: must not be negative"
        )

    return value


def resolve_limits(cpu: Any, memory: Any, role: str) -> ResourceLimits:
    """
    Turn CPU/memory quantity strings into a limit set for one container role.

    Args:
        cpu: CPU quantity (e.g. "500m", "2"), empty for no CPU limit
        memory: Memory quantity (e.g. "512Mi"), empty for no memory limit
        role: Container role named in errors ("build", "service", "helper")

    Returns:
        ResourceLimits with only the configured dimensions set

    Raises:
        ConfigurationError: If either quantity cannot be parsed
    """
    quantities = {}

    if cpu not in ("", None):
        quantities["cpu"] = _validate_quantity(cpu, "cpu", role)

    if memory not in ("", None):
        quantities["memory"] = _validate_quantity(memory, "memory", role)

    return ResourceLimits(quantities=quantities)
