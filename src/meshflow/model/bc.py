"""
Boundary Conditions Data Model
==============================
Defines the conditions a user attaches to boundary edges of the triangulated
mesh before the finite element solve (fixed value or prescribed flux).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Dict, Any
from abc import ABC, abstractmethod


class ConditionType(StrEnum):
    FIXED_VALUE = "fixed-value"
    FLUX = "flux"


@dataclass(frozen=True)
class EdgeCondition(ABC):
    value: float = 0.0

    @property
    @abstractmethod
    def type(self) -> ConditionType:
        pass

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "value": self.value}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> EdgeCondition:
        t = data.get("type")
        value = float(data.get("value", 0.0))
        if t == ConditionType.FIXED_VALUE: return FixedValueCondition(value=value)
        if t == ConditionType.FLUX: return FluxCondition(value=value)
        raise ValueError(f"Unknown edge condition type '{t}'.")


@dataclass(frozen=True)
class FixedValueCondition(EdgeCondition):
    """Dirichlet condition: the unknown equals `value` on both edge nodes."""

    @property
    def type(self) -> ConditionType: return ConditionType.FIXED_VALUE


@dataclass(frozen=True)
class FluxCondition(EdgeCondition):
    """Neumann condition: `value` per unit length flows into the domain."""

    @property
    def type(self) -> ConditionType: return ConditionType.FLUX


def make_condition(kind: ConditionType | str, value: float) -> EdgeCondition:
    """Factory used by the presentation layer (combo box text -> condition)."""
    return EdgeCondition.from_dict({"type": ConditionType(kind), "value": value})
