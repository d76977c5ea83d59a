"""Typed parameter space for configuration search.

Philosophy:
- A SearchSpace is the single source of truth for each parameter's kind
- Sampling is independent per parameter (no joint distribution)
- Configurations are plain dicts keyed by parameter name

Public API:
    ParameterType: Kind of a tunable parameter
    ParameterSpec: Immutable declaration of one parameter's domain
    SearchSpace: Ordered mapping of name -> ParameterSpec with sampling
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ParameterType(str, Enum):
    """Kind of a tunable parameter."""

    CONTINUOUS = "continuous"
    INTEGER = "integer"
    DISCRETE = "discrete"
    CATEGORICAL = "categorical"


@dataclass(frozen=True)
class ParameterSpec:
    """Domain of one parameter.

    Numeric kinds use low/high (inclusive); discrete and categorical kinds
    use values.
    """

    kind: ParameterType
    low: float = 0.0
    high: float = 0.0
    values: tuple[Any, ...] = ()

    @property
    def is_numeric(self) -> bool:
        return self.kind in (ParameterType.CONTINUOUS, ParameterType.INTEGER)

    def sample(self, rng: random.Random) -> Any:
        if self.kind == ParameterType.CONTINUOUS:
            return rng.uniform(self.low, self.high)
        if self.kind == ParameterType.INTEGER:
            return rng.randint(int(self.low), int(self.high))
        return rng.choice(self.values)


class SearchSpace:
    """Ordered collection of named parameters.

    Adding a parameter under an existing name replaces the old declaration.

    Example::

        space = SearchSpace()
        space.add_continuous("temperature", 0.0, 1.0)
        space.add_integer("max_tokens", 100, 1000)
        space.add_categorical("model", ["small", "large"])
        config = space.sample()
    """

    def __init__(self) -> None:
        self._params: dict[str, ParameterSpec] = {}

    def add_continuous(self, name: str, low: float, high: float) -> SearchSpace:
        if low > high:
            raise ValueError(f"{name}: low ({low}) must be <= high ({high})")
        self._params[name] = ParameterSpec(ParameterType.CONTINUOUS, float(low), float(high))
        return self

    def add_integer(self, name: str, low: int, high: int) -> SearchSpace:
        if low > high:
            raise ValueError(f"{name}: low ({low}) must be <= high ({high})")
        self._params[name] = ParameterSpec(ParameterType.INTEGER, int(low), int(high))
        return self

    def add_discrete(self, name: str, values: Sequence[Any]) -> SearchSpace:
        if not values:
            raise ValueError(f"{name}: values must be non-empty")
        self._params[name] = ParameterSpec(ParameterType.DISCRETE, values=tuple(values))
        return self

    def add_categorical(self, name: str, values: Sequence[str]) -> SearchSpace:
        if not values:
            raise ValueError(f"{name}: values must be non-empty")
        self._params[name] = ParameterSpec(ParameterType.CATEGORICAL, values=tuple(values))
        return self

    def get(self, name: str) -> ParameterSpec | None:
        return self._params.get(name)

    def names(self) -> list[str]:
        return list(self._params)

    def items(self) -> list[tuple[str, ParameterSpec]]:
        return list(self._params.items())

    def sample(self, rng: random.Random | None = None) -> dict[str, Any]:
        """Draw one value per parameter. An empty space yields ``{}``."""
        rng = rng or random.Random()
        return {name: spec.sample(rng) for name, spec in self._params.items()}

    def config_similarity(self, config1: dict[str, Any], config2: dict[str, Any]) -> float:
        """Average per-parameter similarity in [0, 1].

        Numeric parameters score ``1 - |v1 - v2| / range``; discrete and
        categorical ones score 1.0 only on equality. Parameters missing from
        either configuration are skipped; no overlap at all scores 0.0.
        """
        total = 0.0
        count = 0
        for name, spec in self._params.items():
            if name not in config1 or name not in config2:
                continue
            v1 = config1[name]
            v2 = config2[name]
            if spec.is_numeric:
                span = spec.high - spec.low
                if span == 0:
                    total += 1.0 if v1 == v2 else 0.0
                else:
                    total += max(0.0, 1.0 - abs(float(v1) - float(v2)) / span)
            else:
                total += 1.0 if v1 == v2 else 0.0
            count += 1
        if count == 0:
            return 0.0
        return total / count

    def __len__(self) -> int:
        return len(self._params)

    def __contains__(self, name: object) -> bool:
        return name in self._params

    def __repr__(self) -> str:
        return f"SearchSpace({', '.join(self._params)})"


__all__ = ["ParameterType", "ParameterSpec", "SearchSpace"]
