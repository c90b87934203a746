"""First-match resolution of conditional (``$if``-guarded) field variants.

A field such as an association group, a parameter or a parameter option may
be authored as a single object or as an ordered list of objects. In a list,
every entry except the last must carry an ``$if`` condition. The first entry
whose condition holds for the device identity wins; the rest are discarded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from devconf.core.errors import ConfigValidationError, PredicateEvaluationError
from devconf.core.logic import PredicateEvaluator, evaluate, identity_context
from devconf.core.model import DeviceIdentity

GUARD_KEY = "$if"
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Variant:
    condition: str | None
    definition: dict[str, Any]


def split_variants(raw: Any, *, source: str, field: str) -> list[Variant]:
    """Normalize a single definition or a list of definitions into variants.

    Structural problems are reported before any condition is evaluated.
    """
    if isinstance(raw, dict):
        definitions = [raw]
    elif isinstance(raw, list) and raw and all(isinstance(item, dict) for item in raw):
        definitions = raw
    else:
        raise ConfigValidationError(
            source,
            "Every entry must either be an object or a non-empty array of objects",
            field=field,
        )

    for position, definition in enumerate(definitions[:-1]):
        if GUARD_KEY not in definition:
            raise ConfigValidationError(
                source,
                "When there are multiple definitions, every definition except the last one "
                f'MUST have an "{GUARD_KEY}" condition (definition {position} has none)',
                field=field,
            )

    variants: list[Variant] = []
    for definition in definitions:
        condition = definition.get(GUARD_KEY)
        if GUARD_KEY in definition and not isinstance(condition, str):
            raise ConfigValidationError(
                source,
                f'"{GUARD_KEY}" must be a string',
                field=field,
            )
        body = {key: value for key, value in definition.items() if key != GUARD_KEY}
        variants.append(Variant(condition=condition, definition=body))
    return variants


class VariantResolver:
    """Picks the effective variant of a field for one device identity.

    Without an identity, only unconditional variants match.
    """

    def __init__(
        self,
        source: str,
        identity: DeviceIdentity | None = None,
        evaluator: PredicateEvaluator | None = None,
    ) -> None:
        self.source = source
        self.identity = identity
        self._evaluate = evaluator or evaluate
        self._context = identity_context(identity) if identity is not None else None

    def applies(self, variant: Variant, *, field: str) -> bool:
        if variant.condition is None:
            return True
        if self._context is None:
            return False
        try:
            return bool(self._evaluate(variant.condition, self._context))
        except Exception as exc:
            raise PredicateEvaluationError(
                self.source,
                variant.condition,
                str(exc) or type(exc).__name__,
                field=field,
            ) from exc

    def resolve(self, raw: Any, *, field: str) -> dict[str, Any] | None:
        """Return the first applicable definition of ``raw``, or ``None``."""
        for variant in split_variants(raw, source=self.source, field=field):
            if self.applies(variant, field=field):
                return variant.definition
        LOGGER.debug("%s: no variant of %s applies", self.source, field)
        return None
