"""Ignore patterns that exclude layers from tracing.

A pattern is one of:
- Exact: the layer name must equal the string
- Pattern: a regular expression searched in the layer name
- Predicate: a callable receiving the layer name

Patterns are validated when the configuration is built. At match time a
predicate that raises is treated as "not ignored" so a buggy filter can
never break the request it is inspecting.
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fastapi_layer_tracing.core.layers import LayerType
from fastapi_layer_tracing.exceptions import IgnorePatternError

if TYPE_CHECKING:
    from fastapi_layer_tracing.config import InstrumentationConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Exact:
    """Matches a layer name equal to value."""

    value: str


@dataclass(frozen=True)
class Pattern:
    """Matches a layer name containing a match for regex."""

    regex: re.Pattern[str]


@dataclass(frozen=True)
class Predicate:
    """Matches a layer name for which func returns a truthy value."""

    func: Callable[[str], Any]


IgnoreMatcher = Exact | Pattern | Predicate


def compile_matcher(pattern: Any) -> IgnoreMatcher:
    """Build an IgnoreMatcher from a user-supplied ignore pattern.

    Args:
        pattern: A string, a compiled regular expression, a callable,
            or an already built matcher.

    Returns:
        The matcher for the pattern.

    Raises:
        IgnorePatternError: If the pattern has an unsupported datatype.
    """
    if isinstance(pattern, (Exact, Pattern, Predicate)):
        return pattern
    if isinstance(pattern, str):
        return Exact(pattern)
    if isinstance(pattern, re.Pattern):
        return Pattern(pattern)
    if callable(pattern):
        return Predicate(pattern)
    raise IgnorePatternError(
        f"Pattern is in unsupported datatype: {type(pattern).__name__}"
    )


def compile_matchers(patterns: Iterable[Any] | None) -> tuple[IgnoreMatcher, ...]:
    """Build matchers for a sequence of ignore patterns, keeping their order."""
    if patterns is None:
        return ()
    if isinstance(patterns, (str, re.Pattern)) or callable(patterns):
        raise IgnorePatternError(
            f"ignore_layers must be a list of patterns, got {type(patterns).__name__}"
        )
    return tuple(compile_matcher(p) for p in patterns)


def satisfies_pattern(name: str, matcher: IgnoreMatcher) -> bool:
    """Check whether a layer name matches an ignore pattern.

    Returns:
        True on a match. A predicate that raises counts as no match.
    """
    match matcher:
        case Exact(value=value):
            return value == name
        case Pattern(regex=regex):
            return regex.search(name) is not None
        case Predicate(func=func):
            try:
                return bool(func(name))
            except Exception:
                logger.debug(
                    "Ignore predicate raised, layer stays traced",
                    extra={"layer_name": name},
                    exc_info=True,
                )
                return False
        case _:
            raise IgnorePatternError(
                f"Pattern is in unsupported datatype: {type(matcher).__name__}"
            )


def is_layer_ignored(
    name: str,
    layer_type: LayerType,
    config: "InstrumentationConfig | None" = None,
) -> bool:
    """Check whether a layer is ignored by configuration.

    Type-based exclusion wins over name patterns. Exceptions raised by
    user predicates are not re-raised.

    Args:
        name: The layer's display name.
        layer_type: The layer's type.
        config: Instrumentation configuration, if any.

    Returns:
        True if the layer must not be traced.
    """
    if config is None:
        return False
    if layer_type in config.ignore_layers_type:
        return True
    if not config.ignore_layers:
        return False

    for matcher in config.ignore_layers:
        if satisfies_pattern(name, matcher):
            return True
    return False
