"""
Cache key scheme.

Keys are a family prefix followed by the identity tuple, joined with ``::``:

    category::<id>
    cart::<user_id>::<product_id>::<variant_id>

Unset (``None``) components render as ``*``; an empty string is a concrete
component, and an empty scope is rejected. In a storage key that is a literal
character (a cart line without a variant lives at ``cart::U::P::*``); in an
enumeration pattern it is the glob wildcard, and concrete components are
escaped so a scope only ever matches its own keys.
"""

from typing import Any, Callable, Optional, Sequence, Tuple, Union

WILDCARD = "*"
SEPARATOR = "::"

Parts = Tuple[Optional[str], ...]
Scope = Union[None, str, Sequence[Optional[str]]]

_GLOB_ESCAPES = {"*": "[*]", "?": "[?]", "[": "[[]", "\\": "\\\\"}


def escape_glob(value: str) -> str:
    """Escape redis glob metacharacters so ``value`` only matches itself."""
    return "".join(_GLOB_ESCAPES.get(ch, ch) for ch in value)


def _render(part: Any) -> Optional[str]:
    return None if part is None else str(part)


class KeyScheme:
    """Builds storage keys and enumeration patterns for one cache family."""

    def __init__(
        self,
        prefix: str,
        fields: Sequence[str] = ("id",),
        identify: Optional[Callable[[Any], Sequence[Any]]] = None,
        separator: str = SEPARATOR,
    ):
        self.prefix = prefix
        self.fields = tuple(fields)
        self.separator = separator
        self._identify = identify or (lambda entity: (entity.id,))

    def _normalize(self, parts: Union[str, Sequence[Any]]) -> Parts:
        if isinstance(parts, str) or not isinstance(parts, (tuple, list)):
            parts = (parts,)
        if len(parts) > len(self.fields):
            raise ValueError(
                f"{self.prefix} keys take {len(self.fields)} components, got {len(parts)}"
            )
        rendered = tuple(_render(p) for p in parts)
        return rendered + (None,) * (len(self.fields) - len(rendered))

    def build(self, parts: Union[str, Sequence[Any]]) -> str:
        """Storage key for an identity tuple."""
        rendered = self._normalize(parts)
        return self.separator.join(
            [self.prefix] + [p if p is not None else WILDCARD for p in rendered]
        )

    def pattern(self, parts: Union[str, Sequence[Any]] = ()) -> str:
        """Enumeration pattern; unset components match anything."""
        rendered = self._normalize(parts)
        return self.separator.join(
            [escape_glob(self.prefix)]
            + [escape_glob(p) if p is not None else WILDCARD for p in rendered]
        )

    def scope_parts(self, scope: Scope) -> Parts:
        """Left-align a scope against the key fields, padding with ``None``."""
        if scope is None:
            return (None,) * len(self.fields)
        parts = self._normalize(scope)
        if "" in parts:
            raise ValueError(f"{self.prefix} scope components must not be empty")
        return parts

    def for_entity(self, entity: Any) -> str:
        return self.build(tuple(self._identify(entity)))

