"""
Normalization of free-form evaluation names to canonical field keys.

Older grade records store scores under a fixed set of fields (parcial1,
practicas, examenFinal, ...). Instructors type component names freely, so
every name is normalized and looked up in a synonym registry; names that
match nothing fall back to a camelCase key derived from their words.
"""

import logging
import re
import unicodedata
from typing import Dict, Iterable, List, Optional

from .entities import NameMapping
from .exceptions import ValidationError, NotFoundError, DuplicateEntityError

logger = logging.getLogger(__name__)


# Normalized name -> canonical key
DEFAULT_SYNONYMS: Dict[str, str] = {
    'parcial 1': 'parcial1',
    'parcial 2': 'parcial2',
    'parcial1': 'parcial1',
    'parcial2': 'parcial2',
    'practicas': 'practicas',
    'practica': 'practicas',
    'medio curso': 'medioCurso',
    'mediocurso': 'medioCurso',
    'examen final': 'examenFinal',
    'examenfinal': 'examenFinal',
    'final': 'examenFinal',
    'actitud': 'actitud',
    'trabajos': 'trabajos',
    'trabajo': 'trabajos',
    'trabajo encargado': 'trabajoEncargado',
    'trabajoencargado': 'trabajoEncargado',
}

# Stems that accept a trailing number ("Parcial 3" -> parcial3)
NUMBERED_STEMS: Dict[str, str] = {
    'parcial': 'parcial',
    'examen parcial': 'parcial',
    'practica': 'practica',
    'trabajo': 'trabajo',
}

_NUMBERED = re.compile(r'^(?P<stem>[a-z ]+?)\s*(?P<number>\d+)$')
_WORDS = re.compile(r'[a-z0-9]+')


def normalize_name(name: str) -> str:
    """Lowercase, strip diacritics, trim and collapse whitespace."""
    decomposed = unicodedata.normalize('NFD', name.lower())
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return ' '.join(stripped.split())


def derive_key(name: str) -> str:
    """camelCase key built from the alphanumeric words of a name."""
    words = _WORDS.findall(normalize_name(name))
    if not words:
        raise ValidationError(
            f"Cannot derive a field key from {name!r}",
            error_code="INVALID_NAME",
            details={'name': name}
        )
    return words[0] + ''.join(word[:1].upper() + word[1:] for word in words[1:])


class NameMapper:
    """Registry-backed mapping of free-form names to canonical keys.

    In strict mode an unknown name is an error unless it was registered or
    declared custom first, so two differently named components cannot end up
    sharing a slugged key without anyone noticing.
    """

    def __init__(self, extra_mappings: Optional[Dict[str, str]] = None, strict: bool = False):
        self._strict = strict
        self._registry: Dict[str, NameMapping] = {
            name: NameMapping(name, key) for name, key in DEFAULT_SYNONYMS.items()
        }
        for name, key in (extra_mappings or {}).items():
            self.register(name, key)

    @property
    def strict(self) -> bool:
        return self._strict

    def map_to_field(self, freeform_name: str) -> str:
        """Map a component name to its canonical key."""
        normalized = normalize_name(freeform_name)
        mapping = self._registry.get(normalized)
        if mapping is not None:
            return mapping.canonical_key

        match = _NUMBERED.match(normalized)
        if match and match.group('stem') in NUMBERED_STEMS:
            return f"{NUMBERED_STEMS[match.group('stem')]}{int(match.group('number'))}"

        if self._strict:
            raise NotFoundError(
                f"No canonical field registered for {freeform_name!r}",
                error_code="UNMAPPED_NAME",
                details={'name': freeform_name}
            )
        return derive_key(freeform_name)

    def register(self, freeform_name: str, canonical_key: str, custom: bool = False) -> NameMapping:
        """Add a synonym; an existing entry can't be re-pointed to another key."""
        normalized = normalize_name(freeform_name)
        if not normalized or not canonical_key:
            raise ValidationError("Name and canonical key must not be empty", error_code="INVALID_NAME")
        existing = self._registry.get(normalized)
        if existing is not None:
            if existing.canonical_key != canonical_key:
                raise DuplicateEntityError(
                    f"{freeform_name!r} is already mapped to {existing.canonical_key!r}",
                    details={'name': freeform_name, 'canonical_key': existing.canonical_key}
                )
            return existing
        mapping = NameMapping(normalized, canonical_key, custom)
        self._registry[normalized] = mapping
        logger.debug("Registered name mapping %r -> %r", normalized, canonical_key)
        return mapping

    def declare_custom(self, freeform_name: str) -> NameMapping:
        """Accept a name outside the synonym table under its derived key."""
        return self.register(freeform_name, derive_key(freeform_name), custom=True)

    def lookup(self, freeform_name: str) -> Optional[NameMapping]:
        """Registry entry for a name, if one exists."""
        return self._registry.get(normalize_name(freeform_name))

    def mappings(self) -> List[NameMapping]:
        return list(self._registry.values())

    def find_collisions(self, names: Iterable[str]) -> Dict[str, List[str]]:
        """Keys that more than one distinct name maps to."""
        by_key: Dict[str, List[str]] = {}
        seen = set()
        for name in names:
            normalized = normalize_name(name)
            if normalized in seen:
                continue
            seen.add(normalized)
            by_key.setdefault(self.map_to_field(name), []).append(name)
        return {key: group for key, group in by_key.items() if len(group) > 1}
