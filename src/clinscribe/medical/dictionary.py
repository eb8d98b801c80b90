"""
Medication dictionary and clinical protocol reference data.

Both are read-only collaborators: the dictionary is the sole spelling authority
for the cleanup and prescription stages, and the protocols are supplied to the
prescription stage for cross-checking only.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Union
import yaml
from pydantic import BaseModel, ConfigDict, Field

from ..utils.script import latin_ratio

logger = logging.getLogger(__name__)


def same_script(a: str, b: str) -> bool:
    """True when both terms are Latin-script or both are written in another script."""
    return (latin_ratio(a) > 0.5) == (latin_ratio(b) > 0.5)


class MedicalDictionary:
    """Mapping of medical term / drug variants to canonical names."""

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        self._canonical: Dict[str, str] = {}
        for variant, canonical in (entries or {}).items():
            if variant and canonical:
                self._canonical[variant.strip().casefold()] = canonical.strip()

        # Canonical forms always resolve to themselves
        for canonical in set(self._canonical.values()):
            key = canonical.casefold()
            existing = self._canonical.get(key)
            if existing is not None and existing != canonical:
                logger.warning(f"Dictionary conflict: '{canonical}' is also a variant of '{existing}'")
            self._canonical[key] = canonical

        self._pattern = self._compile(self._canonical.keys())

    @staticmethod
    def _compile(terms) -> Optional[re.Pattern]:
        ordered = sorted(terms, key=len, reverse=True)
        if not ordered:
            return None
        alternation = "|".join(re.escape(t) for t in ordered)
        return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MedicalDictionary":
        """
        Load a dictionary from YAML or JSON.

        Accepts either ``{variant: canonical}`` or ``{canonical: [variants]}``.
        """
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        entries: Dict[str, str] = {}
        for key, value in data.items():
            if isinstance(value, list):
                entries[key] = key
                for variant in value:
                    entries[str(variant)] = key
            else:
                entries[key] = str(value)

        dictionary = cls(entries)
        logger.info(f"Loaded medical dictionary from {path}: {len(dictionary.canonical_names)} canonical terms")
        return dictionary

    def __len__(self) -> int:
        return len(self._canonical)

    @property
    def canonical_names(self) -> Set[str]:
        return set(self._canonical.values())

    def canonical(self, term: str) -> Optional[str]:
        return self._canonical.get(term.strip().casefold())

    def variants(self, canonical: str) -> Set[str]:
        """All known spellings (lower-cased) that resolve to ``canonical``."""
        target = self.canonical(canonical) or canonical.strip()
        found = {k for k, v in self._canonical.items() if v == target}
        found.add(target.casefold())
        return found

    def mentions(self, text: str) -> Set[str]:
        """Canonical names of every dictionary term found in ``text``."""
        if self._pattern is None or not text:
            return set()
        return {self._canonical[m.group(0).casefold()] for m in self._pattern.finditer(text)}

    def find_mention(self, name: str, text: str) -> Optional[str]:
        """First spelling of ``name`` (or any dictionary variant of it) as written in ``text``."""
        pattern = self._compile(self.variants(name))
        match = pattern.search(text or "") if pattern else None
        return match.group(0) if match else None

    def is_mentioned(self, name: str, text: str) -> bool:
        """True if ``name`` or any dictionary variant of it appears in ``text``."""
        return self.find_mention(name, text) is not None

    def respell(self, term: str) -> str:
        """Canonical form of ``term`` if it is written in the same script, else ``term`` unchanged."""
        canonical = self.canonical(term)
        if canonical is None or not same_script(canonical, term):
            return term
        return canonical

    def correct_spelling(self, text: str) -> str:
        """
        Rewrite known variants in place with their canonical form.

        A variant in another script than its canonical form (``पैरासिटामोल``
        for ``Paracetamol``) is left as written.
        """
        if self._pattern is None or not text:
            return text
        return self._pattern.sub(lambda m: self.respell(m.group(0)), text)

    def to_context(self) -> str:
        """Compact JSON rendering for prompts."""
        return json.dumps(self._canonical, ensure_ascii=False, sort_keys=True)


class ClinicalProtocol(BaseModel):
    """A clinical protocol reference entry."""

    model_config = ConfigDict(extra="allow", frozen=True)

    condition: str
    medications: List[str] = Field(default_factory=list)
    notes: str = ""


def load_protocols(path: Union[str, Path]) -> List[ClinicalProtocol]:
    """Load clinical protocols from a YAML or JSON list."""
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or []

    protocols = [ClinicalProtocol(**entry) for entry in data]
    logger.info(f"Loaded {len(protocols)} clinical protocols from {path}")
    return protocols


def protocols_context(protocols: List[ClinicalProtocol]) -> str:
    payload: List[Dict[str, Any]] = [p.model_dump() for p in protocols]
    return json.dumps(payload, ensure_ascii=False)
