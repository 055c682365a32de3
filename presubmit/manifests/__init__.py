"""Fragment collection, normalization and manifest combination."""

from .collector import (
    NUMBERED_YAML_FRAGMENTS,
    YAML_FRAGMENTS,
    FragmentRule,
    collect_fragments,
    rule_for,
)
from .combiner import AUTOGENERATED_NOTICE, ManifestCombiner
from .crd import CRDPostProcessor, clean_crd
from .normalizer import SEPARATOR, normalize_fragment

__all__ = [
    "AUTOGENERATED_NOTICE",
    "CRDPostProcessor",
    "FragmentRule",
    "ManifestCombiner",
    "NUMBERED_YAML_FRAGMENTS",
    "SEPARATOR",
    "YAML_FRAGMENTS",
    "clean_crd",
    "collect_fragments",
    "normalize_fragment",
    "rule_for",
]
