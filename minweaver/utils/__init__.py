"""
Utilities module for MinWeaver.

This module provides the core utilities of the conversion:
- 2-bit sequence codec (encode, decode, reverse complement, canonical form)
- Minimizer selection and ambiguity detection

The conversion pipeline lives in utils.pipeline and is imported from there.
"""

from .sequence_utils import (
    encode,
    decode,
    complement,
    reverse,
    reverse_complement,
    canonical,
)
from .minimizer import Minimizer, get_minimizer, is_ambiguous

__all__ = [
    # Sequence codec
    "encode",
    "decode",
    "complement",
    "reverse",
    "reverse_complement",
    "canonical",
    # Minimizers
    "Minimizer",
    "get_minimizer",
    "is_ambiguous",
]
