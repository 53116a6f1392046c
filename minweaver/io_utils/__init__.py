"""
MinWeaver v0.1.0

I/O utilities: KFF-style section writer and reader.

Author: MinWeaver Development Team
License: MIT
"""

from .kff import DEFAULT_ENCODING, KffWriter, KffReader, KffSection, KffBlock

__all__ = ["DEFAULT_ENCODING", "KffWriter", "KffReader", "KffSection", "KffBlock"]
