"""Origin descriptor — how a deployment was derived, synchronized with its origin file.

This package provides:
- OriginDescriptor: parsed cache plus the mutation API that keeps the document in sync
- models: the structured cache (package requests, overrides, initramfs config)
- OriginStore: loading and atomically saving origin files
"""

from deployorigin.origin.descriptor import OriginDescriptor
from deployorigin.origin.models import CustomOrigin, OverrideKind

__all__ = ["CustomOrigin", "OriginDescriptor", "OverrideKind"]
