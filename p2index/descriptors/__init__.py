"""
Descriptor handling for p2index.

- header: repair of fragments published without a repository header
- toolkit: merge/remove primitives over artifacts.xml and content.xml
"""

from .header import has_repository_header, repair_lines, repair_fragment, prepare_fragment
from .toolkit import DescriptorToolkit, ArtifactToolkit, MetadataToolkit

__all__ = [
    'has_repository_header',
    'repair_lines',
    'repair_fragment',
    'prepare_fragment',
    'DescriptorToolkit',
    'ArtifactToolkit',
    'MetadataToolkit',
]
