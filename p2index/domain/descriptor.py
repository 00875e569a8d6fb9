"""
Descriptor domain objects for p2index.

Names the two descriptor kinds, the artifact entries a fragment contributes,
and the layout of the aggregate index inside a repository. Pure values with
no I/O.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, Any, Optional

ARTIFACTS_XML = 'artifacts.xml'
CONTENT_XML = 'content.xml'

DEFAULT_INDEX_ROOT = '.meta/p2'
DEFAULT_ARTIFACTS_SUFFIX = '-p2artifacts.xml'
DEFAULT_METADATA_SUFFIX = '-p2metadata.xml'
DEFAULT_ARTIFACT_EXTENSION = '.jar'

HIDDEN_MARKER = '.'

# p2 classifiers (and their short aliases) that get a link in the index
CLASSIFIER_DIRECTORIES = {
    'osgi.bundle': 'plugins',
    'bundle': 'plugins',
    'org.eclipse.update.feature': 'features',
    'feature': 'features',
}


class DescriptorKind(Enum):
    """The two descriptor collections making up an aggregate index."""
    ARTIFACTS = "artifacts"
    METADATA = "metadata"

    @property
    def index_filename(self) -> str:
        return ARTIFACTS_XML if self is DescriptorKind.ARTIFACTS else CONTENT_XML


@dataclass(frozen=True)
class InstallableArtifact:
    """One artifact described by an artifacts fragment."""
    id: str
    version: str
    classifier: str

    @property
    def subdirectory(self) -> Optional[str]:
        """Index subdirectory the artifact is linked from, if any."""
        return CLASSIFIER_DIRECTORIES.get(self.classifier)

    @property
    def link_name(self) -> str:
        return f"{self.id}_{self.version}{DEFAULT_ARTIFACT_EXTENSION}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'version': self.version,
            'classifier': self.classifier,
        }


@dataclass(frozen=True)
class IndexLayout:
    """
    Where the aggregate index lives inside a repository.

    All paths are repository-relative POSIX strings.

    Example:
        layout = IndexLayout(".meta/p2")
        layout.path_for(DescriptorKind.ARTIFACTS)   # ".meta/p2/artifacts.xml"
        layout.link_path(artifact)                  # ".meta/p2/plugins/x_1.0.0.jar"
    """
    root: str = DEFAULT_INDEX_ROOT

    def __post_init__(self):
        object.__setattr__(self, 'root', normalize_path(self.root))

    @property
    def artifacts_path(self) -> str:
        return self.path_for(DescriptorKind.ARTIFACTS)

    @property
    def content_path(self) -> str:
        return self.path_for(DescriptorKind.METADATA)

    def path_for(self, kind: DescriptorKind) -> str:
        return str(PurePosixPath(self.root) / kind.index_filename)

    def link_path(self, artifact: InstallableArtifact) -> Optional[str]:
        """Link path for an artifact, or None when its classifier is not linked."""
        subdirectory = artifact.subdirectory
        if subdirectory is None:
            return None
        return str(PurePosixPath(self.root) / subdirectory / artifact.link_name)


def normalize_path(path: str) -> str:
    """
    Normalize a store path to a relative POSIX path.

    Examples:
        "/.meta/p2/" -> ".meta/p2"
        "a//b/./c"   -> "a/b/c"
    """
    parts = [p for p in str(path).replace('\\', '/').split('/') if p and p != '.']
    if '..' in parts:
        raise ValueError(f"Store paths may not leave the repository: {path}")
    return '/'.join(parts)


def is_hidden(path: str) -> bool:
    """True when any component of the path starts with the hidden marker."""
    return any(part.startswith(HIDDEN_MARKER) for part in PurePosixPath(normalize_path(path)).parts)
