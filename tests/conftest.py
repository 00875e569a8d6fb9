"""
Shared fixtures for p2index tests.

Fragments below are shaped like the ones Tycho publishes: an artifacts
fragment with its processing instruction but no <repository> root, and a
metadata fragment with neither.
"""

import pytest
from pathlib import Path

from p2index.infra import LocalStore, LockRegistry
from p2index.services import (
    AggregationConfigStore,
    AggregationEngine,
    RepositoryConfiguration,
    RepositoryRegistry,
)

FIXED_MILLIS = 1700000000000

MODULE = "org/acme/core/1.0.0/core-1.0.0"
ARTIFACTS_PATH = f"{MODULE}-p2artifacts.xml"
METADATA_PATH = f"{MODULE}-p2metadata.xml"
JAR_PATH = f"{MODULE}.jar"
JAR_BYTES = b"PK\x03\x04 core bundle"

ARTIFACTS_FRAGMENT = """<?xml version='1.0' encoding='UTF-8'?>
<?artifactRepository version='1.1.0'?>
<artifacts size='3'>
  <artifact classifier='osgi.bundle' id='org.acme.core' version='1.0.0'>
    <properties size='1'>
      <property name='download.size' value='1024'/>
    </properties>
  </artifact>
  <artifact classifier='org.eclipse.update.feature' id='org.acme.feature' version='1.0.0'/>
  <artifact classifier='binary' id='org.acme.launcher' version='1.0.0'/>
</artifacts>
"""

METADATA_FRAGMENT = """<?xml version='1.0' encoding='UTF-8'?>
<units size='2'>
  <unit id='org.acme.core' version='1.0.0'>
    <provides size='1'>
      <provided namespace='osgi.bundle' name='org.acme.core' version='1.0.0'/>
    </provides>
  </unit>
  <unit id='org.acme.feature.feature.group' version='1.0.0'/>
</units>
"""

WELL_FORMED_ARTIFACTS = """<?xml version='1.0' encoding='UTF-8'?>
<?artifactRepository version='1.1.0'?>
<repository name='org.acme.other' type='org.eclipse.equinox.p2.artifact.repository.simpleRepository' version='1'>
  <artifacts size='1'>
    <artifact classifier='osgi.bundle' id='org.acme.other' version='2.0.0'/>
  </artifacts>
</repository>
"""


def fixed_clock():
    return FIXED_MILLIS


def artifacts_fragment(bundle_id, version="1.0.0"):
    """An artifacts fragment describing a single bundle."""
    return (
        "<?xml version='1.0' encoding='UTF-8'?>\n"
        "<?artifactRepository version='1.1.0'?>\n"
        "<artifacts size='1'>\n"
        f"  <artifact classifier='osgi.bundle' id='{bundle_id}' version='{version}'/>\n"
        "</artifacts>\n"
    )


@pytest.fixture
def locks():
    """A private lock registry, so tests do not share locks."""
    return LockRegistry()


@pytest.fixture
def repo_dir(tmp_path):
    path = tmp_path / "releases"
    path.mkdir()
    return path


@pytest.fixture
def store(repo_dir, locks):
    return LocalStore("releases", repo_dir, locks=locks)


@pytest.fixture
def configuration():
    return RepositoryConfiguration("releases")


@pytest.fixture
def disabled_engine(store):
    """Engine that knows the store but has aggregation disabled for it."""
    return AggregationEngine(RepositoryRegistry([store]), AggregationConfigStore(), clock=fixed_clock)


@pytest.fixture
def engine(disabled_engine, configuration):
    """Engine with aggregation enabled for the `releases` repository."""
    result = disabled_engine.enable(configuration)
    assert result.success
    return disabled_engine


@pytest.fixture
def publish(store):
    """Write a module's fragments (and jar) into the store."""
    def _publish(module=MODULE, artifacts=ARTIFACTS_FRAGMENT, metadata=METADATA_FRAGMENT, jar=JAR_BYTES):
        paths = {}
        if jar is not None:
            store.put(f"{module}.jar", jar)
            paths['jar'] = f"{module}.jar"
        if artifacts is not None:
            store.put(f"{module}-p2artifacts.xml", artifacts.encode('utf-8'))
            paths['artifacts'] = f"{module}-p2artifacts.xml"
        if metadata is not None:
            store.put(f"{module}-p2metadata.xml", metadata.encode('utf-8'))
            paths['metadata'] = f"{module}-p2metadata.xml"
        return paths
    return _publish


def snapshot(directory: Path):
    """Relative path -> bytes (or link target) of everything under directory."""
    result = {}
    for path in sorted(directory.rglob('*')):
        key = path.relative_to(directory).as_posix()
        if path.is_symlink():
            result[key] = ('link', str(path.readlink()))
        elif path.is_file():
            result[key] = path.read_bytes()
    return result
