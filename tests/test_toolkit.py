"""
Tests for the descriptor toolkits.
"""

import itertools
import xml.etree.ElementTree as ET

import pytest

from p2index.descriptors import ArtifactToolkit, MetadataToolkit, prepare_fragment
from p2index.domain import DescriptorKind, InstallableArtifact
from p2index.errors import MalformedFragmentError, StoreIOError

from conftest import ARTIFACTS_FRAGMENT, FIXED_MILLIS, METADATA_FRAGMENT, artifacts_fragment, fixed_clock


def make_fragment_dir(directory, toolkit, raw):
    """Directory holding raw as the toolkit's canonical descriptor."""
    directory.mkdir()
    prepared = prepare_fragment(raw.encode(), toolkit.kind, directory, fixed_clock)
    prepared.replace(directory / toolkit.filename)
    return directory


@pytest.fixture
def artifacts():
    return ArtifactToolkit(fixed_clock)


@pytest.fixture
def metadata():
    return MetadataToolkit(fixed_clock)


@pytest.fixture
def index_dir(tmp_path, artifacts, metadata):
    directory = tmp_path / "index"
    directory.mkdir()
    artifacts.write_empty(directory, "releases")
    metadata.write_empty(directory, "releases")
    return directory


class TestWriteEmpty:
    """Tests for empty descriptors."""

    def test_empty_artifacts(self, index_dir, artifacts):
        """Test an empty artifacts.xml."""
        data = (index_dir / "artifacts.xml").read_bytes()
        root = ET.fromstring(data)

        assert root.tag == 'repository'
        assert root.get('name') == 'releases'
        assert root.get('type') == 'org.eclipse.equinox.p2.artifact.repository.simpleRepository'
        assert root.find('artifacts').get('size') == '0'
        assert len(root.find('mappings').findall('rule')) == 3
        assert artifacts.parse_entries(data) == []

    def test_empty_content(self, index_dir, metadata):
        """Test an empty content.xml."""
        text = (index_dir / "content.xml").read_text(encoding='utf-8')
        assert "<?metadataRepository version='1.1.0'?>" in text
        assert metadata.parse_entries(text.encode()) == []

    def test_timestamp_from_clock(self, index_dir):
        """Test p2.timestamp comes from the injected clock."""
        root = ET.parse(index_dir / "artifacts.xml").getroot()
        timestamps = [p.get('value') for p in root.find('properties') if p.get('name') == 'p2.timestamp']
        assert timestamps == [str(FIXED_MILLIS)]


class TestMerge:
    """Tests for merging fragments."""

    def test_merge_adds_entries(self, tmp_path, index_dir, artifacts):
        """Test every fragment entry lands in the index."""
        fragment = make_fragment_dir(tmp_path / "fragment", artifacts, ARTIFACTS_FRAGMENT)

        assert artifacts.merge(fragment, index_dir) == 3

        data = (index_dir / "artifacts.xml").read_bytes()
        entries = artifacts.parse_entries(data)
        assert {e['id'] for e in entries} == {'org.acme.core', 'org.acme.feature', 'org.acme.launcher'}
        assert ET.fromstring(data).find('artifacts').get('size') == '3'

    def test_entries_sorted_by_key(self, tmp_path, index_dir, artifacts):
        """Test entries are written in key order regardless of merge order."""
        for i, bundle in enumerate(['zeta', 'alpha', 'mid']):
            fragment = make_fragment_dir(tmp_path / f"f{i}", artifacts, artifacts_fragment(bundle))
            artifacts.merge(fragment, index_dir)

        entries = artifacts.parse_entries((index_dir / "artifacts.xml").read_bytes())
        assert [e['id'] for e in entries] == ['alpha', 'mid', 'zeta']

    def test_merge_twice_is_unchanged(self, tmp_path, index_dir):
        """Test re-merging a fragment neither changes entries nor timestamp."""
        ticking = ArtifactToolkit(itertools.count(1).__next__)
        fragment = make_fragment_dir(tmp_path / "fragment", ticking, ARTIFACTS_FRAGMENT)

        ticking.merge(fragment, index_dir)
        before = (index_dir / "artifacts.xml").read_bytes()

        assert ticking.merge(fragment, index_dir) == 0
        assert (index_dir / "artifacts.xml").read_bytes() == before

    def test_merge_replaces_changed_entry(self, tmp_path, index_dir, metadata):
        """Test an entry with the same key but new content replaces the old one."""
        first = make_fragment_dir(tmp_path / "first", metadata, METADATA_FRAGMENT)
        metadata.merge(first, index_dir)

        changed = METADATA_FRAGMENT.replace(
            "<unit id='org.acme.feature.feature.group' version='1.0.0'/>",
            "<unit id='org.acme.feature.feature.group' version='1.0.0' singleton='false'/>",
        )
        second = make_fragment_dir(tmp_path / "second", metadata, changed)

        assert metadata.merge(second, index_dir) == 1
        root = ET.parse(index_dir / "content.xml").getroot()
        units = root.find('units').findall('unit')
        assert len(units) == 2
        assert [u.get('singleton') for u in units if u.get('id').endswith('group')] == ['false']

    def test_fragment_without_container_is_malformed(self, tmp_path, index_dir, artifacts):
        """Test a fragment lacking <artifacts> raises."""
        raw = (
            "<?xml version='1.0' encoding='UTF-8'?>\n"
            "<?artifactRepository version='1.1.0'?>\n"
            "<nothing/>\n"
        )
        fragment = make_fragment_dir(tmp_path / "fragment", artifacts, raw)
        with pytest.raises(MalformedFragmentError):
            artifacts.merge(fragment, index_dir)

    def test_unparsable_fragment_is_malformed(self, tmp_path, index_dir, artifacts):
        """Test broken XML raises MalformedFragmentError."""
        raw = ARTIFACTS_FRAGMENT.replace("</artifacts>", "</artifact>")
        fragment = make_fragment_dir(tmp_path / "fragment", artifacts, raw)
        with pytest.raises(MalformedFragmentError):
            artifacts.merge(fragment, index_dir)

    def test_entry_without_id_is_malformed(self, tmp_path, index_dir, artifacts):
        """Test an entry that cannot be keyed raises."""
        raw = artifacts_fragment("x").replace("id='x' ", "")
        fragment = make_fragment_dir(tmp_path / "fragment", artifacts, raw)
        with pytest.raises(MalformedFragmentError):
            artifacts.merge(fragment, index_dir)

    def test_corrupt_index_is_store_error(self, tmp_path, index_dir, artifacts):
        """Test a broken destination is not blamed on the fragment."""
        (index_dir / "artifacts.xml").write_text("<repository>", encoding='utf-8')
        fragment = make_fragment_dir(tmp_path / "fragment", artifacts, ARTIFACTS_FRAGMENT)
        with pytest.raises(StoreIOError):
            artifacts.merge(fragment, index_dir)


class TestRemove:
    """Tests for removing fragments."""

    def test_merge_then_remove_restores_entries(self, tmp_path, index_dir, artifacts):
        """Test remove is the inverse of merge."""
        fragment = make_fragment_dir(tmp_path / "fragment", artifacts, ARTIFACTS_FRAGMENT)
        artifacts.merge(fragment, index_dir)

        assert artifacts.remove(fragment, index_dir) == 3
        assert artifacts.parse_entries((index_dir / "artifacts.xml").read_bytes()) == []

    def test_emptied_index_matches_fresh_one(self, tmp_path, index_dir, metadata):
        """Test removing everything serializes like write_empty."""
        fresh = (index_dir / "content.xml").read_bytes()
        fragment = make_fragment_dir(tmp_path / "fragment", metadata, METADATA_FRAGMENT)

        metadata.merge(fragment, index_dir)
        metadata.remove(fragment, index_dir)

        assert (index_dir / "content.xml").read_bytes() == fresh

    def test_remove_keeps_other_entries(self, tmp_path, index_dir, artifacts):
        """Test only the fragment's own entries go."""
        one = make_fragment_dir(tmp_path / "one", artifacts, artifacts_fragment("one"))
        two = make_fragment_dir(tmp_path / "two", artifacts, artifacts_fragment("two"))
        artifacts.merge(one, index_dir)
        artifacts.merge(two, index_dir)

        artifacts.remove(one, index_dir)

        entries = artifacts.parse_entries((index_dir / "artifacts.xml").read_bytes())
        assert [e['id'] for e in entries] == ['two']

    def test_remove_absent_entries(self, tmp_path, index_dir, metadata):
        """Test removing entries that are not there changes nothing."""
        fragment = make_fragment_dir(tmp_path / "fragment", metadata, METADATA_FRAGMENT)
        before = (index_dir / "content.xml").read_bytes()

        assert metadata.remove(fragment, index_dir) == 0
        assert (index_dir / "content.xml").read_bytes() == before


class TestListInstallableArtifacts:
    """Tests for enumerating a fragment's artifacts."""

    def test_document_order(self, tmp_path, artifacts):
        """Test artifacts come back in the order they are declared."""
        fragment = make_fragment_dir(tmp_path / "fragment", artifacts, ARTIFACTS_FRAGMENT)

        assert artifacts.list_installable_artifacts(fragment) == [
            InstallableArtifact('org.acme.core', '1.0.0', 'osgi.bundle'),
            InstallableArtifact('org.acme.feature', '1.0.0', 'org.eclipse.update.feature'),
            InstallableArtifact('org.acme.launcher', '1.0.0', 'binary'),
        ]

    def test_parse_entries_rejects_garbage(self, artifacts):
        """Test parse_entries raises on unparsable data."""
        with pytest.raises(MalformedFragmentError):
            artifacts.parse_entries(b"not xml")
