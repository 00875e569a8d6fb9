"""
Tests for scan-and-rebuild.
"""

import itertools
from unittest.mock import patch

from p2index.descriptors import ArtifactToolkit, MetadataToolkit
from p2index.domain import OperationStatus
from p2index.errors import StoreIOError
from p2index.infra import LocalStore
from p2index.services import (
    AggregationConfigStore,
    AggregationEngine,
    LinkService,
    RepositoryConfiguration,
    RepositoryRegistry,
)

from conftest import ARTIFACTS_PATH, METADATA_PATH, artifacts_fragment, fixed_clock

OTHER = 'org/acme/other/2.0/other-2.0'


def artifact_ids(store):
    return sorted(e['id'] for e in ArtifactToolkit().parse_entries(store.get('.meta/p2/artifacts.xml')))


def unit_ids(store):
    return sorted(e['id'] for e in MetadataToolkit().parse_entries(store.get('.meta/p2/content.xml')))


class TestScanAndRebuild:
    """Tests for AggregationEngine.scan_and_rebuild."""

    def test_indexes_every_fragment(self, engine, store, publish):
        """Test all fragments in the tree end up in the index."""
        publish()
        publish(module=OTHER, artifacts=artifacts_fragment('org.acme.other', '2.0'))

        result = engine.scan_and_rebuild('releases')

        assert result.success
        assert result.fragments_processed == 4
        assert result.fragments_failed == []
        assert artifact_ids(store) == ['org.acme.core', 'org.acme.feature', 'org.acme.launcher', 'org.acme.other']
        assert unit_ids(store) == ['org.acme.core', 'org.acme.feature.feature.group']
        assert store.list_links('.meta/p2') == [
            '.meta/p2/features/org.acme.feature_1.0.0.jar',
            '.meta/p2/plugins/org.acme.core_1.0.0.jar',
            '.meta/p2/plugins/org.acme.other_2.0.jar',
        ]

    def test_matches_incremental_updates(self, engine, store, publish):
        """Test a rebuild yields the same index as per-fragment updates."""
        publish()
        publish(module=OTHER, artifacts=artifacts_fragment('org.acme.other', '2.0'))
        engine.update_artifacts('releases', ARTIFACTS_PATH)
        engine.update_metadata('releases', METADATA_PATH)
        engine.update_artifacts('releases', f'{OTHER}-p2artifacts.xml')
        engine.update_metadata('releases', f'{OTHER}-p2metadata.xml')
        incremental = (store.get('.meta/p2/artifacts.xml'), store.get('.meta/p2/content.xml'))

        store.delete('.meta/p2')
        assert engine.scan_and_rebuild('releases').success

        assert (store.get('.meta/p2/artifacts.xml'), store.get('.meta/p2/content.xml')) == incremental

    def test_hidden_paths_are_skipped(self, engine, store, publish):
        """Test fragments below dot-directories are not indexed."""
        publish(module='.staging/org/acme/hidden/1.0/hidden-1.0', artifacts=artifacts_fragment('org.acme.hidden'))

        result = engine.scan_and_rebuild('releases')

        assert result.fragments_processed == 0
        assert artifact_ids(store) == []

    def test_converges(self, store, publish, configuration):
        """Test a second rebuild with a ticking clock changes nothing."""
        ticking = itertools.count(1).__next__
        engine = AggregationEngine(
            RepositoryRegistry([store]), AggregationConfigStore([configuration]), clock=ticking
        )
        publish()

        engine.scan_and_rebuild('releases')
        first = (store.get('.meta/p2/artifacts.xml'), store.get('.meta/p2/content.xml'))
        engine.scan_and_rebuild('releases')

        assert (store.get('.meta/p2/artifacts.xml'), store.get('.meta/p2/content.xml')) == first

    def test_bad_fragment_is_rolled_back(self, engine, store, publish):
        """Test a failing fragment leaves no entries and the rest still index."""
        publish()
        bad = publish(module=OTHER, artifacts=artifacts_fragment('org.acme.other', '2.0'))['artifacts']
        original = LinkService.apply

        def apply(self, configuration, fragment_path, artifacts, operation):
            if fragment_path == bad:
                raise StoreIOError('link failed')
            return original(self, configuration, fragment_path, artifacts, operation)

        with patch.object(LinkService, 'apply', autospec=True, side_effect=apply):
            result = engine.scan_and_rebuild('releases')

        assert result.success
        assert result.fragments_failed == [bad]
        assert result.fragments_processed == 3
        assert 'org.acme.other' not in artifact_ids(store)
        assert 'org.acme.core' in artifact_ids(store)

    def test_malformed_fragment_is_skipped(self, engine, store, publish):
        publish()
        broken = publish(module=OTHER, artifacts="<artifacts/>\n", jar=None)['artifacts']

        result = engine.scan_and_rebuild('releases')

        assert result.fragments_failed == [broken]
        assert 'org.acme.core' in artifact_ids(store)

    def test_missing_storage(self, tmp_path, locks):
        """Test a repository whose directory is gone fails without creating it."""
        gone = tmp_path / 'gone'
        store = LocalStore('gone', gone, locks=locks)
        engine = AggregationEngine(
            RepositoryRegistry([store]),
            AggregationConfigStore([RepositoryConfiguration('gone')]),
            clock=fixed_clock,
        )

        result = engine.scan_and_rebuild('gone')

        assert result.status is OperationStatus.FAILED
        assert not gone.exists()

    def test_disabled(self, disabled_engine):
        assert disabled_engine.scan_and_rebuild('releases').status is OperationStatus.SKIPPED


class TestRebuildAll:
    """Tests for AggregationEngine.rebuild_all."""

    def test_only_enabled_repositories(self, tmp_path, locks):
        stores = []
        for name in ['b', 'a', 'c']:
            (tmp_path / name).mkdir()
            stores.append(LocalStore(name, tmp_path / name, locks=locks))
        configurations = AggregationConfigStore([RepositoryConfiguration('b'), RepositoryConfiguration('a')])
        engine = AggregationEngine(RepositoryRegistry(stores), configurations, clock=fixed_clock)

        results = engine.rebuild_all()

        assert [r.repository_id for r in results] == ['a', 'b']
        assert all(r.success for r in results)
        assert not (tmp_path / 'c' / '.meta').exists()
