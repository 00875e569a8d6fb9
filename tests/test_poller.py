"""
Tests for the fragment poller.
"""

import asyncio
import os

from p2index.descriptors import ArtifactToolkit
from p2index.services import EventService, FragmentPoller, StoreEventType

from conftest import ARTIFACTS_PATH, METADATA_FRAGMENT, METADATA_PATH, artifacts_fragment


def artifact_ids(store):
    return [e['id'] for e in ArtifactToolkit().parse_entries(store.get('.meta/p2/artifacts.xml'))]


def touch_later(store, path, seconds=10):
    """Push a file's mtime forward so the change is seen."""
    local = store.local_path(path)
    mtime = local.stat().st_mtime + seconds
    os.utime(local, (mtime, mtime))


class TestDetect:
    """Tests for FragmentPoller.detect."""

    def test_existing_fragments_are_primed(self, engine, store, publish):
        """Test fragments present at start produce no events."""
        publish()
        poller = FragmentPoller(EventService(engine), [store])

        assert poller.known_fragments('releases') == [ARTIFACTS_PATH, METADATA_PATH]
        assert poller.detect('releases') == []

    def test_new_fragments_are_added(self, engine, store, publish):
        poller = FragmentPoller(EventService(engine), [store])
        publish()

        events = poller.detect('releases')

        assert [(e.type, e.path) for e in events] == [
            (StoreEventType.ADDED, ARTIFACTS_PATH),
            (StoreEventType.ADDED, METADATA_PATH),
        ]
        assert poller.detect('releases') == []

    def test_modified_fragment_is_added(self, engine, store, publish):
        publish()
        poller = FragmentPoller(EventService(engine), [store])

        store.put(ARTIFACTS_PATH, artifacts_fragment('org.acme.changed').encode())
        touch_later(store, ARTIFACTS_PATH)
        events = poller.detect('releases')

        assert [(e.type, e.path) for e in events] == [(StoreEventType.ADDED, ARTIFACTS_PATH)]

    def test_removed_fragment_carries_content(self, engine, store, publish):
        """Test a vanished fragment is reported with its last bytes."""
        publish()
        poller = FragmentPoller(EventService(engine), [store])
        store.delete(METADATA_PATH)

        events = poller.detect('releases')

        assert len(events) == 1
        assert events[0].type is StoreEventType.REMOVED
        assert events[0].content == METADATA_FRAGMENT.encode()

    def test_removals_come_first(self, engine, store, publish):
        publish()
        poller = FragmentPoller(EventService(engine), [store])
        store.delete(METADATA_PATH)
        publish(module='org/acme/a/1.0/a-1.0', artifacts=artifacts_fragment('org.acme.a'), metadata=None)

        events = poller.detect('releases')

        assert [e.type for e in events] == [StoreEventType.REMOVED, StoreEventType.ADDED]

    def test_non_fragments_and_index_ignored(self, engine, store, publish):
        """Test jars, hidden files and the index never become events."""
        poller = FragmentPoller(EventService(engine), [store])
        store.put('org/x/1.0/x-1.0.jar', b'jar')
        store.put('.staging/x-1.0-p2artifacts.xml', b'<artifacts/>')
        engine.scan_and_rebuild('releases')

        assert poller.detect('releases') == []

    def test_disabled_repository_has_no_fragments(self, disabled_engine, store, publish):
        publish()
        poller = FragmentPoller(EventService(disabled_engine), [store])
        assert poller.known_fragments('releases') == []

    def test_unavailable_store_keeps_snapshot(self, engine, store, publish, repo_dir):
        """Test a store that cannot be listed reports no removals."""
        publish()
        poller = FragmentPoller(EventService(engine), [store])
        renamed = repo_dir.with_name('moved')
        repo_dir.rename(renamed)
        try:
            assert poller.detect('releases') == []
            assert poller.known_fragments('releases') == [ARTIFACTS_PATH, METADATA_PATH]
        finally:
            renamed.rename(repo_dir)


class TestPolling:
    """Tests for dispatching polled changes."""

    def test_poll_once_updates_index(self, engine, store, publish):
        seen = []
        poller = FragmentPoller(EventService(engine), [store], on_result=seen.append)
        publish()

        results = poller.poll_once()

        assert [r.action for r in results] == ['update-artifacts', 'update-metadata']
        assert seen == results
        assert 'org.acme.core' in artifact_ids(store)

    def test_poll_once_removes_deleted_fragment(self, engine, store, publish):
        publish()
        engine.update_artifacts('releases', ARTIFACTS_PATH)
        poller = FragmentPoller(EventService(engine), [store])
        store.delete(ARTIFACTS_PATH)

        results = poller.poll_once()

        assert [r.action for r in results] == ['remove-artifacts']
        assert results[0].success
        assert artifact_ids(store) == []

    def test_run_cycles(self, engine, store, publish):
        """Test run() polls the requested number of times and stops."""
        poller = FragmentPoller(EventService(engine), [store], poll_interval=0)
        publish()

        asyncio.run(poller.run(cycles=1))

        assert not poller.is_polling
        assert 'org.acme.core' in artifact_ids(store)

    def test_stop(self, engine, store):
        poller = FragmentPoller(EventService(engine), [store], poll_interval=0)
        poller.is_polling = True
        poller.stop()
        assert not poller.is_polling

    def test_remove_store(self, engine, store):
        poller = FragmentPoller(EventService(engine), [store])
        poller.remove_store('releases')
        assert poller.poll_once() == []
        assert poller.known_fragments('releases') == []
