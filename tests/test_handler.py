import pytest

from fsindexd.core.config import BatchConfig
from fsindexd.core.errors import SchedulerClosedError
from fsindexd.core.handler import EventHandler
from fsindexd.core.service import ServiceRegistry


@pytest.fixture
def idle_config():
    # worker never wakes on its own during a test
    return BatchConfig(batch_size=100, batch_interval=30.0, drain_cap=500, wake_timeout=30.0)


@pytest.fixture
def handler(engine, mounts, idle_config):
    h = EventHandler(engine, config=idle_config, mounts=mounts)
    yield h
    h.shutdown(timeout=5.0)


def test_worker_is_running_after_construction(handler):
    assert handler.worker.is_alive() is True


def test_ignored_event(handler, mounts):
    assert handler.ignored_event("/home/u/doc.longname") is True
    assert handler.ignored_event("/media/longnames/doc.txt") is True
    assert handler.ignored_event("/home/u/doc.txt") is False
    assert handler.ignored_event("/media/longnames/doc.txt", ignored=True) is False
    assert len(mounts.calls) == 2


def test_run_scheduled_task_moves_at_most_drain_cap(handler, records):
    assert handler.insert_pending_records(records(600)) == 600
    assert handler.record_size() == 600

    assert handler.run_scheduled_task() == 500
    assert handler.record_size() == 100
    assert handler.run_scheduled_task() == 100
    assert handler.record_size() == 0
    assert handler.run_scheduled_task() == 0


def test_staged_records_reach_engine(engine, mounts, fast_config, records, wait_until):
    with EventHandler(engine, config=fast_config, mounts=mounts) as handler:
        batch = records(150)
        handler.insert_pending_records(batch)
        handler.run_scheduled_task()
        assert wait_until(lambda: handler.pending_counts() == {"pending": 0, "additions": 0})
        assert engine.committed == batch
        assert handler.has_document(batch[0].path) is True
        assert handler.search("/data/docs", "file_0001", 0, 10) == ["/data/docs/file_0001.txt"]


def test_delayed_deletion_goes_through_engine(handler, engine):
    handler.remove_index_delay("/data/old.txt")
    assert list(engine.deletions) == ["/data/old.txt"]


def test_add_index_delay_queues_record(handler, records):
    handler.add_index_delay(records(1)[0])
    assert handler.pending_counts() == {"pending": 0, "additions": 1}


def test_index_files_in_directory_skips_suppressed(handler, tmp_path):
    (tmp_path / "keep.txt").write_text("k")
    (tmp_path / "skip.longname").write_text("s")
    (tmp_path / "sub").mkdir()

    assert handler.index_files_in_directory(str(tmp_path)) == 2
    assert handler.record_size() == 2


def test_device_queries(handler, mounts):
    assert handler.device_available(2049) is True
    assert handler.device_available(1) is False
    assert handler.mount_point_for_device(2049) == "/"
    assert handler.mount_point_for_device(1) == ""
    handler.refresh_mount_status()
    assert mounts.refreshes == 1


def test_engine_passthrough(handler, engine):
    def predicate(path):
        return path.endswith(".tmp")

    assert handler.index_directory() == "/var/cache/fsindexd/index"
    handler.set_index_change_filter(predicate)
    assert engine.change_filter is predicate


def test_path_operations(handler, engine, tmp_path):
    target = tmp_path / "a.txt"
    target.write_text("a")

    assert handler.add_path(str(target)) is False
    assert handler.pending_counts()["additions"] == 1
    engine.docs.add(str(target))
    assert handler.remove_path(str(target)) is True
    assert handler.search(str(tmp_path), "a", -1, 10) == []


def test_shutdown_rejects_further_ingestion(engine, mounts, idle_config, records):
    handler = EventHandler(engine, config=idle_config, mounts=mounts)
    assert handler.shutdown() is True
    assert handler.worker.observed_stop is True

    with pytest.raises(SchedulerClosedError):
        handler.insert_pending_records(records(1))
    assert handler.add_path("/anything") is False
    assert handler.shutdown() is True


def test_registry_publish_and_release(engine, mounts, idle_config, tmp_path):
    registry = ServiceRegistry(path=str(tmp_path / "services.json"))

    with EventHandler(engine, config=idle_config, mounts=mounts, registry=registry) as first:
        assert first.endpoint.published is True
        second = EventHandler(type(engine)(), config=idle_config, mounts=mounts, registry=registry)
        try:
            assert second.endpoint.published is False
        finally:
            second.shutdown()
        assert registry.is_registered(first.endpoint.name) is True

    assert registry.is_registered(first.endpoint.name) is False


def test_handler_configures_logging_on_request(engine, mounts, idle_config, monkeypatch):
    from fsindexd.core import handler as handler_module

    calls = []
    monkeypatch.setattr(handler_module, "configure_logging", lambda s: calls.append(s))

    with EventHandler(engine, config=idle_config, mounts=mounts, configure_logs=True) as h:
        assert calls == [h.settings]
    with EventHandler(type(engine)(), config=idle_config, mounts=mounts):
        assert len(calls) == 1
