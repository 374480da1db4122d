"""Tests for dataset persistence, metadata and the failed-URL ledger."""

import asyncio
import json
import logging
from datetime import datetime, timezone

import aiofiles.os
import pytest

from kdapi.errors import PersistenceError, UrlFailure
from kdapi.models import Category, Dataset, Profile, ProfileKind
from kdapi.storage import DatasetStore, FailedUrlStore, build_metadata

from conftest import group_url, idol_url


def sample_dataset() -> Dataset:
    dataset = Dataset()
    dataset[Category.FEMALE_IDOLS] = [
        Profile(idol_url("jisoo"), ProfileKind.IDOL, {
            "names": {"stage": "Jisoo"},
            "active": True,
            "careerInfo": {"debutDate": "2016-08-08"},
        }, id="idol-1"),
        Profile(idol_url("sulli"), ProfileKind.IDOL, {"names": {"stage": "Sulli"}, "active": False}, id="idol-2"),
    ]
    dataset[Category.MALE_IDOLS] = [
        Profile(idol_url("taeyang"), ProfileKind.IDOL, {"names": {"stage": "Taeyang"}, "active": True}, id="idol-3"),
    ]
    dataset[Category.GIRL_GROUPS] = [
        Profile(group_url("snsd"), ProfileKind.GROUP, {
            "names": {"stage": "Girls' Generation"},
            "active": False,
            "status": "disbanded",
            "groupInfo": {"debutDate": "2007-08-05"},
        }, id="group-1"),
    ]
    dataset[Category.COED_GROUPS] = [
        Profile(group_url("kard"), ProfileKind.GROUP, {"names": {"stage": "KARD"}, "active": True}, id="group-2"),
    ]
    return dataset


def test_round_trip_preserves_ids_and_payload(store):
    dataset = sample_dataset()

    asyncio.run(store.save(dataset))
    loaded = asyncio.run(store.load())

    for category in Category:
        assert [p.to_dict() for p in loaded[category]] == [p.to_dict() for p in dataset[category]]
    assert loaded[Category.GIRL_GROUPS][0].kind is ProfileKind.GROUP


def test_shard_layout(store):
    asyncio.run(store.save(sample_dataset()))

    idols = json.loads(store.idols_file.read_text(encoding="utf-8"))
    groups = json.loads(store.groups_file.read_text(encoding="utf-8"))

    assert set(idols) == {"femaleIdols", "maleIdols"}
    assert set(groups) == {"girlGroups", "boyGroups", "coedGroups"}
    assert idols["femaleIdols"][0]["id"] == "idol-1"
    assert idols["femaleIdols"][0]["profileUrl"] == idol_url("jisoo")
    assert idols["femaleIdols"][0]["names"] == {"stage": "Jisoo"}


def test_save_leaves_no_temp_files(store):
    asyncio.run(store.save(sample_dataset()))
    asyncio.run(store.save(sample_dataset()))

    names = sorted(p.name for p in store.data_dir.iterdir())
    assert names == ["groups.json", "idols.json", "metadata.json"]
    assert store.saves == 2


def test_metadata_counts_and_coverage():
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    metadata = build_metadata(sample_dataset(), now=now)

    assert metadata["lastUpdated"] == "2024-05-01T12:00:00Z"
    assert metadata["coverage"] == {"startDate": "2007-08-05", "endDate": "2024-05-01"}
    stats = metadata["stats"]
    assert stats["total"] == 5
    assert stats["idols"]["total"] == 3
    assert stats["idols"]["active"] == {"female": 1, "male": 1}
    assert stats["idols"]["inactive"] == {"female": 1, "male": 0}
    assert stats["groups"]["total"] == 2
    assert stats["groups"]["active"] == {"girl": 0, "boy": 0, "coed": 1}
    assert stats["groups"]["disbanded"] == {"girl": 1, "boy": 0, "coed": 0}


def test_empty_dataset_metadata():
    metadata = build_metadata(Dataset())
    assert metadata["coverage"]["startDate"] == ""
    assert metadata["stats"]["total"] == 0


def test_missing_files_load_as_empty(store):
    dataset = asyncio.run(store.load())
    assert len(dataset) == 0
    assert asyncio.run(store.load_metadata()) is None


def test_corrupt_shard_loads_as_empty(store):
    asyncio.run(store.save(sample_dataset()))
    store.idols_file.write_text("{ not json", encoding="utf-8")

    dataset = asyncio.run(store.load())

    assert dataset[Category.FEMALE_IDOLS] == []
    assert len(dataset[Category.GIRL_GROUPS]) == 1


def test_malformed_entries_are_skipped(store):
    store.data_dir.mkdir(parents=True)
    store.idols_file.write_text(json.dumps({
        "femaleIdols": [{"profileUrl": idol_url("no-id")}, {"id": "ok", "profileUrl": idol_url("ok")}],
    }), encoding="utf-8")

    dataset = asyncio.run(store.load())

    assert [p.id for p in dataset[Category.FEMALE_IDOLS]] == ["ok"]
    assert dataset[Category.MALE_IDOLS] == []


def test_save_failure_raises_persistence_error(tmp_path):
    blocker = tmp_path / "data"
    blocker.write_text("not a directory")

    with pytest.raises(PersistenceError):
        asyncio.run(DatasetStore(blocker).save(sample_dataset()))


def test_failed_ledger_merges_and_drops_recovered(failed_store):
    first = [
        UrlFailure(idol_url("a"), "femaleIdols", "fetch"),
        UrlFailure(group_url("b"), "boyGroups", "extraction"),
    ]
    asyncio.run(failed_store.update(first, succeeded=set()))

    remaining = asyncio.run(failed_store.update(
        [UrlFailure(idol_url("c"), "maleIdols", "fetch")],
        succeeded={idol_url("a")},
    ))

    assert sorted(f.url for f in remaining) == [group_url("b"), idol_url("c")]
    stored = json.loads(failed_store.path.read_text(encoding="utf-8"))
    assert {"url": group_url("b"), "category": "boyGroups", "reason": "extraction"} in stored
    assert len(stored) == 2


def test_failed_ledger_removed_when_empty(failed_store):
    asyncio.run(failed_store.update([UrlFailure(idol_url("a"), "femaleIdols", "fetch")], succeeded=set()))
    assert failed_store.path.exists()

    asyncio.run(failed_store.update([], succeeded={idol_url("a")}))

    assert not failed_store.path.exists()
    assert asyncio.run(failed_store.load()) == []


def _larger_dataset() -> Dataset:
    dataset = sample_dataset()
    dataset[Category.FEMALE_IDOLS].append(
        Profile(idol_url("jennie"), ProfileKind.IDOL, {"names": {"stage": "Jennie"}, "active": True}, id="idol-4"),
    )
    return dataset


def _hidden_files(store):
    return sorted(p.name for p in store.data_dir.iterdir() if p.name.startswith("."))


def test_failed_save_keeps_shards_consistent(store):
    asyncio.run(store.save(sample_dataset()))
    store.groups_file.unlink()
    store.groups_file.mkdir()

    with pytest.raises(PersistenceError):
        asyncio.run(store.save(_larger_dataset()))

    idols = json.loads(store.idols_file.read_text(encoding="utf-8"))
    metadata = json.loads(store.metadata_file.read_text(encoding="utf-8"))
    assert len(idols["femaleIdols"]) == 2
    assert metadata["stats"]["idols"]["total"] == 3
    assert _hidden_files(store) == []


def test_failed_metadata_replace_restores_earlier_shards(store, monkeypatch):
    asyncio.run(store.save(sample_dataset()))
    before = {p.name: p.read_text(encoding="utf-8") for p in store.data_dir.iterdir()}
    real_replace = aiofiles.os.replace

    async def replace(src, dst):
        if str(dst).endswith("metadata.json"):
            raise OSError("disk full")
        await real_replace(src, dst)

    monkeypatch.setattr("kdapi.storage.aiofiles.os.replace", replace)

    with pytest.raises(PersistenceError):
        asyncio.run(store.save(_larger_dataset()))

    after = {p.name: p.read_text(encoding="utf-8") for p in store.data_dir.iterdir()}
    assert after == before


def test_failed_first_save_leaves_no_partial_files(store, monkeypatch):
    real_replace = aiofiles.os.replace

    async def replace(src, dst):
        if str(dst).endswith("groups.json"):
            raise OSError("disk full")
        await real_replace(src, dst)

    monkeypatch.setattr("kdapi.storage.aiofiles.os.replace", replace)

    with pytest.raises(PersistenceError):
        asyncio.run(store.save(sample_dataset()))

    assert list(store.data_dir.iterdir()) == []


def test_ledger_write_failure_is_logged(tmp_path, caplog, monkeypatch):
    monkeypatch.setattr(logging.getLogger("kdapi"), "propagate", True)
    blocker = tmp_path / "data"
    blocker.write_text("not a directory")
    ledger = FailedUrlStore(blocker)

    with caplog.at_level(logging.ERROR, logger="kdapi.storage"):
        with pytest.raises(PersistenceError):
            asyncio.run(ledger.update([UrlFailure(idol_url("a"), "femaleIdols", "fetch")], succeeded=set()))

    assert "failed-URL ledger" in caplog.text
