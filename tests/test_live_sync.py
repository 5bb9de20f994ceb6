from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from jsonfile_proxy import JsonFileProxy, LockHeldError, Record, RecordStore

PERSON_FIELDS = {"firstname": None, "lastname": None}


def _stored(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))["data"]


def test_store_live_create_preserves_insertion_order(tmp_path: Path) -> None:
    db = tmp_path / "db.json"
    proxy = JsonFileProxy(db)
    people = RecordStore(PERSON_FIELDS, proxy=proxy)
    proxy.enable_live_sync()
    snapshots: list[tuple[Record, list[dict[str, Any]]]] = []
    proxy.on("live.create", lambda record: snapshots.append((record, _stored(db))))

    doctor = people.add({"firstname": "The", "lastname": "Doctor"})
    master = people.add({"firstname": "The", "lastname": "Master"})

    assert [record for record, _ in snapshots] == [doctor, master]
    first_snapshot = snapshots[0][1]
    assert first_snapshot == [{"firstname": "The", "lastname": "Doctor"}]
    data = snapshots[1][1]
    assert data[0]["lastname"] == "Doctor"
    assert data[1]["lastname"] == "Master"
    assert not proxy.is_locked


def test_store_live_update_passes_record_and_change(tmp_path: Path) -> None:
    db = tmp_path / "db.json"
    proxy = JsonFileProxy(db)
    people = RecordStore(PERSON_FIELDS, proxy=proxy)
    people.add({"firstname": "The", "lastname": "Doctor"})
    proxy.enable_live_sync()
    updates: list[tuple[Any, ...]] = []
    proxy.on("live.update", lambda *args: updates.append(args))

    people.first.set("firstname", "Da")

    assert len(updates) == 1
    record, change = updates[0]
    assert record is people.first
    assert change == {"field": "firstname", "old": "The", "new": "Da"}
    assert _stored(db)[0]["firstname"] == "Da"


def test_store_live_delete_and_clear(tmp_path: Path) -> None:
    db = tmp_path / "db.json"
    proxy = JsonFileProxy(db)
    people = RecordStore(PERSON_FIELDS, proxy=proxy)
    proxy.enable_live_sync()
    people.add({"firstname": "The", "lastname": "Doctor"})
    people.add({"firstname": "The", "lastname": "Master"})
    assert len(_stored(db)) == 2
    deletes: list[tuple[Any, ...]] = []
    proxy.on("live.delete", lambda *args: deletes.append(args))

    removed = people.remove(people.last)
    assert deletes == [(removed,)]
    assert len(_stored(db)) == 1
    assert _stored(db)[0]["lastname"] == "Doctor"

    people.clear()
    assert deletes[-1] == ()
    assert _stored(db) == []


def test_model_live_update_persists_before_further_changes(tmp_path: Path) -> None:
    db = tmp_path / "db.json"
    proxy = JsonFileProxy(db)
    record = Record(
        PERSON_FIELDS,
        {"firstname": "The", "lastname": "Doctor", "pet": {"name": "K-9", "breed": "Robodog"}},
        relationships={"pet": {"name": None, "breed": None}},
        proxy=proxy,
    )
    proxy.save()
    proxy.enable_live_sync()
    seen: list[str | None] = []

    def _on_update() -> None:
        record.set_silent("firstname", "Bubba")
        proxy.fetch()
        seen.append(record["firstname"])

    proxy.once("live.update", _on_update)
    record.set("firstname", "Da")

    assert seen == ["Da"]
    assert _stored(db)["firstname"] == "Da"


def test_model_live_create_and_delete_fields(tmp_path: Path) -> None:
    db = tmp_path / "db.json"
    proxy = JsonFileProxy(db)
    record = Record(PERSON_FIELDS, {"firstname": "The", "lastname": "Doctor"}, proxy=proxy)
    proxy.enable_live_sync()
    events: list[str] = []
    for name in ("live.create", "live.update", "live.delete"):
        proxy.on(name, lambda *_, name=name: events.append(name))

    record.add_field("middlename", "Alonsi")
    assert events == ["live.create"]
    assert _stored(db)["middlename"] == "Alonsi"

    record.remove_field("middlename")
    assert events == ["live.create", "live.delete"]
    assert "middlename" not in _stored(db)
    assert not record.has_field("middlename")


def test_model_relationship_create_waits_for_field_update(tmp_path: Path) -> None:
    db = tmp_path / "db.json"
    proxy = JsonFileProxy(db)
    record = Record(PERSON_FIELDS, {"firstname": "The", "lastname": "Doctor"}, proxy=proxy)
    proxy.save()
    proxy.enable_live_sync()
    saves: list[None] = []
    proxy.on("save", lambda: saves.append(None))
    updates: list[None] = []
    proxy.on("live.update", lambda: updates.append(None))

    vehicle = record.add_relationship("vehicle", {"type": None, "doors": None})
    assert saves == []
    assert "vehicle" not in _stored(db)

    vehicle.set("type", "Tardis")
    assert len(saves) == 1
    assert len(updates) == 1

    vehicle.set_silent("type", "other")
    proxy.fetch()
    assert record.related("vehicle")["type"] == "Tardis"

    deletes: list[None] = []
    proxy.on("live.delete", lambda: deletes.append(None))
    record.remove_relationship("vehicle")
    assert deletes == [None]
    assert "vehicle" not in _stored(db)


def test_live_sync_saves_once_per_event(tmp_path: Path) -> None:
    db = tmp_path / "db.json"
    proxy = JsonFileProxy(db)
    people = RecordStore({"n": 0}, proxy=proxy)
    proxy.enable_live_sync()
    saves: list[None] = []
    proxy.on("save", lambda: saves.append(None))

    for idx in range(5):
        people.add({"n": idx})

    assert len(saves) == 5
    assert [item["n"] for item in _stored(db)] == [0, 1, 2, 3, 4]


def test_live_sync_propagates_lock_contention(tmp_path: Path) -> None:
    db = tmp_path / "db.json"
    proxy = JsonFileProxy(db)
    people = RecordStore(PERSON_FIELDS, proxy=proxy)
    proxy.enable_live_sync()
    creates: list[Any] = []
    proxy.on("live.create", creates.append)
    proxy.lockfile.write_text("999", encoding="utf-8")

    with pytest.raises(LockHeldError):
        people.add({"firstname": "The", "lastname": "Doctor"})
    assert creates == []
    assert not db.exists()


def test_enable_is_idempotent_and_disable_unsubscribes(tmp_path: Path) -> None:
    db = tmp_path / "db.json"
    proxy = JsonFileProxy(db)
    people = RecordStore(PERSON_FIELDS, proxy=proxy)
    saves: list[None] = []
    proxy.on("save", lambda: saves.append(None))

    proxy.enable_live_sync()
    proxy.enable_live_sync()
    assert sorted(proxy.live_sync.subscriptions) == ["clear", "record.create", "record.delete", "record.update"]
    people.add({"firstname": "The", "lastname": "Doctor"})
    assert len(saves) == 1

    proxy.disable_live_sync()
    assert not proxy.live_sync.enabled
    people.add({"firstname": "The", "lastname": "Master"})
    assert len(saves) == 1
    assert len(_stored(db)) == 1


def test_model_mode_does_not_subscribe_relationship_create(tmp_path: Path) -> None:
    proxy = JsonFileProxy(tmp_path / "db.json")
    Record(PERSON_FIELDS, proxy=proxy)
    proxy.enable_live_sync()

    assert sorted(proxy.live_sync.subscriptions) == [
        "field.create",
        "field.remove",
        "field.update",
        "relationship.remove",
    ]
