"""Tests for the project.json metadata store."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from projectfs.errors import CorruptMetadataError, NotFoundError, StorageError
from projectfs.models import Project, parse_timestamp
from projectfs.store.metadata import SIDECAR_NAME, MetadataStore

TZ = timezone(timedelta(hours=2))


@pytest.fixture
def store(tmp_path: Path) -> MetadataStore:
    return MetadataStore(tmp_path)


def make_project(project_id: str = "20260218093000", **overrides) -> Project:
    ts = datetime(2026, 2, 18, 9, 30, 0, 123456, tzinfo=TZ)
    fields = dict(
        id=project_id,
        name="Survey data",
        description="Field samples, 2026 season",
        created_at=ts,
        updated_at=ts,
    )
    fields.update(overrides)
    return Project(**fields)


def write_sidecar(store: MetadataStore, project_id: str, content: str) -> Path:
    path = store.path_for(project_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class TestSave:
    def test_round_trip(self, store: MetadataStore):
        project = make_project()
        (store.root / project.id).mkdir()
        store.save(project)
        assert store.load(project.id) == project

    def test_round_trip_unicode(self, store: MetadataStore):
        project = make_project(name="Überblick 项目")
        (store.root / project.id).mkdir()
        store.save(project)
        assert store.load(project.id).name == "Überblick 项目"

    def test_idempotent_bytes(self, store: MetadataStore):
        project = make_project()
        (store.root / project.id).mkdir()
        store.save(project)
        first = store.path_for(project.id).read_bytes()
        store.save(project)
        assert store.path_for(project.id).read_bytes() == first

    def test_field_order_and_indent(self, store: MetadataStore):
        project = make_project()
        (store.root / project.id).mkdir()
        store.save(project)
        text = store.path_for(project.id).read_text(encoding="utf-8")
        assert list(json.loads(text)) == ["id", "name", "description", "createdAt", "updatedAt"]
        assert '\n  "name": "Survey data",' in text

    def test_overwrites_previous_content(self, store: MetadataStore):
        project = make_project()
        write_sidecar(store, project.id, "x" * 10_000)
        store.save(project)
        assert store.load(project.id) == project

    def test_missing_directory_raises_storage_error(self, store: MetadataStore):
        with pytest.raises(StorageError):
            store.save(make_project("nowhere"))


class TestLoad:
    def test_missing_directory(self, store: MetadataStore):
        with pytest.raises(NotFoundError):
            store.load("absent")

    def test_missing_sidecar(self, store: MetadataStore):
        (store.root / "bare").mkdir()
        with pytest.raises(NotFoundError):
            store.load("bare")

    def test_invalid_json(self, store: MetadataStore):
        write_sidecar(store, "broken", "{not json")
        with pytest.raises(CorruptMetadataError):
            store.load("broken")

    def test_not_an_object(self, store: MetadataStore):
        write_sidecar(store, "listy", "[1, 2, 3]")
        with pytest.raises(CorruptMetadataError):
            store.load("listy")

    def test_missing_field(self, store: MetadataStore):
        write_sidecar(store, "partial", json.dumps({"id": "partial", "name": "x"}))
        with pytest.raises(CorruptMetadataError):
            store.load("partial")

    def test_bad_timestamp(self, store: MetadataStore):
        data = make_project("badts").to_dict()
        data["createdAt"] = "yesterday"
        write_sidecar(store, "badts", json.dumps(data))
        with pytest.raises(CorruptMetadataError):
            store.load("badts")

    def test_not_utf8(self, store: MetadataStore):
        path = store.path_for("binary")
        path.parent.mkdir()
        path.write_bytes(b"\xff\xfe\x00garbage")
        with pytest.raises(CorruptMetadataError):
            store.load("binary")

    def test_unknown_fields_ignored(self, store: MetadataStore):
        data = make_project("extra").to_dict()
        data["owner"] = "someone"
        data["tags"] = ["a"]
        write_sidecar(store, "extra", json.dumps(data))
        assert store.load("extra") == make_project("extra")

    def test_foreign_timestamp_format(self, store: MetadataStore):
        write_sidecar(
            store,
            "20240102150405",
            json.dumps({
                "id": "20240102150405",
                "name": "From elsewhere",
                "description": "",
                "createdAt": "2024-01-02T15:04:05.123456789+01:00",
                "updatedAt": "2024-01-02T14:04:05Z",
            }),
        )
        project = store.load("20240102150405")
        assert project.created_at == datetime(
            2024, 1, 2, 15, 4, 5, 123456, tzinfo=timezone(timedelta(hours=1))
        )
        assert project.updated_at == datetime(2024, 1, 2, 14, 4, 5, tzinfo=timezone.utc)


class TestTimestamps:
    def test_parse_plain(self):
        assert parse_timestamp("2026-02-18T09:30:00+00:00") == datetime(
            2026, 2, 18, 9, 30, tzinfo=timezone.utc
        )

    def test_parse_rejects_non_string(self):
        with pytest.raises(TypeError):
            parse_timestamp(1700000000)


def test_sidecar_name():
    assert SIDECAR_NAME == "project.json"
