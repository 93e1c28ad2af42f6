"""Atomic save, self-healing load, quarantine, legacy migration."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from frecency.errors import CorruptStoreError, FrecencyIOError
from frecency.models import Entry
from frecency.persist import dumpDocument, parseDocument, readEntries, saveEntries

NOW = 1_700_000_000


def _triples(entries: list[Entry]) -> set[tuple[str, float, int]]:
    return {(e.key, e.weight, e.last_used_at) for e in entries}


def _quarantined(path: Path) -> list[Path]:
    return sorted(path.parent.glob(f"{path.name}.corrupt-*"))


@pytest.fixture
def sample() -> list[Entry]:
    return [
        Entry(key="scriptA", weight=2.0, last_used_at=NOW, count=2),
        Entry(key="/path/to/b.ts", weight=0.123456789012345, last_used_at=NOW - 5000, count=4),
        Entry(key="ünïcode", weight=1.0, last_used_at=0, count=1),
    ]


# ── Save ─────────────────────────────────────────────────────


class TestSave:
    def test_writesVersionedDocumentWithoutScore(self, store_path: Path, sample):
        saveEntries(sample, store_path)
        doc = json.loads(store_path.read_text())
        assert doc["schema_version"] == 1
        assert len(doc["entries"]) == 3
        for item in doc["entries"]:
            assert set(item) == {"key", "weight", "last_used_at", "count"}
        assert "score" not in store_path.read_text()

    def test_ownerOnlyPermissions(self, store_path: Path, sample):
        saveEntries(sample, store_path)
        assert stat.S_IMODE(os.stat(store_path).st_mode) == 0o600

    def test_noTempFileLeftBehind(self, store_path: Path, sample):
        saveEntries(sample, store_path)
        saveEntries(sample[:1], store_path)
        assert [p.name for p in store_path.parent.iterdir()] == [store_path.name]

    def test_createsParentDirs(self, tmp_path: Path, sample):
        nested = tmp_path / "a" / "b" / "frecency.json"
        saveEntries(sample, nested)
        assert nested.exists()

    def test_replacesSymlinkInsteadOfFollowingIt(self, tmp_path: Path, sample):
        victim = tmp_path / "victim.txt"
        victim.write_text("keep me")
        link = tmp_path / "frecency.json"
        link.symlink_to(victim)
        saveEntries(sample, link)
        assert victim.read_text() == "keep me"
        assert not link.is_symlink()

    def test_renameFailureCleansUpAndRaises(self, store_path: Path, sample):
        saveEntries(sample[:1], store_path)
        before = store_path.read_bytes()
        with patch("frecency.persist.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(FrecencyIOError) as exc:
                saveEntries(sample, store_path)
        assert isinstance(exc.value.cause, OSError)
        assert store_path.read_bytes() == before
        assert [p.name for p in store_path.parent.iterdir()] == [store_path.name]

    def test_unwritableLocationRaisesIOError(self, tmp_path: Path, sample):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        with pytest.raises(FrecencyIOError):
            saveEntries(sample, blocker / "frecency.json")

    def test_dumpIsSortedByKey(self, sample):
        doc = json.loads(dumpDocument(sample))
        keys = [e["key"] for e in doc["entries"]]
        assert keys == sorted(keys)


# ── Load ─────────────────────────────────────────────────────


class TestLoad:
    def test_missingFileIsEmpty(self, tmp_path: Path):
        assert readEntries(tmp_path / "nope" / "frecency.json", now=NOW) == []

    def test_roundTrip(self, store_path: Path, sample):
        saveEntries(sample, store_path)
        loaded = readEntries(store_path, now=NOW)
        assert _triples(loaded) == _triples(sample)

    def test_idempotentLoad(self, store_path: Path, sample):
        saveEntries(sample, store_path)
        first = readEntries(store_path, now=NOW)
        second = readEntries(store_path, now=NOW)
        assert sorted(first, key=lambda e: e.key) == sorted(second, key=lambda e: e.key)
        assert store_path.exists()

    def test_garbageIsQuarantined(self, store_path: Path):
        store_path.write_bytes(b"\x00\xff not json {{{")
        assert readEntries(store_path, now=NOW) == []
        assert not store_path.exists()
        assert len(_quarantined(store_path)) == 1

    def test_invalidJsonQuarantined(self, store_path: Path):
        store_path.write_text("not valid json")
        assert readEntries(store_path, now=NOW) == []
        assert len(_quarantined(store_path)) == 1

    def test_hugeIntegerQuarantined(self, store_path: Path):
        # valid JSON, but past Python's int-string conversion limit
        store_path.write_text(
            '{"schema_version": 1, "entries": [{"key": "a", "weight": 1.0, "last_used_at": '
            + "9" * 5000
            + "}]}"
        )
        assert readEntries(store_path, now=NOW) == []
        assert not store_path.exists()
        assert len(_quarantined(store_path)) == 1

    def test_quarantineNamesDoNotCollide(self, store_path: Path):
        for _ in range(3):
            store_path.write_text("[1, 2")
            readEntries(store_path, now=NOW)
        assert len(_quarantined(store_path)) == 3

    @pytest.mark.parametrize(
        "doc",
        [
            [],
            "string",
            {"schema_version": 99, "entries": []},
            {"schema_version": 1, "entries": {"a": 1}},
            {"entries": []},
        ],
    )
    def test_wrongShapeQuarantined(self, store_path: Path, doc):
        store_path.write_text(json.dumps(doc))
        assert readEntries(store_path, now=NOW) == []
        assert len(_quarantined(store_path)) == 1

    def test_oversizedQuarantinedWithoutReading(self, store_path: Path):
        store_path.write_bytes(b" " * 2048)
        with patch("frecency.persist.open", create=True) as mock_open:
            assert readEntries(store_path, now=NOW, max_file_bytes=1024) == []
        mock_open.assert_not_called()
        assert not store_path.exists()
        assert len(_quarantined(store_path)) == 1

    def test_exactlyAtLimitIsRead(self, store_path: Path, sample):
        saveEntries(sample, store_path)
        size = store_path.stat().st_size
        assert len(readEntries(store_path, now=NOW, max_file_bytes=size)) == 3

    def test_invalidEntriesSkipped(self, store_path: Path):
        store_path.write_text(
            '{"schema_version": 1, "entries": ['
            '{"key": "good", "weight": 1.5, "last_used_at": 10},'
            '{"key": "nan", "weight": NaN, "last_used_at": 10},'
            '{"key": "inf", "weight": Infinity, "last_used_at": 10},'
            '{"key": "neg", "weight": -1.0, "last_used_at": 10},'
            '{"key": "ts", "weight": 1.0, "last_used_at": -4},'
            '{"key": 42, "weight": 1.0, "last_used_at": 10},'
            '{"weight": 1.0, "last_used_at": 10},'
            '"not an object"'
            "]}"
        )
        loaded = readEntries(store_path, now=NOW)
        assert [e.key for e in loaded] == ["good"]
        assert store_path.exists()

    def test_longKeysDropped(self, store_path: Path):
        saveEntries(
            [
                Entry(key="short", weight=1.0, last_used_at=1),
                Entry(key="x" * 100, weight=9.0, last_used_at=1),
            ],
            store_path,
        )
        assert [e.key for e in readEntries(store_path, now=NOW, max_key_bytes=64)] == ["short"]

    def test_unknownFieldsIgnored(self, store_path: Path):
        store_path.write_text(
            json.dumps(
                {
                    "schema_version": 1,
                    "written_by": "future",
                    "entries": [
                        {"key": "a", "weight": 2.0, "last_used_at": 5, "score": 1e9, "tag": "x"}
                    ],
                }
            )
        )
        assert readEntries(store_path, now=NOW) == [
            Entry(key="a", weight=2.0, last_used_at=5, count=1)
        ]

    def test_futureTimestampsClamped(self, store_path: Path):
        saveEntries([Entry(key="a", weight=1.0, last_used_at=NOW + 10_000)], store_path)
        assert readEntries(store_path, now=NOW)[0].last_used_at == NOW

    def test_duplicateKeysKeepHighestWeight(self, store_path: Path):
        store_path.write_text(
            json.dumps(
                {
                    "schema_version": 1,
                    "entries": [
                        {"key": "a", "weight": 1.0, "last_used_at": 5},
                        {"key": "a", "weight": 4.0, "last_used_at": 3},
                        {"key": "a", "weight": 2.0, "last_used_at": 9},
                    ],
                }
            )
        )
        loaded = readEntries(store_path, now=NOW)
        assert [(e.key, e.weight) for e in loaded] == [("a", 4.0)]

    def test_capKeepsTopByRawWeight(self, store_path: Path):
        saveEntries(
            [
                Entry(key="low", weight=1.0, last_used_at=NOW),
                Entry(key="high", weight=3.0, last_used_at=1),
                Entry(key="mid", weight=2.0, last_used_at=1),
            ],
            store_path,
        )
        loaded = readEntries(store_path, now=NOW, max_entries=2)
        assert {e.key for e in loaded} == {"high", "mid"}

    def test_unreadableFileIsEmptyNotQuarantined(self, store_path: Path, sample):
        saveEntries(sample, store_path)
        with patch("frecency.persist.open", create=True, side_effect=PermissionError("denied")):
            assert readEntries(store_path, now=NOW) == []
        assert store_path.exists()
        assert _quarantined(store_path) == []


# ── Legacy migration ─────────────────────────────────────────


class TestLegacy:
    def test_migratesCountAndLastUsed(self, store_path: Path):
        store_path.write_text(
            '{"entries": {"/script.ts": {"count": 10, "last_used": 0, "score": 100.0}}}'
        )
        loaded = readEntries(store_path, now=NOW)
        assert loaded == [Entry(key="/script.ts", weight=10.0, last_used_at=0, count=10)]

    def test_badLegacyEntriesSkipped(self, store_path: Path):
        store_path.write_text(
            json.dumps(
                {"entries": {"ok": {"count": 2, "last_used": 7}, "bad": {"count": "many"}}}
            )
        )
        assert [e.key for e in readEntries(store_path, now=NOW)] == ["ok"]


def test_parseDocumentRaisesCorrupt():
    with pytest.raises(CorruptStoreError):
        parseDocument(b"{")
