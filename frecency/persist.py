"""Atomic JSON persistence for the entry table, with quarantine of bad files.

Writes go temp file -> fsync -> rename, so a reader only ever sees the old
file or the new one. Reads never raise: a missing file is an empty table, and
a corrupt or oversized file is renamed aside and replaced by an empty table.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from frecency.config import DEFAULT_MAX_ENTRIES, DEFAULT_MAX_FILE_BYTES, DEFAULT_MAX_KEY_BYTES
from frecency.errors import CorruptStoreError, FrecencyIOError
from frecency.models import SCHEMA_VERSION, Entry, LegacyEntry, StoreDocument
from frecency.table import clampTimestamp, keyBytes

logger = logging.getLogger("frecency")

FILE_MODE = 0o600
QUARANTINE_TAG = "corrupt"


# ── Save ─────────────────────────────────────────────────────


def dumpDocument(entries: list[Entry]) -> bytes:
    """Serialize entries as a v1 document. Sorted by key for stable diffs."""
    doc = StoreDocument(entries=sorted(entries, key=lambda e: e.key))
    return (json.dumps(doc.model_dump(), indent=2) + "\n").encode("utf-8")


def saveEntries(entries: list[Entry], path: str | Path) -> None:
    """Atomically replace `path` with the serialized entries.

    Raises FrecencyIOError on any filesystem failure; the temp file is removed.
    """
    target = Path(path).expanduser()
    data = dumpDocument(entries)
    tmp_name: str | None = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        # mkstemp: O_EXCL create, 0600, never follows a pre-planted symlink
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
        )
        with os.fdopen(fd, "wb") as f:
            os.fchmod(f.fileno(), FILE_MODE)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
        tmp_name = None
        _fsyncDir(target.parent)
    except OSError as e:
        logger.warning("Saving %s failed: %s", target, e)
        raise FrecencyIOError(str(target), e) from e
    finally:
        if tmp_name is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
    logger.debug("Saved %d entries to %s", len(entries), target)


def _fsyncDir(directory: Path) -> None:
    """Persist the rename itself. Not supported everywhere, so best-effort."""
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


# ── Load ─────────────────────────────────────────────────────


def parseDocument(data: bytes, *, max_key_bytes: int = DEFAULT_MAX_KEY_BYTES) -> list[Entry]:
    """Decode a store document into valid entries.

    Raises CorruptStoreError if the document as a whole is unusable.
    Individual entries that fail validation are skipped.
    """
    try:
        raw = json.loads(data.decode("utf-8"))
    except (ValueError, RecursionError) as e:
        raise CorruptStoreError(f"not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise CorruptStoreError("top-level value is not an object")

    version = raw.get("schema_version")
    if version is None and isinstance(raw.get("entries"), dict):
        candidates = _migrateLegacy(raw["entries"])
    elif version == SCHEMA_VERSION and not isinstance(version, bool):
        candidates = _readV1(raw.get("entries", []))
    else:
        raise CorruptStoreError(f"unsupported schema_version {version!r}")

    valid: dict[str, Entry] = {}
    skipped = 0
    for entry in candidates:
        if keyBytes(entry.key) > max_key_bytes:
            skipped += 1
            continue
        prev = valid.get(entry.key)
        if prev is None or entry.weight > prev.weight:
            valid[entry.key] = entry
    if skipped:
        logger.warning("Skipped %d entries with keys over %d bytes", skipped, max_key_bytes)
    return list(valid.values())


def _readV1(items: Any) -> list[Entry]:
    if not isinstance(items, list):
        raise CorruptStoreError("entries is not a list")
    out: list[Entry] = []
    invalid = 0
    for item in items:
        try:
            out.append(Entry.model_validate(item))
        except ValidationError:
            invalid += 1
    if invalid:
        logger.warning("Skipped %d invalid entries", invalid)
    return out


def _migrateLegacy(items: dict[Any, Any]) -> list[Entry]:
    """Pre-versioned layout keyed by item, with count/last_used/score."""
    out: list[Entry] = []
    for key, item in items.items():
        try:
            out.append(LegacyEntry.model_validate(item).toEntry(key))
        except ValidationError:
            continue
    logger.info("Migrated %d legacy entries to schema v%d", len(out), SCHEMA_VERSION)
    return out


def _capEntries(entries: list[Entry], max_entries: int) -> list[Entry]:
    """Keep the top max_entries by raw weight, newest first on ties."""
    if len(entries) <= max_entries:
        return entries
    entries = sorted(entries, key=lambda e: (-e.weight, -e.last_used_at, e.key))
    logger.warning("Store has %d entries, keeping top %d", len(entries), max_entries)
    return entries[:max_entries]


def quarantine(path: Path, reason: str) -> Path | None:
    """Rename a bad store file aside so the next load starts clean."""
    stamp = time.strftime("%Y%m%dT%H%M%SZ", time.gmtime())
    dest = path.with_name(f"{path.name}.{QUARANTINE_TAG}-{stamp}")
    n = 1
    while dest.exists():
        dest = path.with_name(f"{path.name}.{QUARANTINE_TAG}-{stamp}-{n}")
        n += 1
    try:
        os.rename(path, dest)
    except OSError as e:
        logger.warning("Store %s is %s and could not be moved aside: %s", path, reason, e)
        return None
    logger.warning("Store %s is %s; moved to %s, starting empty", path, reason, dest.name)
    return dest


def readEntries(
    path: str | Path,
    *,
    now: int,
    max_entries: int = DEFAULT_MAX_ENTRIES,
    max_key_bytes: int = DEFAULT_MAX_KEY_BYTES,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> list[Entry]:
    """Load validated entries from `path`. Never raises."""
    p = Path(path).expanduser()
    try:
        size = p.stat().st_size
    except FileNotFoundError:
        return []
    except OSError as e:
        logger.warning("Cannot stat store %s: %s", p, e)
        return []

    if size > max_file_bytes:
        quarantine(p, f"oversized ({size} bytes > {max_file_bytes})")
        return []

    try:
        with open(p, "rb") as f:
            data = f.read(max_file_bytes + 1)
    except FileNotFoundError:
        return []
    except OSError as e:
        logger.warning("Cannot read store %s: %s", p, e)
        return []
    if len(data) > max_file_bytes:
        quarantine(p, f"oversized (> {max_file_bytes} bytes)")
        return []

    try:
        entries = parseDocument(data, max_key_bytes=max_key_bytes)
    except CorruptStoreError as e:
        quarantine(p, f"corrupt ({e})")
        return []

    now = clampTimestamp(now)
    entries = [
        e.model_copy(update={"last_used_at": now}) if e.last_used_at > now else e
        for e in entries
    ]
    entries = _capEntries(entries, max_entries)
    logger.debug("Loaded %d entries from %s", len(entries), p)
    return entries


