"""Tests for manifest persistence."""

import json
import os
import uuid
from pathlib import Path
from unittest.mock import patch

import pytest

from fileshift.core.errors import (
    IntegrityError,
    ManifestNotFoundError,
    PersistenceError,
    ValidationError,
)
from fileshift.rollback.integrity import HmacSha256Integrity
from fileshift.rollback.manifest import BatchJournal, ManifestStore, is_valid_manifest_id
from fileshift.rollback.models import RollbackAction, RollbackActionType


def move_action(name="a.txt") -> RollbackAction:
    return RollbackAction(
        type=RollbackActionType.MOVE,
        original_path=Path("/in") / name,
        current_path=Path("/out") / name,
    )


class TestManifestIds:
    def test_valid(self):
        """Test that a generated UUID is accepted."""
        assert is_valid_manifest_id(str(uuid.uuid4()))

    @pytest.mark.parametrize("value", ["", "not-a-uuid", "../../etc/passwd", None, 42])
    def test_invalid(self, value):
        """Test that non-UUID values are rejected."""
        assert not is_valid_manifest_id(value)


class TestManifestStore:
    """Tests for ManifestStore."""

    def test_create_and_load(self, store):
        """Test that a created manifest loads back verified."""
        manifest_id = store.create_manifest("batch", [move_action()])

        manifest = store.load(manifest_id)

        assert manifest.id == manifest_id
        assert manifest.description == "batch"
        assert len(manifest.actions) == 1
        assert manifest.actions[0].original_path == Path("/in/a.txt")
        assert manifest.actions[0].current_path == Path("/out/a.txt")
        assert manifest.version == "1.0"

    def test_file_layout(self, store):
        """Test the on-disk record uses camelCase field names."""
        manifest_id = store.create_manifest("batch", [move_action()])

        record = json.loads(store.path_for(manifest_id).read_text())

        assert store.path_for(manifest_id).name == f"{manifest_id}.json"
        assert set(record) == {"id", "timestamp", "description", "actions", "version", "hash", "signature"}
        action = record["actions"][0]
        assert action["type"] == "move"
        assert action["originalPath"] == str(Path("/in/a.txt"))
        assert action["currentPath"] == str(Path("/out/a.txt"))
        assert "backupPath" not in action

    def test_no_temp_files_left(self, store):
        """Test that the atomic write leaves only the final file."""
        store.create_manifest("batch", [move_action()])

        assert [p.suffix for p in store.manifest_dir.iterdir()] == [".json"]

    def test_load_missing(self, store):
        """Test loading an id that was never stored."""
        with pytest.raises(ManifestNotFoundError):
            store.load(str(uuid.uuid4()))

    def test_invalid_id_rejected_before_io(self, store):
        """Test that a malformed id never reaches the filesystem."""
        with patch("builtins.open") as mock_open:
            with pytest.raises(ValidationError):
                store.load("../../etc/passwd")

        mock_open.assert_not_called()

    def test_tampered_file_rejected(self, store):
        """Test that an edited action fails verification."""
        manifest_id = store.create_manifest("batch", [move_action()])
        path = store.path_for(manifest_id)
        record = json.loads(path.read_text())
        record["actions"][0]["currentPath"] = "/somewhere/else"
        path.write_text(json.dumps(record))

        with pytest.raises(IntegrityError):
            store.load(manifest_id)

    def test_unparseable_file(self, store):
        """Test that invalid JSON is a persistence error."""
        manifest_id = store.create_manifest("batch", [move_action()])
        store.path_for(manifest_id).write_text("{not json")

        with pytest.raises(PersistenceError):
            store.load(manifest_id)

    def test_write_failure(self, store):
        """Test that a failed write raises and leaves no temp file."""
        with patch("fileshift.rollback.manifest.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(PersistenceError):
                store.create_manifest("batch", [move_action()])

        assert list(store.manifest_dir.iterdir()) == []

    def test_list_newest_first(self, store):
        """Test that listing sorts by manifest timestamp, newest first."""
        older = str(uuid.uuid4())
        newer = str(uuid.uuid4())
        store.save(older, "older", [move_action()], timestamp=1_000)
        store.save(newer, "newer", [move_action()], timestamp=2_000)

        listing = store.list_manifests()

        assert [m.id for m in listing.manifests] == [newer, older]
        assert listing.corrupt == []

    def test_list_reports_corrupt(self, store):
        """Test that a bad file is reported instead of raising."""
        good = store.create_manifest("good", [move_action()])
        bad = store.create_manifest("bad", [move_action()])
        path = store.path_for(bad)
        record = json.loads(path.read_text())
        record["description"] = "edited"
        path.write_text(json.dumps(record))

        listing = store.list_manifests()

        assert [m.id for m in listing.manifests] == [good]
        assert [c.file for c in listing.corrupt] == [f"{bad}.json"]
        assert "signature mismatch" in listing.corrupt[0].reason

    def test_list_without_directory(self, store):
        """Test listing before any manifest was written."""
        listing = store.list_manifests()

        assert listing.manifests == []
        assert not store.manifest_dir.exists()

    def test_delete(self, store):
        """Test that delete removes the manifest and tolerates a repeat."""
        manifest_id = store.create_manifest("batch", [move_action()])

        store.delete(manifest_id)
        store.delete(manifest_id)

        with pytest.raises(ManifestNotFoundError):
            store.load(manifest_id)

    def test_manifest_from_other_key_rejected(self, store):
        """Test that a manifest signed with another key is refused."""
        foreign = ManifestStore(store.manifest_dir, HmacSha256Integrity("another-host"))
        manifest_id = foreign.create_manifest("batch", [move_action()])

        with pytest.raises(IntegrityError):
            store.load(manifest_id)


class TestBatchJournal:
    """Tests for BatchJournal."""

    def test_no_manifest_until_first_record(self, store):
        """Test that an empty journal writes nothing."""
        journal = BatchJournal(store, "batch")

        assert journal.manifest_id is None
        assert not store.manifest_dir.exists()

    def test_same_id_updated(self, store):
        """Test that every record rewrites the same manifest."""
        journal = BatchJournal(store, "batch")

        journal.record(move_action("a.txt"))
        first_id = journal.manifest_id
        journal.record(move_action("b.txt"))

        assert journal.manifest_id == first_id
        manifest = store.load(first_id)
        assert [a.original_path.name for a in manifest.actions] == ["a.txt", "b.txt"]
        assert manifest.description == "batch (2 files)"
        assert len(os.listdir(store.manifest_dir)) == 1

    def test_failed_write_keeps_action(self, store):
        """Test that an action survives a failed write and is saved next time."""
        journal = BatchJournal(store, "batch")
        journal.record(move_action("a.txt"))

        with patch.object(store, "save", side_effect=PersistenceError("disk full")):
            with pytest.raises(PersistenceError):
                journal.record(move_action("b.txt"))

        journal.record(move_action("c.txt"))

        manifest = store.load(journal.manifest_id)
        assert [a.original_path.name for a in manifest.actions] == ["a.txt", "b.txt", "c.txt"]
