#!/usr/bin/env python3
"""
Note store tests
"""

import pytest

from note_store import (
    DocumentNotFoundError,
    MemoryDocumentStore,
    VaultDocumentStore,
    append_line,
)


@pytest.fixture
def vault(tmp_path):
    (tmp_path / "session.md").write_text("# Session 1", encoding="utf-8")
    (tmp_path / "npcs.md").write_text("", encoding="utf-8")
    (tmp_path / "readme.txt").write_text("not a note", encoding="utf-8")
    (tmp_path / "archive").mkdir()
    (tmp_path / "archive" / "old.md").write_text("old", encoding="utf-8")
    return VaultDocumentStore(tmp_path)


class TestVaultDocumentStore:

    def test_read(self, vault):
        assert vault.read("session") == "# Session 1"

    def test_read_missing(self, vault):
        with pytest.raises(DocumentNotFoundError) as excinfo:
            vault.read("nothing")
        assert str(excinfo.value) == "File nothing.md not found"

    def test_missing_is_a_key_error(self, vault):
        with pytest.raises(KeyError):
            vault.read("nothing")

    def test_exists(self, vault):
        assert vault.exists("session")
        assert not vault.exists("nothing")
        assert not vault.exists("readme")

    def test_subfolder_notes(self, vault):
        assert vault.read("archive/old") == "old"

    def test_write_creates_note_and_folders(self, vault, tmp_path):
        vault.write("campaign/one", "hello")
        assert (tmp_path / "campaign" / "one.md").read_text(encoding="utf-8") == "hello"

    def test_list_documents_is_flat_and_sorted(self, vault):
        assert vault.list_documents() == ["npcs", "session"]

    def test_list_missing_folder(self, tmp_path):
        assert VaultDocumentStore(tmp_path / "gone").list_documents() == []

    @pytest.mark.parametrize("name", ["../outside", "archive/../../outside", "/etc/passwd"])
    def test_path_escape_refused(self, vault, name):
        with pytest.raises(ValueError, match="escape"):
            vault.exists(name)

    def test_empty_name_refused(self, vault):
        with pytest.raises(ValueError):
            vault.read("  ")

    def test_custom_extension(self, tmp_path):
        (tmp_path / "log.txt").write_text("x", encoding="utf-8")
        store = VaultDocumentStore(tmp_path, extension=".txt")
        assert store.list_documents() == ["log"]
        assert store.display_name("log") == "log.txt"


class TestStripExtension:

    def test_strips_matching_extension(self):
        store = MemoryDocumentStore()
        assert store.strip_extension("session.md") == "session"
        assert store.strip_extension(" Session.MD ") == "Session"

    def test_leaves_other_names(self):
        store = MemoryDocumentStore()
        assert store.strip_extension("session") == "session"
        assert store.strip_extension("notes.txt") == "notes.txt"


class TestAppendLine:

    def test_appends_on_new_line(self):
        store = MemoryDocumentStore({"session": "# Session"})
        append_line(store, "session", "Rolled 1d6: 4")
        assert store.documents["session"] == "# Session\nRolled 1d6: 4"

    def test_appends_to_empty_note(self):
        store = MemoryDocumentStore({"session": ""})
        append_line(store, "session", "Rolled 1d6: 4")
        assert store.documents["session"] == "\nRolled 1d6: 4"

    def test_successive_appends_keep_order(self, vault, tmp_path):
        append_line(vault, "session", "Rolled 1d20: 12")
        append_line(vault, "session", "Rolled 2d6+1: 9")
        text = (tmp_path / "session.md").read_text(encoding="utf-8")
        assert text == "# Session 1\nRolled 1d20: 12\nRolled 2d6+1: 9"

    def test_missing_note_not_created(self):
        store = MemoryDocumentStore()
        with pytest.raises(DocumentNotFoundError):
            append_line(store, "session", "Rolled 1d6: 4")
        assert store.documents == {}
