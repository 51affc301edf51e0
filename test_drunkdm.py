#!/usr/bin/env python3
"""
Drunk DM application tests
Rolls go through a scripted random source into an in-memory vault
"""

import logging
import threading
import time

import pytest

import drunkdm
from config_manager import ConfigurationManager, DrunkDMConfig
from drunkdm import DrunkDM, configure_logging, format_roll_line, main
from drunkdm_commands import ScriptedRandomSource, UserPrompt
from note_store import MemoryDocumentStore


class FakePrompt(UserPrompt):
    def __init__(self, *answers):
        self.answers = list(answers)
        self.labels = []

    def ask(self, label):
        self.labels.append(label)
        return self.answers.pop(0) if self.answers else None


def make_app(values=(), answers=(), documents=None, config_manager=None):
    messages = []
    store = MemoryDocumentStore({"session": "# Session"} if documents is None else documents)
    app = DrunkDM(
        DrunkDMConfig(),
        store,
        prompt=FakePrompt(*answers),
        config_manager=config_manager,
        random_factory=lambda: ScriptedRandomSource(values),
        notify=messages.append,
    )
    return app, store, messages


def test_format_roll_line():
    assert format_roll_line("2d6+1", 9) == "Rolled 2d6+1: 9"


class TestRollFromPrompt:

    def test_roll_appends_and_notifies(self):
        app, store, messages = make_app(values=[4], answers=["1d6"])
        result = app.roll_from_prompt()
        assert result.total == 4
        assert store.documents["session"] == "# Session\nRolled 1d6: 4"
        assert messages == ["Rolled 1d6: 4"]
        assert app.prompt.labels == ["Enter Dice Roll (e.g., 1d6, 2d10)"]

    def test_expression_is_normalized_in_note(self):
        app, store, _ = make_app(values=[12], answers=[" D20 "])
        app.roll_from_prompt()
        assert store.documents["session"].endswith("Rolled 1d20: 12")

    def test_cancel_does_nothing(self):
        app, store, messages = make_app(answers=[None])
        assert app.roll_from_prompt() is None
        assert store.documents["session"] == "# Session"
        assert messages == []

    def test_invalid_expression_notifies(self):
        app, store, messages = make_app(answers=["banana"])
        assert app.roll_from_prompt() is None
        assert store.documents["session"] == "# Session"
        assert messages[0].startswith("Could not roll 'banana'")

    def test_missing_note_notifies_and_does_not_create(self):
        app, store, messages = make_app(values=[4], answers=["1d6"], documents={})
        app.roll_from_prompt()
        assert store.documents == {}
        assert "File session.md not found" in messages

    def test_rolls_in_order(self):
        app, store, _ = make_app(values=[3], answers=["1d6", "1d6"])
        app.roll_from_prompt()
        app.roll_from_prompt()
        assert store.documents["session"] == "# Session\nRolled 1d6: 3\nRolled 1d6: 3"


class TestHandleLine:

    def test_plain_expression_rolls(self):
        app, store, messages = make_app(values=[3, 4])
        result = app.handle_line("2d6+1")
        assert result.details["total"] == 8
        assert result.details["appended"] is True
        assert store.documents["session"] == "# Session\nRolled 2d6+1: 8"
        assert messages == [result.summary]

    def test_roll_command(self):
        app, store, _ = make_app(values=[17])
        app.handle_line("/roll d20")
        assert store.documents["session"].endswith("Rolled 1d20: 17")

    def test_bare_roll_command_uses_prompt(self):
        app, store, _ = make_app(values=[2], answers=["1d4"])
        app.handle_line("/r")
        assert store.documents["session"].endswith("Rolled 1d4: 2")

    def test_empty_line_opens_prompt(self):
        app, store, _ = make_app(values=[5], answers=["1d8"])
        assert app.handle_line("   ") is None
        assert store.documents["session"].endswith("Rolled 1d8: 5")

    def test_invalid_expression_not_appended(self):
        app, store, messages = make_app()
        result = app.handle_line("banana")
        assert result.is_error
        assert "appended" not in result.details
        assert store.documents["session"] == "# Session"
        assert messages[0].startswith("[error]")

    def test_missing_note_reported(self):
        app, _, messages = make_app(values=[6], documents={})
        result = app.handle_line("1d6")
        assert result.details["appended"] is False
        assert messages[0] == "File session.md not found"

    def test_unknown_command(self):
        app, _, messages = make_app()
        assert app.handle_line("/bogus 1") is None
        assert messages == ["Unknown command: /bogus (type /help)"]

    def test_help_lists_commands(self):
        app, _, messages = make_app()
        app.handle_line("/help")
        text = "\n".join(messages)
        assert "/roll" in text
        assert "/file" in text
        assert "/files" in text

    def test_quit(self):
        app, _, _ = make_app()
        app.running = True
        app.handle_line("quit")
        assert app.running is False

    def test_file_command_changes_target(self):
        app, store, messages = make_app(values=[1], documents={"session": "", "npcs": "# NPCs"})
        app.handle_line("/file npcs.md")
        assert app.settings.current_file == "npcs"
        assert "settings not saved" in messages[-1]
        app.handle_line("1d6")
        assert store.documents["npcs"] == "# NPCs\nRolled 1d6: 1"
        assert store.documents["session"] == ""

    def test_files_command(self):
        app, _, messages = make_app(documents={"session": "", "npcs": ""})
        app.handle_line("/ls")
        assert messages == ["  npcs\n* session"]


class SlowStore(MemoryDocumentStore):
    """Widens the gap between read and write"""

    def read(self, doc_id):
        text = super().read(doc_id)
        time.sleep(0.02)
        return text


class ReadOnlyStore(MemoryDocumentStore):
    def write(self, doc_id, text):
        raise PermissionError(13, "Permission denied", f"{doc_id}.md")


class TestAddToCurrentFile:

    def test_concurrent_appends_keep_every_line(self):
        app, _, _ = make_app()
        app.store = SlowStore({"session": "start"})
        threads = [
            threading.Thread(target=app.add_to_current_file, args=(f"line {i}",))
            for i in range(5)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        lines = app.store.documents["session"].split("\n")
        assert lines[0] == "start"
        assert sorted(lines[1:]) == [f"line {i}" for i in range(5)]

    def test_write_error_is_reported(self):
        app, _, messages = make_app()
        app.store = ReadOnlyStore({"session": "# Session"})
        assert app.add_to_current_file("Rolled 1d6: 4") is False
        assert messages[0].startswith("Could not write to session.md")
        assert app.store.documents["session"] == "# Session"

    def test_write_error_does_not_stop_the_loop(self):
        app, _, messages = make_app(values=[4])
        app.store = ReadOnlyStore({"session": "# Session"})
        inputs = iter(["1d6", "1d6", "quit"])
        app.run(input_func=lambda prompt: next(inputs))
        assert sum(m.startswith("Could not write") for m in messages) == 2

    def test_huge_literal_from_prompt_is_reported(self):
        app, store, messages = make_app(answers=["2d" + "9" * 5000])
        assert app.roll_from_prompt() is None
        assert messages[0].startswith("Could not roll")
        assert store.documents["session"] == "# Session"


class TestSettings:

    @pytest.fixture
    def manager(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        manager = ConfigurationManager()
        manager.load_config(str(tmp_path / "drunkdm.yaml"))
        return manager

    def test_save_without_manager(self):
        app, _, _ = make_app()
        assert app.save_settings() is False

    def test_file_command_persists(self, manager, tmp_path):
        app, _, messages = make_app(config_manager=manager)
        app.handle_line("/file campaign")
        assert messages[-1] == "Current file set to campaign.md (file does not exist yet)"
        reloaded = ConfigurationManager().load_config(str(tmp_path / "drunkdm.yaml"))
        assert reloaded.settings.current_file == "campaign"

    def test_load_settings(self, manager, tmp_path):
        (tmp_path / "drunkdm.yaml").write_text("settings:\n  current_file: other\n", encoding="utf-8")
        app, _, _ = make_app(config_manager=manager)
        assert app.load_settings().current_file == "other"
        assert app.current_file_name == "other.md"


class TestTerminal:

    def test_run_until_quit(self):
        app, store, messages = make_app(values=[6])
        inputs = iter(["1d6", "quit", "1d6"])
        app.run(input_func=lambda prompt: next(inputs))
        assert store.documents["session"] == "# Session\nRolled 1d6: 6"
        assert app.running is False

    def test_run_until_eof(self):
        app, _, _ = make_app()

        def eof(prompt):
            raise EOFError

        app.run(input_func=eof)
        assert app.running is False

    def test_roll_once(self, capsys):
        app, store, _ = make_app(values=[2, 5])
        assert app.roll_once("2d6") == 0
        assert "= 7" in capsys.readouterr().out
        assert store.documents["session"].endswith("Rolled 2d6: 7")

    def test_roll_once_invalid(self, capsys):
        app, _, _ = make_app()
        assert app.roll_once("2d") == 2
        assert capsys.readouterr().err.startswith("Error:")

    def test_roll_once_missing_note(self):
        app, _, _ = make_app(values=[2], documents={})
        assert app.roll_once("1d6") == 1


class TestMain:

    @pytest.fixture
    def vault(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.setattr(drunkdm, "configure_logging", lambda *args, **kwargs: None)
        notes = tmp_path / "notes"
        notes.mkdir()
        (notes / "session.md").write_text("# Session", encoding="utf-8")
        return notes

    def test_one_shot_roll(self, vault):
        assert main(["--vault", str(vault), "--seed", "3", "2d6", "+", "1"]) == 0
        lines = (vault / "session.md").read_text(encoding="utf-8").splitlines()
        assert lines[0] == "# Session"
        assert lines[1].startswith("Rolled 2d6+1: ")

    def test_seeded_rolls_repeat(self, vault):
        main(["--vault", str(vault), "--seed", "3", "10d20"])
        main(["--vault", str(vault), "--seed", "3", "10d20"])
        lines = (vault / "session.md").read_text(encoding="utf-8").splitlines()
        assert lines[1] == lines[2]

    def test_invalid_config_exit_code(self, vault):
        assert main(["--vault", str(vault / "missing"), "1d6"]) == 1

    def test_create_config_exit_code(self, vault, tmp_path):
        assert main(["--create-config", "sample.yaml"]) == 0
        assert (tmp_path / "sample.yaml").exists()


class TestConfigureLogging:

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_default_levels(self):
        configure_logging()
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert root.handlers[0].level == logging.WARNING

    def test_verbose(self):
        configure_logging(verbose=True)
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger().handlers[0].level == logging.DEBUG

    def test_quiet(self):
        configure_logging(quiet=True)
        assert logging.getLogger().handlers[0].level == logging.ERROR

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "drunkdm.log"
        configure_logging(log_file=str(log_file))
        logging.getLogger("drunkdm").info("Rolling dice: 1d6")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "Rolling dice: 1d6" in log_file.read_text(encoding="utf-8")
