"""
Note commands (/file, /files).

/file shows or changes the note that rolls are appended to, and saves
the change straight away. /files lists the notes in the vault folder.

Both work against a host object that owns the settings and the store:

    host.settings.current_file   note name without extension
    host.save_settings()         persist settings, returns bool
    host.store                   a DocumentStore
"""

from __future__ import annotations

from drunkdm_commands.dispatcher import Command, CommandResult


class FileCommand(Command):
    """Show or set the current note file."""

    def __init__(self, host):
        self.host = host

    @property
    def name(self) -> str:
        return "file"

    @property
    def help_text(self) -> str:
        return "/file [name] - Show or set the note that rolls are appended to"

    def execute(self, args: str) -> CommandResult:
        store = self.host.store
        name = args.strip()

        if not name:
            current = self.host.settings.current_file
            return CommandResult(
                command=self.name,
                summary=f"Current file: {store.display_name(current)}",
                details={"current_file": current, "exists": store.exists(current)},
            )

        name = store.strip_extension(name)
        try:
            exists = store.exists(name)
        except ValueError as e:
            return CommandResult(command=self.name, summary="", error=str(e))

        self.host.settings.current_file = name
        saved = self.host.save_settings()

        summary = f"Current file set to {store.display_name(name)}"
        if not exists:
            summary += " (file does not exist yet)"
        if not saved:
            summary += " (settings not saved)"
        return CommandResult(
            command=self.name,
            summary=summary,
            details={"current_file": name, "exists": exists, "saved": saved},
        )


class FilesCommand(Command):
    """List notes in the vault. The current one is starred."""

    def __init__(self, host):
        self.host = host

    @property
    def name(self) -> str:
        return "files"

    @property
    def aliases(self) -> list[str]:
        return ["ls"]

    @property
    def help_text(self) -> str:
        return "/files - List notes in the vault folder"

    def execute(self, args: str) -> CommandResult:
        files = self.host.store.list_documents()
        if not files:
            return CommandResult(
                command=self.name,
                summary="No notes found",
                details={"files": []},
            )

        current = self.host.settings.current_file
        lines = [f"{'*' if name == current else ' '} {name}" for name in files]
        return CommandResult(
            command=self.name,
            summary="\n".join(lines),
            details={"files": files, "current_file": current},
        )
