"""Locating and running the user's editor."""

from __future__ import annotations

import shlex
import shutil
import subprocess
from pathlib import Path
from typing import NamedTuple, Optional

from .config import Settings
from .errors import EditorError
from .shell import info


class Editor(NamedTuple):
    """An editor executable plus the arguments that go before the file."""

    path: str
    args: tuple[str, ...] = ()


def determine_editor(settings: Settings) -> Optional[Editor]:
    """Find an editor to open the release spec with.

    $EDITOR is tried first (it may carry arguments, e.g. "code --wait");
    then VS Code, which needs --wait to block until the file is closed.

    Returns:
        The editor, or None if nothing usable is installed.
    """
    if settings.editor:
        command, *args = shlex.split(settings.editor) or [""]
        path = shutil.which(command) if command else None
        if path is not None:
            return Editor(path, tuple(args))
        info(f"Could not resolve executable {settings.editor}, falling back to VS Code")

    path = shutil.which("code")
    if path is not None:
        return Editor(path, ("--wait",))
    return None


def wait_for_edit(editor: Editor, file_path: Path) -> None:
    """Open a file in the editor and block until the editor exits.

    Raises:
        EditorError: If the editor cannot be started or exits non-zero.
    """
    info(f"Waiting for {file_path.name} to be edited...")
    try:
        result = subprocess.run([editor.path, *editor.args, str(file_path)])
    except OSError as exc:
        raise EditorError(
            f"Encountered an error while waiting for the release spec to be edited: {exc}"
        ) from exc
    if result.returncode != 0:
        raise EditorError(
            "Encountered an error while waiting for the release spec to be edited: "
            f"{editor.path} exited with code {result.returncode}"
        )
