import os
import sys
from pathlib import Path
from dataclasses import dataclass

# Lil helper to create a directory (and its parents) if it's missing. Returns the path for chaining.
def ensure_directory(path: Path):
    path.mkdir(parents=True,exist_ok=True)
    return path

# Picks the per-user data folder. LOADTIMER_HOME always wins, then APPDATA (Windows), then a dotfolder in home.
def resolve_data_root() -> Path:
    override = os.getenv("LOADTIMER_HOME")
    if override:
        return Path(override)
    appdata = os.getenv("APPDATA")
    if appdata:
        return Path(appdata) / "LoadTimer"
    return Path.home() / ".loadtimer"

# Where the install lives. Frozen builds sit next to their exe, source checkouts two levels above this file.
def resolve_install_root() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parents[2]

# Dataclass for accessing paths across program.
@dataclass(frozen=True)
class ProjectPaths:

    root: Path       # install folder, read-only at runtime
    assets: Path     # bundled sounds; may be missing, which only silences the cue

    data: Path       # per-user folder
    logs: Path
    current: Path    # live storage.json

    @property
    def cue_sound(self):
        return self.assets / "timer-beep.wav"

    @staticmethod
    def build():
        root = resolve_install_root()
        data = ensure_directory(resolve_data_root())
        return ProjectPaths(
            root = root,
            assets = root / "assets",
            data = data,
            logs = ensure_directory(data / "logs"),
            current = ensure_directory(data / "current"),
        )
PATHS = ProjectPaths.build()
