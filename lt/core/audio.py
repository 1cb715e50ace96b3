"""Countdown cue playback.

Each play() gets its own QSoundEffect so a beep fired at second 9 keeps playing while the one for second 10 starts.
Nothing here is allowed to raise into the timer.
"""

from pathlib import Path
from lt.common.errors import AudioPlaybackFailed
from lt.common.logger import log
from lt.common.setup import PATHS

DEFAULT_CUE_PATH = PATHS.cue_sound
DEFAULT_VOLUME = 0.6


# Builds one QSoundEffect for one playback. `on_done(effect)` is called once it finishes or fails to load.
def qt_effect_factory(path: Path, on_done, volume=DEFAULT_VOLUME):
    from PySide6.QtCore import QUrl
    from PySide6.QtMultimedia import QSoundEffect

    effect = QSoundEffect()
    effect.setLoopCount(1)
    effect.setVolume(volume)

    def _on_status():
        if effect.status() == QSoundEffect.Status.Error:
            log.warning(f"Cue sound '{path}' could not be decoded")
            on_done(effect)

    def _on_playing():
        if not effect.isPlaying() and effect.status() == QSoundEffect.Status.Ready:
            on_done(effect)

    effect.statusChanged.connect(_on_status)
    effect.playingChanged.connect(_on_playing)
    effect.setSource(QUrl.fromLocalFile(str(path)))
    return effect


class AudioCue:

    def __init__(self, path: Path | None = None, effect_factory=None):
        self.path = Path(path) if path is not None else DEFAULT_CUE_PATH
        self._factory = effect_factory or qt_effect_factory
        # Effects currently playing. Holding the reference keeps them from being collected mid-beep.
        self._active = []
        self._warned_missing = False

    @property
    def active_count(self):
        return len(self._active)

    def play(self):
        effect = None
        try:
            if not self.path.is_file():
                raise AudioPlaybackFailed(f"Cue sound is missing: {self.path}")
            effect = self._factory(self.path, self._release)
            self._active.append(effect)
            effect.play()
        except AudioPlaybackFailed as e:
            # Missing asset would otherwise log every qualifying second
            if not self._warned_missing:
                log.warning(str(e))
                self._warned_missing = True
            return False
        except Exception:
            log.warning("Cue playback failed, continuing without sound", exc_info=True)
            if effect is not None:
                self._release(effect)
            return False
        return True

    def _release(self, effect):
        try:
            self._active.remove(effect)
        except ValueError:
            return
        delete_later = getattr(effect, "deleteLater", None)
        if delete_later is not None:
            delete_later()
