import sys
from PySide6.QtCore import QTimer
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QVBoxLayout,
    QWidget,
)
from lt.common.errors import DuplicateExercise, InvalidExerciseName, InvalidSetting
from lt.common.logger import log
from lt.core.audio import AudioCue
from lt.core.clock import QtClock
from lt.core.config import LocalStorage, Preferences
from lt.core.table import (
    EVENT_CUE,
    EVENT_EXERCISES,
    EVENT_SETTINGS,
    EVENT_TICK,
    EVENT_TIMER,
    EVENT_WARNING,
    ExerciseTableController,
)
from lt.store.select import open_store
from lt.ui.dialogs.settings import SettingsDialog
from lt.ui.row_factory import RowFactory
from lt.util import format_time

FONT_FAMILY = "Calibri"
WARNING_STYLE = "background-color: #fff8c5; color: #7d4e00; padding: 4px;"


# ---------------------------------------------------------------------------
# Main window
# ---------------------------------------------------------------------------

# Main window of LoadTimer. A thin shell: every button and input goes straight to the table controller, and the
# window redraws whenever the controller says something changed.
class MainWindow(QMainWindow):

    def __init__(self, store, owner, storage: LocalStorage):
        super().__init__()
        self.setWindowTitle("LoadTimer")

        # -- Controller --
        self.clock = QtClock(self)
        self.controller = ExerciseTableController(
            store=store,
            owner=owner,
            preferences=Preferences(storage),
            clock=self.clock,
            cue=AudioCue(),
        )
        self.controller.subscribe(self._on_controller_event)

        self._widgets = {}   # exercise name -> widget dict

        # -- Build UI skeleton --
        central = QWidget()
        self.setCentralWidget(central)
        self._main_lay = QVBoxLayout(central)

        self._warning_lbl = QLabel("")
        self._warning_lbl.setStyleSheet(WARNING_STYLE)
        self._warning_lbl.setWordWrap(True)
        self._warning_lbl.setVisible(False)
        self._main_lay.addWidget(self._warning_lbl)

        header, _ = RowFactory.header(FONT_FAMILY)
        self._main_lay.addWidget(header)

        self._grid_widget = QWidget()
        self._grid = QVBoxLayout(self._grid_widget)
        self._grid.setContentsMargins(0, 0, 0, 0)
        self._main_lay.addWidget(self._grid_widget)

        self._main_lay.addLayout(self._build_footer())

        # load() notifies, which draws the rows
        self.controller.load()
        QTimer.singleShot(0, self.adjustSize)

    def _build_footer(self):
        footer = QHBoxLayout()
        self._add_input = QLineEdit()
        self._add_input.setPlaceholderText("New exercise")
        self._add_input.returnPressed.connect(self._on_add)
        footer.addWidget(self._add_input, 1)

        add_btn = QPushButton("Add")
        add_btn.clicked.connect(self._on_add)
        footer.addWidget(add_btn)

        gear_btn = QPushButton("⚙")
        gear_btn.setFixedWidth(32)
        gear_btn.clicked.connect(self._open_settings)
        footer.addWidget(gear_btn)
        return footer

    # ------------------------------------------------------------------ #
    #  Redraw                                                              #
    # ------------------------------------------------------------------ #

    def _on_controller_event(self, event):
        if event == EVENT_TICK:
            self._update_running_row()
        elif event in (EVENT_EXERCISES, EVENT_TIMER, EVENT_SETTINGS):
            self._rebuild_rows()
        elif event == EVENT_WARNING:
            warning = self.controller.sync_warning
            self._warning_lbl.setText(warning or "")
            self._warning_lbl.setVisible(warning is not None)
        elif event == EVENT_CUE:
            self._update_running_row()

    def _rebuild_rows(self):
        while self._grid.count():
            item = self._grid.takeAt(0)
            if item.widget() is not None:
                item.widget().deleteLater()
        self._widgets = {}

        c = self.controller
        armed = c.armed_name
        for exercise in c.rows:
            running = exercise.name == armed
            container, widgets = RowFactory.exercise(
                FONT_FAMILY,
                exercise,
                weight=c.weights.get(exercise.name),
                weight_unit=c.weight_unit,
                running=running,
                elapsed=c.engine.elapsed if running else 0,
                countdown=c.countdown_remaining if running else None,
                on_start_stop=self._on_start_stop,
                on_weight=self._on_weight,
                on_remove=self._on_remove,
            )
            self._grid.addWidget(container)
            self._widgets[exercise.name] = widgets
        QTimer.singleShot(0, self.adjustSize)

    # Per-second update touches only the running row's labels, rebuilding everything would eat the weight input's focus
    def _update_running_row(self):
        c = self.controller
        widgets = self._widgets.get(c.armed_name)
        if widgets is None:
            return
        widgets["time"].setText(format_time(c.engine.elapsed))
        remaining = c.countdown_remaining
        widgets["countdown"].setText(f"{remaining}s to go" if remaining is not None else "")

    # ------------------------------------------------------------------ #
    #  Row actions                                                         #
    # ------------------------------------------------------------------ #

    def _on_start_stop(self, name):
        # Commit whatever is typed in the weight box before the set is recorded
        widgets = self._widgets.get(name)
        if widgets is not None:
            self.controller.on_weight_change(name, widgets["weight"].text())
        self.controller.on_start_stop(name)

    def _on_weight(self, name, text):
        if not self.controller.on_weight_change(name, text):
            log.debug(f"Ignored weight input '{text}' for '{name}'")

    def _on_add(self):
        try:
            self.controller.on_add_exercise(self._add_input.text())
        except (InvalidExerciseName, DuplicateExercise) as e:
            QMessageBox.warning(self, "Add Exercise", e.user_message)
            return
        self._add_input.clear()

    def _on_remove(self, name):
        if QMessageBox.question(self, "Confirm Delete", f"Delete '{name}' and all its sessions?") != QMessageBox.Yes:
            return
        self.controller.on_delete_exercise(name)

    def _open_settings(self):
        c = self.controller
        dlg = SettingsDialog(self, c.settings, c.weight_unit, FONT_FAMILY)
        if not dlg.exec():
            return
        try:
            if dlg.chosen_countdown != c.settings.countdown_threshold:
                c.set_countdown_threshold(dlg.chosen_countdown)
            if dlg.chosen_weight_unit != c.weight_unit:
                c.set_weight_unit(dlg.chosen_weight_unit)
            if dlg.chosen_sound_enabled != c.settings.sound_enabled:
                c.set_sound_enabled(dlg.chosen_sound_enabled)
        except InvalidSetting as e:
            QMessageBox.warning(self, "Settings", e.user_message)

    def closeEvent(self, event):
        try:
            self.controller.shutdown()
        except Exception:
            log.exception("Failed to shut down the exercise table cleanly")
        close = getattr(self.controller.store, "close", None)
        if close is not None:
            close()
        event.accept()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    app = QApplication(sys.argv)
    storage = LocalStorage()
    store, owner = open_store(storage)
    window = MainWindow(store, owner, storage)
    window.show()
    sys.exit(app.exec())
