"""Timer settings dialog for LoadTimer."""

from PySide6.QtCore import Qt
from PySide6.QtGui import QFont
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QVBoxLayout,
)
from lt.core.models import COUNTDOWN_CHOICES, TimerSettings
from lt.util import WEIGHT_UNITS

# Small modal dialog behind the gear button. Opens on the current values; the MainWindow reads the chosen_*
# attributes after it's accepted and pushes each change through the table controller.
class SettingsDialog(QDialog):

    def __init__(self, parent, settings: TimerSettings, weight_unit: str, font_family="Calibri"):
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.setModal(True)

        # Output attributes, read by MainWindow after dialog closes
        self.chosen_sound_enabled = settings.sound_enabled
        self.chosen_countdown = settings.countdown_threshold
        self.chosen_weight_unit = weight_unit

        outer = QVBoxLayout(self)
        form = QFormLayout()

        self._sound_chk = QCheckBox("Beep while closing in on the last set")
        self._sound_chk.setChecked(settings.sound_enabled)
        form.addRow("Sound", self._sound_chk)

        self._countdown_cb = QComboBox()
        for seconds in COUNTDOWN_CHOICES:
            self._countdown_cb.addItem(f"{seconds} seconds", seconds)
        self._countdown_cb.setCurrentIndex(COUNTDOWN_CHOICES.index(settings.countdown_threshold))
        form.addRow("Countdown", self._countdown_cb)

        self._unit_cb = QComboBox()
        for unit in WEIGHT_UNITS:
            self._unit_cb.addItem(unit, unit)
        self._unit_cb.setCurrentIndex(WEIGHT_UNITS.index(weight_unit) if weight_unit in WEIGHT_UNITS else 0)
        form.addRow("Weight unit", self._unit_cb)

        outer.addLayout(form)

        hint = QLabel("Weights are shown converted; what you typed is what gets stored.")
        hint.setFont(QFont(font_family, 9))
        hint.setStyleSheet("color: #888888;")
        hint.setWordWrap(True)
        outer.addWidget(hint)

        # Bottom row: Cancel + Apply
        btn_row = QHBoxLayout()
        btn_row.addStretch(1)
        cancel_btn = QPushButton("Cancel")
        cancel_btn.clicked.connect(self.reject)
        btn_row.addWidget(cancel_btn)
        apply_btn = QPushButton("Apply")
        apply_btn.setDefault(True)
        apply_btn.clicked.connect(self._apply)
        btn_row.addWidget(apply_btn)
        outer.addLayout(btn_row, 0)

        self.setWindowFlags(self.windowFlags() & ~Qt.WindowContextHelpButtonHint)

    def _apply(self):
        self.chosen_sound_enabled = self._sound_chk.isChecked()
        self.chosen_countdown = self._countdown_cb.currentData()
        self.chosen_weight_unit = self._unit_cb.currentData()
        self.accept()
