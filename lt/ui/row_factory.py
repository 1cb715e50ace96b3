from typing import Any
from collections.abc import Callable
from PySide6.QtCore import Qt
from PySide6.QtGui import QDoubleValidator, QFont
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QWidget,
)
from lt.core.models import Exercise
from lt.util import format_time, format_weight

NAME_WIDTH = 150
WEIGHT_WIDTH = 70
TIME_WIDTH = 80
COUNTDOWN_WIDTH = 70
LAST_WIDTH = 130

RUNNING_STYLE = "color: #1a7f37; font-weight: bold;"
COUNTDOWN_STYLE = "color: #cf222e; font-weight: bold;"


# Formats the weight input's text. None means the input is blank.
def weight_text(weight):
    if weight is None:
        return ""
    if isinstance(weight, float) and weight.is_integer():
        weight = int(weight)
    return str(weight)


# Last recorded set as "210lbs x 2:05", or a dash when there is no history.
def last_session_text(exercise: Exercise, unit):
    last = exercise.last_session
    if last is None:
        return "-"
    seconds = last.time_under_load if last.time_under_load is not None else 0
    return f"{format_weight(last.weight, unit)} x {format_time(seconds)}"


# Purely organizational class to group functions that build rows for the exercise table. Each builder returns a
# (container, widget_dict) tuple. The container is a QWidget with objectName "rowBg" that can be inserted into the
# grid, and widget_dict maps logical names to sub-widgets for later updates.
class RowFactory:

    @staticmethod
    # Column titles, aligned with the widths used by exercise rows.
    def header(font_family: str):
        container = QWidget()
        container.setObjectName("rowBg")
        layout = QHBoxLayout(container)
        layout.setContentsMargins(0, 0, 0, 0)

        font = QFont(font_family)
        font.setBold(True)
        for text, width in (("Exercise", NAME_WIDTH), ("Weight", WEIGHT_WIDTH), ("Timer", TIME_WIDTH),
                            ("", COUNTDOWN_WIDTH), ("Last set", LAST_WIDTH)):
            lbl = QLabel(text)
            lbl.setFont(font)
            lbl.setFixedWidth(width)
            layout.addWidget(lbl)
        layout.addStretch(1)
        return container, {"container": container}

    @staticmethod
    # Given an exercise and the live table state, this method builds it into a single exercise row.
    def exercise(font_family: str,
                 exercise: Exercise,
                 weight,
                 weight_unit: str,
                 running: bool,
                 elapsed: int,
                 countdown: int | None,
                 on_start_stop: Callable[..., Any],
                 on_weight: Callable[..., Any],
                 on_remove: Callable[..., Any]):
        name = exercise.name

        row_container = QWidget()
        row_container.setObjectName("rowBg")
        row_container_layout = QHBoxLayout(row_container)
        row_container_layout.setContentsMargins(0, 0, 0, 0)

        # Col 0: name
        name_lbl = QLabel(name)
        name_font = QFont(font_family)
        name_font.setBold(running)
        name_lbl.setFont(name_font)
        name_lbl.setAlignment(Qt.AlignLeft | Qt.AlignVCenter)
        name_lbl.setFixedWidth(NAME_WIDTH)
        row_container_layout.addWidget(name_lbl)

        # Col 1: weight input. Only editingFinished is wired so a half-typed "2." isn't pushed on every keystroke
        weight_edit = QLineEdit(weight_text(weight))
        weight_edit.setPlaceholderText(weight_unit)
        weight_edit.setFixedWidth(WEIGHT_WIDTH)
        validator = QDoubleValidator(0.0, 10000.0, 2, weight_edit)
        validator.setNotation(QDoubleValidator.StandardNotation)
        weight_edit.setValidator(validator)
        weight_edit.editingFinished.connect(lambda: on_weight(name, weight_edit.text()))
        row_container_layout.addWidget(weight_edit)

        # Col 2: start/stop, showing the elapsed time while running
        time_btn = QPushButton(format_time(elapsed) if running else "Start")
        time_btn.setFixedWidth(TIME_WIDTH)
        if running:
            time_btn.setStyleSheet(RUNNING_STYLE)
        time_btn.clicked.connect(lambda _=False: on_start_stop(name))
        row_container_layout.addWidget(time_btn)

        # Col 3: countdown, only inside the alert window
        countdown_lbl = QLabel(f"{countdown}s to go" if countdown is not None else "")
        countdown_lbl.setFixedWidth(COUNTDOWN_WIDTH)
        countdown_lbl.setStyleSheet(COUNTDOWN_STYLE)
        row_container_layout.addWidget(countdown_lbl)

        # Col 4: last session
        last_lbl = QLabel(last_session_text(exercise, weight_unit))
        last_lbl.setFixedWidth(LAST_WIDTH)
        row_container_layout.addWidget(last_lbl)

        row_container_layout.addStretch(1)

        # Col 5: delete
        x_btn = QPushButton("X")
        x_btn.setFixedWidth(28)
        x_btn.clicked.connect(lambda _=False: on_remove(name))
        row_container_layout.addWidget(x_btn)

        widget_dict = {
            "name": name_lbl, "weight": weight_edit,
            "time": time_btn, "countdown": countdown_lbl,
            "last": last_lbl, "x": x_btn,
            "container": row_container,
        }
        return row_container, widget_dict
