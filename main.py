"""
ukutools - Main Application
Qt window hosting the ukulele tuner and the metronome.
"""

import sys

from PyQt6.QtCore import QObject, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QBrush, QColor, QPainter, QPen
from PyQt6.QtWidgets import (
    QApplication, QCheckBox, QGroupBox, QHBoxLayout, QLabel, QMainWindow,
    QPushButton, QSpinBox, QVBoxLayout, QWidget
)
from typing import Optional

import numpy as np
# PyQtGraph for the live waveform
import pyqtgraph as pg
pg.setConfigOptions(antialias=False, useOpenGL=False)

from audio_devices import DeviceError
from config import BPM_MAX, BPM_MIN
from config_persistence import load_config, save_config
from logging_utils import log_event, set_log_level
from metronome import Metronome, MetronomeReading
from sounddevice_backend import SoundDeviceCapture, SoundDevicePlayback
from tuner import TunerReading, TunerStateMachine
from ui_wiring import (
    beat_indicator_states,
    indicator_color,
    indicator_position,
    metronome_button_text,
    note_text,
    tuner_buttons_state,
    tuner_status_line,
    CENTS_METER_RANGE,
)


class SignalBridge(QObject):
    """Bridge for thread-safe signal emission"""
    tuner_updated = pyqtSignal(object)
    metronome_updated = pyqtSignal(object)


class CentsMeter(QWidget):
    """Horizontal meter: centre line plus a needle at the clamped cents offset."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setMinimumHeight(32)
        self._cents = 0.0
        self._active = False

    def set_value(self, cents: float, active: bool) -> None:
        self._cents = cents
        self._active = active
        self.update()

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        rect = self.rect().adjusted(1, 1, -1, -1)
        painter.setPen(QPen(QColor('#444444'), 1))
        painter.setBrush(QBrush(QColor('#1a1a1a')))
        painter.drawRoundedRect(rect, rect.height() / 2, rect.height() / 2)

        centre_x = rect.center().x()
        painter.setPen(QPen(QColor('#888888'), 1))
        painter.drawLine(centre_x, rect.top(), centre_x, rect.bottom())

        if not self._active:
            return
        span = rect.width() / 2 - 6
        x = centre_x + span * indicator_position(self._cents) / CENTS_METER_RANGE
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(QColor(indicator_color(self._cents))))
        painter.drawRoundedRect(int(x) - 5, rect.top() + 3, 10, rect.height() - 6, 4, 4)


class WaveformCanvas(pg.PlotWidget):
    """Most recent analysis frame."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setBackground('#111111')
        self.setYRange(-1.0, 1.0)
        self.hideAxis('bottom')
        self.getAxis('left').setTextPen(pg.mkPen('#888888'))
        self.setMouseEnabled(x=False, y=False)
        self.curve = self.plot(pen=pg.mkPen(QColor(100, 200, 255), width=1))

    def show_samples(self, samples: Optional[np.ndarray]) -> None:
        if samples is None:
            self.curve.setData([])
            return
        self.curve.setData(samples)


class ToolsWindow(QMainWindow):
    """Main application window"""

    def __init__(self):
        super().__init__()
        self.setWindowTitle("ukutools")
        self.setMinimumSize(420, 560)

        self.config = load_config()
        set_log_level(self.config.log_level)
        self.signals = SignalBridge()

        audio = self.config.audio
        self.capture = SoundDeviceCapture(
            device_index=audio.input_device_index,
            sample_rate=audio.sample_rate,
            block_size=audio.input_block_size,
        )
        self.playback = SoundDevicePlayback(
            device_index=audio.output_device_index,
            sample_rate=audio.sample_rate,
            block_size=audio.output_block_size,
        )
        self.tuner = TunerStateMachine(
            self.capture, self.config.tuner, frame_size=audio.frame_size,
            on_update=self.signals.tuner_updated.emit,
        )
        self.metronome = Metronome(
            self.playback, self.config.metronome, self.config.click,
            on_change=self.signals.metronome_updated.emit,
        )

        self._setup_ui()

        self.signals.tuner_updated.connect(self._on_tuner_update)
        self.signals.metronome_updated.connect(self._on_metronome_update)
        self._on_tuner_update(self.tuner.reading)
        self._on_metronome_update(self.metronome.reading)

        # Waveform refresh (30 FPS); detection runs on the tuner's own task
        self.update_timer = QTimer()
        self.update_timer.timeout.connect(self._update_waveform)
        self.update_timer.start(33)

    def _setup_ui(self):
        central = QWidget()
        layout = QVBoxLayout(central)
        layout.addWidget(self._build_tuner_panel())
        layout.addWidget(self._build_metronome_panel())
        self.setCentralWidget(central)

    def _build_tuner_panel(self) -> QGroupBox:
        box = QGroupBox("Ukulele Tuner")
        layout = QVBoxLayout(box)

        self.tuner_error_label = QLabel("")
        self.tuner_error_label.setStyleSheet("color: #ff6666;")
        self.tuner_error_label.setWordWrap(True)
        self.tuner_error_label.hide()
        layout.addWidget(self.tuner_error_label)

        self.tuner_status_label = QLabel("")
        self.tuner_status_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.tuner_status_label)

        self.note_label = QLabel("")
        self.note_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.note_label.setStyleSheet("font-size: 64px; font-weight: bold; color: #FFE600;")
        layout.addWidget(self.note_label)

        self.cents_label = QLabel("")
        self.cents_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.cents_label)

        self.cents_meter = CentsMeter()
        layout.addWidget(self.cents_meter)

        self.waveform = WaveformCanvas()
        self.waveform.setMinimumHeight(100)
        layout.addWidget(self.waveform)

        buttons = QHBoxLayout()
        self.tuner_start_btn = QPushButton("Start Tuner")
        self.tuner_start_btn.clicked.connect(self._on_tuner_start)
        self.tuner_stop_btn = QPushButton("Stop Tuner")
        self.tuner_stop_btn.clicked.connect(self._on_tuner_stop)
        buttons.addWidget(self.tuner_start_btn)
        buttons.addWidget(self.tuner_stop_btn)
        layout.addLayout(buttons)
        return box

    def _build_metronome_panel(self) -> QGroupBox:
        box = QGroupBox("Ukulele Metronome")
        layout = QVBoxLayout(box)

        self.metronome_error_label = QLabel("")
        self.metronome_error_label.setStyleSheet("color: #ff6666;")
        self.metronome_error_label.hide()
        layout.addWidget(self.metronome_error_label)

        bpm_row = QHBoxLayout()
        self.bpm_down_btn = QPushButton("−")
        self.bpm_down_btn.clicked.connect(lambda: self._adjust_bpm(-1))
        self.bpm_spin = QSpinBox()
        self.bpm_spin.setRange(BPM_MIN, BPM_MAX)
        self.bpm_spin.setSuffix(" BPM")
        self.bpm_spin.setValue(self.metronome.bpm)
        self.bpm_spin.valueChanged.connect(self._on_bpm_spin)
        self.bpm_up_btn = QPushButton("+")
        self.bpm_up_btn.clicked.connect(lambda: self._adjust_bpm(1))
        bpm_row.addWidget(self.bpm_down_btn)
        bpm_row.addWidget(self.bpm_spin)
        bpm_row.addWidget(self.bpm_up_btn)
        layout.addLayout(bpm_row)

        beats_row = QHBoxLayout()
        self.beat_lamps: list[QLabel] = []
        for beat in range(1, self.config.metronome.beats_per_bar + 1):
            lamp = QLabel(str(beat))
            lamp.setAlignment(Qt.AlignmentFlag.AlignCenter)
            lamp.setFixedSize(36, 36)
            beats_row.addWidget(lamp)
            self.beat_lamps.append(lamp)
        layout.addLayout(beats_row)

        self.accent_checkbox = QCheckBox("Accent beat 1")
        self.accent_checkbox.setChecked(self.config.click.accent_downbeat)
        self.accent_checkbox.toggled.connect(self._on_accent_toggle)
        layout.addWidget(self.accent_checkbox)

        self.metronome_btn = QPushButton(metronome_button_text(False))
        self.metronome_btn.clicked.connect(self._on_metronome_toggle)
        layout.addWidget(self.metronome_btn)
        return box

    # Tuner
    def _on_tuner_start(self):
        try:
            self.tuner.start()
        except DeviceError:
            # Reading already carries the error message
            pass

    def _on_tuner_stop(self):
        self.tuner.stop()

    def _on_tuner_update(self, reading: TunerReading):
        buttons = tuner_buttons_state(reading.state)
        self.tuner_start_btn.setEnabled(buttons.start_enabled)
        self.tuner_stop_btn.setEnabled(buttons.stop_enabled)
        self.tuner_status_label.setText(tuner_status_line(reading))
        self.note_label.setText(note_text(reading))
        self.cents_label.setText(f"{reading.cents:+.1f} cents" if reading.note else "")
        self.cents_meter.set_value(reading.cents, reading.note is not None)
        if reading.error:
            self.tuner_error_label.setText(reading.error)
            self.tuner_error_label.show()
        else:
            self.tuner_error_label.hide()

    def _update_waveform(self):
        session = self.tuner.session
        frame = session.latest_frame() if session is not None else None
        self.waveform.show_samples(frame.samples if frame is not None else None)

    # Metronome
    def _ensure_playback(self) -> bool:
        try:
            self.playback.open()
            return True
        except DeviceError as e:
            self._show_metronome_error(str(e))
            return False

    def _on_metronome_toggle(self):
        if not self.metronome.running and not self._ensure_playback():
            return
        try:
            self.metronome.toggle()
        except DeviceError as e:
            self._show_metronome_error(str(e))

    def _adjust_bpm(self, steps: int):
        try:
            self.metronome.adjust_bpm(steps)
        except DeviceError as e:
            self._show_metronome_error(str(e))

    def _on_bpm_spin(self, value: int):
        try:
            self.metronome.set_bpm(value)
        except DeviceError as e:
            self._show_metronome_error(str(e))

    def _on_accent_toggle(self, checked: bool):
        try:
            self.metronome.set_accent(checked)
        except DeviceError as e:
            self._show_metronome_error(str(e))

    def _show_metronome_error(self, message: str):
        log_event("ERROR", "UI", "Metronome error", error=message)
        self.metronome_error_label.setText(message)
        self.metronome_error_label.show()

    def _on_metronome_update(self, reading: MetronomeReading):
        if self.bpm_spin.value() != reading.bpm:
            self.bpm_spin.blockSignals(True)
            self.bpm_spin.setValue(reading.bpm)
            self.bpm_spin.blockSignals(False)
        self.metronome_btn.setText(metronome_button_text(reading.running))
        for lamp, lit in zip(self.beat_lamps, beat_indicator_states(reading.current_beat_index,
                                                                    len(self.beat_lamps))):
            color = '#FF00C8' if lit else '#1a1a1a'
            lamp.setStyleSheet(f"background-color: {color}; border-radius: 18px; font-weight: bold;")
        if reading.error:
            self.metronome_error_label.setText(reading.error)
            self.metronome_error_label.show()
        elif reading.running:
            self.metronome_error_label.hide()

    def closeEvent(self, event):
        """Stop both tools and release devices before the window goes away"""
        self.update_timer.stop()
        self.tuner.stop()
        self.metronome.stop()
        self.playback.close()

        self.config.metronome.bpm = self.metronome.bpm
        self.config.click.accent_downbeat = self.accent_checkbox.isChecked()
        save_config(self.config)

        event.accept()


def main():
    """Main entry point - backup if not launched via run.py"""
    app = QApplication(sys.argv)
    app.setStyle('Fusion')
    window = ToolsWindow()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
