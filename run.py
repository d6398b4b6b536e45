#!/usr/bin/env python3
"""
ukutools - Ukulele tuner and metronome

A microphone tuner for standard GCEA tuning and a sample-accurate
click metronome in one window.
"""

import argparse
import cProfile
import sys
import time

# Import ONLY PyQt6 essentials first (fast)
t_pyqt = time.perf_counter()
from PyQt6.QtWidgets import QApplication

print(
    f"[Startup] GUI framework loaded (+{(time.perf_counter() - t_pyqt) * 1000:.0f} ms). "
    "Initializing application...",
    flush=True,
)


def print_devices() -> int:
    from audio_devices import DeviceError
    from sounddevice_backend import list_devices

    try:
        devices = list_devices()
    except DeviceError as e:
        print(f"Could not query audio devices: {e}", file=sys.stderr)
        return 1
    for d in devices:
        print(
            f"[{d['index']:2d}] {d['name']}  in={d['inputs']} out={d['outputs']} "
            f"rate={d['default_samplerate']:.0f}"
        )
    return 0


def run_app(app_argv: list[str], log_level: str | None = None) -> int:
    app = QApplication(app_argv)
    app.setStyle("Fusion")

    print("[Startup] Loading audio and analysis modules...", flush=True)
    t_main = time.perf_counter()

    # Heavy modules (numpy, scipy, pyqtgraph, sounddevice) load here
    from logging_utils import set_log_level
    from main import ToolsWindow

    print(
        f"[Startup] Loaded main module (+{(time.perf_counter() - t_main) * 1000:.0f} ms)",
        flush=True,
    )

    window = ToolsWindow()
    if log_level:
        # Command line wins over the saved config
        set_log_level(log_level)

    print("\nInitialization complete. Starting GUI...\n", flush=True)
    window.show()

    return app.exec()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run ukutools")
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="Print available audio devices and exit",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override the logging level stored in the config file",
    )
    parser.add_argument(
        "--profile",
        action="store_true",
        help="Enable cProfile and save stats to --profile-out",
    )
    parser.add_argument(
        "--profile-out",
        default="profile.prof",
        help="Path to save cProfile stats (default: profile.prof)",
    )
    args = parser.parse_args()

    if args.list_devices:
        sys.exit(print_devices())

    # Keep Qt argument list clean; avoid passing our flags downstream
    app_argv = [sys.argv[0]]

    if args.profile:
        profiler = cProfile.Profile()
        profiler.enable()
        exit_code = run_app(app_argv, args.log_level)
        profiler.disable()
        profiler.dump_stats(args.profile_out)
    else:
        exit_code = run_app(app_argv, args.log_level)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
