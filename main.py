import sys
import argparse
import logging

from PyQt6.QtCore import QCoreApplication, QTimer

from camviewer.managers import (ClipManager, ConfigurationManager, DependencyContainer,
                                ErrorHandler, LoggingManager)

logger = logging.getLogger("camviewer")


def log_uncaught_exceptions(exctype, value, tb):
    logging.critical("Uncaught exception", exc_info=(exctype, value, tb))

sys.excepthook = log_uncaught_exceptions


def build_parser():
    parser = argparse.ArgumentParser(
        prog="camviewer",
        description="Index dashcam storage and list the clips found.")
    parser.add_argument("roots", nargs="*", metavar="ROOT",
                        help="storage roots to scan (default: configured roots, then detected drives)")
    parser.add_argument("--debug", action="store_true", help="enable debug logging")
    parser.add_argument("--config-dir", metavar="DIR",
                        help="directory for settings and logs (default: ~/.camviewer)")
    return parser


def format_clip(clip):
    event = f"  [{clip.event.reason}]" if clip.event and clip.event.reason else ""
    return f"{clip.name:<24} {len(clip.chunks):>3} chunks  {clip.directory}{event}"


def print_index(index, out=sys.stdout):
    for root in index.roots:
        print(f"{root.path}: {len(root.clips)} clips", file=out)
    for issue in index.issues:
        print(f"warning: {issue}", file=out)
    if index.is_empty:
        print("No clips found", file=out)
        return
    for clip in index.clips:
        print(format_clip(clip), file=out)


def create_container(config_dir=None):
    """Create the shared services every manager looks up."""
    container = DependencyContainer()
    container.register_service('error_handler', ErrorHandler())

    config_manager = ConfigurationManager(container, base_dir=config_dir)
    container.register_service('configuration', config_manager)
    config_manager.initialize()

    logging_manager = LoggingManager(container)
    container.register_service('logging', logging_manager)
    logging_manager.initialize()

    clip_manager = ClipManager(container)
    container.register_service('clips', clip_manager)
    clip_manager.initialize()
    return container


def main(argv=None):
    try:
        args = build_parser().parse_args(argv)
    except SystemExit as e:
        return 1 if e.code else 0

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setOrganizationName("camviewer")
    app.setApplicationName("camviewer")

    container = create_container(args.config_dir)
    if args.debug:
        container.get_service('logging').set_debug_mode(True)

    clip_manager = container.get_service('clips')
    if args.roots:
        clip_manager.set_roots(args.roots)

    def on_completed(index):
        print_index(index)
        app.quit()

    def on_failed(message):
        print(f"error: {message}", file=sys.stderr)
        app.quit()

    clip_manager.signals.scan_progress.connect(lambda pct, msg: logger.debug(f"{pct}% {msg}"))
    clip_manager.signals.scan_completed.connect(on_completed)
    clip_manager.signals.scan_failed.connect(on_failed)

    def start():
        if not clip_manager.scan():
            app.quit()

    QTimer.singleShot(0, start)
    app.exec()

    container.get_service('logging').log_memory_usage()
    container.clear()
    return 0


if __name__ == '__main__':
    sys.exit(main())
