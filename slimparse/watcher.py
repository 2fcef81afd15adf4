import logging
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import TemplateSyntaxError
from .nodes import dump_tree, count_newlines
from .parser import Parser

logger = logging.getLogger(__name__)


def trigger_reparse(write_pairs, parser):
    """Parses every source and writes its tree dump. Returns the syntax errors met, keyed by source."""
    errors = {}
    for (src, dst) in write_pairs.items():
        try:
            with open(src, "rb") as f:
                tree = Parser(parser.options, file=str(src)).parse(f.read())
        except TemplateSyntaxError as e:
            logger.error("Syntax error in %s:\n%s", src, e)
            errors[src] = e
            continue
        dst.parent.mkdir(parents=True, exist_ok=True)
        with open(dst, "w+") as f:
            f.write(dump_tree(tree))
        logger.info("Parsed %s -> %s (%d lines)", src, dst, count_newlines(tree))
    return errors


class ChangeHandler(FileSystemEventHandler):
    def __init__(self, files_to_watch, write_pairs=None, parser=None):
        self.files_to_watch = [x.resolve() for x in files_to_watch] # Sources + extra watch paths
        self.write_pairs = write_pairs or {}  # Dict {src: dst}
        self.parser = parser or Parser()
        logger.info("Handler initialized. Monitoring for changes...")

    def on_modified(self, event):
        if event.is_directory:
            return

        src_path_abs = Path(event.src_path).resolve()
        if src_path_abs in self.files_to_watch:
            logger.info("Detected modification in: %s", src_path_abs)
            trigger_reparse(self.write_pairs, self.parser)


def run_watcher(write_pairs, watch_paths, parser):
    """Sets up and runs the watchdog observer."""
    files_to_watch = set(write_pairs.keys()) | watch_paths
    dirs_to_watch = {p.resolve().parent for p in files_to_watch}

    if not dirs_to_watch:
        logger.error("No valid directories provided to watch.")
        return

    # Bring every dump up to date before waiting for changes
    trigger_reparse(write_pairs, parser)

    event_handler = ChangeHandler(files_to_watch, write_pairs=write_pairs, parser=parser)
    observer = Observer()

    scheduled_count = 0
    for dir_path in dirs_to_watch:
        if not dir_path.is_dir():
            logger.warning("Directory '%s' does not exist. Cannot watch.", dir_path)
            continue

        # Only events directly within the directory, not subdirectories
        observer.schedule(event_handler, str(dir_path), recursive=False)
        scheduled_count += 1
        logger.info("Scheduled watcher for directory: %s", dir_path)

    if scheduled_count == 0:
        logger.error("No watchers were successfully scheduled. Exiting.")
        return

    observer.start()
    logger.info("Watching for file changes in %d director%s. Press Ctrl+C to stop.",
                scheduled_count, 'y' if scheduled_count == 1 else 'ies')

    try:
        while observer.is_alive():
            observer.join(timeout=1)
    except KeyboardInterrupt:
        logger.info("Stopping watcher (Ctrl+C pressed)...")
    finally:
        if observer.is_alive():
            observer.stop()
        observer.join()
        logger.info("Watcher stopped completely.")
