from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
import logging
from pathlib import Path
from .build import BuildOptions, build
from .errors import ProjectError
from .project import find_project_file, load_project

logger = logging.getLogger(__name__)


def trigger_rebuild(project_file, options):
    """Runs a full build, reporting instead of raising so the watcher keeps running."""
    try:
        return build(project_file, options)
    except ProjectError as e:
        logger.error("%s", e)
        return False


class ChangeHandler(FileSystemEventHandler):
    def __init__(self, project_file, options=None):
        self.project_file = Path(project_file).resolve()
        self.options = options or BuildOptions()
        self.base_path = self.project_file.parent
        self.output_path = load_project(self.project_file).output_path  # Our own writes land here
        logger.info("Handler initialized. Monitoring for changes...")

    def _is_source(self, path):
        if path == self.output_path or self.output_path in path.parents:
            return False
        return path == self.project_file or self.base_path in path.parents

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in ('modified', 'created', 'deleted', 'moved'):
            return

        src_path_abs = Path(event.src_path).resolve()
        if self._is_source(src_path_abs):
            logger.info("Detected %s: %s", event.event_type, src_path_abs)
            if self.project_file == src_path_abs:
                # Output directory may have moved
                try:
                    self.output_path = load_project(self.project_file).output_path
                except ProjectError as e:
                    logger.error("%s", e)
                    return
            trigger_rebuild(self.project_file, self.options)


def run_watcher(project_path, options=None):
    """Builds once, then rebuilds on every source change until interrupted."""
    project_file = find_project_file(project_path).resolve()
    options = options or BuildOptions()

    trigger_rebuild(project_file, options)

    event_handler = ChangeHandler(project_file, options)
    observer = Observer()
    # Watch the whole story directory; the handler filters out the output directory
    observer.schedule(event_handler, str(project_file.parent), recursive=True)
    observer.start()
    logger.info("Watching %s for changes. Press Ctrl+C to stop.", project_file.parent)

    try:
        while observer.is_alive():
            observer.join(timeout=1)  # Wait for observer thread, check status periodically
    except KeyboardInterrupt:
        logger.info("Stopping watcher (Ctrl+C pressed)...")
    finally:
        if observer.is_alive():
            observer.stop()
        # Wait for the observer thread to fully finish shutting down
        observer.join()
        logger.info("Watcher stopped.")
