import logging
import sqlite3
from typing import Sequence

from .errors import PersistError, UnknownProject
from .models import ScannedFile

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Replaces a project's persisted file list with a fresh scan result.

    The store must provide ``project_exists(project_id)`` and
    ``replace_all(project_id, files)``; the latter is expected to run as a
    single transaction. Nothing is ever merged: after a successful call the
    store holds exactly ``files`` for the project.
    """

    def __init__(self, store):
        self.store = store

    def replace_files(self, project_id: int, files: Sequence[ScannedFile]) -> None:
        files = list(files)
        logger.info("Storing %d files for project %s", len(files), project_id)

        try:
            exists = self.store.project_exists(project_id)
        except sqlite3.Error as e:
            raise PersistError(f"Failed to check if project exists: {e}") from e

        if not exists:
            err = UnknownProject(project_id)
            logger.error(str(err))
            raise err

        try:
            self.store.replace_all(project_id, files)
        except sqlite3.Error as e:
            logger.error("Error storing files for project %s: %s", project_id, e)
            raise PersistError(f"Error storing files in database: {e}") from e

        logger.info("Successfully stored %d files for project %s", len(files), project_id)
