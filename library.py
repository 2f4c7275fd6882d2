from __future__ import annotations

import json
import logging
import os
import shutil
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from models import Book, books_from_json, books_to_json

logger = logging.getLogger(__name__)

APP_DATA_FILE = Path.home() / ".bibliofx.json"
DEFAULT_COLLECTION = "Library"
DEBOUNCE_SECONDS = 0.3

# Shapes a data file can take on disk.
SHAPE_DOCUMENT = "document"
SHAPE_LEGACY = "legacy"
SHAPE_INVALID = "invalid"


@dataclass(frozen=True)
class Document:
    """Snapshot of every collection plus the name of the current one.

    Snapshots are never mutated once published; each change builds a new one.
    """

    current: str
    libraries: Dict[str, List[Book]]

    @classmethod
    def fresh(cls) -> "Document":
        return cls(current=DEFAULT_COLLECTION, libraries={DEFAULT_COLLECTION: []})

    def to_json(self) -> Dict[str, Any]:
        return {
            "current": self.current,
            "libraries": {
                name: books_to_json(books) for name, books in self.libraries.items()
            },
        }


def decode_payload(payload: Any) -> Tuple[str, Document]:
    """Classify a parsed data file and build the matching document.

    A JSON object is the current format, a bare array is the single-collection
    format used by older releases. Anything else resets to a fresh document.
    """
    if isinstance(payload, dict):
        raw_libraries = payload.get("libraries")
        if not isinstance(raw_libraries, dict) or not raw_libraries:
            return SHAPE_INVALID, Document.fresh()
        libraries = {
            str(name): books_from_json(items) for name, items in raw_libraries.items()
        }
        current = payload.get("current")
        if current not in libraries:
            current = next(iter(libraries))
        return SHAPE_DOCUMENT, Document(current=current, libraries=libraries)
    if isinstance(payload, list):
        return SHAPE_LEGACY, Document(
            current=DEFAULT_COLLECTION,
            libraries={DEFAULT_COLLECTION: books_from_json(payload)},
        )
    return SHAPE_INVALID, Document.fresh()


def write_json_atomic(path: Path, payload: Any) -> None:
    """Write ``payload`` next to ``path`` and swap it into place.

    Readers see either the previous file or the complete new one.
    """
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False)
        handle.flush()
        os.fsync(handle.fileno())
    try:
        os.replace(tmp_path, path)
    except OSError:
        logger.warning("Atomic replace of %s failed; copying instead.", path)
        shutil.copyfile(tmp_path, path)
        tmp_path.unlink()


class DebouncedWriter:
    """Single background thread that owns disk writes.

    ``schedule`` records the latest snapshot and pushes the deadline back;
    the thread writes whatever is newest once the delay has passed quietly.
    """

    def __init__(
        self,
        write: Callable[[Document], None],
        delay: float = DEBOUNCE_SECONDS,
        *,
        name: str = "library-writer",
    ):
        self._write = write
        self.delay = delay
        self._condition = threading.Condition()
        self._write_lock = threading.Lock()
        self._pending: Optional[Document] = None
        self._deadline = 0.0
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def pending(self) -> bool:
        with self._condition:
            return self._pending is not None

    def schedule(self, snapshot: Document) -> None:
        with self._condition:
            self._pending = snapshot
            self._deadline = time.monotonic() + self.delay
            closed = self._closed
            self._condition.notify()
        if closed:
            self._drain()

    def flush(self) -> None:
        self._drain()

    def close(self) -> None:
        with self._condition:
            if self._closed:
                return
            self._closed = True
            self._condition.notify()
        self._thread.join()
        self._drain()

    def _run(self) -> None:
        while True:
            with self._condition:
                while not self._closed:
                    if self._pending is None:
                        self._condition.wait()
                        continue
                    remaining = self._deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    self._condition.wait(remaining)
                if self._closed:
                    return
            self._drain()

    def _drain(self) -> None:
        with self._write_lock:
            with self._condition:
                snapshot, self._pending = self._pending, None
            if snapshot is not None:
                self._write(snapshot)


class LibraryStore:
    """JSON-backed store for every named collection.

    Reads are served from an in-memory document loaded once at start-up.
    Mutations swap in a new document immediately and leave the disk write to
    a debounced background writer.
    """

    def __init__(self, path: Optional[Path] = None, *, debounce: Optional[float] = None):
        self.path = Path(path or APP_DATA_FILE)
        self._lock = threading.Lock()
        self._document = self._load_from_disk()
        self._writer = DebouncedWriter(
            self._write_document,
            DEBOUNCE_SECONDS if debounce is None else debounce,
        )

    # --------------------------------------------------------------------- #
    # Initialisation
    # --------------------------------------------------------------------- #
    def _load_from_disk(self) -> Document:
        if not self.path.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            document = Document.fresh()
            self._write_document(document)
            return document

        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as error:
            logger.warning("Could not read %s (%s); starting empty.", self.path, error)
            return Document.fresh()

        shape, document = decode_payload(payload)
        if shape == SHAPE_LEGACY:
            logger.info("Migrating single-collection data file %s.", self.path)
            self._write_document(document)
        elif shape == SHAPE_INVALID:
            logger.warning("Unexpected content in %s; resetting.", self.path)
            self._write_document(document)
        return document

    def _write_document(self, document: Document) -> None:
        try:
            write_json_atomic(self.path, document.to_json())
        except OSError:
            logger.exception("Failed to write %s", self.path)

    def _commit(self, document: Document) -> None:
        # Caller holds self._lock.
        self._document = document
        self._writer.schedule(document)

    # --------------------------------------------------------------------- #
    # Utility helpers
    # --------------------------------------------------------------------- #
    def flush(self) -> None:
        """Write any pending change now instead of waiting for the timer."""
        self._writer.flush()

    def close(self) -> None:
        self._writer.close()

    @property
    def has_pending_write(self) -> bool:
        return self._writer.pending

    # --------------------------------------------------------------------- #
    # Collections
    # --------------------------------------------------------------------- #
    def list_collections(self) -> List[str]:
        return list(self._document.libraries)

    def get_current_collection(self) -> str:
        return self._document.current

    def set_current_collection(self, name: str) -> None:
        with self._lock:
            document = self._document
            if name not in document.libraries:
                return
            self._commit(Document(current=name, libraries=document.libraries))

    def create_collection(self, name: Optional[str]) -> bool:
        """Add an empty collection and make it current."""
        if not name or not name.strip():
            return False
        with self._lock:
            document = self._document
            if name in document.libraries:
                return False
            libraries = dict(document.libraries)
            libraries[name] = []
            self._commit(Document(current=name, libraries=libraries))
        return True

    def rename_collection(self, old_name: Optional[str], new_name: Optional[str]) -> bool:
        """Rename a collection in place, keeping its position and its books."""
        if old_name is None or not new_name or not new_name.strip():
            return False
        with self._lock:
            document = self._document
            if old_name not in document.libraries or new_name in document.libraries:
                return False
            libraries = {
                (new_name if name == old_name else name): books
                for name, books in document.libraries.items()
            }
            current = new_name if document.current == old_name else document.current
            self._commit(Document(current=current, libraries=libraries))
        return True

    def delete_collection(self, name: Optional[str]) -> bool:
        """Remove a collection. The last remaining collection cannot be removed.

        Deleting the current collection makes the first remaining one current.
        """
        with self._lock:
            document = self._document
            if name not in document.libraries or len(document.libraries) <= 1:
                return False
            libraries = {
                key: books for key, books in document.libraries.items() if key != name
            }
            current = document.current
            if current == name:
                current = next(iter(libraries))
            self._commit(Document(current=current, libraries=libraries))
        return True

    # --------------------------------------------------------------------- #
    # Books
    # --------------------------------------------------------------------- #
    def load_collection(self, name: str) -> List[Book]:
        books = self._document.libraries.get(name, [])
        return [book.copy() for book in books]

    def save_collection(self, name: str, books: List[Book]) -> None:
        """Replace the stored books of ``name``, creating the collection if needed."""
        if not name or not name.strip():
            logger.warning("Refusing to save books under a blank collection name.")
            return
        snapshot = [book.copy() for book in books]
        with self._lock:
            document = self._document
            libraries = dict(document.libraries)
            libraries[name] = snapshot
            self._commit(Document(current=document.current, libraries=libraries))

    def load_current(self) -> List[Book]:
        return self.load_collection(self.get_current_collection())

    def save_current(self, books: List[Book]) -> None:
        self.save_collection(self.get_current_collection(), books)
