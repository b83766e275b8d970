"""Key-value persistence for documents, credentials and generation metadata.

Stores expose ``get``/``set``/``subscribe``. Writes replace the whole value;
there is no cross-process atomicity and the last writer wins.
"""
from __future__ import annotations

import json
import logging
from typing import Callable, Dict, List, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from docforge.documents.models import (
    DOCUMENT_KEY,
    METADATA_KEY,
    DiagramUpdate,
    Document,
    GenerationMetadata,
    credential_key,
)
from docforge.documents.text import replace_literal, strip_diagram_fences
from docforge.storage.db import KeyValueEntry, make_session_factory


logger = logging.getLogger(__name__)

StoreListener = Callable[[str, str], None]


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def subscribe(self, listener: StoreListener) -> Callable[[], None]: ...


class _ListenerMixin:
    def __init__(self) -> None:
        self._listeners: List[StoreListener] = []

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, key: str, value: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, value)
            except Exception:
                logger.exception("Store listener failed", extra={"key": key})


class InMemoryStore(_ListenerMixin):
    """Dictionary-backed store, used in tests and for one-shot CLI runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        super().__init__()
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._notify(key, value)


class SqlKeyValueStore(_ListenerMixin):
    """SQLAlchemy-backed store."""

    def __init__(self, session_factory: sessionmaker) -> None:
        super().__init__()
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str) -> "SqlKeyValueStore":
        return cls(make_session_factory(database_url))

    def get(self, key: str) -> Optional[str]:
        with self._session_factory() as db:
            entry = db.get(KeyValueEntry, key)
            return entry.value if entry is not None else None

    def set(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            entry = db.get(KeyValueEntry, key)
            if entry is None:
                db.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
            db.commit()
        self._notify(key, value)


class DocumentStore:
    """Typed accessors over a ``KeyValueStore``."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def get_document(self) -> Optional[Document]:
        raw = self.store.get(DOCUMENT_KEY)
        if not raw:
            return None
        try:
            return Document.model_validate_json(raw)
        except ValidationError:
            logger.warning("Stored document is not valid JSON; ignoring it")
            return None

    def save_document(self, document: Document) -> None:
        self.store.set(DOCUMENT_KEY, document.to_json())

    def get_metadata(self) -> Optional[GenerationMetadata]:
        raw = self.store.get(METADATA_KEY)
        if not raw:
            return None
        try:
            return GenerationMetadata.model_validate_json(raw)
        except ValidationError:
            logger.warning("Stored generation metadata is malformed; ignoring it")
            return None

    def save_metadata(self, metadata: GenerationMetadata) -> None:
        self.store.set(METADATA_KEY, json.dumps(metadata.model_dump(by_alias=True)))

    def get_credential(self, provider: str) -> Optional[str]:
        value = self.store.get(credential_key(provider))
        if value is None or not value.strip():
            return None
        return value

    def save_credential(self, provider: str, api_key: str) -> None:
        self.store.set(credential_key(provider), api_key.strip())

    def apply_diagram_update(self, update: DiagramUpdate) -> bool:
        """Write a repaired diagram back into the stored document.

        Text-origin updates replace the first literal occurrence of the
        previous fenced block in ``text_content``. Visual-origin updates only
        touch ``visual_content``, keeping it unfenced when it was stored raw.
        Returns False when the previous diagram is no longer there.
        """
        current = self.get_document()
        if current is None:
            return False
        if update.origin == "text":
            text = replace_literal(current.text_content, update.previous, update.next)
            if text is None:
                return False
            updated = current.model_copy(update={"text_content": text})
        else:
            visual = current.visual_content or ""
            if not visual.strip() or strip_diagram_fences(visual) != strip_diagram_fences(update.previous):
                return False
            value = update.next if "```" in visual else strip_diagram_fences(update.next)
            updated = current.model_copy(update={"visual_content": value})
        self.save_document(updated)
        return True
