"""
Single-document store with monotonic versions.

The server tracks exactly one active document. A replacement is applied
only when its version is newer than the stored one so that updates
delivered out of order can never overwrite fresher text.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Document:
    uri: str
    text: str
    version: int
    language_id: str


class DocumentStore:
    def __init__(self) -> None:
        self._document: Document | None = None

    def replace(
        self,
        text: str,
        version: int,
        uri: str | None = None,
        language_id: str | None = None,
    ) -> bool:
        """
        Store ``text`` at ``version`` if it is newer than the current document.

        ``uri`` and ``language_id`` default to the current document's values.
        The version check ignores the uri: this store models one document.

        Returns:
            True if the replacement was applied, False for a stale version.
        """
        current = self._document
        if current is not None and version <= current.version:
            return False

        self._document = Document(
            uri=uri if uri is not None else (current.uri if current else ""),
            text=text,
            version=version,
            language_id=(
                language_id
                if language_id is not None
                else (current.language_id if current else "")
            ),
        )
        return True

    def current(self) -> Document | None:
        return self._document

    def close(self, uri: str) -> bool:
        """Forget the document if ``uri`` is the active one."""
        if self._document is None or self._document.uri != uri:
            return False
        self._document = None
        return True
