#!/usr/bin/env python3
"""
Note storage for Drunk DM
Documents are addressed by name without extension ("session" -> session.md)
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional


logger = logging.getLogger(__name__)


class DocumentNotFoundError(KeyError):
	"""Raised when a note does not exist"""

	def __init__(self, name: str):
		super().__init__(name)
		self.name = name

	def __str__(self) -> str:
		return f"File {self.name} not found"


class DocumentStore(ABC):
	"""Read/write access to text notes"""

	extension: str = ".md"

	@abstractmethod
	def read(self, doc_id: str) -> str:
		"""Return note text, raise DocumentNotFoundError if missing"""

	@abstractmethod
	def write(self, doc_id: str, text: str) -> None:
		"""Replace note text, creating the note if needed"""

	@abstractmethod
	def exists(self, doc_id: str) -> bool:
		...

	@abstractmethod
	def list_documents(self) -> List[str]:
		...

	def display_name(self, doc_id: str) -> str:
		return f"{doc_id}{self.extension}"

	def strip_extension(self, name: str) -> str:
		"""Accept 'session.md' as well as 'session'"""
		name = name.strip()
		if self.extension and name.lower().endswith(self.extension.lower()):
			name = name[:-len(self.extension)]
		return name


class VaultDocumentStore(DocumentStore):
	"""
	Notes stored as files in a single vault folder
	Paths are resolved inside the vault root; anything escaping it is refused
	"""

	def __init__(self, root, extension: str = ".md"):
		self.root = Path(root).expanduser()
		self.extension = extension
		self.logger = logging.getLogger(__name__)

	def _path(self, doc_id: str) -> Path:
		if not doc_id or not doc_id.strip():
			raise ValueError("Note name must not be empty")

		root = self.root.resolve()
		candidate = (root / f"{doc_id}{self.extension}").resolve()
		if root not in candidate.parents:
			raise ValueError(f"Illegal path escape attempt: {doc_id}")
		return candidate

	def exists(self, doc_id: str) -> bool:
		return self._path(doc_id).is_file()

	def read(self, doc_id: str) -> str:
		path = self._path(doc_id)
		if not path.is_file():
			raise DocumentNotFoundError(self.display_name(doc_id))
		return path.read_text(encoding="utf-8")

	def write(self, doc_id: str, text: str) -> None:
		path = self._path(doc_id)
		path.parent.mkdir(parents=True, exist_ok=True)
		path.write_text(text, encoding="utf-8")

	def list_documents(self) -> List[str]:
		"""Flat listing of notes in the vault root (no subfolders)"""
		if not self.root.is_dir():
			self.logger.error(f"Folder not found or is not a valid folder: {self.root}")
			return []
		return sorted(
			path.name[:-len(self.extension)] if self.extension else path.name
			for path in self.root.iterdir()
			if path.is_file() and path.name.endswith(self.extension)
		)


class MemoryDocumentStore(DocumentStore):
	"""Dict-backed store for tests and embedding"""

	def __init__(self, documents: Optional[Dict[str, str]] = None, extension: str = ".md"):
		self.documents = dict(documents or {})
		self.extension = extension

	def read(self, doc_id: str) -> str:
		if doc_id not in self.documents:
			raise DocumentNotFoundError(self.display_name(doc_id))
		return self.documents[doc_id]

	def write(self, doc_id: str, text: str) -> None:
		self.documents[doc_id] = text

	def exists(self, doc_id: str) -> bool:
		return doc_id in self.documents

	def list_documents(self) -> List[str]:
		return sorted(self.documents)


def append_line(store: DocumentStore, doc_id: str, content: str) -> None:
	"""
	Read-modify-write append of one line to a note

	Raises:
		DocumentNotFoundError: if the note does not exist
	"""
	data = store.read(doc_id)
	store.write(doc_id, f"{data}\n{content}")
	logger.info(f"Content added to file: {store.display_name(doc_id)}")
