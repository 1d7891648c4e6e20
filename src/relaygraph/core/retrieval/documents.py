"""Document loading and chunking for retrieval workflows."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from relaygraph.core.logging import get_logger, LogComponent

logger = get_logger(LogComponent.RETRIEVAL)


class Document(BaseModel):
    """A piece of text plus where it came from."""
    page_content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


def load_markdown_documents(folder: Union[str, Path]) -> List[Document]:
    """Load every `*.md` file in `folder`, sorted by file name.

    Raises:
        FileNotFoundError: If `folder` does not exist or is not a directory
    """
    path = Path(folder)
    if not path.is_dir():
        raise FileNotFoundError(f"Context folder not found: {path}")

    docs = [
        Document(
            page_content=file.read_text(encoding="utf-8"),
            metadata={"source": file.name},
        )
        for file in sorted(path.glob("*.md"), key=lambda p: p.name)
        if file.is_file()
    ]
    logger.info(f"Loaded {len(docs)} markdown documents from {path}")
    return docs


class RecursiveCharacterSplitter:
    """Split text on progressively finer separators until chunks fit.

    The text is cut on the first separator that occurs in it; pieces still
    longer than `chunk_size` are split again with the remaining separators.
    Small pieces are merged back into chunks of at most `chunk_size`
    characters, consecutive chunks sharing up to `chunk_overlap` characters.

    Attributes:
        chunk_size: Maximum chunk length in characters
        chunk_overlap: Maximum overlap between consecutive chunks
        separators: Separators tried in order; "" splits into characters
    """

    def __init__(
        self,
        chunk_size: int = 800,
        chunk_overlap: int = 100,
        separators: Optional[Sequence[str]] = None
    ) -> None:
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators) if separators is not None else ["\n\n", "\n", " ", ""]

    def split_text(self, text: str) -> List[str]:
        return self._split(text, self.separators)

    def split_documents(self, docs: Sequence[Document]) -> List[Document]:
        """Chunk each document; chunks carry a copy of their source metadata."""
        chunks = [
            Document(page_content=chunk, metadata=dict(doc.metadata))
            for doc in docs
            for chunk in self.split_text(doc.page_content)
        ]
        logger.debug(f"Split {len(docs)} documents into {len(chunks)} chunks")
        return chunks

    def _split(self, text: str, separators: List[str]) -> List[str]:
        separator = separators[-1]
        remaining: List[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1:]
                break

        pieces = text.split(separator) if separator else list(text)
        pieces = [p for p in pieces if p != ""]

        chunks: List[str] = []
        fitting: List[str] = []
        for piece in pieces:
            if len(piece) < self.chunk_size:
                fitting.append(piece)
                continue
            if fitting:
                chunks.extend(self._merge(fitting, separator))
                fitting = []
            if remaining:
                chunks.extend(self._split(piece, remaining))
            else:
                chunks.append(piece)
        if fitting:
            chunks.extend(self._merge(fitting, separator))
        return chunks

    def _merge(self, pieces: List[str], separator: str) -> List[str]:
        sep_len = len(separator)
        chunks: List[str] = []
        current: List[str] = []
        total = 0

        for piece in pieces:
            extra = sep_len if current else 0
            if total + len(piece) + extra > self.chunk_size and current:
                chunk = separator.join(current).strip()
                if chunk:
                    chunks.append(chunk)
                # Drop from the front until the overlap fits and the next piece does too
                while total > self.chunk_overlap or (
                    total > 0 and total + len(piece) + (sep_len if current else 0) > self.chunk_size
                ):
                    total -= len(current[0]) + (sep_len if len(current) > 1 else 0)
                    current = current[1:]
            current.append(piece)
            total += len(piece) + (sep_len if len(current) > 1 else 0)

        chunk = separator.join(current).strip()
        if chunk:
            chunks.append(chunk)
        return chunks
