# compliance_copilot/ingest/loaders.py

import logging
from pathlib import Path
from typing import Tuple, Union

from compliance_copilot.errors import UnsupportedDocument

_log = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".markdown", ".csv", ".json", ".yaml", ".yml"}
# Binary formats need an external decoder; they are not read here.
BINARY_SUFFIXES = {".pdf", ".docx", ".xlsx"}


def load_text_document(path: Union[str, Path]) -> Tuple[str, str]:
    """
    Read a text document from disk.

    Returns:
        (name, content) where name is the file name.

    Raises:
        UnsupportedDocument: binary or unknown file type, or undecodable bytes.
        FileNotFoundError: the path does not exist.
    """
    p = Path(path).expanduser()
    suffix = p.suffix.lower()
    if suffix in BINARY_SUFFIXES:
        raise UnsupportedDocument(
            f"{p.name}: {suffix} files need text extraction first; export the document to .txt or .md."
        )
    if suffix not in TEXT_SUFFIXES:
        raise UnsupportedDocument(f"{p.name}: unsupported file type '{suffix or '(none)'}'.")

    try:
        content = p.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise UnsupportedDocument(f"{p.name}: not valid UTF-8 text.") from exc

    _log.info("Loaded document %s (%d chars)", p.name, len(content))
    return p.name, content
