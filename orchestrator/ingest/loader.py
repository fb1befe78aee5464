# Document loader for the knowledge base. No embeddings, no vector index, no chunking.
# Supports .md, .txt, .pdf, .xlsx, .xls. Single place for "file/bytes -> text".

import io
import logging
import re
from pathlib import Path

from orchestrator.core.config import ALLOWED_EXTENSIONS, DATA_DIR
from orchestrator.services.retrieval_service import SourceDocument
from orchestrator.services.text_processing import clean_text

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ALLOWED_EXTENSIONS

_H1_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_MARKDOWN_RULES = (
    (re.compile(r"```[a-zA-Z0-9_-]*\n?"), ""),      # code fence markers (keep code)
    (re.compile(r"`([^`]+)`"), r"\1"),               # inline code
    (re.compile(r"^#{1,6}\s+", re.MULTILINE), ""),   # headers
    (re.compile(r"^[ \t]*[-*+]\s+", re.MULTILINE), ""),  # bullet lists
    (re.compile(r"^[ \t]*\d+\.\s+", re.MULTILINE), ""),  # numbered lists
    (re.compile(r"^>\s+", re.MULTILINE), ""),        # blockquotes
    (re.compile(r"\*\*([^*\n]+)\*\*"), r"\1"),       # bold
    (re.compile(r"\*([^*\n]+)\*"), r"\1"),           # italic
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),   # links
    (re.compile(r"\n{3,}"), "\n\n"),
)


def bytes_to_text(raw: bytes, filename: str) -> str:
    """
    Convert raw file bytes to text by extension. Single source of truth for
    .md, .txt, .pdf, .xlsx, .xls parsing.
    """
    ext = Path(filename).suffix.lower() if filename else ""
    if ext == ".pdf":
        return _read_pdf(raw)
    if ext in (".xlsx", ".xls"):
        return _read_excel(raw)
    return raw.decode("utf-8", errors="replace")


def _read_pdf(raw: bytes) -> str:
    from pypdf import PdfReader
    reader = PdfReader(io.BytesIO(raw))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _read_excel(raw: bytes) -> str:
    import pandas as pd
    df = pd.read_excel(io.BytesIO(raw), sheet_name=None, header=None)
    parts = []
    for sheet_df in df.values():
        parts.append(sheet_df.astype(str).to_csv(sep=" ", index=False, header=False))
    return "\n\n".join(parts)


def extract_title(text: str, filename: str) -> str:
    """First '# ' heading, else the file name with dashes/underscores as spaces, title-cased."""
    match = _H1_RE.search(text)
    if match:
        return match.group(1).strip()
    stem = Path(filename).stem
    return " ".join(w.capitalize() for w in re.split(r"[-_\s]+", stem) if w)


def preprocess_markdown(text: str) -> str:
    """Strip markdown syntax so embeddings see prose rather than markup."""
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def load_document(path: Path) -> SourceDocument | None:
    """Read one file into a SourceDocument. Returns None for empty files."""
    raw = path.read_bytes()
    text = bytes_to_text(raw, path.name)
    title = extract_title(text, path.name)
    if path.suffix.lower() == ".md":
        text = preprocess_markdown(text)
    content = clean_text(text)
    if not content:
        logger.info("[loader] skip empty file %s", path.name)
        return None
    return SourceDocument(source=path.name, content=content, title=title)


def load_directory(directory: str | Path = DATA_DIR) -> list[SourceDocument]:
    """Load every supported file directly under directory, sorted by name."""
    root = Path(directory)
    if not root.is_dir():
        logger.warning("[loader] data directory %s does not exist", root)
        return []
    documents: list[SourceDocument] = []
    for path in sorted(root.iterdir()):
        if not path.is_file() or path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            continue
        try:
            document = load_document(path)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read %s: %s", path.name, e)
            continue
        if document is not None:
            documents.append(document)
            logger.info("[loader] loaded %s title=%r chars=%d", path.name, document.title, len(document.content))
    logger.info("[loader] OUT directory=%s documents=%d", root, len(documents))
    return documents
