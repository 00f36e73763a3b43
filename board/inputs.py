"""Deal files: frontmatter parsing into InputPackage, plus inbox scanning and archive logic."""

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any

import frontmatter

from board.models import Document, InputPackage, Source
from board.orchestrator import InputLoader

logger = logging.getLogger(__name__)


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    """Create inbox and archive directories if they don't exist."""
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Return all .md deal files in inbox_dir, oldest first."""
    return sorted(inbox_dir.glob("*.md"), key=lambda p: p.stat().st_mtime)


def archive_file(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move a processed deal file to archive_dir with a timestamp prefix.

    Failed files additionally get a "FAILED_" prefix.
    """
    timestamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = "FAILED_" if failed else ""
    dest = archive_dir / f"{prefix}{timestamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest


def _parse_sources(raw: Any, file_path: Path) -> tuple[Source, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError(f"{file_path.name}: 'sources' must be a list")
    sources: list[Source] = []
    for item in raw:
        if isinstance(item, str):
            sources.append(Source(source=item, reliability="medium"))
            continue
        if not isinstance(item, dict) or "source" not in item:
            raise ValueError(f"{file_path.name}: each source needs a 'source' key")
        sources.append(Source(
            source=str(item["source"]),
            reliability=str(item.get("reliability", "medium")),
            data_points=tuple(str(p) for p in item.get("data_points") or ()),
        ))
    return tuple(sources)


def _parse_documents(raw: Any, body: str, file_path: Path) -> tuple[Document, ...]:
    documents: list[Document] = []
    if body:
        documents.append(Document(name=file_path.name, type="deal_memo", extracted_text=body))
    if raw is None:
        return tuple(documents)
    if not isinstance(raw, list):
        raise ValueError(f"{file_path.name}: 'documents' must be a list")
    for item in raw:
        if not isinstance(item, dict) or "name" not in item:
            raise ValueError(f"{file_path.name}: each document needs a 'name' key")
        text = item.get("text")
        if text is None and item.get("path"):
            # Relative paths resolve against the deal file's folder
            doc_path = file_path.parent / str(item["path"])
            text = doc_path.read_text(encoding="utf-8")
        documents.append(Document(
            name=str(item["name"]),
            type=str(item.get("type", "document")),
            extracted_text=text,
        ))
    return tuple(documents)


def _mapping(raw: Any, key: str, file_path: Path) -> dict[str, Any] | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"{file_path.name}: '{key}' must be a mapping")
    return dict(raw)


def load_deal_file(file_path: Path) -> InputPackage:
    """Parse a markdown deal file with YAML frontmatter into an InputPackage.

    Frontmatter keys (all optional): deal_id, deal_name, company_name,
    documents, sources, agent_outputs, enriched_data. The body becomes the
    first document. deal_id and deal_name default to the file stem.

    Raises:
        ValueError: If a frontmatter key has the wrong shape.
    """
    post = frontmatter.load(str(file_path))
    meta = dict(post.metadata)
    body = post.content.strip()

    deal_id = str(meta.get("deal_id") or file_path.stem)
    deal_name = str(meta.get("deal_name") or file_path.stem)
    package = InputPackage(
        deal_id=deal_id,
        deal_name=deal_name,
        company_name=str(meta.get("company_name") or deal_name),
        documents=_parse_documents(meta.get("documents"), body, file_path),
        agent_outputs=_mapping(meta.get("agent_outputs"), "agent_outputs", file_path) or {},
        enriched_data=_mapping(meta.get("enriched_data"), "enriched_data", file_path),
        sources=_parse_sources(meta.get("sources"), file_path),
    )
    logger.debug("Loaded deal %s from %s", deal_id, file_path)
    return package


def static_loader(*packages: InputPackage) -> InputLoader:
    """Build an input loader serving already-parsed packages by deal id."""
    by_id = {p.deal_id: p for p in packages}

    async def load(deal_id: str) -> InputPackage:
        try:
            return by_id[deal_id]
        except KeyError:
            raise KeyError(f"Unknown deal: {deal_id}") from None

    return load
