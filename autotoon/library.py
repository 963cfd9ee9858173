# library.py
import json
import logging
import re
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from autotoon.models import LibraryItem, utc_now

logger = logging.getLogger(__name__)

SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
IMMUTABLE_FIELDS = {"id", "createdAt"}


class LibraryStore:
    """
    Saved comics, kept as JSON files under `root`:

        index.json    every item, in creation order
        <id>.json     one item per file
        pdfs/         exported PDFs referenced by `pdfPath`

    Both representations are written on every change. A crash between the
    two writes can leave them out of step; reads prefer the per-item file.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.index_file = self.root / "index.json"
        self.pdf_dir = self.root / "pdfs"

    def ensure_dirs(self):
        self.pdf_dir.mkdir(parents=True, exist_ok=True)

    def _item_file(self, item_id: str) -> Optional[Path]:
        if not SAFE_ID_RE.match(item_id or ""):
            return None
        return self.root / f"{item_id}.json"

    def _read_index(self) -> List[Dict[str, Any]]:
        try:
            data = json.loads(self.index_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return []
        return data if isinstance(data, list) else []

    def _write_index(self, index: List[Dict[str, Any]]):
        self.ensure_dirs()
        self.index_file.write_text(json.dumps(index, indent=2), encoding="utf-8")

    def _write_item(self, item: LibraryItem):
        self.ensure_dirs()
        self._item_file(item.id).write_text(
            item.model_dump_json(indent=2), encoding="utf-8")

    def list(self) -> List[LibraryItem]:
        items = []
        for raw in self._read_index():
            try:
                items.append(LibraryItem.model_validate(raw))
            except ValueError as e:
                logger.warning("Skipping malformed library entry: %s", e)
        return items

    def create(self, data: Dict[str, Any]) -> LibraryItem:
        now = utc_now()
        fields = {k: v for k, v in data.items() if k not in IMMUTABLE_FIELDS}
        fields.update(id=str(uuid.uuid4()), createdAt=now, updatedAt=now)
        if fields.get("images") and not fields.get("thumbnail"):
            fields["thumbnail"] = fields["images"][0]
        item = LibraryItem.model_validate(fields)

        index = self._read_index()
        index.append(item.model_dump())
        self._write_index(index)
        self._write_item(item)
        logger.info("Saved comic %s (%s) to library", item.id, item.title)
        return item

    def get(self, item_id: str) -> Optional[LibraryItem]:
        path = self._item_file(item_id)
        if path is None:
            return None
        try:
            return LibraryItem.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            pass
        for raw in self._read_index():
            if raw.get("id") == item_id:
                try:
                    return LibraryItem.model_validate(raw)
                except ValueError:
                    return None
        return None

    def update(self, item_id: str, patch: Dict[str, Any]) -> Optional[LibraryItem]:
        """Shallow-merge `patch` into the stored item. Raises ValidationError on bad fields."""
        current = self.get(item_id)
        if current is None:
            return None
        merged = current.model_dump()
        merged.update({k: v for k, v in patch.items() if k not in IMMUTABLE_FIELDS})
        if "images" in patch and "thumbnail" not in patch:
            images = merged.get("images")
            merged["thumbnail"] = images[0] if isinstance(images, list) and images else None
        merged["updatedAt"] = utc_now()
        item = LibraryItem.model_validate(merged)

        self._write_item(item)
        index = self._read_index()
        for i, raw in enumerate(index):
            if raw.get("id") == item_id:
                index[i] = item.model_dump()
                break
        else:
            index.append(item.model_dump())
        self._write_index(index)
        return item

    def delete(self, item_id: str) -> bool:
        path = self._item_file(item_id)
        if path is None:
            return False
        index = self._read_index()
        remaining = [raw for raw in index if raw.get("id") != item_id]
        found = path.exists() or len(remaining) != len(index)
        if not found:
            return False
        path.unlink(missing_ok=True)
        self._write_index(remaining)
        logger.info("Deleted comic %s from library", item_id)
        return True
