"""
On-disk layout of the catalog snapshot and the atomic JSON writer.

Layout under the public root:
    data/homepage.json
    api/products/<slug>.json
    api/categories/<slug>.json
    api/static-data/manifest.json
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union


class SnapshotLayout:
    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.data_dir = self.root / "data"
        self.api_dir = self.root / "api"
        self.products_dir = self.api_dir / "products"
        self.categories_dir = self.api_dir / "categories"
        self.static_data_dir = self.api_dir / "static-data"

    @property
    def homepage_path(self) -> Path:
        return self.data_dir / "homepage.json"

    @property
    def manifest_path(self) -> Path:
        return self.static_data_dir / "manifest.json"

    def product_path(self, slug: str) -> Path:
        return self.products_dir / f"{_checked_slug(slug)}.json"

    def category_path(self, slug: str) -> Path:
        return self.categories_dir / f"{_checked_slug(slug)}.json"

    def ensure_dirs(self) -> None:
        for d in (self.data_dir, self.products_dir, self.categories_dir, self.static_data_dir):
            d.mkdir(parents=True, exist_ok=True)


def _checked_slug(slug: str) -> str:
    if not slug or "/" in slug or "\\" in slug or slug in (".", "..") or ".." in slug:
        raise ValueError(f"Unsafe slug for a snapshot file name: {slug!r}")
    return slug


def dumps(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def write_json_atomic(path: Path, data: Any) -> None:
    """
    Write `data` as pretty-printed UTF-8 JSON, replacing `path` in one step.

    The payload goes to a temp file in the target directory and is then
    renamed over the destination, so readers see either the old or the new
    file, never a partial one.
    """
    payload = dumps(data) + "\n"
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def read_json(path: Path) -> Optional[Any]:
    """Return parsed JSON at `path`, or None if the file does not exist."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
