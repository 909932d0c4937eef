import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional


def default_cache_root() -> str:
    return str(Path(tempfile.gettempdir()) / "alumni-fantasy" / "nflverse")


def asset_cache_path(*, root: str, release: str, filename: str) -> Path:
    return Path(root) / str(release).strip().lower() / str(filename).strip()


@dataclass
class CachedAsset:
    path: Path
    content: bytes
    age_seconds: float
    fresh: bool


def read_cached_asset(path: Path, ttl_seconds: float) -> Optional[CachedAsset]:
    if not path.exists():
        return None
    try:
        content = path.read_bytes()
        modified = path.stat().st_mtime
    except OSError:
        return None
    if not content:
        return None
    age = max(0.0, time.time() - modified)
    return CachedAsset(path=path, content=content, age_seconds=age, fresh=age <= float(ttl_seconds))


def write_cached_asset(path: Path, content: bytes) -> List[str]:
    warnings: List[str] = []
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp = path.with_suffix(path.suffix + ".tmp")
        with temp.open("wb") as file_obj:
            file_obj.write(content)
        temp.replace(path)
    except OSError as exc:
        warnings.append(f"asset_cache_write_failed:{path}:{exc}")
    return warnings


def discard_cached_asset(path: Path) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
