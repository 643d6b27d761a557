"""Repository snapshot backed by a checkout on disk."""

from pathlib import Path
from typing import List, Optional

import anyio


class LocalRepository:
    """Reads files from a local working tree."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if not resolved.is_relative_to(self.root.resolve()):
            raise ValueError(f"Path escapes repository root: {path}")
        return resolved

    async def read_file(self, path: str) -> Optional[str]:
        target = self._resolve(path)
        if not target.is_file():
            return None
        return await anyio.to_thread.run_sync(target.read_text, 'utf-8')

    async def list_dir(self, path: str) -> Optional[List[str]]:
        target = self._resolve(path)
        if not target.is_dir():
            return None
        return sorted(
            str(child.relative_to(self.root)).replace('\\', '/')
            for child in target.iterdir()
            if child.is_file()
        )
