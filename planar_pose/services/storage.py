import json
import time
from pathlib import Path
from typing import Optional


class SessionStorage:
    """One directory per tracking session: manifest, event log and text logs."""

    def __init__(self, root: str, name: str = "session"):
        self.root = Path(root)
        self.name = name
        self.session_dir: Optional[Path] = None
        self.logs_dir: Optional[Path] = None

    def begin(self) -> str:
        sid = f"{self.name}_{time.strftime('%Y%m%d_%H%M%S')}"
        self.session_dir = self.root / sid
        self.logs_dir = self.session_dir / "logs"
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        return str(self.session_dir)

    def path_for(self, filename: str) -> Path:
        if self.session_dir is None:
            raise RuntimeError("session not started; call begin() first")
        return self.session_dir / filename

    def write_manifest(self, meta: dict, filename: str = "config.json") -> Path:
        path = self.path_for(filename)
        with path.open("w", encoding="utf-8") as fp:
            json.dump(meta, fp, indent=2, default=str)
        return path
