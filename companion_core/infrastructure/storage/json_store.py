import json
import os
from pathlib import Path
from typing import List, Sequence
from uuid import uuid4

from companion_core.config.settings import settings
from companion_core.domain.diary import DiaryStore
from companion_core.domain.exceptions import StoreError
from companion_core.domain.models import DiaryEntry


class JsonDiaryStore(DiaryStore):
    """把日记整体写成 <root>/diaries.json。

    每次都是整表替换：先写临时文件再 os.replace，读者要么看到旧列表要么看到新列表。
    """

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / "diaries.json"

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[DiaryEntry]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e))
        if not isinstance(data, list):
            raise StoreError(code="STORE_READ_ERROR", message="diaries.json is not a list")
        return [DiaryEntry.from_dict(item) for item in data]

    def replace_all(self, entries: Sequence[DiaryEntry]) -> None:
        tmp_path = self._root / f"diaries.{uuid4().hex}.json.tmp"
        payload = [entry.to_dict() for entry in entries]
        try:
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e))
