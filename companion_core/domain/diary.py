from typing import List, Protocol, Sequence

from .models import DiaryEntry


class DiaryStore(Protocol):
    """日记持久化协作方。

    核心只会交给它一份完整的替换列表（最新的在前），从不下发增量。
    """

    def load(self) -> List[DiaryEntry]:
        ...

    def replace_all(self, entries: Sequence[DiaryEntry]) -> None:
        ...
