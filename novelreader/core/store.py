"""
书架持久化 — 单个 JSON 文件保存全部小说

整个集合读出 / 整个集合写回, 写入走 临时文件 + os.replace。
"""

import logging
import os
from typing import List, Optional

from . import config
from .models import Novel
from .utils import read_json, write_json_atomic

logger = logging.getLogger(__name__)


class NovelStore:
    """书架 (novels.json)"""

    def __init__(self, path: Optional[str] = None):
        self.path = path or config.LIBRARY_FILE

    def __repr__(self):
        return f"NovelStore({self.path!r})"

    def load_all(self) -> List[Novel]:
        """按最近阅读时间倒序返回; 文件不存在或损坏时返回空列表"""
        if not os.path.isfile(self.path):
            return []
        try:
            data = read_json(self.path)
            novels = [Novel.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error("读取书架失败: %s (%s)", self.path, e)
            return []
        novels.sort(key=lambda n: n.last_read_date, reverse=True)
        return novels

    def save_all(self, novels: List[Novel]) -> None:
        write_json_atomic(self.path, [n.to_dict() for n in novels])

    def get(self, novel_id: str) -> Optional[Novel]:
        for novel in self.load_all():
            if novel.id == novel_id:
                return novel
        return None

    def save(self, novel: Novel) -> None:
        """按 id 插入或替换"""
        novels = self.load_all()
        for i, existing in enumerate(novels):
            if existing.id == novel.id:
                novels[i] = novel
                break
        else:
            novels.append(novel)
        self.save_all(novels)

    def delete(self, novel_id: str) -> bool:
        novels = self.load_all()
        remaining = [n for n in novels if n.id != novel_id]
        if len(remaining) == len(novels):
            return False
        self.save_all(remaining)
        return True
