"""
章节磁盘缓存

每个章节一个 JSON 文件, 文件名为章节 URL 的 MD5:
    <cache_dir>/<md5(url)>.json

- URL 不做规范化 (大小写 / 末尾斜杠 / 参数顺序不同即视为不同条目)
- 条目没有过期时间, 只能手动 clear
- 读失败 (文件损坏 / 字段缺失) 按未命中处理, 写失败只记日志
- 写入走 临时文件 + os.replace, 并发写同一条目时最后一次生效
"""

import hashlib
import json
import logging
import os
import shutil
from typing import Iterator, Optional

from . import config
from .models import CachedChapterRecord, ChapterContent
from .utils import read_json, write_json_atomic

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class ChapterCache:
    """按 URL 缓存章节正文"""

    def __init__(self, cache_dir: Optional[str] = None):
        self.cache_dir = cache_dir or config.CACHE_DIR

    def __repr__(self):
        return f"ChapterCache({self.cache_dir!r})"

    # ── 键 ──

    @staticmethod
    def key_for(url: str) -> str:
        return hashlib.md5(url.encode("utf-8")).hexdigest()

    def path_for(self, url: str) -> str:
        return os.path.join(self.cache_dir, self.key_for(url) + _SUFFIX)

    # ── 读 ──

    def has(self, url: str) -> bool:
        """存在且可读的条目才算命中, 损坏条目按未命中处理"""
        return self.get(url) is not None

    def get(self, url: str) -> Optional[CachedChapterRecord]:
        path = self.path_for(url)
        if not os.path.isfile(path):
            return None
        try:
            return CachedChapterRecord.from_dict(read_json(path))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("缓存条目损坏, 按未命中处理: %s (%s)", path, e)
            return None

    def get_content(self, url: str) -> Optional[ChapterContent]:
        record = self.get(url)
        return record.to_content() if record else None

    # ── 写 ──

    def put(self, url: str, content: ChapterContent) -> bool:
        """写入缓存, 失败返回 False (不抛异常)"""
        record = CachedChapterRecord.from_content(url, content)
        path = self.path_for(url)
        try:
            write_json_atomic(path, record.to_dict())
        except (OSError, TypeError, ValueError) as e:
            logger.warning("写入缓存失败: %s (%s)", path, e)
            return False
        logger.debug("已缓存: %s -> %s", url, os.path.basename(path))
        return True

    def remove(self, url: str) -> bool:
        path = self.path_for(url)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("删除缓存失败: %s (%s)", path, e)
            return False
        return True

    def clear(self) -> None:
        """删除整个缓存目录并重建"""
        if os.path.isdir(self.cache_dir):
            shutil.rmtree(self.cache_dir, ignore_errors=True)
        os.makedirs(self.cache_dir, exist_ok=True)
        logger.info("章节缓存已清空: %s", self.cache_dir)

    # ── 统计 ──

    def _entry_paths(self) -> Iterator[str]:
        try:
            names = os.listdir(self.cache_dir)
        except OSError:
            return
        for name in names:
            if name.endswith(_SUFFIX):
                yield os.path.join(self.cache_dir, name)

    def size(self) -> int:
        """缓存占用的字节数"""
        total = 0
        for path in self._entry_paths():
            try:
                total += os.path.getsize(path)
            except OSError:
                continue
        return total

    def count(self) -> int:
        return sum(1 for _ in self._entry_paths())

    def urls(self) -> Iterator[str]:
        """遍历已缓存的章节 URL (跳过损坏条目)"""
        for path in self._entry_paths():
            try:
                data = read_json(path)
            except (OSError, json.JSONDecodeError):
                continue
            if isinstance(data, dict) and isinstance(data.get("url"), str):
                yield data["url"]
