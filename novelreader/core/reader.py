"""
阅读会话 — 逐章阅读、前后翻章、记录阅读位置、后台预下载
"""

import logging
from concurrent.futures import Future
from typing import List, Optional

from .models import ChapterContent, Novel, ParserConfig
from .repository import NovelRepository

logger = logging.getLogger(__name__)


class ReadingSession:
    """
    一次阅读会话

    open(url) 加载章节后:
      - 挂了 novel 时更新阅读位置
      - 后台预下载后续 preload_count 章 (失败静默)
    next() / previous() 沿 next_chapter_url 和历史栈翻章。
    加载失败的异常原样抛给调用方。
    """

    def __init__(self, repository: NovelRepository, novel: Optional[Novel] = None,
                 config: Optional[ParserConfig] = None):
        self.repository = repository
        self.novel = novel
        if config is None:
            config = novel.parser_config if novel else ParserConfig.default()
        self.config = config

        self.current_url: Optional[str] = None
        self.current: Optional[ChapterContent] = None
        self.preload_future: Optional[Future] = None
        self._history: List[str] = []

    @property
    def has_next(self) -> bool:
        return bool(self.current and self.current.next_chapter_url)

    @property
    def has_previous(self) -> bool:
        return bool(self._history)

    @property
    def previous_url(self) -> Optional[str]:
        return self._history[-1] if self._history else None

    def open(self, url: str) -> ChapterContent:
        content = self.repository.get_chapter_content(url, self.config)
        self.current_url = url
        self.current = content

        if self.novel is not None:
            self.repository.update_reading_position(self.novel, url, content.title)

        if content.next_chapter_url and self.repository.preload_count > 0:
            self.preload_future = self.repository.preload_in_background(
                content.next_chapter_url, self.config,
            )
        return content

    def resume(self) -> Optional[ChapterContent]:
        """打开小说记录的阅读位置, 没有则返回 None"""
        if self.novel is None or not self.novel.current_chapter_url:
            return None
        return self.open(self.novel.current_chapter_url)

    def next(self) -> Optional[ChapterContent]:
        if not self.has_next:
            return None
        previous = self.current_url
        content = self.open(self.current.next_chapter_url)
        if previous:
            self._history.append(previous)
        return content

    def previous(self) -> Optional[ChapterContent]:
        if not self._history:
            return None
        url = self._history[-1]
        content = self.open(url)
        self._history.pop()
        return content
