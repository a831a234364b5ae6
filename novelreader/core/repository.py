"""
小说数据仓储 — 解析器、章节缓存、书架三者之间的唯一入口

职责:
- 添加 / 刷新 / 删除小说 (解析器 + 书架)
- 章节读取: 缓存优先, 未命中再抓取并写缓存
- 批量缓存章节 (顺序执行、失败跳过、可中断)
- 阅读时后台预下载后续章节
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, TYPE_CHECKING

from novelreader.sources import find_parser

from . import config as app_config
from .cache import ChapterCache
from .errors import NovelReaderError, UnsupportedSite
from .models import Chapter, ChapterContent, CompleteBookInfo, Novel, ParserConfig
from .network import Fetcher, validate_url
from .store import NovelStore

if TYPE_CHECKING:
    from novelreader.sources.base import SiteParser

logger = logging.getLogger(__name__)

# (url, fetch=...) -> 解析器 或 None
ParserFactory = Callable[..., Optional["SiteParser"]]


@dataclass
class DownloadReport:
    """批量下载的结果汇总"""
    total: int = 0
    fetched: int = 0                 # 本次从网络抓取并缓存
    cached: int = 0                  # 之前已缓存, 跳过
    failed: int = 0
    cancelled: bool = False
    failed_urls: List[str] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return self.fetched + self.cached + self.failed

    def summary(self) -> str:
        stopped = " (已停止)" if self.cancelled else ""
        return (f"完成{stopped} - 下载: {self.fetched}, 已缓存: {self.cached}, "
                f"失败: {self.failed}, 共 {self.total} 章")


class NovelRepository:
    """
    数据访问层

    Args:
        cache: 章节缓存
        store: 书架
        parser_factory: url -> 解析器, 默认 sources.find_parser
        fetch: 注入给解析器的抓取函数 (None 则使用 network.fetch_text)
        delay: 批量下载时两次网络请求之间的间隔 (秒)
        preload_count: 阅读时预下载的后续章节数
    """

    def __init__(
        self,
        cache: ChapterCache,
        store: NovelStore,
        parser_factory: Optional[ParserFactory] = None,
        fetch: Optional[Fetcher] = None,
        delay: Optional[float] = None,
        preload_count: Optional[int] = None,
    ):
        self.cache = cache
        self.store = store
        self.parser_factory = parser_factory or find_parser
        self.fetch = fetch
        self.delay = app_config.DOWNLOAD_DELAY if delay is None else delay
        self.preload_count = app_config.PRELOAD_COUNT if preload_count is None else preload_count

        # 同一 URL 的抓取串行化, 前台阅读和后台预下载不会重复请求
        # url -> [锁, 使用者数], 没有使用者时移除
        self._url_locks: Dict[str, list] = {}
        self._url_locks_guard = threading.Lock()

        # 预下载 (单线程)
        self._preload_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="preload")

    # ══════════════════════════════════════════════════════════════
    # 解析器
    # ══════════════════════════════════════════════════════════════

    def parser_for(self, url: str) -> "SiteParser":
        url = validate_url(url)
        parser = self.parser_factory(url, fetch=self.fetch)
        if parser is None:
            raise UnsupportedSite(url)
        return parser

    def parse_book(self, url: str) -> CompleteBookInfo:
        return self.parser_for(url).parse_book(url.strip())

    # ══════════════════════════════════════════════════════════════
    # 小说管理
    # ══════════════════════════════════════════════════════════════

    def add_novel(self, url: str) -> Novel:
        """解析并加入书架, 阅读位置为第一章"""
        info = self.parse_book(url)
        novel = Novel.from_book_info(info)
        self.store.save(novel)
        logger.info("已加入书架: 《%s》 (%d 章)", novel.title, len(novel.chapters))
        return novel

    def refresh_novel(self, novel: Novel) -> Novel:
        """重新解析目录, 整体替换书籍信息和章节列表, 保留阅读位置"""
        info = self.parse_book(novel.catalog_url)
        novel.title = info.title
        novel.author = info.author
        novel.cover_url = info.cover_url
        novel.introduction = info.introduction
        novel.catalog_url = info.catalog_url
        novel.chapters = list(info.chapters)
        novel.parser_config = info.parser_config
        if novel.current_chapter_url is None and novel.chapters:
            novel.current_chapter_url = novel.chapters[0].url
            novel.current_chapter_title = novel.chapters[0].title
        self.store.save(novel)
        logger.info("已刷新目录: 《%s》 (%d 章)", novel.title, len(novel.chapters))
        return novel

    def get_all_novels(self) -> List[Novel]:
        return self.store.load_all()

    def get_novel(self, novel_id: str) -> Optional[Novel]:
        return self.store.get(novel_id)

    def update_novel(self, novel: Novel) -> None:
        self.store.save(novel)

    def delete_novel(self, novel: Novel) -> bool:
        return self.store.delete(novel.id)

    def update_reading_position(self, novel: Novel, url: str, title: Optional[str] = None) -> None:
        novel.current_chapter_url = url
        if title is None:
            index = novel.chapter_index(url)
            title = novel.chapters[index].title if index is not None else None
        novel.current_chapter_title = title
        novel.last_read_date = datetime.now()
        self.store.save(novel)

    # ══════════════════════════════════════════════════════════════
    # 章节
    # ══════════════════════════════════════════════════════════════

    def is_chapter_cached(self, url: str) -> bool:
        return self.cache.has(url)

    @contextmanager
    def _url_lock(self, url: str) -> Iterator[None]:
        with self._url_locks_guard:
            entry = self._url_locks.get(url)
            if entry is None:
                entry = self._url_locks[url] = [threading.Lock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._url_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._url_locks[url]

    def get_chapter_content(self, url: str, config: Optional[ParserConfig] = None) -> ChapterContent:
        """缓存优先; 未命中时抓取、写缓存 (尽力而为) 后返回"""
        cached = self.cache.get_content(url)
        if cached is not None:
            return cached

        with self._url_lock(url):
            # 等锁期间可能已被另一线程写入
            cached = self.cache.get_content(url)
            if cached is not None:
                return cached

            content = self.parser_for(url).parse_chapter_with(url, config)
            self.cache.put(url, content)
            return content

    def download_chapters(
        self,
        chapters: List[Chapter],
        config: Optional[ParserConfig] = None,
        on_progress: Optional[Callable[[int, int], None]] = None,
        is_stopped: Optional[Callable[[], bool]] = None,
    ) -> DownloadReport:
        """
        顺序缓存一批章节

        - 已缓存的直接计数, 不请求网络, 也不等待
        - 单章失败记日志后跳过, 不影响后续章节
        - 每章开始前检查 is_stopped, 每章结束后回调 on_progress(已完成, 总数)
        """
        report = DownloadReport(total=len(chapters))

        for i, chapter in enumerate(chapters):
            if is_stopped and is_stopped():
                report.cancelled = True
                logger.info("批量下载已停止: %d/%d", report.completed, report.total)
                break

            if self.is_chapter_cached(chapter.url):
                report.cached += 1
            else:
                try:
                    self.get_chapter_content(chapter.url, config)
                    report.fetched += 1
                except NovelReaderError as e:
                    report.failed += 1
                    report.failed_urls.append(chapter.url)
                    logger.warning("下载章节失败: %s - %s", chapter.title, e)

                # 只在真正请求过网络后等待
                if i + 1 < len(chapters):
                    self._interruptible_sleep(self.delay, is_stopped)

            if on_progress:
                on_progress(report.completed, report.total)

        return report

    def _interruptible_sleep(self, seconds: float, is_stopped: Optional[Callable[[], bool]]):
        """可被 stop 中断的 sleep"""
        if seconds <= 0:
            return
        end = time.time() + seconds
        while time.time() < end:
            if is_stopped and is_stopped():
                return
            time.sleep(min(0.1, max(0.0, end - time.time())))

    # ══════════════════════════════════════════════════════════════
    # 预下载
    # ══════════════════════════════════════════════════════════════

    def preload_from(self, url: Optional[str], config: Optional[ParserConfig] = None,
                     count: Optional[int] = None) -> int:
        """
        从 url 开始沿 next_chapter_url 预下载最多 count 章

        没有下一章或第一次失败时停止, 从不抛异常。
        返回实际走过的章节数。
        """
        count = self.preload_count if count is None else count
        walked = 0
        current = url
        while current and walked < count:
            try:
                content = self.get_chapter_content(current, config)
            except NovelReaderError as e:
                logger.debug("预下载失败, 停止: %s (%s)", current, e)
                break
            walked += 1
            current = content.next_chapter_url
        logger.debug("预下载完成: %d 章", walked)
        return walked

    def preload_in_background(self, url: Optional[str], config: Optional[ParserConfig] = None,
                              count: Optional[int] = None) -> Future:
        return self._preload_pool.submit(self.preload_from, url, config, count)

    # ══════════════════════════════════════════════════════════════
    # 缓存管理
    # ══════════════════════════════════════════════════════════════

    def clear_chapter_cache(self) -> None:
        self.cache.clear()

    def cache_size(self) -> int:
        return self.cache.size()

    def cache_count(self) -> int:
        return self.cache.count()

    def shutdown(self, wait: bool = False) -> None:
        """停止预下载线程, 并关闭注入的 fetch (如 SessionFetcher)"""
        self._preload_pool.shutdown(wait=wait)
        close = getattr(self.fetch, "close", None)
        if callable(close):
            close()
