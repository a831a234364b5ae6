"""
通用解析器 — 由 SiteConfig 驱动

一个 GenericParser 实例对应一个站点配置:
  - parse_book: bookId -> 目录页 -> 字段 -> 章节列表 (含目录分页)
  - parse_chapter: 章节内分页 (下一页) 逐页拼接, 最多 max_chapter_pages 页
"""

import logging
import re
import uuid
from typing import List, Optional

from novelreader.core import config as app_config
from novelreader.core.errors import NovelReaderError, ParseError
from novelreader.core.extract import (
    clean_field, decode_entities, match_all, match_any_group, match_first,
    or_none, resolve_relative,
)
from novelreader.core.models import Chapter, ChapterContent, CompleteBookInfo
from novelreader.sources.base import CONTENT_PLACEHOLDER, TITLE_PLACEHOLDER, SiteParser
from novelreader.sources.sites import FieldSelector, SiteConfig, apply_transform

logger = logging.getLogger(__name__)


def _group(match: "re.Match", index: int) -> Optional[str]:
    try:
        return match.group(index)
    except IndexError:
        return None


class GenericParser(SiteParser):
    """配置驱动的解析器"""

    def __init__(self, config: SiteConfig, fetch=None,
                 max_chapter_pages: int = app_config.MAX_CHAPTER_PAGES):
        super().__init__(fetch)
        self.config = config
        self.max_chapter_pages = max(1, max_chapter_pages)

        self.match = [re.escape(host) for host in config.hosts]
        self.names = [config.name]
        self.domain = config.domain
        self.base_url = config.origin

    # ══════════════════════════════════════════════════════════════
    # 书籍解析
    # ══════════════════════════════════════════════════════════════

    def extract_book_id(self, url: str) -> str:
        return self.config.extract_book_id(url)

    def parse_book(self, url: str) -> CompleteBookInfo:
        book_id = self.extract_book_id(url)

        catalog_url = self.config.catalog_url(book_id)
        catalog_html = self.download_html(catalog_url)

        title = self.extract_field(catalog_html, self.config.title) or TITLE_PLACEHOLDER
        author = self.extract_field(catalog_html, self.config.author)
        cover_url = self.extract_field(catalog_html, self.config.cover)
        introduction = self.extract_field(catalog_html, self.config.intro)

        if cover_url:
            cover_url = self.config.rewrite_cover(cover_url)

        chapters = self.extract_all_chapters(book_id, catalog_url, catalog_html)
        logger.info("[%s] 《%s》 bookId=%s, 共 %d 章", self.name, title, book_id, len(chapters))

        return CompleteBookInfo(
            book_id=book_id,
            title=title,
            catalog_url=catalog_url,
            chapters=chapters,
            author=author,
            cover_url=cover_url,
            introduction=introduction,
            parser_config=self.config.chapter_content.to_parser_config(),
        )

    def extract_field(self, html: str, selector: Optional[FieldSelector]) -> Optional[str]:
        """按 FieldSelector 提取单个字段, 失败返回 None"""
        if selector is None:
            return None
        if selector.capture_group == 0:
            raw = match_any_group(html, selector.pattern)
        else:
            raw = match_first(html, selector.pattern, selector.capture_group)
        if not raw:
            return None
        return apply_transform(clean_field(raw), selector.cleanup) or None

    # ── 章节列表 ──

    def extract_all_chapters(self, book_id: str, catalog_url: str, first_page_html: str) -> List[Chapter]:
        chapters = self.extract_chapters(first_page_html, catalog_url)
        if not chapters:
            raise ParseError(f"目录页没有章节列表: {catalog_url}")

        pagination = self.config.pagination
        if pagination is None:
            return chapters

        for page_url in self.pagination_urls(first_page_html, book_id, catalog_url):
            try:
                page_html = self.download_html(page_url)
            except NovelReaderError as e:
                logger.warning("[%s] 获取目录分页失败: %s (%s)", self.name, page_url, e)
                continue
            chapters.extend(self.extract_chapters(page_html, page_url))

        return chapters

    def pagination_urls(self, html: str, book_id: str, catalog_url: str) -> List[str]:
        """
        从目录首页发现其他分页 URL

        跳过首页、去重, 最多 max_pages - 1 个额外页, 按页码排序。
        """
        pagination = self.config.pagination
        if pagination is None:
            return []

        max_pages = min(pagination.max_pages, app_config.MAX_CATALOG_PAGES)
        first_pages = {
            pagination.page_url(book_id, 1).rstrip("/"),
            catalog_url.rstrip("/"),
        }

        urls: List[str] = []
        for m in match_all(html, pagination.page_link_pattern):
            href = _group(m, 1)
            if not href:
                continue
            url = resolve_relative(href, catalog_url, self.config.origin)
            if url.rstrip("/") in first_pages or url in urls:
                continue
            if len(urls) >= max_pages - 1:
                logger.warning("[%s] 目录分页超过 %d 页, 其余忽略", self.name, max_pages)
                break
            urls.append(url)

        return sorted(urls, key=pagination.page_number)

    def extract_chapters(self, html: str, page_url: str) -> List[Chapter]:
        selector = self.config.chapter_list

        search_html = html
        if selector.container:
            if selector.first_container_only:
                block = match_first(html, selector.container)
                if not block:
                    return []
                search_html = block
            else:
                blocks = [_group(m, 1) for m in match_all(html, selector.container)]
                blocks = [b for b in blocks if b]
                if blocks:
                    search_html = "\n".join(blocks)

        chapters = []
        for m in match_all(search_html, selector.item_pattern):
            title = _group(m, selector.title_group)
            if title is None:
                continue

            if selector.url_group == 0:
                book_id, chapter_id = _group(m, 1), _group(m, 2)
                if not book_id or not chapter_id:
                    continue
                url = self.config.chapter_url(book_id, chapter_id)
            else:
                href = _group(m, selector.url_group)
                if not href:
                    continue
                url = resolve_relative(href, page_url, self.config.origin)
                chapter_id = self.chapter_id_from_url(url) or str(uuid.uuid4())

            chapters.append(Chapter(
                id=chapter_id,
                title=decode_entities(title).strip(),
                url=url,
            ))

        return chapters

    # ══════════════════════════════════════════════════════════════
    # 章节解析
    # ══════════════════════════════════════════════════════════════

    def parse_chapter(self, url, title_selector, content_selector, next_chapter_selector) -> ChapterContent:
        pages: List[str] = []
        title = None
        next_chapter_url = None
        current_url = url

        for page_index in range(self.max_chapter_pages):
            html = self.download_html(current_url)

            # 标题只取第一页
            if page_index == 0:
                title = or_none(self.extract_element(html, title_selector))

            content = self.extract_element(html, content_selector)
            if content:
                pages.append(content)

            next_page_url = self.extract_next_page_url(html, current_url)
            if next_page_url and page_index + 1 < self.max_chapter_pages:
                current_url = next_page_url
                continue

            if next_page_url:
                logger.warning("[%s] 章节分页达到 %d 页上限: %s",
                               self.name, self.max_chapter_pages, url)
            next_chapter_url = self.extract_next_chapter_url(html, next_chapter_selector, current_url)
            break

        return ChapterContent(
            title=title,
            content="\n\n".join(pages) if pages else CONTENT_PLACEHOLDER,
            next_chapter_url=next_chapter_url,
        )

    def extract_next_page_url(self, html: str, current_url: str) -> Optional[str]:
        """章节内 "下一页" 链接, 指向当前页本身时视为没有"""
        url = or_none(self.extract_link_by_text(html, "下一页", current_url))
        if url and url != current_url:
            return url
        return None

    def __repr__(self):
        return f"GenericParser({self.config.key})"
