"""
错层小说网 (cuoceng.com) 专用解析器

书籍详情页和章节目录页是两个页面:
  详情页: https://www.cuoceng.com/book/{bookId}.html          (书名/作者/封面/简介)
  目录页: https://www.cuoceng.com/book/chapter/{bookId}.html  (章节列表)
章节页: https://www.cuoceng.com/book/{bookId}/{chapterId}.html
"""

import logging
import re
from typing import List, Optional

from novelreader.core.errors import ParseError
from novelreader.core.extract import (
    clean_field, decode_entities, match_all, match_first, or_none,
)
from novelreader.core.models import Chapter, ChapterContent, CompleteBookInfo
from novelreader.sources.base import CONTENT_PLACEHOLDER, TITLE_PLACEHOLDER, SiteParser
from novelreader.sources.sites import CUOCENG, Transform, apply_transform

logger = logging.getLogger(__name__)


class CuocengParser(SiteParser):
    """错层小说网 — 详情页 + 目录页合并"""

    match = [r"cuoceng\.com"]
    names = ["错层小说网", "cuoceng"]
    domain = "cuoceng.com"
    base_url = "https://www.cuoceng.com"

    def __init__(self, fetch=None):
        super().__init__(fetch)
        self.site = CUOCENG

    # ══════════════════════════════════════════════════════════════
    # 书籍解析
    # ══════════════════════════════════════════════════════════════

    def extract_book_id(self, url: str) -> str:
        """章节页 / 目录页 / 详情页 三种 URL 都能取到 bookId"""
        return self.site.extract_book_id(url)

    def detail_url(self, book_id: str) -> str:
        return f"{self.base_url}/book/{book_id}.html"

    def parse_book(self, url: str) -> CompleteBookInfo:
        book_id = self.extract_book_id(url)
        detail_url = self.detail_url(book_id)
        catalog_url = self.site.catalog_url(book_id)

        detail_html = self.download_html(detail_url)
        catalog_html = self.download_html(catalog_url)

        chapters = self.extract_chapters(catalog_html, book_id)
        if not chapters:
            raise ParseError(f"目录页没有章节列表: {catalog_url}")

        title = (self.extract_title(detail_html)
                 or self.extract_title(catalog_html)
                 or TITLE_PLACEHOLDER)
        author = self.extract_catalog_author(catalog_html) or self.extract_detail_author(detail_html)
        cover_url = self.extract_cover(detail_html)
        introduction = self.extract_introduction(detail_html)

        logger.info("[%s] 《%s》 bookId=%s, 共 %d 章", self.name, title, book_id, len(chapters))

        return CompleteBookInfo(
            book_id=book_id,
            title=title,
            catalog_url=catalog_url,
            chapters=chapters,
            author=author,
            cover_url=cover_url,
            introduction=introduction,
            parser_config=self.site.chapter_content.to_parser_config(),
        )

    # ── 字段 ──

    @staticmethod
    def extract_title(html: str) -> Optional[str]:
        """<h1>书名</h1>, 目录页的 "xx 目录" 去掉后缀"""
        raw = match_first(html, r'<h1>([^<]+)</h1>')
        if not raw:
            return None
        return apply_transform(clean_field(raw), Transform.STRIP_CATALOG_SUFFIX) or None

    @staticmethod
    def extract_catalog_author(html: str) -> Optional[str]:
        """目录页: 作者：<a href="...">作者名</a>"""
        raw = match_first(html, r'作者[：:]\s*<a[^>]*>([^<]+)</a>')
        if not raw:
            return None
        return clean_field(raw) or None

    @staticmethod
    def extract_detail_author(html: str) -> Optional[str]:
        """详情页: <a class="author">作者名 著</a>"""
        raw = match_first(html, r'<a[^>]*class=["\']author["\'][^>]*>([^<]+)</a>')
        if not raw:
            return None
        return apply_transform(clean_field(raw), Transform.STRIP_AUTHOR_SUFFIX) or None

    @staticmethod
    def extract_cover(html: str) -> Optional[str]:
        """
        封面优先级:
        1. 隐藏 input#bookCover 的 value
        2. img.cover 的 data-src (懒加载)
        3. img.cover 的 src (跳过 default.gif 占位图)
        """
        cover = match_first(html, r'<input[^>]*id=["\']bookCover["\'][^>]*value=["\']([^"\']+)["\']')
        if cover:
            return cover.strip()

        cover = match_first(html, r'<img[^>]*class=["\'][^"\']*cover[^"\']*["\'][^>]*data-src=["\']([^"\']+)["\']')
        if cover:
            return cover.strip()

        cover = match_first(html, r'<img[^>]*class=["\'][^"\']*cover[^"\']*["\'][^>]*\ssrc=["\']([^"\']+)["\']')
        if cover and "default.gif" not in cover:
            return cover.strip()

        return None

    @staticmethod
    def extract_introduction(html: str) -> Optional[str]:
        raw = match_first(html, r'<div[^>]*class=["\'][^"\']*intro[^"\']*["\'][^>]*>([\s\S]*?)</div>')
        if not raw:
            return None
        return clean_field(raw) or None

    # ── 章节列表 ──

    def extract_chapters(self, html: str, book_id: str) -> List[Chapter]:
        """目录页中属于该书的章节链接: <a href="/book/{bookId}/{chapterId}.html"><span>标题</span></a>"""
        pattern = (
            rf'<a href="/book/{re.escape(book_id)}/([a-f0-9-]+)\.html">'
            r'\s*<span[^>]*>([^<]+)</span>\s*</a>'
        )
        chapters = []
        for m in match_all(html, pattern):
            chapter_id = m.group(1)
            chapters.append(Chapter(
                id=chapter_id,
                title=decode_entities(m.group(2)).strip(),
                url=self.site.chapter_url(book_id, chapter_id),
            ))
        return chapters

    # ══════════════════════════════════════════════════════════════
    # 章节解析 (单页)
    # ══════════════════════════════════════════════════════════════

    def parse_chapter(self, url, title_selector, content_selector, next_chapter_selector) -> ChapterContent:
        html = self.download_html(url)
        title = or_none(self.extract_element(html, title_selector))
        content = self.extract_element(html, content_selector)
        return ChapterContent(
            title=title,
            content=content or CONTENT_PLACEHOLDER,
            next_chapter_url=self.extract_next_chapter_url(html, next_chapter_selector, url),
        )
