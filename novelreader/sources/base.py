"""
SiteParser 基类 — 所有小说站点解析器的抽象接口

每个解析器实现:
  - URL 匹配 (match)
  - 书籍解析 (parse_book): bookId -> 目录页 -> 书籍信息 + 章节列表
  - 章节解析 (parse_chapter): 标题 / 正文 / 下一章链接
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional

from novelreader.core import extract
from novelreader.core.models import ChapterContent, CompleteBookInfo, ParserConfig
from novelreader.core.network import Fetcher, fetch_text

logger = logging.getLogger(__name__)

# 章节正文提取失败时的占位文本
CONTENT_PLACEHOLDER = "无法找到内容"
# 书名提取失败时的占位文本
TITLE_PLACEHOLDER = "未知书名"

_CHAPTER_ID_RE = re.compile(r'/([^/?#]+)\.html(?:[?#].*)?$', re.IGNORECASE)


class SiteParser(ABC):
    """
    小说站点解析器抽象基类

    子类必须实现:
      - match: host 正则列表
      - names: 站点名称列表
      - domain: 站点域名
      - base_url: 拼接 "/" 开头相对链接用的 scheme+host
      - parse_book(url): 解析书籍
      - parse_chapter(url, ...): 解析章节
    """

    # ── 子类必须覆盖 ──

    match: List[str] = []       # URL 匹配正则列表
    names: List[str] = []       # 站点名称列表
    domain: str = ""            # 站点域名
    base_url: str = ""          # 站点基础 URL

    def __init__(self, fetch: Optional[Fetcher] = None):
        self.fetch: Fetcher = fetch or fetch_text

    @property
    def name(self) -> str:
        """主名称"""
        return self.names[0] if self.names else self.domain or "unknown"

    # ── 核心方法 (子类必须实现) ──

    @abstractmethod
    def parse_book(self, url: str) -> CompleteBookInfo:
        """
        由任意一种站内 URL (章节页 / 目录页 / 详情页) 解析整本书

        Raises:
            ParseError: 无法提取 bookId 或页面缺少必要结构
            TransportError / EncodingError / InvalidURL: 网络层错误
        """
        ...

    @abstractmethod
    def parse_chapter(
        self,
        url: str,
        title_selector: str,
        content_selector: str,
        next_chapter_selector: str,
    ) -> ChapterContent:
        """
        解析单个章节

        正文缺失不算错误 (返回占位文本), 只有网络层错误会抛出。
        """
        ...

    # ── 通用工具 ──

    def parse_chapter_with(self, url: str, parser_config: Optional[ParserConfig] = None) -> ChapterContent:
        """用 ParserConfig 三元组调用 parse_chapter"""
        cfg = parser_config or ParserConfig.default()
        return self.parse_chapter(
            url,
            cfg.title_selector,
            cfg.content_selector,
            cfg.next_chapter_selector,
        )

    def download_html(self, url: str) -> str:
        logger.debug("[%s] 下载: %s", self.name, url)
        return self.fetch(url)

    def extract_element(self, html: str, selector: str) -> extract.Extracted:
        return extract.extract_element(html, selector)

    def extract_href(self, html: str, selector: str, base_url: str) -> extract.Extracted:
        return extract.extract_href(html, selector, base_url, origin=self.base_url or None)

    def extract_link_by_text(self, html: str, text: str, base_url: str) -> extract.Extracted:
        return extract.extract_link_by_text(html, text, base_url, origin=self.base_url or None)

    def extract_next_chapter_url(self, html: str, selector: str, base_url: str) -> Optional[str]:
        """下一章链接: 优先链接文字恰好为 "下一章" 的 <a>, 其次用选择器"""
        url = self.extract_link_by_text(html, "下一章", base_url)
        if not url:
            url = self.extract_href(html, selector, base_url)
        return extract.or_none(url)

    @staticmethod
    def chapter_id_from_url(url: str) -> Optional[str]:
        """URL 最后一段去掉 .html, 例如 .../116429/47508459.html -> 47508459"""
        m = _CHAPTER_ID_RE.search(url)
        return m.group(1) if m else None

    def __repr__(self):
        return f"{type(self).__name__}({self.domain})"
