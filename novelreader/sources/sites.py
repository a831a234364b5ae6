"""
站点配置注册表 — 配置驱动解析器 (GenericParser) 使用的声明式站点描述

配置只包含数据: URL 构造用 format 模板, 字段清理用 Transform 枚举,
不在配置里捕获函数, 方便序列化和单独测试。
"""

import enum
import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from novelreader.core.errors import ParseError
from novelreader.core.extract import match_first
from novelreader.core.models import ParserConfig

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════
# 字段清理
# ══════════════════════════════════════════════════════════════

class Transform(enum.Enum):
    """字段提取后的具名清理步骤"""
    STRIP_CATALOG_SUFFIX = "strip_catalog_suffix"   # 书名末尾的 "目录"
    STRIP_AUTHOR_SUFFIX = "strip_author_suffix"     # 作者末尾的 "著"
    STRIP_INTRO_LABEL = "strip_intro_label"         # 简介开头的 "简介:"


_TRANSFORMS = {
    Transform.STRIP_CATALOG_SUFFIX: lambda s: re.sub(r'\s*目录\s*$', '', s),
    Transform.STRIP_AUTHOR_SUFFIX: lambda s: re.sub(r'\s*著\s*$', '', s),
    Transform.STRIP_INTRO_LABEL: lambda s: re.sub(r'^\s*简介[:：]\s*', '', s),
}


def apply_transform(value: str, transform: Optional[Transform]) -> str:
    if transform is None:
        return value.strip()
    return _TRANSFORMS[transform](value).strip()


# ══════════════════════════════════════════════════════════════
# 配置结构
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FieldSelector:
    """
    单字段提取规则

    capture_group 为 0 表示多捕获组模式: 正则分支里有多个捕获组,
    取第一个非空的那个。
    """
    pattern: str
    capture_group: int = 1
    cleanup: Optional[Transform] = None


@dataclass(frozen=True)
class ChapterListSelector:
    """
    章节列表提取规则

    url_group 为 0 表示 URL 不在 HTML 里完整出现,
    需要用站点的 chapter_url_template 由捕获组 1 (bookId) 和 2 (chapterId) 拼出。
    """
    item_pattern: str
    title_group: int
    url_group: int
    container: Optional[str] = None
    first_container_only: bool = False


@dataclass(frozen=True)
class ChapterContentSelectors:
    title_selector: str
    content_selector: str
    next_chapter_selector: str

    def to_parser_config(self) -> ParserConfig:
        return ParserConfig(
            title_selector=self.title_selector,
            content_selector=self.content_selector,
            next_chapter_selector=self.next_chapter_selector,
        )


@dataclass(frozen=True)
class Pagination:
    """目录分页: 从第一页中发现其他页链接"""
    page_link_pattern: str
    first_page_template: str
    page_template: str
    page_number_pattern: str = r'index_(\d+)\.html'
    max_pages: int = 50

    def page_url(self, book_id: str, page: int) -> str:
        if page <= 1:
            return self.first_page_template.format(book_id=book_id)
        return self.page_template.format(book_id=book_id, page=page)

    def page_number(self, url: str) -> int:
        value = match_first(url, self.page_number_pattern)
        return int(value) if value else 0


@dataclass(frozen=True)
class SiteConfig:
    key: str
    domain: str
    name: str
    hosts: Tuple[str, ...]                 # URL 包含其中任一即匹配
    origin: str                            # 拼接 "/" 开头相对路径用
    book_id_patterns: Tuple[str, ...]      # 按优先级尝试
    catalog_url_template: str
    title: FieldSelector
    author: FieldSelector
    cover: FieldSelector
    chapter_list: ChapterListSelector
    chapter_content: ChapterContentSelectors
    intro: Optional[FieldSelector] = None
    chapter_url_template: Optional[str] = None
    pagination: Optional[Pagination] = None
    cover_rewrites: Tuple[Tuple[str, str], ...] = ()

    def matches(self, url: str) -> bool:
        return any(host in url for host in self.hosts)

    def extract_book_id(self, url: str) -> str:
        """按优先级尝试 bookId 正则, 第一个命中的生效"""
        for pattern in self.book_id_patterns:
            book_id = match_first(url, pattern)
            if book_id:
                return book_id
        raise ParseError(f"无法从URL提取bookId: {url}")

    def catalog_url(self, book_id: str) -> str:
        return self.catalog_url_template.format(book_id=book_id)

    def chapter_url(self, book_id: str, chapter_id: str) -> str:
        if not self.chapter_url_template:
            raise ParseError(f"{self.name} 未配置章节 URL 模板")
        return self.chapter_url_template.format(book_id=book_id, chapter_id=chapter_id)

    def rewrite_cover(self, url: str) -> str:
        """封面 URL 的字面替换 (如 CDN 域名 -> IP, 绕过上游拦截)"""
        for old, new in self.cover_rewrites:
            url = url.replace(old, new)
        return url


# ══════════════════════════════════════════════════════════════
# 预定义站点
# ══════════════════════════════════════════════════════════════

CUOCENG = SiteConfig(
    key="cuoceng",
    domain="cuoceng.com",
    name="错层小说网",
    hosts=("cuoceng.com",),
    origin="https://www.cuoceng.com",
    book_id_patterns=(
        r'/book/([a-f0-9-]+)/[a-f0-9-]+\.html',   # 章节页
        r'/book/chapter/([a-f0-9-]+)\.html',      # 目录页
        r'/book/([a-f0-9-]+)\.html',              # 书籍详情页
    ),
    catalog_url_template="https://www.cuoceng.com/book/chapter/{book_id}.html",
    chapter_url_template="https://www.cuoceng.com/book/{book_id}/{chapter_id}.html",
    title=FieldSelector(
        pattern=r'<h1>([^<]+)</h1>',
        cleanup=Transform.STRIP_CATALOG_SUFFIX,
    ),
    author=FieldSelector(
        pattern=(
            r'(?:作者：<a[^>]*>([^<]+)</a>'
            r'|<a[^>]*class=["\']author["\'][^>]*>([^<]+)</a>)'
        ),
        capture_group=0,
        cleanup=Transform.STRIP_AUTHOR_SUFFIX,
    ),
    cover=FieldSelector(
        pattern=(
            r'(?:<input[^>]*id=["\']bookCover["\'][^>]*value=["\']([^"\']+)["\']'
            r'|<img[^>]*class=["\'][^"\']*cover[^"\']*["\'][^>]*(?:data-src|src)=["\']([^"\']+)["\'])'
        ),
        capture_group=0,
    ),
    intro=FieldSelector(
        pattern=r'<div[^>]*class=["\'][^"\']*intro[^"\']*["\'][^>]*>([\s\S]*?)</div>',
    ),
    chapter_list=ChapterListSelector(
        item_pattern=r'<a href="/book/([a-f0-9-]+)/([a-f0-9-]+)\.html">\s*<span[^>]*>([^<]+)</span>\s*</a>',
        title_group=3,
        url_group=0,
    ),
    chapter_content=ChapterContentSelectors(
        title_selector="h1",
        content_selector="#readcontent",
        next_chapter_selector="a.next",
    ),
)

LINGDIAN = SiteConfig(
    key="lingdian",
    domain="23txtv.com",
    name="零点看书",
    hosts=("23.225.143.232", "23txtv.com"),
    origin="http://23.225.143.232",
    book_id_patterns=(
        r'/ldks/(\d+)/\d+(?:_\d+)?\.html',     # 章节页 (含章节内分页)
        r'/ldks/(\d+)/index_\d+\.html',        # 目录分页
        r'/ldks/(\d+)/?$',                     # 目录首页
    ),
    catalog_url_template="http://23.225.143.232/ldks/{book_id}/",
    chapter_url_template="http://23.225.143.232/ldks/{book_id}/{chapter_id}.html",
    title=FieldSelector(pattern=r'<h1>([^<]+)</h1>'),
    author=FieldSelector(pattern=r'<p>作者：([^<]+)</p>'),
    cover=FieldSelector(
        pattern=(
            r'<img[^>]*(?:src=["\']([^"\']+)["\'][^>]*alt'
            r'|alt=["\'][^"\']*["\'][^>]*src=["\']([^"\']+)["\'])'
        ),
        capture_group=0,
    ),
    intro=FieldSelector(
        pattern=r'<div[^>]*class=["\'][^"\']*desc[^"\']*["\'][^>]*>([\s\S]*?)</div>',
        cleanup=Transform.STRIP_INTRO_LABEL,
    ),
    chapter_list=ChapterListSelector(
        container=(
            r'《[^》]+》正文</h2>[\s\S]*?'
            r'<ul[^>]*class=["\']section-list[^"\']*["\'][^>]*>([\s\S]*?)</ul>'
        ),
        first_container_only=True,
        item_pattern=r'<li><a href=["\']([^"\']+)["\']>([^<]+)</a></li>',
        title_group=2,
        url_group=1,
    ),
    chapter_content=ChapterContentSelectors(
        title_selector="h1.title",
        content_selector="#content",
        next_chapter_selector="a",
    ),
    pagination=Pagination(
        page_link_pattern=r'<option value=["\']([^"\']+)["\'][^>]*>',
        first_page_template="http://23.225.143.232/ldks/{book_id}/",
        page_template="http://23.225.143.232/ldks/{book_id}/index_{page}.html",
        max_pages=50,
    ),
    cover_rewrites=(
        ("www.23txtv.com", "23.225.143.232"),
        ("http://23txtv.com", "http://23.225.143.232"),
    ),
)

SITE_CONFIGS: Tuple[SiteConfig, ...] = (
    CUOCENG,
    LINGDIAN,
)


# ══════════════════════════════════════════════════════════════
# 查找
# ══════════════════════════════════════════════════════════════

def config_for(url: str) -> Optional[SiteConfig]:
    """按 host 子串匹配站点配置, 第一个命中的生效, 未知站点返回 None"""
    for site in SITE_CONFIGS:
        if site.matches(url):
            return site
    return None


def config_by_key(key: str) -> Optional[SiteConfig]:
    for site in SITE_CONFIGS:
        if site.key == key:
            return site
    return None


def check_host_overlap(configs: Tuple[SiteConfig, ...] = SITE_CONFIGS) -> list:
    """
    找出某站点 host 是另一站点 host 子串的情况

    子串匹配下这种配置会让先注册的站点抢走后者的 URL。
    返回 [(host, 包含它的 host), ...]
    """
    overlaps = []
    hosts = [(site.key, host) for site in configs for host in site.hosts]
    for key_a, host_a in hosts:
        for key_b, host_b in hosts:
            if key_a != key_b and host_a in host_b:
                overlaps.append((host_a, host_b))
    for host_a, host_b in overlaps:
        logger.warning("站点 host 重叠: %s 是 %s 的子串", host_a, host_b)
    return overlaps
