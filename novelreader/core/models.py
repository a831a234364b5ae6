"""
统一数据模型 — 所有解析器、缓存、书架共用
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class Chapter:
    """目录中的一个章节 (由目录解析产生, 不可变)"""
    id: str             # chapterId, 书内唯一
    title: str          # 标题
    url: str            # 章节页绝对 URL

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "url": self.url}

    @classmethod
    def from_dict(cls, data: dict) -> "Chapter":
        return cls(id=data["id"], title=data["title"], url=data["url"])


@dataclass
class ParserConfig:
    """章节正文提取用的选择器三元组"""
    title_selector: str = "h1"
    content_selector: str = "#readcontent"
    next_chapter_selector: str = "a.next"

    @classmethod
    def default(cls) -> "ParserConfig":
        return cls()

    def to_dict(self) -> dict:
        return {
            "title_selector": self.title_selector,
            "content_selector": self.content_selector,
            "next_chapter_selector": self.next_chapter_selector,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ParserConfig":
        if not data:
            return cls()
        default = cls()
        return cls(
            title_selector=data.get("title_selector", default.title_selector),
            content_selector=data.get("content_selector", default.content_selector),
            next_chapter_selector=data.get("next_chapter_selector", default.next_chapter_selector),
        )


@dataclass
class ChapterContent:
    """抓取到的章节正文 (纯文本, 段落以换行分隔)"""
    title: Optional[str]
    content: str
    next_chapter_url: Optional[str] = None


@dataclass
class CompleteBookInfo:
    """parse_book 的完整结果"""
    book_id: str
    title: str
    catalog_url: str
    chapters: List[Chapter] = field(default_factory=list)
    author: Optional[str] = None
    cover_url: Optional[str] = None
    introduction: Optional[str] = None
    parser_config: ParserConfig = field(default_factory=ParserConfig)

    def __repr__(self):
        return f"CompleteBookInfo('{self.title}', id={self.book_id}, chapters={len(self.chapters)})"


def _format_date(value: datetime) -> str:
    return value.isoformat()


def _parse_date(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now()
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return datetime.now()


@dataclass
class Novel:
    """书架上的一本小说 (id 即 bookId)"""
    id: str
    title: str
    catalog_url: str
    chapters: List[Chapter] = field(default_factory=list)
    author: Optional[str] = None
    cover_url: Optional[str] = None
    introduction: Optional[str] = None

    # 阅读进度
    current_chapter_url: Optional[str] = None
    current_chapter_title: Optional[str] = None
    last_read_date: datetime = field(default_factory=datetime.now)

    # 解析配置
    parser_config: ParserConfig = field(default_factory=ParserConfig)

    def __repr__(self):
        return f"Novel('{self.title}', id={self.id}, chapters={len(self.chapters)})"

    @classmethod
    def from_book_info(cls, info: CompleteBookInfo) -> "Novel":
        """由解析结果创建小说, 阅读位置指向第一章"""
        first = info.chapters[0] if info.chapters else None
        return cls(
            id=info.book_id,
            title=info.title,
            catalog_url=info.catalog_url,
            chapters=list(info.chapters),
            author=info.author,
            cover_url=info.cover_url,
            introduction=info.introduction,
            current_chapter_url=first.url if first else None,
            current_chapter_title=first.title if first else None,
            last_read_date=datetime.now(),
            parser_config=info.parser_config,
        )

    def chapter_index(self, url: str) -> Optional[int]:
        """返回 url 在目录中的下标 (0-based), 不在目录中返回 None"""
        for i, chapter in enumerate(self.chapters):
            if chapter.url == url:
                return i
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "cover_url": self.cover_url,
            "introduction": self.introduction,
            "catalog_url": self.catalog_url,
            "chapters": [c.to_dict() for c in self.chapters],
            "current_chapter_url": self.current_chapter_url,
            "current_chapter_title": self.current_chapter_title,
            "last_read_date": _format_date(self.last_read_date),
            "parser_config": self.parser_config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Novel":
        return cls(
            id=data["id"],
            title=data["title"],
            catalog_url=data["catalog_url"],
            chapters=[Chapter.from_dict(c) for c in data.get("chapters", [])],
            author=data.get("author"),
            cover_url=data.get("cover_url"),
            introduction=data.get("introduction"),
            current_chapter_url=data.get("current_chapter_url"),
            current_chapter_title=data.get("current_chapter_title"),
            last_read_date=_parse_date(data.get("last_read_date")),
            parser_config=ParserConfig.from_dict(data.get("parser_config")),
        )


@dataclass(frozen=True)
class CachedChapterRecord:
    """磁盘缓存中的一条章节记录 (写入后不再修改)"""
    url: str
    content: str
    title: Optional[str] = None
    next_chapter_url: Optional[str] = None
    cached_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_content(cls, url: str, content: ChapterContent) -> "CachedChapterRecord":
        return cls(
            url=url,
            content=content.content,
            title=content.title,
            next_chapter_url=content.next_chapter_url,
        )

    def to_content(self) -> ChapterContent:
        return ChapterContent(
            title=self.title,
            content=self.content,
            next_chapter_url=self.next_chapter_url,
        )

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "next_chapter_url": self.next_chapter_url,
            "cached_at": _format_date(self.cached_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CachedChapterRecord":
        # 缺少必需字段时抛 KeyError / TypeError, 由缓存层当作未命中处理
        if not isinstance(data["content"], str):
            raise TypeError("content must be a string")
        return cls(
            url=data["url"],
            content=data["content"],
            title=data.get("title"),
            next_chapter_url=data.get("next_chapter_url"),
            cached_at=_parse_date(data.get("cached_at")),
        )
