"""
core - 核心基础设施模块

提供网络、数据模型、字段提取、缓存、书架等公共组件,
被所有站点解析器和 CLI 共享。

repository / download / reader 依赖 sources 注册表, 需从各自模块导入。
"""

from .cache import ChapterCache
from .errors import (
    EncodingError, InvalidURL, NovelReaderError, ParseError,
    TransportError, UnsupportedSite,
)
from .models import (
    CachedChapterRecord, Chapter, ChapterContent, CompleteBookInfo,
    Novel, ParserConfig,
)
from .network import (
    set_proxy, get_proxy, detect_system_proxy,
    build_session, fetch_text, SessionFetcher,
)
from .store import NovelStore
from .utils import sanitize_filename

__all__ = [
    "ChapterCache", "NovelStore",
    "NovelReaderError", "UnsupportedSite", "InvalidURL",
    "TransportError", "EncodingError", "ParseError",
    "Chapter", "ChapterContent", "CompleteBookInfo", "Novel",
    "ParserConfig", "CachedChapterRecord",
    "set_proxy", "get_proxy", "detect_system_proxy",
    "build_session", "fetch_text", "SessionFetcher",
    "sanitize_filename",
]
