"""
sources — 小说站点解析器注册表

查找顺序:
  1. 专用解析器 (get_parser_classes, 按 match 正则)
  2. 通用解析器 + 站点配置 (sites.SITE_CONFIGS, 按 host 子串)
同一域名两者都能处理时, 专用解析器优先。

添加新站点:
  - 单页目录的站点: 在 sites.py 中添加一个 SiteConfig
  - 结构特殊的站点: 在此目录下创建新的 .py 文件,
    继承 SiteParser 并在下方 get_parser_classes() 中注册
"""

import re
from typing import List, Optional, Type

from novelreader.core.errors import UnsupportedSite
from novelreader.core.network import Fetcher

from .base import SiteParser
from .cuoceng import CuocengParser
from .generic import GenericParser
from .sites import SITE_CONFIGS, SiteConfig, check_host_overlap, config_for

__all__ = [
    "SiteParser", "GenericParser", "CuocengParser", "SiteConfig",
    "get_parser_classes", "find_parser", "require_parser", "get_site_names",
]


def get_parser_classes() -> List[Type[SiteParser]]:
    """返回所有已注册的专用解析器类"""
    return [
        CuocengParser,
    ]


def find_parser(url: str, fetch: Optional[Fetcher] = None) -> Optional[SiteParser]:
    """
    根据 URL 找到兼容的解析器实例

    Returns:
        匹配的解析器实例, 无匹配则返回 None
    """
    for parser_cls in get_parser_classes():
        for pattern in parser_cls.match:
            if re.search(pattern, url, re.IGNORECASE):
                return parser_cls(fetch=fetch)

    site = config_for(url)
    if site is not None:
        return GenericParser(site, fetch=fetch)
    return None


def require_parser(url: str, fetch: Optional[Fetcher] = None) -> SiteParser:
    """同 find_parser, 找不到时抛 UnsupportedSite"""
    parser = find_parser(url, fetch=fetch)
    if parser is None:
        raise UnsupportedSite(url)
    return parser


def get_site_names() -> List[str]:
    """返回所有支持的站点名称"""
    names = set()
    for cls in get_parser_classes():
        names.update(cls.names[:1])
    for site in SITE_CONFIGS:
        names.add(site.name)
    return sorted(names)


check_host_overlap(SITE_CONFIGS)
