"""
字段提取工具 — 基于正则 / 字符串扫描的 HTML 提取

不依赖 DOM 解析器: 所有模式匹配都集中在这里,
解析器只通过这些函数访问 HTML。

提取失败 (没匹配到, 或正则本身编译失败) 统一返回 NOT_FOUND,
两种情况对调用方同样不是致命错误。
"""

import logging
import re
from typing import List, Optional, Union
from urllib.parse import urljoin, urlparse

logger = logging.getLogger(__name__)


class NotFound:
    """提取失败的显式结果 (单例, 布尔值为 False)"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "NOT_FOUND"


NOT_FOUND = NotFound()

Extracted = Union[str, NotFound]

# 选择器 id 的历史别名: readcontent 在唯一用过它的站点上真实 id 是 showReading
LEGACY_ID_ALIASES = {
    "readcontent": "showReading",
}

_ENTITIES = {
    "&nbsp;": " ",
    "&lt;": "<",
    "&gt;": ">",
    "&amp;": "&",
    "&quot;": '"',
    "&#39;": "'",
}
_ENTITY_RE = re.compile(r'&(?:nbsp|lt|gt|amp|quot|#39);')

_SCRIPT_RE = re.compile(r'<script[^>]*>[\s\S]*?</script>', re.IGNORECASE)
_STYLE_RE = re.compile(r'<style[^>]*>[\s\S]*?</style>', re.IGNORECASE)
_BR_RE = re.compile(r'<br[^>]*>', re.IGNORECASE)
_P_CLOSE_RE = re.compile(r'</p>', re.IGNORECASE)
_P_OPEN_RE = re.compile(r'<p(?:\s[^>]*)?>', re.IGNORECASE)
_TAG_RE = re.compile(r'<[^>]+>')
_TAG_NAME_RE = re.compile(r'[^\s>/]+')


def is_found(value) -> bool:
    return value is not NOT_FOUND


def or_none(value: Extracted) -> Optional[str]:
    """NOT_FOUND / 空串 -> None, 供模型的可选字段使用"""
    if value is NOT_FOUND or not value:
        return None
    return value


# ══════════════════════════════════════════════════════════════
# 正则匹配
# ══════════════════════════════════════════════════════════════

def _compile(pattern: str) -> Optional["re.Pattern"]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.debug("正则编译失败: %s (%s)", pattern, e)
        return None


def match_first(text: str, pattern: str, group: int = 1) -> Extracted:
    """
    第一个匹配的指定捕获组 (大小写不敏感)

    没有匹配、捕获组不存在或未参与匹配、正则编译失败都返回 NOT_FOUND。
    """
    regex = _compile(pattern)
    if regex is None or text is None:
        return NOT_FOUND
    match = regex.search(text)
    if not match:
        return NOT_FOUND
    try:
        value = match.group(group)
    except IndexError:
        return NOT_FOUND
    if value is None:
        return NOT_FOUND
    return value


def match_any_group(text: str, pattern: str) -> Extracted:
    """
    多捕获组模式: 第一个匹配中, 按顺序返回第一个非空的捕获组

    用于一条正则用分支写出同一字段的几种标记形式。
    """
    regex = _compile(pattern)
    if regex is None or text is None:
        return NOT_FOUND
    match = regex.search(text)
    if not match:
        return NOT_FOUND
    for value in match.groups():
        if value:
            return value
    return NOT_FOUND


def match_all(text: str, pattern: str) -> List["re.Match"]:
    """所有匹配, 正则编译失败时返回空列表"""
    regex = _compile(pattern)
    if regex is None or text is None:
        return []
    return list(regex.finditer(text))


# ══════════════════════════════════════════════════════════════
# 文本清理
# ══════════════════════════════════════════════════════════════

def decode_entities(text: str) -> str:
    """解码六个常见 HTML 实体 (单趟替换, &amp;lt; 只解一层)"""
    return _ENTITY_RE.sub(lambda m: _ENTITIES[m.group(0)], text)


def strip_tags(text: str) -> str:
    return _TAG_RE.sub("", text)


def strip_and_decode(html: str) -> str:
    """
    HTML 片段 -> 纯文本

    1. 整段删除 <script> / <style>
    2. <br> -> 换行, </p> -> 空行 (段落分隔)
    3. 删除其余标签, 解码实体
    4. 每行去首尾空白, 丢弃空行
    """
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _BR_RE.sub("\n", text)
    text = _P_CLOSE_RE.sub("\n\n", text)
    text = _P_OPEN_RE.sub("", text)
    text = strip_tags(text)
    text = decode_entities(text)
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def clean_field(value: str) -> str:
    """单行字段清理: 去标签、解码实体、去首尾空白"""
    return decode_entities(strip_tags(value)).strip()


# ══════════════════════════════════════════════════════════════
# URL 处理
# ══════════════════════════════════════════════════════════════

def origin_of(url: str) -> str:
    """scheme://host[:port], 解析不出时返回空串"""
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}"


def resolve_relative(href: str, base_url: str, origin: Optional[str] = None) -> str:
    """
    把链接转换为绝对 URL

    - http(s):// 开头: 原样返回
    - // 开头: 补上 base_url 的 scheme
    - / 开头: 拼在 origin 之后 (origin 缺省取 base_url 的 scheme+host)
    - 其他: 相对 base_url 所在目录解析
    """
    href = href.strip()
    if href.lower().startswith(("http://", "https://")):
        return href
    if href.startswith("//"):
        scheme = urlparse(base_url).scheme or "https"
        return f"{scheme}:{href}"
    if href.startswith("/"):
        root = (origin or origin_of(base_url)).rstrip("/")
        return root + href
    return urljoin(base_url, href)


# ══════════════════════════════════════════════════════════════
# 选择器提取
# ══════════════════════════════════════════════════════════════

def extract_by_tag_id(html: str, element_id: str) -> Extracted:
    """
    按 id 提取元素内容

    找到 id="..." 后向前找 "<" 确定标签名, 再向后找第一个 </tag>。
    这不是嵌套解析: 内容里如有同名标签, 会在第一个闭合处截断。
    """
    actual_id = LEGACY_ID_ALIASES.get(element_id, element_id)

    id_match = re.search(re.escape(f'id="{actual_id}"'), html, re.IGNORECASE)
    if not id_match:
        return NOT_FOUND

    tag_start = html.rfind("<", 0, id_match.start())
    if tag_start == -1:
        return NOT_FOUND

    name_match = _TAG_NAME_RE.match(html, tag_start + 1)
    if not name_match:
        return NOT_FOUND
    tag_name = name_match.group(0)

    open_end = html.find(">", id_match.end())
    if open_end == -1:
        return NOT_FOUND
    content_start = open_end + 1

    end_match = re.compile(re.escape(f"</{tag_name}>"), re.IGNORECASE).search(html, content_start)
    if not end_match:
        return NOT_FOUND

    content = strip_and_decode(html[content_start:end_match.start()])
    return content or NOT_FOUND


def extract_by_class(html: str, class_name: str, tag: str = "") -> Extracted:
    """class 属性包含 class_name 的第一个元素 (tag 为空表示任意标签)"""
    tag_part = re.escape(tag) if tag else ""
    pattern = (
        rf'<{tag_part}[^>]*class=["\'][^"\']*{re.escape(class_name)}[^"\']*["\'][^>]*>'
        r'([\s\S]*?)</[^>]*>'
    )
    raw = match_first(html, pattern)
    if not raw:
        return NOT_FOUND
    return strip_and_decode(raw) or NOT_FOUND


def extract_by_tag(html: str, tag: str) -> Extracted:
    """第一个指定标签名的元素"""
    name = re.escape(tag)
    raw = match_first(html, rf'<{name}(?:\s[^>]*)?>([\s\S]*?)</{name}>')
    if not raw:
        return NOT_FOUND
    return strip_and_decode(raw) or NOT_FOUND


def extract_element(html: str, selector: str) -> Extracted:
    """
    极简选择器:
      #id       -> extract_by_tag_id
      .class    -> extract_by_class
      tag.class -> 指定标签 + class
      tag       -> extract_by_tag
    不支持组合 / 后代选择器。
    """
    selector = selector.strip()
    if not selector:
        return NOT_FOUND
    if selector.startswith("#"):
        return extract_by_tag_id(html, selector[1:])
    if selector.startswith("."):
        return extract_by_class(html, selector[1:])
    if "." in selector:
        parts = selector.split(".")
        if len(parts) != 2:
            return NOT_FOUND
        return extract_by_class(html, parts[1], tag=parts[0])
    return extract_by_tag(html, selector)


def extract_href(html: str, selector: str, base_url: str, origin: Optional[str] = None) -> Extracted:
    """
    链接选择器 -> 绝对 URL

    含 "." 的选择器按 tag.class 合成一条正则 (class 属性需在 href 之前),
    否则取第一个该标签的 href。
    """
    selector = selector.strip()
    if "." in selector:
        parts = selector.split(".")
        if len(parts) != 2:
            return NOT_FOUND
        tag, class_name = parts
        pattern = (
            rf'<{re.escape(tag)}[^>]*class=["\'][^"\']*{re.escape(class_name)}[^"\']*["\']'
            r'[^>]*href=["\']([^"\']+)["\']'
        )
    else:
        pattern = rf'<{re.escape(selector)}\b[^>]*href=["\']([^"\']+)["\']'

    href = match_first(html, pattern)
    if not href:
        return NOT_FOUND
    return resolve_relative(href, base_url, origin)


def extract_link_by_text(html: str, text: str, base_url: str, origin: Optional[str] = None) -> Extracted:
    """链接文字恰好为 text 的第一个 <a> 的绝对 URL (如 "下一页" / "下一章")"""
    pattern = rf'<a[^>]*href=["\']([^"\']+)["\'][^>]*>\s*{re.escape(text)}\s*</a>'
    href = match_first(html, pattern)
    if not href:
        return NOT_FOUND
    return resolve_relative(href, base_url, origin)
