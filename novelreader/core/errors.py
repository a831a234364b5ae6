"""
错误类型 — 解析引擎对外抛出的全部异常

传播规则:
- UnsupportedSite / InvalidURL / ParseError / TransportError / EncodingError
  会中止 parse_book, 由调用方提示用户
- 可选字段 (作者/封面/简介/章节标题) 提取失败只会降级为 None, 不抛异常
- 缓存读写失败在缓存层内部吞掉, 不会到达这里
"""


class NovelReaderError(Exception):
    """所有引擎异常的基类"""


class UnsupportedSite(NovelReaderError):
    """没有任何解析器 / 站点配置能处理该 URL"""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"不支持的网站: {url}")


class InvalidURL(NovelReaderError, ValueError):
    """URL 格式错误 (缺少 scheme 或 host)"""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"无效的URL: {url}")


class TransportError(NovelReaderError):
    """网络错误、超时或 HTTP 状态异常"""

    def __init__(self, url: str, reason: str = ""):
        self.url = url
        self.reason = reason
        msg = f"网络请求失败: {url}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class EncodingError(NovelReaderError):
    """响应正文不是合法的 UTF-8"""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"无法解析HTML (非 UTF-8 编码): {url}")


class ParseError(NovelReaderError, ValueError):
    """无法从 URL 提取 bookId, 或页面缺少必需结构 (如章节目录)"""
