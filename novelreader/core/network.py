"""
网络基础设施 — 代理、Session 构建、页面抓取

所有解析器通过 fetch_text 获取页面 (也可注入自定义 fetch 用于测试),
统一处理超时、重试、HTTP 错误和编码错误。
"""

import logging
import os
import socket
import ssl
from typing import Callable, Optional
from urllib.parse import urlparse

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from novelreader.core import config
from novelreader.core.errors import EncodingError, InvalidURL, TransportError

# 部分站点只有 IP 或证书不匹配, 统一关闭证书校验, 屏蔽对应警告
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

logger = logging.getLogger(__name__)

# fetch(url) -> 页面文本
Fetcher = Callable[[str], str]


# ══════════════════════════════════════════════════════════════
# 代理管理 (全局)
# ══════════════════════════════════════════════════════════════

_proxy: Optional[str] = config.PROXY


def set_proxy(proxy: Optional[str]):
    """设置全局代理, 格式: http://127.0.0.1:7890 或 socks5://127.0.0.1:1080"""
    global _proxy
    _proxy = proxy.strip() if proxy and proxy.strip() else None


def get_proxy() -> Optional[str]:
    """获取当前全局代理地址"""
    return _proxy


def detect_system_proxy() -> Optional[str]:
    """
    自动检测系统代理

    检测顺序:
    1. 环境变量 (HTTPS_PROXY / HTTP_PROXY)
    2. 本地常见端口探测 (7890 / 7891 / 7897 / 1080)
    """
    for var in ("HTTPS_PROXY", "HTTP_PROXY", "https_proxy", "http_proxy"):
        val = os.environ.get(var)
        if val:
            return val

    for port in (7890, 7891, 7897, 1080):
        try:
            s = socket.create_connection(("127.0.0.1", port), timeout=0.5)
            s.close()
        except OSError:
            continue
        proto = "socks5" if port == 1080 else "http"
        return f"{proto}://127.0.0.1:{port}"

    return None


# ══════════════════════════════════════════════════════════════
# TLS 适配器 — 兼容非标 SSL 服务器
# ══════════════════════════════════════════════════════════════

class _TLSAdapter(HTTPAdapter):
    """降低安全级别以兼容老旧 SSL 配置的小说站"""

    def init_poolmanager(self, *args, **kwargs):
        ctx = ssl.create_default_context()
        ctx.set_ciphers("DEFAULT:@SECLEVEL=1")
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        kwargs["ssl_context"] = ctx
        return super().init_poolmanager(*args, **kwargs)


# ══════════════════════════════════════════════════════════════
# Session 构建
# ══════════════════════════════════════════════════════════════

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


def build_session(
    *,
    user_agent: str = DEFAULT_UA,
    referer: str = "",
    cookies: Optional[dict] = None,
    proxy: Optional[str] = None,
    use_tls_adapter: bool = True,
    max_retries: int = 3,
) -> requests.Session:
    """
    构建带重试、TLS 容错、cookies 和代理的 Session

    Args:
        user_agent: User-Agent 头
        referer: Referer 头
        cookies: 要注入的 cookies
        proxy: 代理地址 (None 则使用全局代理, "__none__" 强制直连)
        use_tls_adapter: 是否使用自定义 TLS 适配器
        max_retries: 最大重试次数
    """
    session = requests.Session()

    retry = Retry(total=max_retries, backoff_factor=1,
                  status_forcelist=[502, 503, 504])
    adapter = _TLSAdapter(max_retries=retry) if use_tls_adapter else HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    session.headers.update({"User-Agent": user_agent})
    if referer:
        session.headers["Referer"] = referer

    if cookies:
        session.cookies.update(cookies)

    p = proxy if proxy is not None else _proxy
    if p and p != "__none__":
        session.proxies = {"http": p, "https": p}

    return session


def validate_url(url: str) -> str:
    """检查 URL 是否为 http(s) 且带 host, 否则抛 InvalidURL"""
    if not url or not isinstance(url, str):
        raise InvalidURL(str(url))
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        raise InvalidURL(url)
    return url


def fetch_text(
    url: str,
    *,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
    **session_kwargs,
) -> str:
    """
    获取页面文本 (UTF-8)

    Raises:
        InvalidURL: URL 格式错误
        TransportError: 网络错误 / 超时 / 非 2xx 状态
        EncodingError: 正文不是合法 UTF-8
    """
    url = validate_url(url)
    if timeout is None:
        timeout = config.REQUEST_TIMEOUT
    if session is None:
        session = build_session(**session_kwargs)

    try:
        resp = session.get(url, timeout=timeout, verify=False)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise TransportError(url, str(e)) from e

    try:
        text = resp.content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EncodingError(url) from e

    logger.debug("GET %s -> %d (%d 字节)", url, resp.status_code, len(resp.content))
    return text.lstrip("\ufeff")


class SessionFetcher:
    """
    复用同一个 Session 的 fetch 可调用对象

    批量下载时避免每章重建连接池; 也可作为解析器的 fetch 注入。
    """

    def __init__(self, timeout: Optional[float] = None, **session_kwargs):
        self.timeout = timeout
        self.session = build_session(**session_kwargs)

    def __call__(self, url: str) -> str:
        return fetch_text(url, timeout=self.timeout, session=self.session)

    def close(self):
        self.session.close()
