#!/usr/bin/env python3
"""
小说阅读器 — 命令行接口

自动识别站点并调用对应解析器, 章节缓存在本地, 书架保存在 JSON 文件。

用法:
    # 加入书架 (章节页 / 目录页 / 详情页 URL 均可)
    novelreader add "https://www.cuoceng.com/book/<bookId>.html"

    # 阅读一章 (缓存优先, 自动预下载后续章节)
    novelreader read "http://23.225.143.232/ldks/116429/47508459.html"
    novelreader read <bookId>            # 从书架记录的位置继续

    # 批量缓存 / 导出 txt
    novelreader download <bookId> --start 1 --end 100
    novelreader export <bookId> -o ./books

    # 通用选项
    novelreader --proxy auto --timeout 20 add "URL"
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from novelreader import __version__
from novelreader.core import config
from novelreader.core.cache import ChapterCache
from novelreader.core.download import DownloadCallbacks, DownloadEngine, export_text
from novelreader.core.errors import NovelReaderError, UnsupportedSite
from novelreader.core.logger import setup_logger
from novelreader.core.models import Novel, ParserConfig
from novelreader.core.network import SessionFetcher, detect_system_proxy, set_proxy
from novelreader.core.reader import ReadingSession
from novelreader.core.repository import NovelRepository
from novelreader.core.store import NovelStore
from novelreader.core.utils import fix_windows_encoding
from novelreader.sources import get_site_names


def format_size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def build_repository(args) -> NovelRepository:
    # 整个命令共用一个 Session, repo.shutdown 时关闭
    return NovelRepository(
        cache=ChapterCache(args.cache_dir),
        store=NovelStore(args.library),
        fetch=SessionFetcher(timeout=args.timeout),
    )


def _require_novel(repo: NovelRepository, book_id: str) -> Optional[Novel]:
    novel = repo.get_novel(book_id)
    if novel is None:
        print(f"[FAIL] 书架中没有 bookId={book_id}, 先用 add 添加")
    return novel


# ══════════════════════════════════════════════════════════════
# 子命令
# ══════════════════════════════════════════════════════════════

def cmd_add(repo: NovelRepository, args) -> int:
    novel = repo.add_novel(args.url)
    print(f"[OK] 《{novel.title}》 已加入书架")
    print(f"  bookId: {novel.id}")
    if novel.author:
        print(f"  作者: {novel.author}")
    print(f"  章节: {len(novel.chapters)}")
    return 0


def cmd_list(repo: NovelRepository, args) -> int:
    novels = repo.get_all_novels()
    if not novels:
        print("书架为空")
        return 0
    for novel in novels:
        index = novel.chapter_index(novel.current_chapter_url) if novel.current_chapter_url else None
        position = f"{index + 1}/{len(novel.chapters)}" if index is not None else f"-/{len(novel.chapters)}"
        author = f" ({novel.author})" if novel.author else ""
        print(f"{novel.id}  《{novel.title}》{author}  [{position}] {novel.current_chapter_title or ''}")
    return 0


def cmd_info(repo: NovelRepository, args) -> int:
    novel = _require_novel(repo, args.book_id)
    if novel is None:
        return 1
    if args.refresh:
        novel = repo.refresh_novel(novel)

    cached = sum(1 for ch in novel.chapters if repo.is_chapter_cached(ch.url))
    print(f"《{novel.title}》")
    print(f"  bookId: {novel.id}")
    print(f"  作者: {novel.author or '-'}")
    print(f"  目录: {novel.catalog_url}")
    if novel.cover_url:
        print(f"  封面: {novel.cover_url}")
    print(f"  章节: {len(novel.chapters)} (已缓存 {cached})")
    print(f"  当前: {novel.current_chapter_title or '-'}")
    print(f"  最近阅读: {novel.last_read_date:%Y-%m-%d %H:%M}")
    if novel.introduction:
        print(f"\n{novel.introduction}")
    return 0


def cmd_read(repo: NovelRepository, args) -> int:
    config_override = ParserConfig(*args.selectors) if args.selectors else None

    novel = repo.get_novel(args.target)
    if novel is not None:
        session = ReadingSession(repo, novel, config_override)
        content = session.resume()
        if content is None:
            print(f"[FAIL] 《{novel.title}》 没有可读章节")
            return 1
    else:
        session = ReadingSession(repo, config=config_override)
        content = session.open(args.target)

    for i in range(max(1, args.count)):
        if i > 0:
            if not session.has_next:
                break
            print()
            content = session.next()
        if content.title:
            print(content.title)
            print("=" * 40)
        print(content.content)

    if content.next_chapter_url:
        print(f"\n[下一章] {content.next_chapter_url}")
    return 0


def cmd_download(repo: NovelRepository, args) -> int:
    novel = _require_novel(repo, args.book_id)
    if novel is None:
        return 1

    stop = threading.Event()

    def on_progress(val: float, label: str):
        width = 30
        filled = int(width * val)
        sys.stdout.write(f"\r  [{'#' * filled}{'.' * (width - filled)}] {label}   ")
        sys.stdout.flush()
        if val >= 1:
            sys.stdout.write("\n")

    callbacks = DownloadCallbacks(
        on_log=lambda msg: print(msg),
        on_status=lambda text: None,
        on_info=lambda text: print(f"[*] {text}"),
        on_progress=on_progress,
        is_stopped=stop.is_set,
    )

    previous = signal.signal(signal.SIGINT, lambda signum, frame: stop.set())
    try:
        report = DownloadEngine(repo, callbacks).run(novel, args.start, args.end)
    finally:
        signal.signal(signal.SIGINT, previous)
    return 1 if report.failed and not (report.fetched or report.cached) else 0


def cmd_export(repo: NovelRepository, args) -> int:
    novel = _require_novel(repo, args.book_id)
    if novel is None:
        return 1
    export_text(novel, repo.cache, args.output, on_log=print)
    return 0


def cmd_remove(repo: NovelRepository, args) -> int:
    novel = _require_novel(repo, args.book_id)
    if novel is None:
        return 1
    repo.delete_novel(novel)
    print(f"[OK] 已从书架移除: 《{novel.title}》")
    return 0


def cmd_cache(repo: NovelRepository, args) -> int:
    if args.action == "clear":
        repo.clear_chapter_cache()
        print("[OK] 章节缓存已清空")
    else:
        print(f"缓存目录: {repo.cache.cache_dir}")
        print(f"章节数: {repo.cache_count()}")
        print(f"占用: {format_size(repo.cache_size())}")
    return 0


# ══════════════════════════════════════════════════════════════
# 入口
# ══════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="novelreader",
        description="小说阅读器 (配置驱动的站点解析 + 本地章节缓存)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"支持的站点: {', '.join(get_site_names())}",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--proxy", default=None, help="代理地址 (auto = 自动检测)")
    parser.add_argument("--timeout", type=float, default=None,
                        help=f"请求超时秒数 (默认: {config.REQUEST_TIMEOUT})")
    parser.add_argument("--cache-dir", default=None, help=f"章节缓存目录 (默认: {config.CACHE_DIR})")
    parser.add_argument("--library", default=None, help=f"书架文件 (默认: {config.LIBRARY_FILE})")
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    parser.add_argument("--log-file", default=None, help="日志文件路径")

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("add", help="解析并加入书架")
    p.add_argument("url", help="章节页 / 目录页 / 详情页 URL")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("list", help="列出书架")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("info", help="查看书籍信息")
    p.add_argument("book_id")
    p.add_argument("--refresh", action="store_true", help="重新解析目录")
    p.set_defaults(func=cmd_info)

    p = sub.add_parser("read", help="阅读章节 (URL, 或 bookId 从上次位置继续)")
    p.add_argument("target", help="章节 URL 或书架中的 bookId")
    p.add_argument("-n", "--count", type=int, default=1, help="连续阅读章数 (默认: 1)")
    p.add_argument("--selectors", nargs=3, metavar=("TITLE", "CONTENT", "NEXT"),
                   help="自定义选择器, 例如: h1 #content a.next")
    p.set_defaults(func=cmd_read)

    p = sub.add_parser("download", help="批量缓存章节")
    p.add_argument("book_id")
    p.add_argument("--start", type=int, default=1, help="起始章节 (默认: 1)")
    p.add_argument("--end", type=int, default=None, help="结束章节 (默认: 全部)")
    p.set_defaults(func=cmd_download)

    p = sub.add_parser("export", help="把已缓存章节导出为 txt")
    p.add_argument("book_id")
    p.add_argument("-o", "--output", default=".", help="输出目录 (默认: 当前目录)")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("remove", help="从书架移除")
    p.add_argument("book_id")
    p.set_defaults(func=cmd_remove)

    p = sub.add_parser("cache", help="章节缓存管理")
    p.add_argument("action", choices=["info", "clear"])
    p.set_defaults(func=cmd_cache)

    return parser


def apply_global_options(args) -> None:
    setup_logger(
        log_level=logging.DEBUG if args.verbose else logging.WARNING,
        log_file=args.log_file,
    )

    if args.timeout:
        config.REQUEST_TIMEOUT = args.timeout

    if args.proxy:
        if args.proxy.lower() == "auto":
            detected = detect_system_proxy()
            if detected:
                set_proxy(detected)
                print(f"[*] 自动检测到代理: {detected}")
            else:
                print("[!] 未检测到系统代理, 将使用直连")
        else:
            set_proxy(args.proxy)


def main(argv: Optional[List[str]] = None) -> int:
    fix_windows_encoding()

    args = build_parser().parse_args(argv)
    apply_global_options(args)

    repo = build_repository(args)
    try:
        return args.func(repo, args)
    except UnsupportedSite as e:
        print(f"[FAIL] 不支持的网站: {e.url}")
        print(f"  支持的站点: {', '.join(get_site_names())}")
        return 1
    except NovelReaderError as e:
        print(f"[FAIL] 加载失败: {e}")
        return 1
    finally:
        repo.shutdown(wait=True)


if __name__ == "__main__":
    sys.exit(main())
