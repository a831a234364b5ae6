"""
批量下载引擎 — 把一本书的章节缓存到本地, 并导出为 txt

职责:
- 章节范围裁剪 (1-based, 含两端)
- 调用 NovelRepository.download_chapters (顺序、跳过已缓存、失败继续)
- 进度 / 状态 / 日志通过回调输出, 支持 stop 中断
- 从缓存导出整本书为单个文本文件

CLI 使用这个引擎, 只需传入不同的回调函数即可。
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, List, Optional

from .cache import ChapterCache
from .models import Chapter, Novel
from .repository import DownloadReport, NovelRepository
from .utils import discard_file, sanitize_filename

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════
# 回调接口
# ══════════════════════════════════════════════════════════════

@dataclass
class DownloadCallbacks:
    """
    下载过程中的回调函数集合

    CLI 模式: 将这些函数绑定到 print
    """
    on_log: Callable[[str], None] = lambda msg: print(msg)
    on_status: Callable[[str], None] = lambda text: None
    on_info: Callable[[str], None] = lambda text: None
    on_progress: Callable[[float, str], None] = lambda val, label: None
    is_stopped: Callable[[], bool] = lambda: False


def select_range(chapters: List[Chapter], start: int = 1, end: Optional[int] = None) -> List[Chapter]:
    """按 1-based 闭区间 [start, end] 截取章节"""
    start_idx = max(0, start - 1)
    end_idx = end if end else len(chapters)
    return chapters[start_idx:end_idx]


# ══════════════════════════════════════════════════════════════
# 批量下载
# ══════════════════════════════════════════════════════════════

class DownloadEngine:
    """
    批量章节下载

    顺序请求, 两次请求之间等待 repository.delay 秒;
    已缓存的章节直接跳过。
    """

    def __init__(self, repository: NovelRepository, callbacks: Optional[DownloadCallbacks] = None):
        self.repository = repository
        self.cb = callbacks or DownloadCallbacks()

    def run(self, novel: Novel, start: int = 1, end: Optional[int] = None) -> DownloadReport:
        if not novel.chapters:
            self.cb.on_log("[FAIL] 未找到任何章节")
            self.cb.on_status("未找到章节")
            return DownloadReport()

        chapters = select_range(novel.chapters, start, end)
        if not chapters:
            self.cb.on_log(f"[FAIL] 章节范围无效: {start}~{end} (共 {len(novel.chapters)} 章)")
            self.cb.on_status("范围无效")
            return DownloadReport()

        first = max(1, start)
        self.cb.on_info(
            f"{novel.title}   "
            f"第{first}~{first + len(chapters) - 1}章 (共{len(chapters)}章)"
        )

        cached = sum(1 for ch in chapters if self.repository.is_chapter_cached(ch.url))
        if cached == len(chapters):
            self.cb.on_log("[*] 所有章节均已缓存, 无需重复下载")
        elif cached:
            self.cb.on_log(f"[*] 跳过已缓存: {cached} 章")
        self.cb.on_log(f"[*] 待下载: {len(chapters) - cached} 章\n")

        def on_progress(done: int, total: int):
            chapter = chapters[done - 1]
            self.cb.on_progress(done / total, f"{done}/{total}")
            self.cb.on_status(f"下载中 [{done}/{total}]  {chapter.title}")

        report = self.repository.download_chapters(
            chapters,
            novel.parser_config,
            on_progress=on_progress,
            is_stopped=self.cb.is_stopped,
        )

        if report.cancelled:
            self.cb.on_log("[!] 用户请求停止")
        for url in report.failed_urls:
            self.cb.on_log(f"  [FAIL] {url}")

        self.cb.on_progress(1, "完成")
        summary = report.summary()
        self.cb.on_status(summary)
        self.cb.on_log(f"\n[DONE] {summary}")
        return report


# ══════════════════════════════════════════════════════════════
# 导出
# ══════════════════════════════════════════════════════════════

def export_text(
    novel: Novel,
    cache: ChapterCache,
    output_dir: str,
    on_log: Callable[[str], None] = logger.info,
) -> str:
    """
    把已缓存的章节按目录顺序写入 <output_dir>/<书名>.txt

    未缓存的章节跳过并在日志中列出。

    Returns:
        输出文件路径
    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, sanitize_filename(novel.title) + ".txt")

    missing = []
    written = 0
    tmp_path = path + ".tmp"
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(f"{novel.title}\n")
            if novel.author:
                f.write(f"作者: {novel.author}\n")
            if novel.introduction:
                f.write(f"\n{novel.introduction}\n")

            for chapter in novel.chapters:
                content = cache.get_content(chapter.url)
                if content is None:
                    missing.append(chapter)
                    continue
                f.write(f"\n\n{content.title or chapter.title}\n\n")
                f.write(content.content)
                f.write("\n")
                written += 1
        os.replace(tmp_path, path)
    except BaseException:
        discard_file(tmp_path)
        raise

    on_log(f"[*] 已导出 {written}/{len(novel.chapters)} 章: {os.path.abspath(path)}")
    if missing:
        display = ", ".join(ch.title for ch in missing[:20]) + (" ... 等" if len(missing) > 20 else "")
        on_log(f"[!] 未缓存 {len(missing)} 章, 已跳过: {display}")
    return path
