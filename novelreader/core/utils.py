"""
通用工具函数
"""

import io
import json
import os
import re
import sys
import threading


# ══════════════════════════════════════════════════════════════
# 文件名处理
# ══════════════════════════════════════════════════════════════

def sanitize_filename(name: str) -> str:
    """清理文件名中的非法字符 (Windows 兼容)"""
    name = re.sub(r'[<>:"/\\|?*\r\n\t]', '_', name)
    name = name.strip('. ')
    return name or "untitled"


# ══════════════════════════════════════════════════════════════
# JSON 文件读写
# ══════════════════════════════════════════════════════════════

def write_json_atomic(path: str, data) -> None:
    """
    先写临时文件再 os.replace, 读者不会看到写了一半的文件

    并发写同一个文件时最后一次写入生效。
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    tmp_path = f"{path}.{os.getpid()}.{threading.get_ident()}.tmp"
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        discard_file(tmp_path)
        raise


def discard_file(path: str) -> None:
    """删除残留的临时文件, 不存在或删不掉都忽略"""
    try:
        os.remove(path)
    except OSError:
        pass


def read_json(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# ══════════════════════════════════════════════════════════════
# Windows 控制台编码修复
# ══════════════════════════════════════════════════════════════

def fix_windows_encoding():
    """修复 Windows 控制台的 UTF-8 编码问题"""
    if sys.platform == "win32":
        if hasattr(sys.stdout, "buffer") and getattr(sys.stdout, "encoding", "").lower() != "utf-8":
            sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "buffer") and getattr(sys.stderr, "encoding", "").lower() != "utf-8":
            sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding="utf-8", errors="replace")
