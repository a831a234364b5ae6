"""
全局配置 — 模块级默认值, 可通过环境变量覆盖

CLI 参数会在单次运行中再覆盖这些值 (见 cli.py)。
导入本模块不会创建任何目录。
"""

import os

# --- 存储路径 ---
DATA_DIR = os.path.join(os.path.expanduser("~"), ".novelreader")
if os.getenv("NOVELREADER_HOME"):
    DATA_DIR = os.getenv("NOVELREADER_HOME")

CACHE_DIR = os.getenv("NOVELREADER_CACHE_DIR") or os.path.join(DATA_DIR, "ChapterCache")
LIBRARY_FILE = os.getenv("NOVELREADER_LIBRARY") or os.path.join(DATA_DIR, "novels.json")

# --- 网络 ---
REQUEST_TIMEOUT = 15          # 单次请求超时 (秒)
if os.getenv("NOVELREADER_TIMEOUT"):
    REQUEST_TIMEOUT = float(os.getenv("NOVELREADER_TIMEOUT"))

PROXY = os.getenv("NOVELREADER_PROXY") or None

# --- 下载 ---
DOWNLOAD_DELAY = 0.3          # 批量下载时两次网络请求之间的间隔 (秒)
if os.getenv("NOVELREADER_DELAY"):
    DOWNLOAD_DELAY = float(os.getenv("NOVELREADER_DELAY"))

PRELOAD_COUNT = 3             # 阅读时预下载后续章节数

# --- 解析上限 ---
MAX_CHAPTER_PAGES = 10        # 章节内分页最多抓取页数
MAX_CATALOG_PAGES = 50        # 目录分页最多页数 (含第一页)
