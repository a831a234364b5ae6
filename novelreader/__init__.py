"""
novelreader — 小说站点解析引擎

从没有 API 的小说网站提取书籍信息、章节目录与章节正文,
并提供磁盘章节缓存、书架存储和批量下载。
"""

__version__ = "1.0.0"
