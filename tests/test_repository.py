import os
import tempfile
import threading
import time
import unittest
from unittest import mock

from novelreader.core.cache import ChapterCache
from novelreader.core.download import DownloadCallbacks, DownloadEngine, export_text, select_range
from novelreader.core.errors import InvalidURL, ParseError, TransportError, UnsupportedSite
from novelreader.core.models import Chapter, ChapterContent, CompleteBookInfo, ParserConfig
from novelreader.core.reader import ReadingSession
from novelreader.core.repository import DownloadReport, NovelRepository
from novelreader.core.store import NovelStore
from novelreader.sources import GenericParser
from novelreader.sources.sites import LINGDIAN


BASE = 'http://site.test/book/7/'


def chapter_url(n):
    return f'{BASE}{n}.html'


class FakeParser:
    """章节 n 的下一章是 n+1, 最后一章没有下一章"""

    def __init__(self, last=5, fail=()):
        self.last = last
        self.fail = set(fail)
        self.calls = []
        self.book_calls = []
        self._lock = threading.Lock()
        self.info = CompleteBookInfo(
            book_id='7',
            title='假书',
            catalog_url=BASE,
            chapters=[Chapter(str(n), f'第{n}章', chapter_url(n)) for n in range(1, last + 1)],
            author='某人',
            parser_config=ParserConfig('h1', '#content', 'a.next'),
        )

    def parse_book(self, url):
        self.book_calls.append(url)
        return self.info

    def parse_chapter_with(self, url, parser_config=None):
        with self._lock:
            self.calls.append(url)
        if url in self.fail:
            raise TransportError(url, '503 Service Unavailable')
        n = int(url.rsplit('/', 1)[1].split('.')[0])
        next_url = chapter_url(n + 1) if n < self.last else None
        return ChapterContent(f'第{n}章', f'正文{n}', next_url)

    def calls_for(self, url):
        return self.calls.count(url)


class RepositoryTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.parser = FakeParser()
        self.repo = self.make_repo()

    def tearDown(self):
        self.repo.shutdown(wait=True)
        self.tmp.cleanup()

    def make_repo(self, **kwargs):
        kwargs.setdefault('parser_factory', lambda url, fetch=None: self.parser)
        kwargs.setdefault('delay', 0)
        kwargs.setdefault('preload_count', 0)
        return NovelRepository(
            cache=ChapterCache(os.path.join(self.tmp.name, 'cache')),
            store=NovelStore(os.path.join(self.tmp.name, 'novels.json')),
            **kwargs
        )


class ChapterContentTest(RepositoryTestCase):
    def test_second_read_comes_from_cache(self):
        first = self.repo.get_chapter_content(chapter_url(1))
        second = self.repo.get_chapter_content(chapter_url(1))

        self.assertEqual(first, second)
        self.assertEqual(self.parser.calls_for(chapter_url(1)), 1)
        self.assertTrue(self.repo.is_chapter_cached(chapter_url(1)))

    def test_cache_survives_a_new_repository(self):
        self.repo.get_chapter_content(chapter_url(1))

        other = self.make_repo()
        try:
            content = other.get_chapter_content(chapter_url(1))
        finally:
            other.shutdown()
        self.assertEqual(content.content, '正文1')
        self.assertEqual(self.parser.calls_for(chapter_url(1)), 1)

    def test_failed_fetch_is_not_cached(self):
        self.parser.fail.add(chapter_url(2))
        with self.assertRaises(TransportError):
            self.repo.get_chapter_content(chapter_url(2))
        self.assertFalse(self.repo.is_chapter_cached(chapter_url(2)))

    def test_unsupported_site(self):
        repo = self.make_repo(parser_factory=lambda url, fetch=None: None)
        try:
            with self.assertRaises(UnsupportedSite) as ctx:
                repo.get_chapter_content('https://www.example.com/1.html')
        finally:
            repo.shutdown()
        self.assertEqual(ctx.exception.url, 'https://www.example.com/1.html')

    def test_invalid_url(self):
        with self.assertRaises(InvalidURL):
            self.repo.parse_book('not a url')
        with self.assertRaises(InvalidURL):
            self.repo.get_chapter_content('ftp://site.test/1.html')

    def test_fetch_is_passed_to_parser_factory(self):
        fetch = mock.Mock()
        factory = mock.Mock(return_value=self.parser)
        repo = self.make_repo(parser_factory=factory, fetch=fetch)
        try:
            repo.get_chapter_content(chapter_url(1))
        finally:
            repo.shutdown()
        factory.assert_called_once_with(chapter_url(1), fetch=fetch)

    def test_concurrent_reads_of_one_url_fetch_once(self):
        url = chapter_url(1)
        entered = threading.Event()
        release = threading.Event()
        parse = self.parser.parse_chapter_with

        def slow_parse(chapter, parser_config=None):
            entered.set()
            release.wait(5)
            return parse(chapter, parser_config)

        results = []

        def read():
            results.append(self.repo.get_chapter_content(url))

        with mock.patch.object(self.parser, 'parse_chapter_with', side_effect=slow_parse):
            threads = [threading.Thread(target=read) for _ in range(2)]
            for t in threads:
                t.start()
            self.assertTrue(entered.wait(5))
            # 第二个线程排队等同一把锁
            for _ in range(500):
                if self.repo._url_locks.get(url, [None, 0])[1] == 2:
                    break
                time.sleep(0.01)
            self.assertEqual(self.repo._url_locks[url][1], 2)
            release.set()
            for t in threads:
                t.join(5)

        self.assertEqual(len(results), 2)
        self.assertEqual(results[0], results[1])
        self.assertEqual(self.parser.calls_for(url), 1)
        self.assertEqual(self.repo._url_locks, {})

    def test_url_locks_are_dropped_after_use(self):
        self.parser.fail.add(chapter_url(2))
        self.repo.get_chapter_content(chapter_url(1))
        with self.assertRaises(TransportError):
            self.repo.get_chapter_content(chapter_url(2))
        self.repo.download_chapters(self.parser.info.chapters)

        self.assertEqual(self.repo._url_locks, {})

    def test_shutdown_closes_fetch(self):
        fetch = mock.Mock()
        repo = self.make_repo(fetch=fetch)
        repo.shutdown(wait=True)
        fetch.close.assert_called_once_with()


class NovelManagementTest(RepositoryTestCase):
    def test_add_novel_starts_at_first_chapter(self):
        novel = self.repo.add_novel(chapter_url(3))

        self.assertEqual(self.parser.book_calls, [chapter_url(3)])
        self.assertEqual(novel.id, '7')
        self.assertEqual(novel.current_chapter_url, chapter_url(1))
        self.assertEqual(novel.current_chapter_title, '第1章')
        self.assertEqual(novel.parser_config, ParserConfig('h1', '#content', 'a.next'))
        self.assertEqual([n.id for n in self.repo.get_all_novels()], ['7'])

    def test_update_reading_position_looks_up_title(self):
        novel = self.repo.add_novel(BASE)
        before = novel.last_read_date

        self.repo.update_reading_position(novel, chapter_url(4))

        stored = self.repo.get_novel('7')
        self.assertEqual(stored.current_chapter_url, chapter_url(4))
        self.assertEqual(stored.current_chapter_title, '第4章')
        self.assertGreaterEqual(stored.last_read_date, before)

    def test_refresh_replaces_chapters_and_keeps_position(self):
        novel = self.repo.add_novel(BASE)
        self.repo.update_reading_position(novel, chapter_url(2))

        self.parser.info.chapters.append(Chapter('6', '第6章', chapter_url(6)))
        refreshed = self.repo.refresh_novel(self.repo.get_novel('7'))

        self.assertEqual(len(refreshed.chapters), 6)
        self.assertEqual(refreshed.current_chapter_url, chapter_url(2))
        self.assertEqual(self.parser.book_calls[-1], BASE)

    def test_delete_novel(self):
        novel = self.repo.add_novel(BASE)
        self.assertTrue(self.repo.delete_novel(novel))
        self.assertIsNone(self.repo.get_novel('7'))

    def test_catalog_without_chapters_is_not_added(self):
        fetch = mock.Mock(return_value='<h1>测试小说</h1><p>目录还没生成</p>')
        repo = self.make_repo(parser_factory=lambda url, fetch=None: GenericParser(LINGDIAN, fetch=fetch),
                              fetch=fetch)
        try:
            with self.assertRaises(ParseError):
                repo.add_novel('http://23.225.143.232/ldks/116429/')
            self.assertEqual(repo.get_all_novels(), [])
        finally:
            repo.shutdown()


class DownloadChaptersTest(RepositoryTestCase):
    def chapters(self, count=5):
        return self.parser.info.chapters[:count]

    def test_single_failure_does_not_stop_batch(self):
        self.parser.fail.add(chapter_url(3))

        report = self.repo.download_chapters(self.chapters())

        self.assertEqual((report.fetched, report.cached, report.failed), (4, 0, 1))
        self.assertEqual(report.failed_urls, [chapter_url(3)])
        self.assertFalse(report.cancelled)
        self.assertEqual(self.repo.cache_count(), 4)

    def test_rerun_only_fetches_missing(self):
        self.parser.fail.add(chapter_url(3))
        self.repo.download_chapters(self.chapters())
        self.parser.fail.clear()

        report = self.repo.download_chapters(self.chapters())

        self.assertEqual((report.fetched, report.cached, report.failed), (1, 4, 0))
        self.assertEqual(self.parser.calls_for(chapter_url(1)), 1)
        self.assertEqual(self.parser.calls_for(chapter_url(3)), 2)
        self.assertEqual(report.summary(), '完成 - 下载: 1, 已缓存: 4, 失败: 0, 共 5 章')

    def test_corrupt_cache_entry_is_fetched_again(self):
        url = chapter_url(1)
        os.makedirs(self.repo.cache.cache_dir, exist_ok=True)
        with open(self.repo.cache.path_for(url), 'w', encoding='utf-8') as f:
            f.write('{broken')

        with self.assertLogs('novelreader.core.cache', level='WARNING'):
            report = self.repo.download_chapters(self.chapters(1))

        self.assertEqual((report.fetched, report.cached, report.failed), (1, 0, 0))
        self.assertEqual(self.parser.calls_for(url), 1)
        self.assertEqual(self.repo.cache.get_content(url).content, '正文1')

    def test_progress_and_cancellation(self):
        progress = []
        stop = threading.Event()

        def on_progress(done, total):
            progress.append((done, total))
            if done == 2:
                stop.set()

        report = self.repo.download_chapters(self.chapters(), on_progress=on_progress, is_stopped=stop.is_set)

        self.assertTrue(report.cancelled)
        self.assertEqual(progress, [(1, 5), (2, 5)])
        self.assertEqual(report.completed, 2)
        self.assertEqual(len(self.parser.calls), 2)
        self.assertIn('(已停止)', report.summary())

    def test_delay_only_between_network_requests(self):
        self.repo.get_chapter_content(chapter_url(1))
        self.repo.get_chapter_content(chapter_url(2))

        with mock.patch.object(self.repo, '_interruptible_sleep') as sleep:
            self.repo.download_chapters(self.chapters(2))
            self.assertEqual(sleep.call_count, 0)

            self.repo.download_chapters(self.chapters(5))
            # 3, 4 之后等待, 最后一章之后不等
            self.assertEqual(sleep.call_count, 2)

    def test_interruptible_sleep_returns_when_stopped(self):
        with mock.patch('novelreader.core.repository.time.sleep') as sleep:
            self.repo._interruptible_sleep(30, lambda: True)
        sleep.assert_not_called()

    def test_empty_report(self):
        report = DownloadReport()
        self.assertEqual(report.completed, 0)
        self.assertEqual(self.repo.download_chapters([]).total, 0)


class PreloadTest(RepositoryTestCase):
    def test_preload_walks_next_links(self):
        walked = self.repo.preload_from(chapter_url(1), count=3)

        self.assertEqual(walked, 3)
        self.assertEqual([self.repo.is_chapter_cached(chapter_url(n)) for n in range(1, 6)],
                         [True, True, True, False, False])

    def test_preload_stops_at_last_chapter(self):
        self.assertEqual(self.repo.preload_from(chapter_url(4), count=5), 2)

    def test_preload_stops_on_first_failure(self):
        self.parser.fail.add(chapter_url(2))
        self.assertEqual(self.repo.preload_from(chapter_url(1), count=3), 1)
        self.assertNotIn(chapter_url(3), self.parser.calls)

    def test_preload_nothing(self):
        self.assertEqual(self.repo.preload_from(None), 0)

    def test_background_preload(self):
        future = self.repo.preload_in_background(chapter_url(2), count=2)
        self.assertEqual(future.result(timeout=5), 2)
        self.assertTrue(self.repo.is_chapter_cached(chapter_url(3)))


class ReadingSessionTest(RepositoryTestCase):
    def test_open_records_position_and_preloads(self):
        repo = self.make_repo(preload_count=2)
        try:
            novel = repo.add_novel(BASE)
            session = ReadingSession(repo, novel)

            content = session.open(chapter_url(1))
            session.preload_future.result(timeout=5)

            self.assertEqual(content.content, '正文1')
            self.assertEqual(session.config, novel.parser_config)
            self.assertEqual(repo.get_novel('7').current_chapter_url, chapter_url(1))
            self.assertTrue(repo.is_chapter_cached(chapter_url(2)))
            self.assertTrue(repo.is_chapter_cached(chapter_url(3)))
            self.assertFalse(repo.is_chapter_cached(chapter_url(4)))
        finally:
            repo.shutdown(wait=True)

    def test_next_and_previous(self):
        session = ReadingSession(self.repo)
        session.open(chapter_url(1))
        self.assertFalse(session.has_previous)

        self.assertEqual(session.next().title, '第2章')
        self.assertEqual(session.previous_url, chapter_url(1))

        self.assertEqual(session.previous().title, '第1章')
        self.assertEqual(session.current_url, chapter_url(1))
        self.assertIsNone(session.previous())

    def test_next_at_last_chapter(self):
        session = ReadingSession(self.repo)
        session.open(chapter_url(5))
        self.assertFalse(session.has_next)
        self.assertIsNone(session.next())
        self.assertIsNone(session.preload_future)

    def test_resume(self):
        novel = self.repo.add_novel(BASE)
        self.repo.update_reading_position(novel, chapter_url(3))

        session = ReadingSession(self.repo, self.repo.get_novel('7'))
        self.assertEqual(session.resume().title, '第3章')
        self.assertIsNone(ReadingSession(self.repo).resume())

    def test_failed_open_keeps_state(self):
        session = ReadingSession(self.repo)
        session.open(chapter_url(1))
        self.parser.fail.add(chapter_url(2))

        with self.assertRaises(TransportError):
            session.next()
        self.assertEqual(session.current_url, chapter_url(1))
        self.assertFalse(session.has_previous)


class DownloadEngineTest(RepositoryTestCase):
    def test_select_range(self):
        chapters = self.parser.info.chapters
        self.assertEqual([c.id for c in select_range(chapters, 2, 3)], ['2', '3'])
        self.assertEqual(len(select_range(chapters)), 5)
        self.assertEqual(len(select_range(chapters, 0, 2)), 2)
        self.assertEqual(select_range(chapters, 9), [])

    def test_run_reports_progress(self):
        novel = self.repo.add_novel(BASE)
        logs, infos, progress = [], [], []
        callbacks = DownloadCallbacks(
            on_log=logs.append,
            on_info=infos.append,
            on_progress=lambda val, label: progress.append((val, label)),
        )

        report = DownloadEngine(self.repo, callbacks).run(novel, start=2, end=3)

        self.assertEqual(report.fetched, 2)
        self.assertEqual(progress, [(0.5, '1/2'), (1.0, '2/2'), (1, '完成')])
        self.assertIn('第2~3章 (共2章)', infos[0])
        self.assertTrue(logs[-1].startswith('\n[DONE] 完成'))
        self.assertEqual(sorted(self.parser.calls), [chapter_url(2), chapter_url(3)])

    def test_run_lists_failures(self):
        novel = self.repo.add_novel(BASE)
        self.parser.fail.add(chapter_url(1))
        logs = []

        report = DownloadEngine(self.repo, DownloadCallbacks(on_log=logs.append)).run(novel, end=2)

        self.assertEqual(report.failed, 1)
        self.assertIn(f'  [FAIL] {chapter_url(1)}', logs)

    def test_run_without_chapters_or_range(self):
        novel = self.repo.add_novel(BASE)
        logs = []
        engine = DownloadEngine(self.repo, DownloadCallbacks(on_log=logs.append))

        self.assertEqual(engine.run(novel, start=10).total, 0)
        novel.chapters = []
        self.assertEqual(engine.run(novel).total, 0)
        self.assertIn('[FAIL] 未找到任何章节', logs)
        self.assertEqual(self.parser.calls, [])

    def test_export_text(self):
        novel = self.repo.add_novel(BASE)
        novel.introduction = '一段简介'
        self.repo.get_chapter_content(chapter_url(1))
        self.repo.get_chapter_content(chapter_url(3))
        logs = []

        path = export_text(novel, self.repo.cache, os.path.join(self.tmp.name, 'out'), on_log=logs.append)

        self.assertEqual(os.path.basename(path), '假书.txt')
        with open(path, encoding='utf-8') as f:
            text = f.read()
        self.assertTrue(text.startswith('假书\n作者: 某人\n\n一段简介\n'))
        self.assertIn('\n\n第1章\n\n正文1\n', text)
        self.assertIn('\n\n第3章\n\n正文3\n', text)
        self.assertNotIn('正文2', text)
        self.assertIn('[*] 已导出 2/5 章', logs[0])
        self.assertIn('未缓存 3 章', logs[1])

    def test_export_failure_leaves_no_temp_file(self):
        novel = self.repo.add_novel(BASE)
        out = os.path.join(self.tmp.name, 'out')

        with mock.patch.object(self.repo.cache, 'get_content', side_effect=OSError('disk full')):
            with self.assertRaises(OSError):
                export_text(novel, self.repo.cache, out, on_log=lambda message: None)

        self.assertEqual(os.listdir(out), [])


if __name__ == '__main__':
    unittest.main()
