import unittest

from novelreader.core.extract import (
    NOT_FOUND,
    decode_entities,
    extract_by_tag_id,
    extract_element,
    extract_href,
    extract_link_by_text,
    is_found,
    match_all,
    match_any_group,
    match_first,
    or_none,
    resolve_relative,
    strip_and_decode,
)


class MatchTest(unittest.TestCase):
    def test_match_first_returns_group(self):
        self.assertEqual(match_first('<h1>Hello</h1>', r'<h1>([^<]+)</h1>'), 'Hello')

    def test_match_first_is_case_insensitive(self):
        self.assertEqual(match_first('<H1>Hello</H1>', r'<h1>([^<]+)</h1>'), 'Hello')

    def test_no_match_and_bad_pattern_are_both_not_found(self):
        self.assertIs(match_first('<p>x</p>', r'<h1>([^<]+)</h1>'), NOT_FOUND)
        self.assertIs(match_first('<p>x</p>', r'(unclosed'), NOT_FOUND)
        self.assertIs(match_first('abc', r'(a)', group=2), NOT_FOUND)
        self.assertFalse(NOT_FOUND)
        self.assertFalse(is_found(NOT_FOUND))
        self.assertIsNone(or_none(NOT_FOUND))

    def test_match_any_group_takes_first_non_empty_group(self):
        pattern = r'(?:a=(\d+)|b=(\d+))'
        self.assertEqual(match_any_group('b=5', pattern), '5')
        self.assertEqual(match_any_group('a=7', pattern), '7')
        self.assertIs(match_any_group('c=1', pattern), NOT_FOUND)

    def test_match_all(self):
        matches = match_all('<li>1</li><li>2</li>', r'<li>(\d)</li>')
        self.assertEqual([m.group(1) for m in matches], ['1', '2'])
        self.assertEqual(match_all('x', r'('), [])


class CleanupTest(unittest.TestCase):
    def test_decode_entities_single_pass(self):
        text = '&lt;b&gt; &amp;amp; &quot;x&quot; &#39;y&#39;&nbsp;z'
        self.assertEqual(decode_entities(text), '<b> &amp; "x" \'y\' z')

    def test_plain_text_survives_cleanup(self):
        self.assertEqual(strip_and_decode('第一段'), '第一段')

    def test_strip_and_decode_paragraphs_and_breaks(self):
        html = (
            '<script>var a = 1;</script><style>p {}</style>'
            '<p class="x">  第一段 </p>\n<p>第二段<br/>第三行</p>'
        )
        self.assertEqual(strip_and_decode(html), '第一段\n第二段\n第三行')

    def test_strip_and_decode_all_entities(self):
        html = '<p>A &lt;b&gt; &amp; &quot;x&quot;</p><p>&#39;y&#39;&nbsp;z<br/>&amp;lt;下一行</p>'
        # 解码出的 <b> 是正文, 不再当标签删除
        self.assertEqual(strip_and_decode(html), 'A <b> & "x"\n\'y\' z\n&lt;下一行')

    def test_pre_tag_is_not_treated_as_paragraph(self):
        self.assertEqual(strip_and_decode('<pre>a</pre>'), 'a')


class TagIdTest(unittest.TestCase):
    def test_readcontent_is_read_from_show_reading(self):
        html = '<div id="showReading"><p>第一段</p><p>第二段</p></div>'
        self.assertEqual(extract_element(html, '#readcontent'), '第一段\n第二段')

    def test_readcontent_alias_does_not_fall_back_to_literal_id(self):
        html = '<div id="readcontent"><p>正文</p></div>'
        self.assertIs(extract_element(html, '#readcontent'), NOT_FOUND)

    def test_tag_id_scan(self):
        html = '<body><div class="box" id="content">A<br/>B&amp;C</div></body>'
        self.assertEqual(extract_by_tag_id(html, 'content'), 'A\nB&C')

    def test_nested_same_tag_truncates_at_first_close(self):
        html = '<div id="content">外<div>内</div>尾</div>'
        self.assertEqual(extract_by_tag_id(html, 'content'), '外内')

    def test_missing_id_or_empty_content(self):
        self.assertIs(extract_by_tag_id('<div id="a">x</div>', 'b'), NOT_FOUND)
        self.assertIs(extract_by_tag_id('<div id="a">  </div>', 'a'), NOT_FOUND)


class SelectorTest(unittest.TestCase):
    def test_class_selector(self):
        html = '<div class="chapter title">标题</div>'
        self.assertEqual(extract_element(html, '.title'), '标题')

    def test_tag_class_selector(self):
        html = '<h2 class="title">不是这个</h2><h1 class="title">第1章</h1>'
        self.assertEqual(extract_element(html, 'h1.title'), '第1章')

    def test_tag_selector(self):
        self.assertEqual(extract_element('<h1 class="x">标题</h1>', 'h1'), '标题')
        self.assertIs(extract_element('<h2>标题</h2>', 'h1'), NOT_FOUND)

    def test_compound_selector_is_unsupported(self):
        self.assertIs(extract_element('<div class="a b">x</div>', 'div.a.b'), NOT_FOUND)
        self.assertIs(extract_element('<div>x</div>', ''), NOT_FOUND)


class LinkTest(unittest.TestCase):
    def test_href_with_tag_class_selector_resolves_root_relative(self):
        html = '<a class="next" href="/book/x/y.html">下一章</a>'
        url = extract_href(html, 'a.next', 'https://site.com/book/x/1.html')
        self.assertEqual(url, 'https://site.com/book/x/y.html')

    def test_href_with_bare_tag(self):
        html = '<abbr href="/no">x</abbr><a href="2.html">x</a>'
        self.assertEqual(
            extract_href(html, 'a', 'http://h/ldks/1/1.html'),
            'http://h/ldks/1/2.html',
        )

    def test_href_origin_override(self):
        html = '<a class="next" href="/ldks/1/2.html">x</a>'
        url = extract_href(html, 'a.next', 'http://23txtv.com/ldks/1/1.html', origin='http://1.2.3.4')
        self.assertEqual(url, 'http://1.2.3.4/ldks/1/2.html')

    def test_link_by_exact_text(self):
        html = '<a href="1_2.html">下一页</a><a href="/ldks/1/3.html">下一章</a>'
        base = 'http://h/ldks/1/1.html'
        self.assertEqual(extract_link_by_text(html, '下一页', base), 'http://h/ldks/1/1_2.html')
        self.assertEqual(extract_link_by_text(html, '下一章', base), 'http://h/ldks/1/3.html')
        self.assertIs(extract_link_by_text(html, '上一章', base), NOT_FOUND)


class ResolveRelativeTest(unittest.TestCase):
    base = 'https://site.com/book/x/1.html'

    def test_absolute_passthrough(self):
        self.assertEqual(resolve_relative('http://other.com/a', self.base), 'http://other.com/a')

    def test_protocol_relative(self):
        self.assertEqual(resolve_relative('//cdn.site.com/a.jpg', self.base), 'https://cdn.site.com/a.jpg')

    def test_root_relative(self):
        self.assertEqual(resolve_relative('/book/x/y.html', self.base), 'https://site.com/book/x/y.html')

    def test_directory_relative(self):
        self.assertEqual(resolve_relative('y.html', self.base), 'https://site.com/book/x/y.html')


if __name__ == '__main__':
    unittest.main()
