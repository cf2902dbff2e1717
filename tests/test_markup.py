"""Tests for XML rendering and the memory tag scanner."""

from ctxstitch.markup import escape_xml, sanitize_tag, scan_tags, to_xml


class TestToXml:
    def test_nested_structure(self):
        state = {"task": "x", "steps": [1, 2], "meta": {"ok": True}, "skip": None}
        assert to_xml(state, "current_state") == (
            "<current_state>\n"
            "  <task>x</task>\n"
            "  <steps>\n"
            "    <item>1</item>\n"
            "    <item>2</item>\n"
            "  </steps>\n"
            "  <meta>\n"
            "    <ok>true</ok>\n"
            "  </meta>\n"
            "</current_state>"
        )

    def test_keys_sanitized(self):
        assert to_xml({"my-key": "v"}, "r") == "<r>\n  <my_key>v</my_key>\n</r>"

    def test_text_escaped(self):
        assert to_xml("a<b & c", "x") == "<x>a&lt;b &amp; c</x>"

    def test_empty_containers(self):
        assert to_xml({}, "r") == "<r></r>"
        assert to_xml([], "r") == "<r></r>"

    def test_none(self):
        assert to_xml(None, "r") == ""

    def test_false_and_zero(self):
        assert to_xml({"a": False, "b": 0}, "r") == "<r>\n  <a>false</a>\n  <b>0</b>\n</r>"


class TestHelpers:
    def test_sanitize_tag(self):
        assert sanitize_tag("user name!") == "user_name_"
        assert sanitize_tag("ok_1") == "ok_1"

    def test_escape_xml(self):
        assert escape_xml("<\"'&>") == "&lt;&quot;&apos;&amp;&gt;"


class TestScanTags:
    TEXT = (
        'pre <update_core_memory key="name">Ada</update_core_memory> mid '
        '<delete_core_memory key="old"/> post'
    )

    def test_open_close_pair(self):
        matches = scan_tags(self.TEXT, "update_core_memory")
        assert len(matches) == 1
        assert matches[0].attrs == {"key": "name"}
        assert matches[0].body == "Ada"
        assert not matches[0].self_closing
        assert self.TEXT[matches[0].start:matches[0].end].startswith("<update_core_memory")

    def test_self_closing(self):
        matches = scan_tags(self.TEXT, "delete_core_memory")
        assert len(matches) == 1
        assert matches[0].self_closing
        assert matches[0].attrs == {"key": "old"}

    def test_self_closing_with_space(self):
        matches = scan_tags('<delete_core_memory key="a" />', "delete_core_memory")
        assert matches[0].self_closing

    def test_multiple_in_order(self):
        text = '<t key="a">1</t><t key="b">2</t>'
        assert [m.body for m in scan_tags(text, "t")] == ["1", "2"]

    def test_prefix_name_not_matched(self):
        assert scan_tags('<tag_other key="a">x</tag_other>', "tag") == []

    def test_unclosed_skipped(self):
        assert scan_tags('<t key="a">never closed', "t") == []

    def test_malformed_attribute_skipped(self):
        assert scan_tags("<t key=a>x</t>", "t") == []

    def test_multiline_body(self):
        matches = scan_tags('<t key="a">\n  line 1\n  line 2\n</t>', "t")
        assert matches[0].body == "\n  line 1\n  line 2\n"
