"""Tests for stencil.scanner — directive scanning and code generation."""

import logging

import pytest

from stencil.exceptions import ErrorCode, TemplateSyntaxError
from stencil.scanner import MAIN_ROUTINE, LineMap, block_routine, scan


class TestLiteralsAndExpressions:
    def test_plain_text(self) -> None:
        result = scan("Hello, world!\n", "t.lt")
        assert result.main == "_write('Hello, world!\\n')\n"
        assert result.blocks == {}
        assert result.dependencies == []
        assert result.extends is None

    def test_empty_template(self) -> None:
        result = scan("", "t.lt")
        assert result.main == ""

    def test_expression(self) -> None:
        result = scan("Hello, <%= name %>!", "t.lt")
        assert result.main.splitlines() == [
            "_write('Hello, ')",
            "_write(_str(name))",
            "_write('!')",
        ]

    def test_expression_mode_tag(self) -> None:
        result = scan("<%= html title %>", "t.lt")
        assert result.main == "_write(_escape_html(title))\n"

    def test_mode_tag_requires_more_text(self) -> None:
        """A lone mode word is the expression itself."""
        result = scan("<%= html %>", "t.lt")
        assert result.main == "_write(_str(html))\n"

    def test_format_spec(self) -> None:
        result = scan("<%= %.2f price %>", "t.lt")
        assert result.main == "_write(_str(_format('%.2f', price)))\n"

    def test_mode_tag_and_format_spec(self) -> None:
        result = scan("<%= latex %5d count %>", "t.lt")
        assert result.main == "_write(_escape_latex(_format('%5d', count)))\n"

    def test_mode_tag_right_after_marker(self) -> None:
        result = scan("<%=html x%>", "t.lt")
        assert result.main == "_write(_escape_html(x))\n"

    def test_mode_tag_glued_to_format_spec(self) -> None:
        result = scan("<%=html%.2f x%>", "t.lt")
        assert result.main == "_write(_escape_html(_format('%.2f', x)))\n"

    def test_expression_with_call_and_modulo(self) -> None:
        result = scan("<%= fmt(a % b) %>", "t.lt")
        assert result.main == "_write(_str(fmt(a % b)))\n"

    def test_empty_expression(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="empty expression"):
            scan("<%=   %>", "t.lt")

    def test_literal_quotes_and_backslashes(self, run_code) -> None:
        source = "It's \"quoted\" \\ and '''triple'''\n"
        assert run_code(scan(source, "t.lt").main) == source


class TestEscapeInstruction:
    def test_ambient_mode(self) -> None:
        result = scan("<%! escape html %><%= a %><%= none b %>", "t.lt")
        assert result.main.splitlines() == [
            "_write(_escape_html(a))",
            "_write(_str(b))",
        ]

    def test_initial_mode(self) -> None:
        result = scan("<%= a %>", "t.lt", escape="url")
        assert result.main == "_write(_escape_url(a))\n"

    def test_unknown_mode(self) -> None:
        with pytest.raises(TemplateSyntaxError) as exc_info:
            scan("<%! escape json %>", "t.lt")
        assert exc_info.value.code is ErrorCode.INVALID_INSTRUCTION


class TestCodeRegions:
    def test_statement(self) -> None:
        result = scan("<% x = 1 %><%= x %>", "t.lt")
        assert result.main.splitlines() == ["x = 1", "_write(_str(x))"]

    def test_loop_suite(self, run_code) -> None:
        source = "<% for item in items: %><li><%= item %></li><% end %>"
        result = scan(source, "t.lt")
        assert result.main.splitlines() == [
            "for item in items:",
            "    _write('<li>')",
            "    _write(_str(item))",
            "    _write('</li>')",
        ]
        assert run_code(result.main, {"items": ["a", "b"]}) == "<li>a</li><li>b</li>"

    def test_if_elif_else(self, run_code) -> None:
        source = (
            "<% if n == 1: %>one<% elif n == 2: %>two<% else: %>many<% end %>"
        )
        code = scan(source, "t.lt").main
        assert run_code(code, {"n": 1}) == "one"
        assert run_code(code, {"n": 2}) == "two"
        assert run_code(code, {"n": 5}) == "many"

    def test_nested_suites(self, run_code) -> None:
        source = (
            "<% for row in rows: %>"
            "<% for cell in row: %>[<%= cell %>]<% end %>;"
            "<% end %>"
        )
        code = scan(source, "t.lt").main
        assert run_code(code, {"rows": [[1, 2], [3]]}) == "[1][2];[3];"

    def test_empty_suite_gets_pass(self) -> None:
        result = scan("<% if x: %><% end %>", "t.lt")
        assert result.main.splitlines() == ["if x:", "    pass"]

    def test_comment_region(self) -> None:
        assert scan("<%# note: %>", "t.lt").main == ""

    def test_comment_is_not_suite_content(self) -> None:
        result = scan("<% if x: %><%# todo: %><% end %>", "t.lt")
        assert result.main.splitlines() == ["if x:", "    pass"]

    def test_end_with_comment(self) -> None:
        result = scan("<% if x: %>y<% end  # if %>", "t.lt")
        assert result.main.splitlines() == ["if x:", "    _write('y')"]

    def test_suite_opener_with_trailing_comment(self) -> None:
        result = scan("<% if x:  # check %>y<% end %>", "t.lt")
        assert result.main.splitlines() == ["if x:  # check", "    _write('y')"]

    def test_multiline_region(self, run_code) -> None:
        source = "<%\ntotal = 0\nfor n in nums:\n    total += n\n%><%= total %>"
        code = scan(source, "t.lt").main
        assert code.splitlines() == [
            "total = 0",
            "for n in nums:",
            "    total += n",
            "_write(_str(total))",
        ]
        assert run_code(code, {"nums": [1, 2, 3]}) == "6"

    def test_region_keeps_relative_indentation(self) -> None:
        source = "<% for n in nums:\n     if n: %>x<% end %>"
        assert scan(source, "t.lt").main.splitlines() == [
            "for n in nums:",
            "  if n:",
            "      _write('x')",
        ]

    def test_try_except(self, run_code) -> None:
        source = "<% try: %><%= 1 / d %><% except ZeroDivisionError: %>inf<% end %>"
        code = scan(source, "t.lt").main
        assert run_code(code, {"d": 2}) == "0.5"
        assert run_code(code, {"d": 0}) == "inf"

    def test_end_without_suite(self) -> None:
        with pytest.raises(TemplateSyntaxError) as exc_info:
            scan("text<% end %>", "t.lt")
        assert exc_info.value.code is ErrorCode.UNBALANCED_BLOCK

    def test_else_without_suite(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="'else' without an open suite"):
            scan("<% else: %>", "t.lt")

    def test_unclosed_suite(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="missing 'end'"):
            scan("<% for x in y: %>text", "t.lt")


class TestInstructions:
    def test_include(self) -> None:
        result = scan("a<%! include header.lt %>b", "t.lt")
        assert result.main.splitlines() == [
            "_write('a')",
            "_render_template('header.lt')",
            "_write('b')",
        ]
        assert result.dependencies == ["header.lt"]

    def test_include_recorded_once(self) -> None:
        result = scan("<%! include x.lt %><%! include x.lt %>", "t.lt")
        assert result.dependencies == ["x.lt"]
        assert result.main.count("_render_template('x.lt')") == 2

    def test_quoted_name(self) -> None:
        result = scan("<%! include \"my page %>.lt\" %>", "t.lt")
        assert result.dependencies == ["my page %>.lt"]

    def test_single_quoted_name(self) -> None:
        result = scan("<%! include 'side bar.lt' %>", "t.lt")
        assert result.main == "_render_template('side bar.lt')\n"

    def test_unterminated_quoted_name(self) -> None:
        with pytest.raises(TemplateSyntaxError) as exc_info:
            scan("<%! include 'oops %>", "t.lt")
        assert exc_info.value.code is ErrorCode.UNTERMINATED_NAME

    def test_missing_name(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="'include' requires a name"):
            scan("<%! include %>", "t.lt")

    def test_block(self) -> None:
        result = scan("<title><%! block title %>Hi<%! endblock %></title>", "base.lt")
        assert result.blocks == {"title": "_write('Hi')\n"}
        assert result.main.splitlines() == [
            "_write('<title>')",
            "_render_block(_template, 'title')",
            "_write('</title>')",
        ]

    def test_blocks_in_definition_order(self) -> None:
        source = "<%! block b %>B<%! endblock %><%! block a %>A<%! endblock %>"
        assert list(scan(source, "t.lt").blocks) == ["b", "a"]

    def test_duplicate_block_keeps_first(self) -> None:
        source = "<%! block a %>1<%! endblock %><%! block a %>2<%! endblock %>"
        result = scan(source, "t.lt")
        assert result.blocks == {"a": "_write('1')\n"}
        assert result.main.count("_render_block(_template, 'a')") == 2

    def test_empty_block(self) -> None:
        result = scan("<%! block a %><%! endblock %>", "t.lt")
        assert result.blocks == {"a": ""}

    def test_block_with_suite(self) -> None:
        source = "<%! block items %><% for i in xs: %><%= i %><% end %><%! endblock %>"
        result = scan(source, "t.lt")
        assert result.blocks["items"].splitlines() == ["for i in xs:", "    _write(_str(i))"]

    def test_suite_around_block_dispatch(self) -> None:
        source = "<% if show: %><%! block a %>A<%! endblock %><% end %>"
        assert scan(source, "t.lt").main.splitlines() == [
            "if show:",
            "    _render_block(_template, 'a')",
        ]

    def test_extends(self) -> None:
        source = (
            "<%! extends base.lt %>ignored"
            "<%! block title %>Hello<%! endblock %>"
            "<%! block title %>Again<%! endblock %>"
        )
        result = scan(source, "child.lt")
        assert result.main is None
        assert result.extends == "base.lt"
        assert result.dependencies == ["base.lt"]
        assert result.blocks == {"title": "_write('Again')\n"}

    def test_extends_after_content(self) -> None:
        result = scan("<%! block a %>A<%! endblock %><%! extends base.lt %>", "t.lt")
        assert result.main is None
        assert result.blocks == {"a": "_write('A')\n"}

    def test_second_extends(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="already extends 'a.lt'"):
            scan("<%! extends a.lt %><%! extends b.lt %>", "t.lt")

    def test_nested_block(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="still open"):
            scan("<%! block a %><%! block b %><%! endblock %><%! endblock %>", "t.lt")

    def test_endblock_without_block(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="'endblock' without 'block'"):
            scan("<%! endblock %>", "t.lt")

    def test_block_never_closed(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="never closed") as exc_info:
            scan("line\n<%! block a %>text", "t.lt")
        assert exc_info.value.lineno == 2

    def test_block_ends_inside_suite(self) -> None:
        with pytest.raises(TemplateSyntaxError, match="inside an open suite"):
            scan("<%! block a %><% if x: %><%! endblock %>", "t.lt")

    def test_unknown_instruction_is_ignored(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="stencil.scanner"):
            result = scan("a<%! frobnicate x %>b", "t.lt")
        assert result.main.splitlines() == ["_write('a')", "_write('b')"]
        assert "unknown instruction 'frobnicate'" in caplog.text

    def test_unknown_instruction_strict(self) -> None:
        with pytest.raises(TemplateSyntaxError) as exc_info:
            scan("<%! frobnicate %>", "t.lt", strict=True)
        assert exc_info.value.code is ErrorCode.INVALID_INSTRUCTION


class TestUnterminated:
    @pytest.mark.parametrize(
        "source",
        [
            "line\n<% x = 1",
            "line\n<%= name",
            "line\n<%! include a.lt",
        ],
    )
    def test_reports_opening_line(self, source: str) -> None:
        with pytest.raises(TemplateSyntaxError) as exc_info:
            scan(source, "page.lt")
        error = exc_info.value
        assert error.code is ErrorCode.UNTERMINATED_DIRECTIVE
        assert error.lineno == 2
        assert error.name == "page.lt"
        assert "page.lt:2" in str(error)


class TestLineTracking:
    def test_generated_code_is_identical(self) -> None:
        source = (
            "<h1><%= title %></h1>\n"
            "<% for x in xs: %>\n<%= x %>\n<% end %>\n"
            "<%! block foot %>bye<%! endblock %>"
        )
        plain = scan(source, "t.lt")
        tracked = scan(source, "t.lt", track_lines=True)
        assert plain.main == tracked.main
        assert plain.blocks == tracked.blocks
        assert plain.line_map is None

    def test_lines_per_routine(self) -> None:
        source = "one\n<%= a %>\n<%! block b %>\n<%= c %><%! endblock %>"
        result = scan(source, "t.lt", track_lines=True)
        line_map = result.line_map
        assert isinstance(line_map, LineMap)
        assert MAIN_ROUTINE in line_map
        # _write('one\n'), _write(_str(a)), _write('\n'), _render_block(...)
        assert line_map.lines(MAIN_ROUTINE) == [1, 2, 2, 4]
        # _write('\n'), _write(_str(c))
        assert line_map.lines(block_routine("b")) == [3, 4]

    def test_expression_on_later_line_of_directive(self) -> None:
        result = scan("<%=\n\n  value %>", "t.lt", track_lines=True)
        assert result.line_map.lines(MAIN_ROUTINE) == [3]

    def test_multiline_code_lines(self) -> None:
        source = "<%\nx = 1\ny = 2\n%>"
        result = scan(source, "t.lt", track_lines=True)
        assert result.line_map.lines(MAIN_ROUTINE) == [2, 3]

    def test_extending_template_has_no_main_lines(self) -> None:
        result = scan("<%! extends b.lt %><%! block a %>x<%! endblock %>", "t.lt", track_lines=True)
        assert MAIN_ROUTINE not in result.line_map
        assert block_routine("a") in result.line_map
