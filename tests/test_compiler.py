"""
Story compiler tests
====================
Tests for:
  - Section declarations and placement rules
  - Expansion spans in text, inline code and code blocks
  - Link and image macros
  - Escapes
  - Error reporting and per-file failure

Run with:  pytest tests/test_compiler.py -v
"""

from __future__ import annotations

import logging

import pytest

from fractive.compiler import StoryCompiler
from fractive.errors import (
    CompileError,
    DuplicateSection,
    InvalidLinkMacro,
    InvalidSectionPlacement,
    SectionAsImageSource,
    UnknownMacro,
    UnrecognizedMacro,
    UnterminatedMacro,
)

START = '<div id="Start" class="section" hidden="true">\n'


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 1. Sections
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestSections:
    def test_single_section(self, story):
        assert story("Hello.\n") == START + "<p>Hello.</p>\n</div>"

    def test_two_sections(self, compiler):
        html = compiler.compile("{{A}}\n\none\n\n{{B}}\n\ntwo\n", "s.md")
        assert html == (
            '<div id="A" class="section" hidden="true">\n<p>one</p>\n'
            '</div><div id="B" class="section" hidden="true">\n<p>two</p>\n</div>'
        )
        assert html.endswith("</p>\n</div>")
        assert html.count("</div>") == 2

    def test_empty_file(self, compiler):
        assert compiler.compile("", "empty.md") == ""

    def test_file_without_sections(self, compiler):
        with pytest.raises(InvalidSectionPlacement):
            compiler.compile("Just some prose.\n", "s.md")

    def test_content_before_first_section(self, compiler):
        with pytest.raises(InvalidSectionPlacement):
            compiler.compile("Intro\n\n{{Start}}\n\nText\n", "s.md")

    def test_declaration_after_text(self, story):
        with pytest.raises(InvalidSectionPlacement):
            story("Some text {{Hall}}\n")

    def test_declaration_before_text(self, story):
        with pytest.raises(InvalidSectionPlacement):
            story("{{Hall}} and then text\n")

    def test_declaration_on_its_own_line_inside_paragraph(self, story):
        with pytest.raises(InvalidSectionPlacement):
            story("{{Hall}}\nstill the same paragraph\n")

    def test_declaration_inside_list(self, story):
        with pytest.raises(InvalidSectionPlacement):
            story("- {{Hall}}\n")

    def test_declaration_inside_blockquote(self, story):
        with pytest.raises(InvalidSectionPlacement):
            story("> {{Hall}}\n")

    def test_duplicate_section_in_file(self, compiler):
        with pytest.raises(DuplicateSection):
            compiler.compile("{{A}}\n\none\n\n{{A}}\n\ntwo\n", "s.md")

    def test_duplicate_section_across_files(self, compiler):
        compiler.compile("{{A}}\n\none\n", "a.md")
        with pytest.raises(DuplicateSection):
            compiler.compile("{{A}}\n\ntwo\n", "b.md")

    def test_failed_file_does_not_claim_sections(self, compiler):
        assert compiler.render("{{A}}\n\nbroken {@Foo\n", "a.md") is None
        assert compiler.render("{{A}}\n\nfine\n", "b.md") is not None

    def test_each_file_opens_its_own_first_section(self, compiler):
        second = compiler.compile("{{B}}\n\ntwo\n", "b.md")
        assert second.startswith('<div id="B" class="section" hidden="true">')


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 2. Expansion spans
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestSpans:
    def test_variable_span_keeps_surrounding_text(self, story):
        html = story("You have {$x} gold.\n")
        assert '<p>You have <span data-expand-macro="$x"></span> gold.</p>' in html

    def test_macro_at_start_and_end(self, story):
        html = story("{$x}\n")
        assert '<p><span data-expand-macro="$x"></span></p>' in html

    def test_several_macros_in_one_text(self, story):
        html = story("{@Hall} then {#ring} then {$x}.\n")
        assert ('<p><span data-expand-macro="@Hall"></span> then '
                '<span data-expand-macro="#ring"></span> then '
                '<span data-expand-macro="$x"></span>.</p>') in html

    def test_adjacent_macros(self, story):
        html = story("{$a}{$b}\n")
        assert '<span data-expand-macro="$a"></span><span data-expand-macro="$b"></span>' in html

    def test_inline_code(self, story):
        html = story("Value: `{$x}`\n")
        assert '<p>Value: <code><span data-expand-macro="$x"></span></code></p>' in html

    def test_code_block(self, story):
        html = story("```\nvalue {$x}\n```\n")
        assert '<pre><code><span data-expand-macro="$x"></span></code></pre>' in html
        assert "<pre><code>value </code></pre>" in html

    def test_macros_in_emphasis_and_headings(self, story):
        html = story("# Room {$n}\n\n*look {#around}*\n")
        assert '<h1>Room <span data-expand-macro="$n"></span></h1>' in html
        assert '<em>look <span data-expand-macro="#around"></span></em>' in html

    def test_macro_across_soft_break_lines(self, story):
        html = story("first {$a}\nsecond {$b}\n")
        assert '<span data-expand-macro="$a"></span><br />' in html
        assert 'second <span data-expand-macro="$b"></span>' in html

    def test_unknown_sigil(self, story):
        with pytest.raises(UnknownMacro):
            story("What is {%this}?\n")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 3. Escapes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestEscapes:
    def test_escaped_braces_are_literal(self, story):
        html = story("Write \\{$x\\} to show a macro.\n")
        assert "<p>Write {$x} to show a macro.</p>" in html
        assert "data-expand-macro" not in html
        assert "\\" not in html

    def test_escape_in_inline_code(self, story):
        html = story("`\\{$x}`\n")
        assert "<code>{$x}</code>" in html

    def test_escape_before_real_macro(self, story):
        html = story("\\{ then {$x}\n")
        assert '<p>{ then <span data-expand-macro="$x"></span></p>' in html

    def test_escape_in_text_after_a_macro(self, story):
        html = story("{$x} and \\{literal\\}\n")
        assert '<span data-expand-macro="$x"></span> and {literal}' in html

    def test_escapes_in_macro_link_text(self, story):
        html = story("[Say \\{hi\\} \\*now\\*]({@A})\n")
        assert '<a href="#" data-goto-section="A">Say {hi} *now*</a>' in html
        assert "\\" not in html

    def test_escapes_in_inline_link_text(self, story):
        html = story("[Open \\{box\\}]({#open:inline})\n")
        assert '<a href="#" id="_inline-0" data-replace-with="open">Open {box}</a>' in html


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 4. Links
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestLinks:
    def test_goto_section(self, story):
        html = story("[Go]({@Foo})\n")
        assert '<p><a href="#" data-goto-section="Foo">Go</a></p>' in html
        assert 'id="_inline' not in html

    def test_call_function(self, story):
        html = story("[Ring]({#ring})\n")
        assert '<a href="#" data-call-function="ring">Ring</a>' in html

    def test_inline_link(self, story):
        html = story("[More]({#bar:inline})\n")
        assert '<a href="#" id="_inline-0" data-replace-with="bar">More</a>' in html

    def test_inline_ids_increase(self, story):
        html = story("[One]({#bar:inline}) [Two]({@Foo:inline})\n")
        assert 'id="_inline-0" data-replace-with="bar"' in html
        assert 'id="_inline-1" data-replace-with="Foo"' in html

    def test_inline_ids_continue_across_files(self, compiler):
        first = compiler.compile("{{A}}\n\n[x]({@A:inline})\n", "a.md")
        second = compiler.compile("{{B}}\n\n[y]({@B:inline})\n", "b.md")
        assert 'id="_inline-0"' in first
        assert 'id="_inline-1"' in second

    def test_inline_ids_restart_with_new_compiler(self):
        html = StoryCompiler().compile("{{A}}\n\n[x]({@A:inline})\n", "a.md")
        assert 'id="_inline-0"' in html

    def test_link_text_keeps_formatting(self, story):
        html = story("[**Bold** move]({@Foo})\n")
        assert '<a href="#" data-goto-section="Foo"><strong>Bold</strong> move</a>' in html

    def test_link_text_macros_are_expanded(self, story):
        html = story("[Buy for {$price}]({#buy})\n")
        assert ('<a href="#" data-call-function="buy">Buy for '
                '<span data-expand-macro="$price"></span></a>') in html

    def test_ordinary_link_untouched(self, story):
        html = story("[Site](http://example.com)\n")
        assert '<a href="http://example.com">Site</a>' in html

    def test_variable_link(self, story):
        with pytest.raises(InvalidLinkMacro):
            story("[Gold]({$gold})\n")

    def test_unrecognized_link(self, story):
        with pytest.raises(UnrecognizedMacro):
            story("[Odd]({%odd})\n")

    def test_unknown_modifier(self, story):
        with pytest.raises(UnrecognizedMacro):
            story("[Odd]({@Foo:sideways})\n")

    def test_non_ascii_section_link_matches_declaration(self, compiler):
        html = compiler.compile("{{Café}}\n\n[Go]({@Café})\n", "a.md")
        assert '<div id="Café" class="section" hidden="true">' in html
        assert '<a href="#" data-goto-section="Café">Go</a>' in html

    def test_unterminated_link(self, story):
        with pytest.raises(UnterminatedMacro):
            story("[Go]({@Foo)\n")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 5. Images
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestImages:
    def test_plain_image_gets_title(self, story):
        html = story("![A cave](cave.png)\n")
        assert '<img src="cave.png" alt="A cave" title="A cave">' in html

    def test_function_image(self, story):
        html = story("![Map]({#bar})\n")
        assert '<img data-image-source-macro="bar" src="#" alt="Map" title="Map">' in html

    def test_variable_image(self, story):
        html = story("![Portrait]({$face})\n")
        assert 'data-image-source-macro="face"' in html

    def test_non_ascii_function_image(self, story):
        html = story("![m]({#carte_été})\n")
        assert '<img data-image-source-macro="carte_été" src="#" alt="m" title="m">' in html

    def test_plain_image_source_stays_encoded(self, story):
        html = story("![x](my%20pic.png)\n")
        assert '<img src="my%20pic.png" alt="x" title="x">' in html

    def test_section_image(self, story):
        with pytest.raises(SectionAsImageSource):
            story("![Nope]({@Foo})\n")

    def test_unknown_image_macro(self, story):
        with pytest.raises(UnknownMacro):
            story("![Nope]({%x})\n")

    def test_unterminated_image_macro(self, story):
        with pytest.raises(UnterminatedMacro):
            story("![Nope]({#x)\n")

    def test_image_inside_macro_link(self, story):
        html = story("[![Door](door.png)]({@Hall})\n")
        assert ('<a href="#" data-goto-section="Hall">'
                '<img src="door.png" alt="Door" title="Door"></a>') in html


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 6. Error reporting
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TestErrors:
    def test_unterminated_position(self, compiler):
        with pytest.raises(UnterminatedMacro) as excinfo:
            compiler.compile("{{Start}}\n\nGo {@Foo\n", "a.md")
        error = excinfo.value
        assert (error.path, error.line, error.column) == ("a.md", 3, 4)
        assert str(error).startswith("a.md (3,4): ")

    def test_unterminated_position_on_later_line(self, compiler):
        with pytest.raises(UnterminatedMacro) as excinfo:
            compiler.compile("{{Start}}\n\nfirst line\nab {$x\n", "a.md")
        assert (excinfo.value.line, excinfo.value.column) == (4, 4)

    def test_errors_are_compile_errors(self):
        assert issubclass(UnterminatedMacro, CompileError)
        assert issubclass(CompileError, ValueError)

    def test_message_without_position(self):
        assert str(CompileError("Broken", path="a.md")) == "a.md: Broken"

    def test_render_returns_none_and_logs(self, compiler, caplog):
        with caplog.at_level(logging.ERROR):
            assert compiler.render("{{Start}}\n\nGo {@Foo\n", "bad.md") is None
        assert "bad.md (3,4): Unterminated macro" in caplog.text

    def test_batch_continues_after_failure(self, compiler):
        assert compiler.render("{{A}}\n\nGo {@Foo\n", "bad.md") is None
        html = compiler.render("{{B}}\n\nAll {$fine}.\n", "good.md")
        assert html is not None
        assert '<span data-expand-macro="$fine"></span>' in html
