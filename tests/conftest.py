"""
Test fixtures
=============
A fresh StoryCompiler per test (so inline ids and section names never leak
between tests) and a throwaway story project on disk for build tests.
"""

from __future__ import annotations

import pytest

from fractive.compiler import StoryCompiler

TEMPLATE = """<html>
<head><title>Story</title></head>
<body>
<!--{story}-->
<!--{script}-->
</body>
</html>
"""


@pytest.fixture
def compiler() -> StoryCompiler:
    return StoryCompiler()


@pytest.fixture
def story(compiler):
    """Compiles a story body placed in a leading {{Start}} section."""
    def _compile(body: str) -> str:
        return compiler.compile("{{Start}}\n\n" + body, "story.md")
    return _compile


@pytest.fixture
def project_dir(tmp_path):
    """A minimal valid story project using the default layout."""
    (tmp_path / "source").mkdir()
    (tmp_path / "assets" / "images").mkdir(parents=True)
    (tmp_path / "fractive.yaml").write_text("title: Test Story\n", encoding="utf-8")
    (tmp_path / "template.html").write_text(TEMPLATE, encoding="utf-8")
    (tmp_path / "source" / "a.md").write_text(
        "{{Start}}\n\nYou are in a cave. [Leave]({@Outside})\n", encoding="utf-8")
    (tmp_path / "source" / "b.md").write_text(
        "{{Outside}}\n\nIt is raining. You have {$gold} gold.\n", encoding="utf-8")
    (tmp_path / "source" / "story.js").write_text(
        "exports.ring = function() { return 'ding'; };\n", encoding="utf-8")
    (tmp_path / "assets" / "images" / "cave.png").write_bytes(b"\x89PNG")
    return tmp_path
