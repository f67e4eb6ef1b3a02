"""
Builds a story project into a single playable index.html.

Every Markdown file is compiled even after a failure, so authors see all of
their macro errors in one pass; the build only fails once all files were tried.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Union

from .compiler import StoryCompiler
from .errors import ProjectError
from .project import Project, load_project

logger = logging.getLogger(__name__)

SCRIPT_PLACEHOLDER = '<!--{script}-->'
STORY_PLACEHOLDER = '<!--{story}-->'


@dataclass
class BuildOptions:
    dry_run: bool = False  # Log what would be done without touching the disk
    verbose: bool = False  # Log every file action
    debug: bool = False    # Log the document tree of every story file


def log_action(path: Union[str, Path], action: str) -> None:
    logger.info("  %s %s", action, path)


def gather_files(project: Project, patterns: List[str]) -> List[str]:
    """
    Expands glob patterns relative to the project directory. Returns sorted
    relative paths, leaving out ignored files and the output directory.
    """
    base = project.base_path
    output_path = project.output_path
    ignored = set(_glob(base, project.ignore))
    return sorted(
        path for path in set(_glob(base, patterns))
        if path not in ignored and output_path not in (base / path).resolve().parents
    )


def _glob(base: Path, patterns: List[str]) -> List[str]:
    found = []
    for pattern in patterns:
        # "dir/**" should match the files below dir, not just its subdirectories
        if pattern.endswith('**'):
            pattern += '/*'
        for path in base.glob(pattern):
            if path.is_file():
                found.append(path.relative_to(base).as_posix())
    return found


def compile_story(project: Project, files: List[str], options: BuildOptions):
    """Compiles story files in order. Returns (html, error_count)."""
    compiler = StoryCompiler(debug=options.debug)
    html = ''
    error_count = 0
    for relative_path in files:
        log_action(relative_path, 'render')
        source = (project.base_path / relative_path).read_text(encoding='utf-8')
        rendered = compiler.render(source, relative_path)
        if rendered is None:
            error_count += 1
        else:
            html += f"<!-- {relative_path} -->\n{rendered}\n"
    return html, error_count


def bundle_scripts(project: Project, files: List[str]) -> str:
    javascript = ''
    for relative_path in files:
        log_action(relative_path, 'import')
        script = (project.base_path / relative_path).read_text(encoding='utf-8')
        javascript += f"// {relative_path}\n{script}\n"
    return javascript


def apply_template(project: Project, html: str, javascript: str) -> str:
    """
    Inserts story markup and scripts into the project's html template. The
    template loads the story engine; the page only calls Core.GotoSection.
    """
    template_path = project.template_path
    if not template_path.exists():
        raise ProjectError(f'Template file not found: "{template_path}"')
    if not template_path.is_file():
        raise ProjectError(f'Template "{template_path}" is not a file')

    template = template_path.read_text(encoding='utf-8')
    # exports holds everything story scripts may call
    script_section = f"<script>var exports = {{}};{javascript}</script>"
    template = template.replace(SCRIPT_PLACEHOLDER, script_section)
    template = template.replace(STORY_PLACEHOLDER, html)
    template += f'<script>Core.GotoSection("{project.start}");</script>'
    return template


def clean_directory(path: Path, options: BuildOptions) -> None:
    """Deletes a directory and everything below it."""
    if path.is_dir():
        for child in path.iterdir():
            clean_directory(child, options)
        if options.verbose:
            log_action(path, 'rmdir')
        if not options.dry_run:
            path.rmdir()
    else:
        if options.verbose:
            log_action(path, 'unlink')
        if not options.dry_run:
            path.unlink()


def copy_assets(project: Project, files: List[str], output_dir: Path, options: BuildOptions) -> None:
    for relative_path in files:
        log_action(relative_path, 'copy')
        if not options.dry_run:
            destination = output_dir / relative_path
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(project.base_path / relative_path, destination)


def build(project_path: Union[str, Path], options: BuildOptions = None) -> bool:
    """
    Compiles every source file of a project into <output>/index.html.
    Returns False if any story file failed to compile.
    """
    options = options or BuildOptions()
    project = load_project(project_path)
    if options.dry_run:
        logger.warning("(This is a dry run. No output files will be written.)")

    output_dir = project.output_path
    if output_dir == project.base_path or output_dir in project.base_path.parents:
        raise ProjectError(f'Output directory "{output_dir}" would contain the project itself')

    targets: Dict[str, List[str]] = {
        'markdown': gather_files(project, project.markdown),
        'javascript': gather_files(project, project.javascript),
        'assets': gather_files(project, project.assets),
    }

    html, error_count = compile_story(project, targets['markdown'], options)
    if error_count > 0:
        logger.error("Build failed: %d file%s had errors", error_count, '' if error_count == 1 else 's')
        return False

    javascript = bundle_scripts(project, targets['javascript'])
    page = apply_template(project, html, javascript)

    if output_dir.exists():
        clean_directory(output_dir, options)
    if not options.dry_run:
        output_dir.mkdir(parents=True, exist_ok=True)

    copy_assets(project, targets['assets'], output_dir, options)

    # Reported last so the final output line is the file that runs the story
    index_path = output_dir / 'index.html'
    log_action(os.path.relpath(index_path, project.base_path), 'output')
    if not options.dry_run:
        index_path.write_text(page, encoding='utf-8')
    return True
