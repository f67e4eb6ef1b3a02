"""
Story project files.

A project file sits in the story directory and overrides any of the defaults
below. It is read as YAML, so JSON project files load unchanged:

    title: My Story
    markdown:
      - source/**/*.md
    output: build
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import jsonschema
import yaml

from .errors import ProjectError

logger = logging.getLogger(__name__)

PROJECT_FILENAMES = ('fractive.yaml', 'fractive.yml', 'fractive.json')

PROJECT_DEFAULTS: Dict[str, Any] = {
    'title': 'Untitled',
    'author': 'Anonymous',
    'description': 'An interactive story written in Fractive',
    'website': 'fractive.io',
    'markdown': ['source/**/*.md'],
    'javascript': ['source/**/*.js'],
    'assets': ['assets/**'],
    'ignore': [],
    'template': 'template.html',
    'output': 'build',
    'start': 'Start',
}

_LIST_KEYS = ('markdown', 'javascript', 'assets', 'ignore')

# A single pattern may be given as a plain string
_PATTERNS = {
    'oneOf': [
        {'type': 'string'},
        {'type': 'array', 'items': {'type': 'string'}},
    ]
}

PROJECT_SCHEMA: Dict[str, Any] = {
    'type': 'object',
    'additionalProperties': False,
    'properties': {
        'title': {'type': 'string'},
        'author': {'type': 'string'},
        'description': {'type': 'string'},
        'website': {'type': 'string'},
        'markdown': {
            'oneOf': [
                {'type': 'string', 'minLength': 1},
                {'type': 'array', 'items': {'type': 'string'}, 'minItems': 1},
            ]
        },
        'javascript': _PATTERNS,
        'assets': _PATTERNS,
        'ignore': _PATTERNS,
        'template': {'type': 'string'},
        'output': {'type': 'string', 'minLength': 1},
        'start': {'type': 'string', 'minLength': 1},
    },
}


@dataclass
class Project:
    base_path: Path
    title: str
    author: str
    description: str
    website: str
    template: str
    output: str
    start: str
    markdown: List[str] = field(default_factory=list)
    javascript: List[str] = field(default_factory=list)
    assets: List[str] = field(default_factory=list)
    ignore: List[str] = field(default_factory=list)

    @property
    def output_path(self) -> Path:
        return (self.base_path / self.output).resolve()

    @property
    def template_path(self) -> Path:
        return (self.base_path / self.template).resolve()


def find_project_file(path: Union[str, Path]) -> Path:
    """Accepts a story directory or a project file path."""
    path = Path(path)
    if path.is_dir():
        for name in PROJECT_FILENAMES:
            candidate = path / name
            if candidate.is_file():
                return candidate
        raise ProjectError(f"No project file ({', '.join(PROJECT_FILENAMES)}) found in {path}")
    if not path.is_file():
        raise ProjectError(f"Project file not found: {path}")
    return path


def load_project(path: Union[str, Path]) -> Project:
    """Loads a project file and overlays it onto PROJECT_DEFAULTS."""
    project_file = find_project_file(path)
    try:
        with open(project_file, 'r', encoding='utf-8') as f:
            overrides = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ProjectError(f"{project_file}: Failed parsing project file: {exc}") from exc

    if overrides is None:
        overrides = {}
    _validate(project_file, overrides)

    settings = dict(PROJECT_DEFAULTS)
    settings.update(overrides)
    for key in _LIST_KEYS:
        if isinstance(settings[key], str):
            settings[key] = [settings[key]]

    logger.debug("Loaded project %s", project_file)
    return Project(base_path=project_file.parent.resolve(), **settings)


def _validate(project_file: Path, overrides: Any) -> None:
    validator = jsonschema.Draft202012Validator(PROJECT_SCHEMA)
    problems = []
    for error in sorted(validator.iter_errors(overrides), key=lambda e: [str(p) for p in e.absolute_path]):
        if error.absolute_path:
            setting = '/'.join(str(p) for p in error.absolute_path)
            problems.append(f"'{setting}': {error.message}")
        else:
            problems.append(error.message)
    if problems:
        raise ProjectError(f"{project_file}: Invalid project file: " + '; '.join(problems))
