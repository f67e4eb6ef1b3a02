from .build import BuildOptions, build
from .compiler import StoryCompiler
from .errors import (
    CompileError,
    DuplicateSection,
    InvalidLinkMacro,
    InvalidSectionPlacement,
    ProjectError,
    SectionAsImageSource,
    UnknownMacro,
    UnrecognizedMacro,
    UnterminatedMacro,
)
from .project import Project, load_project

__version__ = '0.1.0'
