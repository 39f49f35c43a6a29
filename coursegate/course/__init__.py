"""Course definitions, loading and the navigation read model."""

from .catalog import CourseCatalog
from .loader import load_course_directory, load_course_file
from .models import CourseDefinition, LessonDefinition, ModuleDefinition, NavigationMode
from .navigation import NavLesson, NavModule, NavTree, build_nav_tree

__all__ = [
    "CourseCatalog",
    "CourseDefinition",
    "LessonDefinition",
    "ModuleDefinition",
    "NavigationMode",
    "NavLesson",
    "NavModule",
    "NavTree",
    "build_nav_tree",
    "load_course_directory",
    "load_course_file",
]
