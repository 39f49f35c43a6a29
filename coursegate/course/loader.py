"""
YAML course definition loader.

Directory layout:
```
<course>/
  course.yaml                  # slug, title, navigation_mode, ..., modules: [slug, ...]
  modules/<module>/module.yaml # title, objectives, lessons: [slug | {slug, title, ...}]
  modules/<module>/knowledge-check.yaml   # optional
```

A single-file form (``load_course_file``) holds the same data with the
modules inlined.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError

from coursegate.errors import InvalidRequestError

from .models import CourseDefinition

COURSE_FILE = "course.yaml"
MODULE_FILE = "module.yaml"
KNOWLEDGE_CHECK_FILE = "knowledge-check.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidRequestError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequestError(f"Expected a mapping at the top of {path}")
    return data


def build_course(data: dict[str, Any], source: str = "<memory>") -> CourseDefinition:
    """Validate raw course data, converting pydantic errors into InvalidRequestError."""
    try:
        return CourseDefinition.model_validate(data)
    except ValidationError as e:
        raise InvalidRequestError(f"Invalid course definition in {source}: {e}") from e


def load_course_file(file_path: str | Path) -> CourseDefinition:
    """Load a course whose modules are inlined in one YAML file."""
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Course file not found: {file_path}")
    return build_course(_read_yaml(file_path), str(file_path))


def load_course_directory(course_dir: str | Path) -> CourseDefinition:
    """
    Load a course from its directory.

    Module order follows the ``modules`` list in course.yaml; when it is
    absent, module directories are taken in name order. The course slug
    defaults to the directory name.
    """
    course_dir = Path(course_dir)
    course_path = course_dir / COURSE_FILE
    if not course_path.exists():
        raise FileNotFoundError(f"Course file not found: {course_path}")

    data = _read_yaml(course_path)
    data.setdefault("slug", course_dir.name)

    modules_dir = course_dir / "modules"
    module_slugs = data.get("modules")
    if module_slugs is None:
        module_slugs = sorted(p.name for p in modules_dir.iterdir() if p.is_dir()) if modules_dir.exists() else []

    modules = []
    for entry in module_slugs:
        if isinstance(entry, dict):
            # already inlined
            modules.append(entry)
            continue
        module_dir = modules_dir / str(entry)
        module_path = module_dir / MODULE_FILE
        if not module_path.exists():
            raise InvalidRequestError(f"Module '{entry}' listed in {course_path} has no {MODULE_FILE}")
        module_data = _read_yaml(module_path)
        module_data.setdefault("slug", str(entry))

        kc_path = module_dir / KNOWLEDGE_CHECK_FILE
        if kc_path.exists():
            module_data["knowledge_check"] = _read_yaml(kc_path)
        modules.append(module_data)

    data["modules"] = modules
    course = build_course(data, str(course_dir))
    logger.debug(
        f"Loaded course {course.slug}: {len(course.modules)} modules, {course.total_lessons} lessons"
    )
    return course
