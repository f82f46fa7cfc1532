"""Load course and badge definitions from JSON or YAML files."""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from lms_engine.errors import CatalogError, UnknownCourse
from lms_engine.models import (
    BADGE_CRITERIA, CONTENT_TYPES, MULTI_SELECT, QUESTION_TYPES, SHORT_ANSWER, Assessment, Badge,
    BadgeCriteria, ContentItem, Course, Module, Question,
)

logger = logging.getLogger(__name__)

CONTENT_DIR = Path(__file__).parent / "content"


@dataclass
class Catalog:
    courses: dict[str, Course] = field(default_factory=dict)
    badges: list[Badge] = field(default_factory=list)

    def get_course(self, course_id: str) -> Course:
        try:
            return self.courses[course_id]
        except KeyError:
            raise UnknownCourse(course_id) from None


def read_definitions(file_path: str) -> dict:
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        return json.loads(path.read_text())
    elif suffix in (".yaml", ".yml"):
        return yaml.safe_load(path.read_text()) or {}
    raise CatalogError(f"Unsupported definition file: {path.name}")


def _require(data: dict, key: str, where: str):
    if key not in data:
        raise CatalogError(f"{where}: missing '{key}'")
    return data[key]


def parse_question(data: dict, where: str) -> Question:
    qid = _require(data, "id", where)
    qtype = _require(data, "type", f"{where}/{qid}")
    if qtype not in QUESTION_TYPES:
        raise CatalogError(f"{where}/{qid}: unsupported question type '{qtype}'")
    correct = _require(data, "correct_answer", f"{where}/{qid}")
    if qtype == MULTI_SELECT and not isinstance(correct, list):
        raise CatalogError(f"{where}/{qid}: multi_select needs a list of correct answers")
    if qtype != MULTI_SELECT and not isinstance(correct, str):
        raise CatalogError(f"{where}/{qid}: correct_answer must be a string")
    options = list(data.get("options", []))
    if qtype != SHORT_ANSWER:
        expected = correct if qtype == MULTI_SELECT else [correct]
        missing = [c for c in expected if c not in options]
        if missing:
            raise CatalogError(f"{where}/{qid}: correct answer {missing} is not among the options")
    return Question(
        id=qid,
        type=qtype,
        text=data.get("text", ""),
        options=options,
        correct_answer=correct,
        points=data.get("points", 1),
        explanation=data.get("explanation", ""),
    )


def parse_assessment(data: dict, where: str) -> Assessment:
    aid = _require(data, "id", where)
    passing = data.get("passing_score", 70)
    if not 0 <= passing <= 100:
        raise CatalogError(f"{where}/{aid}: passing_score must be 0-100")
    max_attempts = data.get("max_attempts", 3)
    if max_attempts < 1:
        raise CatalogError(f"{where}/{aid}: max_attempts must be at least 1")
    return Assessment(
        id=aid,
        title=data.get("title", ""),
        questions=[parse_question(q, f"{where}/{aid}") for q in data.get("questions", [])],
        passing_score=passing,
        max_attempts=max_attempts,
        shuffle_questions=data.get("shuffle_questions", False),
        show_correct_answers=data.get("show_correct_answers", True),
    )


def parse_course(data: dict) -> Course:
    cid = _require(data, "id", "course")
    modules = []
    for m in data.get("modules", []):
        mid = _require(m, "id", cid)
        content = []
        for c in m.get("content", []):
            ctype = c.get("type", "document")
            if ctype not in CONTENT_TYPES:
                raise CatalogError(f"{cid}/{mid}: unsupported content type '{ctype}'")
            content.append(ContentItem(
                id=_require(c, "id", f"{cid}/{mid}"),
                title=c.get("title", ""),
                type=ctype,
                duration=c.get("duration", 0),
                mandatory=c.get("mandatory", True),
            ))
        if len({c.id for c in content}) != len(content):
            raise CatalogError(f"{cid}/{mid}: duplicate content ids")
        assessment = m.get("assessment")
        modules.append(Module(
            id=mid,
            title=m.get("title", ""),
            content=content,
            assessment=parse_assessment(assessment, f"{cid}/{mid}") if assessment else None,
            unlock_after_module_id=m.get("unlock_after_module_id"),
        ))

    module_ids = [m.id for m in modules]
    if len(set(module_ids)) != len(module_ids):
        raise CatalogError(f"{cid}: duplicate module ids")
    for m in modules:
        prereq = m.unlock_after_module_id
        if prereq and (prereq not in module_ids or prereq == m.id):
            raise CatalogError(f"{cid}/{m.id}: unlock_after_module_id '{prereq}' is not another module of this course")

    prereqs = {m.id: m.unlock_after_module_id for m in modules}
    for start in module_ids:
        seen = {start}
        current = prereqs[start]
        while current:
            if current in seen:
                raise CatalogError(f"{cid}/{start}: prerequisite chain loops back to '{current}'")
            seen.add(current)
            current = prereqs[current]

    return Course(
        id=cid,
        title=data.get("title", cid),
        modules=modules,
        category=data.get("category", ""),
        difficulty=data.get("difficulty", "beginner"),
        skills=list(data.get("skills", [])),
        certificate_on_completion=data.get("certificate_on_completion", True),
        validity_period_days=data.get("validity_period_days"),
    )


def parse_badge(data: dict) -> Badge:
    bid = _require(data, "id", "badge")
    criteria = _require(data, "criteria", bid)
    kind = _require(criteria, "type", bid)
    if kind not in BADGE_CRITERIA:
        raise CatalogError(f"{bid}: unsupported badge criteria '{kind}'")
    if kind == "category_mastery" and not criteria.get("category"):
        raise CatalogError(f"{bid}: category_mastery needs a category")
    return Badge(
        id=bid,
        name=data.get("name", bid),
        description=data.get("description", ""),
        rarity=data.get("rarity", "common"),
        xp_reward=data.get("xp_reward", 0),
        criteria=BadgeCriteria(
            type=kind,
            threshold=criteria.get("threshold", 1),
            category=criteria.get("category"),
        ),
    )


def load_catalog(*paths: str) -> Catalog:
    """Build a catalog from definition files (default: the bundled content)."""
    if not paths:
        paths = (str(CONTENT_DIR / "courses.json"), str(CONTENT_DIR / "badges.json"))
    catalog = Catalog()
    for path in paths:
        data = read_definitions(path)
        for course_data in data.get("courses", []):
            course = parse_course(course_data)
            if course.id in catalog.courses:
                raise CatalogError(f"Duplicate course id: {course.id}")
            catalog.courses[course.id] = course
        catalog.badges.extend(parse_badge(b) for b in data.get("badges", []))
    logger.debug("Loaded %d courses and %d badges", len(catalog.courses), len(catalog.badges))
    return catalog
