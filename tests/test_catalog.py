# tests/test_catalog.py
import json

import pytest

from lms_engine.catalog import load_catalog, parse_badge, parse_course, read_definitions
from lms_engine.errors import CatalogError, UnknownCourse


def test_bundled_catalog_loads(catalog):
    assert set(catalog.courses) == {"whs-101", "cs-201"}
    whs = catalog.get_course("whs-101")
    assert [m.id for m in whs.modules] == ["whs-m1", "whs-m2", "whs-m3"]
    assert whs.get_module("whs-m2").unlock_after_module_id == "whs-m1"
    _, quiz = whs.find_assessment("whs-m2-quiz")
    assert quiz.passing_score == 75
    assert len(quiz.questions) == 4
    assert len(catalog.badges) == 13


def test_get_unknown_course(catalog):
    with pytest.raises(UnknownCourse):
        catalog.get_course("nope")


def test_yaml_definitions(tmp_path):
    path = tmp_path / "extra.yaml"
    path.write_text(
        "courses:\n"
        "  - id: y1\n"
        "    title: YAML Course\n"
        "    modules:\n"
        "      - id: ym1\n"
        "        title: Only\n"
        "        content:\n"
        "          - {id: yc1, title: Clip, type: video, duration: 4}\n"
    )
    catalog = load_catalog(str(path))
    course = catalog.get_course("y1")
    assert course.modules[0].content[0].duration == 4
    assert course.certificate_on_completion is True


def test_unsupported_file_type(tmp_path):
    path = tmp_path / "courses.txt"
    path.write_text("x")
    with pytest.raises(CatalogError):
        read_definitions(str(path))


def test_duplicate_course_ids(tmp_path):
    path = tmp_path / "dup.json"
    path.write_text(json.dumps({"courses": [{"id": "x", "modules": []}, {"id": "x", "modules": []}]}))
    with pytest.raises(CatalogError):
        load_catalog(str(path))


@pytest.mark.parametrize("modules", [
    [{"id": "m1", "unlock_after_module_id": "m9"}],
    [{"id": "m1", "unlock_after_module_id": "m1"}],
    [{"id": "m1"}, {"id": "m1"}],
    [{"id": "m1", "content": [{"id": "c", "type": "hologram"}]}],
    [{"id": "m1", "content": [{"id": "c"}, {"id": "c"}]}],
])
def test_invalid_course_structure(modules):
    with pytest.raises(CatalogError):
        parse_course({"id": "bad", "modules": modules})


@pytest.mark.parametrize("assessment", [
    {"id": "a", "passing_score": 120},
    {"id": "a", "max_attempts": 0},
    {"id": "a", "questions": [{"id": "q", "type": "essay", "correct_answer": "x"}]},
    {"id": "a", "questions": [{"id": "q", "type": "multi_select", "correct_answer": "x"}]},
    {"id": "a", "questions": [{"id": "q", "type": "multiple_choice"}]},
])
def test_invalid_assessment(assessment):
    with pytest.raises(CatalogError):
        parse_course({"id": "bad", "modules": [{"id": "m1", "assessment": assessment}]})


def test_prerequisite_cycle_rejected():
    modules = [
        {"id": "a", "unlock_after_module_id": "b"},
        {"id": "b", "unlock_after_module_id": "a"},
    ]
    with pytest.raises(CatalogError):
        parse_course({"id": "loop", "modules": modules})


def test_longer_prerequisite_cycle_rejected():
    modules = [
        {"id": "start"},
        {"id": "a", "unlock_after_module_id": "c"},
        {"id": "b", "unlock_after_module_id": "a"},
        {"id": "c", "unlock_after_module_id": "b"},
    ]
    with pytest.raises(CatalogError):
        parse_course({"id": "loop", "modules": modules})


def test_prerequisite_chain_accepted():
    modules = [{"id": "a"}, {"id": "b", "unlock_after_module_id": "a"}, {"id": "c", "unlock_after_module_id": "b"}]
    assert [m.id for m in parse_course({"id": "chain", "modules": modules}).modules] == ["a", "b", "c"]


@pytest.mark.parametrize("question", [
    {"id": "q", "type": "multiple_choice", "options": ["a", "b"], "correct_answer": "c"},
    {"id": "q", "type": "true_false", "options": ["true", "false"], "correct_answer": "yes"},
    {"id": "q", "type": "multi_select", "options": ["x", "y"], "correct_answer": ["x", "z"]},
])
def test_correct_answer_must_be_an_option(question):
    with pytest.raises(CatalogError):
        parse_course({"id": "bad", "modules": [{"id": "m1", "assessment": {"id": "a", "questions": [question]}}]})


@pytest.mark.parametrize("criteria", [
    {"type": "courses_finished", "threshold": 1},
    {"type": "category_mastery", "threshold": 2},
])
def test_invalid_badge_criteria(criteria):
    with pytest.raises(CatalogError):
        parse_badge({"id": "b1", "criteria": criteria})
