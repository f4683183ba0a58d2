"""Pytest fixtures for academy engine tests.

Trees are built directly from dataclasses so the pure components can be
tested without a database.
"""

import pytest

from academy.course_tree import Chapter, CourseTree, Section, Subsection


def make_tree(layout, course_id=1):
    """Build a CourseTree from a nested layout.

    ``layout`` is a list of chapters, each a list of sections, each a list of
    subsection entries: an int id, or ``(id, quiz_required)``. Chapter ids are
    10, 20, ...; section ids are chapter_id * 10 + 1, + 2, ...
    """
    chapters = []
    for ci, chapter_layout in enumerate(layout, start=1):
        chapter_id = ci * 10
        sections = []
        for si, section_layout in enumerate(chapter_layout, start=1):
            section_id = chapter_id * 10 + si
            subsections = []
            for ki, entry in enumerate(section_layout, start=1):
                sub_id, quiz_required = entry if isinstance(entry, tuple) else (entry, False)
                subsections.append(
                    Subsection(
                        id=sub_id,
                        section_id=section_id,
                        title=f"Lesson {sub_id}",
                        sort_order=ki,
                        quiz_required=quiz_required,
                    )
                )
            sections.append(
                Section(
                    id=section_id,
                    chapter_id=chapter_id,
                    title=f"Section {section_id}",
                    sort_order=si,
                    subsections=tuple(subsections),
                )
            )
        chapters.append(
            Chapter(
                id=chapter_id,
                course_id=course_id,
                title=f"Chapter {ci}",
                sort_order=ci,
                sections=tuple(sections),
            )
        )
    return CourseTree(course_id=course_id, chapters=tuple(chapters))


@pytest.fixture
def tree_factory():
    return make_tree


@pytest.fixture
def scenario_tree():
    """Chapter1{Section1{Sub1, Sub2(quiz)}}, Chapter2{Section1{Sub3}}."""
    return make_tree([[[1, (2, True)]], [[3]]])
