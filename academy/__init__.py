"""
Academy engine - course lock state, progress and quiz gating.
Platform-agnostic: the web API is one interface over it.
"""

# Database (SQLAlchemy)
from .database import get_connection, get_transaction, get_engine, close_engine, is_configured

# Enums
from .enums import LockState, QuizStatus, AccessStatus, GrantedVia

# Errors
from .errors import AcademyError

# Content tree
from .course_tree import (
    CourseTree, Chapter, Section, Subsection, SubsectionLocation,
    build_course_tree, load_course_tree,
)

# Lock state / prerequisites (pure)
from .gating import (
    ProgressSnapshot, ResolvedCourse, resolve_course, check_prerequisites,
    is_subsection_complete, is_section_complete, is_chapter_complete,
)

# Grading (pure)
from .grading import GradeResult, grade_answers, normalize_answers

# Facade operations (async, take a connection first)
from .access import (
    list_courses, list_customer_courses, get_course, get_course_access,
    redeem_course_code, get_course_content, get_subsection_content,
    complete_subsection, get_quiz, submit_quiz, create_quiz, get_quiz_admin,
)

__all__ = [
    # Database
    'get_connection', 'get_transaction', 'get_engine', 'close_engine', 'is_configured',
    # Enums
    'LockState', 'QuizStatus', 'AccessStatus', 'GrantedVia',
    # Errors
    'AcademyError',
    # Content tree
    'CourseTree', 'Chapter', 'Section', 'Subsection', 'SubsectionLocation',
    'build_course_tree', 'load_course_tree',
    # Lock state
    'ProgressSnapshot', 'ResolvedCourse', 'resolve_course', 'check_prerequisites',
    'is_subsection_complete', 'is_section_complete', 'is_chapter_complete',
    # Grading
    'GradeResult', 'grade_answers', 'normalize_answers',
    # Facade
    'list_courses', 'list_customer_courses', 'get_course', 'get_course_access',
    'redeem_course_code', 'get_course_content', 'get_subsection_content',
    'complete_subsection', 'get_quiz', 'submit_quiz', 'create_quiz', 'get_quiz_admin',
]
