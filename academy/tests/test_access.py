"""Tests for the access controller facade.

The database-backed stores are replaced by an in-memory fake patched into
academy.access, so these exercise the full request flow (load, resolve,
enforce, write, summarize) without PostgreSQL.
"""

from datetime import datetime, timezone

import pytest

from academy import access
from academy.enums import AccessStatus, LockState, QuizStatus
from academy.entitlements import NO_ENTITLEMENT, Entitlement
from academy.errors import (
    CourseNotFoundError,
    NotSubscribedError,
    PrerequisiteLockedError,
    QuizNotConfiguredError,
    QuizNotRequiredError,
    QuizRequiredNotPassedError,
    SubsectionNotFoundError,
    ValidationError,
)
from academy.quiz_status import QuizOutcome
from academy.quizzes import QuizOption, QuizQuestion

CUSTOMER_ID = 42
COURSE = {
    "id": 1,
    "slug": "intro",
    "title": "Intro",
    "short_description": "Start here",
    "is_active": True,
}


class FakeStore:
    """In-memory stand-in for the completion, quiz and entitlement stores."""

    def __init__(self, tree):
        self.tree = tree
        self.entitlements: dict[int, Entitlement] = {
            CUSTOMER_ID: Entitlement(status=AccessStatus.active)
        }
        self.completions: dict[tuple[int, int], datetime] = {}
        self.outcomes: dict[tuple[int, int], QuizOutcome] = {}
        self.questions: dict[int, list[QuizQuestion]] = {}
        self.created_questions: list = []

    # course tree
    async def find_course_by_slug(self, conn, slug, *, active_only=True):
        return dict(COURSE) if slug == COURSE["slug"] else None

    async def list_active_courses(self, conn):
        return [dict(COURSE)]

    async def load_course_tree(self, conn, course_id, *, default_pass_score=70):
        return self.tree

    async def get_subsection_detail(self, conn, subsection_id):
        if self.tree.find_subsection(subsection_id) is None:
            return None
        return {
            "id": subsection_id,
            "content_html": f"<p>Body {subsection_id}</p>",
            "course_id": COURSE["id"],
        }

    # entitlements
    async def get_entitlement(self, conn, customer_id, course_id):
        return self.entitlements.get(customer_id, NO_ENTITLEMENT)

    async def list_customer_entitlements(self, conn, customer_id):
        entitlement = self.entitlements.get(customer_id)
        return {COURSE["id"]: entitlement} if entitlement else {}

    # completion store
    async def get_completed_subsection_ids(self, conn, customer_id, subsection_ids=None):
        return frozenset(sid for (cid, sid) in self.completions if cid == customer_id)

    async def mark_subsection_completed(self, conn, *, customer_id, subsection_id):
        key = (customer_id, subsection_id)
        if key in self.completions:
            return False
        self.completions[key] = datetime.now(timezone.utc)
        return True

    # quiz status store
    async def get_quiz_statuses(self, conn, customer_id, subsection_ids):
        return {
            sid: outcome
            for (cid, sid), outcome in self.outcomes.items()
            if cid == customer_id
        }

    async def record_quiz_attempt(self, conn, *, customer_id, subsection_id, score, passed):
        previous = self.outcomes.get((customer_id, subsection_id))
        outcome = QuizOutcome(
            status=QuizStatus.passed if passed else QuizStatus.failed,
            score=score,
            attempts=(previous.attempts if previous else 0) + 1,
            last_attempt_at=datetime.now(timezone.utc),
        )
        self.outcomes[(customer_id, subsection_id)] = outcome
        return outcome

    # quiz content store
    async def get_quiz_questions(self, conn, subsection_id):
        return self.questions.get(subsection_id, [])

    async def create_quiz_questions(self, conn, subsection_id, questions):
        self.created_questions.extend(questions)
        return [
            {"question_id": 900 + i, "option_ids": []} for i, _ in enumerate(questions)
        ]


@pytest.fixture
def store(monkeypatch, scenario_tree):
    fake = FakeStore(scenario_tree)
    fake.questions[2] = [
        QuizQuestion(
            id=1,
            subsection_id=2,
            prompt_html="2 + 2?",
            options=(
                QuizOption(id=11, question_id=1, text_html="4", is_correct=True),
                QuizOption(id=12, question_id=1, text_html="5"),
            ),
        ),
        QuizQuestion(
            id=2,
            subsection_id=2,
            prompt_html="Capital of France?",
            options=(
                QuizOption(id=21, question_id=2, text_html="Paris", is_correct=True),
                QuizOption(id=22, question_id=2, text_html="Lyon"),
            ),
        ),
    ]
    for name in (
        "find_course_by_slug",
        "list_active_courses",
        "load_course_tree",
        "get_subsection_detail",
        "get_entitlement",
        "list_customer_entitlements",
        "get_completed_subsection_ids",
        "mark_subsection_completed",
        "get_quiz_statuses",
        "record_quiz_attempt",
        "get_quiz_questions",
        "create_quiz_questions",
    ):
        monkeypatch.setattr(access, name, getattr(fake, name))
    return fake


CONN = object()

RIGHT = [{"question_id": 1, "option_id": 11}, {"question_id": 2, "option_id": 21}]
WRONG = [{"question_id": 1, "option_id": 12}, {"question_id": 2, "option_id": 21}]


def _node_locks(content):
    locks = {}
    for chapter in content["data"]:
        for section in chapter["sections"]:
            for node in section["subsections"]:
                locks[node["id"]] = node["locked"]
    return locks


class TestEndToEnd:
    """Walk the full course: lesson, quiz lesson, next chapter."""

    @pytest.mark.asyncio
    async def test_full_walkthrough(self, store):
        content = await access.get_course_content(CONN, CUSTOMER_ID, "intro")
        assert content["subscribed"] is True
        assert _node_locks(content["content"]) == {1: 0, 2: 1, 3: 1}

        result = await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 1)
        assert result == {
            "next_subsection_id": 2,
            "section_progress": {"completed": 1, "total": 2, "progress": 50},
            "course_completed": False,
        }

        with pytest.raises(QuizRequiredNotPassedError):
            await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 2)

        failed = await access.submit_quiz(CONN, CUSTOMER_ID, "intro", 2, answers=WRONG)
        assert failed["passed"] is False
        assert failed["score"] == 50
        assert failed["required"] == 70
        assert failed["attempts"] == 1
        assert failed["course_completed"] is False
        assert (CUSTOMER_ID, 2) not in store.completions

        content = await access.get_course_content(CONN, CUSTOMER_ID, "intro")
        assert _node_locks(content["content"])[3] == LockState.PREREQ_LOCKED

        passed = await access.submit_quiz(CONN, CUSTOMER_ID, "intro", 2, answers=RIGHT)
        assert passed["passed"] is True
        assert passed["score"] == 100
        assert passed["attempts"] == 2
        assert passed["next_subsection_id"] == 3
        assert passed["section_progress"] == {"completed": 2, "total": 2, "progress": 100}
        assert (CUSTOMER_ID, 2) in store.completions

        content = await access.get_course_content(CONN, CUSTOMER_ID, "intro")
        assert _node_locks(content["content"]) == {1: 0, 2: 0, 3: 0}

        final = await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 3)
        assert final["next_subsection_id"] is None
        assert final["course_completed"] is True


class TestCompleteSubsection:
    """Tests for complete_subsection."""

    @pytest.mark.asyncio
    async def test_repeat_completion_is_idempotent(self, store):
        first = await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 1)
        second = await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 1)

        assert first == second
        assert list(store.completions) == [(CUSTOMER_ID, 1)]

    @pytest.mark.asyncio
    async def test_locked_subsection_cannot_be_completed(self, store):
        with pytest.raises(PrerequisiteLockedError):
            await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 3)
        assert store.completions == {}

    @pytest.mark.asyncio
    async def test_unknown_subsection(self, store):
        with pytest.raises(SubsectionNotFoundError):
            await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 999)

    @pytest.mark.asyncio
    async def test_unknown_course(self, store):
        with pytest.raises(CourseNotFoundError):
            await access.complete_subsection(CONN, CUSTOMER_ID, "missing", 1)

    @pytest.mark.asyncio
    async def test_unsubscribed_customer(self, store):
        store.entitlements.clear()

        with pytest.raises(NotSubscribedError):
            await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 1)


class TestCourseContent:
    """Tests for get_course_content and get_subsection_content."""

    @pytest.mark.asyncio
    async def test_unsubscribed_gets_locked_outline_in_error(self, store):
        store.entitlements[CUSTOMER_ID] = Entitlement(status=AccessStatus.revoked)

        with pytest.raises(NotSubscribedError) as exc_info:
            await access.get_course_content(CONN, CUSTOMER_ID, "intro")

        body = exc_info.value.to_dict()
        assert body["success"] is False
        assert body["code"] == "NOT_SUBSCRIBED"
        assert body["decision"] == "NOT_SUBSCRIBED"
        assert body["subscribed"] is False
        assert set(_node_locks(body["content"]).values()) == {2}

    @pytest.mark.asyncio
    async def test_subsection_body_and_navigation(self, store):
        result = await access.get_subsection_content(CONN, CUSTOMER_ID, "intro", 1)

        assert result["subsection"]["content_html"] == "<p>Body 1</p>"
        assert result["subsection"]["completed"] is False
        assert result["subsection"]["quiz_status"] is None
        assert result["navigation"] == {
            "previous_subsection_id": None,
            "next_subsection_id": 2,
        }

    @pytest.mark.asyncio
    async def test_locked_subsection_body_is_refused(self, store):
        with pytest.raises(PrerequisiteLockedError) as exc_info:
            await access.get_subsection_content(CONN, CUSTOMER_ID, "intro", 2)
        assert exc_info.value.message == "Complete previous lessons first."


class TestQuizzes:
    """Tests for get_quiz and submit_quiz."""

    @pytest.mark.asyncio
    async def test_learner_view_hides_correct_flags(self, store):
        await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 1)

        quiz = await access.get_quiz(CONN, CUSTOMER_ID, "intro", 2)

        assert quiz["pass_score"] == 70
        assert quiz["status"]["status"] == "not_started"
        assert {q["question_id"] for q in quiz["questions"]} == {1, 2}
        for q in quiz["questions"]:
            for option in q["options"]:
                assert "is_correct" not in option

    @pytest.mark.asyncio
    async def test_quiz_behind_unmet_prerequisite(self, store):
        with pytest.raises(PrerequisiteLockedError):
            await access.get_quiz(CONN, CUSTOMER_ID, "intro", 2)

    @pytest.mark.asyncio
    async def test_quiz_on_ungated_subsection(self, store):
        with pytest.raises(QuizNotRequiredError):
            await access.get_quiz(CONN, CUSTOMER_ID, "intro", 1)
        with pytest.raises(QuizNotRequiredError):
            await access.submit_quiz(CONN, CUSTOMER_ID, "intro", 1, answers=RIGHT)

    @pytest.mark.asyncio
    async def test_gated_subsection_without_questions(self, store):
        store.questions.clear()
        await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 1)

        with pytest.raises(QuizNotConfiguredError):
            await access.get_quiz(CONN, CUSTOMER_ID, "intro", 2)
        with pytest.raises(QuizNotConfiguredError):
            await access.submit_quiz(CONN, CUSTOMER_ID, "intro", 2, answers=RIGHT)
        assert store.outcomes == {}

    @pytest.mark.asyncio
    async def test_submission_needs_answers_or_score(self, store):
        await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 1)

        with pytest.raises(ValidationError):
            await access.submit_quiz(CONN, CUSTOMER_ID, "intro", 2)

    @pytest.mark.asyncio
    async def test_legacy_score_submission(self, store):
        await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 1)

        result = await access.submit_quiz(CONN, CUSTOMER_ID, "intro", 2, score=85)

        assert result["passed"] is True
        assert result["score"] == 85
        assert (CUSTOMER_ID, 2) in store.completions

    @pytest.mark.asyncio
    async def test_answers_take_precedence_over_score(self, store):
        await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 1)

        result = await access.submit_quiz(
            CONN, CUSTOMER_ID, "intro", 2, answers=WRONG, score=100
        )

        assert result["score"] == 50
        assert result["passed"] is False

    @pytest.mark.asyncio
    async def test_every_option_submitted_does_not_pass_gate(self, store):
        await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 1)
        every_option = [
            {"question_id": qid, "option_id": oid}
            for qid, oid in ((1, 11), (1, 12), (2, 21), (2, 22))
        ]

        result = await access.submit_quiz(
            CONN, CUSTOMER_ID, "intro", 2, answers=every_option
        )

        assert result["score"] == 0
        assert result["passed"] is False
        with pytest.raises(QuizRequiredNotPassedError):
            await access.complete_subsection(CONN, CUSTOMER_ID, "intro", 2)


class TestCatalogAndAuthoring:
    """Tests for catalog listing and quiz authoring."""

    @pytest.mark.asyncio
    async def test_customer_catalog_flags_registration(self, store):
        registered = await access.list_customer_courses(CONN, CUSTOMER_ID)
        stranger = await access.list_customer_courses(CONN, 7)

        assert registered[0]["is_registered"] is True
        assert stranger[0]["is_registered"] is False

    @pytest.mark.asyncio
    async def test_course_access_reports_status(self, store):
        result = await access.get_course_access(CONN, 7, "intro")

        assert result["has_access"] is False
        assert result["status"] == "none"
        assert result["expires_at"] is None

    @pytest.mark.asyncio
    async def test_create_quiz(self, store):
        questions = [
            {
                "prompt_html": "Pick one",
                "options": [{"text_html": "a", "is_correct": True}],
            }
        ]

        result = await access.create_quiz(CONN, "intro", 2, questions)

        assert result["subsection_id"] == 2
        assert len(result["questions"]) == 1
        assert store.created_questions == questions

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "questions",
        [
            [],
            [{"prompt_html": ""}],
            [{"prompt_html": "Q", "options": [{"text_html": "a", "is_correct": False}]}],
        ],
    )
    async def test_create_quiz_rejects_bad_payload(self, store, questions):
        with pytest.raises(ValidationError):
            await access.create_quiz(CONN, "intro", 2, questions)
        assert store.created_questions == []

    @pytest.mark.asyncio
    async def test_admin_view_includes_correct_flags_in_order(self, store):
        quiz = await access.get_quiz_admin(CONN, "intro", 2)

        assert [q["question_id"] for q in quiz["questions"]] == [1, 2]
        assert quiz["questions"][0]["options"][0]["is_correct"] is True
