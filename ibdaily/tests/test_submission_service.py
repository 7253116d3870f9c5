from datetime import datetime, timedelta, timezone

import pytest

from ibdaily.core.errors import CohortLockedError, NotMemberError, ValidationError
from ibdaily.features.cohorts.service import CohortService
from ibdaily.features.submissions.service import SubmissionService
from ibdaily.models.submission import Submission
from ibdaily.models.user import Subscription

D = "2024-03-15"

BULLETS = [
    "Photosynthesis converts light energy into chemical energy",
    "The Krebs cycle happens in the mitochondrial matrix",
]


@pytest.fixture
def cohort(store, ist):
    cohort = CohortService(store).create_cohort(owner_id="owner", name="Bio HL", now=ist("2024-03-10", 9))
    CohortService(store).join_cohort(user_id="u1", join_code=cohort.join_code, now=ist("2024-03-10", 10))
    return cohort


def test_on_time_submission_is_stored(store, cohort, ist):
    result = SubmissionService(store).submit(user_id="u1", cohort_id=cohort.id, bullets=BULLETS, now=ist(D, 18))

    assert result.date_key == D
    assert result.quality_status == "GOOD"
    assert result.on_time is True
    assert store.get_submission("u1", cohort.id, D).bullets == tuple(BULLETS)


def test_resubmission_replaces_and_can_turn_late(store, cohort, ist):
    service = SubmissionService(store)
    service.submit(user_id="u1", cohort_id=cohort.id, bullets=BULLETS, now=ist(D, 18))
    result = service.submit(user_id="u1", cohort_id=cohort.id, bullets=list(reversed(BULLETS)), now=ist(D, 22))

    assert result.on_time is False
    rows = store.list_submissions(cohort.id, user_id="u1")
    assert len(rows) == 1
    assert rows[0].created_at == ist(D, 22)


def test_invalid_bullets_are_blocked(store, cohort, ist):
    with pytest.raises(ValidationError) as exc_info:
        SubmissionService(store).submit(user_id="u1", cohort_id=cohort.id, bullets=[BULLETS[0], "short"], now=ist(D, 18))

    assert exc_info.value.details == ["Bullet 2 must be at least 20 characters (currently 5)"]
    assert store.list_submissions(cohort.id) == []


def test_too_many_bullets(store, cohort, ist):
    with pytest.raises(ValidationError):
        SubmissionService(store).submit(user_id="u1", cohort_id=cohort.id, bullets=BULLETS * 2, now=ist(D, 18))


def test_non_member_cannot_submit(store, cohort, ist):
    with pytest.raises(NotMemberError):
        SubmissionService(store).submit(user_id="stranger", cohort_id=cohort.id, bullets=BULLETS, now=ist(D, 18))


def test_copy_of_yesterday_is_stored_as_low_effort(store, cohort, ist):
    service = SubmissionService(store)
    service.submit(user_id="u1", cohort_id=cohort.id, bullets=BULLETS, now=ist("2024-03-14", 18))
    result = service.submit(user_id="u1", cohort_id=cohort.id, bullets=BULLETS, now=ist(D, 18))

    assert result.quality_status == "LOW_EFFORT"
    assert result.quality_reasons == ["Very similar to yesterday's submission (100% overlap)"]


def test_locked_cohort_rejects_and_persists_lock(store, cohort, ist):
    after_trial = ist("2024-03-25", 18)
    with pytest.raises(CohortLockedError):
        SubmissionService(store).submit(user_id="u1", cohort_id=cohort.id, bullets=BULLETS, now=after_trial)

    assert store.get_cohort(cohort.id).status == "LOCKED"
    assert store.list_submissions(cohort.id) == []


def test_activation_unlocks_a_locked_cohort(store, cohort, ist):
    after_trial = ist("2024-03-25", 18)
    CohortService(store).refresh_status(cohort.id, after_trial)
    assert store.get_cohort(cohort.id).status == "LOCKED"

    period_end = after_trial + timedelta(days=30)
    for n in range(6):
        user_id = f"paid{n}"
        CohortService(store).join_cohort(user_id=user_id, join_code=cohort.join_code, now=after_trial)
        store.save_subscription(Subscription(user_id, "active", period_end))

    result = SubmissionService(store).submit(user_id="u1", cohort_id=cohort.id, bullets=BULLETS, now=after_trial)
    assert result.on_time
    stored = store.get_cohort(cohort.id)
    assert stored.status == "ACTIVE"
    assert stored.activated_at == after_trial


def test_today_view(store, cohort, ist):
    service = SubmissionService(store)
    empty = service.today(user_id="u1", cohort_id=cohort.id, now=ist(D, 20))
    assert empty["submission"] is None
    assert empty["time_remaining"] == "01:00:00"
    assert empty["lock_reason"] is None
    assert empty["cohort_status"].status == "TRIAL"

    service.submit(user_id="u1", cohort_id=cohort.id, bullets=BULLETS, now=ist(D, 20, 30))
    filled = service.today(user_id="u1", cohort_id=cohort.id, now=ist(D, 21, 30))
    assert filled["submission"].on_time is True
    assert filled["deadline_passed"] is True
