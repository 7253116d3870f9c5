import pytest

from ibdaily.core.errors import NotFoundError, ValidationError
from ibdaily.features.cohorts.service import JOIN_CODE_ALPHABET, CohortService, generate_join_code
from ibdaily.features.store.base import DuplicateRecordError

D = "2024-03-15"


def test_join_code_alphabet():
    code = generate_join_code()
    assert len(code) == 6
    assert set(code) <= set(JOIN_CODE_ALPHABET)
    assert not set("01IO") & set(JOIN_CODE_ALPHABET)


def test_create_cohort_starts_trial_with_owner(store, ist):
    now = ist(D, 9)
    cohort = CohortService(store).create_cohort(owner_id="owner", name="  Bio HL  ", now=now)

    assert cohort.name == "Bio HL"
    assert cohort.status == "TRIAL"
    assert (cohort.trial_ends_at - now).days == 14
    assert store.get_membership("owner", cohort.id).role == "OWNER"


def test_create_cohort_requires_name(store):
    with pytest.raises(ValidationError):
        CohortService(store).create_cohort(owner_id="owner", name="   ")


def test_create_cohort_retries_code_collisions(store, ist, monkeypatch):
    original = store.create_cohort
    calls = {"n": 0}

    def flaky(cohort):
        calls["n"] += 1
        if calls["n"] == 1:
            raise DuplicateRecordError("taken")
        return original(cohort)

    monkeypatch.setattr(store, "create_cohort", flaky)
    cohort = CohortService(store).create_cohort(owner_id="owner", name="Chem", now=ist(D, 9))
    assert calls["n"] == 2
    assert store.get_cohort(cohort.id) is not None


def test_join_is_case_insensitive_and_idempotent(store, ist):
    service = CohortService(store)
    cohort = service.create_cohort(owner_id="owner", name="Bio HL", now=ist(D, 9))

    first = service.join_cohort(user_id="u1", join_code=f" {cohort.join_code.lower()} ", now=ist(D, 10))
    second = service.join_cohort(user_id="u1", join_code=cohort.join_code, now=ist(D, 11))

    assert first["already_member"] is False
    assert second["already_member"] is True
    assert store.get_membership("u1", cohort.id).role == "MEMBER"
    assert len(store.list_memberships(cohort.id)) == 2


def test_join_unknown_code(store):
    with pytest.raises(NotFoundError):
        CohortService(store).join_cohort(user_id="u1", join_code="ZZZZZZ")


def test_refresh_status_on_missing_cohort(store):
    with pytest.raises(NotFoundError):
        CohortService(store).refresh_status("missing")
