from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from models.feedback import Feedback
from services import feedback as feedback_service
from services.policy import Actor
from utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError

GREAT_READ = "Great read, loved it!"


def _create(db, user, book, rating=5, comment=GREAT_READ):
    return feedback_service.create_feedback(db, user.id, {"bookId": book.id, "rating": rating, "comment": comment})


def _approved(db, user, book, **kwargs):
    created = _create(db, user, book, **kwargs)
    return feedback_service.approve_feedback(db, created.id)


def test_create_feedback_is_pending_and_returns_projection(db, alice, book_a) -> None:
    feedback = _create(db, alice, book_a)

    assert feedback.is_approved is False
    assert feedback.rating == 5
    assert feedback.user_id == alice.id
    assert feedback.book_id == book_a.id
    assert feedback.user.model_dump() == {"id": alice.id, "name": "Alice Reader", "email": "alice@example.com"}
    assert feedback.book.model_dump() == {"id": book_a.id, "title": "The Great Gatsby", "author": "F. Scott Fitzgerald"}


def test_create_ignores_caller_supplied_approval(db, alice, book_a) -> None:
    feedback = feedback_service.create_feedback(
        db, alice.id, {"bookId": book_a.id, "rating": 4, "comment": GREAT_READ, "isApproved": True},
    )

    assert feedback.is_approved is False
    assert db.get(Feedback, feedback.id).is_approved is False


def test_create_for_unknown_book_raises_not_found(db, alice) -> None:
    with pytest.raises(NotFoundError) as exception_info:
        feedback_service.create_feedback(db, alice.id, {"bookId": "missing", "rating": 3, "comment": GREAT_READ})

    assert exception_info.value.message == "Book with ID missing not found"


@pytest.mark.parametrize(
    "payload",
    [
        {"rating": 0, "comment": GREAT_READ},
        {"rating": 6, "comment": GREAT_READ},
        {"rating": 3, "comment": "too short"},
    ],
)
def test_create_rejects_invalid_payload(db, alice, book_a, payload) -> None:
    with pytest.raises(ValidationError):
        feedback_service.create_feedback(db, alice.id, {"bookId": book_a.id, **payload})


def test_second_feedback_for_same_book_conflicts(db, alice, book_a) -> None:
    _create(db, alice, book_a)

    with pytest.raises(ConflictError) as exception_info:
        _create(db, alice, book_a, rating=3, comment="Changed my mind now")

    assert exception_info.value.message == "You have already provided feedback for this book"
    assert db.query(Feedback).count() == 1


def test_racing_duplicate_insert_surfaces_as_conflict(db, alice, book_a, monkeypatch) -> None:
    _create(db, alice, book_a)

    real_find_existing = feedback_service._find_existing
    calls = []

    # The pre-check misses the row, as if the other insert had not committed yet
    def racing_find_existing(session, user_id, book_id):
        calls.append((user_id, book_id))
        if len(calls) == 1:
            return None
        return real_find_existing(session, user_id, book_id)

    monkeypatch.setattr(feedback_service, "_find_existing", racing_find_existing)

    with pytest.raises(ConflictError) as exception_info:
        _create(db, alice, book_a, rating=2, comment="Second attempt here")

    assert exception_info.value.message == "You have already provided feedback for this book"
    assert len(calls) == 2
    assert db.query(Feedback).count() == 1


def test_same_user_can_review_different_books(db, alice, book_a, book_b) -> None:
    _create(db, alice, book_a)
    _create(db, alice, book_b)

    assert db.query(Feedback).count() == 2


def test_get_feedback(db, alice, book_a) -> None:
    created = _create(db, alice, book_a)

    found = feedback_service.get_feedback(db, created.id)

    assert found == created


def test_get_missing_feedback_raises_not_found(db) -> None:
    with pytest.raises(NotFoundError) as exception_info:
        feedback_service.get_feedback(db, "nope")

    assert exception_info.value.message == "Feedback with ID nope not found"


@pytest.fixture()
def populated(db, alice, bob, book_a, book_b):
    """Three feedback rows with distinct creation times (oldest first)."""
    rows = [
        _create(db, alice, book_a, rating=5),
        _create(db, bob, book_a, rating=2),
        _create(db, alice, book_b, rating=4),
    ]
    feedback_service.approve_feedback(db, rows[0].id)

    base = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    for offset, row in enumerate(rows):
        db.get(Feedback, row.id).created_at = base + timedelta(minutes=offset)
    db.commit()
    return rows


def test_list_orders_newest_first(db, populated) -> None:
    page = feedback_service.list_feedback(db)

    assert [f.id for f in page.data] == [populated[2].id, populated[1].id, populated[0].id]
    assert page.pagination.total == 3
    assert page.pagination.page == 1
    assert page.pagination.limit == 10


@pytest.mark.parametrize(
    ("filters", "expected"),
    [
        ({"isApproved": True}, [0]),
        ({"isApproved": "true"}, [0]),
        ({"isApproved": "false"}, [2, 1]),
        ({"isApproved": False}, [2, 1]),
        ({"isApproved": ""}, [2, 1, 0]),
        ({"minRating": 4}, [2, 0]),
        ({"minRating": "4"}, [2, 0]),
        ({"minRating": 4, "isApproved": "0"}, [2]),
    ],
)
def test_list_filters_accept_native_and_string_values(db, populated, filters, expected) -> None:
    page = feedback_service.list_feedback(db, filters)

    assert [f.id for f in page.data] == [populated[i].id for i in expected]
    assert page.pagination.total == len(expected)


def test_list_filters_by_book_and_user(db, populated, alice, book_a) -> None:
    page = feedback_service.list_feedback(db, {"bookId": book_a.id, "userId": alice.id})

    assert [f.id for f in page.data] == [populated[0].id]


def test_list_pagination(db, populated) -> None:
    first = feedback_service.list_feedback(db, {"page": "1", "limit": "2"})
    second = feedback_service.list_feedback(db, {"page": 2, "limit": 2})

    assert len(first.data) == 2
    assert first.pagination.total_pages == 2
    assert first.pagination.has_next_page is True
    assert first.pagination.has_previous_page is False
    assert [f.id for f in second.data] == [populated[0].id]
    assert second.pagination.has_next_page is False
    assert second.pagination.has_previous_page is True


@pytest.mark.parametrize("filters", [{"page": 0}, {"limit": 0}, {"minRating": 0}, {"isApproved": "maybe"}])
def test_list_rejects_invalid_filters(db, filters) -> None:
    with pytest.raises(ValidationError):
        feedback_service.list_feedback(db, filters)


def test_owner_update_keeps_feedback_pending(db, alice, book_a) -> None:
    created = _create(db, alice, book_a)

    updated = feedback_service.update_feedback(db, created.id, {"rating": 4}, alice.id, "USER")

    assert updated.rating == 4
    assert updated.comment == GREAT_READ
    assert updated.is_approved is False


def test_owner_update_resets_approval_set_by_admin_correction(db, alice, admin, book_a) -> None:
    created = _create(db, alice, book_a)
    feedback_service.approve_feedback(db, created.id)
    # Admin un-approves for a correction, the author edits, moderation starts over
    feedback_service.update_feedback(db, created.id, {"isApproved": False}, admin.id, "ADMIN")

    updated = feedback_service.update_feedback(db, created.id, {"comment": "Fixed the typo in my review"}, alice.id, "USER")

    assert updated.is_approved is False
    assert updated.comment == "Fixed the typo in my review"


@pytest.mark.parametrize("patch", [{}, {"rating": 1}, {"comment": "x" * 10}, {"isApproved": True}])
def test_non_owner_update_is_forbidden(db, alice, bob, book_a, patch) -> None:
    created = _create(db, alice, book_a)

    with pytest.raises(ForbiddenError) as exception_info:
        feedback_service.update_feedback(db, created.id, patch, bob.id, "USER")

    assert exception_info.value.message == "You can only update your own feedback"


def test_owner_cannot_edit_approved_feedback(db, alice, book_a) -> None:
    approved = _approved(db, alice, book_a)

    with pytest.raises(ForbiddenError) as exception_info:
        feedback_service.update_feedback(db, approved.id, {"comment": "x" * 10}, alice.id, "USER")

    assert exception_info.value.message == "Cannot update approved feedback"
    assert db.get(Feedback, approved.id).comment == GREAT_READ


def test_owner_cannot_change_approval(db, alice, book_a) -> None:
    created = _create(db, alice, book_a)

    with pytest.raises(ForbiddenError) as exception_info:
        feedback_service.update_feedback(db, created.id, {"isApproved": True}, alice.id, "USER")

    assert exception_info.value.message == "Only admins can change approval status"
    assert db.get(Feedback, created.id).is_approved is False


def test_update_missing_feedback_raises_not_found(db, admin) -> None:
    with pytest.raises(NotFoundError):
        feedback_service.update_feedback(db, "nope", {"rating": 3}, admin.id, "ADMIN")


def test_admin_update_applies_approval_verbatim(db, alice, admin, book_a) -> None:
    created = _create(db, alice, book_a)

    updated = feedback_service.update_feedback(db, created.id, {"isApproved": True, "rating": 3}, admin.id, "ADMIN")

    assert updated.is_approved is True
    assert updated.rating == 3


def test_admin_update_without_approval_preserves_it(db, alice, admin, book_a) -> None:
    approved = _approved(db, alice, book_a)

    updated = feedback_service.update_feedback(db, approved.id, {"comment": "Edited by moderator"}, admin.id, "ADMIN")

    assert updated.is_approved is True
    assert updated.comment == "Edited by moderator"


def test_owner_can_delete_approved_feedback(db, alice, book_a) -> None:
    approved = _approved(db, alice, book_a)

    result = feedback_service.remove_feedback(db, approved.id, alice.id, "USER")

    assert result.message == "Feedback deleted successfully"
    assert db.get(Feedback, approved.id) is None


def test_non_owner_delete_is_forbidden(db, alice, bob, book_a) -> None:
    created = _create(db, alice, book_a)

    with pytest.raises(ForbiddenError) as exception_info:
        feedback_service.remove_feedback(db, created.id, bob.id, "USER")

    assert exception_info.value.message == "You can only delete your own feedback"
    assert db.get(Feedback, created.id) is not None


def test_admin_can_delete_any_feedback(db, alice, admin, book_a) -> None:
    created = _create(db, alice, book_a)

    feedback_service.remove_feedback(db, created.id, admin.id, "ADMIN")

    assert db.query(Feedback).count() == 0


def test_delete_missing_feedback_raises_not_found(db, alice) -> None:
    with pytest.raises(NotFoundError):
        feedback_service.remove_feedback(db, "nope", alice.id, "USER")


def test_deleted_pair_can_be_reviewed_again(db, alice, book_a) -> None:
    created = _create(db, alice, book_a)
    feedback_service.remove_feedback(db, created.id, alice.id, "USER")

    again = _create(db, alice, book_a, rating=1, comment="Second opinion after all")

    assert again.id != created.id


def test_approve_twice_fails(db, alice, book_a) -> None:
    created = _create(db, alice, book_a)

    approved = feedback_service.approve_feedback(db, created.id)
    assert approved.is_approved is True

    with pytest.raises(BadRequestError) as exception_info:
        feedback_service.approve_feedback(db, created.id)
    assert exception_info.value.message == "Feedback is already approved"


def test_reject_pending_fails(db, alice, book_a) -> None:
    created = _create(db, alice, book_a)

    with pytest.raises(BadRequestError) as exception_info:
        feedback_service.reject_feedback(db, created.id)

    assert exception_info.value.message == "Feedback is already rejected"


def test_reject_flips_once_and_can_be_reapproved(db, alice, book_a) -> None:
    approved = _approved(db, alice, book_a)

    rejected = feedback_service.reject_feedback(db, approved.id)
    assert rejected.is_approved is False

    with pytest.raises(BadRequestError):
        feedback_service.reject_feedback(db, approved.id)

    assert feedback_service.approve_feedback(db, approved.id).is_approved is True


def test_moderation_of_missing_feedback_raises_not_found(db) -> None:
    with pytest.raises(NotFoundError):
        feedback_service.approve_feedback(db, "nope")
    with pytest.raises(NotFoundError):
        feedback_service.reject_feedback(db, "nope")


def test_moderation_requires_admin_actor(db, alice, book_a) -> None:
    created = _create(db, alice, book_a)

    with pytest.raises(ForbiddenError):
        feedback_service.approve_feedback(db, created.id, actor=Actor(id=alice.id, role="USER"))

    assert db.get(Feedback, created.id).is_approved is False


def test_reject_requires_admin_actor(db, alice, book_a) -> None:
    approved = _approved(db, alice, book_a)

    with pytest.raises(ForbiddenError) as exception_info:
        feedback_service.reject_feedback(db, approved.id, actor=Actor(id=alice.id, role="USER"))

    assert exception_info.value.message == "Only admins can moderate feedback"
    assert db.get(Feedback, approved.id).is_approved is True


def test_book_feedback_only_returns_approved(db, alice, bob, book_a, book_b) -> None:
    approved = _approved(db, alice, book_a)
    _create(db, bob, book_a)
    _approved(db, bob, book_b)

    page = feedback_service.get_book_feedback(db, book_a.id, {})

    assert [f.id for f in page.data] == [approved.id]
    assert page.pagination.total == 1


def test_book_feedback_ignores_approval_override(db, alice, bob, book_a) -> None:
    _approved(db, alice, book_a)
    _create(db, bob, book_a)

    page = feedback_service.get_book_feedback(db, book_a.id, {"isApproved": "false"})

    assert all(f.is_approved for f in page.data)
    assert page.pagination.total == 1


def test_book_feedback_for_missing_book_raises_not_found(db) -> None:
    with pytest.raises(NotFoundError) as exception_info:
        feedback_service.get_book_feedback(db, "nope")

    assert exception_info.value.message == "Book with ID nope not found"


def test_user_feedback_includes_pending(db, alice, bob, book_a, book_b) -> None:
    _create(db, alice, book_a)
    _approved(db, alice, book_b)
    _create(db, bob, book_a)

    page = feedback_service.get_user_feedback(db, alice.id, {"userId": bob.id})

    assert page.pagination.total == 2
    assert {f.user_id for f in page.data} == {alice.id}


def test_user_feedback_for_missing_user_raises_not_found(db) -> None:
    with pytest.raises(NotFoundError) as exception_info:
        feedback_service.get_user_feedback(db, "nope")

    assert exception_info.value.message == "User with ID nope not found"


def test_min_rating_above_scale_matches_nothing(db, populated) -> None:
    page = feedback_service.list_feedback(db, {"minRating": 6})

    assert page.data == []
    assert page.pagination.total == 0


def test_timestamps_carry_utc(db, alice, book_a) -> None:
    feedback = _create(db, alice, book_a)

    assert feedback.created_at.utcoffset() == timedelta(0)
    assert feedback.updated_at.utcoffset() == timedelta(0)
