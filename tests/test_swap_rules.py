"""
tests/test_swap_rules.py — Swap Transition Rule Tests
======================================================
Pure tests for bookswap.engine.swaps: who may move a swap, and from where.
"""

from __future__ import annotations

import pytest

from bookswap.database.models import BookStatus, SwapStatus
from bookswap.engine.swaps import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    SwapAction,
    check_request,
    check_transition,
)
from bookswap.services.exceptions import Forbidden, InvalidOperation, NotFound

OWNER = "owner-1"
REQUESTER = "requester-1"
STRANGER = "stranger-1"


def _check(action, status, actor):
    return check_transition(
        action, status=status, actor_id=actor, owner_id=OWNER, requester_id=REQUESTER,
    )


class TestCheckRequest:
    def test_available_book_by_another_user_is_allowed(self):
        check_request(book_status=BookStatus.AVAILABLE, owner_id=OWNER, requester_id=REQUESTER)

    @pytest.mark.parametrize("status", [BookStatus.PENDING, BookStatus.SWAPPED])
    def test_unavailable_book_is_not_found(self, status):
        with pytest.raises(NotFound, match="Book not available"):
            check_request(book_status=status, owner_id=OWNER, requester_id=REQUESTER)

    def test_own_book_is_invalid(self):
        with pytest.raises(InvalidOperation, match="own book"):
            check_request(book_status=BookStatus.AVAILABLE, owner_id=OWNER, requester_id=OWNER)


class TestLegalTransitions:
    def test_owner_accepts_pending(self):
        t = _check(SwapAction.ACCEPT, SwapStatus.PENDING, OWNER)
        assert t.target == SwapStatus.ACCEPTED
        assert t.book_status is None

    def test_owner_rejects_pending_and_book_returns(self):
        t = _check(SwapAction.REJECT, SwapStatus.PENDING, OWNER)
        assert t.target == SwapStatus.REJECTED
        assert t.book_status == BookStatus.AVAILABLE

    @pytest.mark.parametrize("actor", [OWNER, REQUESTER])
    def test_either_party_completes_accepted(self, actor):
        t = _check(SwapAction.COMPLETE, SwapStatus.ACCEPTED, actor)
        assert t.target == SwapStatus.COMPLETED
        assert t.book_status == BookStatus.SWAPPED


class TestAuthorization:
    @pytest.mark.parametrize("action", [SwapAction.ACCEPT, SwapAction.REJECT])
    def test_requester_cannot_accept_or_reject(self, action):
        with pytest.raises(Forbidden):
            _check(action, SwapStatus.PENDING, REQUESTER)

    @pytest.mark.parametrize("action", list(SwapAction))
    def test_stranger_is_forbidden(self, action):
        with pytest.raises(Forbidden):
            _check(action, TRANSITIONS[action].source, STRANGER)

    def test_stranger_forbidden_even_in_wrong_state(self):
        # Authorization is decided before state.
        with pytest.raises(Forbidden):
            _check(SwapAction.ACCEPT, SwapStatus.COMPLETED, STRANGER)


class TestWrongState:
    WRONG = [
        (action, status)
        for action in SwapAction
        for status in SwapStatus
        if status != TRANSITIONS[action].source
    ]

    def test_nine_illegal_combinations(self):
        assert len(self.WRONG) == 9

    @pytest.mark.parametrize("action,status", WRONG)
    def test_illegal_combination_is_invalid(self, action, status):
        with pytest.raises(InvalidOperation):
            _check(action, status, OWNER)

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES))
    @pytest.mark.parametrize("action", list(SwapAction))
    def test_terminal_states_have_no_exit(self, action, status):
        with pytest.raises(InvalidOperation):
            _check(action, status, OWNER)
