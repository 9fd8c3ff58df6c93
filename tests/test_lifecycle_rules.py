"""
Tests for `domain/lifecycle.py`.

Covers contract rules:
- Providers move one step forward only; ESCALATED is never reachable for them.
- Re-stamping CONTACTED is allowed for providers.
- Admins may skip steps but never reopen RESOLVED or go back to NEW.
- Board moves never go backward.
"""

from __future__ import annotations

import pytest

from domain.errors import InvalidTransitionError
from domain.lead import LeadLifecycleState as S
from domain.lifecycle import check_admin_transition, check_provider_transition, provider_next_stage


@pytest.mark.parametrize(
    "current, target",
    [
        (S.NEW, S.VIEWED),
        (S.VIEWED, S.CONTACTED),
        (S.CONTACTED, S.CONTACTED),
        (S.CONTACTED, S.RESOLVED),
    ],
)
def test_provider_allowed_transitions(current: S, target: S) -> None:
    check_provider_transition(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        (S.NEW, S.RESOLVED),
        (S.NEW, S.CONTACTED),
        (S.VIEWED, S.RESOLVED),
        (S.VIEWED, S.NEW),
        (S.CONTACTED, S.VIEWED),
        (S.RESOLVED, S.RESOLVED),
        (S.ESCALATED, S.RESOLVED),
    ],
)
def test_provider_rejected_transitions(current: S, target: S) -> None:
    with pytest.raises(InvalidTransitionError):
        check_provider_transition(current, target)


@pytest.mark.parametrize("current", [S.NEW, S.VIEWED, S.CONTACTED, S.ESCALATED])
def test_provider_can_never_escalate(current: S) -> None:
    """Verify ESCALATED is unreachable for providers from every state."""

    with pytest.raises(InvalidTransitionError, match="cannot escalate"):
        check_provider_transition(current, S.ESCALATED)


def test_provider_skip_message_names_the_transition() -> None:
    with pytest.raises(InvalidTransitionError) as excinfo:
        check_provider_transition(S.NEW, S.RESOLVED)
    assert "NEW -> RESOLVED" in excinfo.value.message


def test_provider_next_stage() -> None:
    assert provider_next_stage(S.NEW) is S.VIEWED
    assert provider_next_stage(S.CONTACTED) is S.RESOLVED
    assert provider_next_stage(S.ESCALATED) is None
    assert provider_next_stage(S.RESOLVED) is None


@pytest.mark.parametrize(
    "current, target",
    [
        (S.NEW, S.RESOLVED),
        (S.NEW, S.ESCALATED),
        (S.VIEWED, S.CONTACTED),
        (S.ESCALATED, S.RESOLVED),
        (S.CONTACTED, S.VIEWED),
    ],
)
def test_admin_allowed_transitions(current: S, target: S) -> None:
    check_admin_transition(current, target)


def test_admin_cannot_reopen_resolved() -> None:
    with pytest.raises(InvalidTransitionError, match="already resolved"):
        check_admin_transition(S.RESOLVED, S.CONTACTED)


def test_admin_cannot_move_back_to_new() -> None:
    with pytest.raises(InvalidTransitionError, match="back to new"):
        check_admin_transition(S.VIEWED, S.NEW)


def test_admin_board_move_cannot_go_backward() -> None:
    with pytest.raises(InvalidTransitionError, match="backward"):
        check_admin_transition(S.ESCALATED, S.CONTACTED, allow_backward=False)

    check_admin_transition(S.CONTACTED, S.ESCALATED, allow_backward=False)
