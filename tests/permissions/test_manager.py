"""Tests for the centralized capability table."""

from datetime import date

import pytest

from quote_engine.domain.models import Actor, Quote
from quote_engine.domain.types import ActorRole, QuoteOperation
from quote_engine.permissions.manager import (
    ADMIN_ONLY_OPERATIONS,
    can_perform_operation,
    can_view_quote,
)


def _quote(agent_id: str | None) -> Quote:
    return Quote(
        enquiry_id="enq-1",
        created_by="admin-1",
        agent_id=agent_id,
        recipient_email="lead@customer.test",
        lead_name="Jamie",
        hotel_name="Hotel Riviera",
        arrival_date=date(2026, 6, 1),
        number_of_nights=2,
        number_of_people=2,
        number_of_rooms=1,
        package_price="300",
    )


class TestCanPerformOperation:
    """Tests for can_perform_operation."""

    @pytest.mark.parametrize("operation", list(QuoteOperation))
    def test_approved_admin_can_do_everything(self, admin: Actor, operation):
        assert can_perform_operation(admin, operation) is True

    @pytest.mark.parametrize("operation", sorted(ADMIN_ONLY_OPERATIONS))
    def test_agent_denied_admin_operations(self, agent: Actor, operation):
        assert can_perform_operation(agent, operation) is False

    def test_agent_can_view_own_quotes(self, agent: Actor):
        assert can_perform_operation(agent, QuoteOperation.VIEW_OWN_QUOTE) is True

    @pytest.mark.parametrize("role", list(ActorRole))
    def test_unapproved_actor_denied_everything(self, role):
        actor = Actor(id="u-1", role=role, is_approved=False)
        assert not any(can_perform_operation(actor, op) for op in QuoteOperation)

    def test_create_quote_is_admin_only(self):
        assert QuoteOperation.CREATE_QUOTE in ADMIN_ONLY_OPERATIONS
        assert QuoteOperation.EXPORT_QUOTES in ADMIN_ONLY_OPERATIONS


class TestCanViewQuote:
    """Tests for per-quote read access."""

    def test_admin_views_any_quote(self, admin: Actor):
        assert can_view_quote(admin, _quote(agent_id=None)) is True

    def test_agent_views_own_quote(self, agent: Actor):
        assert can_view_quote(agent, _quote(agent_id=agent.id)) is True

    def test_agent_cannot_view_other_agents_quote(self, agent: Actor):
        assert can_view_quote(agent, _quote(agent_id="someone-else")) is False

    def test_agent_cannot_view_unassigned_quote(self, agent: Actor):
        assert can_view_quote(agent, _quote(agent_id=None)) is False

    def test_pending_agent_cannot_view_own_quote(self, pending_agent: Actor):
        assert can_view_quote(pending_agent, _quote(agent_id=pending_agent.id)) is False
