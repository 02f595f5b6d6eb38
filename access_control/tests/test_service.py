"""
Unit tests for the access control service.
"""

import pytest
from prometheus_client import CollectorRegistry, Counter
from sqlalchemy import Column, Integer, MetaData, String, Table, select

from shared.config import AccessControlSettings, ResourceTypeConfig
from shared.errors import AuthorizationError, ConfigurationError, ResourceTypeError, RuleInstantiationError
from shared.metrics import AccessControlMetrics
from shared.test_helpers import SampleUser, TestDataFactory, Ticket, create_repository
from access_control.provider import InMemoryRuleRepository
from access_control.rules.models import GroupingStrategy, ResolutionStrategy
from access_control.service import AccessControlService, resource_type_of


def render(query):
    """Render a select with literal values."""
    return str(query.compile(compile_kwargs={"literal_binds": True}))


@pytest.fixture
def settings():
    return AccessControlSettings(_env_file=None)


@pytest.fixture
def user():
    return SampleUser(id=1, department_id=10, roles=["support"])


@pytest.fixture
def tickets():
    return {ticket.id: ticket for ticket in TestDataFactory.create_test_tickets()}


@pytest.fixture
def open_status():
    return TestDataFactory.create_rule_record("open-tickets", "status", {"statuses": ["open"]}, priority=10)


@pytest.fixture
def own_tickets():
    return TestDataFactory.create_rule_record("own-tickets", "ownership", {"owner_column": "owner_id"}, priority=5)


@pytest.fixture
def repository(user, open_status, own_tickets):
    return create_repository((open_status, user), (own_tickets, "support"))


class TestResourceTypeOf:
    """Test cases for resource_type_of."""

    def test_names(self, tickets):
        """Test names derived from strings, tables, mapped classes and instances."""
        table = Table("invoices", MetaData(), Column("id", Integer, primary_key=True))

        assert resource_type_of("tickets") == "tickets"
        assert resource_type_of(table) == "invoices"
        assert resource_type_of(Ticket) == "tickets"
        assert resource_type_of(tickets[1]) == "tickets"
        assert resource_type_of(SampleUser(id=1)) == "SampleUser"
        assert resource_type_of(SampleUser) == "SampleUser"

    def test_plain_data_needs_explicit_type(self):
        """Test mappings and None cannot name their resource type."""
        with pytest.raises(ResourceTypeError):
            resource_type_of({"id": 1})
        with pytest.raises(ResourceTypeError):
            resource_type_of(None)


class TestAccessControlServiceCan:
    """Test cases for single-instance checks."""

    def test_no_rules_denies(self, settings, user, tickets):
        """Test principals without rules are denied."""
        service = AccessControlService(InMemoryRuleRepository(), settings)

        assert service.can(user, "view", tickets[1]) is False

    def test_any_resolution(self, settings, repository, user, tickets):
        """Test a single passing rule grants under ANY."""
        service = AccessControlService(repository, settings)

        assert service.can(user, "view", tickets[1]) is True
        assert service.can(user, "view", tickets[2]) is True
        assert service.can(user, "view", tickets[3]) is True
        assert service.can(user, "view", tickets[4]) is False

    def test_all_resolution_per_resource_type(self, settings, repository, user, tickets):
        """Test the resource type configuration selects ALL."""
        service = AccessControlService(repository, settings, {Ticket: {"resolution_logic": "all"}})

        assert service.can(user, "view", tickets[1]) is True
        assert service.can(user, "view", tickets[2]) is False
        assert service.can(user, "view", tickets[3]) is False

    def test_per_call_override(self, settings, repository, user, tickets):
        """Test per-call overrides win over the resource type configuration."""
        service = AccessControlService(repository, settings, {"tickets": {"resolution_logic": "any"}})

        allowed = service.can(user, "view", tickets[2], overrides=ResourceTypeConfig(resolution_logic="all"))

        assert allowed is False

    def test_deny_rule_vetoes(self, settings, repository, user, tickets):
        """Test a passing deny rule overrides passing allow rules."""
        closed = TestDataFactory.create_rule_record(
            "no-closed", "status", {"statuses": ["closed"]}, priority=20, is_deny_rule=True
        )
        repository.add_rule(closed)
        repository.assign("no-closed", user)
        service = AccessControlService(repository, settings)

        assert service.can(user, "view", tickets[2]) is False
        assert service.can(user, "view", tickets[1]) is True

    def test_action_selects_rules(self, settings, repository, user, tickets):
        """Test rules for other actions do not apply."""
        service = AccessControlService(repository, settings)

        assert service.can(user, "update", tickets[1]) is False

    def test_plain_resource_with_explicit_type(self, settings, repository, user):
        """Test plain mappings are checked when the type is given."""
        service = AccessControlService(repository, settings)

        assert service.can(user, "view", {"status": "open"}, resource_type="tickets") is True

        with pytest.raises(ResourceTypeError):
            service.can(user, "view", {"status": "open"})

    def test_invalid_rule_definition_propagates(self, settings, user, tickets):
        """Test broken rule definitions surface as errors."""
        broken = TestDataFactory.create_rule_record("broken", "geo_fence")
        service = AccessControlService(create_repository((broken, user)), settings)

        with pytest.raises(RuleInstantiationError):
            service.can(user, "view", tickets[1])

    def test_authorize(self, settings, repository, user, tickets):
        """Test authorize raises on denial."""
        service = AccessControlService(repository, settings)

        service.authorize(user, "view", tickets[1])

        with pytest.raises(AuthorizationError) as exc_info:
            service.authorize(user, "view", tickets[4])

        assert exc_info.value.details == {
            "action": "view",
            "resource_type": "tickets",
            "principal": "SampleUser:1"
        }

    def test_metrics_recorded(self, settings, repository, user, tickets):
        """Test decisions and timings are recorded."""
        registry = CollectorRegistry()
        service = AccessControlService(repository, settings, metrics=AccessControlMetrics(registry))

        service.can(user, "view", tickets[1])
        service.can(user, "view", tickets[4])
        service.can(user, "view", tickets[4])

        def decisions(outcome):
            return registry.get_sample_value(
                "access_control_decisions_total",
                {"resource_type": "tickets", "action": "view", "outcome": outcome}
            )

        assert decisions("granted") == 1.0
        assert decisions("denied") == 2.0
        assert isinstance(service.metrics.get_metric("access_control_decisions_total"), Counter)
        assert service.metrics.get_metric("unknown") is None
        assert registry.get_sample_value(
            "access_control_evaluation_seconds_count", {"operation": "check"}
        ) == 3.0


class TestAccessControlServiceConfig:
    """Test cases for configuration precedence."""

    def test_global_defaults(self, settings):
        """Test global settings apply to unconfigured resource types."""
        service = AccessControlService(InMemoryRuleRepository(), settings)

        config = service.config_for("tickets")

        assert config.resolution is ResolutionStrategy.ANY
        assert config.grouping is GroupingStrategy.AND
        assert config.fallback_column is None
        assert config.integrate_with_policies is True
        assert service.manages("tickets") is False

    def test_precedence(self):
        """Test override over resource type entry over global settings."""
        settings = AccessControlSettings(
            _env_file=None,
            default_resolution="priority",
            default_scope_grouping="or",
            default_fallback_column="created_by"
        )
        service = AccessControlService(
            InMemoryRuleRepository(),
            settings,
            {"tickets": ResourceTypeConfig(scope_grouping="and", integrate_with_policies=False)}
        )

        config = service.config_for("tickets", ResourceTypeConfig(fallback_column="owner_id"))

        assert config.resolution is ResolutionStrategy.PRIORITY
        assert config.grouping is GroupingStrategy.AND
        assert config.fallback_column == "owner_id"
        assert config.integrate_with_policies is False
        assert service.manages("tickets") is True

    def test_invalid_entry_rejected(self, settings):
        """Test malformed resource type entries fail at construction."""
        with pytest.raises(ConfigurationError) as exc_info:
            AccessControlService(
                InMemoryRuleRepository(), settings, {"tickets": {"integrate_with_policies": "maybe"}}
            )

        assert exc_info.value.details["resource_type"] == "tickets"

    def test_unknown_values_degrade(self, settings):
        """Test unknown strategies fall back to their defaults."""
        service = AccessControlService(
            InMemoryRuleRepository(),
            settings,
            {"tickets": {"resolution_logic": "majority", "scope_grouping": "xor"}}
        )

        config = service.config_for("tickets")

        assert config.resolution is ResolutionStrategy.ANY
        assert config.grouping is GroupingStrategy.AND


class TestAccessControlServiceFilterQuery:
    """Test cases for bulk query filtering."""

    def test_and_grouping(self, settings, repository, user):
        """Test the default grouping conjoins rule filters."""
        service = AccessControlService(repository, settings)

        sql = render(service.filter_query(user, "view", Ticket))

        assert "WHERE tickets.status IN ('open') AND tickets.owner_id = 1" in sql

    def test_or_grouping(self, settings, repository, user):
        """Test OR grouping from the resource type configuration."""
        service = AccessControlService(repository, settings, {Ticket: {"scope_grouping": "or"}})

        sql = render(service.filter_query(user, "view", Ticket))

        assert "WHERE tickets.status IN ('open') OR tickets.owner_id = 1" in sql

    def test_base_query(self, settings, repository, user):
        """Test an existing select is restricted and its table names the type."""
        base = select(Ticket).where(Ticket.department_id == 10)

        service = AccessControlService(repository, settings)

        sql = render(service.filter_query(user, "view", base_query=base))

        assert "tickets.department_id = 10 AND tickets.status IN ('open') AND tickets.owner_id = 1" in sql

    def test_configured_table_by_name(self, settings, repository, user):
        """Test a resource type name resolves through its configured table."""
        table = Table(
            "tickets",
            MetaData(),
            Column("id", Integer, primary_key=True),
            Column("status", String),
            Column("owner_id", Integer),
        )
        service = AccessControlService(repository, settings, {"tickets": {"table": table}})

        sql = render(service.filter_query(user, "view", "tickets"))

        assert sql.startswith("SELECT tickets.id, tickets.status, tickets.owner_id")
        assert "tickets.owner_id = 1" in sql

    def test_unresolvable_target(self, settings, repository, user):
        """Test missing resource types raise."""
        service = AccessControlService(repository, settings)

        with pytest.raises(ResourceTypeError):
            service.filter_query(user, "view", "tickets")
        with pytest.raises(ResourceTypeError):
            service.filter_query(user, "view")

    def test_fallback_when_no_rules(self, settings, user):
        """Test the fallback column restricts principals without rules."""
        service = AccessControlService(
            InMemoryRuleRepository(), settings, {Ticket: {"fallback_column": "owner_id"}}
        )

        sql = render(service.filter_query(user, "view", Ticket))

        assert sql.endswith("WHERE tickets.owner_id = 1")

    def test_pass_through_without_fallback(self, settings, user):
        """Test no rules and no fallback leaves the query unrestricted."""
        service = AccessControlService(InMemoryRuleRepository(), settings)

        query = service.filter_query(user, "view", Ticket)

        assert query.whereclause is None

    def test_scope_metrics(self, settings, repository, user):
        """Test filter builds are timed."""
        registry = CollectorRegistry()
        service = AccessControlService(repository, settings, metrics=AccessControlMetrics(registry))

        service.filter_query(user, "view", Ticket)

        assert registry.get_sample_value(
            "access_control_evaluation_seconds_count", {"operation": "scope"}
        ) == 1.0
