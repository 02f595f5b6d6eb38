"""
Unit tests for the before-authorization hook.
"""

import pytest

from shared.config import AccessControlSettings
from shared.test_helpers import SampleUser, TestDataFactory, Ticket, create_repository
from access_control.hooks import BeforeAuthorizationHook, HookResult
from access_control.service import AccessControlService


class ExplodingProvider:
    """Provider failing on every lookup."""

    def applicable_rules(self, principal, action, resource_type):
        raise RuntimeError("rule store unavailable")


class TestBeforeAuthorizationHook:
    """Test cases for BeforeAuthorizationHook."""

    @pytest.fixture
    def user(self):
        return SampleUser(id=1, roles=["support"])

    @pytest.fixture
    def repository(self, user):
        own_tickets = TestDataFactory.create_rule_record(
            "own-tickets", "ownership", {"owner_column": "owner_id"}
        )
        return create_repository((own_tickets, user))

    def make_hook(self, provider, resource_types=None, **settings):
        settings = AccessControlSettings(_env_file=None, **settings)
        if resource_types is None:
            resource_types = {Ticket: {}}
        return BeforeAuthorizationHook(AccessControlService(provider, settings, resource_types))

    def test_grant(self, repository, user):
        """Test a passing check settles the question."""
        hook = self.make_hook(repository)

        assert hook(user, "view", Ticket(id=1, owner_id=1)) is HookResult.GRANT

    def test_refusal_abstains_by_default(self, repository, user):
        """Test a refused check leaves the decision to the host."""
        hook = self.make_hook(repository)

        assert hook(user, "view", Ticket(id=2, owner_id=2)) is HookResult.ABSTAIN

    def test_refusal_denies_when_configured(self, repository, user):
        """Test a refused check denies when configured to."""
        hook = self.make_hook(repository, hook_denies_on_refusal=True)

        assert hook(user, "view", Ticket(id=2, owner_id=2)) is HookResult.DENY

    def test_extra_arguments_ignored(self, repository, user):
        """Test only the first argument is treated as the resource."""
        hook = self.make_hook(repository)

        assert hook(user, "view", Ticket(id=1, owner_id=1), "extra", 3) is HookResult.GRANT

    @pytest.mark.parametrize("arguments", [
        (),
        (None,),
        ("tickets",),
        (42,),
        (Ticket,),
        ({"owner_id": 1},),
    ])
    def test_non_instances_abstain(self, repository, user, arguments):
        """Test checks without a resource instance are left to the host."""
        hook = self.make_hook(repository)

        assert hook(user, "view", *arguments) is HookResult.ABSTAIN

    def test_unmanaged_type_abstains(self, repository, user):
        """Test resource types without configuration are left to the host."""
        hook = self.make_hook(repository, resource_types={})

        assert hook(user, "view", Ticket(id=1, owner_id=1)) is HookResult.ABSTAIN

    def test_disabled_hooks_abstain(self, repository, user):
        """Test the hook is inert when disabled."""
        hook = self.make_hook(repository, hooks_enabled=False)

        assert hook(user, "view", Ticket(id=1, owner_id=1)) is HookResult.ABSTAIN

    def test_policy_integration_off_abstains(self, repository, user):
        """Test resource types opting out of policy integration are left to the host."""
        hook = self.make_hook(repository, resource_types={Ticket: {"integrate_with_policies": False}})

        assert hook(user, "view", Ticket(id=1, owner_id=1)) is HookResult.ABSTAIN

    def test_global_policy_integration_off_abstains(self, repository, user):
        """Test the global integration switch applies to unconfigured fields."""
        hook = self.make_hook(repository, integrate_with_policies=False)

        assert hook(user, "view", Ticket(id=1, owner_id=1)) is HookResult.ABSTAIN

    def test_errors_deny(self, user):
        """Test evaluation errors fail closed."""
        hook = self.make_hook(ExplodingProvider())

        assert hook(user, "view", Ticket(id=1, owner_id=1)) is HookResult.DENY
