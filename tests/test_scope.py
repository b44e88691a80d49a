from typing import Optional

import pytest

from ocpadmission.scope import (
    CLUSTER_ROLE_INDICATOR,
    SCOPE_DISCOVERY_RULE,
    USER_ACCESS_CHECK,
    USER_FULL,
    USER_INDICATOR,
    USER_INFO,
    USER_LIST_ALL_PROJECTS,
    USER_LIST_SCOPED_PROJECTS,
    AggregateError,
    ClusterRole,
    ClusterRoleEvaluator,
    ClusterRoleNotFoundError,
    PolicyRule,
    UserEvaluator,
    default_supported_scopes,
    describe_scopes,
    parse_cluster_role_scope,
    rules_allow,
    scopes_to_rules,
    scopes_to_visible_namespaces,
)


class FakePolicyGetter:
    def __init__(self, cluster_roles=(), err: Optional[Exception] = None):
        self.cluster_roles = list(cluster_roles)
        self.err = err

    def get(self, name):
        for role in self.cluster_roles:
            if role.name == name:
                return role
        if self.err is not None:
            raise self.err
        return ClusterRole()


def resolve(scopes, namespace, getter):
    try:
        return scopes_to_rules(scopes, namespace, getter), None
    except AggregateError as err:
        return err.result, err


def admin(name="admin"):
    return [ClusterRole(name=name, rules=[PolicyRule()])]


@pytest.mark.parametrize(
    "scopes, err, num_rules",
    [
        ([USER_INDICATOR], "no scope evaluator found", 1),
        ([USER_INDICATOR + "foo"], "no scope evaluator found", 1),
        ([USER_INFO], "", 2),
        ([USER_INDICATOR, USER_INFO], "no scope evaluator found", 2),
        ([USER_ACCESS_CHECK], "", 3),
        ([USER_INFO, USER_ACCESS_CHECK], "", 4),
        ([USER_LIST_SCOPED_PROJECTS], "", 2),
    ],
    ids=["missing-part", "bad-part", "info", "one-error", "access", "both", "list-scoped-projects"],
)
def test_user_evaluator(scopes, err, num_rules):
    rules, error = resolve(scopes, "namespace", None)
    if err:
        assert error is not None and err in str(error)
    else:
        assert error is None
    assert len(rules) == num_rules


@pytest.mark.parametrize(
    "scopes, namespace, roles, getter_err, err, num_rules",
    [
        ([CLUSTER_ROLE_INDICATOR], "", [], None, "bad format for", 1),
        ([CLUSTER_ROLE_INDICATOR + "foo"], "", [], None, "bad format for", 1),
        ([CLUSTER_ROLE_INDICATOR + ":ns"], "", [], None, "bad format for", 1),
        ([CLUSTER_ROLE_INDICATOR + "foo:"], "", [], None, "bad format for", 1),
        ([CLUSTER_ROLE_INDICATOR + "missing:*"], "", admin(),
         ValueError('clusterrole "missing" not found'), 'clusterrole "missing" not found', 1),
        ([CLUSTER_ROLE_INDICATOR + "admin:mismatch"], "current-ns", admin(), None, "", 1),
        ([CLUSTER_ROLE_INDICATOR + "admin:*"], "current-ns", admin(), None, "", 2),
        ([CLUSTER_ROLE_INDICATOR + "admin:current-ns"], "current-ns", admin(), None, "", 2),
        ([CLUSTER_ROLE_INDICATOR + "admin:two:current-ns"], "current-ns", admin("admin:two"), None, "", 2),
        ([CLUSTER_ROLE_INDICATOR + "admin:two:current-ns"], "current-ns", [],
         ValueError("some bad thing happened"), "some bad thing happened", 1),
    ],
    ids=[
        "bad-format-1", "bad-format-2", "bad-format-3", "bad-format-4", "missing-role",
        "mismatched-namespace", "all-namespaces", "matching-namespaces", "colon-role", "getter-error",
    ],
)
def test_cluster_role_evaluator(scopes, namespace, roles, getter_err, err, num_rules):
    rules, error = resolve(scopes, namespace, FakePolicyGetter(roles, getter_err))
    if err:
        assert error is not None and err in str(error)
    else:
        assert error is None
    assert len(rules) == num_rules


@pytest.mark.parametrize(
    "role_rule, scope, expected",
    [
        (PolicyRule(api_groups=[""], resources=["pods", "secrets"]), "admin:*",
         PolicyRule(api_groups=[""], resources=["pods"])),
        (PolicyRule(api_groups=[], resources=["pods", "secrets"]), "admin:*",
         PolicyRule(api_groups=[], resources=["pods", "secrets"])),
        (PolicyRule(api_groups=["foo"], resources=["pods", "secrets"]), "admin:*",
         PolicyRule(api_groups=["foo"], resources=["pods", "secrets"])),
        (PolicyRule(api_groups=["", "and-foo"], resources=["pods", "oauthaccesstokens"]), "admin:*",
         PolicyRule(api_groups=["", "and-foo"], resources=["pods"])),
        (PolicyRule(api_groups=[""], resources=["pods", "secrets"]), "admin:*:!",
         PolicyRule(api_groups=[""], resources=["pods", "secrets"])),
    ],
    ids=[
        "simple match secrets", "no longer match old group secrets",
        "skip non-matching group secrets", "access tokens", "allow the escalation",
    ],
)
def test_escalation_protection(role_rule, scope, expected):
    getter = FakePolicyGetter([ClusterRole(name="admin", rules=[role_rule])])
    rules = scopes_to_rules([CLUSTER_ROLE_INDICATOR + scope], "ns-01", getter)
    assert rules == [SCOPE_DISCOVERY_RULE, expected]


def test_escalation_removal_leaves_role_untouched():
    original = PolicyRule(api_groups=[""], resources=["pods", "secrets"])
    getter = FakePolicyGetter([ClusterRole(name="admin", rules=[original])])
    scopes_to_rules([CLUSTER_ROLE_INDICATOR + "admin:*"], "ns", getter)
    assert original.resources == ["pods", "secrets"]


def test_unbounded_rules_are_dropped_unless_escalating():
    wide = PolicyRule(verbs=["*"], api_groups=[""], resources=["pods"])
    getter = FakePolicyGetter([ClusterRole(name="admin", rules=[wide])])
    assert scopes_to_rules([CLUSTER_ROLE_INDICATOR + "admin:*"], "ns", getter) == [SCOPE_DISCOVERY_RULE]
    assert scopes_to_rules([CLUSTER_ROLE_INDICATOR + "admin:*:!"], "ns", getter) == [SCOPE_DISCOVERY_RULE, wide]


def test_not_found_role_yields_no_rules():
    getter = FakePolicyGetter([], ClusterRoleNotFoundError("gone"))
    assert scopes_to_rules([CLUSTER_ROLE_INDICATOR + "gone:*"], "ns", getter) == [SCOPE_DISCOVERY_RULE]


def test_user_full_rules():
    rules = scopes_to_rules([USER_FULL], "ns", None)
    assert rules[1:] == [
        PolicyRule(verbs=["*"], api_groups=["*"], resources=["*"]),
        PolicyRule(verbs=["*"], non_resource_urls=["*"]),
    ]


def test_parse_cluster_role_scope():
    assert parse_cluster_role_scope("role:admin:ns") == ("admin", "ns", False)
    assert parse_cluster_role_scope("role:admin:two:*:!") == ("admin:two", "*", True)


@pytest.mark.parametrize("scope", ["role:", "role:foo", "role::ns", "role:foo:", "user:info"])
def test_parse_cluster_role_scope_errors(scope):
    with pytest.raises(ValueError, match="bad format for scope"):
        parse_cluster_role_scope(scope)


def test_rules_allow():
    rule = PolicyRule(verbs=["get"], api_groups=[""], resources=["namespaces"])
    assert rules_allow("", "get", "namespaces", [rule]) is True
    assert rules_allow("", "list", "namespaces", [rule]) is False
    assert rules_allow("apps", "get", "namespaces", [rule]) is False
    named = PolicyRule(verbs=["get"], api_groups=[""], resources=["namespaces"], resource_names=["x"])
    assert rules_allow("", "get", "namespaces", [named]) is False
    wild = PolicyRule(verbs=["*"], api_groups=["*"], resources=["*"])
    assert rules_allow("", "get", "namespaces", [wild]) is True


def test_visible_namespaces_empty_scopes_means_all():
    assert scopes_to_visible_namespaces([], None, False) == {"*"}


def test_visible_namespaces_user_scopes():
    assert scopes_to_visible_namespaces([USER_FULL], None, False) == {"*"}
    assert scopes_to_visible_namespaces([USER_LIST_ALL_PROJECTS], None, False) == {"*"}
    assert scopes_to_visible_namespaces([USER_INFO], None, False) == set()


def test_visible_namespaces_cluster_role():
    can_get = ClusterRole(
        name="viewer",
        rules=[PolicyRule(verbs=["get"], api_groups=[""], resources=["namespaces"])],
    )
    getter = FakePolicyGetter([can_get] + admin())
    assert scopes_to_visible_namespaces(["role:viewer:foo"], getter, False) == {"foo"}
    assert scopes_to_visible_namespaces(["role:admin:foo"], getter, False) == set()


def test_visible_namespaces_unhandled():
    with pytest.raises(AggregateError, match="no scope evaluator found"):
        scopes_to_visible_namespaces(["bogus"], None, False)
    assert scopes_to_visible_namespaces(["bogus", USER_FULL], None, True) == {"*"}


def test_aggregate_error_message():
    assert str(AggregateError([ValueError("a")])) == "a"
    assert str(AggregateError([ValueError("a"), ValueError("b"), ValueError("a")])) == "[a, b]"


def test_default_supported_scopes():
    assert default_supported_scopes() == [
        "user:check-access", "user:full", "user:info", "user:list-projects", "user:list-scoped-projects",
    ]


def test_describe_scopes():
    described = describe_scopes([USER_FULL, "role:admin:*"])
    assert described["user:full"] == "Full read/write access with all of your permissions"
    assert described["role:admin:*"] == ""


def test_evaluator_handles():
    assert UserEvaluator().handles(USER_INFO) is True
    assert UserEvaluator().handles("user:") is False
    assert ClusterRoleEvaluator().handles("role:x:y") is True
    assert ClusterRoleEvaluator().handles("user:info") is False


def test_evaluator_validate_and_describe():
    with pytest.raises(ValueError, match="unrecognized scope"):
        UserEvaluator().validate("user:bogus")
    assert UserEvaluator().describe(USER_FULL)[1] == (
        "Includes any access you have to escalating resources like secrets"
    )
    description, warning = ClusterRoleEvaluator().describe("role:admin:*")
    assert description == (
        'Anything you can do server-wide that is also allowed by the "admin" role, '
        "except access escalating resources like secrets"
    )
    assert warning == ""
    description, warning = ClusterRoleEvaluator().describe("role:admin:foo:!")
    assert description == 'Anything you can do in project "foo" that is also allowed by the "admin" role'
    assert warning == "Includes access to escalating resources like secrets"


def test_user_evaluator_resolve_unknown_scope():
    with pytest.raises(ValueError, match="unrecognized scope"):
        UserEvaluator().resolve_rules("user:bogus", "ns", None)