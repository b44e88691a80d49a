"""Turning OAuth token scopes into the policy rules and namespaces they allow."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Protocol

SCOPES_ALL_NAMESPACES = "*"

LEGACY_GROUP_NAME = ""
CORE_GROUP_NAME = ""
KUBE_AUTHORIZATION_GROUP_NAME = "authorization.k8s.io"
OPENSHIFT_AUTHORIZATION_GROUP_NAME = "authorization.openshift.io"
IMAGE_GROUP_NAME = "image.openshift.io"
NETWORK_GROUP_NAME = "network.openshift.io"
OAUTH_GROUP_NAME = "oauth.openshift.io"
PROJECT_GROUP_NAME = "project.openshift.io"
USER_GROUP_NAME = "user.openshift.io"

VERB_ALL = "*"
API_GROUP_ALL = "*"
RESOURCE_ALL = "*"
NON_RESOURCE_ALL = "*"

USER_INDICATOR = "user:"
CLUSTER_ROLE_INDICATOR = "role:"

USER_INFO = USER_INDICATOR + "info"
USER_ACCESS_CHECK = USER_INDICATOR + "check-access"
# Explicit permission to see the projects that this token can see.
USER_LIST_SCOPED_PROJECTS = USER_INDICATOR + "list-scoped-projects"
# Explicit permission to see the projects a user can see.
USER_LIST_ALL_PROJECTS = USER_INDICATOR + "list-projects"
# All permissions of the user.
USER_FULL = USER_INDICATOR + "full"


@dataclass
class PolicyRule:
    """One RBAC rule: which verbs are allowed on which resources or URLs."""

    verbs: list[str] = field(default_factory=list)
    api_groups: list[str] = field(default_factory=list)
    resources: list[str] = field(default_factory=list)
    resource_names: list[str] = field(default_factory=list)
    non_resource_urls: list[str] = field(default_factory=list)

    def copy(self) -> PolicyRule:
        """Return a deep copy of this rule."""
        return PolicyRule(
            verbs=list(self.verbs),
            api_groups=list(self.api_groups),
            resources=list(self.resources),
            resource_names=list(self.resource_names),
            non_resource_urls=list(self.non_resource_urls),
        )


@dataclass
class ClusterRole:
    """A named, cluster-wide set of policy rules."""

    name: str = ""
    rules: list[PolicyRule] = field(default_factory=list)


class ClusterRoleNotFoundError(LookupError):
    """Raised by a cluster role getter when the role does not exist."""


class AggregateError(Exception):
    """Several errors collected during evaluation, with the partial result."""

    def __init__(self, errors: Iterable[BaseException], result: Any = None) -> None:
        self.errors = list(errors)
        self.result = result
        super().__init__(str(self))

    def __str__(self) -> str:
        messages: list[str] = []
        for err in self.errors:
            message = str(err)
            if message not in messages:
                messages.append(message)
        if len(messages) == 1:
            return messages[0]
        return "[" + ", ".join(messages) + "]"


class _ClusterRoleGetter(Protocol):
    def get(self, name: str) -> ClusterRole: ...


# Lets a client discover the API resources available on this server.
SCOPE_DISCOVERY_RULE = PolicyRule(
    verbs=["get"],
    non_resource_urls=[
        "/version", "/version/*",
        "/api", "/api/*",
        "/apis", "/apis/*",
        "/oapi", "/oapi/*",
        "/openapi/v2",
        "/swaggerapi", "/swaggerapi/*", "/swagger.json", "/swagger-2.0.0.pb-v1",
        "/osapi", "/osapi/",
        "/.well-known", "/.well-known/*",
        "/",
    ],
)

_DEFAULT_SUPPORTED_SCOPES = {
    USER_INFO: "Read-only access to your user information (including username, identities, and group membership)",
    USER_ACCESS_CHECK: 'Read-only access to view your privileges (for example, "can I create builds?")',
    USER_LIST_SCOPED_PROJECTS: "Read-only access to list your projects viewable with this token and view their metadata (display name, description, etc.)",
    USER_LIST_ALL_PROJECTS: "Read-only access to list your projects and view their metadata (display name, description, etc.)",
    USER_FULL: "Full read/write access with all of your permissions",
}

# (group, resource) pairs considered escalating for scope evaluation.
_ESCALATING_SCOPE_RESOURCES = (
    (CORE_GROUP_NAME, "secrets"),
    (IMAGE_GROUP_NAME, "imagestreams/secrets"),
    (OAUTH_GROUP_NAME, "oauthauthorizetokens"),
    (OAUTH_GROUP_NAME, "oauthaccesstokens"),
    (OPENSHIFT_AUTHORIZATION_GROUP_NAME, "roles"),
    (OPENSHIFT_AUTHORIZATION_GROUP_NAME, "rolebindings"),
    (OPENSHIFT_AUTHORIZATION_GROUP_NAME, "clusterroles"),
    (OPENSHIFT_AUTHORIZATION_GROUP_NAME, "clusterrolebindings"),
    (NETWORK_GROUP_NAME, "service/externalips"),
    (LEGACY_GROUP_NAME, "imagestreams/secrets"),
    (LEGACY_GROUP_NAME, "oauthauthorizetokens"),
    (LEGACY_GROUP_NAME, "oauthaccesstokens"),
    (LEGACY_GROUP_NAME, "roles"),
    (LEGACY_GROUP_NAME, "rolebindings"),
    (LEGACY_GROUP_NAME, "clusterroles"),
    (LEGACY_GROUP_NAME, "clusterrolebindings"),
)


def parse_cluster_role_scope(scope: str) -> tuple[str, str, bool]:
    """Split ``role:<name>:<namespace>[:!]`` into role name, namespace and escalation flag."""
    if not scope.startswith(CLUSTER_ROLE_INDICATOR):
        raise ValueError(f"bad format for scope {scope}")
    escalating = False
    if scope.endswith(":!"):
        escalating = True
        scope = scope[: scope.rindex(":")]
    tokens = scope.split(":", 1)
    if len(tokens) != 2:
        raise ValueError(f"bad format for scope {scope}")
    rest = tokens[1]
    # Namespaces cannot hold colons but role names can, so split on the last one.
    last_colon = rest.rfind(":")
    if last_colon <= 0 or last_colon == len(rest) - 1:
        raise ValueError(f"bad format for scope {scope}")
    return rest[:last_colon], rest[last_colon + 1:], escalating


def rules_allow(api_group: str, verb: str, resource: str, rules: Iterable[PolicyRule]) -> bool:
    """Return True if any rule allows ``verb`` on the unnamed ``resource`` in ``api_group``."""
    for rule in rules:
        if VERB_ALL not in rule.verbs and verb not in rule.verbs:
            continue
        if API_GROUP_ALL not in rule.api_groups and api_group not in rule.api_groups:
            continue
        if RESOURCE_ALL not in rule.resources and resource not in rule.resources:
            continue
        if rule.resource_names and "" not in rule.resource_names:
            continue
        return True
    return False


class ScopeEvaluator(ABC):
    """Turns one kind of scope into the rules that express it."""

    @abstractmethod
    def handles(self, scope: str) -> bool:
        """Return True if this evaluator can evaluate ``scope``."""

    @abstractmethod
    def validate(self, scope: str) -> None:
        """Raise ValueError if ``scope`` is malformed."""

    @abstractmethod
    def describe(self, scope: str) -> tuple[str, str]:
        """Return a description and a warning for ``scope``."""

    @abstractmethod
    def resolve_rules(
        self, scope: str, namespace: str, cluster_role_getter: Optional[_ClusterRoleGetter]
    ) -> list[PolicyRule]:
        """Return the policy rules that ``scope`` allows in ``namespace``."""

    @abstractmethod
    def resolve_gettable_namespaces(
        self, scope: str, cluster_role_getter: Optional[_ClusterRoleGetter]
    ) -> list[str]:
        """Return the namespaces that ``scope`` may get."""


class UserEvaluator(ScopeEvaluator):
    """Handles ``user:<scope name>`` scopes."""

    def handles(self, scope: str) -> bool:
        return scope in _DEFAULT_SUPPORTED_SCOPES

    def validate(self, scope: str) -> None:
        if not self.handles(scope):
            raise ValueError(f"unrecognized scope: {scope}")

    def describe(self, scope: str) -> tuple[str, str]:
        if scope == USER_FULL:
            return (
                _DEFAULT_SUPPORTED_SCOPES[scope],
                "Includes any access you have to escalating resources like secrets",
            )
        if scope in _DEFAULT_SUPPORTED_SCOPES:
            return _DEFAULT_SUPPORTED_SCOPES[scope], ""
        raise ValueError(f"unrecognized scope: {scope}")

    def resolve_rules(
        self, scope: str, namespace: str, cluster_role_getter: Optional[_ClusterRoleGetter]
    ) -> list[PolicyRule]:
        if scope == USER_INFO:
            return [PolicyRule(
                verbs=["get"],
                api_groups=[USER_GROUP_NAME, LEGACY_GROUP_NAME],
                resources=["users"],
                resource_names=["~"],
            )]
        if scope == USER_ACCESS_CHECK:
            return [
                PolicyRule(
                    verbs=["create"],
                    api_groups=[KUBE_AUTHORIZATION_GROUP_NAME],
                    resources=["selfsubjectaccessreviews"],
                ),
                PolicyRule(
                    verbs=["create"],
                    api_groups=[OPENSHIFT_AUTHORIZATION_GROUP_NAME, LEGACY_GROUP_NAME],
                    resources=["selfsubjectrulesreviews"],
                ),
            ]
        if scope == USER_LIST_SCOPED_PROJECTS:
            return [PolicyRule(
                verbs=["list", "watch"],
                api_groups=[PROJECT_GROUP_NAME, LEGACY_GROUP_NAME],
                resources=["projects"],
            )]
        if scope == USER_LIST_ALL_PROJECTS:
            return [
                PolicyRule(
                    verbs=["list", "watch"],
                    api_groups=[PROJECT_GROUP_NAME, LEGACY_GROUP_NAME],
                    resources=["projects"],
                ),
                PolicyRule(verbs=["get"], api_groups=[CORE_GROUP_NAME], resources=["namespaces"]),
            ]
        if scope == USER_FULL:
            return [
                PolicyRule(verbs=[VERB_ALL], api_groups=[API_GROUP_ALL], resources=[RESOURCE_ALL]),
                PolicyRule(verbs=[VERB_ALL], non_resource_urls=[NON_RESOURCE_ALL]),
            ]
        raise ValueError(f"unrecognized scope: {scope}")

    def resolve_gettable_namespaces(
        self, scope: str, cluster_role_getter: Optional[_ClusterRoleGetter]
    ) -> list[str]:
        if scope in (USER_FULL, USER_LIST_ALL_PROJECTS):
            return ["*"]
        return []


def _remove_escalating_resources(rule: PolicyRule) -> PolicyRule:
    """Return the rule without escalating resources, copying it only if it must change."""
    result = rule
    for group, resource in _ESCALATING_SCOPE_RESOURCES:
        if group not in rule.api_groups or resource not in rule.resources:
            continue
        if result is rule:
            result = rule.copy()
        result.resources = [item for item in result.resources if item != resource]
    return result


class ClusterRoleEvaluator(ScopeEvaluator):
    """Handles ``role:<cluster role name>:<namespace or *>[:!]`` scopes."""

    def handles(self, scope: str) -> bool:
        return scope.startswith(CLUSTER_ROLE_INDICATOR)

    def validate(self, scope: str) -> None:
        parse_cluster_role_scope(scope)

    def describe(self, scope: str) -> tuple[str, str]:
        role_name, scope_namespace, escalating = parse_cluster_role_scope(scope)
        if scope_namespace == SCOPES_ALL_NAMESPACES:
            scope_phrase = "server-wide"
        else:
            scope_phrase = f'in project "{scope_namespace}"'
        if escalating:
            warning = "Includes access to escalating resources like secrets"
            escalating_phrase = ""
        else:
            warning = ""
            escalating_phrase = ", except access escalating resources like secrets"
        description = (
            f'Anything you can do {scope_phrase} that is also allowed by the '
            f'"{role_name}" role{escalating_phrase}'
        )
        return description, warning

    def resolve_rules(
        self, scope: str, namespace: str, cluster_role_getter: Optional[_ClusterRoleGetter]
    ) -> list[PolicyRule]:
        _, scope_namespace, _ = parse_cluster_role_scope(scope)
        # A namespace limit that does not match yields no rules, which is not an error.
        if scope_namespace not in (SCOPES_ALL_NAMESPACES, namespace):
            return []
        return self._resolve_rules(scope, cluster_role_getter)

    def _resolve_rules(
        self, scope: str, cluster_role_getter: Optional[_ClusterRoleGetter]
    ) -> list[PolicyRule]:
        role_name, _, escalating = parse_cluster_role_scope(scope)
        if cluster_role_getter is None:
            raise ValueError("no cluster role getter available")
        try:
            role = cluster_role_getter.get(role_name)
        except ClusterRoleNotFoundError:
            return []

        rules: list[PolicyRule] = []
        for rule in role.rules:
            if escalating:
                rules.append(rule)
                continue
            # Rules with unbounded access are not allowed in scopes.
            if (VERB_ALL in rule.verbs or RESOURCE_ALL in rule.resources
                    or API_GROUP_ALL in rule.api_groups):
                continue
            rules.append(_remove_escalating_resources(rule))
        return rules

    def resolve_gettable_namespaces(
        self, scope: str, cluster_role_getter: Optional[_ClusterRoleGetter]
    ) -> list[str]:
        _, scope_namespace, _ = parse_cluster_role_scope(scope)
        rules = self._resolve_rules(scope, cluster_role_getter)
        if rules_allow(CORE_GROUP_NAME, "get", "namespaces", rules):
            return [scope_namespace]
        return []


SCOPE_EVALUATORS: tuple[ScopeEvaluator, ...] = (UserEvaluator(), ClusterRoleEvaluator())


def scopes_to_rules(
    scopes: Iterable[str], namespace: str, cluster_role_getter: Optional[_ClusterRoleGetter]
) -> list[PolicyRule]:
    """Return the rules the scopes allow, always starting with the discovery rule.

    Errors do not stop evaluation; if any occur, an AggregateError is raised
    whose ``result`` holds the rules gathered anyway.
    """
    rules = [SCOPE_DISCOVERY_RULE.copy()]
    errors: list[Exception] = []
    for scope in scopes:
        found = False
        for evaluator in SCOPE_EVALUATORS:
            if not evaluator.handles(scope):
                continue
            found = True
            try:
                rules.extend(evaluator.resolve_rules(scope, namespace, cluster_role_getter))
            except Exception as err:  # each failure is reported, none is fatal
                errors.append(err)
        if not found:
            errors.append(ValueError(f'no scope evaluator found for "{scope}"'))
    if errors:
        raise AggregateError(errors, rules)
    return rules


def scopes_to_visible_namespaces(
    scopes: Iterable[str],
    cluster_role_getter: Optional[_ClusterRoleGetter],
    ignore_unhandled_scopes: bool,
) -> set[str]:
    """Return the namespaces the scopes may get; no scopes at all means every namespace.

    On errors an AggregateError is raised whose ``result`` holds the namespaces found.
    """
    scopes = list(scopes)
    if not scopes:
        return {"*"}
    visible: set[str] = set()
    errors: list[Exception] = []
    for scope in scopes:
        found = False
        for evaluator in SCOPE_EVALUATORS:
            if not evaluator.handles(scope):
                continue
            found = True
            try:
                visible.update(evaluator.resolve_gettable_namespaces(scope, cluster_role_getter))
            except Exception as err:  # each failure is reported, none is fatal
                errors.append(err)
                continue
            break
        if not found and not ignore_unhandled_scopes:
            errors.append(ValueError(f'no scope evaluator found for "{scope}"'))
    if errors:
        raise AggregateError(errors, visible)
    return visible


def default_supported_scopes() -> list[str]:
    """Return the built-in user scopes, sorted."""
    return sorted(_DEFAULT_SUPPORTED_SCOPES)


def describe_scopes(scopes: Iterable[str]) -> dict[str, str]:
    """Map each scope to its description, or to an empty string if it has none."""
    return {scope: _DEFAULT_SUPPORTED_SCOPES.get(scope, "") for scope in scopes}