# ocpadmission

Building blocks for API server admission and authorization logic, in plain Python
with no third-party dependencies.

## Modules

- `ocpadmission.labelselector`: a strict label selector parser that accepts only
  exact matches (`"k1=v1, k2 = v2"`). `parse` returns a `dict` and raises
  `LabelSelectorError` on bad input. Keys must be qualified names (an optional DNS
  subdomain prefix and `/`, then a name) and values must be valid label values; an
  empty value (`"key="`) is allowed. `conflicts`, `merge` and `equals` work on
  label maps. The `Lexer` and `Token` classes are available for tokenizing.
- `ocpadmission.scope`: turns OAuth token scopes into policy rules.
  `scopes_to_rules(scopes, namespace, cluster_role_getter)` returns a list of
  `PolicyRule`, always starting with a discovery rule.
  `scopes_to_visible_namespaces(scopes, cluster_role_getter, ignore_unhandled_scopes)`
  returns the set of namespaces the scopes may get (`{"*"}` when there are no
  scopes). Both keep evaluating after a failure and then raise `AggregateError`,
  whose `errors` attribute lists the failures and whose `result` holds what was
  gathered anyway.
  Supported scopes are the user scopes from `default_supported_scopes()`
  (`user:info`, `user:check-access`, `user:list-scoped-projects`,
  `user:list-projects`, `user:full`) and cluster role scopes of the form
  `role:<cluster role>:<namespace or *>`, optionally ending in `:!`. For cluster
  role scopes, rules with `*` verbs, resources or API groups are dropped and
  escalating resources such as secrets are removed, unless the scope ends in `:!`.
  A cluster role getter is any object with a `get(name)` method returning a
  `ClusterRole`; it raises `ClusterRoleNotFoundError` when a role is missing, which
  yields no rules rather than an error. `describe_scopes`, `parse_cluster_role_scope`
  and `rules_allow` are also available, as are the `UserEvaluator` and
  `ClusterRoleEvaluator` classes.
- `ocpadmission.capabilities`: `DefaultCapabilities(default_add, required_drop, allowed)`
  with `generate(pod, container)` to fill in a container's capabilities and
  `validate(fld_path, pod, container, capabilities)` to check them against the
  strategy. An allowed entry of `"*"` allows every capability to be added.
  `Capabilities`, `SecurityContext` and `Container` are plain dataclasses.
- `ocpadmission.group`: the `MustRunAs(ranges, field)` and `RunAsAny()` group
  strategies, each with `generate`, `generate_single` and `validate`. Ranges are
  inclusive `IDRange(min, max)` values; `MustRunAs` raises `ValueError` without any.
- `ocpadmission.naming`: `validate_user_name`, `validate_group_name`,
  `validate_path_segment_name`, `is_qualified_name` and `is_valid_label_value`,
  each returning a list of reasons (empty when the value is valid).
- `ocpadmission.configflags`: `set_if_unset`, `args_with_prefix` and
  `to_flag_slice` for maps of flag names to value lists, and `audit_flags`, which
  adds the audit flags implied by an `AuditConfig`. When the config carries an
  inline policy, `audit_flags` writes it to the policy file path (by default
  `openshift.local.audit/policy.yaml`) and logs any error doing so.
- `ocpadmission.lockfactory`: `DefaultLockFactory.get_lock(key)` returns the same
  `threading.Lock` for the same key.
- `ocpadmission.field`: `FieldPath` and `FieldError`, plus `invalid(path, value, detail)`,
  used by the strategies to report problems against a field path.

## Install

```
pip install ocpadmission
```

## Examples

Parse a label selector:

```python
from ocpadmission.labelselector import parse, merge, conflicts

labels = parse("color=green, env = test")
assert labels == {"color": "green", "env": "test"}
assert not conflicts(labels, {"env": "test", "infra": "true"})
assert merge(labels, {"infra": "true"})["infra"] == "true"
```

Resolve token scopes to rules:

```python
from ocpadmission.scope import AggregateError, describe_scopes, scopes_to_rules

rules = scopes_to_rules(["user:info", "user:check-access"], "my-namespace", None)
print(len(rules))  # 4: the discovery rule plus three scope rules

try:
    scopes_to_rules(["user:unknown"], "my-namespace", None)
except AggregateError as err:
    print(err, len(err.result))  # the discovery rule is still in err.result

print(describe_scopes(["user:full"]))
```

Check capabilities on a container:

```python
from ocpadmission.capabilities import Capabilities, Container, DefaultCapabilities, SecurityContext

strategy = DefaultCapabilities(["NET_BIND_SERVICE"], ["KILL"], [])
container = Container(security_context=SecurityContext(capabilities=Capabilities()))
caps = strategy.generate(None, container)
assert caps == Capabilities(add=["NET_BIND_SERVICE"], drop=["KILL"])
assert strategy.validate(None, None, container, caps) == []
```

Build server flags:

```python
from ocpadmission.configflags import set_if_unset, to_flag_slice

args = {"v": ["2"]}
set_if_unset(args, "audit-log-path", "-")
print(to_flag_slice(args))  # ['--audit-log-path=-', '--v=2']
```

## What it does not do

This is a library of pieces, not a server. It has no admission plugin, no API
client and no cluster resource quota enforcement; `DefaultLockFactory` is the only
part of quota handling it provides. It has no command-line program.

## Running the tests

```
pip install -e ".[test]"
pytest
```