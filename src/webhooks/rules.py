"""
Fluent builder for admission webhook rules.

`RuleWithOperations` and `Rule` mirror the admissionregistration/v1 types
so a rule can be assembled step by step:

    new_rule().one_resource("integreatly.org", "v1alpha1", "rhmis").namespaced_scope().for_create()

Every step returns a new frozen value; the receiver is never modified, so
partially built rules can be shared and extended freely.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from kubernetes import client

OPERATION_CREATE = "CREATE"
OPERATION_UPDATE = "UPDATE"
OPERATION_DELETE = "DELETE"
OPERATION_ALL = "*"

SCOPE_NAMESPACED = "Namespaced"


@dataclass(frozen=True)
class Rule:
    api_groups: Tuple[str, ...] = ()
    api_versions: Tuple[str, ...] = ()
    resources: Tuple[str, ...] = ()
    scope: Optional[str] = None


@dataclass(frozen=True)
class RuleWithOperations(Rule):
    operations: Tuple[str, ...] = ()

    def one_resource(self, api_group: str, api_version: str, resource: str) -> "RuleWithOperations":
        return replace(self, api_groups=(api_group,), api_versions=(api_version,), resources=(resource,))

    def namespaced_scope(self) -> "RuleWithOperations":
        return replace(self, scope=SCOPE_NAMESPACED)

    def for_create(self) -> "RuleWithOperations":
        return self._with_operation(OPERATION_CREATE)

    def for_update(self) -> "RuleWithOperations":
        return self._with_operation(OPERATION_UPDATE)

    def for_delete(self) -> "RuleWithOperations":
        return self._with_operation(OPERATION_DELETE)

    def for_all(self) -> "RuleWithOperations":
        return self._with_operation(OPERATION_ALL)

    def _with_operation(self, operation: str) -> "RuleWithOperations":
        return replace(self, operations=self.operations + (operation,))

    def to_k8s(self) -> client.V1RuleWithOperations:
        """Convert to the kubernetes client model used in webhook configurations."""
        return client.V1RuleWithOperations(
            api_groups=list(self.api_groups),
            api_versions=list(self.api_versions),
            operations=list(self.operations),
            resources=list(self.resources),
            scope=self.scope,
        )


def new_rule() -> RuleWithOperations:
    return RuleWithOperations()
