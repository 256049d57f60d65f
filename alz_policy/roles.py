# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
"""Role assignments required by policy assignment managed identities.

deployIfNotExists and modify policies list the roles their remediation needs
in ``policyRule.then.details.roleDefinitionIds``. A policy assignment with a
system assigned identity needs each of those roles granted, for every policy
it assigns. Assignments using a user assigned identity are skipped, those
identities are provisioned with their roles beforehand.
"""
import logging
from collections import namedtuple

from alz_policy.exceptions import DefinitionNotFoundError

log = logging.getLogger('alz.roles')


class RoleRequirement(namedtuple(
        'RoleRequirement', 'role_definition_id, assignment_name, scope')):

    __slots__ = ()

    @property
    def key(self):
        return (self.role_definition_id.lower(), self.assignment_name)

    def to_template_value(self):
        return {
            'roleDefinitionId': self.role_definition_id,
            'policyAssignmentName': self.assignment_name,
            'scope': self.scope,
        }


class RoleRequirements:
    """Ordered requirements, a (role, assignment) pair is only kept once.
    """

    def __init__(self):
        self._items = []
        self._keys = set()

    def __iter__(self):
        return iter(self._items)

    def __len__(self):
        return len(self._items)

    def add(self, role_definition_id, assignment):
        r = RoleRequirement(role_definition_id, assignment.name, assignment.scope)
        if r.key in self._keys:
            log.debug('Role %s already required by %s', role_definition_id, assignment.name)
            return False
        self._keys.add(r.key)
        self._items.append(r)
        return True


def _lookup(getter, definition_id, assignment, strict):
    try:
        return getter(definition_id)
    except DefinitionNotFoundError as e:
        msg = '%s referenced by assignment %s' % (e, assignment.describe())
        if strict:
            raise DefinitionNotFoundError(msg, definition_id)
        log.warning('Skipping missing definition: %s', msg)
        return None


def resolve_roles(assignments, catalog, strict=True):
    """Role requirements of the qualifying assignments.

    :param assignments: PolicyAssignmentDescriptors.
    :param catalog: DefinitionCatalog holding every referenced definition.
    :param strict: Raise DefinitionNotFoundError on a catalog miss, otherwise
        log a warning and skip the missing definition.
    :return: list of RoleRequirement, in assignment order.
    """
    result = RoleRequirements()

    for a in assignments:
        if not a.requires_role_assignments:
            continue

        if not a.is_policy_set:
            policy = _lookup(catalog.get_policy, a.policy_definition_id, a, strict)
            if policy is None:
                continue
            for role in policy.role_definition_ids:
                result.add(role, a)
            continue

        policy_set = _lookup(catalog.get_policy_set, a.policy_set_definition_id, a, strict)
        if policy_set is None:
            continue
        for member_id in policy_set.policy_definition_ids:
            policy = _lookup(catalog.get_policy, member_id, a, strict)
            if policy is None:
                continue
            for role in policy.role_definition_ids:
                result.add(role, a)

    requirements = list(result)
    log.info('Resolved %d role requirements for %d assignments',
             len(requirements), len(assignments))
    return requirements
