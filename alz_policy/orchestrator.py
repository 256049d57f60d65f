# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
import logging
from collections import OrderedDict

from alz_policy import constants
from alz_policy.deployment import DeploymentScope
from alz_policy.exceptions import DeploymentError
from alz_policy.readiness import NoWait
from alz_policy.roles import resolve_roles
from alz_policy.utils import get_management_group_id

log = logging.getLogger('alz.orchestrator')


class ScopeResult:

    def __init__(self, scope, assignments, role_requirements):
        self.scope = scope
        self.assignments = assignments
        self.role_requirements = role_requirements

    def __repr__(self):
        return '<ScopeResult %s assignments:%d roles:%d>' % (
            self.scope, len(self.assignments), len(self.role_requirements))


def group_by_scope(assignments):
    groups = OrderedDict()
    for a in assignments:
        groups.setdefault(a.scope, []).append(a)
    return groups


class PolicyDeployer:
    """Deploy policy assignments and their role assignments per management group.

    For every scope the policy assignment template is deployed first, then
    the readiness strategy waits for the new system assigned identities and
    finally the role assignment template grants the required roles.
    """

    def __init__(self, config, catalog, executor, readiness=None, strict=True):
        self.config = config
        self.catalog = catalog
        self.executor = executor
        self.readiness = readiness or NoWait()
        self.strict = strict

    def run(self, assignments, test_mode=False):
        results = []
        for scope, group in group_by_scope(assignments).items():
            results.append(self.deploy_scope(scope, group, test_mode))
        return results

    def _deployment_scope(self, scope):
        mg_id = get_management_group_id(scope)
        if mg_id is None:
            raise DeploymentError('%s is not a management group scope' % scope)
        return DeploymentScope.management_group(mg_id)

    def deploy_scope(self, scope, assignments, test_mode=False):
        target = self._deployment_scope(scope)
        requirements = resolve_roles(assignments, self.catalog, strict=self.strict)

        log.info('Deploying %d policy assignments at %s', len(assignments), scope)
        ok = self.executor.deploy(
            target,
            self.config.template(constants.POLICY_ASSIGNMENTS_PARAMETER),
            self.config.parameters_file(constants.POLICY_ASSIGNMENTS_PARAMETER),
            {constants.POLICY_ASSIGNMENTS_PARAMETER:
                [a.to_template_value() for a in assignments]},
            test_mode)
        if not ok:
            raise DeploymentError('policy assignment deployment failed at %s' % scope)

        if not requirements:
            log.info('No role assignments required at %s', scope)
            return ScopeResult(scope, assignments, requirements)

        if not test_mode:
            self.readiness.wait(
                [a for a in assignments if a.requires_role_assignments])

        log.info('Deploying %d role assignments at %s', len(requirements), scope)
        ok = self.executor.deploy(
            target,
            self.config.template(constants.ROLE_ASSIGNMENTS_PARAMETER),
            self.config.parameters_file(constants.ROLE_ASSIGNMENTS_PARAMETER),
            {constants.ROLE_ASSIGNMENTS_PARAMETER:
                [r.to_template_value() for r in requirements]},
            test_mode)
        if not ok:
            raise DeploymentError('role assignment deployment failed at %s' % scope)

        return ScopeResult(scope, assignments, requirements)
