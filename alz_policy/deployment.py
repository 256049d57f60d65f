# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
"""ARM template deployments at tenant, management group, subscription and
resource group scope.
"""
import enum
import logging
import os

import yaml
from azure.core.exceptions import HttpResponseError
from azure.mgmt.resource.resources.models import (
    Deployment, DeploymentMode, DeploymentProperties, DeploymentWhatIf,
    DeploymentWhatIfProperties, ScopedDeployment, ScopedDeploymentWhatIf)

from alz_policy.exceptions import DeploymentError
from alz_policy.naming import deployment_name
from alz_policy.utils import load_file, management_group_scope

log = logging.getLogger('alz.deploy')


class ScopeKind(enum.Enum):
    ManagementGroup = 'managementGroup'
    Tenant = 'tenant'
    Subscription = 'subscription'
    ResourceGroup = 'resourceGroup'


class DeploymentScope:

    def __init__(self, kind, management_group_id=None, subscription_id=None,
                 resource_group=None):
        self.kind = kind
        self.management_group_id = management_group_id
        self.subscription_id = subscription_id
        self.resource_group = resource_group

    @classmethod
    def tenant(cls):
        return cls(ScopeKind.Tenant)

    @classmethod
    def management_group(cls, management_group_id):
        return cls(ScopeKind.ManagementGroup, management_group_id=management_group_id)

    @classmethod
    def subscription(cls, subscription_id):
        return cls(ScopeKind.Subscription, subscription_id=subscription_id)

    @classmethod
    def resource_group_scope(cls, subscription_id, resource_group):
        return cls(ScopeKind.ResourceGroup, subscription_id=subscription_id,
                   resource_group=resource_group)

    @property
    def resource_id(self):
        if self.kind == ScopeKind.Tenant:
            return '/'
        if self.kind == ScopeKind.ManagementGroup:
            return management_group_scope(self.management_group_id)
        if self.kind == ScopeKind.Subscription:
            return '/subscriptions/%s' % self.subscription_id
        return '/subscriptions/%s/resourceGroups/%s' % (
            self.subscription_id, self.resource_group)

    def __eq__(self, other):
        return isinstance(other, DeploymentScope) and self.resource_id == other.resource_id

    def __hash__(self):
        return hash(self.resource_id)

    def __repr__(self):
        return '<DeploymentScope %s %s>' % (self.kind.value, self.resource_id)


def load_parameters(parameters_file, override_parameters):
    """ARM parameter values from a parameters file, overlaid by overrides.
    """
    parameters = {}
    if parameters_file:
        try:
            data = load_file(parameters_file)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise DeploymentError(
                'cannot load parameters file %s: %s' % (parameters_file, e))
        if not isinstance(data, dict) or not isinstance(data.get('parameters', {}), dict):
            raise DeploymentError(
                'parameters file %s must hold a "parameters" mapping' % parameters_file)
        parameters.update(data.get('parameters', {}))
    for k, v in (override_parameters or {}).items():
        parameters[k] = {'value': v}
    return parameters


class ArmDeploymentExecutor:
    """Submit ARM templates through the resource management client.

    In test mode a what-if operation is submitted instead, nothing is changed.
    """

    def __init__(self, session, location):
        self.session = session
        self.location = location

    def _client(self, scope):
        return self.session.client(
            'azure.mgmt.resource.ResourceManagementClient',
            subscription_id=scope.subscription_id)

    def _deploy(self, client, scope, name, template, parameters):
        properties = DeploymentProperties(
            mode=DeploymentMode.INCREMENTAL, template=template, parameters=parameters)
        ops = client.deployments
        if scope.kind == ScopeKind.ManagementGroup:
            return ops.begin_create_or_update_at_management_group_scope(
                scope.management_group_id, name,
                ScopedDeployment(location=self.location, properties=properties))
        if scope.kind == ScopeKind.Tenant:
            return ops.begin_create_or_update_at_tenant_scope(
                name, ScopedDeployment(location=self.location, properties=properties))
        if scope.kind == ScopeKind.Subscription:
            return ops.begin_create_or_update_at_subscription_scope(
                name, Deployment(location=self.location, properties=properties))
        return ops.begin_create_or_update(
            scope.resource_group, name, Deployment(properties=properties))

    def _what_if(self, client, scope, name, template, parameters):
        properties = DeploymentWhatIfProperties(
            mode=DeploymentMode.INCREMENTAL, template=template, parameters=parameters)
        ops = client.deployments
        if scope.kind == ScopeKind.ManagementGroup:
            return ops.begin_what_if_at_management_group_scope(
                scope.management_group_id, name,
                ScopedDeploymentWhatIf(location=self.location, properties=properties))
        if scope.kind == ScopeKind.Tenant:
            return ops.begin_what_if_at_tenant_scope(
                name, ScopedDeploymentWhatIf(location=self.location, properties=properties))
        if scope.kind == ScopeKind.Subscription:
            return ops.begin_what_if_at_subscription_scope(
                name, DeploymentWhatIf(location=self.location, properties=properties))
        return ops.begin_what_if(
            scope.resource_group, name, DeploymentWhatIf(properties=properties))

    def deploy(self, scope, template, parameters_file=None, override_parameters=None,
               test_mode=False):
        """Deploy ``template`` at ``scope``.

        :param scope: DeploymentScope to deploy at.
        :param template: Path of an ARM JSON template.
        :param parameters_file: Optional ARM parameters file.
        :param override_parameters: Mapping of parameter name to value, takes
            precedence over the parameters file.
        :param test_mode: Run a what-if instead of a deployment.
        :return: True when the deployment succeeded.
        """
        try:
            template_body = load_file(template, format='json')
        except (OSError, ValueError) as e:
            raise DeploymentError('cannot load template %s: %s' % (template, e))
        parameters = load_parameters(parameters_file, override_parameters)

        stem = os.path.splitext(os.path.basename(template))[0]
        name = deployment_name(stem, scope.resource_id)
        client = self._client(scope)

        log.info('%s %s at %s', test_mode and 'What-if' or 'Deploying', name, scope)
        try:
            if test_mode:
                result = self._what_if(client, scope, name, template_body, parameters).result()
                return self._check_what_if(name, result)
            result = self._deploy(client, scope, name, template_body, parameters).result()
        except HttpResponseError as e:
            log.error('Deployment %s at %s failed: %s', name, scope, e.message)
            return False

        state = result.properties.provisioning_state
        if state != 'Succeeded':
            log.error('Deployment %s at %s finished in state %s: %s',
                      name, scope, state, result.properties.error)
            return False
        log.info('Deployment %s at %s succeeded', name, scope)
        return True

    def _check_what_if(self, name, result):
        if result.status != 'Succeeded':
            log.error('What-if %s finished in state %s: %s', name, result.status, result.error)
            return False
        for change in result.changes or ():
            log.info('What-if %s: %s %s', name, change.change_type, change.resource_id)
        return True
