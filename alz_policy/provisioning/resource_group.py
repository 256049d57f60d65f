# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
from azure.core.exceptions import ResourceNotFoundError

from alz_policy.provisioning.deployment_unit import DeploymentUnit


class ResourceGroupUnit(DeploymentUnit):

    def __init__(self, subscription_id=None, session=None):
        super(ResourceGroupUnit, self).__init__(
            'azure.mgmt.resource.ResourceManagementClient', subscription_id, session)
        self.type = "Resource Group"

    def _get(self, params):
        try:
            return self.client.resource_groups.get(params['name'])
        except ResourceNotFoundError:
            return None

    def _provision(self, params):
        return self.client.resource_groups.create_or_update(
            params['name'], {'location': params['location']})
