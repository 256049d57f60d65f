# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
from azure.core.exceptions import ResourceNotFoundError

from alz_policy.provisioning.deployment_unit import DeploymentUnit


class ResourceProviderUnit(DeploymentUnit):
    """Resource provider registration, ``name`` is the provider namespace.

    Registration completes asynchronously, a provider still in the
    ``Registering`` state is reported as found.
    """

    def __init__(self, subscription_id=None, session=None):
        super(ResourceProviderUnit, self).__init__(
            'azure.mgmt.resource.ResourceManagementClient', subscription_id, session)
        self.type = "Resource Provider"

    def _get(self, params):
        try:
            provider = self.client.providers.get(params['name'])
        except ResourceNotFoundError:
            return None
        if provider.registration_state in ('Registered', 'Registering'):
            return provider
        return None

    def _provision(self, params):
        return self.client.providers.register(params['name'])
