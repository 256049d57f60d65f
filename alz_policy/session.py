# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0

import abc
import importlib
import inspect
import logging
import os
from collections import namedtuple
from functools import lru_cache

from azure.core.exceptions import ClientAuthenticationError
from azure.identity import (AzureCliCredential, ClientSecretCredential,
                            ManagedIdentityCredential)

from alz_policy import constants
from alz_policy.exceptions import ConfigurationError

log = logging.getLogger('alz.session')


class Session:

    def __init__(self, subscription_id=None):
        """
        :param subscription_id: If provided overrides environment variables.
        """
        self.subscription_id_override = subscription_id
        self.credentials = None
        self.subscription_id = None
        self.tenant_id = None
        self._auth_params = {}

    def _authenticate(self):
        token_providers = [
            ServicePrincipalProvider,
            MSIProvider,
            CLIProvider
        ]

        for provider in token_providers:
            instance = provider(self._auth_params)
            if instance.is_available():
                result = instance.authenticate()
                self.subscription_id = result.subscription_id
                self.tenant_id = result.tenant_id
                self.credentials = result.credential
                break

        # Let provided id parameter override everything else
        if self.subscription_id_override is not None:
            self.subscription_id = self.subscription_id_override

        log.info('Authenticated [%s | %s]', instance.name, self.subscription_id or '-')

    def _initialize_session(self):
        """
        Creates a session using available authentication type.
        """

        # Only run once
        if self.credentials is not None:
            return

        self._auth_params = {
            'client_id': os.environ.get(constants.ENV_CLIENT_ID),
            'client_secret': os.environ.get(constants.ENV_CLIENT_SECRET),
            'tenant_id': os.environ.get(constants.ENV_TENANT_ID),
            'use_msi': bool(os.environ.get(constants.ENV_USE_MSI)),
            'subscription_id':
                self.subscription_id_override or os.environ.get(constants.ENV_SUB_ID),
            'enable_cli_auth': True
        }

        self._authenticate()

        if self.credentials is None:
            raise ConfigurationError('Failed to authenticate.')

    @lru_cache()
    def client(self, client, subscription_id=None):
        """SDK client from its dotted class name, ie.
        ``azure.mgmt.resource.ResourceManagementClient``.
        """
        self._initialize_session()
        service_name, client_name = client.rsplit('.', 1)
        svc_module = importlib.import_module(service_name)
        klass = getattr(svc_module, client_name)

        klass_parameters = inspect.signature(klass).parameters

        if 'subscription_id' in klass_parameters:
            return klass(credential=self.credentials,
                         subscription_id=subscription_id or self.get_subscription_id())
        return klass(credential=self.credentials)

    def get_credentials(self):
        self._initialize_session()
        return self.credentials

    def get_subscription_id(self):
        self._initialize_session()
        if self.subscription_id is None:
            self.subscription_id = self._default_subscription_id()
        return self.subscription_id

    def get_tenant_id(self):
        self._initialize_session()
        return self.tenant_id

    def _default_subscription_id(self):
        # management group and tenant scoped SDK calls still need a subscription
        subs = self.client('azure.mgmt.resource.SubscriptionClient')
        for sub in subs.subscriptions.list():
            if sub.state == 'Enabled':
                log.debug('Using default subscription %s', sub.subscription_id)
                return sub.subscription_id
        raise ConfigurationError(
            'No enabled subscription available, set %s' % constants.ENV_SUB_ID)


class TokenProvider(metaclass=abc.ABCMeta):
    AuthenticationResult = namedtuple(
        'AuthenticationResult', 'credential, subscription_id, tenant_id')

    def __init__(self, parameters):
        self.parameters = parameters

    @abc.abstractmethod
    def is_available(self):
        raise NotImplementedError()

    @abc.abstractmethod
    def authenticate(self):
        raise NotImplementedError()

    @property
    @abc.abstractmethod
    def name(self):
        raise NotImplementedError()


class ServicePrincipalProvider(TokenProvider):
    def __init__(self, parameters):
        super(ServicePrincipalProvider, self).__init__(parameters)
        self.client_id = self.parameters.get('client_id')
        self.client_secret = self.parameters.get('client_secret')
        self.tenant_id = self.parameters.get('tenant_id')
        self.subscription_id = self.parameters.get('subscription_id')

    def is_available(self):
        return bool(self.client_id and self.client_secret and self.tenant_id)

    def authenticate(self):
        credential = ClientSecretCredential(
            tenant_id=self.tenant_id,
            client_id=self.client_id,
            client_secret=self.client_secret)

        return TokenProvider.AuthenticationResult(
            credential=credential,
            subscription_id=self.subscription_id,
            tenant_id=self.tenant_id
        )

    @property
    def name(self):
        return "Principal"


class MSIProvider(TokenProvider):
    def __init__(self, parameters):
        super(MSIProvider, self).__init__(parameters)
        self.use_msi = self.parameters.get('use_msi')
        self.subscription_id = self.parameters.get('subscription_id')
        self.client_id = self.parameters.get('client_id')

    def is_available(self):
        return bool(self.use_msi)

    def authenticate(self):
        if self.client_id:
            credential = ManagedIdentityCredential(client_id=self.client_id)
        else:
            credential = ManagedIdentityCredential()

        return TokenProvider.AuthenticationResult(
            credential=credential,
            subscription_id=self.subscription_id,
            tenant_id=self.parameters.get('tenant_id')
        )

    @property
    def name(self):
        return "MSI"


class CLIProvider(TokenProvider):
    def is_available(self):
        return self.parameters.get('enable_cli_auth', False)

    def authenticate(self):
        credential = AzureCliCredential()
        try:
            credential.get_token(constants.RESOURCE_MANAGEMENT_SCOPE)
        except ClientAuthenticationError as e:
            raise ConfigurationError(
                'Failed to authenticate with CLI credentials. %s' % e.message)

        return TokenProvider.AuthenticationResult(
            credential=credential,
            subscription_id=self.parameters.get('subscription_id'),
            tenant_id=self.parameters.get('tenant_id')
        )

    @property
    def name(self):
        return "Azure CLI"
