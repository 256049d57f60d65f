# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
import logging

from abc import ABCMeta, abstractmethod

from alz_policy.utils import local_session
from alz_policy.session import Session


class DeploymentUnit(metaclass=ABCMeta):
    log = logging.getLogger('alz.provisioning.DeploymentUnit')

    def __init__(self, client, subscription_id=None, session=None):
        self.type = ""
        self.session = session or local_session(Session)
        self.client = self.session.client(client, subscription_id=subscription_id)

    def get(self, params):
        result = self._get(params)
        if result:
            self.log.info('Found %s "%s".' % (self.type, params['name']))
        else:
            self.log.info('%s "%s" not found.' % (self.type, params['name']))
        return result

    def provision(self, params):
        self.log.info('Creating %s "%s"' % (self.type, params['name']))
        result = self._provision(params)
        if result:
            self.log.info('%s "%s" successfully created' % (self.type, params['name']))
        else:
            self.log.info('Failed to create %s "%s"' % (self.type, params['name']))
        return result

    def provision_if_not_exists(self, params, test_mode=False):
        result = self.get(params)
        if result is None:
            if test_mode:
                self.log.info('Test mode, skipping creation of %s "%s"' % (
                    self.type, params['name']))
                return None
            result = self.provision(params)
        return result

    @abstractmethod
    def _get(self, params):
        raise NotImplementedError()

    @abstractmethod
    def _provision(self, params):
        raise NotImplementedError()
