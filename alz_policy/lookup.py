# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
"""Resolve resources referenced by name in descriptor parameters.
"""
import logging

from alz_policy.exceptions import ResourceLookupError
from alz_policy.utils import load_file

log = logging.getLogger('alz.lookup')


class StaticResourceLookup:
    """Name to resource id mapping, for offline runs.
    """

    def __init__(self, resources):
        self.resources = dict(resources)

    @classmethod
    def from_file(cls, path):
        data = load_file(path) or {}
        if not isinstance(data, dict):
            raise ResourceLookupError('lookup file %s must contain a mapping' % path)
        return cls(data)

    def resource_id(self, name):
        try:
            return self.resources[name]
        except KeyError:
            raise ResourceLookupError('resource %s not found in lookup table' % name)


class ResourceLookup:
    """Find resources by name across subscriptions.

    Names must be unique across the searched subscriptions.
    """

    def __init__(self, session_factory, subscription_ids):
        self.session_factory = session_factory
        self.subscription_ids = list(subscription_ids)
        self._cache = {}

    def _search(self, name):
        session = self.session_factory()
        subscription_ids = self.subscription_ids or [session.get_subscription_id()]
        found = []
        for sub_id in subscription_ids:
            client = session.client(
                'azure.mgmt.resource.ResourceManagementClient', subscription_id=sub_id)
            found.extend(
                r.id for r in client.resources.list(filter="name eq '%s'" % name))
        return found

    def resource_id(self, name):
        if name in self._cache:
            return self._cache[name]

        found = self._search(name)
        if not found:
            raise ResourceLookupError(
                'resource %s not found in subscriptions %s' % (
                    name, ', '.join(self.subscription_ids) or '<default>'))
        if len(found) > 1:
            raise ResourceLookupError(
                'resource name %s is ambiguous, matches %s' % (name, ', '.join(found)))

        log.debug('Resolved resource %s to %s', name, found[0])
        self._cache[name] = found[0]
        return found[0]
