# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
from mock import Mock

from alz_policy.exceptions import ResourceLookupError
from alz_policy.lookup import ResourceLookup, StaticResourceLookup

from .common import (BaseTest, CONNECTIVITY_SUBSCRIPTION_ID, DEFAULT_SUBSCRIPTION_ID,
                     data_path)


def resource(rid):
    r = Mock()
    r.id = rid
    return r


class StaticResourceLookupTest(BaseTest):

    def test_from_file(self):
        lookup = StaticResourceLookup.from_file(data_path('lookup.yml'))
        self.assertTrue(lookup.resource_id('law-contoso-prod').endswith(
            '/workspaces/law-contoso-prod'))
        with self.assertRaises(ResourceLookupError):
            lookup.resource_id('law-missing')

    def test_not_a_mapping(self):
        path = self.write_file('lookup.yml', ['a', 'b'])
        with self.assertRaises(ResourceLookupError):
            StaticResourceLookup.from_file(path)


class ResourceLookupTest(BaseTest):

    def get_session(self, results):
        clients = {}
        for sub_id, ids in results.items():
            client = Mock()
            client.resources.list.return_value = [resource(i) for i in ids]
            clients[sub_id] = client
        session = Mock()
        session.client.side_effect = lambda name, subscription_id=None: clients[subscription_id]
        session.get_subscription_id.return_value = DEFAULT_SUBSCRIPTION_ID
        return session, clients

    def test_single_match(self):
        session, clients = self.get_session({
            DEFAULT_SUBSCRIPTION_ID: ['/subscriptions/a/law'],
            CONNECTIVITY_SUBSCRIPTION_ID: []})
        lookup = ResourceLookup(
            lambda: session, [DEFAULT_SUBSCRIPTION_ID, CONNECTIVITY_SUBSCRIPTION_ID])

        self.assertEqual(lookup.resource_id('law'), '/subscriptions/a/law')
        clients[DEFAULT_SUBSCRIPTION_ID].resources.list.assert_called_once_with(
            filter="name eq 'law'")

        # cached
        self.assertEqual(lookup.resource_id('law'), '/subscriptions/a/law')
        self.assertEqual(clients[DEFAULT_SUBSCRIPTION_ID].resources.list.call_count, 1)

    def test_default_subscription(self):
        session, clients = self.get_session({DEFAULT_SUBSCRIPTION_ID: ['/x/law']})
        lookup = ResourceLookup(lambda: session, [])
        self.assertEqual(lookup.resource_id('law'), '/x/law')

    def test_not_found(self):
        session, _ = self.get_session({DEFAULT_SUBSCRIPTION_ID: []})
        lookup = ResourceLookup(lambda: session, [DEFAULT_SUBSCRIPTION_ID])
        with self.assertRaises(ResourceLookupError):
            lookup.resource_id('law')

    def test_ambiguous(self):
        session, _ = self.get_session({
            DEFAULT_SUBSCRIPTION_ID: ['/subscriptions/a/law'],
            CONNECTIVITY_SUBSCRIPTION_ID: ['/subscriptions/b/law']})
        lookup = ResourceLookup(
            lambda: session, [DEFAULT_SUBSCRIPTION_ID, CONNECTIVITY_SUBSCRIPTION_ID])
        with self.assertRaises(ResourceLookupError) as e:
            lookup.resource_id('law')
        self.assertIn('ambiguous', str(e.exception))
