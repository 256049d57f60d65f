# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
import os

from alz_policy.descriptors import (
    DescriptorLoader, PolicyAssignmentDescriptor, check_duplicates, iter_records,
    resolve_definition_id, resolve_resource_references, substitute_tokens, validate_record)
from alz_policy.exceptions import DescriptorValidationError
from alz_policy.lookup import StaticResourceLookup
from alz_policy.naming import assignment_name

from .common import BaseTest, CONNECTIVITY_SUBSCRIPTION_ID, ROOT_SCOPE, data_path

WORKSPACE_ID = '/subscriptions/ea42f556-5106-4743-99b0-c129bfa71a47/resourceGroups/' \
               'rg-contoso-alz-prod/providers/Microsoft.OperationalInsights/workspaces/' \
               'law-contoso-prod'


def record(**kw):
    r = {'displayName': 'Deny public IP',
         'policyDefinition': 'Deny-PublicIP',
         'managementGroupIdSuffix': '-landingzones'}
    r.update(kw)
    return r


class DescriptorTest(BaseTest):

    def test_name_computed(self):
        d = PolicyAssignmentDescriptor(
            ROOT_SCOPE, 'Deny public IP', policy_definition_id='/p/deny')
        self.assertEqual(d.name, assignment_name(ROOT_SCOPE, '/p/deny', 'Deny public IP'))
        self.assertEqual(len(d.name), 24)
        self.assertFalse(d.is_policy_set)
        self.assertEqual(d.definition_id, '/p/deny')

    def test_exactly_one_definition(self):
        with self.assertRaises(DescriptorValidationError):
            PolicyAssignmentDescriptor(ROOT_SCOPE, 'x')
        with self.assertRaises(DescriptorValidationError) as e:
            PolicyAssignmentDescriptor(
                ROOT_SCOPE, 'x', policy_definition_id='/p/1',
                policy_set_definition_id='/s/1', source='a.yml#3')
        self.assertTrue(str(e.exception).startswith('a.yml#3: '))

    def test_scope_required(self):
        with self.assertRaises(DescriptorValidationError):
            PolicyAssignmentDescriptor('', 'x', policy_definition_id='/p/1')

    def test_identity(self):
        system = PolicyAssignmentDescriptor(
            ROOT_SCOPE, 'x', policy_definition_id='/p/1', use_identity=True, uami='')
        self.assertTrue(system.requires_role_assignments)
        self.assertEqual(system.identity_type, 'SystemAssigned')
        self.assertIsNone(system.uami)

        user = PolicyAssignmentDescriptor(
            ROOT_SCOPE, 'x', policy_definition_id='/p/1', use_identity=True, uami='/uami')
        self.assertFalse(user.requires_role_assignments)
        self.assertEqual(user.identity_type, 'UserAssigned')

        none = PolicyAssignmentDescriptor(ROOT_SCOPE, 'x', policy_definition_id='/p/1')
        self.assertFalse(none.requires_role_assignments)
        self.assertEqual(none.identity_type, 'None')

    def test_to_template_value(self):
        d = PolicyAssignmentDescriptor(
            ROOT_SCOPE, 'Deploy diagnostics', policy_set_definition_id='/s/diag',
            use_identity=True, parameters={'logAnalytics': WORKSPACE_ID},
            not_scopes=['/subscriptions/x'], non_compliance_message='must log')
        value = d.to_template_value()
        self.assertEqual(value['name'], d.name)
        self.assertEqual(value['policyDefinitionId'], '/s/diag')
        self.assertEqual(value['parameters'], {'logAnalytics': {'value': WORKSPACE_ID}})
        self.assertEqual(value['notScopes'], ['/subscriptions/x'])
        self.assertEqual(value['identityType'], 'SystemAssigned')
        self.assertEqual(value['userAssignedIdentityId'], '')
        self.assertEqual(value['enforcementMode'], 'Default')
        self.assertEqual(value['nonComplianceMessages'], [{'message': 'must log'}])


class HelpersTest(BaseTest):

    def test_substitute_tokens(self):
        tokens = {'organization': 'contoso', 'environment': 'prod'}
        self.assertEqual(
            substitute_tokens(
                {'a': 'law-{organization}-{environment}',
                 'b': ['{organization}', 3, None],
                 'c': '{unknown}-{organization}'}, tokens),
            {'a': 'law-contoso-prod', 'b': ['contoso', 3, None], 'c': '{unknown}-contoso'})

    def test_resolve_definition_id(self):
        builtin = '/providers/Microsoft.Authorization/policyDefinitions/abc'
        self.assertEqual(resolve_definition_id(builtin, 'contoso', 'policyDefinitions'),
                         builtin)
        self.assertEqual(
            resolve_definition_id('Deny-PublicIP', 'contoso', 'policySetDefinitions'),
            ROOT_SCOPE + '/providers/Microsoft.Authorization/policySetDefinitions/'
            'Deny-PublicIP')

    def test_validate_record(self):
        validate_record(record())
        for bad in (
                record(policySetDefinition='x'),
                {'displayName': 'x', 'managementGroupIdSuffix': ''},
                {'displayName': 'x', 'policyDefinition': 'p'},
                record(useIdentity='yes'),
                record(enforcementMode='Audit'),
                record(unexpected=1),
                ['not', 'a', 'mapping']):
            with self.assertRaises(DescriptorValidationError):
                validate_record(bad, 'f.yml#0')

    def test_empty_suffix_allowed(self):
        validate_record(record(managementGroupIdSuffix=''))

    def test_empty_reference_not_reported_as_both(self):
        with self.assertRaises(DescriptorValidationError) as e:
            validate_record(record(policyDefinition='', policySetDefinition='Deny-IP'))
        self.assertNotIn('sets both', str(e.exception))
        self.assertIn('policyDefinition', str(e.exception))

    def test_resolve_nested_resource_references(self):
        lookup = StaticResourceLookup({'law': WORKSPACE_ID, 'kv': '/x/kv'})
        self.assertEqual(
            resolve_resource_references(
                {'workspace': 'law___ID',
                 'targets': ['kv___ID', 'plain', 3],
                 'settings': {'sink': {'id': 'law___ID'}, 'name': '___ID'}},
                lookup),
            {'workspace': WORKSPACE_ID,
             'targets': ['/x/kv', 'plain', 3],
             'settings': {'sink': {'id': WORKSPACE_ID}, 'name': '___ID'}})

    def test_check_duplicates(self):
        a = PolicyAssignmentDescriptor(ROOT_SCOPE, 'x', policy_definition_id='/p/1',
                                       source='a.yml#0')
        b = PolicyAssignmentDescriptor(ROOT_SCOPE, 'x', policy_definition_id='/p/1',
                                       source='b.yml#0')
        check_duplicates([a])
        with self.assertRaises(DescriptorValidationError) as e:
            check_duplicates([a, b])
        self.assertIn('a.yml#0', str(e.exception))
        self.assertIn('b.yml#0', str(e.exception))

    def test_iter_records(self):
        sources = [s for s, _ in iter_records([data_path('descriptors')])]
        self.assertEqual(
            [os.path.basename(s) for s in sources],
            ['landingzones.yml#0', 'landingzones.yml#1', 'platform.json#0',
             'platform.json#1'])

    def test_iter_records_invalid(self):
        path = self.write_file('bad.yml', {'policyAssignments': {'a': 1}})
        with self.assertRaises(DescriptorValidationError):
            list(iter_records([path]))

    def test_iter_records_empty(self):
        path = self.write_file('empty.yml', {'other': 1})
        self.assertEqual(list(iter_records([path])), [])


class DescriptorLoaderTest(BaseTest):

    def get_loader(self, **kw):
        return DescriptorLoader(
            self.get_config(**kw), StaticResourceLookup.from_file(data_path('lookup.yml')))

    def test_load_data_files(self):
        assignments, errors = self.get_loader().load([data_path('descriptors')])
        self.assertEqual(errors, [])
        self.assertEqual(len(assignments), 4)
        diag, deny, defender, keyvault = assignments

        self.assertEqual(diag.scope, ROOT_SCOPE + '-landingzones')
        self.assertEqual(
            diag.policy_set_definition_id,
            ROOT_SCOPE + '/providers/Microsoft.Authorization/policySetDefinitions/'
            'Deploy-Diagnostics-LogAnalytics')
        self.assertEqual(diag.parameters,
                         {'logAnalytics': WORKSPACE_ID, 'profileName': 'setbypolicy'})
        self.assertTrue(diag.requires_role_assignments)

        self.assertEqual(
            deny.policy_set_definition_id,
            '/providers/Microsoft.Authorization/policySetDefinitions/deny-network-exposure')
        self.assertEqual(deny.not_scopes,
                         ('/subscriptions/%s' % CONNECTIVITY_SUBSCRIPTION_ID,))
        self.assertFalse(deny.use_identity)

        self.assertEqual(defender.scope, ROOT_SCOPE + '-platform')
        self.assertEqual(
            defender.policy_definition_id,
            ROOT_SCOPE + '/providers/Microsoft.Authorization/policyDefinitions/'
            'Deploy-ASC-Defender')
        self.assertEqual(defender.non_compliance_message,
                         'Defender for Cloud must be enabled')
        self.assertEqual(defender.name, assignment_name(
            defender.scope, defender.policy_definition_id, defender.display_name))

        self.assertFalse(keyvault.requires_role_assignments)
        self.assertEqual(keyvault.identity_type, 'UserAssigned')

    def test_names_stable_across_loads(self):
        first = [a.name for a in self.get_loader().load([data_path('descriptors')])[0]]
        second = [a.name for a in self.get_loader().load([data_path('descriptors')])[0]]
        self.assertEqual(first, second)
        self.assertEqual(len(set(first)), 4)

    def test_tokens_in_suffix(self):
        loader = self.get_loader()
        d = loader.enrich(record(managementGroupIdSuffix='-{environment}'), 'x#0')
        self.assertEqual(d.scope, ROOT_SCOPE + '-prod')

    def test_unresolved_resource_reference(self):
        loader = self.get_loader()
        with self.assertRaises(DescriptorValidationError) as e:
            loader.enrich(record(parameters={'workspace': 'law-missing___ID'}), 'x#0')
        self.assertIn('law-missing', str(e.exception))

    def test_abort_on_first_error(self):
        path = self.write_file('bad.yml', [record(), {'displayName': 'broken'}])
        with self.assertRaises(DescriptorValidationError) as e:
            self.get_loader().load([path])
        self.assertIn('bad.yml#1', str(e.exception))

    def test_keep_going(self):
        path = self.write_file(
            'bad.yml', [{'displayName': 'broken'}, record(), record(policySetDefinition='x')])
        assignments, errors = self.get_loader().load([path], keep_going=True)
        self.assertEqual(len(assignments), 1)
        self.assertEqual([e.source for e in errors],
                         ['%s#0' % path, '%s#2' % path])

    def test_duplicate_across_files(self):
        d = self.get_temp_dir()
        self.write_file('a.yml', [record()], directory=d)
        self.write_file('b.json', [record()], format='json', directory=d)
        with self.assertRaises(DescriptorValidationError):
            self.get_loader().load([d])
