# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
"""Policy and policy set definitions available to a run.
"""
import logging
from collections import namedtuple

import jsonschema
import yaml

from alz_policy.exceptions import ConfigurationError, DefinitionNotFoundError
from alz_policy.utils import get_ci, load_file

log = logging.getLogger('alz.catalog')


PolicyDefinition = namedtuple(
    'PolicyDefinition', 'id, name, display_name, role_definition_ids')

PolicySetDefinition = namedtuple(
    'PolicySetDefinition', 'id, name, display_name, policy_definition_ids')


CATALOG_SCHEMA = {
    '$schema': 'http://json-schema.org/draft-07/schema',
    'type': 'object',
    'properties': {
        'policyDefinitions': {'type': ['array', 'null']},
        'policySetDefinitions': {'type': ['array', 'null']},
    }
}

# ARM property names are matched case insensitively, so nested values are
# checked after extraction
DEFINITION_SCHEMA = {
    '$schema': 'http://json-schema.org/draft-07/schema',
    'type': 'object',
    'required': ['id'],
    'properties': {
        'id': {'type': 'string', 'minLength': 1},
        'name': {'type': ['string', 'null']},
    }
}

ID_LIST_SCHEMA = {
    'type': 'array',
    'items': {'type': 'string', 'minLength': 1},
}


def _validate(value, schema, label):
    try:
        jsonschema.validate(value, schema)
    except jsonschema.ValidationError as e:
        location = '/'.join(str(p) for p in e.absolute_path)
        raise ConfigurationError('%s%s: %s' % (
            label, location and ' at %s' % location or '', e.message))


def _properties(resource):
    return get_ci(resource, 'properties') or {}


def parse_policy_definition(resource):
    """PolicyDefinition from its ARM representation.

    Required roles are read from ``policyRule.then.details.roleDefinitionIds``,
    only deployIfNotExists and modify effects carry them.
    """
    _validate(resource, DEFINITION_SCHEMA, 'policy definition')
    props = _properties(resource)
    details = get_ci(get_ci(get_ci(props, 'policyRule'), 'then'), 'details')
    roles = get_ci(details, 'roleDefinitionIds') or []
    _validate(roles, ID_LIST_SCHEMA, 'roleDefinitionIds of %s' % resource['id'])
    return PolicyDefinition(
        id=resource['id'],
        name=resource.get('name'),
        display_name=get_ci(props, 'displayName'),
        role_definition_ids=tuple(roles))


def parse_policy_set_definition(resource):
    _validate(resource, DEFINITION_SCHEMA, 'policy set definition')
    props = _properties(resource)
    members = get_ci(props, 'policyDefinitions') or []
    _validate(members, {'type': 'array', 'items': {'type': 'object'}},
              'policyDefinitions of %s' % resource['id'])
    member_ids = [get_ci(m, 'policyDefinitionId') for m in members]
    _validate(member_ids, ID_LIST_SCHEMA,
              'policyDefinitionId of a member of %s' % resource['id'])
    return PolicySetDefinition(
        id=resource['id'],
        name=resource.get('name'),
        display_name=get_ci(props, 'displayName'),
        policy_definition_ids=tuple(member_ids))


class DefinitionCatalog:
    """Definitions keyed by resource id, ids compare case insensitively.

    Built once per run and only read afterwards.
    """

    def __init__(self, policy_definitions=(), policy_set_definitions=()):
        self._policies = {}
        self._policy_sets = {}
        for p in policy_definitions:
            self._policies[p.id.lower()] = p
        for s in policy_set_definitions:
            self._policy_sets[s.id.lower()] = s

    def __len__(self):
        return len(self._policies) + len(self._policy_sets)

    def __repr__(self):
        return '<DefinitionCatalog policies:%d policySets:%d>' % (
            len(self._policies), len(self._policy_sets))

    @property
    def policy_definitions(self):
        return list(self._policies.values())

    @property
    def policy_set_definitions(self):
        return list(self._policy_sets.values())

    def find_policy(self, definition_id):
        return self._policies.get((definition_id or '').lower())

    def find_policy_set(self, definition_id):
        return self._policy_sets.get((definition_id or '').lower())

    def get_policy(self, definition_id):
        p = self.find_policy(definition_id)
        if p is None:
            raise DefinitionNotFoundError(
                'policy definition %s not found in catalog' % definition_id, definition_id)
        return p

    def get_policy_set(self, definition_id):
        s = self.find_policy_set(definition_id)
        if s is None:
            raise DefinitionNotFoundError(
                'policy set definition %s not found in catalog' % definition_id,
                definition_id)
        return s

    @classmethod
    def from_resources(cls, policy_definitions, policy_set_definitions, source='catalog'):
        policies, policy_sets = [], []
        for kind, parse, resources, parsed in (
                ('policyDefinitions', parse_policy_definition,
                 policy_definitions, policies),
                ('policySetDefinitions', parse_policy_set_definition,
                 policy_set_definitions, policy_sets)):
            for idx, r in enumerate(resources):
                try:
                    parsed.append(parse(r))
                except ConfigurationError as e:
                    raise ConfigurationError('%s %s[%d]: %s' % (source, kind, idx, e))
        return cls(policies, policy_sets)

    @classmethod
    def from_file(cls, path):
        """Load an exported catalog document.

        The document holds ``policyDefinitions`` and ``policySetDefinitions``
        arrays of definitions in their ARM representation.
        """
        try:
            data = load_file(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError('cannot read catalog %s: %s' % (path, e))
        _validate(data, CATALOG_SCHEMA, 'catalog file %s' % path)
        catalog = cls.from_resources(
            data.get('policyDefinitions') or (),
            data.get('policySetDefinitions') or (),
            source=path)
        log.info('Loaded %r from %s', catalog, path)
        return catalog


def load_catalog(management_group_id, session):
    """Built-in definitions merged with the custom ones stored at a management group.
    """
    client = session.client('azure.mgmt.resource.policy.PolicyClient')

    policies = [p.serialize(keep_readonly=True)
                for p in client.policy_definitions.list_built_in()]
    policies.extend(
        p.serialize(keep_readonly=True) for p in
        client.policy_definitions.list_by_management_group(management_group_id))

    policy_sets = [s.serialize(keep_readonly=True)
                   for s in client.policy_set_definitions.list_built_in()]
    policy_sets.extend(
        s.serialize(keep_readonly=True) for s in
        client.policy_set_definitions.list_by_management_group(management_group_id))

    catalog = DefinitionCatalog.from_resources(
        policies, policy_sets, source='management group %s' % management_group_id)
    log.info('Loaded %r for management group %s', catalog, management_group_id)
    return catalog
