# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
import logging
import os

import jsonschema
import yaml

from alz_policy import constants
from alz_policy.exceptions import ConfigurationError
from alz_policy.utils import load_file, management_group_scope

log = logging.getLogger('alz.config')


CONFIG_SCHEMA = {
    '$schema': 'http://json-schema.org/draft-07/schema',
    'definitions': {
        'resourceGroup': {
            'type': 'object',
            'additionalProperties': False,
            'required': ['subscription', 'name', 'location'],
            'properties': {
                'subscription': {'type': 'string'},
                'name': {'type': 'string', 'minLength': 1, 'maxLength': 90},
                'location': {'type': 'string'},
            }
        },
        'resourceProvider': {
            'type': 'object',
            'additionalProperties': False,
            'required': ['subscription', 'namespace'],
            'properties': {
                'subscription': {'type': 'string'},
                'namespace': {'type': 'string', 'pattern': '^[A-Za-z0-9]+\\.[A-Za-z0-9.]+$'},
            }
        },
        'templateSet': {
            'type': 'object',
            'additionalProperties': False,
            'properties': {
                'policyAssignments': {'type': 'string'},
                'roleAssignments': {'type': 'string'},
            }
        },
    },
    'type': 'object',
    'additionalProperties': False,
    'required': ['topLevelManagementGroup', 'region', 'templates'],
    'properties': {
        'topLevelManagementGroup': {'type': 'string', 'minLength': 1, 'maxLength': 90},
        'organization': {'type': 'string'},
        'platform': {'type': 'string'},
        'environment': {'type': 'string'},
        'region': {'type': 'string', 'minLength': 1},
        'subscriptions': {
            'type': 'object',
            'additionalProperties': {'type': 'string'},
        },
        'templates': {
            'allOf': [
                {'$ref': '#/definitions/templateSet'},
                {'required': ['policyAssignments', 'roleAssignments']},
            ]
        },
        'parameters': {'$ref': '#/definitions/templateSet'},
        'identityWait': {
            'oneOf': [
                {'type': 'object',
                 'additionalProperties': False,
                 'required': ['mode'],
                 'properties': {
                     'mode': {'enum': ['poll']},
                     'timeout': {'type': 'number', 'minimum': 0},
                     'interval': {'type': 'number', 'exclusiveMinimum': 0}}},
                {'type': 'object',
                 'additionalProperties': False,
                 'required': ['mode'],
                 'properties': {
                     'mode': {'enum': ['delay']},
                     'seconds': {'type': 'number', 'minimum': 0}}},
            ]
        },
        'resourceGroups': {
            'type': 'array',
            'items': {'$ref': '#/definitions/resourceGroup'}
        },
        'resourceProviders': {
            'type': 'array',
            'items': {'$ref': '#/definitions/resourceProvider'}
        },
    }
}


class Bag(dict):
    def __getattr__(self, k):
        try:
            return self[k]
        except KeyError:
            raise AttributeError(k)

    def __setattr__(self, k, v):
        self[k] = v


class Config(Bag):

    @classmethod
    def empty(cls, **kw):
        d = {}
        d.update({
            'top_level_management_group': None,
            'organization': '',
            'platform': '',
            'environment': '',
            'region': None,
            'subscriptions': {},
            'templates': {},
            'parameters': {},
            'identity_wait': {'mode': 'delay',
                              'seconds': constants.DEFAULT_IDENTITY_WAIT_SECONDS},
            'resource_groups': [],
            'resource_providers': [],
            'base_dir': os.getcwd()})
        d.update(kw)
        return cls(d)

    @property
    def root_scope(self):
        return management_group_scope(self.top_level_management_group)

    def tokens(self):
        """Placeholder values substituted into descriptors.
        """
        values = {
            'organization': self.organization,
            'platform': self.platform,
            'region': self.region,
            'environment': self.environment,
        }
        for alias, sub_id in self.subscriptions.items():
            values['%sSubscriptionId' % alias] = sub_id
        return values

    def subscription_id(self, alias_or_id):
        """Subscription id for a configured alias, ids pass through.
        """
        return self.subscriptions.get(alias_or_id, alias_or_id)

    def resolve_path(self, path):
        if path is None or os.path.isabs(path):
            return path
        return os.path.normpath(os.path.join(self.base_dir, path))

    def template(self, kind):
        return self.resolve_path(self.templates.get(kind))

    def parameters_file(self, kind):
        return self.resolve_path((self.parameters or {}).get(kind))


def load_config(path):
    try:
        data = load_file(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError('cannot read config %s: %s' % (path, e))

    try:
        jsonschema.validate(data, CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        location = '/'.join(str(p) for p in e.absolute_path) or '<root>'
        raise ConfigurationError(
            'invalid config %s at %s: %s' % (path, location, e.message))

    config = Config.empty(
        top_level_management_group=data['topLevelManagementGroup'],
        organization=data.get('organization', ''),
        platform=data.get('platform', ''),
        environment=data.get('environment', ''),
        region=data['region'],
        subscriptions=dict(data.get('subscriptions') or {}),
        templates=dict(data['templates']),
        parameters=dict(data.get('parameters') or {}),
        resource_groups=list(data.get('resourceGroups') or ()),
        resource_providers=list(data.get('resourceProviders') or ()),
        base_dir=os.path.dirname(os.path.abspath(path)))
    if data.get('identityWait'):
        config.identity_wait = dict(data['identityWait'])
    log.debug('Loaded config %s for management group %s',
              path, config.top_level_management_group)
    return config
