# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
"""Policy assignment descriptors.

Descriptor files hold one record per policy assignment::

  policyAssignments:
    - displayName: Deny public IP addresses
      policySetDefinition: Deny-PublicIP
      managementGroupIdSuffix: -landingzones
      useIdentity: false
      parameters:
        effect: Deny

Records are validated once when loaded, then enriched with the assignment
scope, the fully qualified definition id and the assignment name.
"""
import copy
import logging
import os
import re

import jsonschema
import yaml

from alz_policy import constants
from alz_policy.exceptions import (
    AlzPolicyError, DescriptorValidationError, NameGenerationError)
from alz_policy.naming import assignment_name
from alz_policy.utils import load_file

log = logging.getLogger('alz.descriptors')

DESCRIPTOR_EXTENSIONS = ('.json', '.yml', '.yaml')

token_regex = re.compile(r'\{(\w+)\}')


DESCRIPTOR_SCHEMA = {
    '$schema': 'http://json-schema.org/draft-07/schema',
    'type': 'object',
    'additionalProperties': False,
    'required': ['displayName', 'managementGroupIdSuffix'],
    'properties': {
        'policyDefinition': {'type': 'string', 'minLength': 1},
        'policySetDefinition': {'type': 'string', 'minLength': 1},
        'displayName': {'type': 'string', 'minLength': 1, 'maxLength': 128},
        'description': {'type': 'string'},
        'managementGroupIdSuffix': {'type': 'string'},
        'parameters': {'type': 'object'},
        'notScopes': {'type': 'array', 'items': {'type': 'string'}},
        'useIdentity': {'type': 'boolean'},
        'uami': {'type': ['string', 'null']},
        'enforcementMode': {'enum': [constants.ENFORCEMENT_MODE_DEFAULT,
                                     constants.ENFORCEMENT_MODE_DO_NOT_ENFORCE]},
        'nonComplianceMessage': {'type': 'string'},
    }
}


class PolicyAssignmentDescriptor:
    """A policy assignment to deploy at a management group scope.

    Exactly one of ``policy_definition_id`` and ``policy_set_definition_id``
    is set. The assignment name is derived from the scope, the definition id
    and the display name.
    """

    def __init__(self, scope, display_name, policy_definition_id=None,
                 policy_set_definition_id=None, use_identity=False, uami=None,
                 parameters=None, not_scopes=(), description=None,
                 enforcement_mode=constants.ENFORCEMENT_MODE_DEFAULT,
                 non_compliance_message=None, source=None):
        self.source = source
        if bool(policy_definition_id) == bool(policy_set_definition_id):
            raise DescriptorValidationError(
                'exactly one of policy definition and policy set definition is '
                'required (policyDefinition=%r policySetDefinition=%r)' % (
                    policy_definition_id, policy_set_definition_id), source)
        if not scope:
            raise DescriptorValidationError(
                'assignment "%s" has no scope' % display_name, source)

        self.scope = scope
        self.display_name = display_name
        self.policy_definition_id = policy_definition_id
        self.policy_set_definition_id = policy_set_definition_id
        self.use_identity = bool(use_identity)
        self.uami = uami or None
        self.parameters = dict(parameters or {})
        self.not_scopes = tuple(not_scopes or ())
        self.description = description
        self.enforcement_mode = enforcement_mode
        self.non_compliance_message = non_compliance_message

        try:
            self.name = assignment_name(
                scope, self.definition_id, display_name, source=source)
        except NameGenerationError as e:
            raise DescriptorValidationError(str(e), source)

    def __repr__(self):
        return '<PolicyAssignment %s "%s" scope:%s>' % (
            self.name, self.display_name, self.scope)

    @property
    def definition_id(self):
        return self.policy_definition_id or self.policy_set_definition_id

    @property
    def is_policy_set(self):
        return bool(self.policy_set_definition_id)

    @property
    def requires_role_assignments(self):
        """System assigned identities need their roles granted by the deployment.
        """
        return self.use_identity and not self.uami

    @property
    def identity_type(self):
        if not self.use_identity:
            return 'None'
        return self.uami and 'UserAssigned' or 'SystemAssigned'

    def describe(self):
        """Identification used in error messages.
        """
        return '%s (name=%s scope=%s definition=%s)' % (
            self.source or self.display_name, self.name, self.scope, self.definition_id)

    def to_template_value(self):
        value = {
            'name': self.name,
            'scope': self.scope,
            'displayName': self.display_name,
            'description': self.description or '',
            'policyDefinitionId': self.definition_id,
            'enforcementMode': self.enforcement_mode,
            'parameters': {k: {'value': v} for k, v in self.parameters.items()},
            'notScopes': list(self.not_scopes),
            'identityType': self.identity_type,
            'userAssignedIdentityId': self.uami or '',
            'nonComplianceMessages': [],
        }
        if self.non_compliance_message:
            value['nonComplianceMessages'].append(
                {'message': self.non_compliance_message})
        return value


def substitute_tokens(value, tokens):
    """Replace known ``{token}`` placeholders in all strings of ``value``.

    Unknown placeholders are left as is.
    """
    if isinstance(value, str):
        def replace(match):
            v = tokens.get(match.group(1))
            if v is None:
                return match.group(0)
            return str(v)
        return token_regex.sub(replace, value)
    elif isinstance(value, dict):
        return {k: substitute_tokens(v, tokens) for k, v in value.items()}
    elif isinstance(value, list):
        return [substitute_tokens(v, tokens) for v in value]
    return value


def resolve_definition_id(raw, top_level_management_group, kind):
    """Fully qualified definition id.

    Values already starting with ``/providers/`` are built-in definition ids,
    anything else names a custom definition at the top level management group.
    """
    if raw.lower().startswith('/providers/'):
        return raw
    return '%s%s%s%s/%s' % (
        constants.MANAGEMENT_GROUP_SCOPE, top_level_management_group,
        constants.AUTHORIZATION_PROVIDER, kind, raw)


def resolve_resource_references(value, lookup):
    """Replace ``<name>___ID`` strings anywhere in ``value`` with resource ids.
    """
    suffix = constants.RESOURCE_ID_REFERENCE_SUFFIX
    if isinstance(value, str):
        if value.endswith(suffix) and len(value) > len(suffix):
            return lookup.resource_id(value[:-len(suffix)])
        return value
    elif isinstance(value, dict):
        return {k: resolve_resource_references(v, lookup) for k, v in value.items()}
    elif isinstance(value, list):
        return [resolve_resource_references(v, lookup) for v in value]
    return value


def validate_record(record, source=None):
    if not isinstance(record, dict):
        raise DescriptorValidationError(
            'descriptor must be a mapping, got %s' % type(record).__name__, source)
    label = record.get('displayName') or '<unnamed>'
    if record.get('policyDefinition') and record.get('policySetDefinition'):
        raise DescriptorValidationError(
            'assignment "%s" sets both policyDefinition and policySetDefinition' % label,
            source)
    if not record.get('policyDefinition') and not record.get('policySetDefinition'):
        raise DescriptorValidationError(
            'assignment "%s" has no policyDefinition or policySetDefinition' % label,
            source)
    if record.get('managementGroupIdSuffix') is None:
        raise DescriptorValidationError(
            'assignment "%s" has no managementGroupIdSuffix, '
            'the assignment scope cannot be determined' % label, source)
    try:
        jsonschema.validate(record, DESCRIPTOR_SCHEMA)
    except jsonschema.ValidationError as e:
        location = '/'.join(str(p) for p in e.absolute_path) or '<record>'
        raise DescriptorValidationError(
            'assignment "%s" invalid at %s: %s' % (label, location, e.message), source)


class DescriptorLoader:
    """Load descriptor records and enrich them into PolicyAssignmentDescriptors.

    :param config: Run configuration, provides tokens and the top level
        management group.
    :param lookup: Resolves ``<name>___ID`` parameter values to resource ids.
    """

    def __init__(self, config, lookup):
        self.config = config
        self.lookup = lookup
        self.tokens = config.tokens()

    def enrich(self, record, source=None):
        validate_record(record, source)
        record = substitute_tokens(copy.deepcopy(record), self.tokens)
        top = self.config.top_level_management_group

        policy_id = set_id = None
        if record.get('policyDefinition'):
            policy_id = resolve_definition_id(
                record['policyDefinition'], top, constants.POLICY_DEFINITIONS)
        else:
            set_id = resolve_definition_id(
                record['policySetDefinition'], top, constants.POLICY_SET_DEFINITIONS)

        try:
            parameters = resolve_resource_references(
                record.get('parameters') or {}, self.lookup)
        except AlzPolicyError as e:
            raise DescriptorValidationError(
                'assignment "%s": %s' % (record['displayName'], e), source)

        return PolicyAssignmentDescriptor(
            scope=self.config.root_scope + record['managementGroupIdSuffix'],
            display_name=record['displayName'],
            policy_definition_id=policy_id,
            policy_set_definition_id=set_id,
            use_identity=record.get('useIdentity', False),
            uami=record.get('uami'),
            parameters=parameters,
            not_scopes=record.get('notScopes') or (),
            description=record.get('description'),
            enforcement_mode=record.get(
                'enforcementMode', constants.ENFORCEMENT_MODE_DEFAULT),
            non_compliance_message=record.get('nonComplianceMessage'),
            source=source)

    def load(self, paths, keep_going=False):
        """Load descriptors from files and directories.

        Returns the descriptors and the list of errors of skipped records,
        errors only accumulate when ``keep_going`` is set.
        """
        descriptors, errors = [], []
        for source, record in iter_records(paths):
            try:
                descriptors.append(self.enrich(record, source))
            except DescriptorValidationError as e:
                if not keep_going:
                    raise
                log.error('Skipping descriptor %s', e)
                errors.append(e)
        check_duplicates(descriptors)
        log.info('Loaded %d policy assignment descriptors', len(descriptors))
        return descriptors, errors


def check_duplicates(descriptors):
    seen = {}
    for d in descriptors:
        if d.name in seen:
            raise DescriptorValidationError(
                'assignment %s duplicates %s' % (d.describe(), seen[d.name].describe()),
                d.source)
        seen[d.name] = d


def expand_paths(paths):
    for p in paths:
        if os.path.isdir(p):
            for f in sorted(os.listdir(p)):
                if os.path.splitext(f)[1].lower() in DESCRIPTOR_EXTENSIONS:
                    yield os.path.join(p, f)
        else:
            yield p


def iter_records(paths):
    """Yield ``(source, record)`` for every record in the descriptor files.
    """
    for path in expand_paths(paths):
        try:
            data = load_file(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise DescriptorValidationError('cannot read descriptors: %s' % e, path)
        if isinstance(data, dict):
            data = data.get('policyAssignments')
        if data is None:
            log.warning('No policy assignments in %s', path)
            continue
        if not isinstance(data, list):
            raise DescriptorValidationError(
                'expected a list of policy assignments', path)
        for idx, record in enumerate(data):
            yield '%s#%d' % (path, idx), record
