# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0


class AlzPolicyError(Exception):
    """ALZ Policy Exception Base Class
    """


class ConfigurationError(AlzPolicyError):
    """Invalid run configuration"""


class DescriptorValidationError(AlzPolicyError):
    """A policy assignment descriptor failed validation.
    """
    def __init__(self, msg, source=None):
        if source:
            msg = '%s: %s' % (source, msg)
        super(DescriptorValidationError, self).__init__(msg)
        self.source = source


class NameGenerationError(AlzPolicyError):
    """A deterministic name could not be generated.
    """


class DefinitionNotFoundError(AlzPolicyError):
    """A policy or policy set definition is missing from the catalog.
    """
    def __init__(self, msg, definition_id):
        super(DefinitionNotFoundError, self).__init__(msg)
        self.definition_id = definition_id


class ResourceLookupError(AlzPolicyError):
    """A '___ID' resource reference could not be resolved.
    """


class DeploymentError(AlzPolicyError):
    """A deployment step failed.
    """


class IdentityNotReadyError(DeploymentError):
    """Managed identities did not become ready in time.
    """
    def __init__(self, msg, pending):
        super(IdentityNotReadyError, self).__init__(msg)
        self.pending = pending
