# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0

"""
Environment Variables
"""
ENV_TENANT_ID = 'AZURE_TENANT_ID'
ENV_CLIENT_ID = 'AZURE_CLIENT_ID'
ENV_SUB_ID = 'AZURE_SUBSCRIPTION_ID'
ENV_CLIENT_SECRET = 'AZURE_CLIENT_SECRET'

ENV_USE_MSI = 'AZURE_USE_MSI'

"""
Resource Id Templates
"""
MANAGEMENT_GROUP_SCOPE = '/providers/Microsoft.Management/managementGroups/'
AUTHORIZATION_PROVIDER = '/providers/Microsoft.Authorization/'
POLICY_DEFINITIONS = 'policyDefinitions'
POLICY_SET_DEFINITIONS = 'policySetDefinitions'

"""
Naming
"""
ASSIGNMENT_NAME_PREFIX = 'ALZ-'
ASSIGNMENT_NAME_FIELD_CHARS = 6
DEPLOYMENT_NAME_HASH_CHARS = 8
DEPLOYMENT_NAME_MAX_LENGTH = 64
MIN_FIELD_CHARS = 2
MAX_FIELD_CHARS = 26

"""
Descriptor Parameters
"""
# A parameter value '<name>___ID' is replaced with the full id of resource <name>
RESOURCE_ID_REFERENCE_SUFFIX = '___ID'

"""
Template Override Parameters
"""
POLICY_ASSIGNMENTS_PARAMETER = 'policyAssignments'
ROLE_ASSIGNMENTS_PARAMETER = 'roleAssignments'

"""
Identity Readiness
"""
DEFAULT_IDENTITY_WAIT_SECONDS = 30
DEFAULT_IDENTITY_POLL_TIMEOUT = 300
DEFAULT_IDENTITY_POLL_INTERVAL = 10

"""
Enforcement Modes
"""
ENFORCEMENT_MODE_DEFAULT = 'Default'
ENFORCEMENT_MODE_DO_NOT_ENFORCE = 'DoNotEnforce'

"""
Authentication Resource
"""
RESOURCE_MANAGEMENT_SCOPE = 'https://management.azure.com/.default'
