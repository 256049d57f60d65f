# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
import json
import os
import re
import threading
import time

import yaml

try:
    from yaml import CSafeLoader as SafeLoader
except ImportError:  # pragma: no cover
    from yaml import SafeLoader

from alz_policy import constants


CONN_CACHE = threading.local()

management_group_regex = re.compile(
    r'^/providers/Microsoft\.Management/managementGroups/([^/]+)$', re.IGNORECASE)


def load_file(path, format=None):
    if format is None:
        format = 'yaml'
        _, ext = os.path.splitext(path)
        if ext[1:] == 'json':
            format = 'json'

    with open(path) as fh:
        contents = fh.read()

    if format == 'yaml':
        return yaml_load(contents)
    elif format == 'json':
        return loads(contents)


def yaml_load(value):
    return yaml.load(value, Loader=SafeLoader)


def loads(body):
    return json.loads(body)


def dumps(data, fh=None, indent=0):
    if fh:
        return json.dump(data, fh, indent=indent)
    else:
        return json.dumps(data, indent=indent)


def local_session(factory):
    """Cache a session thread local for up to 45m"""
    s = getattr(CONN_CACHE, 'session', None)
    t = getattr(CONN_CACHE, 'time', None)

    n = time.time()
    if s is not None and t + (60 * 45) > n:
        return s
    s = factory()

    CONN_CACHE.session = s
    CONN_CACHE.time = n
    return s


def reset_session_cache():
    CONN_CACHE.session = None
    CONN_CACHE.time = None


def get_ci(data, key, default=None):
    """Case insensitive dictionary lookup, ARM property names are not case sensitive.
    """
    if not isinstance(data, dict):
        return default
    if key in data:
        return data[key]
    lkey = key.lower()
    for k, v in data.items():
        if isinstance(k, str) and k.lower() == lkey:
            return v
    return default


def management_group_scope(management_group_id):
    return constants.MANAGEMENT_GROUP_SCOPE + management_group_id


def get_management_group_id(scope):
    """Management group id of a management group scope, None for other scopes.
    """
    match = management_group_regex.match(scope or '')
    if match:
        return match.group(1)
    return None
