# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
"""Deterministic short names for Azure resources.

Azure caps policy assignment names at 24 characters and rejects ``/`` and
``+``, so names are built from truncated SHA-1 hashes of the identifying
fields, re-encoded as base64 with those two characters substituted.

Names generated here are already deployed in existing environments, the
encoding must stay bit for bit stable.
"""
import base64
import hashlib
import logging

from alz_policy import constants
from alz_policy.exceptions import NameGenerationError

log = logging.getLogger('alz.naming')


def _hex_length(per_field_chars):
    # 1.5 hex digits per base64 character, rounded down to whole bytes
    length = int(per_field_chars * 1.5)
    if per_field_chars % 4 != 0:
        length -= 1
    return length


def _hex_to_bytes(hex_digits):
    """Pairs of hex digits to bytes.

    An odd trailing digit is decoded on its own as a half byte value.
    """
    data = bytearray()
    for i in range(0, len(hex_digits), 2):
        data.append(int(hex_digits[i:i + 2], 16))
    return bytes(data)


def _encode(data):
    encoded = base64.b64encode(data).decode('ascii')
    return encoded.rstrip('=').replace('/', '_').replace('+', '.')


def validate_field_chars(per_field_chars):
    if (isinstance(per_field_chars, bool) or not isinstance(per_field_chars, int) or
            per_field_chars % 2 != 0 or
            not constants.MIN_FIELD_CHARS <= per_field_chars <= constants.MAX_FIELD_CHARS):
        raise NameGenerationError(
            'per field characters must be an even integer between %d and %d, got %r' % (
                constants.MIN_FIELD_CHARS, constants.MAX_FIELD_CHARS, per_field_chars))


def hash_field(value, per_field_chars):
    validate_field_chars(per_field_chars)
    if not isinstance(value, str):
        raise NameGenerationError('cannot hash non string value %r' % (value,))
    digest = hashlib.sha1(value.encode('utf-16-le')).hexdigest()
    return _encode(_hex_to_bytes(digest[:_hex_length(per_field_chars)]))


def generate_name(fields, per_field_chars):
    """Concatenated hashes of ``fields``, ``per_field_chars`` characters each.
    """
    validate_field_chars(per_field_chars)
    return ''.join(hash_field(f, per_field_chars) for f in fields)


def assignment_name(scope, definition_id, display_name, source=None):
    """Policy assignment name, ``ALZ-`` followed by three 6 character hashes.

    :param scope: Assignment scope, ie. the management group resource id.
    :param definition_id: Policy or policy set definition id.
    :param display_name: Assignment display name.
    :param source: Optional description of the descriptor, used in errors.
    """
    for label, value in (('scope', scope),
                         ('definition id', definition_id),
                         ('display name', display_name)):
        if not value:
            raise NameGenerationError(
                'cannot compute assignment name for %s without a %s '
                '(scope=%r definition=%r displayName=%r)' % (
                    source or 'descriptor', label, scope, definition_id, display_name))

    chars = constants.ASSIGNMENT_NAME_FIELD_CHARS
    name = '%s%s-%s-%s' % (
        constants.ASSIGNMENT_NAME_PREFIX,
        hash_field(scope, chars),
        hash_field(definition_id, chars),
        hash_field(display_name, chars))
    log.debug('Assignment "%s" at %s named %s', display_name, scope, name)
    return name


def deployment_name(prefix, scope):
    """Stable ARM deployment name for a deployment at ``scope``.
    """
    suffix = generate_name([scope], constants.DEPLOYMENT_NAME_HASH_CHARS)
    max_prefix = constants.DEPLOYMENT_NAME_MAX_LENGTH - len(suffix) - 1
    return '%s-%s' % (prefix[:max_prefix], suffix)
