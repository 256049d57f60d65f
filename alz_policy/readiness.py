# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
"""Wait for policy assignment identities before granting them roles.

The identity of a freshly deployed assignment takes a while to replicate,
role assignments targeting it fail until then.
"""
import logging
import time

from azure.core.exceptions import ResourceNotFoundError

from alz_policy import constants
from alz_policy.exceptions import ConfigurationError, IdentityNotReadyError

log = logging.getLogger('alz.readiness')


class NoWait:

    def wait(self, assignments):
        return None


class FixedDelay:

    def __init__(self, seconds=constants.DEFAULT_IDENTITY_WAIT_SECONDS, sleep=time.sleep):
        self.seconds = seconds
        self.sleep = sleep

    def wait(self, assignments):
        if not assignments:
            return
        log.info('Waiting %s seconds for %d assignment identities',
                 self.seconds, len(assignments))
        self.sleep(self.seconds)


class PollAssignmentIdentities:
    """Poll the assignments until all of them expose an identity principal id.
    """

    def __init__(self, session, timeout=constants.DEFAULT_IDENTITY_POLL_TIMEOUT,
                 interval=constants.DEFAULT_IDENTITY_POLL_INTERVAL,
                 sleep=time.sleep, clock=time.monotonic):
        self.session = session
        self.timeout = timeout
        self.interval = interval
        self.sleep = sleep
        self.clock = clock

    def is_ready(self, client, assignment):
        try:
            result = client.policy_assignments.get(assignment.scope, assignment.name)
        except ResourceNotFoundError:
            return False
        return bool(result.identity and result.identity.principal_id)

    def wait(self, assignments):
        pending = list(assignments)
        if not pending:
            return
        client = self.session.client('azure.mgmt.resource.policy.PolicyClient')
        deadline = self.clock() + self.timeout

        while True:
            pending = [a for a in pending if not self.is_ready(client, a)]
            if not pending:
                log.info('All assignment identities ready')
                return
            if self.clock() >= deadline:
                raise IdentityNotReadyError(
                    'identities of %d assignments not ready after %ss: %s' % (
                        len(pending), self.timeout,
                        ', '.join(a.name for a in pending)),
                    pending)
            log.debug('%d assignment identities pending', len(pending))
            self.sleep(self.interval)


def get_readiness(options, session=None):
    """Readiness strategy from the ``identityWait`` configuration.
    """
    mode = options.get('mode', 'delay')
    if mode == 'delay':
        return FixedDelay(options.get('seconds', constants.DEFAULT_IDENTITY_WAIT_SECONDS))
    if mode == 'poll':
        return PollAssignmentIdentities(
            session,
            timeout=options.get('timeout', constants.DEFAULT_IDENTITY_POLL_TIMEOUT),
            interval=options.get('interval', constants.DEFAULT_IDENTITY_POLL_INTERVAL))
    raise ConfigurationError('unknown identity wait mode %s' % mode)
