# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
import io
import json
import logging
import os
import shutil
import tempfile
import unittest

import yaml

from alz_policy.config import Config
from alz_policy.utils import reset_session_cache

BASE_FOLDER = os.path.dirname(__file__)
DATA_FOLDER = os.path.join(BASE_FOLDER, 'data')

TOP_LEVEL_MG = 'contoso'
ROOT_SCOPE = '/providers/Microsoft.Management/managementGroups/contoso'
DEFAULT_SUBSCRIPTION_ID = 'ea42f556-5106-4743-99b0-c129bfa71a47'
CONNECTIVITY_SUBSCRIPTION_ID = '00000000-5106-4743-99b0-c129bfa71a47'

CONTRIBUTOR = '/providers/Microsoft.Authorization/roleDefinitions/' \
              'b24988ac-6180-42a0-ab88-20f7382dd24c'
LOG_ANALYTICS_CONTRIBUTOR = '/providers/Microsoft.Authorization/roleDefinitions/' \
                            '92aaf0da-9dab-42b6-94a3-d43ce8d16293'
OWNER = '/providers/Microsoft.Authorization/roleDefinitions/' \
        '8e3af657-a8ff-443c-a75c-2fe8c4bcb635'


def data_path(*parts):
    return os.path.join(DATA_FOLDER, *parts)


class BaseTest(unittest.TestCase):

    def setUp(self):
        super(BaseTest, self).setUp()
        reset_session_cache()

    def get_temp_dir(self):
        """ Return a temporary directory that will get cleaned up. """
        temp_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, temp_dir)
        return temp_dir

    def write_file(self, name, data, format='yaml', directory=None):
        directory = directory or self.get_temp_dir()
        path = os.path.join(directory, name)
        with open(path, 'w') as fh:
            if format == 'json':
                json.dump(data, fh, indent=2)
            else:
                yaml.safe_dump(data, fh, default_flow_style=False)
        return path

    def patch(self, obj, attr, new):
        old = getattr(obj, attr, None)
        setattr(obj, attr, new)
        self.addCleanup(setattr, obj, attr, old)

    def change_cwd(self, work_dir=None):
        if work_dir is None:
            work_dir = self.get_temp_dir()

        cur_dir = os.path.abspath(os.getcwd())

        def restore():
            os.chdir(cur_dir)

        self.addCleanup(restore)

        os.chdir(work_dir)
        return work_dir

    def capture_logging(self, name=None, level=logging.INFO):
        log_file = io.StringIO()
        log_handler = logging.StreamHandler(log_file)
        logger = logging.getLogger(name)
        logger.addHandler(log_handler)
        old_logger_level = logger.level
        logger.setLevel(level)

        @self.addCleanup
        def reset_logging():
            logger.removeHandler(log_handler)
            logger.setLevel(old_logger_level)

        return log_file

    def get_config(self, **kw):
        params = {
            'top_level_management_group': TOP_LEVEL_MG,
            'organization': 'contoso',
            'platform': 'alz',
            'environment': 'prod',
            'region': 'westeurope',
            'subscriptions': {'management': DEFAULT_SUBSCRIPTION_ID,
                              'connectivity': CONNECTIVITY_SUBSCRIPTION_ID},
            'templates': {'policyAssignments': data_path('templates', 'policyAssignments.json'),
                          'roleAssignments': data_path('templates', 'roleAssignments.json')},
            'base_dir': DATA_FOLDER,
        }
        params.update(kw)
        return Config.empty(**params)
