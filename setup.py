# Automatically generated from poetry/pyproject.toml
# flake8: noqa
# -*- coding: utf-8 -*-
from setuptools import setup

packages = \
['alz_policy',
 'alz_policy.provisioning']

package_data = \
{'': ['*']}

install_requires = \
['azure-core>=1.29.0,<2.0.0',
 'azure-identity>=1.15.0,<2.0.0',
 'azure-mgmt-resource>=23.0.0,<24.0.0',
 'click>=8.2,<9.0',
 'jsonschema (>=4.0.0,<5.0.0)',
 'pyyaml (>=6.0,<7.0)',
 'tabulate (>=0.9.0,<0.10.0)']

extras_require = \
{'test': ['pytest>=7.0,<9.0',
          'mock>=5.0,<6.0']}

entry_points = \
{'console_scripts': ['alz-policy = alz_policy.cli:cli']}

setup_kwargs = {
    'name': 'alz-policy',
    'version': '0.3.0',
    'description': 'Azure Landing Zone - Policy Assignment Deployment',
    'long_description': '\n# alz-policy: Azure Policy assignment deployment\n\nalz-policy deploys Azure Policy assignments across a management group\nhierarchy from declarative descriptor files.\n\nFor every descriptor it computes a deterministic 24 character assignment\nname, resolves the role assignments the system assigned identity of the\nassignment needs, and submits ARM deployments per management group.\n\n## Usage\n\n    $ alz-policy names -c alz.yml -d assignments/\n    $ alz-policy roles -c alz.yml -d assignments/\n    $ alz-policy deploy -c alz.yml -d assignments/ --test-mode\n',
    'long_description_content_type': 'text/markdown',
    'author': 'ALZ Policy Authors',
    'author_email': None,
    'maintainer': None,
    'maintainer_email': None,
    'url': None,
    'packages': packages,
    'package_data': package_data,
    'install_requires': install_requires,
    'extras_require': extras_require,
    'entry_points': entry_points,
    'python_requires': '>=3.10,<4.0',
}


setup(**setup_kwargs)
