# Copyright The ALZ Policy Authors.
# SPDX-License-Identifier: Apache-2.0
"""Deploy Azure Policy assignments across a management group hierarchy
"""
import logging
import sys

import click
from tabulate import tabulate

from alz_policy.catalog import DefinitionCatalog, load_catalog
from alz_policy.config import load_config
from alz_policy.deployment import ArmDeploymentExecutor
from alz_policy.descriptors import DescriptorLoader
from alz_policy.exceptions import AlzPolicyError
from alz_policy.lookup import ResourceLookup, StaticResourceLookup
from alz_policy.orchestrator import PolicyDeployer
from alz_policy.provisioning.resource_group import ResourceGroupUnit
from alz_policy.provisioning.resource_provider import ResourceProviderUnit
from alz_policy.readiness import get_readiness
from alz_policy.roles import resolve_roles
from alz_policy.session import Session
from alz_policy.utils import dumps

log = logging.getLogger('alz')


def init_logging(verbose):
    level = verbose and logging.DEBUG or logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s: %(name)s:%(levelname)s %(message)s")

    logging.getLogger().setLevel(level)
    logging.getLogger('azure').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def fail(error):
    log.error(str(error))
    sys.exit(1)


class Context:
    """Objects shared by the commands of one invocation.
    """

    def __init__(self, config_path, verbose=False):
        init_logging(verbose)
        self.config = load_config(config_path)
        self._session = None

    @property
    def session(self):
        if self._session is None:
            self._session = Session()
        return self._session

    def get_session(self):
        return self.session

    def lookup(self, lookup_file=None):
        if lookup_file:
            return StaticResourceLookup.from_file(lookup_file)
        return ResourceLookup(self.get_session, list(self.config.subscriptions.values()))

    def catalog(self, catalog_file=None):
        if catalog_file:
            return DefinitionCatalog.from_file(catalog_file)
        return load_catalog(self.config.top_level_management_group, self.session)

    def descriptors(self, paths, lookup_file=None, keep_going=False):
        loader = DescriptorLoader(self.config, self.lookup(lookup_file))
        return loader.load(paths, keep_going=keep_going)


def config_options(f):
    f = click.option('-c', '--config', required=True, type=click.Path(exists=True),
                     help="Run configuration file")(f)
    f = click.option('-v', '--verbose', is_flag=True, help="Debug logging")(f)
    return f


def descriptor_options(f):
    f = click.option('-d', '--descriptors', required=True, multiple=True,
                     type=click.Path(exists=True),
                     help="Descriptor file or directory, may be repeated")(f)
    f = click.option('--lookup', type=click.Path(exists=True),
                     help="Resource name to id mapping used instead of searching "
                          "the subscriptions")(f)
    f = click.option('--keep-going', is_flag=True,
                     help="Skip invalid descriptors instead of stopping")(f)
    return f


def catalog_options(f):
    f = click.option('--catalog', type=click.Path(exists=True),
                     help="Exported definition catalog used instead of querying Azure")(f)
    f = click.option('--skip-missing-definitions', is_flag=True,
                     help="Warn about definitions missing from the catalog "
                          "instead of failing")(f)
    return f


@click.group()
def cli():
    """Azure Policy assignment deployment."""


@cli.command()
@config_options
@descriptor_options
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']),
              default='table')
def names(config, verbose, descriptors, lookup, keep_going, output_format):
    """print policy assignment names"""
    try:
        ctx = Context(config, verbose)
        assignments, errors = ctx.descriptors(descriptors, lookup, keep_going)
    except AlzPolicyError as e:
        fail(e)

    rows = [{'name': a.name,
             'displayName': a.display_name,
             'scope': a.scope,
             'definitionId': a.definition_id} for a in assignments]
    if output_format == 'json':
        click.echo(dumps(rows, indent=2))
    else:
        click.echo(tabulate(rows, headers='keys'))
    if errors:
        fail('%d descriptors skipped' % len(errors))


@cli.command()
@config_options
@descriptor_options
@catalog_options
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']),
              default='table')
def roles(config, verbose, descriptors, lookup, keep_going, catalog,
          skip_missing_definitions, output_format):
    """print role assignments required by assignment identities"""
    try:
        ctx = Context(config, verbose)
        assignments, errors = ctx.descriptors(descriptors, lookup, keep_going)
        requirements = resolve_roles(
            assignments, ctx.catalog(catalog), strict=not skip_missing_definitions)
    except AlzPolicyError as e:
        fail(e)

    rows = [r.to_template_value() for r in requirements]
    if output_format == 'json':
        click.echo(dumps(rows, indent=2))
    else:
        click.echo(tabulate(rows, headers='keys'))
    if errors:
        fail('%d descriptors skipped' % len(errors))


@cli.command()
@config_options
@descriptor_options
@catalog_options
@click.option('--test-mode', is_flag=True, help="Run ARM what-if, deploy nothing")
def deploy(config, verbose, descriptors, lookup, keep_going, catalog,
           skip_missing_definitions, test_mode):
    """deploy policy assignments and their role assignments"""
    try:
        ctx = Context(config, verbose)
        assignments, errors = ctx.descriptors(descriptors, lookup, keep_going)
        deployer = PolicyDeployer(
            ctx.config,
            ctx.catalog(catalog),
            ArmDeploymentExecutor(ctx.session, ctx.config.region),
            get_readiness(ctx.config.identity_wait, ctx.session),
            strict=not skip_missing_definitions)
        results = deployer.run(assignments, test_mode=test_mode)
    except AlzPolicyError as e:
        fail(e)

    for r in results:
        log.info('%s: %d policy assignments, %d role assignments',
                 r.scope, len(r.assignments), len(r.role_requirements))
    if errors:
        fail('%d descriptors skipped' % len(errors))


@cli.command()
@config_options
@click.option('--test-mode', is_flag=True, help="Report missing items, create nothing")
def prepare(config, verbose, test_mode):
    """ensure resource groups and resource providers"""
    try:
        ctx = Context(config, verbose)
        for rg in ctx.config.resource_groups:
            unit = ResourceGroupUnit(
                ctx.config.subscription_id(rg['subscription']), session=ctx.session)
            unit.provision_if_not_exists(
                {'name': rg['name'], 'location': rg['location']}, test_mode)
        for rp in ctx.config.resource_providers:
            unit = ResourceProviderUnit(
                ctx.config.subscription_id(rp['subscription']), session=ctx.session)
            unit.provision_if_not_exists({'name': rp['namespace']}, test_mode)
    except AlzPolicyError as e:
        fail(e)


if __name__ == '__main__':
    cli()
