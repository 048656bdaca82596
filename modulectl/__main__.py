import argparse
import logging
import sys

import ci.log
import ci.util
import modulectl
import modulectl.create

logger = logging.getLogger(__name__)


def create(parsed):
    options = modulectl.create.Options(
        module_config_file=parsed.module_config_file,
        git_remote=parsed.git_remote,
        registry_credential_selector=parsed.registry_credential_selector,
        output_dir=parsed.output_dir,
        template_output=parsed.template_output,
    )

    result = modulectl.create.create_module(options=options)

    ci.util.success(
        f'created component-archive for {result.component_descriptor.component.name}:'
        f'{result.component_descriptor.component.version} at {result.archive.path}'
    )


def version(parsed):
    print(modulectl.__version__)


def main(argv: list[str]=None):
    parser = argparse.ArgumentParser(
        prog='modulectl',
        description='packages kyma modules into OCM component-archives and ModuleTemplates',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        default=False,
        help='enables debug-logging',
    )
    maincmd_parsers = parser.add_subparsers(
        title='commands',
        required=True,
    )

    create_parser = maincmd_parsers.add_parser(
        'create',
        aliases=('c',),
        help='creates a component-archive and a ModuleTemplate from a module-config',
    )
    create_parser.add_argument(
        '--module-config-file', '-c',
        default=modulectl.create.DEFAULT_MODULE_CONFIG_FILE,
        help='path to the module-config',
    )
    create_parser.add_argument(
        '--git-remote',
        default='',
        help='URL of the module\'s git-repository (used to add sources and security metadata)',
    )
    create_parser.add_argument(
        '--registry-credential-selector',
        default='',
        help='label-selector identifying the credentials for pulling the module\'s images',
    )
    create_parser.add_argument(
        '--output-dir', '-o',
        default=modulectl.create.DEFAULT_OUTPUT_DIR,
        help='directory to write the component-archive to',
    )
    create_parser.add_argument(
        '--template-output',
        default=modulectl.create.DEFAULT_TEMPLATE_OUTPUT,
        help='path to write the ModuleTemplate to',
    )
    create_parser.set_defaults(callable=create)

    version_parser = maincmd_parsers.add_parser(
        'version',
        help='prints the version of modulectl',
    )
    version_parser.set_defaults(callable=version)

    parsed = parser.parse_args(argv)

    ci.log.configure_default_logging(
        stdout_level=logging.DEBUG if parsed.verbose else logging.INFO,
    )

    try:
        parsed.callable(parsed)
    except Exception as e:
        logger.debug('command failed', exc_info=True)
        ci.util.error(str(e))
        sys.exit(1)


if __name__ == '__main__':
    main()
