import re
import urllib.parse

import semver

import modulectl.model


# see `componentName` in ocm/ocm-component-descriptor-schema.yaml
module_name_regex = re.compile(
    r'^[a-z][-a-z0-9]*([.][a-z][-a-z0-9]*)*[.][a-z]{2,}(/[a-z][-a-z0-9_]*([.][a-z][-a-z0-9_]*)*)+$'
)
module_name_max_length = 255

channel_regex = re.compile(r'^[a-z]+$')
channel_min_length = 3
channel_max_length = 32

namespace_regex = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')
namespace_max_length = 253


class InvalidOptionError(ValueError):
    pass


def validate_module_name(name: str):
    if not name:
        raise InvalidOptionError('opts.ModuleName must not be empty')

    if len(name) > module_name_max_length:
        raise InvalidOptionError(
            f'opts.ModuleName length must not exceed {module_name_max_length} characters'
        )

    if not module_name_regex.fullmatch(name):
        raise InvalidOptionError(
            "opts.ModuleName must match the required pattern, e.g: 'github.com/path-to/your-repo'"
        )


def validate_module_version(version: str):
    if not version:
        raise InvalidOptionError('opts.ModuleVersion must not be empty')

    try:
        # strict: no `v`-prefix, no missing minor / patch
        semver.Version.parse(version.strip())
    except (ValueError, TypeError) as e:
        raise InvalidOptionError(
            f'opts.ModuleVersion failed to parse as semantic version: {e}'
        ) from e


def validate_module_channel(channel: str):
    if not channel:
        raise InvalidOptionError('opts.ModuleChannel must not be empty')

    if len(channel) > channel_max_length:
        raise InvalidOptionError(
            f'opts.ModuleChannel length must not exceed {channel_max_length} characters'
        )

    if len(channel) < channel_min_length:
        raise InvalidOptionError(
            f'opts.ModuleChannel length must be at least {channel_min_length} characters'
        )

    if not channel_regex.fullmatch(channel):
        raise InvalidOptionError(
            'opts.ModuleChannel must match the required pattern, only characters from a-z are allowed'
        )


def validate_module_namespace(namespace: str):
    if not namespace:
        raise InvalidOptionError('opts.ModuleNamespace must not be empty')

    validate_namespace(namespace)


def validate_namespace(namespace: str):
    if len(namespace) > namespace_max_length:
        raise InvalidOptionError(
            f'opts.ModuleNamespace length must not exceed {namespace_max_length} characters'
        )

    if not namespace_regex.fullmatch(namespace):
        raise InvalidOptionError(
            'namespace must match the required pattern, only small alphanumeric characters and '
            'hyphens'
        )


def validate_is_valid_https_url(link: str):
    try:
        url = urllib.parse.urlparse(link)
    except ValueError as e:
        raise InvalidOptionError(f'link {link} is not a valid URL') from e

    if url.scheme != 'https':
        raise InvalidOptionError(f'link {link} is not using https scheme')


def validate_resources(resources: dict[str, str]):
    for name, link in resources.items():
        if not name:
            raise InvalidOptionError('name must not be empty')

        if not link:
            raise InvalidOptionError('link must not be empty')

        validate_is_valid_https_url(link)


def validate_module_config(module_config: modulectl.model.ModuleConfig):
    '''
    validates the given module-config, stopping at the first violation. Raised errors are
    `InvalidOptionError`s, naming the violated attribute.
    '''
    field_validators = (
        ('name', validate_module_name, module_config.name),
        ('version', validate_module_version, module_config.version),
        ('channel', validate_module_channel, module_config.channel),
        ('namespace', validate_module_namespace, module_config.namespace),
    )
    for field_name, validator, value in field_validators:
        try:
            validator(value)
        except InvalidOptionError as ioe:
            raise InvalidOptionError(f'failed to validate module {field_name}: {ioe}') from ioe

    if not module_config.manifest:
        raise InvalidOptionError('manifest path must not be empty')

    try:
        validate_resources(module_config.resources)
    except InvalidOptionError as ioe:
        raise InvalidOptionError(f'failed to validate resources: {ioe}') from ioe
