import logging

import yaml

import ci.util
import modulectl.model
import ocm

logger = logging.getLogger(__name__)

API_VERSION = 'operator.kyma-project.io/v1beta2'
KIND = 'ModuleTemplate'

MODULE_NAME_LABEL = 'operator.kyma-project.io/module-name'
BETA_LABEL = 'operator.kyma-project.io/beta'
INTERNAL_LABEL = 'operator.kyma-project.io/internal'
MODULE_VERSION_ANNOTATION = 'operator.kyma-project.io/module-version'
IS_CLUSTER_SCOPED_ANNOTATION = 'operator.kyma-project.io/is-cluster-scoped'

ENABLED = 'true'
DISABLED = 'false'

RAW_MANIFEST_RESOURCE = 'rawManifest'


class ModuleTemplateError(ValueError):
    pass


def short_name(component_name: str) -> str:
    return component_name.rsplit('/', 1)[-1]


def labels(
    module_config: modulectl.model.ModuleConfig,
    component_name: str,
) -> dict[str, str]:
    labels = dict(module_config.labels)

    if module_config.beta:
        labels[BETA_LABEL] = ENABLED
    if module_config.internal:
        labels[INTERNAL_LABEL] = ENABLED

    labels[MODULE_NAME_LABEL] = short_name(component_name)

    return labels


def annotations(
    module_config: modulectl.model.ModuleConfig,
    is_crd_cluster_scoped: bool,
) -> dict[str, str]:
    annotations = dict(module_config.annotations)

    annotations[MODULE_VERSION_ANNOTATION] = module_config.version
    annotations[IS_CLUSTER_SCOPED_ANNOTATION] = ENABLED if is_crd_cluster_scoped else DISABLED

    return annotations


def resources(module_config: modulectl.model.ModuleConfig) -> list[dict]:
    # rawManifest defaults to the manifest; it may be overwritten by explicitly declared resources
    resources = {RAW_MANIFEST_RESOURCE: module_config.manifest} | module_config.resources

    return [
        {'name': name, 'link': link}
        for name, link in sorted(resources.items())
    ]


def manager(module_config: modulectl.model.ModuleConfig) -> dict | None:
    if not (mgr := module_config.manager):
        return None

    raw = {'name': mgr.name}
    if mgr.namespace:
        raw['namespace'] = mgr.namespace
    raw['group'] = mgr.group
    raw['version'] = mgr.version
    raw['kind'] = mgr.kind

    return raw


def render_module_template(
    module_config: modulectl.model.ModuleConfig,
    component_descriptor: ocm.ComponentDescriptor,
    default_cr_data: bytes=b'',
    is_crd_cluster_scoped: bool=False,
) -> dict:
    '''
    returns the ModuleTemplate (as a dict) wrapping the given component-descriptor
    '''
    if not module_config:
        raise ModuleTemplateError('can not generate module template from empty module config')
    if not component_descriptor:
        raise ModuleTemplateError('can not generate module template from empty descriptor')

    component_name = component_descriptor.component.name
    resource_name = (
        module_config.resourceName
        or f'{short_name(component_name)}-{module_config.channel}'
    )

    spec = {
        'channel': module_config.channel,
        'mandatory': module_config.mandatory,
    }

    if default_cr_data:
        try:
            spec['data'] = ci.util.load_yaml(default_cr_data)
        except (yaml.YAMLError, ValueError) as e:
            raise ModuleTemplateError(f'failed to parse default CR: {e}') from e

    if (mgr := manager(module_config)):
        spec['manager'] = mgr

    spec['descriptor'] = component_descriptor.as_dict()
    spec['resources'] = resources(module_config)

    return {
        'apiVersion': API_VERSION,
        'kind': KIND,
        'metadata': {
            'name': resource_name,
            'namespace': module_config.namespace,
            'labels': labels(module_config, component_name),
            'annotations': annotations(module_config, is_crd_cluster_scoped),
        },
        'spec': spec,
    }


def write_module_template(
    module_template: dict,
    output_path: str,
):
    logger.info(f'writing ModuleTemplate to {output_path}')
    try:
        with open(output_path, 'w') as f:
            yaml.dump(
                module_template,
                f,
                Dumper=ocm.EnumValueYamlDumper,
                sort_keys=False,
            )
    except OSError as oe:
        raise ModuleTemplateError(f'failed to write file: {oe}') from oe
