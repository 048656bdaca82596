import collections.abc
import dataclasses
import logging

import yaml

import ioutil
import kube.selector
import modulectl.model
import ocm
import tarutil

logger = logging.getLogger(__name__)

MODULE_IMAGE_RESOURCE_NAME = 'module-image'
METADATA_RESOURCE_NAME = 'metadata'
RAW_MANIFEST_RESOURCE_NAME = 'raw-manifest'
DEFAULT_CR_RESOURCE_NAME = 'default-cr'

OCI_REGISTRY_CRED_LABEL = 'oci-registry-cred'
YAML_MIME_TYPE = 'application/x-yaml'


class ResourceGenerationError(ValueError):
    pass


@dataclasses.dataclass
class ModuleResource:
    '''
    an OCM resource, and (for local resources) a callable returning the resource's content as
    a blob to be stored in the component archive
    '''
    resource: ocm.Resource
    blob: collections.abc.Callable[[], ioutil.BlobDescriptor] | None = None


def metadata_yaml(module_config: modulectl.model.ModuleConfig) -> bytes:
    return yaml.safe_dump(
        module_config.as_dict(),
        sort_keys=False,
    ).encode('utf-8')


def module_image_resource() -> ModuleResource:
    return ModuleResource(
        resource=ocm.Resource(
            name=MODULE_IMAGE_RESOURCE_NAME,
            version='',
            type=ocm.ArtefactType.OCI_ARTEFACT,
            relation=ocm.ResourceRelation.EXTERNAL,
        ),
    )


def metadata_resource(module_config: modulectl.model.ModuleConfig) -> ModuleResource:
    content = metadata_yaml(module_config)

    return ModuleResource(
        resource=ocm.Resource(
            name=METADATA_RESOURCE_NAME,
            version='',
            type=ocm.ArtefactType.PLAIN_TEXT,
            relation=ocm.ResourceRelation.LOCAL,
        ),
        blob=lambda: ioutil.bytes_blob(
            content=content,
            name=METADATA_RESOURCE_NAME,
            media_type=YAML_MIME_TYPE,
        ),
    )


def directory_resource(name: str, path: str) -> ModuleResource:
    '''
    a local `directoryTree` resource, consisting of exactly the file found at given path
    '''
    archive = tarutil.SingleFileArchive(path=path)

    return ModuleResource(
        resource=ocm.Resource(
            name=name,
            version='',
            type=ocm.ArtefactType.DIRECTORY_TREE,
            relation=ocm.ResourceRelation.LOCAL,
        ),
        blob=archive.blob,
    )


def credentials_label(registry_credential_selector: str) -> ocm.Label | None:
    if not registry_credential_selector:
        return None

    try:
        selector = kube.selector.parse(registry_credential_selector)
    except kube.selector.LabelSelectorError as lse:
        raise ResourceGenerationError(
            f'failed to create credentials label: failed to parse label selector: {lse}'
        ) from lse

    return ocm.Label(
        name=OCI_REGISTRY_CRED_LABEL,
        value=dict(selector.match_labels),
    )


def generate_module_resources(
    module_config: modulectl.model.ModuleConfig,
    manifest_path: str,
    default_cr_path: str='',
    registry_credential_selector: str='',
) -> list[ModuleResource]:
    '''
    returns the resources every module consists of, in the following order:

    - module-image (external; the access is filled in upon push)
    - metadata (the module-config)
    - raw-manifest
    - default-cr (only if a default custom resource is configured)

    All resources share the module's version. If a registry-credential-selector is passed, each
    resource is labelled with the selector's match-labels.
    '''
    cred_label = credentials_label(registry_credential_selector)

    module_resources = [
        module_image_resource(),
        metadata_resource(module_config),
        directory_resource(name=RAW_MANIFEST_RESOURCE_NAME, path=manifest_path),
    ]
    if default_cr_path:
        module_resources.append(
            directory_resource(name=DEFAULT_CR_RESOURCE_NAME, path=default_cr_path)
        )

    for module_resource in module_resources:
        module_resource.resource.version = module_config.version
        if cred_label:
            module_resource.resource.set_label(cred_label)

    logger.debug(
        f'generated resources: {[r.resource.name for r in module_resources]}'
    )
    return module_resources
