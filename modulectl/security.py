import collections.abc
import logging
import os

import dacite
import yaml

import ci.util
import modulectl.descriptor
import modulectl.manifest
import modulectl.model
import ocm

logger = logging.getLogger(__name__)

SEC_BASE_LABEL_KEY = 'security.kyma-project.io'
SEC_SCAN_BASE_LABEL_KEY = 'scan.security.kyma-project.io'
SCAN_ENABLED = 'enabled'
LABEL_VERSION = 'v1'


class SecurityConfigFileDoesNotExist(FileNotFoundError):
    pass


class SecurityConfigError(ValueError):
    pass


def _label(base_key: str, key: str, value) -> ocm.Label:
    return ocm.Label(
        name=f'{base_key}/{key}',
        value=value,
        version=LABEL_VERSION,
    )


def parse_security_config_data(path: str) -> modulectl.model.SecurityScanConfig:
    if not os.path.isfile(path):
        raise SecurityConfigFileDoesNotExist(f'security config file does not exist: {path}')

    try:
        with open(path) as f:
            raw = ci.util.load_yaml(f)
    except OSError as oe:
        raise SecurityConfigError(f'failed to read security config file: {oe}') from oe
    except (yaml.YAMLError, ValueError) as e:
        raise SecurityConfigError(f'failed to unmarshal security config file: {e}') from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise SecurityConfigError(
            'failed to unmarshal security config file: expected a mapping, found '
            f'{type(raw).__name__}'
        )

    try:
        return modulectl.model.SecurityScanConfig.from_dict(raw)
    except dacite.DaciteError as de:
        raise SecurityConfigError(f'failed to unmarshal security config file: {de}') from de


def merge_and_deduplicate_images(
    declared_images: collections.abc.Iterable[str],
    discovered_images: collections.abc.Iterable[str],
) -> list[str]:
    '''
    returns the union of the given image-lists (w/o empty entries), in sorted order
    '''
    images = {
        image for image in (*declared_images, *discovered_images)
        if image
    }
    logger.debug(f'deduplicated images: {sorted(images)}')

    return sorted(images)


def append_security_labels_to_sources(
    security_config: modulectl.model.SecurityScanConfig,
    sources: collections.abc.Iterable[ocm.Source],
):
    for source in sources:
        for key, value in (
            ('rc-tag', security_config.rcTag),
            ('language', security_config.mend.language),
            ('dev-branch', security_config.devBranch),
            ('subprojects', security_config.mend.subProjects),
            ('exclude', ','.join(security_config.mend.exclude)),
        ):
            source.labels.append(_label(SEC_SCAN_BASE_LABEL_KEY, key, value))


def append_security_scan_config(
    component_descriptor: ocm.ComponentDescriptor,
    security_config: modulectl.model.SecurityScanConfig,
    manifest_path: str,
):
    '''
    attaches the given security-scan-config to the given component-descriptor:

    - the component is labelled as subject to scanning
    - sources receive the scan-parameters (rc-tag, language, dev-branch, subprojects, exclude)
    - images found in the manifest, as well as explicitly declared (protecode) images, are
      added as (third-party) image resources
    - rc-tag and dev-branch (if set) are added as component labels
    '''
    component = component_descriptor.component
    component.labels.append(_label(SEC_BASE_LABEL_KEY, 'scan', SCAN_ENABLED))

    append_security_labels_to_sources(
        security_config=security_config,
        sources=component.sources,
    )

    try:
        manifest_images = modulectl.manifest.extract_images_from_manifest(manifest_path)
    except (modulectl.manifest.ManifestParseError, modulectl.manifest.ImageExtractionError) as e:
        raise SecurityConfigError(f'failed to extract images from manifest: {e}') from e

    images = merge_and_deduplicate_images(
        declared_images=security_config.protecode,
        discovered_images=manifest_images,
    )

    try:
        modulectl.descriptor.add_oci_artifacts(
            component_descriptor=component_descriptor,
            images=images,
        )
    except modulectl.descriptor.ComponentDescriptorError as cde:
        raise SecurityConfigError(
            f'failed to add images to component descriptor: {cde}'
        ) from cde

    if security_config.devBranch:
        component.labels.append(
            _label(SEC_BASE_LABEL_KEY, 'dev-branch', security_config.devBranch)
        )
    if security_config.rcTag:
        component.labels.append(
            _label(SEC_BASE_LABEL_KEY, 'rc-tag', security_config.rcTag)
        )
