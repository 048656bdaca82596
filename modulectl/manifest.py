import collections.abc
import logging
import re
import typing

import yaml

import ci.util
import oci.model

logger = logging.getLogger(__name__)

KIND_DEPLOYMENT = 'Deployment'
KIND_STATEFUL_SET = 'StatefulSet'
KIND_CRD = 'CustomResourceDefinition'
SCOPE_CLUSTER = 'Cluster'

workload_kinds = (KIND_DEPLOYMENT, KIND_STATEFUL_SET)

# env-values are only considered if they look like an image reference
# registry-host/path/name:tag (or @digest)
full_image_regex = re.compile(
    r'^[a-zA-Z0-9\-.]+\.[a-zA-Z]{2,}(/[a-zA-Z0-9\-._]+)+[:@][a-zA-Z0-9\-._]+$'
)
# namespace/name:tag (dockerhub)
docker_hub_image_regex = re.compile(r'^[a-zA-Z0-9\-._]+/[a-zA-Z0-9\-._]+[:@][a-zA-Z0-9\-._]+$')
# name:tag
simple_image_regex = re.compile(r'^[a-zA-Z0-9\-._]+:[a-zA-Z0-9\-._]+$')

_document_separator_regex = re.compile(r'^---(\s|$)')


class ManifestParseError(ValueError):
    pass


class ImageExtractionError(ValueError):
    pass


def iter_documents(content: str) -> collections.abc.Generator[str, None, None]:
    '''
    splits the given multi-document YAML stream into documents. Only lines starting with `---`
    are considered as separators (occurrences of `---` elsewhere are left untouched).
    '''
    lines = []
    for line in content.splitlines(keepends=True):
        if _document_separator_regex.match(line):
            yield ''.join(lines)
            lines = [line[3:]]
            continue
        lines.append(line)

    yield ''.join(lines)


def parse_manifest_content(content: str) -> list[dict]:
    '''
    returns the (Kubernetes-)objects contained in the given YAML stream. Documents that are empty,
    or lack `kind` or `apiVersion` are skipped.
    '''
    manifests = []
    for idx, document in enumerate(iter_documents(content)):
        try:
            parsed = ci.util.load_yaml(document)
        except (yaml.YAMLError, ValueError) as e:
            raise ManifestParseError(f'failed to parse YAML document {idx + 1}: {e}') from e

        if not parsed:
            continue

        if not isinstance(parsed, dict):
            logger.debug(f'skipping document {idx + 1}: not a mapping')
            continue

        if not parsed.get('kind') or not parsed.get('apiVersion'):
            logger.debug(f'skipping document {idx + 1}: missing kind or apiVersion')
            continue

        manifests.append(parsed)

    return manifests


def parse_manifest(path: str) -> list[dict]:
    try:
        with open(path) as f:
            content = f.read()
    except OSError as oe:
        raise ManifestParseError(f'failed to read manifest file {path}: {oe}') from oe

    return parse_manifest_content(content)


def looks_like_image_reference(value: str) -> bool:
    '''
    heuristically determines whether given value (typically from a container's env) is an
    image reference
    '''
    if not isinstance(value, str):
        return False

    if not 3 <= len(value) <= 256:
        return False

    if any(c in value for c in ' \t\n\r'):
        return False

    has_colon = ':' in value
    has_slash = '/' in value
    dot_count = value.count('.')
    first_dot_pos = value.find('.')

    if not has_colon and not dot_count:
        return False

    if dot_count and has_slash:
        if 0 < first_dot_pos < len(value) - 3 and dot_count >= 2:
            return bool(full_image_regex.fullmatch(value))
        return bool(docker_hub_image_regex.fullmatch(value))

    if has_slash:
        return bool(docker_hub_image_regex.fullmatch(value))

    return bool(simple_image_regex.fullmatch(value))


def _nested(obj: dict, *path: str) -> typing.Any:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _iter_container_images(
    containers: list,
    attribute_path: str,
) -> collections.abc.Generator[str, None, None]:
    for container in containers:
        if not isinstance(container, dict):
            continue

        if isinstance(image := container.get('image'), str):
            try:
                if oci.model.is_valid_image(image):
                    yield image
            except oci.model.ImageReferenceError as ire:
                raise ImageExtractionError(
                    f'invalid image {image!r} in {attribute_path}: {ire}'
                ) from ire

        for env in container.get('env') or ():
            if not isinstance(env, dict):
                continue
            value = env.get('value')
            if not looks_like_image_reference(value):
                continue

            try:
                if oci.model.is_valid_image(value):
                    yield value
            except oci.model.ImageReferenceError as ire:
                raise ImageExtractionError(f'invalid image {value!r} in env var: {ire}') from ire


def iter_workload_images(manifest: dict) -> collections.abc.Generator[str, None, None]:
    if manifest.get('kind') not in workload_kinds:
        return

    for containers_attr in ('containers', 'initContainers'):
        path = ('spec', 'template', 'spec', containers_attr)
        if not isinstance(containers := _nested(manifest, *path), list):
            continue

        yield from _iter_container_images(
            containers=containers,
            attribute_path='.'.join(path),
        )


def extract_images(manifests: collections.abc.Iterable[dict]) -> set[str]:
    images = set()
    for manifest in manifests:
        try:
            images.update(iter_workload_images(manifest))
        except ImageExtractionError as iee:
            raise ImageExtractionError(
                f'failed to extract images from {manifest.get("kind")!r} kind: {iee}'
            ) from iee

    return images


def extract_images_from_manifest(manifest_path: str) -> list[str]:
    '''
    returns the (deduplicated) container-images referenced from workloads (Deployments and
    StatefulSets) contained in the given manifest-file, in no particular order. Images are
    read from containers, init-containers, and from env-values which look like image references.

    Extraction is aborted (without returning any images) if any of the found images is invalid
    (e.g. untagged, or using one of the disallowed tags `latest` or `main`).
    '''
    try:
        manifests = parse_manifest(manifest_path)
    except ManifestParseError as mpe:
        raise ManifestParseError(f'failed to parse manifest at {manifest_path!r}: {mpe}') from mpe

    images = extract_images(manifests)
    logger.debug(f'found images in {manifest_path}: {sorted(images)}')

    return list(images)


def find_crd_scope(
    manifests: collections.abc.Iterable[dict],
    group: str,
    kind: str,
) -> str | None:
    for manifest in manifests:
        if manifest.get('kind') != KIND_CRD:
            continue
        if _nested(manifest, 'spec', 'group') != group:
            continue
        if _nested(manifest, 'spec', 'names', 'kind') != kind:
            continue
        return _nested(manifest, 'spec', 'scope')

    return None


def is_crd_cluster_scoped(default_cr_path: str, manifest_path: str) -> bool:
    '''
    determines whether the CustomResourceDefinition (contained in given manifest) of given
    default custom resource is cluster-scoped. If there is no default custom resource, or no
    matching CRD is found, `False` is returned.
    '''
    if not default_cr_path:
        return False

    try:
        with open(default_cr_path) as f:
            custom_resource = ci.util.load_yaml(f)
    except OSError as oe:
        raise ManifestParseError(f'error reading CRD file: {oe}') from oe
    except (yaml.YAMLError, ValueError) as e:
        raise ManifestParseError(f'error parsing default CR: {e}') from e

    if not isinstance(custom_resource, dict):
        custom_resource = {}

    group = str(custom_resource.get('apiVersion') or '').split('/')[0]
    kind = custom_resource.get('kind') or ''

    try:
        manifests = parse_manifest(manifest_path)
    except ManifestParseError as mpe:
        raise ManifestParseError(
            f'error finding CRD file in the {manifest_path!r} file: {mpe}'
        ) from mpe

    return find_crd_scope(manifests=manifests, group=group, kind=kind) == SCOPE_CLUSTER
