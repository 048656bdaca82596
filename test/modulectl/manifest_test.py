import textwrap

import pytest
import yaml

import modulectl.manifest as examinee


def deployment(
    containers: list[dict],
    init_containers: list[dict]=(),
    kind: str='Deployment',
) -> str:
    return yaml.safe_dump({
        'apiVersion': 'apps/v1',
        'kind': kind,
        'metadata': {'name': 'template-operator-controller-manager'},
        'spec': {
            'template': {
                'spec': {
                    'containers': list(containers),
                    'initContainers': list(init_containers),
                },
            },
        },
    })


crd = textwrap.dedent('''\
    apiVersion: apiextensions.k8s.io/v1
    kind: CustomResourceDefinition
    metadata:
      name: samples.operator.kyma-project.io
    spec:
      group: operator.kyma-project.io
      names:
        kind: Sample
      scope: Cluster
''')


def write_manifest(tmp_path, *documents: str) -> str:
    path = tmp_path / 'manifest.yaml'
    path.write_text('---\n'.join(documents))
    return str(path)


def test_iter_documents():
    content = textwrap.dedent('''\
        a: 1
        ---
        b: '---'
        --- c: 3
        ---

        ---
    ''')

    documents = list(examinee.iter_documents(content))

    assert documents == [
        'a: 1\n',
        "\nb: '---'\n",
        ' c: 3\n',
        '\n\n',
        '\n',
    ]


def test_parse_manifest_content_skips_irrelevant_documents():
    content = textwrap.dedent('''\
        # only a comment
        ---
        apiVersion: v1
        kind: Namespace
        metadata:
          name: kyma-system
        ---
        - not
        - a
        - mapping
        ---
        kind: ConfigMap
        ---
        apiVersion: v1
        ---
    ''')

    manifests = examinee.parse_manifest_content(content)

    assert manifests == [
        {'apiVersion': 'v1', 'kind': 'Namespace', 'metadata': {'name': 'kyma-system'}},
    ]


def test_parse_manifest_content_invalid_yaml():
    with pytest.raises(examinee.ManifestParseError, match='document 2'):
        examinee.parse_manifest_content('a: 1\n---\nb: [unbalanced\n')


@pytest.mark.parametrize('value', (
    'europe-docker.pkg.dev/kyma-project/prod/template-operator:1.0.0',
    'kyma-project/template-operator:v1',
    'nginx:1.25.3',
))
def test_looks_like_image_reference(value):
    assert examinee.looks_like_image_reference(value)


@pytest.mark.parametrize('value', (
    None,
    42,
    '',
    'ab',
    'true',
    'some value',
    'http://example.org',
    'a/b/c',
    'x' * 257,
))
def test_does_not_look_like_image_reference(value):
    assert not examinee.looks_like_image_reference(value)


def test_extract_images_from_manifest(tmp_path):
    path = write_manifest(
        tmp_path,
        deployment(
            containers=[
                {
                    'name': 'manager',
                    'image': 'europe-docker.pkg.dev/kyma-project/prod/template-operator:1.0.0',
                    'env': [
                        {'name': 'WEBHOOK_IMAGE', 'value': 'kyma-project/webhook:v2'},
                        {'name': 'LOG_LEVEL', 'value': 'debug'},
                        {'name': 'FROM_SECRET', 'valueFrom': {'secretKeyRef': {'name': 'x'}}},
                    ],
                },
                # duplicates are dropped
                {
                    'name': 'sidecar',
                    'image': 'europe-docker.pkg.dev/kyma-project/prod/template-operator:1.0.0',
                },
            ],
            init_containers=[
                {'name': 'init', 'image': 'busybox:1.36'},
            ],
        ),
        deployment(
            containers=[{'name': 'db', 'image': 'postgres:16'}],
            kind='StatefulSet',
        ),
        # images of other kinds are not considered
        deployment(
            containers=[{'name': 'job', 'image': 'alpine:3.19'}],
            kind='DaemonSet',
        ),
        crd,
    )

    images = examinee.extract_images_from_manifest(path)

    assert sorted(images) == [
        'busybox:1.36',
        'europe-docker.pkg.dev/kyma-project/prod/template-operator:1.0.0',
        'kyma-project/webhook:v2',
        'postgres:16',
    ]


def test_extract_images_rejects_floating_tags(tmp_path):
    path = write_manifest(
        tmp_path,
        deployment(containers=[{'name': 'app', 'image': 'app:latest'}]),
    )

    with pytest.raises(examinee.ImageExtractionError) as excinfo:
        examinee.extract_images_from_manifest(path)

    message = str(excinfo.value)
    assert "failed to extract images from 'Deployment' kind" in message
    assert 'latest' in message


def test_extract_images_rejects_floating_tags_in_env(tmp_path):
    path = write_manifest(
        tmp_path,
        deployment(containers=[{
            'name': 'app',
            'image': 'app:1.0.0',
            'env': [{'name': 'IMG', 'value': 'europe-docker.pkg.dev/kyma-project/app:main'}],
        }]),
    )

    with pytest.raises(examinee.ImageExtractionError, match='in env var'):
        examinee.extract_images_from_manifest(path)


def test_extract_images_from_absent_manifest(tmp_path):
    with pytest.raises(examinee.ManifestParseError, match='failed to parse manifest at'):
        examinee.extract_images_from_manifest(str(tmp_path / 'absent.yaml'))


def test_find_crd_scope():
    manifests = examinee.parse_manifest_content(crd)

    assert examinee.find_crd_scope(manifests, 'operator.kyma-project.io', 'Sample') == 'Cluster'
    assert examinee.find_crd_scope(manifests, 'operator.kyma-project.io', 'Other') is None
    assert examinee.find_crd_scope(manifests, 'example.org', 'Sample') is None


def test_is_crd_cluster_scoped(tmp_path):
    manifest_path = write_manifest(tmp_path, crd)
    default_cr_path = tmp_path / 'default-cr.yaml'

    default_cr_path.write_text(textwrap.dedent('''\
        apiVersion: operator.kyma-project.io/v1alpha1
        kind: Sample
        metadata:
          name: sample-yaml
    '''))
    assert examinee.is_crd_cluster_scoped(str(default_cr_path), manifest_path) is True

    default_cr_path.write_text('apiVersion: operator.kyma-project.io/v1alpha1\nkind: Other\n')
    assert examinee.is_crd_cluster_scoped(str(default_cr_path), manifest_path) is False

    namespaced_manifest_path = write_manifest(tmp_path, crd.replace('Cluster', 'Namespaced'))
    default_cr_path.write_text('apiVersion: operator.kyma-project.io/v1alpha1\nkind: Sample\n')
    assert examinee.is_crd_cluster_scoped(str(default_cr_path), namespaced_manifest_path) is False

    # no default CR
    assert examinee.is_crd_cluster_scoped('', manifest_path) is False


def test_is_crd_cluster_scoped_errors(tmp_path):
    manifest_path = write_manifest(tmp_path, crd)

    with pytest.raises(examinee.ManifestParseError, match='error reading CRD file'):
        examinee.is_crd_cluster_scoped(str(tmp_path / 'absent.yaml'), manifest_path)

    default_cr_path = tmp_path / 'default-cr.yaml'
    default_cr_path.write_text('kind: [unbalanced\n')
    with pytest.raises(examinee.ManifestParseError, match='error parsing default CR'):
        examinee.is_crd_cluster_scoped(str(default_cr_path), manifest_path)

    default_cr_path.write_text('kind: Sample\n')
    with pytest.raises(examinee.ManifestParseError, match='error finding CRD file'):
        examinee.is_crd_cluster_scoped(str(default_cr_path), str(tmp_path / 'absent.yaml'))
