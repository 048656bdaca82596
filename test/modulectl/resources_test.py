import io
import tarfile

import pytest
import yaml

import modulectl.model
import modulectl.resources as examinee
import ocm


@pytest.fixture
def module_config():
    return modulectl.model.ModuleConfig(
        name='github.com/kyma-project/template-operator',
        version='1.0.0',
        channel='regular',
        manifest='manifest.yaml',
        mandatory=True,
    )


@pytest.fixture
def manifest_path(tmp_path):
    path = tmp_path / 'manifest.yaml'
    path.write_text('apiVersion: v1\nkind: Namespace\n')
    return str(path)


def test_generate_module_resources(module_config, manifest_path):
    module_resources = examinee.generate_module_resources(
        module_config=module_config,
        manifest_path=manifest_path,
    )

    assert [r.resource.name for r in module_resources] == [
        'module-image',
        'metadata',
        'raw-manifest',
    ]
    for module_resource in module_resources:
        assert module_resource.resource.version == '1.0.0'
        assert module_resource.resource.labels == []

    module_image, metadata, raw_manifest = module_resources

    assert module_image.resource.type is ocm.ArtefactType.OCI_ARTEFACT
    assert module_image.resource.relation is ocm.ResourceRelation.EXTERNAL
    assert module_image.resource.access is None
    assert module_image.blob is None

    assert metadata.resource.type is ocm.ArtefactType.PLAIN_TEXT
    assert metadata.resource.relation is ocm.ResourceRelation.LOCAL

    assert raw_manifest.resource.type is ocm.ArtefactType.DIRECTORY_TREE
    assert raw_manifest.resource.relation is ocm.ResourceRelation.LOCAL


def test_generate_module_resources_with_default_cr(module_config, manifest_path, tmp_path):
    default_cr_path = tmp_path / 'default-cr.yaml'
    default_cr_path.write_text('kind: Sample\n')

    module_resources = examinee.generate_module_resources(
        module_config=module_config,
        manifest_path=manifest_path,
        default_cr_path=str(default_cr_path),
    )

    assert len(module_resources) == 4
    default_cr = module_resources[-1]
    assert default_cr.resource.name == 'default-cr'
    assert default_cr.resource.type is ocm.ArtefactType.DIRECTORY_TREE


def test_credentials_label(module_config, manifest_path):
    module_resources = examinee.generate_module_resources(
        module_config=module_config,
        manifest_path=manifest_path,
        registry_credential_selector='operator.kyma-project.io/oci-registry-cred=test-operator',
    )

    for module_resource in module_resources:
        label, = module_resource.resource.labels
        assert label.name == 'oci-registry-cred'
        assert label.value == {'operator.kyma-project.io/oci-registry-cred': 'test-operator'}
        assert label.version is None


def test_credentials_label_without_selector():
    assert examinee.credentials_label('') is None


def test_invalid_credentials_selector(module_config, manifest_path):
    with pytest.raises(examinee.ResourceGenerationError, match='failed to parse label selector'):
        examinee.generate_module_resources(
            module_config=module_config,
            manifest_path=manifest_path,
            registry_credential_selector='a in (b',
        )


def test_metadata_blob(module_config):
    blob = examinee.metadata_resource(module_config).blob()

    content = b''.join(blob.content)
    assert blob.size == len(content)
    assert blob.media_type == 'application/x-yaml'

    metadata = yaml.safe_load(content)
    assert metadata['name'] == 'github.com/kyma-project/template-operator'
    assert metadata['mandatory'] is True
    assert 'manifestPath' not in metadata


def test_directory_blob(manifest_path):
    module_resource = examinee.directory_resource(name='raw-manifest', path=manifest_path)

    blob = module_resource.blob()
    content = b''.join(blob.content)
    assert blob.size == len(content)
    assert blob.media_type == 'application/x-tar'

    with tarfile.open(fileobj=io.BytesIO(content)) as tf:
        member, = tf.getmembers()
        assert member.name == 'manifest.yaml'
        assert tf.extractfile(member).read() == b'apiVersion: v1\nkind: Namespace\n'


def test_directory_blob_is_read_lazily(tmp_path):
    module_resource = examinee.directory_resource(
        name='default-cr',
        path=str(tmp_path / 'absent.yaml'),
    )

    with pytest.raises(FileNotFoundError):
        module_resource.blob()
