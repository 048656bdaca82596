import hashlib
import pytest

import oci.model as om

example_digest = hashlib.sha256('cafebabe'.encode('utf-8')).hexdigest()


def test_name():
    ref = om.OciImageReference('example.org/path:tag')
    assert ref.name == 'path'

    ref = om.OciImageReference(f'example.org/path@sha256:{example_digest}')
    assert ref.name == 'path'

    ref = om.OciImageReference('example.org:1234/some/nested/path:tag')
    assert ref.name == 'path'

    ref = om.OciImageReference('alpine:3')
    assert ref.name == 'alpine'


def test_domain_and_path():
    ref = om.OciImageReference('example.org:1234/some/path:tag')
    assert ref.domain == 'example.org:1234'
    assert ref.path == 'some/path'

    # mimic docker-cli
    ref = om.OciImageReference('library/alpine:3')
    assert ref.domain == 'docker.io'
    assert ref.path == 'library/alpine'

    ref = om.OciImageReference('localhost/alpine:3')
    assert ref.domain == 'localhost'


def test_tag_type():
    ref = om.OciImageReference('example.org/path:symbolic-tag')
    assert ref.tag_type is om.OciTagType.SYMBOLIC
    assert ref.tag == 'symbolic-tag'
    assert not ref.has_digest_tag

    ref = om.OciImageReference(f'example.org/path@sha256:{example_digest}')
    assert ref.tag_type is om.OciTagType.DIGEST
    assert ref.tag is None
    assert ref.digest_tag == f'sha256:{example_digest}'
    assert ref.digest == example_digest

    ref = om.OciImageReference('example.org/path')
    assert ref.tag_type is om.OciTagType.NO_TAG
    assert not ref.has_tag

    ref = om.OciImageReference(f'example.org/path:1.2.3@sha256:{example_digest}')
    assert ref.has_mixed_tag
    assert ref.tag == '1.2.3'


def test_invalid_references():
    with pytest.raises(om.EmptyImageReferenceError):
        om.OciImageReference('')

    with pytest.raises(om.InvalidReferenceFormatError, match='must be lowercase'):
        om.OciImageReference('example.org/Path:1.0')

    with pytest.raises(om.InvalidReferenceFormatError):
        om.OciImageReference('example.org/path:')

    # digest w/ wrong length
    with pytest.raises(om.InvalidReferenceFormatError):
        om.OciImageReference('example.org/path@sha256:abcdef')

    with pytest.raises(om.ImageNameExtractionError):
        om.OciImageReference(example_digest)

    with pytest.raises(om.ImageNameExtractionError):
        om.OciImageReference(f'sha256:{example_digest}')


def test_parse_image_reference():
    name, tag = om.parse_image_reference(
        'europe-docker.pkg.dev/kyma-project/prod/template-operator:1.0.0',
    )
    assert name == 'template-operator'
    assert tag == '1.0.0'

    name, digest = om.parse_image_reference(f'example.org/path@sha256:{example_digest}')
    assert name == 'path'
    assert digest == f'sha256:{example_digest}'

    # symbolic tag is preferred over digest
    name, tag = om.parse_image_reference(f'example.org/path:1.2.3@sha256:{example_digest}')
    assert tag == '1.2.3'

    # floating tags are only rejected by `is_valid_image`
    assert om.parse_image_reference('nginx:latest') == ('nginx', 'latest')

    with pytest.raises(om.NoTagOrDigestError):
        om.parse_image_reference('docker.io/alpine')

    with pytest.raises(om.ImageNameExtractionError):
        om.parse_image_reference(f'sha256:{example_digest}')

    with pytest.raises(om.EmptyImageReferenceError):
        om.parse_image_reference('')


def test_is_valid_image():
    assert om.is_valid_image('nginx:1.25.3')
    assert om.is_valid_image(f'example.org/path@sha256:{example_digest}')

    # does not look like an image at all
    assert om.is_valid_image('nginx') is False
    assert om.is_valid_image('a:') is False
    assert om.is_valid_image('nginx :1.0') is False
    assert om.is_valid_image('nginx:1.0\n') is False
    assert om.is_valid_image('x' * 251 + ':1.0.0') is False

    with pytest.raises(om.DisallowedTagError, match='latest'):
        om.is_valid_image('nginx:latest')

    with pytest.raises(om.DisallowedTagError):
        om.is_valid_image('nginx:MAIN')

    with pytest.raises(om.DisallowedTagError):
        om.is_valid_image('example.org/path:Latest')

    with pytest.raises(om.ImageReferenceError):
        om.is_valid_image('example.org/Upper:1.0')


def test_parse_image_info():
    info = om.parse_image_info('example.org/path:1.2.3')
    assert info.name == 'path'
    assert info.tag == '1.2.3'
    assert info.digest == ''
    assert info.full_url == 'example.org/path:1.2.3'
    assert info.ocm_version == '1.2.3'
    assert info.ocm_resource_name == 'path'

    info = om.parse_image_info(f'example.org/path@sha256:{example_digest}')
    assert info.tag == ''
    assert info.digest == example_digest
    assert info.ocm_version == f'0.0.0+sha256.{example_digest}'
    assert info.ocm_resource_name == f'path-{example_digest[:8]}'

    # digest takes precedence for mixed references
    info = om.parse_image_info(f'example.org/path:1.2.3@sha256:{example_digest}')
    assert info.tag == '1.2.3'
    assert info.ocm_version == f'0.0.0+sha256.{example_digest}'


def test_validate_and_parse_image_info():
    info = om.validate_and_parse_image_info('nginx:1.25.3')
    assert info.name == 'nginx'

    with pytest.raises(om.InvalidReferenceFormatError):
        om.validate_and_parse_image_info('nginx')

    with pytest.raises(om.DisallowedTagError):
        om.validate_and_parse_image_info('nginx:main')
