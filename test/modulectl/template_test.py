import pytest
import yaml

import modulectl.descriptor
import modulectl.model
import modulectl.template as examinee


@pytest.fixture
def module_config():
    return modulectl.model.ModuleConfig(
        name='github.com/kyma-project/template-operator',
        version='1.0.0',
        channel='regular',
        manifest='https://example.org/template-operator.yaml',
        labels={'foo': 'bar'},
        annotations={'operator.kyma-project.io/doc-url': 'https://kyma-project.io'},
    )


@pytest.fixture
def component_descriptor():
    return modulectl.descriptor.initialise(
        name='github.com/kyma-project/template-operator',
        version='1.0.0',
    )


def test_render_module_template(module_config, component_descriptor):
    module_template = examinee.render_module_template(
        module_config=module_config,
        component_descriptor=component_descriptor,
    )

    assert module_template['apiVersion'] == 'operator.kyma-project.io/v1beta2'
    assert module_template['kind'] == 'ModuleTemplate'

    metadata = module_template['metadata']
    assert metadata['name'] == 'template-operator-regular'
    assert metadata['namespace'] == 'kcp-system'
    assert metadata['labels'] == {
        'foo': 'bar',
        'operator.kyma-project.io/module-name': 'template-operator',
    }
    assert metadata['annotations'] == {
        'operator.kyma-project.io/doc-url': 'https://kyma-project.io',
        'operator.kyma-project.io/module-version': '1.0.0',
        'operator.kyma-project.io/is-cluster-scoped': 'false',
    }

    spec = module_template['spec']
    assert list(spec) == ['channel', 'mandatory', 'descriptor', 'resources']
    assert spec['channel'] == 'regular'
    assert spec['mandatory'] is False
    assert spec['descriptor'] == component_descriptor.as_dict()
    assert spec['resources'] == [
        {'name': 'rawManifest', 'link': 'https://example.org/template-operator.yaml'},
    ]


def test_render_module_template_with_all_options(module_config, component_descriptor):
    module_config.resourceName = 'template-operator-1.0.0'
    module_config.beta = True
    module_config.internal = True
    module_config.mandatory = True
    module_config.manager = modulectl.model.Manager(
        name='template-operator-controller-manager',
        namespace='template-operator-system',
        group='apps',
        version='v1',
        kind='Deployment',
    )
    module_config.resources = {
        'rawManifest': 'https://example.org/overridden.yaml',
        'crds': 'https://example.org/crds.yaml',
    }

    module_template = examinee.render_module_template(
        module_config=module_config,
        component_descriptor=component_descriptor,
        default_cr_data=b'apiVersion: operator.kyma-project.io/v1alpha1\nkind: Sample\n',
        is_crd_cluster_scoped=True,
    )

    metadata = module_template['metadata']
    assert metadata['name'] == 'template-operator-1.0.0'
    assert metadata['labels']['operator.kyma-project.io/beta'] == 'true'
    assert metadata['labels']['operator.kyma-project.io/internal'] == 'true'
    assert metadata['annotations']['operator.kyma-project.io/is-cluster-scoped'] == 'true'

    spec = module_template['spec']
    assert list(spec) == ['channel', 'mandatory', 'data', 'manager', 'descriptor', 'resources']
    assert spec['mandatory'] is True
    assert spec['data'] == {
        'apiVersion': 'operator.kyma-project.io/v1alpha1',
        'kind': 'Sample',
    }
    assert spec['manager'] == {
        'name': 'template-operator-controller-manager',
        'namespace': 'template-operator-system',
        'group': 'apps',
        'version': 'v1',
        'kind': 'Deployment',
    }
    # sorted by name; explicitly declared resources take precedence
    assert spec['resources'] == [
        {'name': 'crds', 'link': 'https://example.org/crds.yaml'},
        {'name': 'rawManifest', 'link': 'https://example.org/overridden.yaml'},
    ]


def test_manager_without_namespace(module_config):
    module_config.manager = modulectl.model.Manager(
        name='manager',
        group='apps',
        version='v1',
        kind='Deployment',
    )

    assert 'namespace' not in examinee.manager(module_config)


def test_render_module_template_invalid_default_cr(module_config, component_descriptor):
    with pytest.raises(examinee.ModuleTemplateError, match='failed to parse default CR'):
        examinee.render_module_template(
            module_config=module_config,
            component_descriptor=component_descriptor,
            default_cr_data=b'kind: [unbalanced\n',
        )


def test_render_module_template_requires_inputs(module_config, component_descriptor):
    with pytest.raises(examinee.ModuleTemplateError):
        examinee.render_module_template(
            module_config=None,
            component_descriptor=component_descriptor,
        )

    with pytest.raises(examinee.ModuleTemplateError):
        examinee.render_module_template(
            module_config=module_config,
            component_descriptor=None,
        )


def test_write_module_template(module_config, component_descriptor, tmp_path):
    module_template = examinee.render_module_template(
        module_config=module_config,
        component_descriptor=component_descriptor,
    )
    output_path = tmp_path / 'template.yaml'

    examinee.write_module_template(
        module_template=module_template,
        output_path=str(output_path),
    )

    with open(output_path) as f:
        content = f.read()

    # key-order is retained
    assert content.startswith('apiVersion: operator.kyma-project.io/v1beta2\nkind: ModuleTemplate\n')
    assert yaml.safe_load(content) == module_template


def test_write_module_template_fails(tmp_path):
    with pytest.raises(examinee.ModuleTemplateError, match='failed to write file'):
        examinee.write_module_template(
            module_template={},
            output_path=str(tmp_path / 'absent' / 'template.yaml'),
        )
