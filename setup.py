import setuptools
import os

own_dir = os.path.abspath(os.path.dirname(__file__))


def _requirements(fname: str):
    with open(os.path.join(own_dir, fname)) as f:
        for line in f.readlines():
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            yield line


def requirements():
    yield from _requirements('requirements.txt')


def test_requirements():
    yield from _requirements('requirements.test.txt')


def version():
    version_path = os.environ.get(
        'version_file',
        os.path.join(own_dir, 'modulectl', 'VERSION'),
    )

    with open(version_path) as f:
        return f.read().strip()


setuptools.setup(
    name='modulectl',
    version=version(),
    description='packages kyma modules into OCM component-archives and ModuleTemplates',
    long_description='packages kyma modules into OCM component-archives and ModuleTemplates',
    long_description_content_type='text/markdown',
    python_requires='>=3.11',
    py_modules=(
        'gitutil',
        'http_requests',
        'ioutil',
        'tarutil',
    ),
    packages=(
        'ci',
        'kube',
        'modulectl',
        'oci',
        'ocm',
    ),
    package_data={
        'modulectl': (
            'VERSION',
        ),
        'ocm': (
            'ocm-component-descriptor-schema.yaml',
        ),
    },
    install_requires=list(requirements()),
    extras_require={
        'test': list(test_requirements()),
    },
    entry_points={
        'console_scripts': [
            'modulectl = modulectl.__main__:main',
        ],
    },
)
