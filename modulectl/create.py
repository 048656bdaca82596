import dataclasses
import logging

import gitutil
import kube.selector
import modulectl.archive
import modulectl.descriptor
import modulectl.gitsources
import modulectl.manifest
import modulectl.model
import modulectl.moduleconfig
import modulectl.resources
import modulectl.security
import modulectl.template
import modulectl.validation
import ocm

logger = logging.getLogger(__name__)

DEFAULT_MODULE_CONFIG_FILE = 'module-config.yaml'
DEFAULT_OUTPUT_DIR = './component-archive'
DEFAULT_TEMPLATE_OUTPUT = 'template.yaml'


class CreateModuleError(RuntimeError):
    pass


@dataclasses.dataclass(kw_only=True)
class Options:
    module_config_file: str = DEFAULT_MODULE_CONFIG_FILE
    git_remote: str = ''
    registry_credential_selector: str = ''
    output_dir: str = DEFAULT_OUTPUT_DIR
    template_output: str = DEFAULT_TEMPLATE_OUTPUT

    def validate(self):
        if not self.module_config_file:
            raise modulectl.validation.InvalidOptionError(
                'opts.ModuleConfigFile must not be empty'
            )

        if not self.output_dir:
            raise modulectl.validation.InvalidOptionError('opts.OutputDir must not be empty')

        if not self.template_output:
            raise modulectl.validation.InvalidOptionError('opts.TemplateOutput must not be empty')

        if self.registry_credential_selector:
            try:
                kube.selector.parse(self.registry_credential_selector)
            except kube.selector.LabelSelectorError as lse:
                raise modulectl.validation.InvalidOptionError(
                    f'opts.RegistryCredSelector is invalid: {lse}'
                ) from lse


@dataclasses.dataclass
class CreateResult:
    module_config: modulectl.model.ModuleConfig
    component_descriptor: ocm.ComponentDescriptor
    archive: modulectl.archive.ComponentArchive
    module_template: dict


def _apply_security_config(
    module_config: modulectl.model.ModuleConfig,
    component_descriptor: ocm.ComponentDescriptor,
):
    try:
        security_config = modulectl.security.parse_security_config_data(module_config.security)
    except modulectl.security.SecurityConfigFileDoesNotExist as e:
        logger.warning(f'{e} - skipping security scanners config')
        return
    except modulectl.security.SecurityConfigError as sce:
        raise CreateModuleError(f'failed to parse security config data: {sce}') from sce

    try:
        modulectl.security.append_security_scan_config(
            component_descriptor=component_descriptor,
            security_config=security_config,
            manifest_path=module_config.manifestPath,
        )
    except modulectl.security.SecurityConfigError as sce:
        raise CreateModuleError(f'failed to append security scan config: {sce}') from sce


def create_module(
    options: Options,
    module_config_service: modulectl.moduleconfig.ModuleConfigService=None,
    git_service: gitutil.GitService=None,
) -> CreateResult:
    '''
    packages the module declared by the given options' module-config: a component-descriptor is
    assembled (resources, git-sources, security-scan metadata), stored (along with the module's
    local resources) into a component-archive, and wrapped into a ModuleTemplate.

    Temporary files (e.g. downloaded manifests) are removed, regardless of whether packaging
    succeeded or not. Note that the component-archive is not rolled back upon failure.
    '''
    options.validate()

    if not module_config_service:
        module_config_service = modulectl.moduleconfig.ModuleConfigService()
    if not git_service:
        git_service = gitutil.GitService()

    try:
        return _create_module(
            options=options,
            module_config_service=module_config_service,
            git_service=git_service,
        )
    finally:
        module_config_service.cleanup_temp_files()


def _create_module(
    options: Options,
    module_config_service: modulectl.moduleconfig.ModuleConfigService,
    git_service: gitutil.GitService,
) -> CreateResult:
    try:
        module_config = module_config_service.parse_and_validate(options.module_config_file)
    except modulectl.moduleconfig.ModuleConfigError as mce:
        raise CreateModuleError(f'failed to parse module config: {mce}') from mce

    builder = modulectl.descriptor.ComponentDescriptorBuilder(
        name=module_config.name,
        version=module_config.version,
    )
    component_descriptor = builder.component_descriptor

    try:
        module_resources = modulectl.resources.generate_module_resources(
            module_config=module_config,
            manifest_path=module_config.manifestPath,
            default_cr_path=module_config.defaultCRPath,
            registry_credential_selector=options.registry_credential_selector,
        )
    except modulectl.resources.ResourceGenerationError as rge:
        raise CreateModuleError(f'failed to generate module resources: {rge}') from rge
    builder.add_resources(module_resources)

    if options.git_remote:
        try:
            modulectl.gitsources.GitSourcesService(git_service).add_git_sources(
                component_descriptor=component_descriptor,
                repo_url=options.git_remote,
                module_version=module_config.version,
            )
        except modulectl.gitsources.GitSourceError as gse:
            raise CreateModuleError(f'failed to add git sources: {gse}') from gse

    logger.info('Configuring security scanners config')
    if module_config.security and options.git_remote:
        _apply_security_config(
            module_config=module_config,
            component_descriptor=component_descriptor,
        )

    try:
        component_descriptor = builder.build()
    except modulectl.descriptor.ComponentDescriptorError as cde:
        raise CreateModuleError(str(cde)) from cde

    try:
        is_crd_cluster_scoped = modulectl.manifest.is_crd_cluster_scoped(
            default_cr_path=module_config.defaultCRPath,
            manifest_path=module_config.manifestPath,
        )
    except modulectl.manifest.ManifestParseError as mpe:
        raise CreateModuleError(f'failed to determine if CRD is cluster scoped: {mpe}') from mpe

    logger.info('Creating component archive')
    try:
        archive = modulectl.archive.create_component_archive(
            component_descriptor=component_descriptor,
            output_dir=options.output_dir,
        )
    except (
        modulectl.archive.ComponentArchiveError,
        modulectl.descriptor.ComponentDescriptorError,
        OSError,
    ) as e:
        raise CreateModuleError(f'failed to create component archive: {e}') from e

    try:
        modulectl.archive.add_module_resources_to_archive(
            archive=archive,
            module_resources=module_resources,
        )
    except (
        modulectl.archive.ComponentArchiveError,
        modulectl.descriptor.ComponentDescriptorError,
        OSError,
    ) as e:
        raise CreateModuleError(
            f'failed to add module resources to component archive: {e}'
        ) from e

    default_cr_data = b''
    if module_config.defaultCRPath:
        try:
            default_cr_data = module_config_service.get_default_cr_data(module_config.defaultCRPath)
        except modulectl.moduleconfig.ModuleConfigError as mce:
            raise CreateModuleError(f'failed to get default CR data: {mce}') from mce

    logger.info('Generating ModuleTemplate')
    try:
        module_template = modulectl.template.render_module_template(
            module_config=module_config,
            component_descriptor=component_descriptor,
            default_cr_data=default_cr_data,
            is_crd_cluster_scoped=is_crd_cluster_scoped,
        )
        modulectl.template.write_module_template(
            module_template=module_template,
            output_path=options.template_output,
        )
    except modulectl.template.ModuleTemplateError as mte:
        raise CreateModuleError(f'failed to generate module template: {mte}') from mte

    return CreateResult(
        module_config=module_config,
        component_descriptor=component_descriptor,
        archive=archive,
        module_template=module_template,
    )
