import collections.abc
import logging

import oci.model
import ocm
import ocm.validate
import modulectl.resources

logger = logging.getLogger(__name__)

PROVIDER = 'kyma-project.io'
BUILT_BY_LABEL = 'kyma-project.io/built-by'
BUILT_BY_VALUE = 'modulectl'
IMAGE_TYPE_LABEL = 'scan.security.kyma-project.io/type'
THIRD_PARTY_IMAGE_TYPE = 'third-party-image'
LABEL_VERSION = 'v1'
IMAGE_REFERENCE_IDENTITY_ATTRIBUTE = 'image-reference'


class ComponentDescriptorError(ValueError):
    pass


def initialise(
    name: str,
    version: str,
) -> ocm.ComponentDescriptor:
    '''
    returns a new (empty) component-descriptor for the given module
    '''
    return ocm.ComponentDescriptor(
        meta=ocm.Metadata(
            schemaVersion=ocm.SchemaVersion.V2,
        ),
        component=ocm.Component(
            name=name,
            version=version,
            provider=PROVIDER,
            labels=[
                ocm.Label(
                    name=BUILT_BY_LABEL,
                    value=BUILT_BY_VALUE,
                    version=LABEL_VERSION,
                ),
            ],
        ),
    )


def image_type_label() -> ocm.Label:
    return ocm.Label(
        name=IMAGE_TYPE_LABEL,
        value=THIRD_PARTY_IMAGE_TYPE,
        version=LABEL_VERSION,
    )


def oci_artifact_resource(image_reference: str) -> ocm.Resource:
    '''
    returns an (external) resource referencing the given (third-party) image.

    For digest-pinned images, both name and version are derived from the digest, as the
    digest itself is not a valid resource-version.
    '''
    try:
        if not oci.model.is_valid_image(image_reference):
            raise oci.model.InvalidReferenceFormatError(
                f'invalid image format: {image_reference}'
            )
        image_info = oci.model.parse_image_info(image_reference)
    except oci.model.ImageReferenceError as ire:
        raise ComponentDescriptorError(
            f'image validation failed for {image_reference}: {ire}'
        ) from ire

    return ocm.Resource(
        name=image_info.ocm_resource_name,
        version=image_info.ocm_version,
        type=ocm.ArtefactType.OCI_ARTEFACT,
        relation=ocm.ResourceRelation.EXTERNAL,
        access=ocm.OciAccess(
            imageReference=image_reference,
        ),
        labels=[image_type_label()],
    )


def _image_reference(resource: ocm.Resource) -> str | None:
    if isinstance(resource.access, ocm.OciAccess):
        return resource.access.imageReference
    return None


def _disambiguate(resource: ocm.Resource):
    if not (image_reference := _image_reference(resource)):
        return
    resource.extraIdentity[IMAGE_REFERENCE_IDENTITY_ATTRIBUTE] = image_reference


def add_oci_artifacts(
    component_descriptor: ocm.ComponentDescriptor,
    images: collections.abc.Iterable[str],
) -> list[ocm.Resource]:
    '''
    appends a resource for each of the given images. Only images whose reference equals the one
    of an already present resource are skipped. Distinct images sharing name and version (e.g.
    the same image from different registries) are all kept; their resources are told apart by an
    extra identity attribute holding the full image reference. Returns the added resources.
    '''
    component = component_descriptor.component
    added = []

    for image in images:
        if any(_image_reference(r) == image for r in component.resources):
            logger.debug(f'skipping {image=}: resource already present')
            continue

        resource = oci_artifact_resource(image)

        colliding = [
            r for r in component.resources
            if r.name == resource.name and r.version == resource.version
        ]
        if colliding:
            logger.debug(f'{image=} collides with {len(colliding)} resource(s) of same name')
            for r in (*colliding, resource):
                _disambiguate(r)

        component.resources.append(resource)
        added.append(resource)

    return added


def validate(component_descriptor: ocm.ComponentDescriptor):
    try:
        ocm.validate.validate(component_descriptor)
    except ocm.validate.ComponentDescriptorValidationError as cdve:
        raise ComponentDescriptorError(
            f'failed to validate component descriptor: {cdve}'
        ) from cdve


class ComponentDescriptorBuilder:
    '''
    assembles a component-descriptor from resources and sources. The assembled descriptor is only
    handed out by `build`, after it was validated.
    '''
    def __init__(
        self,
        name: str,
        version: str,
    ):
        self.component_descriptor = initialise(
            name=name,
            version=version,
        )

    @property
    def component(self) -> ocm.Component:
        return self.component_descriptor.component

    def add_resources(
        self,
        resources: collections.abc.Iterable[ocm.Resource | modulectl.resources.ModuleResource],
    ) -> 'ComponentDescriptorBuilder':
        for resource in resources:
            if isinstance(resource, modulectl.resources.ModuleResource):
                resource = resource.resource
            self.component.resources.append(resource)
        return self

    def add_sources(
        self,
        sources: collections.abc.Iterable[ocm.Source],
    ) -> 'ComponentDescriptorBuilder':
        self.component.sources.extend(sources)
        return self

    def add_label(
        self,
        label: ocm.Label,
    ) -> 'ComponentDescriptorBuilder':
        self.component.set_label(label)
        return self

    def add_oci_artifacts(
        self,
        images: collections.abc.Iterable[str],
    ) -> 'ComponentDescriptorBuilder':
        add_oci_artifacts(
            component_descriptor=self.component_descriptor,
            images=images,
        )
        return self

    def build(self) -> ocm.ComponentDescriptor:
        validate(self.component_descriptor)
        return self.component_descriptor


def assemble(
    name: str,
    version: str,
    resources: collections.abc.Iterable[ocm.Resource | modulectl.resources.ModuleResource],
    sources: collections.abc.Iterable[ocm.Source]=(),
) -> ocm.ComponentDescriptor:
    return ComponentDescriptorBuilder(
        name=name,
        version=version,
    ).add_resources(
        resources=resources,
    ).add_sources(
        sources=sources,
    ).build()
