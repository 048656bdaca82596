import collections.abc
import hashlib
import logging
import os
import tempfile

import ioutil
import modulectl.descriptor
import modulectl.resources
import ocm

logger = logging.getLogger(__name__)

COMPONENT_DESCRIPTOR_FILE_NAME = 'component-descriptor.yaml'
BLOBS_DIR_NAME = 'blobs'


class ComponentArchiveError(RuntimeError):
    pass


class ComponentArchive:
    '''
    a component-archive stored as a directory: the component-descriptor is stored as
    `component-descriptor.yaml`; local blobs are stored below `blobs/`, named after their
    digest (`sha256.<hexdigest>`).

    Writes are not transactional: if adding a blob fails, previously written blobs are kept.
    '''
    def __init__(
        self,
        path: str,
        component_descriptor: ocm.ComponentDescriptor,
    ):
        self.path = os.path.abspath(path)
        self.component_descriptor = component_descriptor

    @property
    def blobs_dir(self) -> str:
        return os.path.join(self.path, BLOBS_DIR_NAME)

    @property
    def descriptor_path(self) -> str:
        return os.path.join(self.path, COMPONENT_DESCRIPTOR_FILE_NAME)

    def blob_path(self, digest: str) -> str:
        algorithm, hexdigest = digest.split(':', 1)
        return os.path.join(self.blobs_dir, f'{algorithm}.{hexdigest}')

    def add_blob(self, blob: ioutil.BlobDescriptor) -> tuple[str, int]:
        '''
        stores the given blob, returning its digest (`sha256:<hexdigest>`) and size
        '''
        os.makedirs(self.blobs_dir, exist_ok=True)
        sha256 = hashlib.sha256()
        size = 0

        with tempfile.NamedTemporaryFile(dir=self.blobs_dir, delete=False) as f:
            try:
                for chunk in blob.content:
                    sha256.update(chunk)
                    size += f.write(chunk)
            except BaseException:
                f.close()
                os.unlink(f.name)
                raise

        if blob.size is not None and size != blob.size:
            os.unlink(f.name)
            raise ComponentArchiveError(
                f'{blob.name=}: expected {blob.size} octets, but got {size}'
            )

        digest = f'sha256:{sha256.hexdigest()}'
        os.replace(f.name, self.blob_path(digest))
        logger.debug(f'added blob {blob.name} as {digest} ({size=})')

        return digest, size

    def write_descriptor(self):
        modulectl.descriptor.validate(self.component_descriptor)

        with open(self.descriptor_path, 'w') as f:
            self.component_descriptor.to_fobj(f)


def create_component_archive(
    component_descriptor: ocm.ComponentDescriptor,
    output_dir: str,
) -> ComponentArchive:
    '''
    creates a component-archive in the given directory, and writes the given (validated)
    component-descriptor into it
    '''
    try:
        os.makedirs(output_dir, exist_ok=True)
    except OSError as oe:
        raise ComponentArchiveError(f'failed to create archive file system: {oe}') from oe

    archive = ComponentArchive(
        path=output_dir,
        component_descriptor=component_descriptor,
    )
    archive.write_descriptor()

    return archive


def add_module_resources_to_archive(
    archive: ComponentArchive,
    module_resources: collections.abc.Iterable[modulectl.resources.ModuleResource],
):
    '''
    stores the blobs of the given (local) module-resources into the given archive, and sets a
    `localBlob` access on the respective resource of the archive's component-descriptor
    '''
    component = archive.component_descriptor.component

    for module_resource in module_resources:
        if not module_resource.blob:
            continue

        name = module_resource.resource.name
        version = module_resource.resource.version
        if not (resource := component.find_resource(name=name, version=version)):
            raise ComponentArchiveError(f'failed to set resource: no such resource {name}:{version}')

        try:
            blob = module_resource.blob()
            digest, size = archive.add_blob(blob)
        except (OSError, ValueError) as e:
            raise ComponentArchiveError(f'failed to add blob for {name}: {e}') from e

        resource.access = ocm.LocalBlobAccess(
            localReference=digest,
            mediaType=blob.media_type,
            size=size,
            referenceName=name,
        )

    archive.write_descriptor()
