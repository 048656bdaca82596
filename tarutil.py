import logging
import os
import tarfile
import typing

import ioutil

logger = logging.getLogger(__name__)

TAR_MIME_TYPE = 'application/x-tar'


def _tarinfo_bytes(name: str, size: int) -> bytes:
    # mtime, uid and gid default to 0, thus yielding reproducible archives
    tarinfo = tarfile.TarInfo(name=name)
    tarinfo.size = size
    tarinfo.mode = 0o644
    return tarinfo.tobuf(format=tarfile.PAX_FORMAT)


def _padding_length(size: int) -> int:
    return -size % tarfile.BLOCKSIZE


def tarstream_size(
    blobs: typing.Iterable[ioutil.BlobDescriptor],
) -> int:
    size = 0
    for idx, blob in enumerate(blobs):
        name = blob.name or f'{str(idx)}.tar'
        size += len(_tarinfo_bytes(name=name, size=blob.size))
        size += blob.size + _padding_length(blob.size)

    return size + 2 * tarfile.BLOCKSIZE


def concat_blobs_as_tarstream(
    blobs: typing.Iterable[ioutil.BlobDescriptor],
) -> typing.Generator[bytes, None, None]:
    '''
    returns a generator yielding tarfile stream containing the passed blobs as members.

    In comparison to regularily creating a tarfile, member-contents are accepted as generators,
    thus allowing to concatenate multiple input streams into a concatenated output stream.
    '''
    for idx, blob in enumerate(blobs):
        name = blob.name or f'{str(idx)}.tar'
        yield _tarinfo_bytes(name=name, size=blob.size)

        written_bytes = 0
        for chunk in blob.content:
            written_bytes += len(chunk)
            yield chunk

        if written_bytes != blob.size:
            raise ValueError(f'{name=}: expected {blob.size=} octets, but got {written_bytes}')

        # pad to full blocks
        if (missing := _padding_length(written_bytes)):
            yield tarfile.NUL * missing

    # terminate tarchive w/ two empty blocks
    yield tarfile.NUL * tarfile.BLOCKSIZE * 2


class SingleFileArchive:
    '''
    a tar-archive containing exactly one regular file. The file is referenced by a root-directory
    and its name (relative to root-directory); the member-name within the archive is the file's
    base-name.
    '''
    def __init__(
        self,
        path: str,
    ):
        path = os.path.abspath(path)
        self.root_dir = os.path.dirname(path)
        self.file_name = os.path.basename(path)

    @property
    def path(self) -> str:
        return os.path.join(self.root_dir, self.file_name)

    def blob(self) -> ioutil.BlobDescriptor:
        if not os.path.isfile(self.path):
            raise FileNotFoundError(f'not a regular file: {self.path}')

        member = ioutil.file_blob(path=self.path, name=self.file_name)
        logger.debug(f'archiving {self.file_name} from {self.root_dir}')

        return ioutil.BlobDescriptor(
            content=concat_blobs_as_tarstream(blobs=(member,)),
            size=tarstream_size(blobs=(member,)),
            name=f'{self.file_name}.tar',
            media_type=TAR_MIME_TYPE,
        )

    def __repr__(self):
        return f'SingleFileArchive({self.path})'
