import dataclasses
import typing


@dataclasses.dataclass
class BlobDescriptor:
    content: typing.Generator[bytes, None, None]
    size: int
    name: str = None
    media_type: str = 'application/octet-stream'


def iter_file_chunks(
    path: str,
    chunk_size: int=4096,
) -> typing.Generator[bytes, None, None]:
    with open(path, 'rb') as f:
        while (chunk := f.read(chunk_size)):
            yield chunk


def file_blob(
    path: str,
    name: str=None,
    media_type: str='application/octet-stream',
) -> BlobDescriptor:
    with open(path, 'rb') as f:
        size = f.seek(0, 2)

    return BlobDescriptor(
        content=iter_file_chunks(path),
        size=size,
        name=name,
        media_type=media_type,
    )


def bytes_blob(
    content: bytes,
    name: str=None,
    media_type: str='application/octet-stream',
) -> BlobDescriptor:
    return BlobDescriptor(
        content=(c for c in (content,)),
        size=len(content),
        name=name,
        media_type=media_type,
    )
