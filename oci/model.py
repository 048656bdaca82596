import dataclasses
import enum
import functools
import re
import typing

# grammar for image references (compatible to the one used by docker-cli / distribution):
#
#   reference        := name [ ":" tag ] [ "@" digest ]
#   name             := [domain '/'] path-component ['/' path-component]*
#   domain           := host [':' port-number]
#   path-component   := alpha-numeric [separator alpha-numeric]*
#   tag              := /[\w][\w.-]{0,127}/
#   digest           := digest-algorithm ":" digest-hex

_alphanumeric = r'[a-z0-9]+'
_separator = r'(?:[._]|__|[-]+)'
_path_component = rf'{_alphanumeric}(?:{_separator}{_alphanumeric})*'
_domain_name_component = r'(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])'
_domain_name = rf'{_domain_name_component}(?:\.{_domain_name_component})*'
_ipv6 = r'\[(?:[a-fA-F0-9:]+)\]'
_domain = rf'(?:{_domain_name}|{_ipv6})(?::[0-9]+)?'
_tag = r'[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}'
_digest = r'[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}'
_name = rf'(?:{_domain}/)?{_path_component}(?:/{_path_component})*'

reference_regex = re.compile(
    rf'^(?P<name>{_name})(?::(?P<tag>{_tag}))?(?:@(?P<digest>{_digest}))?$'
)
identifier_regex = re.compile(r'^[a-f0-9]{64}$')

digest_hex_lengths = {
    'sha256': 64,
    'sha384': 96,
    'sha512': 128,
}

name_max_length = 255
default_domain = 'docker.io'

disallowed_tags = ('latest', 'main')


class ImageReferenceError(ValueError):
    pass


class EmptyImageReferenceError(ImageReferenceError):
    pass


class InvalidReferenceFormatError(ImageReferenceError):
    pass


class ImageNameExtractionError(ImageReferenceError):
    pass


class NoTagOrDigestError(ImageReferenceError):
    pass


class MissingImageTagError(ImageReferenceError):
    pass


class DisallowedTagError(ImageReferenceError):
    pass


class OciTagType(enum.Enum):
    SYMBOLIC = 'symbolic'
    DIGEST = 'digest'
    NO_TAG = 'no_tag'


def _split_domain(name: str) -> tuple[str, str]:
    '''
    splits given image name into domain and path, mimicking docker-cli (first path-component is
    regarded as domain if it contains a dot or a colon, or if it is `localhost`)
    '''
    domain, sep, remainder = name.partition('/')
    if not sep or (
        not any(c in domain for c in '.:')
        and domain != 'localhost'
        and domain.lower() == domain
    ):
        return default_domain, name
    return domain, remainder


def _is_digest(value: str) -> bool:
    algorithm, sep, hexdigest = value.partition(':')
    if not sep or not (expected_length := digest_hex_lengths.get(algorithm)):
        return False
    return len(hexdigest) == expected_length and bool(re.fullmatch(r'[a-f0-9]+', hexdigest))


def _validate_digest(digest: str):
    algorithm, hexdigest = digest.split(':', 1)
    if not (expected_length := digest_hex_lengths.get(algorithm)):
        raise InvalidReferenceFormatError(f'unsupported digest algorithm: {algorithm}')
    if len(hexdigest) != expected_length:
        raise InvalidReferenceFormatError('invalid checksum digest length')
    if not re.fullmatch(r'[a-f0-9]+', hexdigest):
        raise InvalidReferenceFormatError('invalid checksum digest format')


class OciImageReference:
    '''
    a parsed (and validated) image reference. Parsing is done eagerly upon construction; invalid
    references are signalled by raising `ImageReferenceError` (or one of its subclasses).

    note: references consisting only of a digest (e.g. `sha256:<hex>`) are valid references in
    general, however, they do not name an image, and are thus rejected.
    '''
    @staticmethod
    def to_image_ref(
        image_reference: typing.Union[str, 'OciImageReference'],
    ) -> 'OciImageReference':
        if isinstance(image_reference, OciImageReference):
            return image_reference
        return OciImageReference(image_reference=image_reference)

    def __init__(
        self,
        image_reference: typing.Union[str, 'OciImageReference'],
    ):
        if isinstance(image_reference, OciImageReference):
            image_reference = image_reference.original_image_reference
        elif not isinstance(image_reference, str):
            raise ValueError(image_reference)

        if not image_reference:
            raise EmptyImageReferenceError('empty image URL')

        self._orig_image_reference = image_reference
        self._match = self._parse(image_reference)

    @staticmethod
    def _parse(image_reference: str) -> re.Match:
        if identifier_regex.match(image_reference) or _is_digest(image_reference):
            raise ImageNameExtractionError(
                f'failed to extract image name from {image_reference}: could not extract image name'
            )

        _, remainder = _split_domain(image_reference)
        remote_name = remainder.split(':', 1)[0]
        if remote_name.lower() != remote_name:
            raise InvalidReferenceFormatError(
                f'invalid reference format: repository name ({remote_name}) must be lowercase'
            )

        if not (match := reference_regex.match(image_reference)):
            raise InvalidReferenceFormatError('invalid reference format')

        if len(match.group('name')) > name_max_length:
            raise InvalidReferenceFormatError(
                f'repository name must not be more than {name_max_length} characters'
            )

        if (digest := match.group('digest')):
            _validate_digest(digest)

        return match

    @property
    def original_image_reference(self) -> str:
        return self._orig_image_reference

    @property
    @functools.cache
    def repository(self) -> str:
        '''
        returns the image reference w/o tag and digest
        '''
        return self._match.group('name')

    @property
    @functools.cache
    def domain(self) -> str:
        domain, _ = _split_domain(self.repository)
        return domain

    @property
    @functools.cache
    def path(self) -> str:
        _, path = _split_domain(self.repository)
        return path

    @property
    @functools.cache
    def name(self) -> str:
        '''
        returns the image name (last path-component, omitting domain, path-prefix and tag)
        '''
        return self.repository.rsplit('/', 1)[-1]

    @property
    def tag(self) -> str | None:
        '''
        returns the symbolic tag, or None if absent (also for digest-only references)
        '''
        return self._match.group('tag')

    @property
    def digest_tag(self) -> str | None:
        '''
        returns the digest (`<algorithm>:<hexdigest>`), or None if absent
        '''
        return self._match.group('digest')

    @property
    @functools.cache
    def tag_type(self) -> OciTagType:
        if self.digest_tag:
            return OciTagType.DIGEST
        elif self.tag:
            return OciTagType.SYMBOLIC
        else:
            return OciTagType.NO_TAG

    @property
    def has_digest_tag(self) -> bool:
        return self.tag_type is OciTagType.DIGEST

    @property
    def has_mixed_tag(self) -> bool:
        return bool(self.tag and self.digest_tag)

    @property
    def has_tag(self) -> bool:
        return not self.tag_type is OciTagType.NO_TAG

    @property
    def parsed_digest_tag(self) -> tuple[str, str]:
        if not self.has_digest_tag:
            raise ValueError(f'not a digest-tag: {str(self)=}')

        algorithm, digest = self.digest_tag.split(':')
        return algorithm, digest

    @property
    def digest(self) -> str:
        _, digest = self.parsed_digest_tag
        return digest

    def __str__(self) -> str:
        return self._orig_image_reference

    def __repr__(self) -> str:
        return f'OciImageReference({str(self)})'

    def __eq__(self, other) -> bool:
        if not isinstance(other, OciImageReference):
            return False
        return self._orig_image_reference == other._orig_image_reference

    def __hash__(self):
        return hash((OciImageReference, self._orig_image_reference))


@dataclasses.dataclass(frozen=True)
class ImageInfo:
    '''
    name: image name (last path-component)
    tag: symbolic tag (empty if absent)
    digest: hexdigest w/o algorithm-prefix (empty if absent)
    full_url: image reference as passed-in
    '''
    name: str
    tag: str
    digest: str
    full_url: str

    @property
    def ocm_version(self) -> str:
        '''
        the version to use for OCM resources: the tag for symbolically tagged images, or a
        semver-compatible version carrying the digest as build-metadata for digest-pinned images
        '''
        if self.digest:
            return f'0.0.0+sha256.{self.digest}'
        return self.tag

    @property
    def ocm_resource_name(self) -> str:
        if self.digest:
            return f'{self.name}-{self.digest[:8]}'
        return self.name


def parse_image_reference(image_reference: str) -> tuple[str, str]:
    '''
    returns a two-tuple of image name and tag; for digest-only references, the digest (including
    algorithm-prefix) is returned instead of the tag.
    '''
    if not image_reference:
        raise EmptyImageReferenceError('failed to parse image reference: empty image URL')

    try:
        ref = OciImageReference(image_reference)
    except ImageNameExtractionError:
        raise
    except ImageReferenceError as ire:
        raise type(ire)(f'invalid image reference: {ire}') from ire

    # symbolic tag takes precedence over digest (for references w/ mixed tags)
    if ref.tag:
        return ref.name, ref.tag
    elif ref.has_digest_tag:
        return ref.name, ref.digest_tag

    raise NoTagOrDigestError(
        f'no tag or digest found in {image_reference}: no tag or digest found'
    )


def _has_valid_format(value: str) -> bool:
    if len(value) < 3 or len(value) > 256:
        return False

    if any(c in value for c in ' \t\n\r'):
        return False

    return ':' in value or '@' in value


def is_valid_image(value: str) -> bool:
    '''
    checks whether given value is a valid image reference suitable for being shipped: it must be
    tagged (or pinned by digest), and must not use one of the floating tags `latest` or `main`.

    values not even looking like an image reference (too short or too long, containing
    whitespace, or lacking both `:` and `@`) are not considered to be images; `False` is returned
    for those. Values that look like an image reference, but do not adhere to above rules will
    result in an `ImageReferenceError` being raised.
    '''
    if not _has_valid_format(value):
        return False

    try:
        _, tag = parse_image_reference(value)
    except ImageReferenceError as ire:
        raise type(ire)(f'invalid image reference {value!r}: {ire}') from ire

    if not tag:
        raise MissingImageTagError(f'image is missing a tag: {value!r}')

    if tag.lower() in disallowed_tags:
        raise DisallowedTagError(f'image tag is disallowed (latest/main): {tag!r}')

    return True


def parse_image_info(image_reference: str) -> ImageInfo:
    if not image_reference:
        raise EmptyImageReferenceError('failed to parse image reference: empty image URL')

    name, _ = parse_image_reference(image_reference)
    ref = OciImageReference(image_reference)

    return ImageInfo(
        name=name,
        tag=ref.tag or '',
        digest=ref.digest if ref.has_digest_tag else '',
        full_url=image_reference,
    )


def validate_and_parse_image_info(image_reference: str) -> ImageInfo:
    if not is_valid_image(image_reference):
        raise InvalidReferenceFormatError(f'invalid image format: {image_reference}')

    return parse_image_info(image_reference)
