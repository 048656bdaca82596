import collections.abc
import dataclasses
import enum
import functools
import io
import json
import os

import dacite
import jsonschema
import yaml


dc = dataclasses.dataclass
own_dir = os.path.dirname(__file__)
default_json_schema_path = os.path.join(
    own_dir,
    'ocm-component-descriptor-schema.yaml',
)


class SchemaVersion(enum.StrEnum):
    V2 = 'v2'


class AccessType(enum.StrEnum):
    GITHUB = 'github'
    LOCAL_BLOB = 'localBlob'
    OCI_ARTIFACT = 'ociArtifact'


# hack: patch enum to accept "aliases"
# -> the values defined in enum above will be  used for serialisation; the aliases are also
# accepted for deserialisation
# note: the `/v1` suffix is _always_ optional (if absent, /v1 is implied)
AccessType._value2member_map_ |= {
    'github/v1': AccessType.GITHUB,
    'localBlob/v1': AccessType.LOCAL_BLOB,
    'localFilesystemBlob': AccessType.LOCAL_BLOB,
    'ociArtefact': AccessType.OCI_ARTIFACT,
    'ociArtifact/v1': AccessType.OCI_ARTIFACT,
    'ociRegistry': AccessType.OCI_ARTIFACT,
    'OCIRegistry': AccessType.OCI_ARTIFACT,
}

AccessTypeOrStr = AccessType | str


@dc(kw_only=True)
class Access:
    type: AccessTypeOrStr


class AccessDict(dict):
    '''
    fallback for unknown access-types; it is api-compatible to `Access` in that it exposes its type
    via the `type` attribute mimicking behaviour of `dataclasses` from this module, but otherwise
    behaves as a `dict` (thus allowing de/reserialisation using dacite/dataclasses.asdict w/o losing
    attributes).
    '''
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if not 'type' in self:
            raise ValueError('attribute `type` must be present')

        self.type = self.get('type')


@dc(kw_only=True)
class LocalBlobAccess(Access):
    '''
    a blob that is stored inside the component archive, next to the component-descriptor

    see: https://github.com/open-component-model/ocm-spec/blob/d74b6a210ff8c8c3486aa9b21e22c169d014806e/doc/04-extensions/01-extensions.md#localblob # noqa
    '''
    type: AccessTypeOrStr = AccessType.LOCAL_BLOB
    localReference: str
    mediaType: str = 'application/data'
    size: int | None = None
    referenceName: str | None = None


@dc(kw_only=True)
class OciAccess(Access):
    type: AccessTypeOrStr = AccessType.OCI_ARTIFACT
    imageReference: str


@dc(kw_only=True)
class GithubAccess(Access):
    repoUrl: str
    commit: str | None = None
    ref: str | None = None
    type: AccessTypeOrStr = AccessType.GITHUB


class ArtefactType(enum.StrEnum):
    DIRECTORY_TREE = 'directoryTree'
    GITHUB = 'Github'
    OCI_ARTEFACT = 'ociArtifact'
    PLAIN_TEXT = 'plainText'


ArtefactType._value2member_map_ |= {
    'ociArtifact/v1': ArtefactType.OCI_ARTEFACT,
    'ociImage': ArtefactType.OCI_ARTEFACT,
    'directory': ArtefactType.DIRECTORY_TREE,
}


class ResourceRelation(enum.StrEnum):
    LOCAL = 'local'
    EXTERNAL = 'external'


LabelValue = str | int | float | bool | dict | list


@dc(frozen=True)
class Label:
    '''
    a named value attached to a component, a source or a resource. Values are either scalars,
    mappings or lists of mappings; they are serialised as-is. `version` versions the label's
    value-schema (e.g. `v1`) and is omitted from the serialised form if absent.
    '''
    name: str
    value: LabelValue
    version: str | None = None


_no_default = object()


class LabelMethodsMixin:
    def find_label(
        self,
        name: str,
        default=_no_default,
        raise_if_absent: bool = False,
    ):
        for label in self.labels:
            if label.name == name:
                return label
        else:
            if default is _no_default and raise_if_absent:
                raise ValueError(f'no such label: {name=}')
            if default is _no_default:
                return None
            return default

    def set_label(
        self,
        label: Label,
        raise_if_present: bool = False,
    ):
        '''
        replaces a label of same name in-place (retaining its position), or appends it
        '''
        if self.find_label(name=label.name) and raise_if_present:
            raise ValueError(f'label {label.name} is already present')

        for idx, existing in enumerate(self.labels):
            if existing.name == label.name:
                self.labels[idx] = label
                return self
        self.labels.append(label)
        return self


@dc
class Metadata:
    schemaVersion: SchemaVersion = SchemaVersion.V2


class ArtifactIdentity:
    def __init__(self, name, **kwargs):
        self.name = name
        kwargs['name'] = name
        # ensure stable order to ensure stable sort order
        self._id_attrs = tuple(sorted(kwargs.items(), key=lambda i: i[0]))

    def __str__(self):
        return '-'.join((a[1] for a in self._id_attrs))

    def __len__(self):
        return len(self._id_attrs)

    def __eq__(self, other):
        if not type(self) == type(other):
            return False
        return self._id_attrs == other._id_attrs

    def __hash__(self):
        return hash((type(self), self._id_attrs))


class ResourceIdentity(ArtifactIdentity):
    pass


class SourceIdentity(ArtifactIdentity):
    pass


class Artifact(LabelMethodsMixin):
    '''
    base class for Resource and Source
    '''
    def identity(self, peers: collections.abc.Sequence['Artifact']):
        '''
        returns the identity-object for this artifact (resource, or source).

        Note that, the `version` attribute is implicitly added iff there would otherwise be a
        conflict, iff this artifact only uses its `name` as identity-attr (which is the default).
        '''
        own_type = type(self)
        for p in peers:
            if not type(p) == own_type:
                raise ValueError(f'all peers must be of same type {type(self)=} {type(p)=}')

        if own_type is Resource:
            IdCtor = ResourceIdentity
        elif own_type is Source:
            IdCtor = SourceIdentity
        else:
            raise NotImplementedError(own_type)

        identity = IdCtor(
            name=self.name,
            **(self.extraIdentity or {})
        )

        if not peers:
            return identity

        if len(identity) > 1:  # special-case-handling not required if there are additional-id-attrs
            return identity

        for peer in peers:
            if peer is self:
                continue
            if peer.identity(peers=()) == identity:
                # there is at least one collision (id est: another artifact w/ same name)
                return IdCtor(
                    name=self.name,
                    version=self.version,
                )
        return identity


def _access_from_dict(artefact):
    if artefact.access is None or dataclasses.is_dataclass(artefact.access):
        return

    if isinstance(artefact.access, dict):
        artefact.access = AccessDict(artefact.access)


@dc
class Resource(Artifact):
    name: str
    version: str
    type: ArtefactType | str
    access: (
        # Order of types is important for deserialization. The first matching type will be taken,
        # i.e. keep generic accesses at the bottom of the list
        GithubAccess
        | LocalBlobAccess
        | OciAccess
        | dict
        | None
    ) = None
    extraIdentity: dict[str, str] = dataclasses.field(default_factory=dict)
    relation: ResourceRelation = ResourceRelation.LOCAL
    labels: list[Label] = dataclasses.field(default_factory=list)

    def __post_init__(self):
        _access_from_dict(self)


@dc
class Source(Artifact):
    name: str
    access: GithubAccess | dict
    version: str | None = None
    extraIdentity: dict[str, str] = dataclasses.field(default_factory=dict)
    type: ArtefactType | str = ArtefactType.GITHUB
    labels: list[Label] = dataclasses.field(default_factory=list)

    def __post_init__(self):
        _access_from_dict(self)


@dc
class Component(LabelMethodsMixin):
    name: str     # must be valid URL w/o schema
    version: str  # relaxed semver

    provider: str | dict

    sources: list[Source] = dataclasses.field(default_factory=list)
    componentReferences: list[dict] = dataclasses.field(default_factory=list)
    resources: list[Resource] = dataclasses.field(default_factory=list)

    repositoryContexts: list[dict] = dataclasses.field(default_factory=list)
    labels: list[Label] = dataclasses.field(default_factory=list)

    def find_resource(self, name: str, version: str | None=None) -> Resource | None:
        for resource in self.resources:
            if resource.name != name:
                continue
            if version is not None and resource.version != version:
                continue
            return resource
        return None


@functools.lru_cache
def _read_schema_file(schema_file_path: str):
    with open(schema_file_path) as f:
        return yaml.safe_load(f)


def enum_or_string(v, enum_type: enum.Enum):
    try:
        return enum_type(v)
    except ValueError:
        return str(v)


def _strip_none(items: list[tuple]) -> dict:
    return {k: v for k, v in items if v is not None}


@dc
class ComponentDescriptor:
    meta: Metadata
    component: Component

    @staticmethod
    def validate(
        component_descriptor_dict: dict,
        json_schema_file_path: str = None,
    ):
        '''
        raises `jsonschema.ValidationError` if the given dict does not conform to the
        component-descriptor schema
        '''
        json_schema_file_path = json_schema_file_path or default_json_schema_path
        schema_dict = _read_schema_file(json_schema_file_path)

        jsonschema.validate(
            instance=component_descriptor_dict,
            schema=schema_dict,
        )

    @staticmethod
    def from_dict(
        component_descriptor_dict: dict,
    ):
        return dacite.from_dict(
            data_class=ComponentDescriptor,
            data=component_descriptor_dict,
            config=dacite.Config(
                cast=[
                    SchemaVersion,
                    ResourceRelation,
                ],
                type_hooks={
                    AccessType | str: functools.partial(
                        enum_or_string, enum_type=AccessType
                    ),
                    ArtefactType | str: functools.partial(
                        enum_or_string, enum_type=ArtefactType
                    ),
                },
            )
        )

    def as_dict(self) -> dict:
        '''
        returns a JSON-serialisable dict (enums replaced by their values, unset optional
        attributes omitted)
        '''
        raw_dict = dataclasses.asdict(self, dict_factory=_strip_none)
        return json.loads(json.dumps(raw_dict, cls=EnumJSONEncoder))

    def to_fobj(self, fileobj: io.TextIOBase):
        yaml.dump(
            data=self.as_dict(),
            stream=fileobj,
            Dumper=EnumValueYamlDumper,
            sort_keys=False,
        )


class EnumValueYamlDumper(yaml.SafeDumper):
    '''
    a yaml.SafeDumper that will dump enum objects using their values
    '''
    def represent_data(self, data):
        if isinstance(data, AccessDict):
            # yaml dumper won't know how to parse objects of type `AccessDict`
            # (altough it is just a wrapped dict) -> so convert it to a "real" dict
            data = dict(data)
        if isinstance(data, enum.Enum):
            return self.represent_data(data.value)
        return super().represent_data(data)


class EnumJSONEncoder(json.JSONEncoder):
    def default(self, o):
        if isinstance(o, AccessDict):
            o = dict(o)
        if isinstance(o, enum.Enum):
            return o.value
        return super().default(o)
