import dataclasses

import dacite


DEFAULT_NAMESPACE = 'kcp-system'


def _without_nulls(raw: dict | None) -> dict:
    # absent and null attributes are treated alike (-> defaults apply)
    return {k: v for k, v in (raw or {}).items() if v is not None}


@dataclasses.dataclass(kw_only=True)
class Manager:
    '''
    the resource (typically a Deployment) managing the module's custom resources
    '''
    name: str
    namespace: str | None = None
    group: str
    version: str
    kind: str


@dataclasses.dataclass(kw_only=True)
class ModuleConfig:
    '''
    model-class for the module-config (typically read from `module-config.yaml`).

    `manifest` and `defaultCR` reference files either by local path or by (http(s)) URL; for
    processing, they are resolved into local paths (see `manifestPath` / `defaultCRPath`), which
    are filled in after parsing (by `modulectl.moduleconfig`), leaving the original references
    untouched.
    '''
    name: str = ''
    version: str = ''
    channel: str = ''
    namespace: str = DEFAULT_NAMESPACE
    manifest: str = ''
    defaultCR: str = ''
    security: str = ''
    resourceName: str = ''
    mandatory: bool = False
    internal: bool = False
    beta: bool = False
    labels: dict[str, str] = dataclasses.field(default_factory=dict)
    annotations: dict[str, str] = dataclasses.field(default_factory=dict)
    manager: Manager | None = None
    resources: dict[str, str] = dataclasses.field(default_factory=dict)

    manifestPath: str = ''
    defaultCRPath: str = ''

    @property
    def short_name(self) -> str:
        '''
        the last path-component of the module name (e.g. `mod` for `github.com/kyma-project/mod`)
        '''
        return self.name.rsplit('/', 1)[-1]

    @staticmethod
    def from_dict(raw: dict) -> 'ModuleConfig':
        raw = _without_nulls(raw)
        # resolved paths are never read from config
        raw.pop('manifestPath', None)
        raw.pop('defaultCRPath', None)

        if not raw.get('namespace'):
            raw.pop('namespace', None)

        module_config = dacite.from_dict(
            data_class=ModuleConfig,
            data=raw,
            config=dacite.Config(
                cast=[str],
            ),
        )
        return module_config

    def as_dict(self) -> dict:
        '''
        returns the module-config as it was declared (w/o resolved paths, and w/o unset optional
        attributes)
        '''
        raw = dataclasses.asdict(self)
        del raw['manifestPath']
        del raw['defaultCRPath']

        if raw['manager'] is None:
            del raw['manager']
        elif raw['manager']['namespace'] is None:
            del raw['manager']['namespace']

        return {
            k: v for k, v in raw.items()
            if v not in ('', {}) or k in ('name', 'version', 'channel')
        }


@dataclasses.dataclass(kw_only=True)
class MendSecConfig:
    exclude: list[str] = dataclasses.field(default_factory=list)
    subProjects: str = ''
    language: str = ''


@dataclasses.dataclass(kw_only=True)
class SecurityScanConfig:
    '''
    model-class for security-scan-config (typically read from `sec-scanners-config.yaml`).

    `protecode` lists (third-party) images to be scanned in addition to the ones found in the
    module's manifest.
    '''
    moduleName: str = ''
    rcTag: str = ''
    devBranch: str = ''
    mend: MendSecConfig = dataclasses.field(default_factory=MendSecConfig)
    protecode: list[str] = dataclasses.field(default_factory=list)

    @staticmethod
    def from_dict(raw: dict) -> 'SecurityScanConfig':
        raw = _without_nulls(raw)

        # also allow kebap-case / legacy attribute-names
        aliases = {
            'module-name': 'moduleName',
            'rc-tag': 'rcTag',
            'dev-branch': 'devBranch',
            'whitesource': 'mend',
            'bdba': 'protecode',
        }
        for alias, attr in aliases.items():
            if alias in raw and not attr in raw:
                raw[attr] = raw.pop(alias)
            else:
                raw.pop(alias, None)

        mend = _without_nulls(raw.get('mend'))
        if 'subprojects' in mend and not 'subProjects' in mend:
            mend['subProjects'] = mend.pop('subprojects')
        if isinstance(sub_projects := mend.get('subProjects'), bool):
            mend['subProjects'] = 'true' if sub_projects else 'false'
        mend['exclude'] = [e for e in (mend.get('exclude') or ()) if e]
        raw['mend'] = mend

        raw['protecode'] = [i for i in (raw.get('protecode') or ()) if i is not None]

        return dacite.from_dict(
            data_class=SecurityScanConfig,
            data=raw,
            config=dacite.Config(
                cast=[str],
            ),
        )
