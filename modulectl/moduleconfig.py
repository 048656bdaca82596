import logging
import os
import tempfile
import urllib.parse

import dacite
import requests
import yaml

import ci.util
import http_requests
import modulectl.model
import modulectl.validation

logger = logging.getLogger(__name__)

DEFAULT_CR_FILE_PATTERN = ('kyma-module-default-cr-', '.yaml')
MANIFEST_FILE_PATTERN = ('kyma-module-manifest-', '.yaml')


class ModuleConfigError(ValueError):
    pass


def parse_url(value: str) -> urllib.parse.ParseResult | None:
    '''
    returns the parsed url, if the given value is an absolute URL (i.e. has both scheme and
    host), and None otherwise
    '''
    try:
        url = urllib.parse.urlparse(value)
    except ValueError:
        return None

    if url.scheme and url.netloc:
        return url
    return None


def parse_module_config(path: str) -> modulectl.model.ModuleConfig:
    try:
        with open(path) as f:
            raw = ci.util.load_yaml(f)
    except OSError as oe:
        raise ModuleConfigError(f'failed to read module config file: {oe}') from oe
    except yaml.YAMLError as ye:
        raise ModuleConfigError(f'failed to parse module config file: {ye}') from ye

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ModuleConfigError(
            f'failed to parse module config file: expected a mapping, found {type(raw).__name__}'
        )

    try:
        return modulectl.model.ModuleConfig.from_dict(raw)
    except dacite.DaciteError as e:
        raise ModuleConfigError(f'failed to parse module config file: {e}') from e


def validate_module_config(module_config: modulectl.model.ModuleConfig):
    modulectl.validation.validate_module_config(module_config)


class ModuleConfigService:
    '''
    reads and validates module-configs, and resolves the files referenced therefrom
    (manifest and default-CR) into local paths.

    Files referenced by URL are downloaded into temporary files, which are kept until
    `cleanup_temp_files` is called.
    '''
    def __init__(
        self,
        session: requests.Session=None,
    ):
        self._session = session
        self._temp_files: list[str] = []

    @property
    def session(self) -> requests.Session:
        if not self._session:
            self._session = http_requests.mount_default_adapter(requests.Session())
        return self._session

    def parse_and_validate(self, path: str) -> modulectl.model.ModuleConfig:
        try:
            module_config = parse_module_config(path)
        except ModuleConfigError as mce:
            raise ModuleConfigError(f'failed to parse module config: {mce}') from mce

        try:
            validate_module_config(module_config)
        except modulectl.validation.InvalidOptionError as ioe:
            raise ModuleConfigError(f'failed to validate module config: {ioe}') from ioe

        try:
            module_config.defaultCRPath = self.resolve_default_cr_path(module_config.defaultCR)
        except (OSError, ModuleConfigError) as e:
            raise ModuleConfigError(f'failed to get default CR path: {e}') from e

        try:
            module_config.manifestPath = self.resolve_manifest_path(module_config.manifest)
        except (OSError, ModuleConfigError) as e:
            raise ModuleConfigError(f'failed to get manifest path: {e}') from e

        return module_config

    def resolve_manifest_path(self, manifest: str) -> str:
        return self._resolve(
            value=manifest,
            file_pattern=MANIFEST_FILE_PATTERN,
            what='manifest',
        )

    def resolve_default_cr_path(self, default_cr: str) -> str:
        if not default_cr:
            return ''

        return self._resolve(
            value=default_cr,
            file_pattern=DEFAULT_CR_FILE_PATTERN,
            what='default CR',
        )

    def _resolve(
        self,
        value: str,
        file_pattern: tuple[str, str],
        what: str,
    ) -> str:
        if parse_url(value):
            prefix, suffix = file_pattern
            return self._download_temp_file(
                url=value,
                prefix=prefix,
                suffix=suffix,
                what=what,
            )

        return os.path.abspath(value)

    def _download_temp_file(
        self,
        url: str,
        prefix: str,
        suffix: str,
        what: str,
    ) -> str:
        fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix)
        self._temp_files.append(path)

        logger.info(f'downloading {what} file from {url}')
        try:
            with os.fdopen(fd, 'wb') as f:
                http_requests.download(url=url, fileobj=f, session=self.session)
        except requests.RequestException as rqe:
            raise ModuleConfigError(f'failed to download {what} file: {rqe}') from rqe

        return path

    def get_default_cr_data(self, default_cr_path: str) -> bytes:
        try:
            with open(default_cr_path, 'rb') as f:
                return f.read()
        except OSError as oe:
            raise ModuleConfigError(f'failed to read default CR file: {oe}') from oe

    def cleanup_temp_files(self) -> list[OSError]:
        errors = []
        for path in self._temp_files:
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as oe:
                logger.warning(f'failed to remove temporary file {path}: {oe}')
                errors.append(oe)

        self._temp_files = []
        return errors
