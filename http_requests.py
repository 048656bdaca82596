# SPDX-FileCopyrightText: 2024 SAP SE or an SAP affiliate company and Gardener contributors
#
# SPDX-License-Identifier: Apache-2.0

import functools
import logging
import typing

import requests

from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)


class LoggingRetry(Retry):
    def __init__(
        self,
        **kwargs,
    ):
        defaults = dict(
            total=3,
            connect=3,
            read=3,
            status=3,
            redirect=False,
            status_forcelist=(429, 500, 502, 503, 504),
            raise_on_status=False,
            respect_retry_after_header=True,
            backoff_factor=1.0,
        )

        super().__init__(**(defaults | kwargs))

    def increment(self,
        method=None,
        url=None,
        response=None,
        error=None,
        _pool=None,
        _stacktrace=None
    ):
        # super().increment will either raise an exception indicating that no retry is to
        # be performed or return a new, modified instance of this class
        retry = super().increment(method, url, response, error, _pool, _stacktrace)
        num_retries = len(self.history) if self.history else 0
        logger.warning(
            f'{method=} {url=} returned {response=} {error=} {num_retries=} - trying again'
        )
        return retry


_default_retry_cfg = LoggingRetry()


def mount_default_adapter(
    session: requests.Session,
    connection_pool_cache_size=32, # requests-library default
    max_pool_size=32, # requests-library default
    retry_cfg: Retry=_default_retry_cfg,
):
    default_http_adapter = HTTPAdapter(
        pool_connections=connection_pool_cache_size,
        pool_maxsize=max_pool_size,
        max_retries=retry_cfg,
    )
    session.mount('http://', default_http_adapter)
    session.mount('https://', default_http_adapter)

    return session


def check_http_code(function):
    '''
    a decorator that will check on `requests.Response` instances returned by HTTP requests
    issued with `requests`. In case the response code indicates an error, a warning is logged
    and a `requests.HTTPError` is raised.

    @param: the function to wrap; should be `requests.<http-verb>`, e.g. requests.get
    @raises: `requests.HTTPError` if response's status code indicates an error
    '''
    @functools.wraps(function)
    def http_checker(*args, **kwargs):
        result = function(*args, **kwargs)
        if not result.ok:
            url = kwargs.get('url', None)
            logger.warning(f'{result.status_code=} - {result.content=}: {url=}')
        result.raise_for_status()
        return result
    return http_checker


def download(
    url: str,
    fileobj: typing.BinaryIO,
    session: requests.Session=None,
    timeout=(4, 31),
    chunk_size: int=4096,
) -> int:
    '''
    streams the content retrieved from the given url into the given (binary) file-object.
    Returns the amount of written octets.

    @raises: `requests.HTTPError` if response's status code indicates an error
    '''
    if not session:
        session = mount_default_adapter(requests.Session())

    get = check_http_code(session.get)
    res = get(url=url, stream=True, timeout=timeout)

    written = 0
    for chunk in res.iter_content(chunk_size=chunk_size):
        written += fileobj.write(chunk)

    logger.debug(f'downloaded {written} octets from {url}')
    return written
