import json
import logging
import os
import typing
import urllib.parse

import dacite
import requests

import digestpin.model as dm
import digestpin.reference as dr
import digestpin.util

urljoin = digestpin.util.urljoin

logger = logging.getLogger(__name__)

request_logger = logging.getLogger('digestpin.client.request_logger')

DEFAULT_API_VERSION = '1.30' # first api-version offering the distribution-endpoint
DEFAULT_DOCKER_HOST = 'http://localhost:2375'
USER_AGENT = 'digestpin (python3)'


def base_url_from_docker_host(docker_host: str) -> str:
    '''
    translates a docker-host (as understood by docker-cli via `DOCKER_HOST`) into a base-url.
    Only tcp (and http/https) hosts are supported.
    '''
    parsed = urllib.parse.urlparse(docker_host)

    if parsed.scheme == 'tcp':
        return urllib.parse.urlunparse(parsed._replace(scheme='http'))
    if parsed.scheme in ('http', 'https'):
        return docker_host
    if parsed.scheme in ('unix', 'npipe'):
        raise ValueError(f'{parsed.scheme} sockets are not supported: {docker_host=} (use tcp://)')

    raise ValueError(f'do not know how to handle {docker_host=}')


class DaemonRoutes:
    def __init__(
        self,
        base_url: str,
        api_version: str | None=DEFAULT_API_VERSION,
    ):
        if api_version:
            self.base_api_url = urljoin(base_url, f'v{api_version}')
        else:
            self.base_api_url = base_url.rstrip('/')

    def distribution_inspect_url(
        self,
        image_reference: typing.Union[str, dr.ImageReference],
    ) -> str:
        return urljoin(
            self.base_api_url,
            'distribution',
            str(image_reference),
            'json',
        )

    def service_create_url(self) -> str:
        return urljoin(
            self.base_api_url,
            'services',
            'create',
        )


def _error_message(res: requests.Response) -> str:
    try:
        message = res.json().get('message')
    except (ValueError, AttributeError):
        message = None

    if not message:
        message = res.text.strip() or f'{res.status_code} {res.reason}'

    return f'Error response from daemon: {message}'


class Client:
    '''
    a (minimalistic) client for the docker-daemon's api, offering the operations required to
    create swarm-services from (digest-pinned) images.
    '''
    def __init__(
        self,
        base_url: str=DEFAULT_DOCKER_HOST,
        api_version: str | None=DEFAULT_API_VERSION,
        routes: DaemonRoutes=None,
        disable_tls_validation=False,
        timeout_seconds: int=None,
        session: requests.Session=None,
    ):
        if not session:
            self.session = requests.Session()
        else:
            self.session = session

        if not routes:
            routes = DaemonRoutes(base_url=base_url, api_version=api_version)
        self.routes = routes
        self.disable_tls_validation = disable_tls_validation

        if timeout_seconds:
            timeout_seconds = int(timeout_seconds)
        self.timeout_seconds = timeout_seconds

    def _request(
        self,
        url: str,
        method: str='GET',
        headers: dict=None,
        encoded_registry_auth: str=None,
        **kwargs,
    ) -> requests.Response:
        if not 'timeout' in kwargs and self.timeout_seconds:
            kwargs['timeout'] = self.timeout_seconds

        if self.disable_tls_validation:
            kwargs['verify'] = False

        headers = headers or {}
        headers['User-Agent'] = USER_AGENT
        if encoded_registry_auth:
            headers['X-Registry-Auth'] = encoded_registry_auth

        request_logger.debug(
            msg=f'daemon request sent {method=} {url=}',
            extra={
                'method': method,
                'url': url,
            },
        )

        res = self.session.request(
            method=method,
            url=url,
            headers=headers,
            **kwargs,
        )
        if not res.ok:
            logger.warning(
                f'rq against {url=} failed {res.status_code=} {res.reason=} {method=} {res.content}'
            )

        return res

    def distribution_inspect(
        self,
        image_reference: typing.Union[str, dr.ImageReference],
        encoded_registry_auth: str=None,
    ) -> dm.DistributionInspect:
        '''
        returns the registry-metadata (descriptor, and supported platforms) for the given image
        reference, as reported by the daemon (which in turn will query the registry).

        Any failure (connection-errors, non-ok responses, malformed response-payloads) is raised
        as `digestpin.model.InspectionError`.
        '''
        if not image_reference:
            raise ValueError('image_reference must not be empty')

        url = self.routes.distribution_inspect_url(image_reference=image_reference)

        try:
            res = self._request(
                url=url,
                encoded_registry_auth=encoded_registry_auth,
            )
        except requests.exceptions.RequestException as rqe:
            raise dm.InspectionError(f'failed to inspect {str(image_reference)}: {rqe}') from rqe

        if not res.ok:
            raise dm.InspectionError(_error_message(res))

        try:
            return dm.DistributionInspect.from_dict(res.json())
        except (ValueError, dacite.DaciteError) as ve:
            # note: json-decoding-errors are ValueErrors, too
            raise dm.InspectionError(
                f'could not parse distribution-inspect for {str(image_reference)}: {ve}'
            ) from ve

    def service_create_raw(
        self,
        spec: typing.Union[dict, dm.ServiceSpec],
        encoded_registry_auth: str=None,
    ) -> dm.ServiceCreateResponse:
        '''
        submits the given service-spec to the daemon, without any further processing (see
        `digestpin.service.create_service` for digest-pinning). Raises
        `digestpin.model.SubmissionError` if the service could not be created.
        '''
        if isinstance(spec, dm.ServiceSpec):
            spec = spec.as_dict()

        try:
            res = self._request(
                url=self.routes.service_create_url(),
                method='POST',
                headers={
                    'Content-Type': 'application/json',
                },
                encoded_registry_auth=encoded_registry_auth,
                data=json.dumps(spec),
            )
        except requests.exceptions.RequestException as rqe:
            raise dm.SubmissionError(f'failed to submit service: {rqe}') from rqe

        if not res.ok:
            raise dm.SubmissionError(
                _error_message(res),
                status_code=res.status_code,
            )

        try:
            return dm.ServiceCreateResponse.from_dict(res.json())
        except (ValueError, KeyError) as e:
            raise dm.SubmissionError(f'could not parse service-create response: {e}') from e


def client_from_env(
    session: requests.Session=None,
) -> Client:
    '''
    creates a client configured from the environment variables honoured by docker-cli:

    DOCKER_HOST: daemon address (tcp:// or http(s)://); defaults to tcp://localhost:2375
    DOCKER_API_VERSION: api-version to use; defaults to 1.30
    DOCKER_CLIENT_TIMEOUT: request timeout in seconds
    DOCKER_TLS_VERIFY: if set to an empty value, tls-validation is disabled
    '''
    docker_host = os.environ.get('DOCKER_HOST') or DEFAULT_DOCKER_HOST
    api_version = os.environ.get('DOCKER_API_VERSION') or DEFAULT_API_VERSION
    timeout_seconds = os.environ.get('DOCKER_CLIENT_TIMEOUT') or None
    disable_tls_validation = os.environ.get('DOCKER_TLS_VERIFY', None) == ''

    base_url = base_url_from_docker_host(docker_host)
    logger.debug(f'{base_url=} {api_version=}')

    return Client(
        base_url=base_url,
        api_version=api_version,
        timeout_seconds=timeout_seconds,
        disable_tls_validation=disable_tls_validation,
        session=session,
    )
