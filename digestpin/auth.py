import base64
import collections.abc
import dataclasses
import json
import os

import digestpin.reference as dr

# key used by docker-cli for credentials for the default registry
LEGACY_DEFAULT_REGISTRY_KEY = 'https://index.docker.io/v1/'


@dataclasses.dataclass(frozen=True)
class RegistryCredentials:
    username: str
    password: str
    serveraddress: str | None = None


# typehint-alias
image_reference = str
credentials_lookup = collections.abc.Callable[[image_reference, bool], RegistryCredentials]


def encode_registry_auth(credentials: RegistryCredentials | None) -> str | None:
    '''
    encodes the given credentials into the format expected by the daemon in the
    `X-Registry-Auth` header (urlsafe base64-encoded json)
    '''
    if not credentials:
        return None

    auth_cfg = {
        'username': credentials.username,
        'password': credentials.password,
    }
    if credentials.serveraddress:
        auth_cfg['serveraddress'] = credentials.serveraddress

    return base64.urlsafe_b64encode(
        json.dumps(auth_cfg).encode('utf-8'),
    ).decode('utf-8')


def _host(netloc: str) -> str:
    # ignore scheme, path and port - match cfg only by hostname
    netloc = netloc.split('://', 1)[-1]
    netloc = netloc.split('/', 1)[0]
    return netloc.split(':', 1)[0]


def docker_credentials_lookup(
    docker_cfg: str | None=None,
    absent_ok: bool=False,
) -> credentials_lookup:
    '''
    returns a credentials-lookup backed by docker's auth-config. Docker's auth-config only allows
    configuring credentials per hostname. By default, docker-cfg is expected at
    `$HOME/.docker/config.json`. Location of docker-cfg can be customised via docker_cfg
    parameter.

    if no docker-cfg is found, raises RuntimeError, unless absent_ok is truthy, in which case the
    returned lookup will never return any credentials (which might still be useful, as many
    registries allow anonymous read-access).
    '''
    if not docker_cfg:
        docker_cfg = os.path.join(os.environ.get('HOME', ''), '.docker/config.json')

    if not os.path.isfile(docker_cfg):
        if not absent_ok:
            raise RuntimeError(f'not an existing file: {docker_cfg=}')

        def find_nothing_lookup(
            image_reference: str,
            absent_ok: bool=False,
        ):
            if not absent_ok:
                raise ValueError(f'no auth-cfg found in {docker_cfg=} for {image_reference=}')
            return None

        return find_nothing_lookup

    def docker_auth_lookup(
        image_reference: str,
        absent_ok: bool=False,
    ):
        # re-read docker-cfg to reflect fs-updates
        with open(docker_cfg) as f:
            docker_auth = json.load(f)
            auths = docker_auth.get('auths', None)

        if not auths:
            # docker-cfg might be empty - do not handle as an error; however, we can never serve
            # anything useful
            if not absent_ok:
                raise ValueError(f'no auth-cfg found in {docker_cfg=} for {image_reference=}')
            return None

        parsed_ref = dr.ImageReference.to_image_ref(image_reference)
        image_host = _host(parsed_ref.domain)

        for netloc, auth_dict in auths.items():
            if _host(netloc) == image_host:
                break
            if parsed_ref.is_default_registry and netloc == LEGACY_DEFAULT_REGISTRY_KEY:
                break
        else:
            if not absent_ok:
                raise ValueError(
                    f'no matching auth-cfg found in {docker_cfg=} for {image_reference=}'
                )
            return None # no matching cfg was found

        # docker's auth-cfgs only have a single value `auth` (or so we hope / assume)
        auth = auth_dict.get('auth', None)
        if not auth:
            # credential-helpers (e.g. docker-desktop) leave entries w/o `auth`
            if absent_ok:
                return None
            raise ValueError(f'did not find expected attr `auth` in {docker_cfg=} for {image_host=}')

        auth = base64.b64decode(auth).decode('utf-8')
        username, passwd = auth.split(':', 1)

        return RegistryCredentials(
            username=username,
            password=passwd,
            serveraddress=netloc,
        )

    return docker_auth_lookup
