DEFAULT_DOMAIN = 'docker.io'
LEGACY_DEFAULT_DOMAIN = 'index.docker.io'
OFFICIAL_REPO_NAME = 'library'
DEFAULT_TAG = 'latest'


def split_domain(name: str) -> tuple[str, str]:
    '''
    splits the given (tag- and digest-less) image name into domain and path, mimicking
    docker-cli: the leading component is only considered to be a registry host if it looks
    like one (contains a dot or a port, or is `localhost`). Otherwise, the default registry
    (docker.io) is assumed.
    '''
    if not isinstance(name, str):
        raise ValueError(name)

    domain, sep, path = name.partition('/')

    if not sep or (
        '.' not in domain
        and ':' not in domain
        and domain != 'localhost'
    ):
        domain = DEFAULT_DOMAIN
        path = name

    # of course, docker.io gets special handling
    if domain == LEGACY_DEFAULT_DOMAIN:
        domain = DEFAULT_DOMAIN

    # insert 'library' if only image name was given
    if domain == DEFAULT_DOMAIN and '/' not in path:
        path = f'{OFFICIAL_REPO_NAME}/{path}'

    return domain, path


def urljoin(*parts):
    if len(parts) == 1:
        return parts[0]
    first = parts[0]
    last = parts[-1]
    middle = parts[1:-1]

    first = first.rstrip('/')
    middle = list(map(lambda s: s.strip('/'), middle))
    last = last.lstrip('/')

    return '/'.join([first] + middle + [last])
