import json

import pytest
import requests

import digestpin.client as examinee
import digestpin.model as dm
import digestpin.reference as dr

dgst = 'sha256:c0537ff6a5218ef531ece93d4984efc99bbf3f7497c0a7726c88e2bb7584dc96'


def test_base_url_from_docker_host():
    assert examinee.base_url_from_docker_host('tcp://10.0.0.1:2375') == 'http://10.0.0.1:2375'
    assert examinee.base_url_from_docker_host('https://example.org:2376') == \
        'https://example.org:2376'

    with pytest.raises(ValueError):
        examinee.base_url_from_docker_host('unix:///var/run/docker.sock')

    with pytest.raises(ValueError):
        examinee.base_url_from_docker_host('ftp://example.org')


def test_routes():
    routes = examinee.DaemonRoutes(base_url='http://daemon:2375/')

    assert routes.distribution_inspect_url(dr.parse('alpine:3')) == \
        'http://daemon:2375/v1.30/distribution/alpine:3/json'
    assert routes.service_create_url() == 'http://daemon:2375/v1.30/services/create'

    routes = examinee.DaemonRoutes(base_url='http://daemon:2375', api_version=None)
    assert routes.service_create_url() == 'http://daemon:2375/services/create'


def test_distribution_inspect(fake_session, response):
    session = fake_session(lambda rq: response(body={
        'Descriptor': {'digest': dgst},
        'Platforms': [{'architecture': 'amd64', 'os': 'linux'}],
    }))
    client = examinee.Client(base_url='http://daemon', session=session)

    distribution_inspect = client.distribution_inspect(
        image_reference=dr.parse('alpine:latest'),
        encoded_registry_auth='encoded-auth',
    )

    assert distribution_inspect.digest == dgst
    assert distribution_inspect.platforms == (dm.Platform(architecture='amd64', os='linux'),)

    rq, = session.requests
    assert rq['method'] == 'GET'
    assert rq['url'] == 'http://daemon/v1.30/distribution/alpine:latest/json'
    assert rq['headers']['X-Registry-Auth'] == 'encoded-auth'
    assert rq['headers']['User-Agent'] == examinee.USER_AGENT


def test_distribution_inspect_errors(fake_session, response):
    session = fake_session(lambda rq: response(
        status_code=401,
        body={'message': 'unauthorized'},
    ))
    client = examinee.Client(base_url='http://daemon', session=session)

    with pytest.raises(dm.InspectionError, match='Error response from daemon: unauthorized'):
        client.distribution_inspect('alpine')

    def refuse(rq):
        raise requests.exceptions.ConnectionError('connection refused')

    client = examinee.Client(base_url='http://daemon', session=fake_session(refuse))

    with pytest.raises(dm.InspectionError):
        client.distribution_inspect('alpine')

    client = examinee.Client(
        base_url='http://daemon',
        session=fake_session(lambda rq: response(body=b'not json')),
    )

    with pytest.raises(dm.InspectionError):
        client.distribution_inspect('alpine')

    client = examinee.Client(
        base_url='http://daemon',
        session=fake_session(lambda rq: response(body={'Descriptor': {'size': 'not-an-int'}})),
    )

    with pytest.raises(dm.InspectionError):
        client.distribution_inspect('alpine')


def test_timeout_is_passed(fake_session, response):
    session = fake_session(lambda rq: response(body={}))
    client = examinee.Client(base_url='http://daemon', session=session, timeout_seconds='10')

    client.distribution_inspect('alpine')

    rq, = session.requests
    assert rq['timeout'] == 10


def test_service_create_raw(fake_session, response):
    session = fake_session(lambda rq: response(body={'ID': 'service_id'}))
    client = examinee.Client(base_url='http://daemon', session=session)

    spec = dm.ServiceSpec(
        task_template=dm.TaskSpec(
            container_spec=dm.ContainerSpec(image='alpine'),
        ),
    )
    res = client.service_create_raw(spec=spec)

    assert res.id == 'service_id'
    assert res.warnings == []

    rq, = session.requests
    assert rq['method'] == 'POST'
    assert rq['url'] == 'http://daemon/v1.30/services/create'
    assert json.loads(rq['data']) == spec.as_dict()
    assert 'X-Registry-Auth' not in rq['headers']


def test_service_create_error(fake_session, response):
    session = fake_session(lambda rq: response(
        status_code=500,
        body={'message': 'Server error'},
    ))
    client = examinee.Client(base_url='http://daemon', session=session)

    with pytest.raises(dm.SubmissionError) as excinfo:
        client.service_create_raw(spec={})

    assert str(excinfo.value) == 'Error response from daemon: Server error'
    assert excinfo.value.status_code == 500


def test_service_create_error_plain_text(fake_session, response):
    session = fake_session(lambda rq: response(
        status_code=503,
        body=b'service unavailable\n',
    ))
    client = examinee.Client(base_url='http://daemon', session=session)

    with pytest.raises(dm.SubmissionError, match='service unavailable'):
        client.service_create_raw(spec={})


def test_client_from_env(monkeypatch):
    monkeypatch.setenv('DOCKER_HOST', 'tcp://swarm-manager:2375')
    monkeypatch.setenv('DOCKER_API_VERSION', '1.41')
    monkeypatch.setenv('DOCKER_CLIENT_TIMEOUT', '30')
    monkeypatch.delenv('DOCKER_TLS_VERIFY', raising=False)

    client = examinee.client_from_env()

    assert client.routes.service_create_url() == 'http://swarm-manager:2375/v1.41/services/create'
    assert client.timeout_seconds == 30
    assert not client.disable_tls_validation


def test_client_from_env_defaults(monkeypatch):
    for name in ('DOCKER_HOST', 'DOCKER_API_VERSION', 'DOCKER_CLIENT_TIMEOUT'):
        monkeypatch.delenv(name, raising=False)

    client = examinee.client_from_env()

    assert client.routes.service_create_url() == 'http://localhost:2375/v1.30/services/create'
    assert client.timeout_seconds is None
