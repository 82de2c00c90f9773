import functools
import logging

import digestpin.client as dc
import digestpin.model as dm
import digestpin.platform as dp
import digestpin.reference as dr
import digestpin.resolve as dres

logger = logging.getLogger(__name__)


def digest_warning(image: str) -> str:
    return (
        f'image {image} could not be accessed on a registry to record its digest. '
        f'Each node will access {image} independently, possibly leading to different nodes '
        'running different versions of the image.'
    )


def pin_service_spec(
    spec: dm.ServiceSpec,
    decision: dres.PinningDecision,
    platform_filter=None,
) -> dm.ServiceSpec:
    '''
    returns a copy of the given service-spec, with image and placement-platforms set according to
    the given pinning-decision. If a platform_filter is passed, only matching platforms are
    retained; if none of the platforms reported by the registry match, `ValueError` is raised.
    '''
    spec = spec.copy()
    spec.task_template.container_spec.image = decision.image

    if not decision.platforms:
        return spec

    platforms = dp.select(
        platforms=decision.platforms,
        platform_filter=platform_filter,
    )
    if not platforms:
        offered = ', '.join(str(p) for p in decision.platforms)
        raise ValueError(f'{decision.image=} does not offer any requested platform: {offered=}')

    if not spec.task_template.placement:
        spec.task_template.placement = dm.Placement()
    spec.task_template.placement.platforms = list(platforms)

    return spec


def create_service(
    client: dc.Client,
    spec: dm.ServiceSpec,
    options: dm.ServiceCreateOptions=None,
) -> dm.ServiceCreateResponse:
    '''
    creates a swarm-service from the given spec.

    If `options.query_registry` is set, the container-image is pinned to the digest reported by
    the registry, and the platforms supported by the image are set as placement-platforms. If the
    registry could not be queried, the service is still created (using the unpinned image), and
    a warning is added to the returned response.

    The passed spec is not modified. Raises `digestpin.reference.ParseError` if the spec's image
    is malformed, and `digestpin.model.SubmissionError` if the daemon rejected the service.
    '''
    options = options or dm.ServiceCreateOptions()
    image = spec.image

    # fail early on malformed image references (before any request is issued)
    image_reference = dr.parse(image)

    decision = None
    if options.query_registry:
        decision = dres.resolve(
            image_reference=image,
            query_registry=True,
            inspect=functools.partial(
                client.distribution_inspect,
                encoded_registry_auth=options.encoded_registry_auth,
            ),
        )
        logger.info(f'{image=} resolved to {decision.image=} ({type(decision).__name__})')

        spec = pin_service_spec(
            spec=spec,
            decision=decision,
            platform_filter=options.platform_filter,
        )
    else:
        logger.debug(f'not querying registry for {str(image_reference)=}')

    response = client.service_create_raw(
        spec=spec,
        encoded_registry_auth=options.encoded_registry_auth,
    )

    if decision and decision.degraded:
        response.warnings.append(digest_warning(decision.image))

    return response
