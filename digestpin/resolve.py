'''
digest-pinning of image references

Given a (user-supplied) image reference, the resolver decides whether the reference may be
pinned to a content-digest, and which platforms the referenced image supports. Registry
metadata is retrieved through an injected `inspect` callable (typically
`digestpin.client.Client.distribution_inspect`).

The outcome is always one of the result-variants defined here:

AlreadyPinned:  reference already carried a digest; registry was not queried
PinnedByDigest: registry was queried and returned a digest; reference was pinned
Fallback:       reference was not pinned (querying disabled, registry did not return a
                digest, or inspection failed); if inspection failed, `error` is set
'''
import collections.abc
import dataclasses
import logging
import typing

import requests

import digestpin.model as dm
import digestpin.reference as dr

logger = logging.getLogger(__name__)

inspect_callable = collections.abc.Callable[[dr.ImageReference], dm.DistributionInspect]


@dataclasses.dataclass(frozen=True)
class PinningDecision:
    image: str
    platforms: tuple[dm.Platform, ...] = ()

    @property
    def pinned(self) -> bool:
        return False

    @property
    def degraded(self) -> bool:
        return False


@dataclasses.dataclass(frozen=True)
class AlreadyPinned(PinningDecision):
    @property
    def pinned(self) -> bool:
        return True


@dataclasses.dataclass(frozen=True)
class PinnedByDigest(PinningDecision):
    digest: str | None = None

    @property
    def pinned(self) -> bool:
        return True


@dataclasses.dataclass(frozen=True)
class Fallback(PinningDecision):
    error: Exception | None = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


def resolve(
    image_reference: typing.Union[str, dr.ImageReference],
    query_registry: bool,
    inspect: inspect_callable | None=None,
) -> PinningDecision:
    '''
    resolves the given image reference into a `PinningDecision`.

    If the reference already contains a digest, it is returned unchanged (the explicit digest
    always takes precedence over whatever the registry might report), and `inspect` is not
    called. Otherwise, if `query_registry` is truthy, `inspect` is called (exactly once, w/o any
    retries) with the reference (using the `latest` tag if no tag was given).

    Inspection failures (`digestpin.model.InspectionError`, or transport-errors raised by
    requests) are not propagated; instead, a `Fallback` carrying the error is returned.

    Raises `digestpin.reference.ParseError` if the passed image reference is malformed.
    '''
    if isinstance(image_reference, str):
        original_image_reference = image_reference
        image_reference = dr.parse(image_reference)
    else:
        original_image_reference = str(image_reference)

    if image_reference.has_digest:
        logger.debug(f'{original_image_reference=} is already pinned - not querying registry')
        return AlreadyPinned(image=original_image_reference)

    tagged_reference = image_reference.with_default_tag()

    if not query_registry:
        return Fallback(image=str(tagged_reference))

    if not inspect:
        raise ValueError('inspect must be passed if query_registry is set')

    try:
        distribution_inspect = inspect(tagged_reference)
    except (dm.InspectionError, requests.exceptions.RequestException) as e:
        logger.warning(
            f'failed to retrieve digest for {str(tagged_reference)=} - will not pin: {e}'
        )
        return Fallback(
            image=str(tagged_reference),
            error=e,
        )

    platforms = tuple(distribution_inspect.platforms)

    if not (digest := distribution_inspect.digest):
        logger.info(f'registry did not report a digest for {str(tagged_reference)=}')
        return Fallback(
            image=str(tagged_reference),
            platforms=platforms,
        )

    try:
        pinned_reference = tagged_reference.with_digest(digest)
    except dr.ParseError as pe:
        logger.warning(f'registry returned malformed {digest=} - will not pin')
        return Fallback(
            image=str(tagged_reference),
            platforms=platforms,
            error=dm.InspectionError(f'malformed digest for {str(tagged_reference)}: {pe}'),
        )

    logger.info(f'pinned {original_image_reference=} to {str(pinned_reference)=}')

    return PinnedByDigest(
        image=str(pinned_reference),
        platforms=platforms,
        digest=digest,
    )
