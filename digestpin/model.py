import copy
import dataclasses
import typing

import dacite


class InspectionError(RuntimeError):
    '''
    raised if image metadata could not be retrieved from the registry (through the daemon's
    distribution-endpoint). The digest-resolver recovers from this error by falling back to
    the unpinned image reference.
    '''
    pass


class SubmissionError(RuntimeError):
    '''
    raised if the daemon rejected (or could not be reached for) service-creation
    '''
    def __init__(self, message: str, status_code: int | None=None):
        super().__init__(message)
        self.status_code = status_code


def _strip_none(raw: dict) -> dict:
    # fields that are None should not be included in the output
    return {k:v for k,v in raw.items() if v is not None}


@dataclasses.dataclass(frozen=True)
class Platform:
    '''
    https://github.com/opencontainers/image-spec/blob/main/image-index.md#image-index-property-descriptions
    '''
    architecture: str
    os: str
    variant: str | None = None
    features: list[str] | None = None

    def as_dict(self) -> dict:
        raw = dataclasses.asdict(self)

        if not self.variant:
            del raw['variant']

        if not self.features:
            del raw['features']

        return raw

    def as_swarm_platform(self) -> dict:
        return {
            'Architecture': self.architecture,
            'OS': self.os,
        }

    def __str__(self) -> str:
        if self.variant:
            return f'{self.os}/{self.architecture}/{self.variant}'
        return f'{self.os}/{self.architecture}'


@dataclasses.dataclass(frozen=True)
class Descriptor:
    mediaType: str | None = None
    digest: str | None = None
    size: int | None = None
    urls: list[str] | None = None
    annotations: dict | None = None

    def as_dict(self) -> dict:
        return _strip_none(dataclasses.asdict(self))


@dataclasses.dataclass(frozen=True)
class DistributionInspect:
    '''
    result of inspecting an image's registry metadata, as returned by the daemon's
    `/distribution/{name}/json` endpoint.
    '''
    descriptor: Descriptor = dataclasses.field(default_factory=Descriptor)
    platforms: tuple[Platform, ...] = ()

    @property
    def digest(self) -> str | None:
        return self.descriptor.digest or None

    @staticmethod
    def from_dict(raw: dict) -> 'DistributionInspect':
        if not isinstance(raw, dict):
            raise ValueError(f'expected a dict: {raw=}')

        descriptor = dacite.from_dict(
            data_class=Descriptor,
            data=raw.get('Descriptor') or {},
        )
        platforms = tuple(
            dacite.from_dict(
                data_class=Platform,
                data=platform,
            ) for platform in (raw.get('Platforms') or ())
        )

        return DistributionInspect(
            descriptor=descriptor,
            platforms=platforms,
        )

    def as_dict(self) -> dict:
        return {
            'Descriptor': self.descriptor.as_dict(),
            'Platforms': [p.as_dict() for p in self.platforms],
        }


@dataclasses.dataclass
class ContainerSpec:
    image: str
    command: list[str] | None = None
    args: list[str] | None = None
    env: list[str] | None = None

    def as_dict(self) -> dict:
        return _strip_none({
            'Image': self.image,
            'Command': self.command,
            'Args': self.args,
            'Env': self.env,
        })


@dataclasses.dataclass
class Placement:
    constraints: list[str] = dataclasses.field(default_factory=list)
    platforms: list[Platform] = dataclasses.field(default_factory=list)

    def as_dict(self) -> dict:
        raw = {}
        if self.constraints:
            raw['Constraints'] = list(self.constraints)
        if self.platforms:
            raw['Platforms'] = [p.as_swarm_platform() for p in self.platforms]
        return raw


@dataclasses.dataclass
class TaskSpec:
    container_spec: ContainerSpec
    placement: Placement | None = None

    def as_dict(self) -> dict:
        raw = {
            'ContainerSpec': self.container_spec.as_dict(),
        }
        if self.placement and (placement := self.placement.as_dict()):
            raw['Placement'] = placement
        return raw


@dataclasses.dataclass
class ServiceSpec:
    '''
    the subset of swarm's ServiceSpec relevant for creating a service from a container image
    '''
    task_template: TaskSpec
    name: str | None = None
    labels: dict[str, str] = dataclasses.field(default_factory=dict)

    @property
    def image(self) -> str:
        return self.task_template.container_spec.image

    def copy(self) -> 'ServiceSpec':
        return copy.deepcopy(self)

    def as_dict(self) -> dict:
        raw = {
            'TaskTemplate': self.task_template.as_dict(),
        }
        if self.name:
            raw['Name'] = self.name
        if self.labels:
            raw['Labels'] = dict(self.labels)
        return raw


@dataclasses.dataclass
class ServiceCreateOptions:
    '''
    query_registry: resolve image digest and supported platforms via the registry before
        creating the service
    encoded_registry_auth: value for the `X-Registry-Auth` header
        (see `digestpin.auth.encode_registry_auth`)
    platform_filter: optional predicate, narrowing the platforms discovered from the registry
        to the ones that should be used as placement-constraints (see `digestpin.platform`)
    '''
    query_registry: bool = False
    encoded_registry_auth: str | None = None
    platform_filter: typing.Callable[[Platform], bool] | None = None


@dataclasses.dataclass
class ServiceCreateResponse:
    id: str
    warnings: list[str] = dataclasses.field(default_factory=list)

    @staticmethod
    def from_dict(raw: dict) -> 'ServiceCreateResponse':
        return ServiceCreateResponse(
            id=raw['ID'],
            warnings=list(raw.get('Warnings') or ()),
        )
