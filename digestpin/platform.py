import collections.abc
import dataclasses
import enum
import typing

import digestpin.model as dm


class OperatingSystem(enum.Enum):
    '''
    OperatingSystem contains the values for the 'os' property of an image's platform.
    See https://go.dev/doc/install/source#environment.
    '''
    AIX = 'aix'
    ANDROID = 'android'
    DARWIN = 'darwin'
    DRAGONFLY = 'dragonfly'
    FREEBSD = 'freebsd'
    ILLUMOS = 'illumos'
    IOS = 'ios'
    JS = 'js'
    LINUX = 'linux'
    NETBSD = 'netbsd'
    OPENBSD = 'openbsd'
    PLAN9 = 'plan9'
    SOLARIS = 'solaris'
    WINDOWS = 'windows'

    @classmethod
    def contains_value(cls, value: str):
        return value in [v.value for v in OperatingSystem]


class Architecture(enum.Enum):
    '''
    Architecture contains the values for the 'architecture' property of an image's platform.
    See https://go.dev/doc/install/source#environment.
    '''
    PPC64 = 'ppc64'
    _386 = '386'
    AMD64 = 'amd64'
    ARM = 'arm'
    ARM64 = 'arm64'
    WASM = 'wasm'
    LOONG64 = 'loong64'
    MIPS = 'mips'
    MIPSLE = 'mipsle'
    MIPS64 = 'mips64'
    MIPS64LE = 'mips64le'
    PPC64le = 'ppc64le'
    RISCV64 = 'riscv64'
    S390X = 's390x'

    @classmethod
    def contains_value(cls, value: str):
        return value in [v.value for v in Architecture]


# architecture-aliases, as commonly reported by `uname -m`
_architecture_aliases = {
    'x86_64': ('amd64', None),
    'x86-64': ('amd64', None),
    'i386': ('386', None),
    'aarch64': ('arm64', None),
    'armhf': ('arm', 'v7'),
    'armel': ('arm', 'v6'),
}


def normalise(platform: dm.Platform) -> dm.Platform:
    '''
    returns an equivalent platform w/ os and architecture lowercased and well-known aliases
    replaced. Default variants are made explicit for arm (v7), and dropped for arm64 (v8).
    '''
    os = platform.os.lower()
    architecture = platform.architecture.lower()
    variant = platform.variant

    if architecture in _architecture_aliases:
        architecture, alias_variant = _architecture_aliases[architecture]
        variant = variant or alias_variant

    if architecture == 'arm64' and variant == 'v8':
        variant = None
    elif architecture == 'arm' and not variant:
        variant = 'v7'

    return dataclasses.replace(
        platform,
        os=os,
        architecture=architecture,
        variant=variant,
    )


class PlatformFilter:
    @staticmethod
    def create(
        included_platforms: typing.List[str],
    ) -> typing.Callable[[dm.Platform], bool]:
        matchers = []
        for included_platform in included_platforms:
            matchers.append(PlatformFilter._parse_expr(included_platform))

        def filter(platform_to_match: dm.Platform) -> bool:
            for m in matchers:
                if PlatformFilter._match(m, platform_to_match):
                    return True

            return False

        return filter

    @staticmethod
    def _parse_expr(platform_expr: str) -> dict:
        splitted = platform_expr.split('/')
        if len(splitted) < 2 or len(splitted) > 3:
            raise ValueError(f'invalid platform expression {platform_expr=}.'
                              ' expression must have the format os/architecture[/variant]')

        os = splitted[0]
        if os != '*' and not OperatingSystem.contains_value(os):
            raise ValueError(f'invalid os in platform expression {platform_expr=}.'
                             f' allowed values are {["*"] + [o.value for o in OperatingSystem]}')

        architecture = splitted[1]
        if architecture != '*' and not Architecture.contains_value(architecture):
            raise ValueError(f'invalid architecture in platform expression {platform_expr=}.'
                             f' allowed values are {["*"] + [a.value for a in Architecture]}')

        variant = '*'
        if len(splitted) == 3:
            variant = splitted[2]

        # v8 is arm64's default variant (dropped by `normalise`)
        if architecture == 'arm64' and variant == 'v8':
            variant = None

        return {
            'os': os,
            'architecture': architecture,
            'variant': variant,
        }

    @staticmethod
    def _match(m: dict, p: dm.Platform) -> bool:
        normalised_p = normalise(p)
        return ((m['os'] == '*' or m['os'] == normalised_p.os) and
                (m['architecture'] == '*' or m['architecture'] == normalised_p.architecture) and
                (m['variant'] == '*' or m['variant'] == normalised_p.variant)
               )


def select(
    platforms: collections.abc.Iterable[dm.Platform],
    platform_filter: typing.Callable[[dm.Platform], bool] | None,
) -> tuple[dm.Platform, ...]:
    '''
    returns the platforms accepted by the given filter (all, if no filter is passed), retaining
    their order
    '''
    if not platform_filter:
        return tuple(platforms)

    return tuple(p for p in platforms if platform_filter(p))
