import dataclasses
import functools
import re
import typing

import digestpin.util as du

NAME_TOTAL_LENGTH_MAX = 255

_alphanumeric = r'[a-z0-9]+'
_separator = r'(?:[._]|__|[-]+)'
_path_component = rf'{_alphanumeric}(?:{_separator}{_alphanumeric})*'
_domain_component = r'(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])'
_domain = rf'{_domain_component}(?:\.{_domain_component})*(?::[0-9]+)?'
_name = rf'(?:{_domain}/)?{_path_component}(?:/{_path_component})*'
_tag = r'[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}'
_digest = r'[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}'

reference_pattern = re.compile(
    rf'(?P<name>{_name})(?::(?P<tag>{_tag}))?(?:@(?P<digest>{_digest}))?'
)
anchored_identifier_pattern = re.compile(r'[a-f0-9]{64}')


class ParseError(ValueError):
    pass


@dataclasses.dataclass(frozen=True)
class ImageReference:
    '''
    a parsed and normalised image reference

    `domain` is the registry host (`docker.io` for the default registry), `path` the repository
    path on that registry (including the implicit `library/` prefix for official images on the
    default registry). Tag and digest are both optional; if both are present, the digest is
    authoritative and the tag is kept for display.
    '''
    domain: str
    path: str
    tag: str | None = None
    digest: str | None = None

    @staticmethod
    def parse(image_reference: str) -> 'ImageReference':
        '''
        parses the given (user-supplied) image reference, following docker-cli's normalisation
        rules. Raises `ParseError` if the reference is malformed.
        '''
        if not isinstance(image_reference, str):
            raise ParseError(f'invalid reference format: {image_reference=}')
        if not image_reference:
            raise ParseError('invalid reference format: repository name must not be empty')

        if anchored_identifier_pattern.fullmatch(image_reference):
            raise ParseError(
                f'invalid repository name ({image_reference}), '
                'cannot specify 64-byte hexadecimal strings'
            )

        if not (match := reference_pattern.fullmatch(image_reference)):
            if reference_pattern.fullmatch(image_reference.lower()):
                raise ParseError(
                    f'invalid reference format: repository name must be lowercase: '
                    f'{image_reference=}'
                )
            raise ParseError(f'invalid reference format: {image_reference=}')

        name = match.group('name')
        if len(name) > NAME_TOTAL_LENGTH_MAX:
            raise ParseError(
                f'invalid reference format: repository name must not be longer than '
                f'{NAME_TOTAL_LENGTH_MAX} characters: {image_reference=}'
            )

        domain, path = du.split_domain(name)

        if path.lower() != path:
            raise ParseError(
                f'invalid reference format: repository name must be lowercase: {image_reference=}'
            )

        return ImageReference(
            domain=domain,
            path=path,
            tag=match.group('tag'),
            digest=match.group('digest'),
        )

    @staticmethod
    def to_image_ref(
        image_reference: typing.Union[str, 'ImageReference'],
    ) -> 'ImageReference':
        if isinstance(image_reference, ImageReference):
            return image_reference
        return ImageReference.parse(image_reference)

    @property
    def is_default_registry(self) -> bool:
        return self.domain == du.DEFAULT_DOMAIN

    @property
    def repository(self) -> str:
        '''
        fully qualified repository name (w/o tag or digest)
        '''
        return f'{self.domain}/{self.path}'

    @property
    def familiar_name(self) -> str:
        '''
        repository name as displayed by docker-cli: references on the default registry are
        shortened (omitting registry host and `library/` prefix), others are fully qualified.
        '''
        if not self.is_default_registry:
            return self.repository

        namespace, sep, name = self.path.partition('/')
        if namespace == du.OFFICIAL_REPO_NAME and sep and '/' not in name:
            return name
        return self.path

    @property
    def has_digest(self) -> bool:
        return bool(self.digest)

    @property
    def has_tag(self) -> bool:
        return bool(self.tag)

    @property
    def tag_or_default(self) -> str:
        return self.tag or du.DEFAULT_TAG

    @property
    def canonical(self) -> str:
        return self._render(self.repository)

    def with_default_tag(self) -> 'ImageReference':
        '''
        returns a copy w/ the default tag (`latest`) added, unless a tag or digest is present
        '''
        if self.has_tag or self.has_digest:
            return self
        return dataclasses.replace(self, tag=self.tag_or_default)

    def with_digest(self, digest: str) -> 'ImageReference':
        if not re.fullmatch(_digest, digest):
            raise ParseError(f'invalid digest format: {digest=}')
        return dataclasses.replace(self, digest=digest)

    def _render(self, name: str) -> str:
        if self.tag:
            name = f'{name}:{self.tag}'
        if self.digest:
            name = f'{name}@{self.digest}'
        return name

    def __str__(self) -> str:
        return self._render(self.familiar_name)


@functools.lru_cache(maxsize=256)
def parse(image_reference: str) -> ImageReference:
    return ImageReference.parse(image_reference)
