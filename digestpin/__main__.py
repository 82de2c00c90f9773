import argparse
import functools
import json
import logging
import sys

import yaml

import digestpin.auth
import digestpin.client
import digestpin.log
import digestpin.platform
import digestpin.reference
import digestpin.resolve


def _print(raw: dict, format: str):
    if format == 'yaml':
        print(yaml.safe_dump(raw))
    elif format == 'json':
        print(json.dumps(raw, indent=2))
    elif format == 'text':
        for k, v in raw.items():
            print(f'{k}: {v}')
    else:
        raise ValueError(format) # this is a bug


def _parse_or_exit(image_reference: str) -> digestpin.reference.ImageReference:
    try:
        return digestpin.reference.parse(image_reference)
    except digestpin.reference.ParseError as pe:
        print(f'Error: {pe}')
        exit(1)


def normalise(parsed):
    for image_reference in parsed.image_reference:
        ref = _parse_or_exit(image_reference)
        _print(
            raw={
                'familiar': str(ref),
                'canonical': ref.canonical,
                'default_registry': ref.is_default_registry,
            },
            format=parsed.format,
        )


def pin(parsed):
    image_reference, = parsed.image_reference
    _parse_or_exit(image_reference)

    client = digestpin.client.client_from_env()

    credentials_lookup = digestpin.auth.docker_credentials_lookup(
        docker_cfg=parsed.docker_cfg,
        absent_ok=True,
    )
    credentials = credentials_lookup(
        image_reference=image_reference,
        absent_ok=True,
    )

    decision = digestpin.resolve.resolve(
        image_reference=image_reference,
        query_registry=not parsed.no_query,
        inspect=functools.partial(
            client.distribution_inspect,
            encoded_registry_auth=digestpin.auth.encode_registry_auth(credentials),
        ),
    )

    platforms = decision.platforms
    if parsed.platform:
        platform_filter = digestpin.platform.PlatformFilter.create(
            included_platforms=parsed.platform,
        )
        platforms = digestpin.platform.select(
            platforms=platforms,
            platform_filter=platform_filter,
        )

    _print(
        raw={
            'image': decision.image,
            'result': type(decision).__name__,
            'platforms': [str(p) for p in platforms],
        },
        format=parsed.format,
    )

    if decision.degraded:
        exit(2)


def main():
    parser = argparse.ArgumentParser()
    subcmd_parsers = parser.add_subparsers(
        title='commands',
        required=True,
    )

    parser.add_argument('--verbose', '-v', action='store_true', default=False)

    normalise_parser = subcmd_parsers.add_parser(
        'normalise',
        aliases=('n',),
        help='print familiar and canonical form of image-references',
    )
    normalise_parser.set_defaults(callable=normalise)
    normalise_parser.add_argument(
        'image_reference',
        nargs='+',
    )
    normalise_parser.add_argument(
        '--format',
        required=False,
        default='text',
        choices=('text', 'json', 'yaml'),
    )

    pin_parser = subcmd_parsers.add_parser(
        'pin',
        aliases=('p',),
        help='pin image-reference to digest, as reported by the docker-daemon ($DOCKER_HOST)',
    )
    pin_parser.set_defaults(callable=pin)
    pin_parser.add_argument(
        'image_reference',
        nargs=1,
    )
    pin_parser.add_argument('--docker-cfg', default=None)
    pin_parser.add_argument(
        '--no-query',
        action='store_true',
        default=False,
        help='do not query registry (only normalise and add default tag)',
    )
    pin_parser.add_argument(
        '--platform',
        action='append',
        default=[],
        help='only report matching platforms (format: OS/ARCH[/VARIANT], may be repeated)',
    )
    pin_parser.add_argument(
        '--format',
        required=False,
        default='text',
        choices=('text', 'json', 'yaml'),
    )

    parsed = parser.parse_args()

    digestpin.log.configure_default_logging(
        stdout_level=logging.DEBUG if parsed.verbose else logging.WARNING,
    )

    try:
        parsed.callable(parsed=parsed)
    except ValueError as ve:
        print(f'Error: {ve}', file=sys.stderr)
        exit(1)


if __name__ == '__main__':
    main()
