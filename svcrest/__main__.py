import argparse
import asyncio
import json
import sys
from contextlib import AsyncExitStack

from svcrest.avails import ServiceError, TransportConstructionFailure, const
from svcrest.conduit.service import Service
from svcrest.configurations import configure
from svcrest.managers import logmanager


def _json_object(value):
    try:
        payload = json.loads(value)
    except ValueError as ve:
        raise argparse.ArgumentTypeError(f"invalid json: {ve}") from None
    if not isinstance(payload, dict):
        raise argparse.ArgumentTypeError("payload must be a json object")
    return payload


def get_parser():
    parser = argparse.ArgumentParser(
        prog="svcrest",
        description="Sends a single notify or solicit event to a svc_rest websocket service"
    )
    parser.add_argument('--base', help="ws[s]:// or http[s]:// base of the service, defaults to configured one")
    parser.add_argument('--href', help="path of the rest service, defaults to configured one")
    parser.add_argument('--root', help="directory holding configs/ and logs/, defaults to current directory")
    parser.add_argument('--config', help="configuration file, defaults to configs/default_config.ini")
    parser.add_argument('--payload', type=_json_object, default={}, help="json object sent along with the event")
    parser.add_argument('--timeout', type=float, help="seconds to wait for the response of a solicit")
    parser.add_argument('--debug', action='store_true')

    event = parser.add_mutually_exclusive_group(required=True)
    event.add_argument('--notify', metavar='PATH', help="path to notify")
    event.add_argument('--solicit', metavar='PATH', help="path to solicit, response is printed")
    return parser


async def run(args):
    configure.set_paths(args.root)
    await configure.load_configs(args.config)
    const.debug = args.debug

    async with AsyncExitStack() as exit_stack:
        await logmanager.initiate(exit_stack)
        if const.debug:
            configure.print_constants()

        failures = []

        def _on_error(error):
            failures.append(error)
            print(f"error: {error}", file=sys.stderr)
            if isinstance(error, TransportConstructionFailure):
                service.close()

        service = Service(args.base or const.SERVICE_BASE, args.href or const.SERVICE_HREF, on_error=_on_error)
        async with service:
            if not await service.wait_open():
                return 1

            if args.notify:
                service.notify(args.notify, args.payload)
                return 0

            timeout = args.timeout if args.timeout is not None else service.solicit_timeout
            try:
                response = await service.asolicit(args.solicit, args.payload, timeout=timeout)
            except ServiceError as se:
                print(f"error: {se}", file=sys.stderr)
                return 1
            print(response)

        return 1 if failures else 0


def main(argv=None):
    args = get_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
