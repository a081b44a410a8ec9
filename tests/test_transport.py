import asyncio
import json
import socket

import pytest
from websockets.asyncio.server import serve
from websockets.exceptions import InvalidURI

from svcrest import Service, ServiceState, TransportConstructionFailure, TransportRuntimeError
from svcrest.conduit.transport import WebSocketTransport


def _port(server):
    return server.sockets[0].getsockname()[1]


def _unused_port():
    with socket.socket() as sock:
        sock.bind(("localhost", 0))
        return sock.getsockname()[1]


def test_invalid_url_fails_synchronously():
    with pytest.raises(InvalidURI):
        WebSocketTransport("ws://:8000/svc_rest/websocket/svc")


def test_buffer_discards_oldest():
    transport = WebSocketTransport("ws://localhost:8000/svc_rest/websocket/svc", buffer_size=2)

    for text in ("first", "second", "third"):
        transport.send(text)

    assert [transport.buffer.get_nowait() for _ in range(2)] == ["second", "third"]


def test_transport_round_trip():
    seen = {}

    async def handler(ws):
        seen['path'] = ws.request.path
        seen['cookie'] = ws.request.headers.get('Cookie')
        text = await ws.recv()
        await ws.send(f"echo:{text}")
        await ws.close()

    async def pre_connect():
        return {'Cookie': 'JSESSIONID=abc123'}

    async def main():
        received = []
        closed = asyncio.Event()

        async with serve(handler, "localhost", 0) as server:
            transport = WebSocketTransport(
                f"ws://localhost:{_port(server)}/svc_rest/websocket/svc/Rest",
                pre_connect=pre_connect,
            )
            transport.on_message = received.append
            transport.on_close = closed.set
            transport.send("hello")
            transport.start()
            await asyncio.wait_for(closed.wait(), 5)
        return received

    received = asyncio.run(main())

    assert received == ["echo:hello"]
    assert seen == {'path': "/svc_rest/websocket/svc/Rest", 'cookie': "JSESSIONID=abc123"}


def test_service_over_websocket(hooks):
    replies = []

    async def handler(ws):
        async for text in ws:
            message = json.loads(text)
            if 'solicit' in message:
                await ws.send(json.dumps({'response': f"{message['solicit']}/Pong", 'id': message['id'], 'n': 1}))
            elif 'notify' in message:
                await ws.send(json.dumps({'request': 'svc/Rest/echo', 'id': 'srv-1', 'value': message['value']}))
            elif 'reply' in message:
                replies.append(message)
                await ws.close()

    def echo(message, reply):
        reply({'reply': 'Ok', 'value': message['value']})

    async def main():
        async with serve(handler, "localhost", 0) as server:
            service = Service(f"ws://localhost:{_port(server)}", "svc/Rest", {'svc/Rest/echo': echo},
                              on_open=hooks.on_open, on_close=hooks.on_close, on_error=hooks.on_error)
            assert await asyncio.wait_for(service.wait_open(), 5)

            response = await asyncio.wait_for(service.asolicit("svc/Rest/Ping"), 5)
            service.notify("svc/Rest/Kick", {'value': 5})

            await asyncio.wait_for(service.wait_closed(), 5)
        return service, response

    service, response = asyncio.run(main())

    assert response == {'response': 'Pong', 'n': 1}
    assert replies == [{'reply': 'svc/Rest/echo/Ok', 'id': 'srv-1', 'value': 5}]
    assert service.state is ServiceState.CLOSED
    assert (hooks.opened, hooks.closed, hooks.errors) == (1, 1, [])


def test_unreachable_service(hooks):
    port = _unused_port()

    async def main():
        service = Service(f"ws://localhost:{port}", "svc/Rest",
                          on_close=hooks.on_close, on_error=hooks.on_error)
        await asyncio.wait_for(service.wait_closed(), 5)
        return service

    service = asyncio.run(main())

    assert len(hooks.errors) == 1
    assert isinstance(hooks.errors[0], TransportRuntimeError)
    assert isinstance(hooks.errors[0].__cause__, OSError)
    assert hooks.closed == 1
    assert service.state is ServiceState.CLOSED


def test_malformed_address(hooks):
    async def main():
        service = Service("ws://:8000", "svc/Rest", on_close=hooks.on_close, on_error=hooks.on_error)
        await asyncio.sleep(0)
        service.close()
        return service

    service = asyncio.run(main())

    assert len(hooks.errors) == 1
    assert isinstance(hooks.errors[0], TransportConstructionFailure)
    assert hooks.closed == 1
    assert service.state is ServiceState.CLOSED


def test_failing_pre_connect_is_reported():
    async def pre_connect():
        raise ValueError("no session")

    async def main():
        errors = []
        closed = asyncio.Event()
        transport = WebSocketTransport(f"ws://localhost:{_unused_port()}/svc_rest/websocket/svc", pre_connect=pre_connect)
        transport.on_error = errors.append
        transport.on_close = closed.set
        transport.start()
        await asyncio.wait_for(closed.wait(), 5)
        return errors

    errors = asyncio.run(main())

    assert len(errors) == 1
    assert isinstance(errors[0], TransportRuntimeError)
    assert isinstance(errors[0].__cause__, ValueError)
