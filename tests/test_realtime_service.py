import json

import pytest
import pytest_asyncio
from sqlalchemy.exc import SQLAlchemyError

from elevatehub.core.websocket_manager import ConnectionManager
from elevatehub.models.user import UserRoleEnum
from elevatehub.schemas.message_schema import MessageCreate
from elevatehub.services.message_service import MessageService
from elevatehub.services.realtime_service import RealtimeService
from elevatehub.utils.rooms import room_key
from tests.factories import FakeWebSocket, create_application, create_job, create_user


def frame(event, **data):
    return json.dumps({"event": event, "data": data})


@pytest_asyncio.fixture
async def world(session_factory):
    """A job with its client, one applicant and one outsider, all detached."""
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        outsider = await create_user(db)
        job = await create_job(db, client)
        await create_application(db, job, freelancer)
    return client, freelancer, outsider, job


async def connect(manager, user):
    ws = FakeWebSocket()
    connection_id = await manager.connect(ws, user.user_id)
    return connection_id, ws


def last_error(ws):
    errors = ws.events("error")
    assert errors, ws.sent
    return errors[-1]["data"]["message"]


@pytest.mark.asyncio
async def test_join_then_relay_persisted_message(session_factory, world):
    client, freelancer, _, job = world
    manager = ConnectionManager()
    c_conn, c_ws = await connect(manager, client)
    f_conn, f_ws = await connect(manager, freelancer)

    async with session_factory() as db:
        message = await MessageService(db).send_message(
            freelancer, MessageCreate(job_id=job.job_id, receiver_id=client.user_id, content="Hello")
        )

    async with session_factory() as db:
        service = RealtimeService(db, manager)
        await service.handle_raw(c_conn, client, frame("room.join", job_id=job.job_id, other_user_id=freelancer.user_id))
        await service.handle_raw(f_conn, freelancer, frame("room.join", job_id=job.job_id, other_user_id=client.user_id))
        await service.handle_raw(f_conn, freelancer, frame("message.send", message_id=message.message_id))

    room_id = room_key(job.job_id, client.user_id, freelancer.user_id)
    assert c_ws.events("room.joined")[0]["data"] == {"room_id": room_id}

    received = c_ws.events("message.receive")
    assert len(received) == 1
    assert received[0]["data"]["message"]["content"] == "Hello"
    assert received[0]["data"]["message"]["sequence"] == 1
    notice = c_ws.events("notification.new_message")[0]["data"]
    assert notice["conversation_id"] == message.conversation_id

    assert f_ws.events("message.ack")[0]["data"] == {"message_id": message.message_id}
    assert c_ws.events("message.ack") == []


@pytest.mark.asyncio
async def test_ineligible_join_is_reported(session_factory, world):
    client, _, outsider, job = world
    manager = ConnectionManager()
    o_conn, o_ws = await connect(manager, outsider)

    async with session_factory() as db:
        await RealtimeService(db, manager).handle_raw(
            o_conn, outsider, frame("room.join", job_id=job.job_id, other_user_id=client.user_id)
        )

    assert "applied to this job" in last_error(o_ws)
    assert manager.connection_rooms[o_conn] == set()


@pytest.mark.asyncio
async def test_bad_frames_are_reported(session_factory, world):
    client, freelancer, _, job = world
    manager = ConnectionManager()
    conn, ws = await connect(manager, client)

    async with session_factory() as db:
        service = RealtimeService(db, manager)
        await service.handle_raw(conn, client, "not json")
        assert last_error(ws) == "Malformed event"
        await service.handle_raw(conn, client, frame("presence.dance"))
        assert last_error(ws) == "Unknown event 'presence.dance'"
        await service.handle_raw(conn, client, frame("room.join", other_user_id=freelancer.user_id))
        assert last_error(ws) == "'job_id' is required"


@pytest.mark.asyncio
async def test_only_the_sender_can_relay(session_factory, world):
    client, freelancer, _, job = world
    manager = ConnectionManager()
    conn, ws = await connect(manager, client)

    async with session_factory() as db:
        message = await MessageService(db).send_message(
            freelancer, MessageCreate(job_id=job.job_id, receiver_id=client.user_id, content="Mine")
        )

    async with session_factory() as db:
        await RealtimeService(db, manager).handle_raw(conn, client, frame("message.send", message_id=message.message_id))

    assert last_error(ws) == "You can only relay your own messages"
    assert ws.events("message.receive") == []


@pytest.mark.asyncio
async def test_typing_goes_to_the_other_party_only(session_factory, world):
    client, freelancer, _, job = world
    manager = ConnectionManager()
    c_conn, c_ws = await connect(manager, client)
    f_conn, f_ws = await connect(manager, freelancer)
    room_id = room_key(job.job_id, client.user_id, freelancer.user_id)

    async with session_factory() as db:
        service = RealtimeService(db, manager)
        await service.handle_raw(f_conn, freelancer, frame("typing.start", room_id=room_id))
        assert last_error(f_ws) == "Join the room first"
        await service.handle_raw(f_conn, freelancer, frame("typing.start", room_id="lobby"))
        assert last_error(f_ws) == "Unknown room"

        await service.handle_raw(c_conn, client, frame("room.join", job_id=job.job_id, other_user_id=freelancer.user_id))
        await service.handle_raw(f_conn, freelancer, frame("room.join", job_id=job.job_id, other_user_id=client.user_id))
        await service.handle_raw(f_conn, freelancer, frame("typing.start", room_id=room_id))
        await service.handle_raw(f_conn, freelancer, frame("typing.stop", room_id=room_id))

    shown = c_ws.events("typing.show")
    assert shown[0]["data"]["user_id"] == freelancer.user_id
    assert shown[0]["data"]["display_name"] == freelancer.full_name
    assert c_ws.events("typing.hide")
    assert f_ws.events("typing.show") == []


@pytest.mark.asyncio
async def test_storage_failure_is_reported_and_connection_kept(session_factory, world):
    client, freelancer, _, job = world
    manager = ConnectionManager()
    conn, ws = await connect(manager, client)

    async def unavailable(*args):
        raise SQLAlchemyError("database is gone")

    async with session_factory() as db:
        service = RealtimeService(db, manager)
        service.message_service.ensure_can_converse = unavailable
        await service.handle_raw(conn, client, frame("room.join", job_id=job.job_id, other_user_id=freelancer.user_id))

    assert last_error(ws) == "Internal server error"
    assert manager.connection_rooms[conn] == set()
    assert manager.is_online(client.user_id)
