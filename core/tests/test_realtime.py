import pytest
from asgiref.sync import async_to_sync, sync_to_async
from channels.testing import WebsocketCommunicator
from rest_framework_simplejwt.tokens import AccessToken

from core.realtime.consumers import NotificationsConsumer
from core.services.notifications import notify

pytestmark = pytest.mark.django_db


def test_anonymous_socket_is_closed():
    async def run():
        comm = WebsocketCommunicator(NotificationsConsumer.as_asgi(), '/ws/notifications/')
        return await comm.connect()

    assert async_to_sync(run)() == (False, 4001)


def test_token_socket_gets_welcome_and_pong(doctor):
    notify(doctor, title='Waiting', message='unread')
    token = str(AccessToken.for_user(doctor))

    async def run():
        comm = WebsocketCommunicator(NotificationsConsumer.as_asgi(), f'/ws/notifications/?token={token}')
        connected, _ = await comm.connect()
        welcome = await comm.receive_json_from()
        await comm.send_json_to({'type': 'ping'})
        pong = await comm.receive_json_from()
        await comm.disconnect()
        return connected, welcome, pong

    connected, welcome, pong = async_to_sync(run)()
    assert connected is True
    assert welcome == {'type': 'welcome', 'unreadCount': 1}
    assert pong == {'type': 'pong'}


def test_inbox_changes_refresh_the_unread_count(client_for, doctor):
    first = notify(doctor, title='One', message='first')
    second = notify(doctor, title='Two', message='second')
    token = str(AccessToken.for_user(doctor))
    client = client_for(doctor)

    async def run():
        comm = WebsocketCommunicator(NotificationsConsumer.as_asgi(), f'/ws/notifications/?token={token}')
        await comm.connect()
        events = [await comm.receive_json_from()]
        await sync_to_async(client.put)(f'/api/notifications/{first.id}/read')
        events.append(await comm.receive_json_from())
        await sync_to_async(client.delete)(f'/api/notifications/{second.id}')
        events.append(await comm.receive_json_from())
        await comm.disconnect()
        return events

    welcome, updated, deleted = async_to_sync(run)()
    assert welcome['unreadCount'] == 2
    assert updated['type'] == 'notification.updated'
    assert updated['notification']['isRead'] is True
    assert updated['unreadCount'] == 1
    assert deleted == {'type': 'notification.deleted', 'notificationId': second.id, 'unreadCount': 0}
