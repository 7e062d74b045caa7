import functools
import logging

from flask import current_app, request
from flask_socketio import emit

from buckshot import socketio
from buckshot.errors import InvalidReference, PreconditionRejected
from buckshot.services.game import GameServices
from buckshot.services.game.broadcast import NAMESPACE

logger = logging.getLogger(__name__)


def _services() -> GameServices:
    return current_app.extensions['buckshot']


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _intent(handler):
    """Turn game errors into replies for the sender instead of exceptions."""

    @functools.wraps(handler)
    def wrapper(data=None):
        sid = _get_sid()
        try:
            return handler(sid, data if isinstance(data, dict) else {})
        except PreconditionRejected as exc:
            logger.info(f"[rejected] sid={sid} event={handler.__name__} reason={exc.reason.value}")
            _services().gateway.reject(sid, exc.reason, exc.message)
        except InvalidReference as exc:
            logger.debug(f"[ignored] sid={sid} event={handler.__name__} reason={exc.reason.value}")

    return wrapper


def handle_connect(auth=None):
    emit('connected', {'message': f"Connected to {NAMESPACE}", 'player_id': _get_sid()})


def handle_disconnect(reason=None):
    _services().connections.disconnect(_get_sid())


def handle_ping(data=None):
    emit('pong', data or {})


@_intent
def handle_join(sid, data):
    _services().connections.join(sid, data.get('room_id'), data.get('name'))


@_intent
def handle_toggle_ready(sid, data):
    svc = _services()
    svc.registry.toggle_ready(svc.connections.room_for(sid), sid)


@_intent
def handle_update_settings(sid, data):
    svc = _services()
    svc.registry.update_settings(svc.connections.room_for(sid), sid, data.get('settings') or {})


@_intent
def handle_chat(sid, data):
    svc = _services()
    svc.registry.send_chat(svc.connections.room_for(sid), sid, data.get('text'))


@_intent
def handle_start_game(sid, data):
    svc = _services()
    svc.lifecycle.start_game(svc.connections.room_for(sid), sid)


@_intent
def handle_shoot(sid, data):
    svc = _services()
    svc.lifecycle.shoot(svc.connections.room_for(sid), sid, data.get('target_id'))


@_intent
def handle_use_item(sid, data):
    svc = _services()
    svc.lifecycle.use_item(svc.connections.room_for(sid), sid, data.get('index'))


@_intent
def handle_request_restart(sid, data):
    svc = _services()
    svc.lifecycle.request_restart(svc.connections.room_for(sid), sid)


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the game namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
    socketio.on_event('join', handle_join, namespace=NAMESPACE)
    socketio.on_event('toggle_ready', handle_toggle_ready, namespace=NAMESPACE)
    socketio.on_event('update_settings', handle_update_settings, namespace=NAMESPACE)
    socketio.on_event('chat', handle_chat, namespace=NAMESPACE)
    socketio.on_event('start_game', handle_start_game, namespace=NAMESPACE)
    socketio.on_event('shoot', handle_shoot, namespace=NAMESPACE)
    socketio.on_event('use_item', handle_use_item, namespace=NAMESPACE)
    socketio.on_event('request_restart', handle_request_restart, namespace=NAMESPACE)
