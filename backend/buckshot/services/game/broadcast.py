from buckshot.errors import Reason
from buckshot.models import ChatMessage, Room

NAMESPACE = '/ws'


def room_channel(room_id: str) -> str:
    return f"room:{room_id}"


class BroadcastGateway:
    """The only component that talks to Socket.IO.

    Every outward event goes through here, either to a whole room channel or
    to a single connection (whose player id is its session id).
    """

    def __init__(self, socketio, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def subscribe(self, player_id: str, room_id: str) -> None:
        self.socketio.server.enter_room(player_id, room_channel(room_id), namespace=self.namespace)

    def to_room(self, room_id: str, event: str, payload) -> None:
        self.socketio.emit(event, payload, to=room_channel(room_id), namespace=self.namespace)

    def to_player(self, player_id: str, event: str, payload) -> None:
        self.socketio.emit(event, payload, to=player_id, namespace=self.namespace)

    def reject(self, player_id: str, reason: Reason, message: str = None) -> None:
        self.to_player(player_id, 'error_rejected', {
            'reason': reason.value,
            'message': message or reason.value,
        })

    def player_list(self, room: Room) -> None:
        self.to_room(room.id, 'player_list_updated', {
            'host_id': room.host_id,
            'players': [p.to_dict(room.host_id) for p in room.players],
        })

    def snapshot(self, room: Room, event: str = 'turn_advanced') -> None:
        self.to_room(room.id, event, room.to_dict())

    def chat(self, room: Room, message: ChatMessage) -> None:
        self.to_room(room.id, 'chat_received', message.to_dict())

    def system_chat(self, room: Room, text: str) -> None:
        message = ChatMessage(sender='SYSTEM', text=text, system=True)
        room.messages.append(message)
        self.chat(room, message)
