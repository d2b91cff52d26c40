from typing import Dict, Optional

# room_id -> player_id -> install_id; runtime-only, rebuilt as sockets join
_members: Dict[str, Dict[str, str]] = {}


def _room(room_id: str) -> str:
    return (room_id or '').upper()


def add_member(room_id: str, player_id: str, install_id: str) -> None:
    _members.setdefault(_room(room_id), {})[player_id] = install_id


def remove_member(room_id: str, player_id: str) -> None:
    room = _members.get(_room(room_id))
    if room is None:
        return
    room.pop(player_id, None)
    if not room:
        _members.pop(_room(room_id), None)


def member_install_id(room_id: str, player_id: str) -> Optional[str]:
    return _members.get(_room(room_id), {}).get(player_id)


def clear() -> None:
    _members.clear()
