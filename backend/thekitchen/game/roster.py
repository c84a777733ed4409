"""
Player roster and host failover.

All functions mutate the room passed in; the coordinator hands them the draft
it holds inside the room's critical section.
"""
from __future__ import annotations

import logging
import uuid

from .models import Player, Room

logger = logging.getLogger(__name__)


def next_host(players: list[Player], departing: Player | None) -> Player | None:
    """
    Pick the successor of ``departing`` as host.

    The successor is the next connected player in join order after the
    departing one, wrapping around. ``departing`` itself is never picked.
    Returns ``None`` when nobody else is connected.
    """
    ordered = sorted(players, key=lambda p: p.join_order)
    if departing is None:
        candidates = ordered
    else:
        after = [p for p in ordered if p.join_order > departing.join_order]
        before = [p for p in ordered if p.join_order < departing.join_order]
        candidates = after + before

    for p in candidates:
        if departing is not None and p.id == departing.id:
            continue
        if p.is_connected:
            return p
    return None


def _hand_over(room: Room, new_host: Player) -> None:
    for p in room.players:
        if p.is_host and p.id != new_host.id:
            p.was_host = True
        p.is_host = p.id == new_host.id
    logger.info("Host of room %s is now %s (%s)", room.code, new_host.id, new_host.name)


def ensure_reachable_host(room: Room) -> Player | None:
    """
    Move the title off a disconnected host when someone connected exists.

    Only players who never held the title are considered, so a former host
    coming back does not get it again; with no such player the disconnected
    host keeps it.
    """
    eligible = [p for p in room.players if not p.was_host]
    host = room.host
    if host is None:
        successor = next_host(eligible, None)
        if successor is None and room.players:
            successor = min(room.players, key=lambda p: p.join_order)
        if successor is not None:
            _hand_over(room, successor)
        return successor
    if host.is_connected:
        return host
    successor = next_host(eligible, host)
    if successor is not None:
        _hand_over(room, successor)
        return successor
    return host


def join(room: Room, name: str, connection_id: str, now_ms: int = 0, is_host: bool = False) -> Player:
    player = Player(
        id=uuid.uuid4().hex,
        name=name,
        connection_id=connection_id,
        is_host=is_host,
        is_connected=True,
        join_order=room.next_join_order,
        joined_at_ms=now_ms,
    )
    room.next_join_order += 1
    room.players.append(player)
    if not is_host:
        ensure_reachable_host(room)
    return player


def leave(room: Room, player: Player) -> Player | None:
    """
    Remove ``player`` for good. Returns the new host if the title moved.

    A departing host hands over to the next connected player, or to the next
    player in join order when nobody is connected.
    """
    had_title = player.is_host
    room.players = [p for p in room.players if p.id != player.id]
    if not had_title or not room.players:
        return None

    successor = next_host(room.players, player)
    if successor is None:
        after = sorted(
            room.players,
            key=lambda p: (p.join_order < player.join_order, p.join_order),
        )
        successor = after[0]
    _hand_over(room, successor)
    return successor


def mark_disconnected(room: Room, player: Player, now_ms: int = 0) -> Player | None:
    """
    Flag ``player`` as disconnected. Returns the new host if the title moved.

    When nobody else is connected the disconnected host keeps the title.
    """
    player.is_connected = False
    player.connection_id = None
    player.disconnected_at_ms = now_ms
    if not player.is_host:
        return None
    successor = next_host(room.players, player)
    if successor is not None:
        _hand_over(room, successor)
    return successor


def mark_reconnected(room: Room, player: Player, connection_id: str) -> Player:
    player.is_connected = True
    player.connection_id = connection_id
    player.disconnected_at_ms = None
    ensure_reachable_host(room)
    return player


def host_count(room: Room) -> int:
    return sum(1 for p in room.players if p.is_host)
