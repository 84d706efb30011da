# bonfire_node/conversation.py

import logging
from dataclasses import dataclass

from bonfire_node.crypto import MessageCipher
from bonfire_node.errors import AuthenticationFailed, MalformedInput
from bonfire_node.session import SessionKey
from bonfire_node.sodium import initialize

logger = logging.getLogger(__name__)

UNVERIFIED_PLACEHOLDER = "[Message could not be verified]"


@dataclass(frozen=True)
class DecryptedMessage:
    id: int
    sender_id: str
    receiver_id: str
    created_at: str
    text: str
    verified: bool
    outgoing: bool


def counterparty_id(row: dict, own_id: str) -> str:
    """
    The other party of a message relative to *own_id*:
    the receiver if we sent it, the sender if we received it.
    """
    if row["sender_id"] == own_id:
        return row["receiver_id"]
    if row["receiver_id"] == own_id:
        return row["sender_id"]
    raise ValueError(f"message {row.get('id')} does not involve user {own_id}")


class Conversation:
    """
    A direct conversation between the signed-in user and one peer.

    *own* and *peer* are directory records ({id, email, username, public_key}).
    The public key used to open each row is resolved from that row's
    sender/receiver, never fixed per conversation.
    """

    def __init__(self, own: dict, peer: dict, session: SessionKey, relay, sodium=None):
        self.own = own
        self.peer = peer
        self.session = session
        self.relay = relay
        self._cipher = MessageCipher(sodium or initialize())
        self._public_keys = {own["id"]: own["public_key"], peer["id"]: peer["public_key"]}
        self._last_id = 0

    def _public_key_of(self, user_id: str) -> str:
        try:
            return self._public_keys[user_id]
        except KeyError:
            raise ValueError(f"user {user_id} is not part of this conversation") from None

    def send(self, text: str) -> dict:
        ciphertext = self._cipher.encrypt_text(
            text, self._public_key_of(self.peer["id"]), self.session
        )
        return self.relay.insert_message(self.own["id"], self.peer["id"], ciphertext)

    def open_row(self, row: dict) -> DecryptedMessage:
        own_id = self.own["id"]
        other_key = self._public_key_of(counterparty_id(row, own_id))

        try:
            text = self._cipher.decrypt_text(row["ciphertext"], other_key, self.session)
            verified = True
        except (AuthenticationFailed, MalformedInput) as exc:
            logger.warning("Message %s could not be verified: %s", row.get("id"), exc)
            text = UNVERIFIED_PLACEHOLDER
            verified = False

        return DecryptedMessage(
            id=row["id"],
            sender_id=row["sender_id"],
            receiver_id=row["receiver_id"],
            created_at=row["created_at"],
            text=text,
            verified=verified,
            outgoing=row["sender_id"] == own_id,
        )

    def _open_rows(self, rows: list) -> list:
        opened = [self.open_row(r) for r in rows]
        if rows:
            self._last_id = max(self._last_id, max(r["id"] for r in rows))
        return opened

    def history(self) -> list:
        """All messages of the pair, oldest first."""
        rows = self.relay.list_messages(self.own["id"], self.peer["id"])
        return self._open_rows(rows)

    def poll(self) -> list:
        """Messages inserted since the last history() or poll() call."""
        rows = self.relay.list_messages(self.own["id"], self.peer["id"], after=self._last_id)
        return self._open_rows(rows)
