"""
User session: the shared local store and the signed-in identity.

A ``Session`` is created when the app starts and torn down at logout. It is
passed explicitly to the workflow and the persistence mirror.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Optional

from .exceptions import ParseError
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "ed_googleCredential"
GENERIC_LABEL = "Account"


@dataclass(frozen=True)
class Identity:
    name: str = ""
    email: str = ""

    @property
    def display_label(self) -> str:
        return self.name or self.email or GENERIC_LABEL


def decode_credential(token: str) -> Identity:
    """
    Decode the payload segment of a JWT credential into an identity.

    The signature is not verified; the token only supplies a display name.

    Raises:
        ParseError: If the token is not a decodable JWT
    """
    parts = (token or "").split(".")
    if len(parts) < 2:
        raise ParseError("Credential is not a JWT")

    segment = parts[1].replace("-", "+").replace("_", "/")
    segment += "=" * ((4 - len(segment) % 4) % 4)
    try:
        payload = json.loads(base64.b64decode(segment).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise ParseError(f"Credential payload is not valid JSON: {e}")
    if not isinstance(payload, dict):
        raise ParseError("Credential payload is not an object")

    name = payload.get("name")
    email = payload.get("email")
    return Identity(
        name=name if isinstance(name, str) else "",
        email=email if isinstance(email, str) else "",
    )


class Session:
    """Explicit context holding the store and the identity credential"""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def login(self, credential: str) -> Identity:
        self.store.set(CREDENTIAL_KEY, credential)
        return self.identity

    def logout(self) -> None:
        self.store.remove(CREDENTIAL_KEY)

    @property
    def credential(self) -> Optional[str]:
        return self.store.get(CREDENTIAL_KEY)

    @property
    def identity(self) -> Identity:
        """Signed-in identity; any decode failure yields an empty identity."""
        token = self.credential
        if not token:
            return Identity()
        try:
            return decode_credential(token)
        except ParseError as e:
            logger.debug("Using generic label: %s", e)
            return Identity()

    @property
    def display_label(self) -> str:
        return self.identity.display_label
