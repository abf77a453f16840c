"""
The NTLM messages exchanged in the session setup.

The messages are produced by an `ntlm` context. Each function makes its own context, so that no state is kept
between the steps of the handshake other than the messages themselves.

https://docs.microsoft.com/en-us/openspecs/windows_protocols/ms-nlmp/b38c36ed-2804-4868-a9ff-8dd3182128e4
"""

from __future__ import annotations
from enum import IntEnum
from struct import unpack_from as struct_unpack_from, error as struct_error
from typing import Final, ByteString, Tuple
from logging import getLogger

from ntlm import NTLMContext
from ntlm.messages.challenge import ChallengeMessage as NTLMChallengeMessage

from smb_share_enum.exceptions import MalformedChallengeMessageError

LOG = getLogger(__name__)

NTLMSSP_SIGNATURE: Final[bytes] = b'NTLMSSP\x00'

_CHALLENGE_MESSAGE_MINIMUM_LENGTH: Final[int] = 32
# The offsets of the `TargetNameFields` and `TargetInfoFields` of a CHALLENGE message.
_CHALLENGE_PAYLOAD_FIELDS_OFFSETS: Final[Tuple[int, int]] = (12, 40)


class MessageType(IntEnum):
    NEGOTIATE = 0x00000001
    CHALLENGE = 0x00000002
    AUTHENTICATE = 0x00000003


def _make_ntlm_context(username: str, password: str, domain: str, host: str) -> NTLMContext:
    return NTLMContext(
        username=username,
        authentication_secret=password,
        domain_name=domain,
        workstation_name=host
    )


def build_negotiate_message(host: str, domain: str) -> bytes:
    """
    Build an NTLM NEGOTIATE message.

    :param host: The workstation name; the name of the server, as the client has no name of its own to offer.
    :param domain: The domain name.
    :return: The NEGOTIATE message.
    """

    return bytes(next(_make_ntlm_context(username='', password='', domain=domain, host=host).initiate()))


def _check_challenge_message(data: bytes) -> None:
    if len(data) < _CHALLENGE_MESSAGE_MINIMUM_LENGTH:
        raise MalformedChallengeMessageError(
            message_header='Truncated challenge message.',
            observed_value=len(data),
            expected_value=_CHALLENGE_MESSAGE_MINIMUM_LENGTH,
            expected_label='Expected at least'
        )

    signature = data[:8]
    if signature != NTLMSSP_SIGNATURE:
        raise MalformedChallengeMessageError(
            message_header='Bad NTLMSSP signature.',
            observed_value=signature,
            expected_value=NTLMSSP_SIGNATURE
        )

    message_type: int = struct_unpack_from('<I', data, 8)[0]
    if message_type != MessageType.CHALLENGE:
        raise MalformedChallengeMessageError(
            message_header='Bad NTLM message type.',
            observed_value=message_type,
            expected_value=MessageType.CHALLENGE.value
        )

    for fields_offset in _CHALLENGE_PAYLOAD_FIELDS_OFFSETS:
        if fields_offset + 8 > len(data):
            continue

        length, _, offset = struct_unpack_from('<HHI', data, fields_offset)
        if offset + length > len(data):
            raise MalformedChallengeMessageError(
                message_header='Truncated challenge message payload.',
                observed_value=len(data),
                expected_value=offset + length,
                expected_label='Expected at least'
            )


def parse_challenge_message(data: ByteString) -> NTLMChallengeMessage:
    """
    Parse the NTLM CHALLENGE message of a session setup response.

    :param data: The security buffer of the response.
    :return: The challenge message, carrying the server challenge and the target info.
    """

    data = bytes(data)
    _check_challenge_message(data=data)

    try:
        return NTLMChallengeMessage.from_bytes(data)
    except (ValueError, struct_error) as e:
        raise MalformedChallengeMessageError(
            message_header='Unparsable challenge message.',
            observed_value=data.hex(),
            expected_value='an NTLM CHALLENGE message'
        ) from e


def build_authenticate_message(
    username: str,
    host: str,
    domain: str,
    challenge_message: NTLMChallengeMessage,
    password: str
) -> bytes:
    """
    Build an NTLM AUTHENTICATE message answering a server challenge.

    A new context makes the NEGOTIATE message again before receiving the challenge; the message is the same as the
    one that was sent, as it depends only on the host and domain names.

    :param username: The name of the user to authenticate as.
    :param host: The workstation name.
    :param domain: The domain of the user.
    :param challenge_message: The CHALLENGE message of the server.
    :param password: The password of the user.
    :return: The AUTHENTICATE message.
    """

    authenticate = _make_ntlm_context(username=username, password=password, domain=domain, host=host).initiate()
    next(authenticate)

    LOG.debug(f'Answering the NTLM challenge as {domain}\\{username}.')

    return bytes(authenticate.send(challenge_message))
