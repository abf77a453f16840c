from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, List, ByteString
from logging import getLogger

from smb_share_enum.header import Header, Command
from smb_share_enum.messages import RequestMessage
from smb_share_enum.session import Session
from smb_share_enum.transport import Transport, NotEnoughDataError
from smb_share_enum.ntstatus import STATUS_PENDING

LOG = getLogger(__name__)


@dataclass(frozen=True)
class ResponseFrame:
    command: Command
    status: int
    message_id: int
    tree_id: Optional[int]
    session_id: bytes
    body: bytes
    discarded_frames: int = 0

    @classmethod
    def from_message_data(cls, message_data: ByteString, discarded_frames: int = 0) -> ResponseFrame:
        header = Header.from_bytes(data=message_data)
        return cls(
            command=header.command,
            status=header.status,
            message_id=header.message_id,
            tree_id=header.tree_id,
            session_id=header.session_id,
            body=bytes(memoryview(message_data)[Header.STRUCTURE_SIZE:]),
            discarded_frames=discarded_frames
        )


def encode(command: Command, session: Session, payload: bytes = b'') -> bytes:
    """
    Produce the framed bytes of a request, claiming the next message id of the session.

    :param command: The SMB2 command of the request.
    :param session: The session whose identifiers go into the header and body.
    :param payload: The variable-length data following the fixed body of the request.
    :return: The request, prefixed with its direct TCP transport length.
    """

    request_message = RequestMessage.from_command(command=command, session=session, payload=payload)

    header = Header(
        command=command,
        message_id=session.claim_message_id(),
        tree_id=session.header_tree_id,
        session_id=session.header_session_id
    )

    return bytes(Transport.from_message(message_data=bytes(header) + bytes(request_message)))


def _split_frames(data: bytes) -> List[Transport]:
    transports: List[Transport] = []
    while data:
        transport = Transport.from_bytes(data=data)
        transports.append(transport)
        data = data[len(transport):]
    return transports


def decode(data: bytes) -> ResponseFrame:
    """
    Decode the response contained in data received from the server.

    Interim frames preceding the last complete frame are discarded. If the data ends inside a frame, or if the last
    frame only reports that the request is pending, `NotEnoughDataError` is raised; the caller is to append more
    data and retry.

    :param data: All data received since the request was sent.
    :return: The final response frame.
    """

    transports = _split_frames(data=data)
    if not transports:
        raise NotEnoughDataError

    num_discarded = len(transports) - 1
    frame = ResponseFrame.from_message_data(message_data=transports[-1].message_data, discarded_frames=num_discarded)

    if frame.status == STATUS_PENDING:
        raise NotEnoughDataError

    if num_discarded:
        LOG.warning(f'Discarded {num_discarded} interim frame(s) preceding the {frame.command.name} response.')

    return frame
