from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntFlag
from struct import pack as struct_pack, unpack_from as struct_unpack_from
from typing import ClassVar, Iterable, ByteString

from msdsalgs.utils import Mask

from smb_share_enum.header import Command
from smb_share_enum.messages import RequestMessage, ResponseMessage
from smb_share_enum.messages.negotiate import SecurityMode
from smb_share_enum.session import Session


class CapabilitiesFlagMask(IntFlag):
    SMB2_GLOBAL_CAP_DFS = 0x00000001
    SMB2_GLOBAL_CAP_LEASING = 0x00000002
    SMB2_GLOBAL_CAP_LARGE_MTU = 0x00000004


CapabilitiesFlag = Mask.make_class(CapabilitiesFlagMask, prefix='SMB2_GLOBAL_CAP_')


class SessionFlagMask(IntFlag):
    SMB2_SESSION_FLAG_IS_GUEST = 0x0001
    SMB2_SESSION_FLAG_IS_NULL = 0x0002
    SMB2_SESSION_FLAG_ENCRYPT_DATA = 0x0004


SessionFlag = Mask.make_class(SessionFlagMask, prefix='SMB2_SESSION_FLAG_')


@dataclass
@RequestMessage.register
class SessionSetupRequest(RequestMessage):
    COMMAND: ClassVar[Command] = Command.SMB2_SESSION_SETUP
    STRUCTURE_SIZE: ClassVar[int] = 25
    BODY_SIZE: ClassVar[int] = 24

    _FLAGS: ClassVar[int] = 0x00
    _CHANNEL: ClassVar[bytes] = bytes(4)
    _PREVIOUS_SESSION_ID: ClassVar[bytes] = bytes(8)

    security_buffer: bytes
    security_mode: SecurityMode = field(default_factory=lambda: SecurityMode(signing_enabled=True))
    capabilities: CapabilitiesFlag = field(default_factory=lambda: CapabilitiesFlag(dfs=True))

    @classmethod
    def _from_session(cls, session: Session, payload: bytes) -> SessionSetupRequest:
        return cls(security_buffer=payload)

    @property
    def payload(self) -> bytes:
        return self.security_buffer

    def _body_chunks(self) -> Iterable[bytes]:
        return [
            struct_pack('<H', self.STRUCTURE_SIZE),
            struct_pack('<B', self._FLAGS),
            struct_pack('<B', int(self.security_mode)),
            struct_pack('<I', int(self.capabilities)),
            self._CHANNEL,
            struct_pack('<H', self.buffer_offset()),
            struct_pack('<H', len(self.security_buffer)),
            self._PREVIOUS_SESSION_ID
        ]


@dataclass
class SessionSetupResponse(ResponseMessage):
    STRUCTURE_SIZE: ClassVar[int] = 9

    session_flags: SessionFlag
    security_buffer: bytes

    @classmethod
    def from_body(cls, body: ByteString) -> SessionSetupResponse:
        cls._check_structure_size(body=body)

        security_buffer_offset: int = struct_unpack_from('<H', body, 4)[0]
        security_buffer_length: int = struct_unpack_from('<H', body, 6)[0]

        return cls(
            session_flags=SessionFlag.from_int(struct_unpack_from('<H', body, 2)[0]),
            security_buffer=cls._buffer_from_body(
                body=body,
                offset=security_buffer_offset,
                length=security_buffer_length
            )
        )
