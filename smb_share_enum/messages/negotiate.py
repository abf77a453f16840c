from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from struct import pack as struct_pack
from typing import ClassVar, Tuple, Iterable

from msdsalgs.utils import Mask

from smb_share_enum.header import Command
from smb_share_enum.messages import RequestMessage
from smb_share_enum.session import Session


class Dialect(IntEnum):
    SMB_2_0_2 = 0x0202
    SMB_2_1 = 0x0210
    SMB_3_0 = 0x0300
    SMB_3_0_2 = 0x0302
    SMB_3_1_1 = 0x0311
    SMB_2_WILDCARD = 0x02FF


class SecurityModeMask(IntFlag):
    SMB2_NEGOTIATE_SIGNING_ENABLED = 0x0001
    SMB2_NEGOTIATE_SIGNING_REQUIRED = 0x0002


SecurityMode = Mask.make_class(SecurityModeMask, prefix='SMB2_NEGOTIATE_')


@dataclass
@RequestMessage.register
class NegotiateRequest(RequestMessage):
    COMMAND: ClassVar[Command] = Command.SMB2_NEGOTIATE
    STRUCTURE_SIZE: ClassVar[int] = 36
    BODY_SIZE: ClassVar[int] = 40

    _RESERVED: ClassVar[bytes] = bytes(2)
    _CAPABILITIES: ClassVar[bytes] = bytes(4)
    _CLIENT_GUID: ClassVar[bytes] = bytes(16)
    _CLIENT_START_TIME: ClassVar[bytes] = bytes(8)

    dialects: Tuple[Dialect, ...] = (Dialect.SMB_2_0_2, Dialect.SMB_2_1)
    security_mode: SecurityMode = field(default_factory=lambda: SecurityMode(signing_enabled=True))

    @classmethod
    def _from_session(cls, session: Session, payload: bytes) -> NegotiateRequest:
        return cls()

    def _body_chunks(self) -> Iterable[bytes]:
        return [
            struct_pack('<H', self.STRUCTURE_SIZE),
            struct_pack('<H', len(self.dialects)),
            struct_pack('<H', int(self.security_mode)),
            self._RESERVED,
            self._CAPABILITIES,
            self._CLIENT_GUID,
            self._CLIENT_START_TIME,
            *(struct_pack('<H', dialect.value) for dialect in self.dialects)
        ]
