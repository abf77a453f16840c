from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from struct import pack as struct_pack, unpack_from as struct_unpack_from
from typing import ClassVar, Optional, ByteString

from msdsalgs.utils import Mask

from smb_share_enum.exceptions import MalformedMessageError


class Command(IntEnum):
    SMB2_NEGOTIATE = 0x0000
    SMB2_SESSION_SETUP = 0x0001
    SMB2_LOGOFF = 0x0002
    SMB2_TREE_CONNECT = 0x0003
    SMB2_TREE_DISCONNECT = 0x0004
    SMB2_CREATE = 0x0005
    SMB2_CLOSE = 0x0006
    SMB2_FLUSH = 0x0007
    SMB2_READ = 0x0008
    SMB2_WRITE = 0x0009
    SMB2_LOCK = 0x000A
    SMB2_IOCTL = 0x000B
    SMB2_CANCEL = 0x000C
    SMB2_ECHO = 0x000D
    SMB2_QUERY_DIRECTORY = 0x000E
    SMB2_CHANGE_NOTIFY = 0x000F
    SMB2_QUERY_INFO = 0x0010
    SMB2_SET_INFO = 0x0011
    SMB2_OPLOCK_BREAK = 0x0012


class HeaderFlagMask(IntFlag):
    SMB2_FLAGS_SERVER_TO_REDIR = 0x00000001
    SMB2_FLAGS_ASYNC_COMMAND = 0x00000002
    SMB2_FLAGS_RELATED_OPERATIONS = 0x00000004
    SMB2_FLAGS_SIGNED = 0x00000008
    SMB2_FLAGS_DFS_OPERATIONS = 0x10000000
    SMB2_FLAGS_REPLAY_OPERATION = 0x20000000


HeaderFlag = Mask.make_class(HeaderFlagMask, prefix='SMB2_FLAGS_')


@dataclass
class Header:
    """
    The SMB2 packet header.

    https://docs.microsoft.com/en-us/openspecs/windows_protocols/ms-smb2/fb188936-5050-48d3-b350-dc43059638a4

    Sync and async headers share a layout except for the eight bytes at offset 32, which hold either the reserved
    field and the tree id, or the async id. An async header therefore carries no tree id.
    """

    STRUCTURE_SIZE: ClassVar[int] = 64
    PROTOCOL_IDENTIFIER: ClassVar[bytes] = b'\xfeSMB'
    _RESERVED: ClassVar[bytes] = bytes(4)
    _EMPTY_SIGNATURE: ClassVar[bytes] = bytes(16)

    command: Command
    message_id: int = 0
    tree_id: Optional[int] = 0
    session_id: bytes = bytes(8)
    status: int = 0
    flags: HeaderFlag = field(default_factory=HeaderFlag)
    credit_charge: int = 0
    num_credits: int = 1
    next_command_offset: int = 0
    async_id: Optional[int] = None
    signature: bytes = _EMPTY_SIGNATURE

    @property
    def is_response(self) -> bool:
        return self.flags.server_to_redir

    @property
    def is_async(self) -> bool:
        return self.flags.async_command

    @classmethod
    def from_bytes(cls, data: ByteString, base_offset: int = 0) -> Header:
        data = memoryview(data)[base_offset:]

        protocol_identifier = bytes(data[:4])
        if protocol_identifier != cls.PROTOCOL_IDENTIFIER:
            raise MalformedMessageError(
                message_header='Bad protocol identifier.',
                observed_value=protocol_identifier,
                expected_value=cls.PROTOCOL_IDENTIFIER
            )

        structure_size: int = struct_unpack_from('<H', data, 4)[0]
        if structure_size != cls.STRUCTURE_SIZE:
            raise MalformedMessageError(
                message_header='Bad header structure size.',
                observed_value=structure_size,
                expected_value=cls.STRUCTURE_SIZE
            )

        flags = HeaderFlag.from_int(struct_unpack_from('<I', data, 16)[0])
        is_async: bool = flags.async_command

        return cls(
            credit_charge=struct_unpack_from('<H', data, 6)[0],
            status=struct_unpack_from('<I', data, 8)[0],
            command=Command(struct_unpack_from('<H', data, 12)[0]),
            num_credits=struct_unpack_from('<H', data, 14)[0],
            flags=flags,
            next_command_offset=struct_unpack_from('<I', data, 20)[0],
            message_id=struct_unpack_from('<Q', data, 24)[0],
            async_id=struct_unpack_from('<Q', data, 32)[0] if is_async else None,
            tree_id=None if is_async else struct_unpack_from('<I', data, 36)[0],
            session_id=bytes(data[40:48]),
            signature=bytes(data[48:64])
        )

    def __len__(self) -> int:
        return self.STRUCTURE_SIZE

    def __bytes__(self) -> bytes:
        if self.is_async:
            async_or_tree_chunk: bytes = struct_pack('<Q', self.async_id or 0)
        else:
            async_or_tree_chunk: bytes = self._RESERVED + struct_pack('<I', self.tree_id or 0)

        return b''.join([
            self.PROTOCOL_IDENTIFIER,
            struct_pack('<H', self.STRUCTURE_SIZE),
            struct_pack('<H', self.credit_charge),
            struct_pack('<I', self.status),
            struct_pack('<H', self.command.value),
            struct_pack('<H', self.num_credits),
            struct_pack('<I', int(self.flags)),
            struct_pack('<I', self.next_command_offset),
            struct_pack('<Q', self.message_id),
            async_or_tree_chunk,
            self.session_id,
            self.signature
        ])
