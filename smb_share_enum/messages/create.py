from __future__ import annotations
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from struct import pack as struct_pack, unpack_from as struct_unpack_from
from typing import ClassVar, Iterable, ByteString

from msdsalgs.utils import Mask

from smb_share_enum.header import Command
from smb_share_enum.messages import RequestMessage, ResponseMessage
from smb_share_enum.session import Session
from smb_share_enum.structures.file_id import FileId


class OplockLevel(IntEnum):
    SMB2_OPLOCK_LEVEL_NONE = 0x00
    SMB2_OPLOCK_LEVEL_II = 0x01
    SMB2_OPLOCK_LEVEL_EXCLUSIVE = 0x08
    SMB2_OPLOCK_LEVEL_BATCH = 0x09
    SMB2_OPLOCK_LEVEL_LEASE = 0xFF


class ImpersonationLevel(IntEnum):
    ANONYMOUS = 0x00000000
    IDENTIFICATION = 0x00000001
    IMPERSONATION = 0x00000002
    DELEGATE = 0x00000003


class FilePipePrinterAccessMaskFlag(IntFlag):
    FILE_READ_DATA = 0x00000001
    FILE_WRITE_DATA = 0x00000002
    FILE_APPEND_DATA = 0x00000004
    FILE_READ_EA = 0x00000008
    FILE_WRITE_EA = 0x00000010
    FILE_EXECUTE = 0x00000020
    FILE_READ_ATTRIBUTES = 0x00000080
    FILE_WRITE_ATTRIBUTES = 0x00000100
    READ_CONTROL = 0x00020000
    SYNCHRONIZE = 0x00100000


FilePipePrinterAccessMask = Mask.make_class(FilePipePrinterAccessMaskFlag, prefix='')


class ShareAccessFlag(IntFlag):
    FILE_SHARE_READ = 0x00000001
    FILE_SHARE_WRITE = 0x00000002
    FILE_SHARE_DELETE = 0x00000004


ShareAccess = Mask.make_class(ShareAccessFlag, prefix='FILE_SHARE_')


class CreateDisposition(IntEnum):
    FILE_SUPERSEDE = 0x00000000
    FILE_OPEN = 0x00000001
    FILE_CREATE = 0x00000002
    FILE_OPEN_IF = 0x00000003
    FILE_OVERWRITE = 0x00000004
    FILE_OVERWRITE_IF = 0x00000005


class CreateOptionsFlag(IntFlag):
    FILE_DIRECTORY_FILE = 0x00000001
    FILE_NON_DIRECTORY_FILE = 0x00000040
    FILE_OPEN_NO_RECALL = 0x00400000


CreateOptions = Mask.make_class(CreateOptionsFlag, prefix='FILE_')


class CreateAction(IntEnum):
    FILE_SUPERSEDED = 0x00000000
    FILE_OPENED = 0x00000001
    FILE_CREATED = 0x00000002
    FILE_OVERWRITTEN = 0x00000003


@dataclass
@RequestMessage.register
class CreateRequest(RequestMessage):
    COMMAND: ClassVar[Command] = Command.SMB2_CREATE
    STRUCTURE_SIZE: ClassVar[int] = 57
    BODY_SIZE: ClassVar[int] = 56

    _SECURITY_FLAGS: ClassVar[int] = 0x00
    _SMB_CREATE_FLAGS: ClassVar[bytes] = bytes(8)
    _RESERVED: ClassVar[bytes] = bytes(8)

    # The UTF-16LE encoded name of the file or pipe to open.
    name: bytes
    requested_oplock_level: OplockLevel = OplockLevel.SMB2_OPLOCK_LEVEL_NONE
    impersonation_level: ImpersonationLevel = ImpersonationLevel.IMPERSONATION
    desired_access: FilePipePrinterAccessMask = field(
        default_factory=lambda: FilePipePrinterAccessMask(
            file_read_data=True,
            file_write_data=True,
            file_append_data=True,
            file_read_ea=True,
            file_write_ea=True,
            file_read_attributes=True,
            file_write_attributes=True,
            read_control=True,
            synchronize=True
        )
    )
    file_attributes: int = 0
    share_access: ShareAccess = field(default_factory=lambda: ShareAccess(read=True, write=True, delete=True))
    create_disposition: CreateDisposition = CreateDisposition.FILE_OPEN
    create_options: CreateOptions = field(
        default_factory=lambda: CreateOptions(non_directory_file=True, open_no_recall=True)
    )

    @classmethod
    def _from_session(cls, session: Session, payload: bytes) -> CreateRequest:
        return cls(name=payload)

    @property
    def payload(self) -> bytes:
        return self.name

    def _body_chunks(self) -> Iterable[bytes]:
        return [
            struct_pack('<H', self.STRUCTURE_SIZE),
            struct_pack('<B', self._SECURITY_FLAGS),
            struct_pack('<B', self.requested_oplock_level.value),
            struct_pack('<I', self.impersonation_level.value),
            self._SMB_CREATE_FLAGS,
            self._RESERVED,
            struct_pack('<I', int(self.desired_access)),
            struct_pack('<I', self.file_attributes),
            struct_pack('<I', int(self.share_access)),
            struct_pack('<I', self.create_disposition.value),
            struct_pack('<I', int(self.create_options)),
            struct_pack('<H', self.buffer_offset()),
            struct_pack('<H', len(self.name)),
            # No create contexts.
            struct_pack('<I', 0),
            struct_pack('<I', 0)
        ]


@dataclass
class CreateResponse(ResponseMessage):
    STRUCTURE_SIZE: ClassVar[int] = 89

    oplock_level: int
    create_action: int
    file_id: FileId

    @classmethod
    def from_body(cls, body: ByteString) -> CreateResponse:
        cls._check_structure_size(body=body)

        return cls(
            oplock_level=struct_unpack_from('<B', body, 2)[0],
            create_action=struct_unpack_from('<I', body, 4)[0],
            file_id=FileId.from_bytes(data=body, base_offset=64)
        )
